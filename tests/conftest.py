import asyncio
import gzip
import hashlib
import threading
import time
import zlib
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer


class FeedRequestHandler(BaseHTTPRequestHandler):
    """Serves canned bodies registered on the server's ``routes`` table.

    A ``/gzip`` or ``/deflate`` path prefix compresses the response, and a
    matching ``If-None-Match`` gets a 304, like a real feed host. Paths listed
    in ``stalls`` send their headers, then hold the body back for that many
    seconds.
    """

    def do_GET(self):
        self.server.requests.append(
            (self.path, {name.lower(): value for name, value in self.headers.items()})
        )

        path = self.path
        encoding = None
        for prefix in ("/gzip", "/deflate", "/x-custom"):
            if path.startswith(prefix + "/"):
                encoding = prefix[1:]
                path = path[len(prefix):]
                break

        if path not in self.server.routes:
            self.send_response(404)
            self.end_headers()
            return

        status, headers, body = self.server.routes[path]
        etag = '"' + hashlib.sha1(body).hexdigest() + '"'
        if status == 200 and self.headers.get("If-None-Match", "") == etag:
            self.send_response(304)
            self.end_headers()
            return

        if encoding == "gzip":
            body = gzip.compress(body)
        elif encoding == "deflate":
            compressor = zlib.compressobj(wbits=-zlib.MAX_WBITS)
            body = compressor.compress(body) + compressor.flush()

        self.send_response(status)
        for name, value in headers.items():
            self.send_header(name, value)
        if encoding:
            self.send_header("Content-Encoding", encoding)
        self.send_header("ETag", etag)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        delay = self.server.stalls.get(path)
        try:
            if delay:
                self.wfile.flush()
                time.sleep(delay)
            self.wfile.write(body)
        except (BrokenPipeError, ConnectionResetError):
            pass

    def log_message(self, fmt, *args):
        pass


class FeedServer(ThreadingHTTPServer):
    daemon_threads = True

    def __init__(self):
        super().__init__(("127.0.0.1", 0), FeedRequestHandler)
        self.routes = {}
        self.requests = []
        self.stalls = {}

    def url(self, path):
        host, port = self.server_address[:2]
        return f"http://{host}:{port}{path}"

    def add(self, path, body, content_type="application/xml", status=200, headers=None):
        all_headers = {"Content-Type": content_type}
        all_headers.update(headers or {})
        if isinstance(body, str):
            body = body.encode("utf-8")
        self.routes[path] = (status, all_headers, body)

    def etag(self, path):
        return '"' + hashlib.sha1(self.routes[path][2]).hexdigest() + '"'


@pytest.fixture
def http_server():
    server = FeedServer()
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield server
    finally:
        server.shutdown()
        server.server_close()


RSS_SAMPLE = """<?xml version="1.0" encoding="utf-8"?>
<rss version="2.0" xmlns:dc="http://purl.org/dc/elements/1.1/">
  <channel>
    <title>Example Feed</title>
    <description>Example description</description>
    <language>en-us</language>
    <lastBuildDate>Sat, 07 Sep 2002 00:00:01 GMT</lastBuildDate>
    <category domain="http://example.com/cats">feed-tag</category>
    <item>
      <title>First</title>
      <link>https://example.com/first</link>
      <description>First summary</description>
      <pubDate>Sat, 07 Sep 2002 09:42:31 GMT</pubDate>
      <category>entry-tag</category>
    </item>
    <item>
      <title>Second</title>
      <guid>https://example.com/second</guid>
      <pubDate>Fri, 06 Sep 2002 09:42:31 EST</pubDate>
    </item>
    <item>
      <title>Third</title>
      <link>https://example.com/third</link>
    </item>
  </channel>
</rss>
"""

ATOM_SAMPLE = """<?xml version="1.0" encoding="utf-8"?>
<feed xmlns="http://www.w3.org/2005/Atom" xml:lang="en">
  <title>Atom Example</title>
  <subtitle>Atom subtitle</subtitle>
  <updated>2003-12-13T18:30:02Z</updated>
  <link href="https://example.org/"/>
  <category term="news" scheme="http://example.org/s" label="News"/>
  <entry>
    <title>Atom-Powered Robots Run Amok</title>
    <link rel="alternate" href="https://example.org/2003/12/13/atom03"/>
    <published>2003-12-13T08:29:29-04:00</published>
    <summary>Some text.</summary>
  </entry>
</feed>
"""


@pytest.fixture
def rss_sample():
    return RSS_SAMPLE


@pytest.fixture
def atom_sample():
    return ATOM_SAMPLE


@pytest_asyncio.fixture
async def aiohttp_feed_server():
    """Async feed host: ``/feed``, ``/gzip``, ``/slow`` and ``/error``."""

    async def feed(request):
        return web.Response(text=RSS_SAMPLE, content_type="application/rss+xml")

    async def gzipped(request):
        return web.Response(
            body=gzip.compress(ATOM_SAMPLE.encode("utf-8")),
            headers={"Content-Type": "application/atom+xml", "Content-Encoding": "gzip"},
        )

    async def slow(request):
        await asyncio.sleep(1)
        return web.Response(text=RSS_SAMPLE, content_type="application/rss+xml")

    async def error(request):
        raise web.HTTPInternalServerError()

    app = web.Application()
    app.router.add_get("/feed", feed)
    app.router.add_get("/gzip", gzipped)
    app.router.add_get("/slow", slow)
    app.router.add_get("/error", error)

    server = TestServer(app)
    await server.start_server()
    try:
        yield server
    finally:
        await server.close()
