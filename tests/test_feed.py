import asyncio
from datetime import datetime, timezone
from types import SimpleNamespace

import aiohttp
import pytest

from feedsniffer import (
    ArgumentError,
    FeedFormatError,
    FormatParserRegistry,
    GenericFeed,
    LoadSettings,
    LoadState,
    SyndicationContentFormat,
    create_safe_navigator,
    default_registry,
    parse,
)
from feedsniffer.main import GenericCategory

UTC = timezone.utc

OPML_SAMPLE = """<?xml version="1.0" encoding="utf-8"?>
<opml version="2.0">
  <head>
    <title>Subscriptions</title>
    <dateModified>Sat, 07 Sep 2002 00:00:01 GMT</dateModified>
  </head>
  <body>
    <outline text="Tech" category="tech,news">
      <outline text="Example" type="rss" xmlUrl="https://example.com/feed.xml" category="tech"/>
      <outline text="Folder only"/>
    </outline>
    <outline text="Other" title="Other feed" htmlUrl="https://other.example.com/"/>
  </body>
</opml>
"""

RDF_SAMPLE = """<?xml version="1.0"?>
<rdf:RDF xmlns:rdf="http://www.w3.org/1999/02/22-rdf-syntax-ns#"
         xmlns="http://purl.org/rss/1.0/"
         xmlns:dc="http://purl.org/dc/elements/1.1/">
  <channel rdf:about="https://example.com/">
    <title>RDF Feed</title>
    <link>https://example.com/</link>
    <description>RDF description</description>
    <dc:language>fr</dc:language>
    <dc:date>2002-09-07T00:00:01Z</dc:date>
  </channel>
  <item rdf:about="https://example.com/1">
    <title>One</title>
    <link>https://example.com/1</link>
    <dc:date>2002-09-06T09:42:31-05:00</dc:date>
    <dc:subject>topic</dc:subject>
  </item>
</rdf:RDF>
"""

APML_SAMPLE = '<APML xmlns="http://www.apml.org/apml-0.6" version="0.6"><Head/><Body/></APML>'


def test_parse_rss(rss_sample):
    feed = parse(rss_sample)
    assert feed.format is SyndicationContentFormat.RSS
    assert feed.title == "Example Feed"
    assert feed.description == "Example description"
    assert feed.language == "en-us"
    assert feed.last_updated_on == datetime(2002, 9, 7, 0, 0, 1, tzinfo=UTC)
    assert feed.categories == [GenericCategory("feed-tag", "http://example.com/cats")]
    assert [item.title for item in feed.items] == ["First", "Second", "Third"]

    first, second, third = feed.items
    assert first.link == "https://example.com/first"
    assert first.summary == "First summary"
    assert first.published_on == datetime(2002, 9, 7, 9, 42, 31, tzinfo=UTC)
    assert first.categories == [GenericCategory("entry-tag")]
    assert second.link == "https://example.com/second"
    assert second.published_on == datetime(2002, 9, 6, 14, 42, 31, tzinfo=UTC)
    assert third.published_on is None
    assert feed.resource.feed.title == "Example Feed"


def test_retrieval_limit(rss_sample):
    feed = parse(rss_sample, settings=LoadSettings(retrieval_limit=2))
    assert len(feed.items) == 2


def test_parse_atom(atom_sample):
    feed = parse(atom_sample.encode("utf-8"))
    assert feed.format is SyndicationContentFormat.ATOM
    assert feed.title == "Atom Example"
    assert feed.description == "Atom subtitle"
    assert feed.language == "en"
    assert feed.last_updated_on == datetime(2003, 12, 13, 18, 30, 2, tzinfo=UTC)
    assert feed.categories == [GenericCategory("news", "http://example.org/s", "News")]
    item = feed.items[0]
    assert item.title == "Atom-Powered Robots Run Amok"
    assert item.link == "https://example.org/2003/12/13/atom03"
    assert item.summary == "Some text."
    assert item.published_on == datetime(2003, 12, 13, 12, 29, 29, tzinfo=UTC)


def test_parse_atom_03():
    xml = (
        '<feed version="0.3" xmlns="http://purl.org/atom/ns#">'
        "<title>Old Atom</title><tagline>Old tagline</tagline>"
        "<modified>2003-12-13T18:30:02Z</modified>"
        '<entry><title>Entry</title><link rel="alternate" href="https://example.org/e"/>'
        "<issued>2003-12-13T08:29:29-04:00</issued></entry>"
        "</feed>"
    )
    feed = parse(xml)
    assert feed.title == "Old Atom"
    assert feed.description == "Old tagline"
    assert feed.items[0].published_on == datetime(2003, 12, 13, 12, 29, 29, tzinfo=UTC)


def test_parse_rdf():
    feed = parse(RDF_SAMPLE)
    assert feed.format is SyndicationContentFormat.RSS
    assert feed.title == "RDF Feed"
    assert feed.language == "fr"
    assert feed.last_updated_on == datetime(2002, 9, 7, 0, 0, 1, tzinfo=UTC)
    assert feed.items[0].published_on == datetime(2002, 9, 6, 14, 42, 31, tzinfo=UTC)
    assert feed.items[0].categories == [GenericCategory("topic")]


def test_parse_opml():
    feed = parse(OPML_SAMPLE)
    assert feed.format is SyndicationContentFormat.OPML
    assert feed.title == "Subscriptions"
    assert feed.last_updated_on == datetime(2002, 9, 7, 0, 0, 1, tzinfo=UTC)
    assert [item.link for item in feed.items] == [
        "https://example.com/feed.xml",
        "https://other.example.com/",
    ]
    assert feed.items[0].categories == [GenericCategory("tech")]
    assert feed.items[1].title == "Other feed"


def test_rss_without_channel():
    with pytest.raises(ValueError):
        parse('<rss version="2.0"/>')


def test_format_without_parser_leaves_feed_empty():
    feed = GenericFeed()
    events = []
    feed.loaded.append(lambda sender, event: events.append((sender, event)))
    feed.load(APML_SAMPLE)
    assert feed.format is SyndicationContentFormat.APML
    assert feed.resource is None
    assert feed.title is None
    assert feed.items == []
    assert events and events[0][0] is feed


def test_unrecognized_document_still_fires_loaded():
    feed = GenericFeed()
    events = []
    feed.loaded.append(lambda sender, event: events.append(event))
    feed.load("<html><body/></html>")
    assert feed.format is SyndicationContentFormat.NONE
    assert len(events) == 1


def test_reload_resets_fields(rss_sample):
    feed = GenericFeed()
    feed.load(rss_sample)
    assert feed.items
    feed.load(APML_SAMPLE)
    assert feed.items == []
    assert feed.title is None


def test_load_from_element(rss_sample):
    root = create_safe_navigator(rss_sample)
    events = []
    feed = GenericFeed()
    feed.loaded.append(lambda sender, event: events.append(event))
    feed.load(root)
    assert feed.title == "Example Feed"
    assert events[0].data is root
    assert events[0].source is root


def test_custom_registry_with_attribute_model(rss_sample):
    def read(navigator, metadata, settings):
        return SimpleNamespace(
            feed=SimpleNamespace(title=metadata.version and str(metadata.version), tags=None),
            entries=[SimpleNamespace(title="only")],
        )

    registry = FormatParserRegistry({SyndicationContentFormat.RSS: read})
    feed = parse(rss_sample, registry=registry)
    assert feed.title == "2.0"
    assert [item.title for item in feed.items] == ["only"]
    assert feed.items[0].link is None


def test_registry():
    registry = default_registry()
    assert SyndicationContentFormat.RSS in registry
    assert SyndicationContentFormat.APML not in registry
    assert len(registry) == 3
    assert registry.unregister(SyndicationContentFormat.OPML) is not None
    assert registry.get(SyndicationContentFormat.OPML) is None
    with pytest.raises(ArgumentError):
        registry.register(SyndicationContentFormat.NONE, lambda *args: None)
    with pytest.raises(ArgumentError):
        registry.register(SyndicationContentFormat.APML, "not callable")


def test_parse_rejects_missing_or_empty_source():
    with pytest.raises(ArgumentError):
        parse(None)
    with pytest.raises(FeedFormatError):
        parse("")


def test_parse_from_url(http_server, rss_sample):
    http_server.add("/feed", rss_sample, content_type="application/rss+xml; charset=utf-8")
    url = http_server.url("/feed")
    events = []
    feed = GenericFeed()
    feed.loaded.append(lambda sender, event: events.append(event))
    feed.load(url)
    assert feed.title == "Example Feed"
    assert events[0].source == url


def test_parse_from_gzipped_url(http_server, atom_sample):
    http_server.add("/atom", atom_sample, content_type="application/atom+xml")
    feed = parse(http_server.url("/gzip/atom"))
    assert feed.format is SyndicationContentFormat.ATOM


def test_parse_forced_encoding():
    data = b"<rss><channel><title>caf\xe9</title></channel></rss>"
    feed = parse(data, settings=LoadSettings(character_encoding="latin-1"))
    assert feed.title == "caf\xe9"


def test_cancel_when_idle_is_noop():
    feed = GenericFeed()
    feed.cancel()
    assert feed.load_state is LoadState.IDLE
    assert not feed.is_loading


@pytest.mark.asyncio
async def test_load_async(aiohttp_feed_server):
    feed = GenericFeed()
    events = []
    feed.loaded.append(lambda sender, event: events.append(event))
    task = feed.load_async(str(aiohttp_feed_server.make_url("/feed")), user_token="token")
    assert feed.is_loading
    assert feed.load_state is LoadState.LOADING

    assert await task is feed
    await asyncio.sleep(0)
    assert feed.load_state is LoadState.COMPLETED
    assert not feed.is_loading
    assert feed.title == "Example Feed"
    assert events[0].user_token == "token"


@pytest.mark.asyncio
async def test_load_async_gzip(aiohttp_feed_server):
    feed = GenericFeed()
    await feed.load_async(str(aiohttp_feed_server.make_url("/gzip")))
    assert feed.format is SyndicationContentFormat.ATOM
    assert feed.title == "Atom Example"


@pytest.mark.asyncio
async def test_load_async_timeout(aiohttp_feed_server):
    feed = GenericFeed()
    events = []
    feed.loaded.append(lambda sender, event: events.append(event))
    task = feed.load_async(
        str(aiohttp_feed_server.make_url("/slow")), settings=LoadSettings(timeout=0.1)
    )
    assert await task is None
    await asyncio.sleep(0)
    assert feed.load_state is LoadState.TIMED_OUT
    assert not feed.is_loading
    assert events == []


@pytest.mark.asyncio
async def test_load_async_cancel(aiohttp_feed_server):
    feed = GenericFeed()
    events = []
    feed.loaded.append(lambda sender, event: events.append(event))
    task = feed.load_async(str(aiohttp_feed_server.make_url("/slow")))
    await asyncio.sleep(0.05)
    feed.cancel()
    feed.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    await asyncio.sleep(0)
    assert feed.load_state is LoadState.CANCELLED
    assert not feed.is_loading
    assert events == []


@pytest.mark.asyncio
async def test_cancel_after_completed_load_is_noop(aiohttp_feed_server):
    feed = GenericFeed()
    events = []
    feed.loaded.append(lambda sender, event: events.append(event))
    await feed.load_async(str(aiohttp_feed_server.make_url("/feed")))
    await asyncio.sleep(0)
    feed.cancel()
    assert feed.load_state is LoadState.COMPLETED
    assert len(events) == 1


@pytest.mark.asyncio
async def test_load_async_rejects_concurrent_load(aiohttp_feed_server):
    feed = GenericFeed()
    task = feed.load_async(str(aiohttp_feed_server.make_url("/slow")))
    with pytest.raises(RuntimeError):
        feed.load_async(str(aiohttp_feed_server.make_url("/feed")))
    assert feed.is_loading
    feed.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task


@pytest.mark.asyncio
async def test_load_async_after_completion(aiohttp_feed_server):
    feed = GenericFeed()
    await feed.load_async(str(aiohttp_feed_server.make_url("/feed")))
    await asyncio.sleep(0)
    await feed.load_async(str(aiohttp_feed_server.make_url("/gzip")))
    assert feed.format is SyndicationContentFormat.ATOM


@pytest.mark.asyncio
async def test_load_async_http_error(aiohttp_feed_server):
    feed = GenericFeed()
    task = feed.load_async(str(aiohttp_feed_server.make_url("/error")))
    with pytest.raises(aiohttp.ClientResponseError):
        await task
    await asyncio.sleep(0)
    assert feed.load_state is LoadState.FAILED
    assert not feed.is_loading


def test_load_async_rejects_empty_url():
    with pytest.raises(ArgumentError):
        GenericFeed().load_async("")
