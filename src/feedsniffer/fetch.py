from __future__ import annotations

import codecs
import datetime
from email.message import Message
from typing import NamedTuple, Optional, TYPE_CHECKING
from urllib.error import HTTPError
from urllib.request import Request

import structlog

from ._version import __version__
from .dates import to_rfc822
from .encoding import ACCEPT_ENCODING, create_safe_navigator, decode_content_encoding
from .errors import require_text
from .options import DEFAULT_TIMEOUT, RequestOptions

if TYPE_CHECKING:
    from http.client import HTTPResponse

    from lxml.etree import _Element

logger = structlog.get_logger(__name__)

FRAMEWORK_USER_AGENT = f"feedsniffer/{__version__}"

_URL_SCHEMES = ("http://", "https://", "ftp://")


class FetchResult(NamedTuple):
    url: str
    status: Optional[int]
    headers: Message
    content: bytes

    @property
    def content_type(self) -> Optional[str]:
        return self.headers.get("Content-Type")

    @property
    def charset(self) -> Optional[str]:
        return self.headers.get_content_charset()


def is_url(source: object) -> bool:
    return isinstance(source, str) and source.lstrip().lower().startswith(_URL_SCHEMES)


def create_request(url: str, options: Optional[RequestOptions] = None) -> Request:
    """Build a GET request, applying only the options the caller set."""
    require_text(url, "url")
    request = Request(url, method="GET", headers={"Accept-Encoding": ACCEPT_ENCODING})
    if options is not None:
        options.apply(request)
    if not request.has_header("User-agent"):
        request.add_header("User-Agent", FRAMEWORK_USER_AGENT)
    return request


def _open(request: Request, options: Optional[RequestOptions]) -> HTTPResponse:
    options = options or RequestOptions()
    opener = options.build_opener(request.full_url)
    timeout = options.timeout if options.timeout is not None else DEFAULT_TIMEOUT
    return opener.open(request, timeout=timeout)


def fetch(url: str, options: Optional[RequestOptions] = None) -> HTTPResponse:
    """Open ``url`` and return the live response; the caller closes it."""
    return _open(create_request(url, options), options)


def _read_response(url: str, response: HTTPResponse) -> FetchResult:
    content: bytes = response.read()
    content = decode_content_encoding(content, response.headers.get("Content-Encoding"))
    status = getattr(response, "status", None)
    logger.info("feed_fetched", url=url, status=status, size=len(content))
    return FetchResult(response.geturl() or url, status, response.headers, content)


def fetch_content(url: str, options: Optional[RequestOptions] = None) -> FetchResult:
    """Fetch ``url`` and return its body with any transport compression removed."""
    with fetch(url, options) as response:
        return _read_response(url, response)


def conditional_get(
    url: str,
    last_modified: Optional[datetime.datetime] = None,
    entity_tag: Optional[str] = None,
    options: Optional[RequestOptions] = None,
) -> Optional[HTTPResponse]:
    """Fetch ``url`` only if it changed since ``last_modified``/``entity_tag``.

    Returns None when the server answers 304 Not Modified. Every other
    failure is raised unchanged.
    """
    request = create_request(url, options)
    if last_modified is not None:
        request.add_header("If-Modified-Since", to_rfc822(last_modified))
    if entity_tag:
        request.add_header("If-None-Match", entity_tag)
    try:
        return _open(request, options)
    except HTTPError as e:
        if e.code != 304:
            raise
        e.close()
        logger.debug("resource_not_modified", url=url, entity_tag=entity_tag)
        return None


def try_conditional_get(
    url: str,
    last_modified: Optional[datetime.datetime] = None,
    entity_tag: Optional[str] = None,
    options: Optional[RequestOptions] = None,
) -> tuple[bool, Optional[HTTPResponse]]:
    response = conditional_get(url, last_modified, entity_tag, options)
    return response is not None, response


def decode_with_charset(content: bytes, charset: Optional[str]) -> str | bytes:
    """Decode using the HTTP charset, or return the bytes for in-document detection."""
    if not charset:
        return content
    try:
        codecs.lookup(charset)
        return content.decode(charset)
    except (UnicodeDecodeError, LookupError):
        # Server lied about charset; let the declaration/BOM decide.
        return content


def create_safe_navigator_from_url(
    url: str,
    options: Optional[RequestOptions] = None,
    encoding: Optional[str] = None,
) -> _Element:
    result = fetch_content(url, options)
    if encoding:
        return create_safe_navigator(result.content, encoding)
    return create_safe_navigator(decode_with_charset(result.content, result.charset))
