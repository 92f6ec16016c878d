"""Regex-based HTML auto-discovery.

Finds syndication feeds advertised with ``<link rel="alternate">``, pingback
servers advertised with ``<link rel="pingback">`` and trackback ping URLs
embedded as RDF fragments. No HTML parser is involved, so badly broken markup
still yields whatever links can be recognized.
"""

from __future__ import annotations

import functools
import html as _html_mod
import re
from dataclasses import dataclass, field
from typing import Optional, TYPE_CHECKING
from urllib.error import URLError
from urllib.parse import urljoin, urlparse
from xml.sax.saxutils import escape

import structlog
from lxml import etree

from .encoding import Source, decode_content_encoding, escape_for_xml, read_source
from .errors import ArgumentError, require, require_text
from .fetch import create_safe_navigator_from_url, fetch, fetch_content
from .formats import RDF_NAMESPACE, SyndicationContentFormat, format_by_media_type
from .options import RequestOptions, SaveSettings

if TYPE_CHECKING:
    from lxml.etree import _Element

logger = structlog.get_logger(__name__)

DC_NAMESPACE = "http://purl.org/dc/elements/1.1/"
TRACKBACK_NAMESPACE = "http://madskills.com/public/xml/rss/module/trackback/"

_RDF_DESCRIPTION_TAG = f"{{{RDF_NAMESPACE}}}Description"
_RDF_ABOUT_ATTR = f"{{{RDF_NAMESPACE}}}about"
_DC_IDENTIFIER_ATTR = f"{{{DC_NAMESPACE}}}identifier"
_DC_TITLE_ATTR = f"{{{DC_NAMESPACE}}}title"
_TRACKBACK_PING_ATTR = f"{{{TRACKBACK_NAMESPACE}}}ping"

_RE_LINK_TAG = re.compile(r"<link\b[^>]*>", re.IGNORECASE)
_RE_ANCHOR_TAG = re.compile(r"<a\b[^>]*>", re.IGNORECASE)
_RE_HTML_ATTRIBUTE = re.compile(
    r"""([\w:.-]+)\s*=\s*(?:(["'])(.*?)\2|([^\s"'>]+))""", re.DOTALL
)
_RE_RDF_FRAGMENT = re.compile(r"<rdf:RDF\b[^>]*>.*?</rdf:RDF>", re.IGNORECASE | re.DOTALL)

_FRAGMENT_PARSER = etree.XMLParser(resolve_entities=False, no_network=True)


def _read_html(source: Source) -> str:
    require(source, "source")
    data = read_source(source)
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    return data


def _is_absolute(url: str) -> bool:
    parsed = urlparse(url)
    return bool(parsed.scheme and parsed.netloc)


def extract_html_attributes(tag: str) -> dict[str, str]:
    """Attributes of one HTML tag keyed by upper-cased name; the first occurrence wins."""
    require(tag, "tag")
    attributes: dict[str, str] = {}
    for match in _RE_HTML_ATTRIBUTE.finditer(tag):
        name = match.group(1).upper()
        value = match.group(3) if match.group(2) else match.group(4)
        attributes.setdefault(name, (value or "").strip())
    return attributes


def _tags(html: str, pattern: re.Pattern[str]) -> list[dict[str, str]]:
    return [extract_html_attributes(m.group(0)) for m in pattern.finditer(html)]


@functools.total_ordering
@dataclass(frozen=True, eq=False)
class DiscoverableEndpoint:
    """A syndication feed advertised by an HTML page.

    ``source`` may be relative; resolving it against the page is up to the caller.
    """

    source: str
    content_type: str
    title: str = ""

    def __post_init__(self) -> None:
        require_text(self.source, "source")
        require_text(self.content_type, "content_type")

    def _key(self) -> tuple[str, str, str]:
        return (self.content_type.lower(), self.source.lower(), (self.title or "").lower())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DiscoverableEndpoint):
            return NotImplemented
        return self._key() == other._key()

    def __lt__(self, other: DiscoverableEndpoint) -> bool:
        if not isinstance(other, DiscoverableEndpoint):
            return NotImplemented
        return self._key() < other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    @property
    def content_format(self) -> SyndicationContentFormat:
        return format_by_media_type(self.content_type)

    def create_navigator(self, options: Optional[RequestOptions] = None) -> _Element:
        if not _is_absolute(self.source):
            raise ArgumentError(f"Cannot fetch relative endpoint {self.source!r}")
        return create_safe_navigator_from_url(self.source, options)

    def __str__(self) -> str:
        parts = [
            '<link rel="alternate"',
            f'type="{_html_mod.escape(self.content_type)}"',
        ]
        if self.title:
            parts.append(f'title="{_html_mod.escape(self.title)}"')
        parts.append(f'href="{_html_mod.escape(self.source)}" />')
        return " ".join(parts)


@dataclass(frozen=True)
class HtmlAnchor:
    href: str
    title: str = ""
    attributes: dict[str, str] = field(default_factory=dict, hash=False)


@functools.total_ordering
@dataclass(frozen=True, eq=False)
class TrackbackEndpoint:
    ping_url: str
    about: str = ""
    identifier: str = ""
    title: str = ""

    @classmethod
    def from_navigator(cls, navigator: _Element) -> Optional[TrackbackEndpoint]:
        """Read the first ``rdf:Description`` carrying a ``trackback:ping``."""
        require(navigator, "navigator")
        root = navigator.getroot() if hasattr(navigator, "getroot") else navigator
        for description in root.iter(_RDF_DESCRIPTION_TAG):
            ping_url = (description.get(_TRACKBACK_PING_ATTR) or "").strip()
            if not ping_url:
                continue
            return cls(
                ping_url=ping_url,
                about=(description.get(_RDF_ABOUT_ATTR) or "").strip(),
                identifier=(description.get(_DC_IDENTIFIER_ATTR) or "").strip(),
                title=(description.get(_DC_TITLE_ATTR) or "").strip(),
            )
        return None

    def _key(self) -> tuple[str, str, str, str]:
        return (
            self.about.lower(),
            self.identifier.lower(),
            self.ping_url.lower(),
            self.title.lower(),
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TrackbackEndpoint):
            return NotImplemented
        return self._key() == other._key()

    def __lt__(self, other: TrackbackEndpoint) -> bool:
        if not isinstance(other, TrackbackEndpoint):
            return NotImplemented
        return self._key() < other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def to_xml(self, settings: Optional[SaveSettings] = None) -> str:
        """Write the endpoint back out as an embeddable RDF fragment."""
        settings = settings or SaveSettings()

        def attr(value: str) -> str:
            return escape_for_xml(escape(value, {'"': "&quot;"}))

        attributes = [f'rdf:about="{attr(self.about)}"']
        if self.identifier:
            attributes.append(f'dc:identifier="{attr(self.identifier)}"')
        if self.title:
            attributes.append(f'dc:title="{attr(self.title)}"')
        attributes.append(f'trackback:ping="{attr(self.ping_url)}"')

        opening = (
            f'<rdf:RDF xmlns:rdf="{RDF_NAMESPACE}" '
            f'xmlns:dc="{DC_NAMESPACE}" '
            f'xmlns:trackback="{TRACKBACK_NAMESPACE}">'
        )
        description = "<rdf:Description " + " ".join(attributes) + " />"
        if settings.minimize_output_size:
            return opening + description + "</rdf:RDF>"
        return f"{opening}\n  {description}\n</rdf:RDF>"


def extract_links(source: Source) -> list[str]:
    """``href`` of every ``<link>`` tag, followed by every ``<a>`` tag."""
    html = _read_html(source)
    links = []
    for pattern in (_RE_LINK_TAG, _RE_ANCHOR_TAG):
        for attributes in _tags(html, pattern):
            href = attributes.get("HREF")
            if href:
                links.append(href)
    return links


def extract_discoverable_endpoints(source: Source) -> list[DiscoverableEndpoint]:
    html = _read_html(source)
    endpoints = []
    for attributes in _tags(html, _RE_LINK_TAG):
        href = attributes.get("HREF")
        content_type = attributes.get("TYPE")
        if not href or not content_type:
            continue
        if attributes.get("REL", "").lower() != "alternate":
            continue
        endpoints.append(DiscoverableEndpoint(href, content_type, attributes.get("TITLE", "")))
    return endpoints


def extract_pingback_endpoint(source: Source) -> Optional[HtmlAnchor]:
    """The first ``<link rel="pingback">`` with an absolute ``href``, if any."""
    html = _read_html(source)
    for attributes in _tags(html, _RE_LINK_TAG):
        href = attributes.get("HREF")
        if attributes.get("REL", "").lower() != "pingback" or not href:
            continue
        if not _is_absolute(href):
            continue
        extra = {"rel": attributes["REL"]}
        if "TYPE" in attributes:
            extra["type"] = attributes["TYPE"]
        return HtmlAnchor(href, attributes.get("TITLE", ""), extra)
    return None


def extract_trackback_endpoints(source: Source) -> list[TrackbackEndpoint]:
    html = _read_html(source)
    endpoints = []
    for match in _RE_RDF_FRAGMENT.finditer(html):
        fragment = match.group(0)
        try:
            root = etree.fromstring(fragment.encode("utf-8"), parser=_FRAGMENT_PARSER)
        except etree.XMLSyntaxError as e:
            logger.warning("trackback_fragment_skipped", error=str(e), offset=match.start())
            continue
        endpoint = TrackbackEndpoint.from_navigator(root)
        if endpoint is not None:
            endpoints.append(endpoint)
    return endpoints


def _decode_html(content: bytes, charset: Optional[str]) -> str:
    try:
        return content.decode(charset or "utf-8", errors="replace")
    except LookupError:
        return content.decode("utf-8", errors="replace")


def _fetch_html(url: str, options: Optional[RequestOptions]) -> str:
    result = fetch_content(url, options)
    return _decode_html(result.content, result.charset)


def locate_discoverable_endpoints(
    url: str, options: Optional[RequestOptions] = None
) -> list[DiscoverableEndpoint]:
    return extract_discoverable_endpoints(_fetch_html(url, options))


def locate_pingback_server(url: str, options: Optional[RequestOptions] = None) -> Optional[str]:
    """Pingback server for ``url``: the ``X-Pingback`` header, else the HTML link.

    The body is only read when the header is missing or not an absolute URL.
    """
    with fetch(url, options) as response:
        header = (response.headers.get("X-Pingback") or "").strip()
        if header and _is_absolute(header):
            return header
        if header:
            logger.debug("pingback_header_ignored", url=url, value=header)
        content = decode_content_encoding(response.read(), response.headers.get("Content-Encoding"))
        html = _decode_html(content, response.headers.get_content_charset())
    anchor = extract_pingback_endpoint(html)
    return anchor.href if anchor is not None else None


def is_pingback_enabled(url: str, options: Optional[RequestOptions] = None) -> bool:
    return locate_pingback_server(url, options) is not None


def locate_trackback_endpoints(
    url: str, options: Optional[RequestOptions] = None
) -> list[TrackbackEndpoint]:
    return extract_trackback_endpoints(_fetch_html(url, options))


def is_trackback_enabled(url: str, options: Optional[RequestOptions] = None) -> bool:
    return bool(locate_trackback_endpoints(url, options))


def source_references_target(
    source_url: str, target_url: str, options: Optional[RequestOptions] = None
) -> bool:
    """True when the page at ``source_url`` links to ``target_url``."""
    require_text(target_url, "target_url")
    html = _fetch_html(source_url, options)
    wanted = target_url.strip().lower()
    return any(urljoin(source_url, link).lower() == wanted for link in extract_links(html))


def uri_exists(url: str, options: Optional[RequestOptions] = None) -> bool:
    require_text(url, "url")
    try:
        with fetch(url, options) as response:
            return response.status < 400
    except (URLError, ValueError) as e:
        logger.debug("uri_not_reachable", url=url, error=str(e))
        return False
