"""Lightweight built-in readers for RSS, Atom and OPML.

They extract only the format-agnostic fields ``GenericFeed`` exposes. Full
per-format object models are expected to be registered by the caller.
"""

from __future__ import annotations

import datetime
from typing import Any, Optional, TYPE_CHECKING

from .dates import try_parse_rfc3339, try_parse_rfc822
from .formats import ATOM_03_NAMESPACE, ATOM_NAMESPACE, RSS_09_NAMESPACE, RSS_10_NAMESPACE

if TYPE_CHECKING:
    from lxml.etree import _Element

    from .metadata import ResourceMetadata
    from .options import LoadSettings

_XML_LANG_ATTR = "{http://www.w3.org/XML/1998/namespace}lang"
_RDF_RESOURCE_ATTR = "{http://www.w3.org/1999/02/22-rdf-syntax-ns#}resource"
_DC_NS = "{http://purl.org/dc/elements/1.1/}"
_DC_SUBJECT_TAG = _DC_NS + "subject"
_DC_DATE_TAG = _DC_NS + "date"
_DC_LANGUAGE_TAG = _DC_NS + "language"
_TAXO_TOPIC_TAG = "{http://purl.org/rss/1.0/modules/taxonomy/}topic"
_CONTENT_ENCODED_TAG = "{http://purl.org/rss/1.0/modules/content/}encoded"


class FeedDict(dict):
    """A dictionary that allows access to its keys as attributes."""

    def __getattr__(self, name: str) -> Any:
        try:
            return self[name]
        except KeyError:
            raise AttributeError(f"'FeedDict' object has no attribute '{name}'")

    def __setattr__(self, name: str, value: Any) -> None:
        self[name] = value


def _text(element: Optional[_Element], path: str) -> Optional[str]:
    if element is None:
        return None
    found = element.find(path)
    if found is None or not found.text:
        return None
    return found.text.strip() or None


def _first_text(element: _Element, *paths: str) -> Optional[str]:
    for path in paths:
        value = _text(element, path)
        if value:
            return value
    return None


def _parse_date(value: Optional[str], rfc822_first: bool) -> Optional[datetime.datetime]:
    """Parse a feed date, trying the format's native syntax first."""
    if not value:
        return None
    parsers = (try_parse_rfc822, try_parse_rfc3339) if rfc822_first else (try_parse_rfc3339, try_parse_rfc822)
    for parser in parsers:
        parsed = parser(value)
        if parsed is not None:
            return parsed
    return None


def _limit(items: list[_Element], settings: Optional[LoadSettings]) -> list[_Element]:
    if settings is not None and settings.retrieval_limit > 0:
        return items[: settings.retrieval_limit]
    return items


def _tag(term: Optional[str], scheme: Optional[str] = None, label: Optional[str] = None):
    return FeedDict(term=term, scheme=scheme, label=label)


def _rss_tags(element: _Element, namespace: str = "") -> list[FeedDict]:
    tags = []
    for cat in element.findall(f"{namespace}category"):
        term = cat.text.strip() if cat.text else None
        if term:
            tags.append(_tag(term, cat.get("domain")))
    for subject in element.findall(_DC_SUBJECT_TAG):
        term = subject.text.strip() if subject.text else None
        if term:
            tags.append(_tag(term))
    for topic in element.findall(_TAXO_TOPIC_TAG):
        resource = topic.get(_RDF_RESOURCE_ATTR)
        term = topic.text.strip() if topic.text else resource
        if term:
            tags.append(_tag(term, resource))
    return tags


def _atom_tags(element: _Element, ns: str) -> list[FeedDict]:
    tags = []
    for cat in element.findall(f"{ns}category"):
        term = cat.get("term")
        if term:
            tags.append(_tag(term, cat.get("scheme"), cat.get("label")))
    return tags


def read_rss(
    navigator: _Element, metadata: ResourceMetadata, settings: Optional[LoadSettings] = None
) -> FeedDict:
    """Read RSS 2.0 (``rss`` root) or RSS 0.9/1.0 (``rdf:RDF`` root)."""
    root = metadata.resource if metadata.resource is not None else navigator
    if not root.tag.startswith("{"):
        ns = ""
        channel = root.find("channel")
        if channel is None:
            raise ValueError("Invalid RSS feed: missing channel element")
        items = channel.findall("item")
    else:
        rss_ns = RSS_10_NAMESPACE if RSS_10_NAMESPACE in root.nsmap.values() else RSS_09_NAMESPACE
        ns = f"{{{rss_ns}}}"
        channel = root.find(f"{ns}channel")
        if channel is None:
            raise ValueError("Invalid RDF feed: missing channel element")
        items = root.findall(f"{ns}item") or channel.findall(f"{ns}item")

    feed = FeedDict(
        title=_text(channel, f"{ns}title"),
        description=_text(channel, f"{ns}description"),
        link=_text(channel, f"{ns}link"),
        language=_first_text(channel, f"{ns}language", _DC_LANGUAGE_TAG),
        updated=_parse_date(
            _first_text(channel, "lastBuildDate", "pubDate", _DC_DATE_TAG), rfc822_first=not ns
        ),
        tags=_rss_tags(channel, ns),
    )

    entries = []
    for item in _limit(items, settings):
        link = _text(item, f"{ns}link")
        if link is None:
            guid = item.find("guid")
            if guid is not None and guid.text and guid.get("isPermaLink", "true") == "true":
                link = guid.text.strip()
        entries.append(
            FeedDict(
                title=_text(item, f"{ns}title"),
                summary=_first_text(item, f"{ns}description", _CONTENT_ENCODED_TAG),
                link=link,
                published=_parse_date(
                    _first_text(item, "pubDate", _DC_DATE_TAG), rfc822_first=not ns
                ),
                tags=_rss_tags(item, ns),
            )
        )
    return FeedDict(feed=feed, entries=entries)


def _atom_link(element: _Element, ns: str) -> Optional[str]:
    fallback = None
    for link in element.findall(f"{ns}link"):
        href = link.get("href")
        if not href:
            continue
        rel = link.get("rel")
        if rel is None or rel == "alternate":
            return href.strip()
        if fallback is None:
            fallback = href.strip()
    return fallback


def read_atom(
    navigator: _Element, metadata: ResourceMetadata, settings: Optional[LoadSettings] = None
) -> FeedDict:
    """Read an Atom 1.0 or 0.3 feed, or a standalone Atom entry."""
    root = metadata.resource if metadata.resource is not None else navigator
    atom_ns = ATOM_03_NAMESPACE if root.tag.startswith(f"{{{ATOM_03_NAMESPACE}}}") else ATOM_NAMESPACE
    ns = f"{{{atom_ns}}}"
    is_atom_03 = atom_ns == ATOM_03_NAMESPACE

    if root.tag == f"{ns}entry":
        items = [root]
    else:
        items = root.findall(f"{ns}entry")

    feed = FeedDict(
        title=_text(root, f"{ns}title"),
        description=_text(root, f"{ns}tagline" if is_atom_03 else f"{ns}subtitle"),
        link=_atom_link(root, ns),
        language=root.get(_XML_LANG_ATTR),
        updated=_parse_date(
            _text(root, f"{ns}modified" if is_atom_03 else f"{ns}updated"), rfc822_first=False
        ),
        tags=_atom_tags(root, ns),
    )

    published_paths = (f"{ns}issued", f"{ns}modified") if is_atom_03 else (f"{ns}published", f"{ns}updated")
    entries = []
    for entry in _limit(items, settings):
        entries.append(
            FeedDict(
                title=_text(entry, f"{ns}title"),
                summary=_first_text(entry, f"{ns}summary", f"{ns}content"),
                link=_atom_link(entry, ns),
                published=_parse_date(_first_text(entry, *published_paths), rfc822_first=False),
                tags=_atom_tags(entry, ns),
            )
        )
    return FeedDict(feed=feed, entries=entries)


def read_opml(
    navigator: _Element, metadata: ResourceMetadata, settings: Optional[LoadSettings] = None
) -> FeedDict:
    """Read an OPML outline; every outline with a feed or page URL becomes an entry."""
    root = metadata.resource if metadata.resource is not None else navigator
    head = root.find("head")
    feed = FeedDict(
        title=_text(head, "title"),
        description=None,
        link=_text(head, "docs"),
        language=root.get(_XML_LANG_ATTR),
        updated=_parse_date(
            _first_text(head, "dateModified", "dateCreated") if head is not None else None,
            rfc822_first=True,
        ),
        tags=[],
    )

    outlines = [
        outline
        for outline in root.iterfind("body//outline")
        if outline.get("xmlUrl") or outline.get("htmlUrl") or outline.get("url")
    ]
    entries = []
    for outline in _limit(outlines, settings):
        categories = outline.get("category") or ""
        entries.append(
            FeedDict(
                title=outline.get("title") or outline.get("text"),
                summary=outline.get("description"),
                link=outline.get("xmlUrl") or outline.get("htmlUrl") or outline.get("url"),
                published=_parse_date(outline.get("created"), rfc822_first=True),
                tags=[_tag(term.strip()) for term in categories.split(",") if term.strip()],
            )
        )
    return FeedDict(feed=feed, entries=entries)
