from __future__ import annotations

import enum
from typing import NamedTuple, Optional, TYPE_CHECKING

from .errors import require, require_text

if TYPE_CHECKING:
    from lxml.etree import _Element, _ElementTree


class Version(NamedTuple):
    major: int
    minor: int

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}"


class SyndicationContentFormat(enum.Enum):
    NONE = "none"
    APML = "apml"
    ATOM = "atom"
    ATOM_CATEGORY_DOCUMENT = "atomcat"
    ATOM_SERVICE_DOCUMENT = "atomsvc"
    BLOGML = "blogml"
    MICROSUMMARY_GENERATOR = "microsummary"
    NEWSML = "newsml"
    OPENSEARCH_DESCRIPTION = "opensearch"
    OPML = "opml"
    RSD = "rsd"
    RSS = "rss"


class FormatInfo(NamedTuple):
    display_name: str
    root_name: str
    media_type: str
    namespace: Optional[str]
    default_version: Version


APML_NAMESPACE = "http://www.apml.org/apml-0.6"
ATOM_NAMESPACE = "http://www.w3.org/2005/Atom"
ATOM_03_NAMESPACE = "http://purl.org/atom/ns#"
ATOM_PUBLISHING_NAMESPACE = "http://www.w3.org/2007/app"
BLOGML_NAMESPACE = "http://www.blogml.com/2006/09/BlogML"
MICROSUMMARY_NAMESPACE = "http://www.mozilla.org/microsummaries/0.1"
OPENSEARCH_NAMESPACE = "http://a9.com/-/spec/opensearch/1.1/"
RSD_NAMESPACE = "http://archipelago.phrasewise.com/rsd"
RDF_NAMESPACE = "http://www.w3.org/1999/02/22-rdf-syntax-ns#"
RSS_09_NAMESPACE = "http://my.netscape.com/rdf/simple/0.9/"
RSS_10_NAMESPACE = "http://purl.org/rss/1.0/"

_FORMAT_TABLE: dict[SyndicationContentFormat, FormatInfo] = {
    SyndicationContentFormat.APML: FormatInfo(
        "APML", "APML", "application/apml+xml", APML_NAMESPACE, Version(0, 6)
    ),
    SyndicationContentFormat.ATOM: FormatInfo(
        "Atom", "feed", "application/atom+xml", ATOM_NAMESPACE, Version(1, 0)
    ),
    SyndicationContentFormat.ATOM_CATEGORY_DOCUMENT: FormatInfo(
        "Atom Category Document",
        "categories",
        "application/atomcat+xml",
        ATOM_PUBLISHING_NAMESPACE,
        Version(1, 0),
    ),
    SyndicationContentFormat.ATOM_SERVICE_DOCUMENT: FormatInfo(
        "Atom Service Document",
        "service",
        "application/atomsvc+xml",
        ATOM_PUBLISHING_NAMESPACE,
        Version(1, 0),
    ),
    SyndicationContentFormat.BLOGML: FormatInfo(
        "BlogML", "blog", "application/blogml+xml", BLOGML_NAMESPACE, Version(2, 0)
    ),
    SyndicationContentFormat.MICROSUMMARY_GENERATOR: FormatInfo(
        "Microsummary Generator",
        "generator",
        "application/x.microsummary+xml",
        MICROSUMMARY_NAMESPACE,
        Version(0, 1),
    ),
    SyndicationContentFormat.NEWSML: FormatInfo(
        "NewsML", "NewsML", "application/vnd.iptc.newsml+xml", None, Version(2, 0)
    ),
    SyndicationContentFormat.OPENSEARCH_DESCRIPTION: FormatInfo(
        "OpenSearch Description",
        "OpenSearchDescription",
        "application/opensearchdescription+xml",
        OPENSEARCH_NAMESPACE,
        Version(1, 1),
    ),
    SyndicationContentFormat.OPML: FormatInfo(
        "OPML", "opml", "text/x-opml", None, Version(2, 0)
    ),
    SyndicationContentFormat.RSD: FormatInfo(
        "RSD", "rsd", "application/rsd+xml", RSD_NAMESPACE, Version(1, 0)
    ),
    SyndicationContentFormat.RSS: FormatInfo(
        "RSS", "rss", "application/rss+xml", None, Version(2, 0)
    ),
}


def format_info(fmt: SyndicationContentFormat) -> Optional[FormatInfo]:
    """Return the table entry for a format, or None for ``NONE``."""
    return _FORMAT_TABLE.get(fmt)


def format_by_name(name: str) -> SyndicationContentFormat:
    """Look up a format by its root element (alternate) name, case-insensitively."""
    require_text(name, "name")
    wanted = name.strip().lower()
    for fmt, info in _FORMAT_TABLE.items():
        if info.root_name.lower() == wanted:
            return fmt
    return SyndicationContentFormat.NONE


def format_by_media_type(content_type: str) -> SyndicationContentFormat:
    """Map a MIME type (parameters ignored) to a format."""
    if not content_type:
        return SyndicationContentFormat.NONE
    wanted = content_type.split(";", 1)[0].strip().lower()
    for fmt, info in _FORMAT_TABLE.items():
        if info.media_type == wanted:
            return fmt
    return SyndicationContentFormat.NONE


def format_by_root_element(navigator: _Element | _ElementTree) -> SyndicationContentFormat:
    """Guess the format from the local name of the document element alone.

    Unlike :func:`feedsniffer.metadata.detect_format` no namespace or version
    checks are made, so this is only a cheap first approximation.
    """
    require(navigator, "navigator")
    root = navigator.getroot() if hasattr(navigator, "getroot") else navigator
    tag = root.tag
    if not isinstance(tag, str):
        return SyndicationContentFormat.NONE
    local_name = tag.rsplit("}", 1)[-1]
    return format_by_name(local_name)
