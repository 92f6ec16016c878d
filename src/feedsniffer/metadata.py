from __future__ import annotations

import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Mapping, Optional, TYPE_CHECKING

import structlog
from lxml import etree

from .errors import require
from .formats import (
    APML_NAMESPACE,
    ATOM_03_NAMESPACE,
    ATOM_NAMESPACE,
    ATOM_PUBLISHING_NAMESPACE,
    BLOGML_NAMESPACE,
    MICROSUMMARY_NAMESPACE,
    OPENSEARCH_NAMESPACE,
    RDF_NAMESPACE,
    RSD_NAMESPACE,
    RSS_09_NAMESPACE,
    RSS_10_NAMESPACE,
    SyndicationContentFormat,
    Version,
    format_info,
)

if TYPE_CHECKING:
    from lxml.etree import _Element, _ElementTree

logger = structlog.get_logger(__name__)

_RE_VERSION = re.compile(r"^\s*(\d+)\.(\d+)(?:\.\d+){0,2}\s*$")
_XML_NAMESPACE = "http://www.w3.org/XML/1998/namespace"


def parse_version(value: Optional[str]) -> Optional[Version]:
    """Parse ``major.minor[.build[.revision]]``; anything else yields None."""
    if not value:
        return None
    match = _RE_VERSION.match(value)
    if match is None:
        return None
    return Version(int(match.group(1)), int(match.group(2)))


@dataclass(frozen=True, eq=False)
class ResourceMetadata:
    """What a syndication document is: format, version and declared namespaces.

    ``resource`` is the element the matching format parser should start from.
    It belongs to the parsed tree and must not be used after that tree is gone.
    """

    format: SyndicationContentFormat = SyndicationContentFormat.NONE
    version: Optional[Version] = None
    namespaces: Mapping[str, str] = field(default_factory=dict)
    resource: Optional[_Element] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "namespaces", MappingProxyType(dict(self.namespaces)))

    @classmethod
    def from_navigator(cls, navigator: _Element | _ElementTree) -> ResourceMetadata:
        return detect_format(navigator)

    def _resource_text(self) -> str:
        if self.resource is None:
            return ""
        return etree.tostring(self.resource, encoding="unicode").lower()

    def _key(self) -> tuple[Any, ...]:
        return (
            self.format.value,
            self.version or Version(0, 0),
            sorted(self.namespaces.items()),
            self._resource_text(),
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ResourceMetadata):
            return NotImplemented
        return self._key() == other._key()

    def __lt__(self, other: ResourceMetadata) -> bool:
        if not isinstance(other, ResourceMetadata):
            return NotImplemented
        return self._key() < other._key()

    def __hash__(self) -> int:
        return hash((self.format, self.version))


def _collect_namespaces(root: _Element) -> dict[str, str]:
    namespaces: dict[str, str] = {}
    for prefix, uri in root.nsmap.items():
        if uri == _XML_NAMESPACE:
            continue
        namespaces[prefix or ""] = uri
    return namespaces


def _split_tag(element: _Element) -> tuple[Optional[str], str]:
    tag = element.tag
    if not isinstance(tag, str):
        return None, ""
    if tag.startswith("{"):
        uri, local = tag[1:].split("}", 1)
        return uri, local
    return None, tag


class _RootInfo:
    """Root element of the document, with helpers for the format checks."""

    def __init__(self, root: _Element, namespaces: dict[str, str]):
        self.root = root
        self.namespaces = namespaces
        self.uri, self.local_name = _split_tag(root)

    def named(self, *names: str) -> bool:
        return self.local_name in names

    def in_namespace(self, *uris: str) -> bool:
        """True when the root is bound to, or the document declares, one of ``uris``."""
        if self.uri in uris:
            return True
        return any(uri in uris for uri in self.namespaces.values())

    def declared_version(self) -> Optional[Version]:
        return parse_version(self.root.get("version"))

    def has_version_attribute(self) -> bool:
        return self.root.get("version") is not None


def _result(root_info: _RootInfo, fmt: SyndicationContentFormat, default: Optional[Version] = None):
    return fmt, root_info.declared_version() or default or format_info(fmt).default_version


def _detect_apml(root_info: _RootInfo):
    if root_info.named("APML") and root_info.in_namespace(APML_NAMESPACE):
        return _result(root_info, SyndicationContentFormat.APML)
    return None


def _detect_atom(root_info: _RootInfo):
    if not root_info.named("feed", "entry"):
        return None
    if root_info.in_namespace(ATOM_NAMESPACE):
        return _result(root_info, SyndicationContentFormat.ATOM, Version(1, 0))
    if root_info.in_namespace(ATOM_03_NAMESPACE):
        return _result(root_info, SyndicationContentFormat.ATOM, Version(0, 3))
    return None


def _detect_atom_categories(root_info: _RootInfo):
    if root_info.named("categories") and root_info.in_namespace(ATOM_PUBLISHING_NAMESPACE):
        return _result(root_info, SyndicationContentFormat.ATOM_CATEGORY_DOCUMENT)
    return None


def _detect_atom_service(root_info: _RootInfo):
    if root_info.named("service") and root_info.in_namespace(ATOM_PUBLISHING_NAMESPACE):
        return _result(root_info, SyndicationContentFormat.ATOM_SERVICE_DOCUMENT)
    return None


def _detect_blogml(root_info: _RootInfo):
    if root_info.named("blog") and root_info.in_namespace(BLOGML_NAMESPACE):
        return _result(root_info, SyndicationContentFormat.BLOGML)
    return None


def _detect_microsummary(root_info: _RootInfo):
    if root_info.named("generator") and root_info.in_namespace(MICROSUMMARY_NAMESPACE):
        return _result(root_info, SyndicationContentFormat.MICROSUMMARY_GENERATOR)
    return None


def _detect_newsml(root_info: _RootInfo):
    if root_info.named("NewsML") and root_info.uri is None:
        return _result(root_info, SyndicationContentFormat.NEWSML)
    return None


def _detect_opensearch(root_info: _RootInfo):
    if root_info.named("OpenSearchDescription") and root_info.in_namespace(OPENSEARCH_NAMESPACE):
        return _result(root_info, SyndicationContentFormat.OPENSEARCH_DESCRIPTION)
    return None


def _detect_opml(root_info: _RootInfo):
    if root_info.named("opml") and root_info.uri is None:
        return _result(root_info, SyndicationContentFormat.OPML)
    return None


def _detect_rsd(root_info: _RootInfo):
    if not root_info.named("rsd"):
        return None
    if root_info.in_namespace(RSD_NAMESPACE):
        return _result(root_info, SyndicationContentFormat.RSD)
    # Many publishers omit the namespace; an explicit version is enough to trust it
    if root_info.uri is None and root_info.has_version_attribute():
        return _result(root_info, SyndicationContentFormat.RSD)
    return None


def _detect_rss(root_info: _RootInfo):
    if root_info.named("rss") and root_info.uri is None:
        return _result(root_info, SyndicationContentFormat.RSS)
    if root_info.named("RDF") and root_info.in_namespace(RDF_NAMESPACE):
        # The channel namespace decides, whatever the version attribute says
        if root_info.in_namespace(RSS_10_NAMESPACE):
            return SyndicationContentFormat.RSS, Version(1, 0)
        if root_info.in_namespace(RSS_09_NAMESPACE):
            return SyndicationContentFormat.RSS, Version(0, 9)
    return None


_DETECTORS: tuple[Callable[[_RootInfo], Any], ...] = (
    _detect_apml,
    _detect_atom,
    _detect_atom_categories,
    _detect_atom_service,
    _detect_blogml,
    _detect_microsummary,
    _detect_newsml,
    _detect_opensearch,
    _detect_opml,
    _detect_rsd,
    _detect_rss,
)


def detect_format(navigator: _Element | _ElementTree) -> ResourceMetadata:
    """Work out the syndication format and version of a parsed document.

    Detectors run in a fixed order and the first match wins. A document that no
    root_info recognizes yields ``SyndicationContentFormat.NONE`` with no version
    and no resource; that is a normal result, not an error.
    """
    require(navigator, "navigator")
    root = navigator.getroot() if hasattr(navigator, "getroot") else navigator
    namespaces = _collect_namespaces(root)
    root_info = _RootInfo(root, namespaces)

    for check in _DETECTORS:
        found = check(root_info)
        if found is not None:
            fmt, version = found
            return ResourceMetadata(fmt, version, namespaces, root)

    logger.debug("format_not_detected", root=root.tag if isinstance(root.tag, str) else None)
    return ResourceMetadata(namespaces=namespaces)
