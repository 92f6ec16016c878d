from ._version import __version__
from .dates import (
    parse_rfc3339,
    parse_rfc822,
    to_rfc3339,
    to_rfc822,
    try_parse_rfc3339,
    try_parse_rfc822,
)
from .discovery import (
    DiscoverableEndpoint,
    HtmlAnchor,
    TrackbackEndpoint,
    extract_discoverable_endpoints,
    extract_html_attributes,
    extract_links,
    extract_pingback_endpoint,
    extract_trackback_endpoints,
)
from .encoding import (
    create_safe_navigator,
    decode_content_encoding,
    detect_encoding,
    escape_for_xml,
    sanitize_for_xml,
)
from .errors import ArgumentError, FeedFormatError
from .fetch import FRAMEWORK_USER_AGENT, conditional_get, fetch, fetch_content
from .formats import SyndicationContentFormat, Version
from .main import GenericFeed, LoadState, ResourceLoadedEvent, parse
from .metadata import ResourceMetadata, detect_format
from .options import DEFAULT_TIMEOUT, LoadSettings, RequestOptions, SaveSettings
from .registry import FormatParserRegistry, default_registry

__all__ = [
    "__version__",
    "ArgumentError",
    "DEFAULT_TIMEOUT",
    "DiscoverableEndpoint",
    "FRAMEWORK_USER_AGENT",
    "FeedFormatError",
    "FormatParserRegistry",
    "GenericFeed",
    "HtmlAnchor",
    "LoadSettings",
    "LoadState",
    "RequestOptions",
    "ResourceLoadedEvent",
    "ResourceMetadata",
    "SaveSettings",
    "SyndicationContentFormat",
    "TrackbackEndpoint",
    "Version",
    "conditional_get",
    "create_safe_navigator",
    "decode_content_encoding",
    "default_registry",
    "detect_encoding",
    "detect_format",
    "escape_for_xml",
    "extract_discoverable_endpoints",
    "extract_html_attributes",
    "extract_links",
    "extract_pingback_endpoint",
    "extract_trackback_endpoints",
    "fetch",
    "fetch_content",
    "parse",
    "parse_rfc3339",
    "parse_rfc822",
    "sanitize_for_xml",
    "to_rfc3339",
    "to_rfc822",
    "try_parse_rfc3339",
    "try_parse_rfc822",
]
