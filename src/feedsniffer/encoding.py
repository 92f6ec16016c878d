from __future__ import annotations

import base64
import codecs
import gzip
import html as _html_mod
import io
import re
import zlib
from typing import IO, Optional, TYPE_CHECKING, Union
from urllib.parse import unquote_plus

try:
    import brotli

    HAS_BROTLI = True
except ImportError:
    HAS_BROTLI = False

import structlog
from lxml import etree

from .errors import ArgumentError, FeedFormatError, require, require_text

if TYPE_CHECKING:
    from lxml.etree import _Element

logger = structlog.get_logger(__name__)

ACCEPT_ENCODING = "gzip, deflate, br" if HAS_BROTLI else "gzip, deflate"

Source = Union[str, bytes, IO[bytes], IO[str]]

DEFAULT_ENCODING = "utf-8"

# Only the first bytes are inspected for a declaration
_DECLARATION_PREVIEW = 1024

_RE_DECLARED_ENCODING = re.compile(
    r"""^<\?xml.+?encoding\s*=\s*(?:"([^"]*)"|'([^']*)'|([^\s?>"']+))""",
    re.IGNORECASE | re.DOTALL,
)
_RE_XML_DECL_ENCODING = re.compile(
    r'(<\?xml[^>]*encoding=["\'])([^"\']+)(["\'][^>]*\?>)', re.IGNORECASE
)
_RE_ILLEGAL_XML_CHARS = re.compile(
    "[^\t\n\r\u0020-\ud7ff\ue000-\ufffd\U00010000-\U0010ffff]"
)
_RE_UNSAFE_PATH_CHARS = re.compile(r'[\\/:*?"<>|]')

# Longest marks first so UTF-32 is not mistaken for UTF-16
_BOMS = (
    (codecs.BOM_UTF32_LE, "utf-32"),
    (codecs.BOM_UTF32_BE, "utf-32"),
    (codecs.BOM_UTF8, "utf-8"),
    (codecs.BOM_UTF16_LE, "utf-16"),
    (codecs.BOM_UTF16_BE, "utf-16"),
)

_STRICT_XML_PARSER = etree.XMLParser(
    ns_clean=True,
    recover=False,
    collect_ids=False,
    resolve_entities=False,
    no_network=True,
)


def detect_encoding(data: bytes | str) -> str:
    """Detect the character encoding of an XML payload.

    A byte-order mark wins. Otherwise the encoding named in a leading XML
    declaration is used, normalized through :func:`codecs.lookup`. Anything
    missing or unknown yields ``"utf-8"``.
    """
    require(data, "data")
    if isinstance(data, bytes):
        for bom, name in _BOMS:
            if data.startswith(bom):
                return name
        # UTF-16 without a mark still starts with "<?" in two-byte units
        if data.startswith(b"<\x00?\x00"):
            return "utf-16-le"
        if data.startswith(b"\x00<\x00?"):
            return "utf-16-be"
        preview = data[:_DECLARATION_PREVIEW].decode("latin-1")
    else:
        preview = data[:_DECLARATION_PREVIEW]

    match = _RE_DECLARED_ENCODING.match(preview)
    if match is None:
        return DEFAULT_ENCODING
    declared = next((group for group in match.groups() if group is not None), "")
    try:
        name = codecs.lookup(declared.strip()).name
    except LookupError:
        logger.debug("encoding_fallback", declared=declared, fallback=DEFAULT_ENCODING)
        return DEFAULT_ENCODING
    if name.startswith(("utf-16", "utf-32")) and isinstance(data, bytes) and b"\x00" not in data[:200]:
        # Declared as UTF-16 but transcoded to a single-byte encoding upstream
        logger.debug("encoding_fallback", declared=declared, fallback=DEFAULT_ENCODING)
        return DEFAULT_ENCODING
    return name


def sanitize_for_xml(text: str) -> str:
    """Remove code points that may not appear in an XML 1.0 document."""
    require(text, "text")
    return _RE_ILLEGAL_XML_CHARS.sub("", text)


def escape_for_xml(text: str) -> str:
    """Replace code points illegal in XML 1.0 with decimal character references."""
    require(text, "text")
    return _RE_ILLEGAL_XML_CHARS.sub(lambda m: f"&#{ord(m.group(0))};", text)


def decode_content_encoding(body: bytes, content_encoding: Optional[str]) -> bytes:
    """Undo a transport ``Content-Encoding``; unknown codings pass through untouched."""
    require(body, "body")
    if not content_encoding:
        return body
    coding = content_encoding.strip().lower()
    if "gzip" in coding:
        return gzip.decompress(body)
    if "deflate" in coding:
        try:
            return zlib.decompress(body, -zlib.MAX_WBITS)
        except zlib.error:
            # Some servers send zlib-wrapped data for "deflate"
            return zlib.decompress(body)
    if coding == "br":
        if not HAS_BROTLI:
            raise ValueError(
                "Received brotli-compressed response but 'brotli' is not installed"
            )
        return brotli.decompress(body)
    return body


def _ensure_utf8_xml_declaration(content: str) -> str:
    """Ensure the XML declaration's encoding matches the UTF-8 bytes we emit."""
    if not content.lstrip().startswith("<?xml"):
        return content
    return _RE_XML_DECL_ENCODING.sub(r"\1utf-8\3", content, count=1)


def read_source(source: Source) -> bytes | str:
    if isinstance(source, (bytes, str)):
        return source
    if hasattr(source, "read"):
        return source.read()
    raise ArgumentError(f"Unsupported source type: {type(source).__name__}")


def decode_payload(data: bytes | str, encoding: Optional[str] = None) -> str:
    """Decode raw bytes to text using ``encoding`` or the detected one."""
    if isinstance(data, str):
        return data.lstrip("\ufeff")
    if encoding:
        try:
            codecs.lookup(encoding)
        except LookupError:
            raise ArgumentError(f"Unknown encoding: {encoding!r}")
    else:
        encoding = detect_encoding(data)
    text = data.decode(encoding, errors="replace")
    return text.lstrip("\ufeff")


def create_safe_navigator(source: Source, encoding: Optional[str] = None) -> _Element:
    """Build an lxml tree from a payload of unknown encoding.

    The payload is decoded, stripped of characters XML forbids, re-declared
    as UTF-8 and parsed strictly. Returns the document element.
    """
    require(source, "source")
    text = decode_payload(read_source(source), encoding)
    if not text.strip():
        raise FeedFormatError("Failed to parse XML: received empty content")

    xml_bytes = _ensure_utf8_xml_declaration(sanitize_for_xml(text)).encode("utf-8")
    try:
        root = etree.fromstring(xml_bytes, parser=_STRICT_XML_PARSER)
    except etree.XMLSyntaxError as e:
        raise FeedFormatError(f"Failed to parse XML content: {e}", text[:200])
    if root is None:
        raise FeedFormatError("Failed to parse XML content", text[:200])
    return root


def decode_base64(value: str) -> io.BytesIO:
    require_text(value, "value")
    return io.BytesIO(base64.b64decode(value))


def decode_html_escaped(value: str) -> str:
    """Undo HTML entity escaping and then URL escaping."""
    require(value, "value")
    return unquote_plus(_html_mod.unescape(value))


def safe_directory_name(name: str) -> str:
    """Strip characters that are not allowed in directory names."""
    require_text(name, "name")
    return _RE_UNSAFE_PATH_CHARS.sub("", name)
