from __future__ import annotations

from typing import Any, Callable, Iterator, Mapping, Optional, TYPE_CHECKING

from .errors import ArgumentError, require
from .formats import SyndicationContentFormat
from .generic import read_atom, read_opml, read_rss

if TYPE_CHECKING:
    from lxml.etree import _Element

    from .metadata import ResourceMetadata
    from .options import LoadSettings

FormatParser = Callable[["_Element", "ResourceMetadata", "Optional[LoadSettings]"], Any]


class FormatParserRegistry:
    """Maps each syndication format to the callable that reads it.

    A parser receives the document element, the detected metadata and the
    load settings, and returns whatever object model it builds.
    """

    def __init__(
        self, parsers: Optional[Mapping[SyndicationContentFormat, FormatParser]] = None
    ) -> None:
        self._parsers: dict[SyndicationContentFormat, FormatParser] = {}
        for fmt, parser in (parsers or {}).items():
            self.register(fmt, parser)

    def register(self, fmt: SyndicationContentFormat, parser: FormatParser) -> None:
        require(fmt, "fmt")
        require(parser, "parser")
        if fmt is SyndicationContentFormat.NONE:
            raise ArgumentError("Cannot register a parser for SyndicationContentFormat.NONE")
        if not callable(parser):
            raise ArgumentError(f"Parser for {fmt.name} is not callable")
        self._parsers[fmt] = parser

    def unregister(self, fmt: SyndicationContentFormat) -> Optional[FormatParser]:
        return self._parsers.pop(fmt, None)

    def get(self, fmt: SyndicationContentFormat) -> Optional[FormatParser]:
        return self._parsers.get(fmt)

    def __contains__(self, fmt: object) -> bool:
        return fmt in self._parsers

    def __iter__(self) -> Iterator[SyndicationContentFormat]:
        return iter(self._parsers)

    def __len__(self) -> int:
        return len(self._parsers)


def default_registry() -> FormatParserRegistry:
    """A new registry holding the built-in RSS, Atom and OPML readers."""
    return FormatParserRegistry(
        {
            SyndicationContentFormat.RSS: read_rss,
            SyndicationContentFormat.ATOM: read_atom,
            SyndicationContentFormat.OPML: read_opml,
        }
    )
