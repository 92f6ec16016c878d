from __future__ import annotations

import asyncio
import datetime
import enum
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional, TYPE_CHECKING

import aiohttp
import structlog
from lxml import etree

from .encoding import ACCEPT_ENCODING, Source, create_safe_navigator, decode_content_encoding
from .errors import require, require_text
from .fetch import (
    FRAMEWORK_USER_AGENT,
    create_safe_navigator_from_url,
    decode_with_charset,
    is_url,
)
from .formats import SyndicationContentFormat
from .metadata import detect_format
from .options import LoadSettings, RequestOptions
from .registry import FormatParserRegistry, default_registry

if TYPE_CHECKING:
    from lxml.etree import _Element

logger = structlog.get_logger(__name__)


class LoadState(enum.Enum):
    IDLE = "idle"
    LOADING = "loading"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    TIMED_OUT = "timed_out"
    FAILED = "failed"


@dataclass(frozen=True)
class ResourceLoadedEvent:
    data: _Element
    source: Any
    options: Optional[RequestOptions] = None
    user_token: Any = None


LoadedCallback = Callable[["GenericFeed", ResourceLoadedEvent], None]


@dataclass
class LoadSession:
    """State of one asynchronous load attempt on a ``GenericFeed``."""

    in_flight: bool = False
    cancelled: bool = False
    task: Optional[asyncio.Task] = None
    state: LoadState = LoadState.IDLE


@dataclass
class GenericCategory:
    term: str
    scheme: Optional[str] = None
    label: Optional[str] = None


@dataclass
class GenericItem:
    title: Optional[str] = None
    summary: Optional[str] = None
    link: Optional[str] = None
    published_on: Optional[datetime.datetime] = None
    categories: list[GenericCategory] = field(default_factory=list)


def _get(obj: Any, name: str) -> Any:
    if obj is None:
        return None
    if isinstance(obj, Mapping):
        return obj.get(name)
    return getattr(obj, name, None)


def _categories(tags: Any) -> list[GenericCategory]:
    return [
        GenericCategory(_get(tag, "term"), _get(tag, "scheme"), _get(tag, "label"))
        for tag in tags or ()
        if _get(tag, "term")
    ]


async def _fetch_async(
    url: str, options: Optional[RequestOptions]
) -> tuple[bytes, Optional[str]]:
    kwargs = options.aiohttp_kwargs() if options is not None else {}
    headers = {"Accept-Encoding": ACCEPT_ENCODING, "User-Agent": FRAMEWORK_USER_AGENT}
    headers.update(kwargs.pop("headers", {}))
    # Decompression is done by us so that every Content-Encoding goes through one path
    async with aiohttp.ClientSession(auto_decompress=False) as http:
        async with http.get(url, headers=headers, **kwargs) as response:
            response.raise_for_status()
            body = await response.read()
            body = decode_content_encoding(body, response.headers.get("Content-Encoding"))
            logger.info("feed_fetched", url=url, status=response.status, size=len(body))
            return body, response.charset


class GenericFeed:
    """Format-agnostic view of a syndication feed.

    The document is sniffed with :func:`feedsniffer.metadata.detect_format` and
    handed to whatever parser the registry holds for that format. The parser's
    result is kept in ``resource``; the common fields are copied out of it.
    """

    def __init__(self, registry: Optional[FormatParserRegistry] = None) -> None:
        self.registry = registry if registry is not None else default_registry()
        self.loaded: list[LoadedCallback] = []
        self._session = LoadSession()
        self._reset()

    def _reset(self) -> None:
        self.format = SyndicationContentFormat.NONE
        self.resource: Any = None
        self.title: Optional[str] = None
        self.description: Optional[str] = None
        self.language: Optional[str] = None
        self.last_updated_on: Optional[datetime.datetime] = None
        self.categories: list[GenericCategory] = []
        self.items: list[GenericItem] = []

    @property
    def load_state(self) -> LoadState:
        return self._session.state

    @property
    def is_loading(self) -> bool:
        return self._session.in_flight

    @classmethod
    def create(
        cls,
        source: Source | _Element,
        options: Optional[RequestOptions] = None,
        settings: Optional[LoadSettings] = None,
        registry: Optional[FormatParserRegistry] = None,
    ) -> GenericFeed:
        feed = cls(registry)
        feed.load(source, options, settings)
        return feed

    def load(
        self,
        source: Source | _Element,
        options: Optional[RequestOptions] = None,
        settings: Optional[LoadSettings] = None,
    ) -> GenericFeed:
        """Load from a URL, raw XML text or bytes, a file object or a parsed element."""
        require(source, "source")
        settings = settings or LoadSettings()
        if isinstance(source, etree._Element):
            navigator = source
        elif is_url(source):
            navigator = create_safe_navigator_from_url(
                source.strip(), options, settings.forced_encoding
            )
        else:
            navigator = create_safe_navigator(source, settings.forced_encoding)
        self._load_navigator(navigator, settings, ResourceLoadedEvent(navigator, source, options))
        return self

    def _load_navigator(
        self, navigator: _Element, settings: LoadSettings, event: ResourceLoadedEvent
    ) -> None:
        metadata = detect_format(navigator)
        self._reset()
        self.format = metadata.format

        parser = self.registry.get(metadata.format)
        if parser is None:
            logger.debug("no_parser_registered", format=metadata.format.name)
        else:
            self.resource = parser(navigator, metadata, settings)
            self._fill(self.resource)

        logger.info(
            "feed_loaded",
            format=metadata.format.name,
            version=str(metadata.version) if metadata.version else None,
            items=len(self.items),
        )
        for callback in list(self.loaded):
            callback(self, event)

    def _fill(self, resource: Any) -> None:
        info = _get(resource, "feed")
        self.title = _get(info, "title")
        self.description = _get(info, "description")
        self.language = _get(info, "language")
        self.last_updated_on = _get(info, "updated")
        self.categories = _categories(_get(info, "tags"))
        self.items = [
            GenericItem(
                title=_get(entry, "title"),
                summary=_get(entry, "summary"),
                link=_get(entry, "link"),
                published_on=_get(entry, "published"),
                categories=_categories(_get(entry, "tags")),
            )
            for entry in _get(resource, "entries") or ()
        ]

    def load_async(
        self,
        url: str,
        settings: Optional[LoadSettings] = None,
        options: Optional[RequestOptions] = None,
        user_token: Any = None,
    ) -> asyncio.Task:
        """Start loading ``url`` in the background and return the task.

        Must be called from a running event loop. Only one load may be in
        flight per feed; a second call raises RuntimeError and leaves the
        first one alone. A timed-out load ends quietly without firing
        ``loaded``; check ``load_state`` to tell the outcomes apart.
        """
        require_text(url, "url")
        if self._session.in_flight:
            raise RuntimeError("A load operation is already in progress on this feed")
        settings = settings or LoadSettings()

        session = LoadSession(in_flight=True, state=LoadState.LOADING)
        self._session = session
        session.task = asyncio.get_running_loop().create_task(
            self._run_async_load(session, url, settings, options, user_token)
        )
        session.task.add_done_callback(lambda task: self._finish_session(session, task))
        return session.task

    @staticmethod
    def _finish_session(session: LoadSession, task: asyncio.Task) -> None:
        session.in_flight = False
        if task.cancelled():
            session.state = LoadState.CANCELLED

    async def _run_async_load(
        self,
        session: LoadSession,
        url: str,
        settings: LoadSettings,
        options: Optional[RequestOptions],
        user_token: Any,
    ) -> Optional[GenericFeed]:
        try:
            body, charset = await asyncio.wait_for(
                _fetch_async(url, options), timeout=settings.timeout
            )
            if settings.forced_encoding:
                navigator = create_safe_navigator(body, settings.forced_encoding)
            else:
                navigator = create_safe_navigator(decode_with_charset(body, charset))
            self._load_navigator(
                navigator, settings, ResourceLoadedEvent(navigator, url, options, user_token)
            )
        except asyncio.TimeoutError:
            session.state = LoadState.TIMED_OUT
            logger.warning("load_timed_out", url=url, timeout=settings.timeout)
            return None
        except asyncio.CancelledError:
            session.state = LoadState.CANCELLED
            logger.info("load_cancelled", url=url)
            raise
        except Exception as e:
            session.state = LoadState.FAILED
            logger.error("load_failed", url=url, error=str(e))
            raise
        session.state = LoadState.COMPLETED
        return self

    def cancel(self) -> None:
        """Abort the in-flight asynchronous load; a no-op when idle or already cancelled."""
        session = self._session
        if not session.in_flight or session.cancelled:
            return
        session.cancelled = True
        if session.task is not None:
            session.task.cancel()


def parse(
    source: Source | _Element,
    *,
    options: Optional[RequestOptions] = None,
    settings: Optional[LoadSettings] = None,
    registry: Optional[FormatParserRegistry] = None,
) -> GenericFeed:
    """Load a feed from a URL or XML content.

    Args:
        source: URL string, XML content string/bytes, file object or parsed element
        options: Request options used when ``source`` is a URL
        settings: Load settings (encoding, retrieval limit, timeout)
        registry: Format parsers to use; defaults to the built-in readers

    Returns:
        GenericFeed with the common fields filled in

    Raises:
        FeedFormatError: If the content is empty or not well-formed XML
        URLError: If the URL fetch fails
    """
    return GenericFeed.create(source, options, settings, registry)
