from __future__ import annotations

import datetime
import ssl
from dataclasses import dataclass, field
from http.cookiejar import CookieJar
from typing import Any, Mapping, Optional, Union
from urllib.request import (
    BaseHandler,
    HTTPBasicAuthHandler,
    HTTPCookieProcessor,
    HTTPErrorProcessor,
    HTTPPasswordMgrWithDefaultRealm,
    HTTPRedirectHandler,
    HTTPSHandler,
    OpenerDirector,
    ProxyHandler,
    Request,
    build_opener,
)

import aiohttp

from .encoding import ACCEPT_ENCODING
from .errors import ArgumentError

DEFAULT_TIMEOUT = 15.0
MAX_TIMEOUT = datetime.timedelta(days=365).total_seconds()

ClientCertificate = Union[str, tuple[str, str]]


class _NoRedirectHandler(HTTPRedirectHandler):
    def redirect_request(self, req, fp, code, msg, headers, newurl):
        return None


@dataclass
class RequestOptions:
    """Optional knobs for outgoing requests.

    Every field defaults to None, meaning "leave the HTTP library's default
    alone". Only explicitly set fields are pushed onto a request.
    """

    credentials: Optional[tuple[str, str]] = None
    proxy: Optional[str] = None
    timeout: Optional[float] = None
    headers: Optional[Mapping[str, str]] = None
    user_agent: Optional[str] = None
    accept: Optional[str] = None
    referer: Optional[str] = None
    allow_auto_redirect: Optional[bool] = None
    max_redirects: Optional[int] = None
    keep_alive: Optional[bool] = None
    automatic_decompression: Optional[bool] = None
    verify_ssl: Optional[bool] = None
    client_certificate: Optional[ClientCertificate] = None
    cookie_jar: Optional[CookieJar] = None

    def header_items(self) -> list[tuple[str, str]]:
        items = list((self.headers or {}).items())
        if self.user_agent is not None:
            items.append(("User-Agent", self.user_agent))
        if self.accept is not None:
            items.append(("Accept", self.accept))
        if self.referer is not None:
            items.append(("Referer", self.referer))
        if self.keep_alive is not None:
            items.append(("Connection", "keep-alive" if self.keep_alive else "close"))
        if self.automatic_decompression is not None:
            items.append(
                (
                    "Accept-Encoding",
                    ACCEPT_ENCODING if self.automatic_decompression else "identity",
                )
            )
        return items

    def apply(self, request: Request) -> Request:
        for name, value in self.header_items():
            request.add_header(name, value)
        return request

    def _ssl_context(self) -> Optional[ssl.SSLContext]:
        if self.verify_ssl is None and self.client_certificate is None:
            return None
        context = ssl.create_default_context()
        if self.verify_ssl is False:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
        if self.client_certificate is not None:
            if isinstance(self.client_certificate, tuple):
                context.load_cert_chain(*self.client_certificate)
            else:
                context.load_cert_chain(self.client_certificate)
        return context

    def build_opener(self, url: str) -> OpenerDirector:
        """Build a urllib opener carrying only the handlers the set fields need."""
        handlers: list[BaseHandler] = []
        if self.proxy is not None:
            handlers.append(ProxyHandler({"http": self.proxy, "https": self.proxy}))
        if self.credentials is not None:
            password_manager = HTTPPasswordMgrWithDefaultRealm()
            password_manager.add_password(None, url, *self.credentials)
            handlers.append(HTTPBasicAuthHandler(password_manager))
        if self.allow_auto_redirect is False:
            handlers.append(_NoRedirectHandler())
        else:
            redirect_handler = HTTPRedirectHandler()
            if self.max_redirects is not None:
                redirect_handler.max_redirections = self.max_redirects
            handlers.append(redirect_handler)
        context = self._ssl_context()
        if context is not None:
            handlers.append(HTTPSHandler(context=context))
        if self.cookie_jar is not None:
            handlers.append(HTTPCookieProcessor(self.cookie_jar))
        handlers.append(HTTPErrorProcessor())
        return build_opener(*handlers)

    def aiohttp_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for ``aiohttp.ClientSession.get``.

        ``cookie_jar`` is not mapped: aiohttp keeps cookies on the session.
        """
        kwargs: dict[str, Any] = {}
        headers = dict(self.header_items())
        if headers:
            kwargs["headers"] = headers
        if self.credentials is not None:
            kwargs["auth"] = aiohttp.BasicAuth(*self.credentials)
        if self.proxy is not None:
            kwargs["proxy"] = self.proxy
        if self.allow_auto_redirect is not None:
            kwargs["allow_redirects"] = self.allow_auto_redirect
        if self.max_redirects is not None:
            kwargs["max_redirects"] = self.max_redirects
        if self.timeout is not None:
            kwargs["timeout"] = aiohttp.ClientTimeout(total=self.timeout)
        context = self._ssl_context()
        if context is not None:
            kwargs["ssl"] = context
        return kwargs


def _seconds(value: Union[float, int, datetime.timedelta]) -> float:
    if isinstance(value, datetime.timedelta):
        return value.total_seconds()
    return float(value)


@dataclass
class LoadSettings:
    """How a syndication resource is read.

    ``character_encoding`` of ``"utf-8"`` means "detect from the payload";
    any other value forces that encoding.
    """

    character_encoding: str = "utf-8"
    retrieval_limit: int = 0
    timeout: float = DEFAULT_TIMEOUT
    auto_detect_extensions: bool = True
    supported_extensions: list[type] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.character_encoding:
            raise ArgumentError("'character_encoding' must not be empty")
        if self.retrieval_limit < 0:
            raise ArgumentError(
                f"'retrieval_limit' must be zero or positive, got {self.retrieval_limit}"
            )
        self.timeout = _seconds(self.timeout)
        if not 0 <= self.timeout <= MAX_TIMEOUT:
            raise ArgumentError(f"'timeout' must be between 0 and 365 days, got {self.timeout}")

    @property
    def forced_encoding(self) -> Optional[str]:
        if self.character_encoding.replace("-", "").lower() == "utf8":
            return None
        return self.character_encoding


@dataclass
class SaveSettings:
    character_encoding: str = "utf-8"
    minimize_output_size: bool = False
    auto_detect_extensions: bool = True
    supported_extensions: list[type] = field(default_factory=list)
