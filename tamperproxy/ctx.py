"""Request, response and per-request context objects shared by proxy handlers."""

from __future__ import annotations

import io
import logging
import threading
from dataclasses import dataclass, field
from email.message import Message
from http import HTTPStatus
from typing import Any, BinaryIO, Callable, Iterable, Iterator, Mapping, Optional, Union
from urllib.parse import SplitResult, urlsplit

_default_logger = logging.getLogger("tamperproxy")


def _canonical(name: str) -> str:
    return "-".join(part.capitalize() for part in name.split("-"))


class Headers:
    """Case-insensitive, multi-valued HTTP header collection."""

    def __init__(
        self,
        items: Union[Mapping[str, Any], Iterable[tuple[str, str]], None] = None,
    ) -> None:
        self._data: dict[str, list[str]] = {}
        if items is None:
            return
        pairs = items.items() if isinstance(items, Mapping) else items
        for name, value in pairs:
            if isinstance(value, (list, tuple)):
                for single in value:
                    self.add(name, single)
            else:
                self.add(name, value)

    def get(self, name: str, default: str = "") -> str:
        """Return the first value of ``name`` or ``default`` when absent."""
        values = self._data.get(_canonical(name))
        return values[0] if values else default

    def get_all(self, name: str) -> list[str]:
        return list(self._data.get(_canonical(name), ()))

    def set(self, name: str, value: str) -> None:
        self._data[_canonical(name)] = [value]

    def add(self, name: str, value: str) -> None:
        self._data.setdefault(_canonical(name), []).append(value)

    def delete(self, name: str) -> None:
        self._data.pop(_canonical(name), None)

    def items(self) -> Iterator[tuple[str, str]]:
        for name, values in self._data.items():
            for value in values:
                yield name, value

    def copy(self) -> "Headers":
        return Headers(list(self.items()))

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and _canonical(name) in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._data))

    def __len__(self) -> int:
        return len(self._data)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Headers):
            return NotImplemented
        return self._data == other._data

    def __repr__(self) -> str:
        return f"Headers({self._data!r})"


@dataclass(eq=False)
class Request:
    """An HTTP request passing through the proxy."""

    method: str = "GET"
    url: Union[SplitResult, str] = ""
    header: Headers = field(default_factory=Headers)
    body: Optional[BinaryIO] = None
    host: str = ""
    remote_addr: str = ""
    request_uri: str = ""
    proto: str = "HTTP/1.1"
    _done: threading.Event = field(default_factory=threading.Event, init=False, repr=False)

    def __post_init__(self) -> None:
        if isinstance(self.url, str):
            self.url = urlsplit(self.url)
        if not isinstance(self.header, Headers):
            self.header = Headers(self.header)
        if isinstance(self.body, (bytes, bytearray)):
            self.body = io.BytesIO(bytes(self.body))
        if not self.host:
            self.host = self.url.netloc

    @property
    def done(self) -> bool:
        return self._done.is_set()

    def finish(self) -> None:
        """Mark the request as finished, releasing anyone waiting on it."""
        self._done.set()

    def wait_done(self, timeout: Optional[float] = None) -> bool:
        """Block until the request is finished; return False on timeout."""
        return self._done.wait(timeout)


@dataclass(eq=False)
class Response:
    """An HTTP response, either from the remote server or made by a handler."""

    status_code: int = 200
    header: Headers = field(default_factory=Headers)
    body: Optional[BinaryIO] = None
    request: Optional[Request] = None
    proto: str = "HTTP/1.1"
    content_length: int = -1

    def __post_init__(self) -> None:
        if not isinstance(self.header, Headers):
            self.header = Headers(self.header)
        if isinstance(self.body, (bytes, bytearray)):
            self.body = io.BytesIO(bytes(self.body))

    @property
    def status(self) -> str:
        try:
            phrase = HTTPStatus(self.status_code).phrase
        except ValueError:
            return str(self.status_code)
        return f"{self.status_code} {phrase}"


RoundTripper = Callable[[Request, "ProxyCtx"], Response]


@dataclass(eq=False)
class ProxyCtx:
    """Per-request context handed to every handler; also acts as a logger.

    ``proxy`` is expected to provide ``verbose``, ``logger`` and a
    ``transport`` callable taking a request and returning a response.
    """

    req: Optional[Request] = None
    resp: Optional[Response] = None
    round_tripper: Optional[RoundTripper] = None
    error: Optional[BaseException] = None
    user_data: Any = None
    session: int = 0
    cert_store: Any = None
    proxy: Any = None

    def round_trip(self, req: Request) -> Response:
        """Send ``req`` using the context's round tripper or the proxy transport."""
        if self.round_tripper is not None:
            return self.round_tripper(req, self)
        if self.proxy is None:
            raise RuntimeError("no round tripper and no proxy to send the request")
        return self.proxy.transport(req)

    def _logger(self) -> Any:
        logger = getattr(self.proxy, "logger", None)
        return logger if logger is not None else _default_logger

    def _line(self, prefix: str, msg: str, args: tuple) -> str:
        text = msg % args if args else msg
        return f"[{self.session & 0xFFFF:03d}] {prefix}: {text}"

    def logf(self, msg: str, *args: Any) -> None:
        """Log an informational message, only when the proxy is verbose."""
        if getattr(self.proxy, "verbose", False):
            self._logger().info(self._line("INFO", msg, args))

    def warnf(self, msg: str, *args: Any) -> None:
        """Log a warning; always emitted."""
        self._logger().warning(self._line("WARN", msg, args))

    def charset(self) -> str:
        """Charset named in the response Content-Type, or '' if unknown."""
        if self.resp is None:
            return ""
        content_type = self.resp.header.get("Content-Type")
        if not content_type:
            return ""
        message = Message()
        message["Content-Type"] = content_type
        value = message.get_param("charset")
        if value is None:
            return ""
        if isinstance(value, tuple):
            return value[2]
        return str(value)