"""Handler interfaces for requests, responses and CONNECT requests."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Optional

if TYPE_CHECKING:
    from .ctx import ProxyCtx, Request, Response


class ConnectActionKind(enum.Enum):
    """What the proxy does with a CONNECT request."""

    ACCEPT = "accept"
    REJECT = "reject"
    MITM = "mitm"
    HIJACK = "hijack"


@dataclass(frozen=True)
class ConnectAction:
    """Decision returned by an HTTPS handler for a CONNECT request."""

    action: ConnectActionKind
    hijack: Optional[Callable[..., Any]] = None
    tls_config: Any = None


OK_CONNECT = ConnectAction(ConnectActionKind.ACCEPT)
REJECT_CONNECT = ConnectAction(ConnectActionKind.REJECT)
MITM_CONNECT = ConnectAction(ConnectActionKind.MITM)


class ReqHandler:
    """Tampers with a request before it is sent.

    ``handle`` returns ``(request, None)`` to forward the request, or
    ``(request, response)`` to answer the client without contacting the
    destination. Wrap a function by passing it to the constructor, or
    subclass and override ``handle``.
    """

    def __init__(
        self,
        func: Optional[Callable[["Request", "ProxyCtx"], tuple]] = None,
    ) -> None:
        self._func = func

    def handle(self, req: "Request", ctx: "ProxyCtx") -> tuple:
        if self._func is None:
            raise TypeError("ReqHandler has no function; pass one or override handle")
        return self._func(req, ctx)

    def __call__(self, req: "Request", ctx: "ProxyCtx") -> tuple:
        return self.handle(req, ctx)


class RespHandler:
    """Filters a response before it is returned to the client.

    The response may be ``None`` when the request failed; ``ctx.error``
    then holds the error.
    """

    def __init__(
        self,
        func: Optional[Callable[[Optional["Response"], "ProxyCtx"], Optional["Response"]]] = None,
    ) -> None:
        self._func = func

    def handle(self, resp: Optional["Response"], ctx: "ProxyCtx") -> Optional["Response"]:
        if self._func is None:
            raise TypeError("RespHandler has no function; pass one or override handle")
        return self._func(resp, ctx)

    def __call__(self, resp: Optional["Response"], ctx: "ProxyCtx") -> Optional["Response"]:
        return self.handle(resp, ctx)


class HttpsHandler:
    """Decides what to do with a CONNECT request to ``host``.

    ``handle_connect`` returns ``(action, host)``; ``action`` may be
    ``None`` to let the next handler decide.
    """

    def __init__(
        self,
        func: Optional[Callable[[str, "ProxyCtx"], tuple]] = None,
    ) -> None:
        self._func = func

    def handle_connect(self, host: str, ctx: "ProxyCtx") -> tuple:
        if self._func is None:
            raise TypeError("HttpsHandler has no function; pass one or override handle_connect")
        return self._func(host, ctx)

    def __call__(self, host: str, ctx: "ProxyCtx") -> tuple:
        return self.handle_connect(host, ctx)