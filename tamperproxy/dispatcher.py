"""Conditions and registration of request, response and CONNECT handlers."""

from __future__ import annotations

import io
import ipaddress
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Pattern, Union

from .actions import (
    MITM_CONNECT,
    REJECT_CONNECT,
    ConnectAction,
    ConnectActionKind,
    HttpsHandler,
    ReqHandler,
    RespHandler,
)
from .ctx import ProxyCtx, Request, Response


class ReqCondition:
    """Decides whether a request handler applies to a request.

    A request condition can also stand in for a response condition; it then
    tests the request stored in the context.
    """

    def __init__(self, func: Callable[[Request, ProxyCtx], bool]) -> None:
        self._func = func

    def handle_req(self, req: Request, ctx: Optional[ProxyCtx]) -> bool:
        return bool(self._func(req, ctx))

    def handle_resp(self, resp: Optional[Response], ctx: ProxyCtx) -> bool:
        return bool(self._func(ctx.req, ctx))

    def __call__(self, req: Request, ctx: Optional[ProxyCtx]) -> bool:
        return self.handle_req(req, ctx)


class RespCondition:
    """Decides whether a response handler applies; ``resp`` may be None."""

    def __init__(self, func: Callable[[Optional[Response], ProxyCtx], bool]) -> None:
        self._func = func

    def handle_resp(self, resp: Optional[Response], ctx: ProxyCtx) -> bool:
        return bool(self._func(resp, ctx))

    def __call__(self, resp: Optional[Response], ctx: ProxyCtx) -> bool:
        return self.handle_resp(resp, ctx)


def _req_condition(cond: Any) -> Any:
    if isinstance(cond, RespCondition):
        raise TypeError("a response condition cannot be used on requests")
    if hasattr(cond, "handle_req"):
        return cond
    if callable(cond):
        return ReqCondition(cond)
    raise TypeError(f"not a request condition: {cond!r}")


def _resp_condition(cond: Any) -> Any:
    if hasattr(cond, "handle_resp"):
        return cond
    if callable(cond):
        return RespCondition(cond)
    raise TypeError(f"not a response condition: {cond!r}")


def _compile(pattern: Union[str, Pattern[str]]) -> Pattern[str]:
    return pattern if isinstance(pattern, re.Pattern) else re.compile(pattern)


def url_has_prefix(prefix: str) -> ReqCondition:
    """Match when the path, host+path or scheme+host+path starts with ``prefix``."""

    def check(req: Request, ctx: Optional[ProxyCtx]) -> bool:
        url = req.url
        return (
            url.path.startswith(prefix)
            or (url.netloc + url.path).startswith(prefix)
            or (url.scheme + url.netloc + url.path).startswith(prefix)
        )

    return ReqCondition(check)


def url_is(*urls: str) -> ReqCondition:
    """Match when the path, or host+path, is one of ``urls``."""
    url_set = frozenset(urls)

    def check(req: Request, ctx: Optional[ProxyCtx]) -> bool:
        return req.url.path in url_set or (req.url.netloc + req.url.path) in url_set

    return ReqCondition(check)


def req_host_matches(*regexps: Union[str, Pattern[str]]) -> ReqCondition:
    """Match when the request host matches any of the regular expressions."""
    compiled = [_compile(r) for r in regexps]

    def check(req: Request, ctx: Optional[ProxyCtx]) -> bool:
        return any(r.search(req.host) for r in compiled)

    return ReqCondition(check)


def req_host_is(*hosts: str) -> ReqCondition:
    """Match when the URL host equals one of ``hosts``."""
    host_set = frozenset(hosts)

    def check(req: Request, ctx: Optional[ProxyCtx]) -> bool:
        return req.url.netloc in host_set

    return ReqCondition(check)


def _loopback(text: Optional[str]) -> Optional[bool]:
    if not text:
        return None
    try:
        ip = ipaddress.ip_address(text)
    except ValueError:
        return None
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        ip = ip.ipv4_mapped
    return ip.is_loopback


def is_local_host(req: Request, ctx: Optional[ProxyCtx]) -> bool:
    """True when the destination host is localhost or a loopback address."""
    try:
        hostname = req.url.hostname
    except ValueError:
        hostname = None
    if hostname == "localhost":
        return True
    result = _loopback(hostname)
    if result is not None:
        return result
    # An IPv6 address without brackets and port is not split out as a hostname.
    result = _loopback(req.url.netloc)
    if result is not None:
        return result
    return False


def url_matches(pattern: Union[str, Pattern[str]]) -> ReqCondition:
    """Match when the path, or host+path, matches the regular expression."""
    regex = _compile(pattern)

    def check(req: Request, ctx: Optional[ProxyCtx]) -> bool:
        return bool(regex.search(req.url.path) or regex.search(req.url.netloc + req.url.path))

    return ReqCondition(check)


def dst_host_is(host: str) -> ReqCondition:
    """Match when the URL host equals ``host``, ignoring case."""
    wanted = host.lower()

    def check(req: Request, ctx: Optional[ProxyCtx]) -> bool:
        return req.url.netloc.lower() == wanted

    return ReqCondition(check)


def src_ip_is(*ips: str) -> ReqCondition:
    """Match when the client address is one of ``ips``."""

    def check(req: Request, ctx: Optional[ProxyCtx]) -> bool:
        return any(req.remote_addr.startswith(ip + ":") for ip in ips)

    return ReqCondition(check)


def not_(cond: Any) -> ReqCondition:
    """Negate a request condition."""
    inner = _req_condition(cond)
    return ReqCondition(lambda req, ctx: not inner.handle_req(req, ctx))


def content_type_is(typ: str, *types: str) -> RespCondition:
    """Match responses whose Content-Type is one of the given types."""
    wanted = (*types, typ)

    def check(resp: Optional[Response], ctx: ProxyCtx) -> bool:
        if resp is None:
            return False
        content_type = resp.header.get("Content-Type")
        return any(content_type == t or content_type.startswith(t + ";") for t in wanted)

    return RespCondition(check)


def status_code_is(*codes: int) -> RespCondition:
    """Match responses whose status code is one of ``codes``."""
    code_set = frozenset(codes)

    def check(resp: Optional[Response], ctx: ProxyCtx) -> bool:
        return resp is not None and resp.status_code in code_set

    return RespCondition(check)


def handle_bytes(f: Callable[[bytes, ProxyCtx], bytes]) -> RespHandler:
    """Response handler that replaces the body with ``f`` applied to it."""

    def handle(resp: Response, ctx: ProxyCtx) -> Response:
        body = resp.body
        try:
            data = body.read() if body is not None else b""
        except OSError as err:
            ctx.warnf("Cannot read response %s", err)
            return resp
        if body is not None:
            body.close()
        resp.body = io.BytesIO(f(data, ctx))
        return resp

    return RespHandler(handle)


def always_mitm(host: str, ctx: Optional[ProxyCtx]) -> tuple:
    """CONNECT handler that intercepts every connection."""
    return MITM_CONNECT, host


def always_reject(host: str, ctx: Optional[ProxyCtx]) -> tuple:
    """CONNECT handler that drops every connection."""
    return REJECT_CONNECT, host


def _call_req(handler: Any) -> Callable[[Request, ProxyCtx], tuple]:
    return handler.handle if hasattr(handler, "handle") else handler


def _call_resp(handler: Any) -> Callable[[Optional[Response], ProxyCtx], Optional[Response]]:
    return handler.handle if hasattr(handler, "handle") else handler


def _call_connect(handler: Any) -> Callable[[str, ProxyCtx], tuple]:
    return handler.handle_connect if hasattr(handler, "handle_connect") else handler


@dataclass(eq=False)
class Proxy:
    """Holds the handlers registered through ``on_request`` and ``on_response``."""

    verbose: bool = False
    logger: Any = field(default_factory=lambda: logging.getLogger("tamperproxy"))
    transport: Optional[Callable[[Request], Response]] = None
    cert_store: Any = None
    req_handlers: list = field(default_factory=list)
    resp_handlers: list = field(default_factory=list)
    https_handlers: list = field(default_factory=list)

    def on_request(self, *conds: Any) -> "ReqProxyConds":
        """Collect request conditions for the handler registered next."""
        return ReqProxyConds(self, [_req_condition(c) for c in conds])

    def on_response(self, *conds: Any) -> "ProxyConds":
        """Collect response conditions for the handler registered next."""
        return ProxyConds(self, [], [_resp_condition(c) for c in conds])


@dataclass(eq=False)
class ReqProxyConds:
    """Request conditions waiting for a handler to guard."""

    proxy: Proxy
    req_conds: list

    def _matches(self, req: Optional[Request], ctx: ProxyCtx) -> bool:
        return all(cond.handle_req(req, ctx) for cond in self.req_conds)

    def do(self, handler: Any) -> None:
        """Register a request handler run when all conditions hold."""
        call = _call_req(handler)

        def guarded(req: Request, ctx: ProxyCtx) -> tuple:
            if not self._matches(req, ctx):
                return req, None
            return call(req, ctx)

        self.proxy.req_handlers.append(ReqHandler(guarded))

    def do_func(self, f: Callable[[Request, ProxyCtx], tuple]) -> None:
        self.do(ReqHandler(f))

    def handle_connect(self, handler: Any) -> None:
        """Register a CONNECT handler run when all conditions hold."""
        call = _call_connect(handler)

        def guarded(host: str, ctx: ProxyCtx) -> tuple:
            if not self._matches(ctx.req, ctx):
                return None, ""
            return call(host, ctx)

        self.proxy.https_handlers.append(HttpsHandler(guarded))

    def handle_connect_func(self, f: Callable[[str, ProxyCtx], tuple]) -> None:
        self.handle_connect(HttpsHandler(f))

    def hijack_connect(self, f: Callable[..., Any]) -> None:
        """Hand matching CONNECT connections to ``f(req, client, ctx)``."""
        action = ConnectAction(ConnectActionKind.HIJACK, hijack=f)

        def guarded(host: str, ctx: ProxyCtx) -> tuple:
            if not self._matches(ctx.req, ctx):
                return None, ""
            return action, host

        self.proxy.https_handlers.append(HttpsHandler(guarded))


@dataclass(eq=False)
class ProxyConds:
    """Request and response conditions waiting for a response handler."""

    proxy: Proxy
    req_conds: list
    resp_conds: list

    def do(self, handler: Any) -> None:
        """Register a response handler run when all conditions hold."""
        call = _call_resp(handler)

        def guarded(resp: Optional[Response], ctx: ProxyCtx) -> Optional[Response]:
            if not all(cond.handle_req(ctx.req, ctx) for cond in self.req_conds):
                return resp
            if not all(cond.handle_resp(resp, ctx) for cond in self.resp_conds):
                return resp
            return call(resp, ctx)

        self.proxy.resp_handlers.append(RespHandler(guarded))

    def do_func(self, f: Callable[[Optional[Response], ProxyCtx], Optional[Response]]) -> None:
        self.do(RespHandler(f))