"""Basic proxy authentication for plain requests and CONNECT requests."""

from __future__ import annotations

import base64
import binascii
import io
from http import HTTPStatus
from typing import Any, Callable

from .actions import REJECT_CONNECT, HttpsHandler, ReqHandler
from .ctx import ProxyCtx, Request, Response

_UNAUTHORIZED_MSG = b"407 Proxy Authentication Required"
_PROXY_AUTHORIZATION = "Proxy-Authorization"

Checker = Callable[[str, str], bool]


def basic_unauthorized(req: Request, realm: str) -> Response:
    """Build the 407 response asking the client for credentials."""
    return Response(
        status_code=HTTPStatus.PROXY_AUTHENTICATION_REQUIRED,
        header={
            "Proxy-Authenticate": "Basic realm=" + realm,
            "Proxy-Connection": "close",
        },
        body=io.BytesIO(_UNAUTHORIZED_MSG),
        request=req,
        content_length=len(_UNAUTHORIZED_MSG),
    )


def _authenticate(req: Request, check: Checker) -> bool:
    value = req.header.get(_PROXY_AUTHORIZATION)
    req.header.delete(_PROXY_AUTHORIZATION)
    parts = value.split(" ", 1)
    if len(parts) != 2 or parts[0] != "Basic":
        return False
    try:
        raw = base64.b64decode(parts[1], validate=True)
    except (binascii.Error, ValueError):
        return False
    credentials = raw.decode("utf-8", errors="surrogateescape").split(":", 1)
    if len(credentials) != 2:
        return False
    return bool(check(credentials[0], credentials[1]))


def basic(realm: str, check: Checker) -> ReqHandler:
    """Request handler answering 407 unless the credentials pass ``check``."""

    def handle(req: Request, ctx: ProxyCtx) -> tuple:
        if not _authenticate(req, check):
            return None, basic_unauthorized(req, realm)
        return req, None

    return ReqHandler(handle)


def basic_connect(realm: str, check: Checker) -> HttpsHandler:
    """CONNECT handler rejecting the tunnel unless the credentials pass ``check``."""

    def handle_connect(host: str, ctx: ProxyCtx) -> tuple:
        if not _authenticate(ctx.req, check):
            ctx.resp = basic_unauthorized(ctx.req, realm)
            return REJECT_CONNECT, host
        return None, host

    return HttpsHandler(handle_connect)


def proxy_basic(proxy: Any, realm: str, check: Checker) -> None:
    """Require basic authentication for every request and CONNECT on ``proxy``."""
    proxy.on_request().do(basic(realm, check))
    proxy.on_request().handle_connect(basic_connect(realm, check))