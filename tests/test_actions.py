import dataclasses

import pytest

from tamperproxy.actions import (
    MITM_CONNECT,
    OK_CONNECT,
    REJECT_CONNECT,
    ConnectAction,
    ConnectActionKind,
    HttpsHandler,
    ReqHandler,
    RespHandler,
)
from tamperproxy.ctx import ProxyCtx, Request, Response


def test_req_handler_wraps_function():
    req = Request(url="http://example.com/")
    ctx = ProxyCtx()
    handler = ReqHandler(lambda r, c: (r, None))
    assert handler.handle(req, ctx) == (req, None)
    assert handler(req, ctx) == (req, None)


def test_req_handler_subclass():
    class Blocking(ReqHandler):
        def handle(self, req, ctx):
            return req, Response(status_code=403, request=req)

    req = Request(url="http://example.com/")
    out_req, resp = Blocking().handle(req, ProxyCtx())
    assert out_req is req
    assert resp.status_code == 403


def test_req_handler_without_function_raises():
    with pytest.raises(TypeError):
        ReqHandler().handle(Request(url="http://example.com/"), ProxyCtx())


def test_resp_handler_wraps_function():
    resp = Response(status_code=200)
    handler = RespHandler(lambda r, c: Response(status_code=r.status_code + 1))
    assert handler.handle(resp, ProxyCtx()).status_code == 201


def test_resp_handler_receives_none():
    handler = RespHandler(lambda r, c: r)
    assert handler.handle(None, ProxyCtx()) is None


def test_resp_handler_without_function_raises():
    with pytest.raises(TypeError):
        RespHandler().handle(None, ProxyCtx())


def test_https_handler_wraps_function():
    handler = HttpsHandler(lambda host, ctx: (MITM_CONNECT, host))
    action, host = handler.handle_connect("example.com:443", ProxyCtx())
    assert action.action is ConnectActionKind.MITM
    assert host == "example.com:443"
    assert handler("a:1", ProxyCtx()) == (MITM_CONNECT, "a:1")


def test_https_handler_without_function_raises():
    with pytest.raises(TypeError):
        HttpsHandler().handle_connect("example.com:443", ProxyCtx())


@pytest.mark.parametrize(
    "predefined, kind",
    [
        (OK_CONNECT, ConnectActionKind.ACCEPT),
        (REJECT_CONNECT, ConnectActionKind.REJECT),
        (MITM_CONNECT, ConnectActionKind.MITM),
    ],
)
def test_predefined_connect_actions(predefined, kind):
    handler = HttpsHandler(lambda host, ctx: (predefined, host))
    action, host = handler.handle_connect("example.com:443", ProxyCtx())
    assert action.action is kind
    assert action.hijack is None
    assert host == "example.com:443"


def test_connect_action_with_hijack_is_immutable():
    def hijack(req, client, ctx):
        return None

    action = ConnectAction(ConnectActionKind.HIJACK, hijack=hijack)
    assert action.hijack is hijack
    with pytest.raises(dataclasses.FrozenInstanceError):
        action.action = ConnectActionKind.ACCEPT