import base64

from tamperproxy.actions import REJECT_CONNECT
from tamperproxy.auth import basic, basic_connect, basic_unauthorized, proxy_basic
from tamperproxy.ctx import ProxyCtx, Request
from tamperproxy.dispatcher import Proxy


def _check(user, pwd):
    return user == "user" and pwd == "password"


def _credentials(text):
    return "Basic " + base64.b64encode(text.encode()).decode()


def _request(auth_value=None):
    req = Request(url="http://example.com/")
    if auth_value is not None:
        req.header.set("Proxy-Authorization", auth_value)
    return req


def test_basic_unauthorized_response():
    req = _request()
    resp = basic_unauthorized(req, "my_realm")
    assert resp.status_code == 407
    assert resp.header.get("Proxy-Authenticate") == "Basic realm=my_realm"
    assert resp.header.get("Proxy-Connection") == "close"
    assert resp.body.read() == b"407 Proxy Authentication Required"
    assert resp.content_length == len(b"407 Proxy Authentication Required")
    assert resp.request is req


def test_basic_without_credentials():
    req = _request()
    out_req, resp = basic("my_realm", _check).handle(req, ProxyCtx(req=req))
    assert out_req is None
    assert resp.status_code == 407
    assert resp.header.get("Proxy-Authenticate") == "Basic realm=my_realm"


def test_basic_with_credentials_passes_and_strips_header():
    req = _request(_credentials("user:password"))
    out_req, resp = basic("my_realm", _check).handle(req, ProxyCtx(req=req))
    assert out_req is req
    assert resp is None
    assert "Proxy-Authorization" not in req.header


def test_basic_wrong_credentials():
    req = _request(_credentials("user:wrong"))
    _, resp = basic("my_realm", _check).handle(req, ProxyCtx(req=req))
    assert resp.status_code == 407


def test_basic_rejects_other_scheme_bad_base64_and_missing_colon():
    handler = basic("r", _check)
    for value in ["Bearer token", "Basic !!!notbase64", _credentials("userpassword"), "Basic"]:
        req = _request(value)
        _, resp = handler.handle(req, ProxyCtx(req=req))
        assert resp is not None and resp.status_code == 407


def test_basic_connect():
    handler = basic_connect("my_realm", _check)
    bad = _request()
    ctx = ProxyCtx(req=bad)
    action, host = handler.handle_connect("example.com:443", ctx)
    assert action == REJECT_CONNECT
    assert host == "example.com:443"
    assert ctx.resp.status_code == 407

    good = _request(_credentials("user:password"))
    good_ctx = ProxyCtx(req=good)
    assert handler.handle_connect("example.com:443", good_ctx) == (None, "example.com:443")
    assert good_ctx.resp is None


def test_proxy_basic_registers_both_handlers():
    proxy = Proxy()
    proxy_basic(proxy, "my_realm", _check)
    assert len(proxy.req_handlers) == 1
    assert len(proxy.https_handlers) == 1

    req = _request()
    _, resp = proxy.req_handlers[0].handle(req, ProxyCtx(req=req))
    assert resp.header.get("Proxy-Authenticate") == "Basic realm=my_realm"

    ok = _request(_credentials("user:password"))
    assert proxy.req_handlers[0].handle(ok, ProxyCtx(req=ok)) == (ok, None)


def test_password_may_contain_colon():
    seen = []

    def check(user, pwd):
        seen.append((user, pwd))
        return pwd == "pass:word"

    req = _request(_credentials("user:pass:word"))
    out_req, resp = basic("r", check).handle(req, ProxyCtx(req=req))
    assert out_req is req
    assert resp is None
    assert seen == [("user", "pass:word")]