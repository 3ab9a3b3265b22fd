import io
import logging
import threading
from types import SimpleNamespace

import pytest

from tamperproxy.ctx import Headers, ProxyCtx, Request, Response


def test_headers_case_insensitive_get_set():
    headers = Headers()
    headers.set("content-type", "text/html")
    assert headers.get("Content-Type") == "text/html"
    assert headers.get("CONTENT-TYPE") == "text/html"
    assert "content-TYPE" in headers


def test_headers_get_default():
    headers = Headers()
    assert headers.get("X-Missing") == ""
    assert headers.get("X-Missing", "fallback") == "fallback"


def test_headers_add_and_set_replaces():
    headers = Headers()
    headers.add("X-A", "1")
    headers.add("x-a", "2")
    assert headers.get_all("X-A") == ["1", "2"]
    assert headers.get("X-A") == "1"
    headers.set("X-A", "3")
    assert headers.get_all("x-a") == ["3"]


def test_headers_delete():
    headers = Headers({"Proxy-Authorization": "Bearer token", "Host": "example.com"})
    headers.delete("proxy-authorization")
    assert "Proxy-Authorization" not in headers
    assert len(headers) == 1
    headers.delete("not-there")
    assert len(headers) == 1


def test_headers_from_lists_and_copy():
    headers = Headers({"X-List": ["a", "b"]})
    clone = headers.copy()
    assert clone == headers
    clone.add("X-List", "c")
    assert headers.get_all("X-List") == ["a", "b"]


def test_request_parses_url_and_host():
    req = Request(url="http://example.com:8080/path?q=1")
    assert req.url.path == "/path"
    assert req.url.scheme == "http"
    assert req.host == req.url.netloc


def test_request_accepts_bytes_body():
    req = Request(url="http://example.com/", body=b"payload")
    assert req.body.read() == b"payload"


def test_request_finish_and_wait():
    req = Request(url="http://example.com/")
    assert req.wait_done(0.01) is False
    assert req.done is False
    threading.Timer(0.01, req.finish).start()
    assert req.wait_done(2) is True
    assert req.done is True


def test_response_status_and_body():
    resp = Response(status_code=404, body=b"x")
    assert resp.status.startswith("404 ")
    assert resp.body.read() == b"x"


def test_response_unknown_status():
    assert Response(status_code=599).status == "599"


def test_round_trip_uses_round_tripper():
    seen = []

    def tripper(req, ctx):
        seen.append((req, ctx))
        return Response(status_code=201)

    ctx = ProxyCtx(round_tripper=tripper)
    req = Request(url="http://example.com/")
    resp = ctx.round_trip(req)
    assert resp.status_code == 201
    assert seen == [(req, ctx)]


def test_round_trip_falls_back_to_proxy_transport():
    proxy = SimpleNamespace(transport=lambda req: Response(status_code=204, request=req))
    ctx = ProxyCtx(proxy=proxy)
    req = Request(url="http://example.com/")
    resp = ctx.round_trip(req)
    assert resp.status_code == 204
    assert resp.request is req


def test_round_trip_without_anything_raises():
    with pytest.raises(RuntimeError):
        ProxyCtx().round_trip(Request(url="http://example.com/"))


def _proxy(verbose, name):
    return SimpleNamespace(verbose=verbose, logger=logging.getLogger(name))


def test_logf_only_when_verbose(caplog):
    caplog.set_level(logging.INFO, logger="tp.quiet")
    ctx = ProxyCtx(proxy=_proxy(False, "tp.quiet"), session=3)
    ctx.logf("hello %d", 5)
    assert caplog.records == []


def test_logf_format(caplog):
    caplog.set_level(logging.INFO, logger="tp.loud")
    ctx = ProxyCtx(proxy=_proxy(True, "tp.loud"), session=7)
    ctx.logf("hello %d", 5)
    assert [r.getMessage() for r in caplog.records] == ["[007] INFO: hello 5"]


def test_warnf_always_and_session_masked(caplog):
    caplog.set_level(logging.INFO, logger="tp.warn")
    ctx = ProxyCtx(proxy=_proxy(False, "tp.warn"), session=0x10005)
    ctx.warnf("bad %s", "thing")
    messages = [r.getMessage() for r in caplog.records]
    assert len(messages) == 1
    assert messages[0].startswith("[005] WARN: ")
    assert messages[0].endswith("bad thing")


def test_charset_from_content_type():
    resp = Response(header={"Content-Type": "text/plain; charset=iso-8859-8"})
    assert ProxyCtx(resp=resp).charset() == "iso-8859-8"


def test_charset_quoted():
    resp = Response(header={"Content-Type": 'text/html; charset="utf-8"'})
    assert ProxyCtx(resp=resp).charset() == "utf-8"


@pytest.mark.parametrize("content_type", ["", "text/html"])
def test_charset_missing(content_type):
    resp = Response(header={"Content-Type": content_type} if content_type else {})
    assert ProxyCtx(resp=resp).charset() == ""


def test_charset_without_response():
    assert ProxyCtx().charset() == ""


def test_body_stream_identity_preserved():
    stream = io.BytesIO(b"abc")
    resp = Response(body=stream)
    assert resp.body is stream