"""Response handlers that work on the body as text, decoded by its charset."""

from __future__ import annotations

import codecs
import io
from typing import Any, Callable, Optional, TextIO

from .actions import RespHandler
from .ctx import ProxyCtx, Response
from .dispatcher import content_type_is

IS_HTML = content_type_is("text/html")

_CHUNK = 8192
# Bytes that do not decode survive the round trip unchanged.
_ERRORS = "surrogateescape"


class _EncodedBody(io.RawIOBase):
    """Binary body that encodes a text stream on the fly.

    Closing it closes the original response body.
    """

    def __init__(self, source: Any, codec: codecs.CodecInfo, original: Any) -> None:
        super().__init__()
        self._source = source
        self._encoder = codec.incrementalencoder(_ERRORS)
        self._original = original
        self._pending = b""
        self._eof = False

    def readable(self) -> bool:
        return True

    def readinto(self, b: Any) -> int:
        while not self._pending and not self._eof:
            chunk = self._source.read(_CHUNK)
            if not chunk:
                self._eof = True
                self._pending = self._encoder.encode("", final=True)
            else:
                self._pending = self._encoder.encode(chunk)
        view = memoryview(b).cast("B")
        n = min(len(view), len(self._pending))
        view[:n] = self._pending[:n]
        self._pending = self._pending[n:]
        return n

    def close(self) -> None:
        if self.closed:
            return
        try:
            self._original.close()
        finally:
            super().close()


def handle_string_reader(f: Callable[[TextIO, ProxyCtx], TextIO]) -> RespHandler:
    """Hand ``f`` the response body as a text stream, decoded by the response charset.

    The text stream ``f`` returns is encoded back to the same charset and
    becomes the new body. Closing the new body closes the original one.
    """

    def handle(resp: Optional[Response], ctx: ProxyCtx) -> Optional[Response]:
        if ctx.error is not None:
            return None
        name = ctx.charset() or "utf-8"
        try:
            codec = codecs.lookup(name)
        except LookupError:
            ctx.warnf("Cannot convert from %s to utf-8: not found", name)
            return resp
        original = resp.body if resp.body is not None else io.BytesIO()
        text = codec.streamreader(original, _ERRORS)
        resp.body = _EncodedBody(f(text, ctx), codec, original)
        return resp

    return RespHandler(handle)


def handle_string(f: Callable[[str, ProxyCtx], str]) -> RespHandler:
    """Replace the body with ``f`` applied to the whole body as a string."""

    def transform(reader: TextIO, ctx: ProxyCtx) -> TextIO:
        try:
            text = reader.read()
        except (OSError, UnicodeError) as err:
            ctx.warnf("Cannot read string from resp body: %s", err)
            return reader
        return io.StringIO(f(text, ctx))

    return handle_string_reader(transform)