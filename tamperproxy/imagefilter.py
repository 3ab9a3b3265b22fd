"""Response handler that decodes images, transforms them and encodes them again."""

from __future__ import annotations

import io
from http import HTTPStatus
from typing import Callable, Optional

from PIL import Image

from .actions import RespHandler
from .ctx import ProxyCtx, Response
from .dispatcher import content_type_is

RESP_IS_IMAGE = content_type_is(
    "image/gif",
    "image/jpeg",
    "image/pjpeg",
    "application/octet-stream",
    "image/png",
)

_DECODABLE = ("PNG", "JPEG", "GIF")
_DECODE_ERRORS = (OSError, ValueError, SyntaxError, Image.DecompressionBombError)


def _describe(ctx: ProxyCtx) -> str:
    req = ctx.req
    if req is None:
        return ""
    return f"{req.method} {req.url.geturl()}"


def _encode(img: Image.Image, fmt: str) -> bytes:
    if fmt == "JPEG" and img.mode not in ("RGB", "L", "CMYK"):
        img = img.convert("RGB")
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


def handle_image(f: Callable[[Image.Image, ProxyCtx], Image.Image]) -> RespHandler:
    """Replace image bodies with ``f`` applied to the decoded image.

    GIF and PNG come back as PNG, JPEG as JPEG. Responses that are not
    images, not 200, or cannot be decoded are returned unchanged.
    """

    def handle(resp: Optional[Response], ctx: ProxyCtx) -> Optional[Response]:
        if not RESP_IS_IMAGE.handle_resp(resp, ctx):
            return resp
        if resp.status_code != HTTPStatus.OK:
            # e.g. 304 Not Modified carries no data
            return resp
        content_type = resp.header.get("Content-Type")

        original = resp.body
        data = original.read() if original is not None else b""
        if original is not None:
            original.close()
        resp.body = io.BytesIO(data)

        try:
            img = Image.open(io.BytesIO(data), formats=_DECODABLE)
            img.load()
        except _DECODE_ERRORS as err:
            request_uri = ctx.req.request_uri if ctx.req is not None else ""
            ctx.warnf(
                "%s Image from %s content type %s cannot be decoded returning original image: %s",
                _describe(ctx),
                request_uri,
                content_type,
                err,
            )
            return resp
        image_format = img.format
        result = f(img, ctx)

        new_type = None
        if content_type in ("image/gif", "image/png"):
            fmt: Optional[str] = "PNG"
            new_type = "image/png"
        elif content_type in ("image/jpeg", "image/pjpeg"):
            fmt = "JPEG"
        elif content_type == "application/octet-stream":
            fmt = {"JPEG": "JPEG", "PNG": "PNG", "GIF": "PNG"}.get(image_format)
        else:
            raise ValueError("unhandlable type " + content_type)

        encoded = b""
        if fmt is not None:
            try:
                encoded = _encode(result, fmt)
            except (OSError, ValueError) as err:
                ctx.warnf("Cannot encode image, returning orig %s %s", _describe(ctx), err)
                return resp
        if new_type is not None:
            resp.header.set("Content-Type", new_type)
        resp.body = io.BytesIO(encoded)
        return resp

    return RespHandler(handle)