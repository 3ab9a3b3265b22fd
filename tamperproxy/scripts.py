"""Finding script sources in HTML and warning about mixed jQuery versions."""

from __future__ import annotations

import re

from .ctx import ProxyCtx
from .dispatcher import Proxy
from .htmlfilter import IS_HTML, handle_string

_SCRIPT = re.compile(r"<script\s+", re.IGNORECASE | re.ASCII)
_SRC_ATTR = re.compile(r"""[^>]*\ssrc=["']([^"']*)["']""", re.IGNORECASE | re.ASCII)
_JQUERY = re.compile(r"jquery\.", re.IGNORECASE)


def find_script_src(html: str) -> list[str]:
    """Return the ``src`` attributes of the script tags in ``html``, in order."""
    sources = []
    for tag in _SCRIPT.finditer(html):
        # Start on the whitespace that ends "<script" so "\ssrc" can match it.
        match = _SRC_ATTR.match(html, tag.end() - 1)
        if match is not None:
            sources.append(match.group(1))
    return sources


def new_jquery_version_proxy() -> Proxy:
    """Proxy that warns when one host serves pages using different jQuery scripts."""
    proxy = Proxy()
    seen: dict[str, str] = {}

    def check(text: str, ctx: ProxyCtx) -> str:
        host = ctx.req.host
        for src in find_script_src(text):
            if not _JQUERY.search(src):
                continue
            prev = seen.get(host)
            if prev is None:
                ctx.warnf("%s uses jquery %s", host, src)
                seen[host] = src
            elif prev != src:
                ctx.warnf("In %s, Contradicting jqueries %s %s", ctx.req.url.geturl(), prev, src)
                break
        return text

    proxy.on_response(IS_HTML).do(handle_string(check))
    return proxy