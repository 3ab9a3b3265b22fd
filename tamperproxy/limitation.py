"""Limit on the number of requests handled at the same time."""

from __future__ import annotations

import threading

from .actions import ReqHandler
from .ctx import ProxyCtx, Request


def concurrent_requests(limit: int) -> ReqHandler:
    """Request handler that blocks while ``limit`` requests are unfinished.

    A slot is released when the request is marked finished. A limit of
    zero or less disables the check.
    """
    if limit <= 0:
        return ReqHandler(lambda req, ctx: (req, None))

    slots = threading.Semaphore(limit)

    def release_when_done(req: Request) -> None:
        req.wait_done()
        slots.release()

    def handle(req: Request, ctx: ProxyCtx) -> tuple:
        slots.acquire()
        threading.Thread(target=release_when_done, args=(req,), daemon=True).start()
        return req, None

    return ReqHandler(handle)