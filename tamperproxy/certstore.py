"""In-memory cache of generated certificates, keyed by host name."""

from __future__ import annotations

import threading
from typing import Any, Callable


class MemoryCertStorage:
    """Keeps every certificate it is given in memory."""

    def __init__(self) -> None:
        self._certs: dict[str, Any] = {}
        self._lock = threading.Lock()

    def fetch(self, hostname: str, gen: Callable[[], Any]) -> Any:
        """Return the cached certificate for ``hostname``, generating it with ``gen`` if absent.

        Errors from ``gen`` propagate and nothing is cached.
        """
        with self._lock:
            if hostname in self._certs:
                return self._certs[hostname]
        cert = gen()
        with self._lock:
            self._certs[hostname] = cert
        return cert