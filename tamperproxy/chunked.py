"""Writer for the HTTP chunked transfer encoding."""

from __future__ import annotations

from typing import Any


class ChunkedWriter:
    """Encode each write as one HTTP chunk on ``wire``.

    Closing writes the terminating zero-length chunk.
    """

    def __init__(self, wire: Any) -> None:
        self.wire = wire

    def write(self, data: bytes) -> int:
        """Write ``data`` as a single chunk and return its length."""
        # A zero-length chunk would read as the end of the stream.
        if not data:
            return 0
        data = bytes(data)
        self.wire.write(f"{len(data):x}\r\n".encode("ascii"))
        written = self.wire.write(data)
        if written is not None and written != len(data):
            raise OSError("short write")
        self.wire.write(b"\r\n")
        return len(data)

    def close(self) -> None:
        self.wire.write(b"0\r\n")

    def __enter__(self) -> "ChunkedWriter":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()