"""Deterministic byte stream derived from a private key, built on AES in counter style."""

from __future__ import annotations

import hashlib
from typing import Any, Optional

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, rsa
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

_BLOCK_SIZE = 16


def _key_bytes(key: Any) -> bytes:
    if isinstance(key, rsa.RSAPrivateKey):
        return key.private_bytes(
            serialization.Encoding.DER,
            serialization.PrivateFormat.TraditionalOpenSSL,
            serialization.NoEncryption(),
        )
    if isinstance(key, ec.EllipticCurvePrivateKey):
        return key.private_bytes(
            serialization.Encoding.DER,
            serialization.PrivateFormat.TraditionalOpenSSL,
            serialization.NoEncryption(),
        )
    if isinstance(key, ed25519.Ed25519PrivateKey):
        return key.private_bytes(
            serialization.Encoding.DER,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        )
    raise TypeError("only RSA, ED25519 and ECDSA keys supported")


class CounterEncryptorRand:
    """Reproducible pseudo-random stream: AES encryption of an incrementing counter."""

    def __init__(self, aes_key: bytes, counter: bytes) -> None:
        if len(counter) != _BLOCK_SIZE:
            raise ValueError("counter must be one AES block long")
        self._encryptor = Cipher(algorithms.AES(aes_key), modes.ECB()).encryptor()
        self._counter = bytearray(counter)
        self._rand = bytes(_BLOCK_SIZE)
        self._ix = _BLOCK_SIZE

    @classmethod
    def from_key(cls, key: Any, seed: Optional[bytes] = None) -> "CounterEncryptorRand":
        """Build a stream from an RSA, EC or Ed25519 private key and an optional seed."""
        key_bytes = _key_bytes(key)
        # The key material is prefixed to an empty-input digest, then truncated.
        empty_digest = hashlib.sha256().digest()
        aes_key = (key_bytes + empty_digest)[:_BLOCK_SIZE]
        counter = bytes(_BLOCK_SIZE)
        if seed is not None:
            counter = (bytes(seed) + empty_digest)[:_BLOCK_SIZE]
        return cls(aes_key, counter)

    def seed(self, b: bytes) -> None:
        """Replace the counter with ``b``, which must be exactly one block long."""
        if len(b) != len(self._counter):
            raise ValueError("wrong counter size")
        self._counter[:] = b

    def _refill(self) -> None:
        self._rand = self._encryptor.update(bytes(self._counter))
        for i, value in enumerate(self._counter):
            self._counter[i] = (value + 1) & 0xFF
            if self._counter[i] != 0:
                break
        self._ix = 0

    def readinto(self, b: Any) -> int:
        """Fill ``b`` with at most the rest of the current block; return the count."""
        if self._ix == len(self._rand):
            self._refill()
        view = memoryview(b).cast("B")
        n = min(len(self._rand) - self._ix, len(view))
        view[:n] = self._rand[self._ix : self._ix + n]
        self._ix += n
        return n

    def read(self, n: int) -> bytes:
        """Return exactly ``n`` bytes of the stream."""
        out = bytearray(n)
        view = memoryview(out)
        filled = 0
        while filled < n:
            filled += self.readinto(view[filled:])
        return bytes(out)