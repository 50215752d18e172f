"""Chunk digests used for integrity headers and resume comparison."""

from __future__ import annotations

import base64
import hashlib
from functools import cached_property

__all__ = ("Chunk", "md5_digest", "sanitize_etag")


def md5_digest(data: bytes) -> bytes:
    """Return the raw MD5 digest of data (equality checks only, not security)."""
    return hashlib.md5(data, usedforsecurity=False).digest()


def sanitize_etag(etag: str | None) -> str:
    """Strip symmetric quoting from an ETag as returned by S3-compatible stores.

    Some stores return the quotes HTML-escaped, so ``&quot;`` is handled too.
    """
    if not etag:
        return ""
    for quote in ('"', "&quot;", "&#34;"):
        if etag.startswith(quote) and etag.endswith(quote) and len(etag) >= 2 * len(quote):
            return etag[len(quote) : -len(quote)]
    return etag


class Chunk:
    """One contiguous span of input bytes.

    The digest is computed lazily and cached, so the bytes are hashed at most
    once whether they are needed for the Content-MD5 header, the resume
    comparison, or both.
    """

    def __init__(self, data: bytes) -> None:
        self.data = data

    def __len__(self) -> int:
        return len(self.data)

    @cached_property
    def digest(self) -> bytes:
        """Raw MD5 digest of the chunk."""
        return md5_digest(self.data)

    @property
    def md5_hex(self) -> str:
        """Hex form, as S3 reports part ETags."""
        return self.digest.hex()

    @property
    def content_md5(self) -> str:
        """Base64 form, as expected by the Content-MD5 header."""
        return base64.b64encode(self.digest).decode("ascii")

    @property
    def is_hashed(self) -> bool:
        """Whether the digest has already been computed."""
        return "digest" in self.__dict__
