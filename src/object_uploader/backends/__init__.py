"""Transports for object-uploader."""

from __future__ import annotations

from object_uploader.backends.memory import MemoryConfig, MemoryTransport
from object_uploader.backends.s3 import S3Config, S3Transport

__all__ = (
    "MemoryConfig",
    "MemoryTransport",
    "S3Config",
    "S3Transport",
)
