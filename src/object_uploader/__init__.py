"""object-uploader - Resumable async uploads to S3-compatible object stores."""

from __future__ import annotations

from object_uploader.__metadata__ import __project__, __version__
from object_uploader.backends import (
    MemoryConfig,
    MemoryTransport,
    S3Config,
    S3Transport,
)
from object_uploader.base import BaseTransport, Transport
from object_uploader.config import UploaderConfig, calculate_part_size
from object_uploader.exceptions import (
    ConfigurationError,
    UploadConnectionError,
    UploadError,
    UploadSessionNotFoundError,
    UploadStateError,
)
from object_uploader.registry import build_part_registry
from object_uploader.types import (
    PartRecord,
    ProgressInfo,
    UploadedPart,
    UploadResult,
    UploadSession,
    UploadState,
)
from object_uploader.uploader import ObjectUploader

__all__ = (
    # Metadata
    "__project__",
    "__version__",
    # Uploader
    "ObjectUploader",
    "UploaderConfig",
    "build_part_registry",
    "calculate_part_size",
    # Protocol and base class
    "BaseTransport",
    "Transport",
    # Transports
    "MemoryConfig",
    "MemoryTransport",
    "S3Config",
    "S3Transport",
    # Exceptions
    "ConfigurationError",
    "UploadConnectionError",
    "UploadError",
    "UploadSessionNotFoundError",
    "UploadStateError",
    # Types
    "PartRecord",
    "ProgressInfo",
    "UploadResult",
    "UploadSession",
    "UploadState",
    "UploadedPart",
)
