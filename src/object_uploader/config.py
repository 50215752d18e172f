"""Caller-side upload configuration and part size bounds."""

from __future__ import annotations

from dataclasses import dataclass

from object_uploader.exceptions import ConfigurationError

__all__ = (
    "DEFAULT_PART_SIZE",
    "MAX_OBJECT_SIZE",
    "MAX_PARTS",
    "MAX_PART_SIZE",
    "MIN_PART_SIZE",
    "UploaderConfig",
    "calculate_part_size",
)

MIN_PART_SIZE = 5 * 1024 * 1024
MAX_PART_SIZE = 5 * 1024 * 1024 * 1024
MAX_OBJECT_SIZE = 5 * 1024 * 1024 * 1024 * 1024
MAX_PARTS = 10_000
DEFAULT_PART_SIZE = 64 * 1024 * 1024

_PART_SIZE_STEP = 16 * 1024 * 1024


def _validate_part_size(part_size: int) -> None:
    if part_size < MIN_PART_SIZE:
        raise ConfigurationError(f"Part size should be at least {MIN_PART_SIZE} bytes, got {part_size}")
    if part_size > MAX_PART_SIZE:
        raise ConfigurationError(f"Part size should be at most {MAX_PART_SIZE} bytes, got {part_size}")


@dataclass
class UploaderConfig:
    """Configuration for ObjectUploader.

    Attributes:
        part_size: Size of each multipart chunk in bytes; objects smaller than
            this are sent in a single request
        require_digest: Attach a Content-MD5 header to every upload request
        resume: Reuse parts of an interrupted upload whose digest matches
    """

    part_size: int = DEFAULT_PART_SIZE
    require_digest: bool = True
    resume: bool = True

    def __post_init__(self) -> None:
        """Validate part size bounds.

        Raises:
            ConfigurationError: If part_size is outside [5 MiB, 5 GiB]
        """
        _validate_part_size(self.part_size)


def calculate_part_size(size: int, *, part_size: int | None = None) -> int:
    """Choose a part size that fits an object of known size in MAX_PARTS parts.

    Starting from the default, the size grows in 16 MiB steps until the
    object fits. An explicit part size is validated and returned unchanged.

    Args:
        size: Total object size in bytes
        part_size: Explicit part size chosen by the caller

    Returns:
        Part size in bytes

    Raises:
        ConfigurationError: If the object is too large or part_size is out of bounds
    """
    if size < 0:
        raise ConfigurationError(f"Object size cannot be negative: {size}")
    if size > MAX_OBJECT_SIZE:
        raise ConfigurationError(f"Object size {size} exceeds the maximum of {MAX_OBJECT_SIZE} bytes")
    if part_size is not None:
        _validate_part_size(part_size)
        return part_size

    calculated = DEFAULT_PART_SIZE
    while calculated * MAX_PARTS < size:
        calculated += _PART_SIZE_STEP
    return calculated
