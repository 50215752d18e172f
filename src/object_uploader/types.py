"""Type definitions for object-uploader."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

from object_uploader.exceptions import UploadStateError

__all__ = (
    "PartList",
    "PartRecord",
    "ProgressCallback",
    "ProgressInfo",
    "UploadResult",
    "UploadSession",
    "UploadState",
    "UploadedPart",
)


class UploadState(str, Enum):
    """Lifecycle states of an ObjectUploader."""

    UNINITIALIZED = "uninitialized"
    SINGLE_SHOT_PENDING = "single_shot_pending"
    MULTIPART_NO_SESSION = "multipart_no_session"
    MULTIPART_ACTIVE = "multipart_active"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        """Whether no further chunks can be accepted."""
        return self in (UploadState.COMPLETED, UploadState.FAILED)


@dataclass(frozen=True)
class UploadResult:
    """Terminal outcome of an upload.

    Attributes:
        etag: Entity tag of the stored object, without surrounding quotes
        version_id: Object version, if the bucket is versioned
    """

    etag: str
    version_id: str | None = None


@dataclass(frozen=True)
class PartRecord:
    """A part the store already holds for an in-progress multipart upload.

    Attributes:
        part_number: The part number (1-indexed)
        digest: The MD5 hex digest the store recorded for the part
    """

    part_number: int
    digest: str


@dataclass(frozen=True)
class UploadedPart:
    """A part known to be durably stored, ready for the completion call.

    Attributes:
        part_number: The part number (1-indexed)
        etag: The ETag returned by the store (or the matching recorded digest)
    """

    part_number: int
    etag: str


class PartList:
    """Append-only, ordered collection of uploaded parts.

    Parts are kept in the order they were resolved, which is ascending
    part number for a sequential upload.
    """

    def __init__(self) -> None:
        self._parts: list[UploadedPart] = []
        self._seen: set[int] = set()

    def add(self, part_number: int, etag: str) -> UploadedPart:
        """Record a resolved part.

        Args:
            part_number: The part number (1-indexed)
            etag: The ETag to send back when completing the upload

        Returns:
            The recorded UploadedPart

        Raises:
            UploadStateError: If the part number was already recorded
        """
        if part_number in self._seen:
            raise UploadStateError(f"Part {part_number} already recorded")
        part = UploadedPart(part_number=part_number, etag=etag)
        self._parts.append(part)
        self._seen.add(part_number)
        return part

    def as_list(self) -> list[UploadedPart]:
        """Return a copy of the recorded parts."""
        return list(self._parts)

    def __iter__(self) -> Iterator[UploadedPart]:
        return iter(self._parts)

    def __len__(self) -> int:
        return len(self._parts)

    def __contains__(self, part_number: object) -> bool:
        return part_number in self._seen


@dataclass
class UploadSession:
    """Identity of a multipart upload.

    The upload id is absent until a session is either discovered or created,
    and it can be assigned exactly once.

    Attributes:
        bucket: Bucket holding the object
        key: Object key being uploaded
        metadata: Object metadata sent when the session is created
        upload_id: Multipart upload id (None until assigned)
        resumed: True when an existing incomplete session was adopted
    """

    bucket: str
    key: str
    metadata: dict[str, str] = field(default_factory=dict)
    upload_id: str | None = None
    resumed: bool = False

    def assign(self, upload_id: str, *, resumed: bool = False) -> None:
        """Bind this session to a multipart upload id.

        Args:
            upload_id: The id returned or discovered by the transport
            resumed: Whether the id belongs to a previously started upload

        Raises:
            UploadStateError: If an id was already assigned
        """
        if self.upload_id is not None:
            raise UploadStateError(f"Session for {self.key} already bound to {self.upload_id}")
        self.upload_id = upload_id
        self.resumed = resumed

    @property
    def is_active(self) -> bool:
        """Whether an upload id has been assigned."""
        return self.upload_id is not None


@dataclass
class ProgressInfo:
    """Information about transfer progress.

    Attributes:
        bytes_transferred: Number of bytes resolved so far (uploaded or reused)
        total_bytes: Total number of bytes to transfer (None if unknown)
        percentage: Percentage complete (0-100, None if total unknown)
        operation: Type of operation ("upload")
        key: Object key being transferred
    """

    bytes_transferred: int
    total_bytes: int | None
    operation: str
    key: str

    @property
    def percentage(self) -> float | None:
        """Calculate percentage complete."""
        if self.total_bytes is None or self.total_bytes == 0:
            return None
        return (self.bytes_transferred / self.total_bytes) * 100


class ProgressCallback(Protocol):
    """Protocol for progress callback functions.

    Progress callbacks are called after each chunk is resolved, whether it
    was uploaded or reused from a previous attempt.

    Example::

        def my_progress(info: ProgressInfo) -> None:
            if info.percentage:
                print(f"{info.operation}: {info.percentage:.1f}%")
            else:
                print(f"{info.operation}: {info.bytes_transferred} bytes")
    """

    def __call__(self, info: ProgressInfo) -> None:
        """Called with progress information.

        Args:
            info: Current progress information
        """
        ...
