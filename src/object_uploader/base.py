"""Transport protocol and abstract implementation."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterable, Sequence
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from object_uploader.config import UploaderConfig
    from object_uploader.types import PartRecord, ProgressCallback, UploadedPart, UploadResult

__all__ = ["BaseTransport", "Transport"]


@runtime_checkable
class Transport(Protocol):
    """Async protocol for the object store operations an upload needs.

    Transports execute requests against an S3-compatible store and turn its
    responses into plain values. They never retry and never keep upload state
    of their own; every failure is raised to the caller.
    """

    async def find_existing_session(self, bucket: str, key: str) -> str | None:
        """Look up an incomplete multipart upload for an object.

        Args:
            bucket: Bucket holding the object
            key: Object key

        Returns:
            The upload id of the most recently initiated incomplete upload for
            exactly this key, or None if there is none

        Raises:
            UploadError: If the lookup fails
        """
        ...

    async def create_session(self, bucket: str, key: str, metadata: dict[str, str]) -> str:
        """Initiate a new multipart upload.

        Args:
            bucket: Bucket holding the object
            key: Object key
            metadata: Object metadata; applied to the object on completion

        Returns:
            The new upload id

        Raises:
            UploadError: If the upload cannot be initiated
        """
        ...

    async def list_uploaded_parts(self, bucket: str, key: str, upload_id: str) -> list[PartRecord] | None:
        """List parts already stored for a multipart upload.

        Args:
            bucket: Bucket holding the object
            key: Object key
            upload_id: Multipart upload id

        Returns:
            PartRecords with unquoted MD5 hex digests, in any order. None or
            an empty list when no part was stored.

        Raises:
            UploadSessionNotFoundError: If the store does not know the upload id
            UploadError: If the listing fails
        """
        ...

    async def upload_whole(
        self,
        bucket: str,
        key: str,
        metadata: dict[str, str],
        body: bytes,
        *,
        content_md5: str | None = None,
    ) -> UploadResult:
        """Store an object in a single request.

        Args:
            bucket: Bucket holding the object
            key: Object key
            metadata: Object metadata, sent as request headers
            body: Complete object contents (may be empty)
            content_md5: Base64 MD5 of body for the Content-MD5 header

        Returns:
            UploadResult with the object's ETag and version id

        Raises:
            UploadError: If the upload fails
        """
        ...

    async def upload_part(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        part_number: int,
        body: bytes,
        *,
        content_md5: str | None = None,
    ) -> str:
        """Store one part of a multipart upload.

        Args:
            bucket: Bucket holding the object
            key: Object key
            upload_id: Multipart upload id
            part_number: Part number (1-indexed)
            body: Part contents
            content_md5: Base64 MD5 of body for the Content-MD5 header

        Returns:
            The part's ETag exactly as the store returned it

        Raises:
            UploadSessionNotFoundError: If the store does not know the upload id
            UploadError: If the upload fails
        """
        ...

    async def complete_session(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        parts: Sequence[UploadedPart],
    ) -> UploadResult:
        """Assemble uploaded parts into the final object.

        Args:
            bucket: Bucket holding the object
            key: Object key
            upload_id: Multipart upload id
            parts: Every part of the object, in ascending part number order

        Returns:
            UploadResult with the composite ETag issued by the store

        Raises:
            UploadSessionNotFoundError: If the store does not know the upload id
            UploadError: If completion fails (e.g. a part is missing)
        """
        ...

    async def abort_session(self, bucket: str, key: str, upload_id: str) -> None:
        """Abort a multipart upload and discard its stored parts.

        Args:
            bucket: Bucket holding the object
            key: Object key
            upload_id: Multipart upload id

        Raises:
            UploadError: If aborting fails
        """
        ...

    async def close(self) -> None:
        """Release any resources held by the transport.

        Note:
            After calling close(), the transport should not be used.
        """
        ...


class BaseTransport(ABC):
    """Abstract base class providing common functionality for transports.

    Subclasses must implement the seven store operations of the Transport
    protocol. This class provides:
    - put() - uploads a payload end to end through an ObjectUploader
    - close() - no-op
    """

    @abstractmethod
    async def find_existing_session(self, bucket: str, key: str) -> str | None:
        """Look up an incomplete multipart upload. Must be implemented by subclasses."""

    @abstractmethod
    async def create_session(self, bucket: str, key: str, metadata: dict[str, str]) -> str:
        """Initiate a multipart upload. Must be implemented by subclasses."""

    @abstractmethod
    async def list_uploaded_parts(self, bucket: str, key: str, upload_id: str) -> list[PartRecord] | None:
        """List stored parts. Must be implemented by subclasses."""

    @abstractmethod
    async def upload_whole(
        self,
        bucket: str,
        key: str,
        metadata: dict[str, str],
        body: bytes,
        *,
        content_md5: str | None = None,
    ) -> UploadResult:
        """Store an object in one request. Must be implemented by subclasses."""

    @abstractmethod
    async def upload_part(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        part_number: int,
        body: bytes,
        *,
        content_md5: str | None = None,
    ) -> str:
        """Store one part. Must be implemented by subclasses."""

    @abstractmethod
    async def complete_session(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        parts: Sequence[UploadedPart],
    ) -> UploadResult:
        """Complete a multipart upload. Must be implemented by subclasses."""

    @abstractmethod
    async def abort_session(self, bucket: str, key: str, upload_id: str) -> None:
        """Abort a multipart upload. Must be implemented by subclasses."""

    # Default implementations below

    async def put(
        self,
        bucket: str,
        key: str,
        data: bytes | AsyncIterable[bytes],
        *,
        metadata: dict[str, str] | None = None,
        config: UploaderConfig | None = None,
        progress_callback: ProgressCallback | None = None,
    ) -> UploadResult:
        """Upload a payload, resuming an interrupted upload of the same key if one exists.

        Objects smaller than the configured part size go up in one request;
        larger ones use a multipart upload.

        Args:
            bucket: Bucket holding the object
            key: Object key
            data: Object contents as bytes or async byte stream
            metadata: Object metadata
            config: Uploader configuration. When omitted, the part size is chosen
                with calculate_part_size from the payload length, or from
                MAX_OBJECT_SIZE for a stream of unknown length
            progress_callback: Optional callback for progress updates

        Returns:
            UploadResult for the stored object

        Raises:
            UploadError: If any request fails
        """
        from object_uploader.config import MAX_OBJECT_SIZE, UploaderConfig, calculate_part_size
        from object_uploader.uploader import ObjectUploader

        if config is None:
            size = len(data) if isinstance(data, (bytes, bytearray)) else MAX_OBJECT_SIZE
            config = UploaderConfig(part_size=calculate_part_size(size))

        uploader = ObjectUploader.from_config(
            self,
            bucket,
            key,
            config,
            metadata=metadata,
            progress_callback=progress_callback,
        )
        return await uploader.upload(data)

    async def close(self) -> None:  # noqa: B027
        """Default implementation: no-op.

        Subclasses that manage resources (HTTP sessions, connection pools, etc.)
        should override this method to properly release them.
        """
