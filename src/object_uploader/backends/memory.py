"""In-memory S3-compatible transport for testing and development."""

from __future__ import annotations

import base64
import itertools
import uuid
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone

from object_uploader.base import BaseTransport
from object_uploader.exceptions import UploadError, UploadSessionNotFoundError
from object_uploader.hashing import md5_digest
from object_uploader.types import PartRecord, UploadedPart, UploadResult

__all__ = ("MemoryConfig", "MemoryTransport")


def _generate_etag(data: bytes) -> str:
    """Generate an ETag from object data using MD5 hash."""
    return f'"{md5_digest(data).hex()}"'


def _multipart_etag(digests: Sequence[bytes]) -> str:
    """Generate an S3-style composite ETag: md5 of the part digests, suffixed with the part count."""
    combined = md5_digest(b"".join(digests)).hex()
    return f'"{combined}-{len(digests)}"'


@dataclass
class MemoryConfig:
    """Configuration for the in-memory transport.

    Attributes:
        max_size: Maximum total bytes to store across objects and parts (None for unlimited)
        versioning: Issue a version id for every stored object
    """

    max_size: int | None = None
    versioning: bool = False


@dataclass
class _StoredObject:
    data: bytes
    etag: str
    metadata: dict[str, str]
    version_id: str | None = None


@dataclass
class _PendingUpload:
    key: str
    metadata: dict[str, str]
    initiated: datetime
    sequence: int
    parts: dict[int, tuple[bytes, str]] = field(default_factory=dict)


class MemoryTransport(BaseTransport):
    """In-memory transport modelling the S3 multipart API.

    Objects and in-progress multipart uploads live in dictionaries. It is not
    suitable for production use as data is lost on restart and consumes RAM.

    Example:
        >>> transport = MemoryTransport()
        >>> await transport.put("bucket", "hello.txt", b"hello world")
        UploadResult(etag='5eb63bbbe01eeed093cb22bb8f5acdc3', version_id=None)
        >>> await transport.get_bytes("bucket", "hello.txt")
        b'hello world'

    Note:
        Uploads that are never completed or aborted stay listed by
        find_existing_session(), just like on a real store, so an interrupted
        upload can be resumed by a new ObjectUploader.
    """

    def __init__(self, config: MemoryConfig | None = None) -> None:
        """Initialize MemoryTransport.

        Args:
            config: Configuration for the transport (optional)
        """
        self.config = config or MemoryConfig()
        self._objects: dict[tuple[str, str], _StoredObject] = {}
        self._uploads: dict[str, dict[str, _PendingUpload]] = {}
        self._sequence = itertools.count()

    def _used_bytes(self) -> int:
        used = sum(len(obj.data) for obj in self._objects.values())
        for uploads in self._uploads.values():
            for upload in uploads.values():
                used += sum(len(data) for data, _ in upload.parts.values())
        return used

    def _reserve(self, size: int) -> None:
        if self.config.max_size is not None and self._used_bytes() + size > self.config.max_size:
            raise UploadError(f"Max size {self.config.max_size} would be exceeded")

    def _verify_md5(self, body: bytes, content_md5: str | None) -> None:
        if content_md5 is not None and base64.b64encode(md5_digest(body)).decode("ascii") != content_md5:
            raise UploadError("BadDigest: the Content-MD5 you specified did not match what was received")

    def _get_upload(self, bucket: str, upload_id: str) -> _PendingUpload:
        upload = self._uploads.get(bucket, {}).get(upload_id)
        if upload is None:
            raise UploadSessionNotFoundError(upload_id)
        return upload

    def _store(self, bucket: str, key: str, data: bytes, etag: str, metadata: dict[str, str]) -> UploadResult:
        version_id = uuid.uuid4().hex if self.config.versioning else None
        self._objects[(bucket, key)] = _StoredObject(
            data=data,
            etag=etag,
            metadata=dict(metadata),
            version_id=version_id,
        )
        return UploadResult(etag=etag, version_id=version_id)

    async def find_existing_session(self, bucket: str, key: str) -> str | None:
        """Return the most recently initiated incomplete upload for key.

        Args:
            bucket: Bucket holding the object
            key: Object key

        Returns:
            The upload id, or None if there is no incomplete upload
        """
        candidates = [
            (upload.initiated, upload.sequence, upload_id)
            for upload_id, upload in self._uploads.get(bucket, {}).items()
            if upload.key == key
        ]
        if not candidates:
            return None
        return max(candidates)[2]

    async def create_session(self, bucket: str, key: str, metadata: dict[str, str]) -> str:
        """Start a multipart upload.

        Args:
            bucket: Bucket holding the object
            key: Object key
            metadata: Metadata applied to the object on completion

        Returns:
            The new upload id
        """
        upload_id = uuid.uuid4().hex
        self._uploads.setdefault(bucket, {})[upload_id] = _PendingUpload(
            key=key,
            metadata=dict(metadata),
            initiated=datetime.now(tz=timezone.utc),
            sequence=next(self._sequence),
        )
        return upload_id

    async def list_uploaded_parts(self, bucket: str, key: str, upload_id: str) -> list[PartRecord] | None:
        """List the parts stored for an upload.

        Args:
            bucket: Bucket holding the object
            key: Object key
            upload_id: Multipart upload id

        Returns:
            PartRecords in ascending part number order

        Raises:
            UploadSessionNotFoundError: If the upload id is unknown
        """
        upload = self._get_upload(bucket, upload_id)
        return [
            PartRecord(part_number=number, digest=etag.strip('"'))
            for number, (_, etag) in sorted(upload.parts.items())
        ]

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
            metadata: Object metadata
            body: Object contents
            content_md5: Base64 MD5 to verify body against

        Returns:
            UploadResult with a quoted ETag, as S3 returns it

        Raises:
            UploadError: If the digest does not match or max_size would be exceeded
        """
        self._verify_md5(body, content_md5)
        self._reserve(len(body))
        return self._store(bucket, key, body, _generate_etag(body), metadata)

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
        """Store one part, replacing any earlier part with the same number.

        Args:
            bucket: Bucket holding the object
            key: Object key
            upload_id: Multipart upload id
            part_number: Part number (1-indexed)
            body: Part contents
            content_md5: Base64 MD5 to verify body against

        Returns:
            The quoted ETag of the part

        Raises:
            UploadSessionNotFoundError: If the upload id is unknown
            UploadError: If the digest does not match or the part number is invalid
        """
        upload = self._get_upload(bucket, upload_id)
        if not 1 <= part_number <= 10_000:
            raise UploadError(f"InvalidArgument: part number {part_number} must be between 1 and 10000")
        self._verify_md5(body, content_md5)
        self._reserve(len(body))

        etag = _generate_etag(body)
        upload.parts[part_number] = (body, etag)
        return etag

    async def complete_session(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        parts: Sequence[UploadedPart],
    ) -> UploadResult:
        """Assemble the listed parts into the final object.

        Args:
            bucket: Bucket holding the object
            key: Object key
            upload_id: Multipart upload id
            parts: Parts to assemble, in ascending part number order

        Returns:
            UploadResult with the composite ETag

        Raises:
            UploadSessionNotFoundError: If the upload id is unknown
            UploadError: If parts are out of order, missing, or have a stale ETag
        """
        upload = self._get_upload(bucket, upload_id)
        if not parts:
            raise UploadError("MalformedXML: at least one part must be specified")

        numbers = [part.part_number for part in parts]
        if numbers != sorted(set(numbers)):
            raise UploadError("InvalidPartOrder: parts must be listed in ascending order")

        chunks: list[bytes] = []
        digests: list[bytes] = []
        for part in parts:
            stored = upload.parts.get(part.part_number)
            if stored is None or stored[1].strip('"') != part.etag.strip('"'):
                raise UploadError(f"InvalidPart: part {part.part_number} could not be found or its ETag does not match")
            chunks.append(stored[0])
            digests.append(md5_digest(stored[0]))

        del self._uploads[bucket][upload_id]
        return self._store(bucket, key, b"".join(chunks), _multipart_etag(digests), upload.metadata)

    async def abort_session(self, bucket: str, key: str, upload_id: str) -> None:
        """Discard an upload and its parts.

        Raises:
            UploadSessionNotFoundError: If the upload id is unknown
        """
        self._get_upload(bucket, upload_id)
        del self._uploads[bucket][upload_id]

    # Inspection helpers

    async def get_bytes(self, bucket: str, key: str) -> bytes:
        """Return the contents of a stored object.

        Raises:
            UploadError: If the object does not exist
        """
        stored = self._objects.get((bucket, key))
        if stored is None:
            raise UploadError(f"NoSuchKey: {bucket}/{key}")
        return stored.data

    async def get_metadata(self, bucket: str, key: str) -> dict[str, str]:
        """Return the metadata of a stored object.

        Raises:
            UploadError: If the object does not exist
        """
        stored = self._objects.get((bucket, key))
        if stored is None:
            raise UploadError(f"NoSuchKey: {bucket}/{key}")
        return dict(stored.metadata)

    async def exists(self, bucket: str, key: str) -> bool:
        """Check if an object exists."""
        return (bucket, key) in self._objects
