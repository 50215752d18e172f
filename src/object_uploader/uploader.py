"""Upload orchestration: single-shot or resumable multipart, chunk by chunk."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterable
from typing import TYPE_CHECKING

from object_uploader.exceptions import UploadError, UploadStateError
from object_uploader.hashing import Chunk, sanitize_etag
from object_uploader.registry import PartRegistry, build_part_registry
from object_uploader.streams import iter_chunks
from object_uploader.types import (
    PartList,
    ProgressInfo,
    UploadResult,
    UploadSession,
    UploadState,
)

if TYPE_CHECKING:
    from object_uploader.base import Transport
    from object_uploader.config import UploaderConfig
    from object_uploader.types import ProgressCallback, UploadedPart

__all__ = ("ObjectUploader",)

logger = logging.getLogger(__name__)


class ObjectUploader:
    """Drives one object upload from an ordered stream of chunks.

    The first chunk decides the mode. A first chunk shorter than ``part_size``
    means the whole object fits in one request. Anything else opens (or
    resumes) a multipart upload: every chunk becomes the next part, parts
    already stored with a matching MD5 are reused without a request, and
    ``finalize()`` completes the upload once the input is exhausted.

    Chunks must be written one at a time; ``write()`` returns once the chunk
    is fully resolved, which is the signal to send the next one. The outcome
    is delivered exactly once through ``wait()``.

    Example:
        >>> uploader = ObjectUploader(transport, "my-bucket", "backups/db.tar", part_size=8 * 1024 * 1024)
        >>> async for chunk in source:
        ...     await uploader.write(chunk)
        >>> await uploader.finalize()
        >>> result = await uploader.wait()

    Note:
        Nothing is retried. The first failing request moves the uploader to
        FAILED and a started multipart upload is left in place so a later
        attempt can resume it, or the caller can discard it with ``abort()``.
    """

    def __init__(
        self,
        transport: Transport,
        bucket: str,
        key: str,
        *,
        part_size: int,
        metadata: dict[str, str] | None = None,
        require_digest: bool = True,
        resume: bool = True,
        progress_callback: ProgressCallback | None = None,
        total_size: int | None = None,
    ) -> None:
        """Initialize ObjectUploader.

        Args:
            transport: Store operations used to perform the upload
            bucket: Destination bucket
            key: Destination object key
            part_size: Multipart chunk size; a first chunk smaller than this
                is uploaded in a single request
            metadata: Object metadata (content type, user metadata)
            require_digest: Send a Content-MD5 header with every request
            resume: Skip parts an interrupted upload already stored with the same digest
            progress_callback: Optional callback for progress updates
            total_size: Expected object size, used only for progress reporting
        """
        self.transport = transport
        self.part_size = part_size
        self.require_digest = require_digest
        self.resume = resume
        self.progress_callback = progress_callback
        self.total_size = total_size

        self._session = UploadSession(bucket=bucket, key=key, metadata=dict(metadata or {}))
        self._state = UploadState.UNINITIALIZED
        self._next_part_number = 1
        self._registry: PartRegistry | None = None
        self._parts = PartList()
        self._pending: Chunk | None = None
        self._bytes_resolved = 0
        self._lock = asyncio.Lock()

        self._result: UploadResult | None = None
        self._error: Exception | None = None
        self._delivered = False
        self._future: asyncio.Future[UploadResult] | None = None

    @classmethod
    def from_config(
        cls,
        transport: Transport,
        bucket: str,
        key: str,
        config: UploaderConfig,
        *,
        metadata: dict[str, str] | None = None,
        progress_callback: ProgressCallback | None = None,
        total_size: int | None = None,
    ) -> ObjectUploader:
        """Create an uploader from a validated UploaderConfig."""
        return cls(
            transport,
            bucket,
            key,
            part_size=config.part_size,
            metadata=metadata,
            require_digest=config.require_digest,
            resume=config.resume,
            progress_callback=progress_callback,
            total_size=total_size,
        )

    @property
    def state(self) -> UploadState:
        """Current lifecycle state."""
        return self._state

    @property
    def session(self) -> UploadSession:
        """The multipart session (upload_id stays None for single-shot uploads)."""
        return self._session

    @property
    def parts(self) -> list[UploadedPart]:
        """Parts resolved so far, in part number order."""
        return self._parts.as_list()

    @property
    def next_part_number(self) -> int:
        """Part number the next multipart chunk will receive."""
        return self._next_part_number

    # =========================================================================
    # Chunk intake
    # =========================================================================

    async def write(self, data: bytes) -> None:
        """Process the next chunk of the object.

        Args:
            data: The next chunk, in order. Multipart chunks should be exactly
                ``part_size`` long except for the last one.

        Raises:
            UploadStateError: If the upload already completed or failed
            UploadError: If a request to the store fails; the uploader is
                FAILED afterwards and the same error is delivered by ``wait()``
        """
        async with self._lock:
            if self._state.is_terminal:
                raise UploadStateError(f"Upload of {self._session.key} is {self._state.value}, no more chunks accepted")

            chunk = Chunk(bytes(data))
            try:
                await self._process(chunk)
            except asyncio.CancelledError:
                self._fail(UploadError(f"Upload of {self._session.key} was cancelled"))
                raise
            except Exception as e:
                self._fail(e)
                raise

    async def _process(self, chunk: Chunk) -> None:
        if self._state is UploadState.UNINITIALIZED:
            if len(chunk) < self.part_size:
                self._transition(UploadState.SINGLE_SHOT_PENDING)
                result = await self._put_whole(chunk)
                self._resolved(chunk)
                self._complete(result)
                return
            self._transition(UploadState.MULTIPART_NO_SESSION)

        if self._state is UploadState.MULTIPART_NO_SESSION:
            # Only the first multipart chunk waits here; it is parked until the session exists.
            self._pending = chunk
            try:
                await self._open_session()
                chunk = self._pending
            finally:
                self._pending = None
            self._transition(UploadState.MULTIPART_ACTIVE)

        await self._upload_chunk(chunk)

    async def _open_session(self) -> None:
        bucket, key = self._session.bucket, self._session.key

        upload_id = await self.transport.find_existing_session(bucket, key)
        if upload_id is None:
            upload_id = await self.transport.create_session(bucket, key, dict(self._session.metadata))
            self._session.assign(upload_id)
            logger.info("Started multipart upload %s for %s/%s", upload_id, bucket, key)
            return

        self._session.assign(upload_id, resumed=True)
        records = await self.transport.list_uploaded_parts(bucket, key, upload_id)
        self._registry = build_part_registry(records)
        logger.info(
            "Resuming multipart upload %s for %s/%s (%d parts already stored)",
            upload_id,
            bucket,
            key,
            len(self._registry),
        )

    async def _upload_chunk(self, chunk: Chunk) -> None:
        part_number = self._next_part_number
        self._next_part_number += 1

        if self._registry is not None and self.resume:
            record = self._registry.get(part_number)
            if record is not None and chunk.md5_hex == record.digest:
                self._parts.add(part_number, record.digest)
                logger.debug("Part %d of %s already stored, skipping", part_number, self._session.key)
                self._resolved(chunk)
                return

        etag = await self.transport.upload_part(
            self._session.bucket,
            self._session.key,
            self._session.upload_id,
            part_number,
            chunk.data,
            content_md5=self._content_md5(chunk),
        )
        self._parts.add(part_number, sanitize_etag(etag))
        logger.debug("Uploaded part %d (%d bytes) of %s", part_number, len(chunk), self._session.key)
        self._resolved(chunk)

    async def _put_whole(self, chunk: Chunk) -> UploadResult:
        response = await self.transport.upload_whole(
            self._session.bucket,
            self._session.key,
            dict(self._session.metadata),
            chunk.data,
            content_md5=self._content_md5(chunk),
        )
        return UploadResult(etag=sanitize_etag(response.etag), version_id=response.version_id)

    def _content_md5(self, chunk: Chunk) -> str | None:
        return chunk.content_md5 if self.require_digest else None

    # =========================================================================
    # Completion
    # =========================================================================

    async def finalize(self) -> None:
        """Finish the upload after the last chunk was written.

        Uploads an empty object when no chunk was ever written, completes the
        multipart upload when one is open, and does nothing for an object that
        already went up in a single request.

        Raises:
            UploadStateError: If the upload already failed
            UploadError: If the final request fails
        """
        async with self._lock:
            if self._state is UploadState.COMPLETED:
                return
            if self._state is UploadState.FAILED:
                raise UploadStateError(f"Upload of {self._session.key} failed, cannot finalize") from self._error
            if self._state is not UploadState.UNINITIALIZED and self._state is not UploadState.MULTIPART_ACTIVE:
                raise UploadStateError(f"Cannot finalize upload of {self._session.key} in state {self._state.value}")

            try:
                if self._state is UploadState.UNINITIALIZED:
                    result = await self._put_whole(Chunk(b""))
                else:
                    result = await self._complete_session()
            except asyncio.CancelledError:
                self._fail(UploadError(f"Upload of {self._session.key} was cancelled"))
                raise
            except Exception as e:
                self._fail(e)
                raise

            self._complete(result)

    async def _complete_session(self) -> UploadResult:
        response = await self.transport.complete_session(
            self._session.bucket,
            self._session.key,
            self._session.upload_id,
            self._parts.as_list(),
        )
        logger.info(
            "Completed multipart upload %s for %s/%s with %d parts",
            self._session.upload_id,
            self._session.bucket,
            self._session.key,
            len(self._parts),
        )
        return UploadResult(etag=sanitize_etag(response.etag), version_id=response.version_id)

    async def wait(self) -> UploadResult:
        """Wait for the outcome of the upload.

        Returns:
            The UploadResult of the stored object

        Raises:
            UploadError: The first fatal error of the upload
        """
        if self._future is None:
            self._future = asyncio.get_running_loop().create_future()
            if self._delivered:
                self._settle(self._future)
        return await self._future

    async def upload(self, data: bytes | AsyncIterable[bytes]) -> UploadResult:
        """Upload a complete payload.

        Splits the input into ``part_size`` chunks, writes them in order,
        finalizes, and waits for the result.

        Args:
            data: Object contents as bytes or async byte stream

        Returns:
            UploadResult of the stored object

        Raises:
            UploadError: If any request fails
        """
        if self.total_size is None and isinstance(data, (bytes, bytearray)):
            self.total_size = len(data)

        async for chunk in iter_chunks(data, self.part_size):
            await self.write(chunk)
        await self.finalize()
        return await self.wait()

    async def abort(self) -> None:
        """Abort the multipart upload and discard its stored parts.

        Failed uploads leave their multipart session in place for a later
        resume; call this to discard it instead. Does nothing when no
        session was opened.

        Raises:
            UploadStateError: If the upload already completed
            UploadError: If the abort request fails
        """
        async with self._lock:
            if not self._session.is_active:
                return
            if self._state is UploadState.COMPLETED:
                raise UploadStateError(f"Upload of {self._session.key} already completed")

            await self.transport.abort_session(self._session.bucket, self._session.key, self._session.upload_id)
            logger.info("Aborted multipart upload %s for %s", self._session.upload_id, self._session.key)

            if not self._state.is_terminal:
                self._fail(UploadError(f"Multipart upload {self._session.upload_id} was aborted"))

    # =========================================================================
    # State bookkeeping
    # =========================================================================

    def _transition(self, state: UploadState) -> None:
        logger.debug("Upload %s: %s -> %s", self._session.key, self._state.value, state.value)
        self._state = state

    def _resolved(self, chunk: Chunk) -> None:
        self._bytes_resolved += len(chunk)
        if self.progress_callback:
            self.progress_callback(
                ProgressInfo(
                    bytes_transferred=self._bytes_resolved,
                    total_bytes=self.total_size,
                    operation="upload",
                    key=self._session.key,
                )
            )

    def _complete(self, result: UploadResult) -> None:
        self._transition(UploadState.COMPLETED)
        self._result = result
        # Delivered on the next loop iteration so the caller's write/finalize returns first.
        asyncio.get_running_loop().call_soon(self._deliver)

    def _fail(self, error: Exception) -> None:
        if self._state.is_terminal:
            return
        logger.warning("Upload of %s/%s failed: %s", self._session.bucket, self._session.key, error)
        self._transition(UploadState.FAILED)
        self._error = error
        self._deliver()

    def _deliver(self) -> None:
        self._delivered = True
        if self._future is not None and not self._future.done():
            self._settle(self._future)

    def _settle(self, future: asyncio.Future[UploadResult]) -> None:
        if self._error is not None:
            future.set_exception(self._error)
        elif self._result is not None:
            future.set_result(self._result)
