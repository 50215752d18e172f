"""MemoryTransport-specific tests.

Tests the in-memory model of the S3 multipart API: ETag formats, digest
verification, session discovery and completion validation.
"""

from __future__ import annotations

import base64
import hashlib

import pytest

from object_uploader.backends.memory import MemoryConfig, MemoryTransport
from object_uploader.exceptions import UploadError, UploadSessionNotFoundError
from object_uploader.types import PartRecord, UploadedPart

BUCKET = "bucket"


def _md5(data: bytes) -> bytes:
    return hashlib.md5(data, usedforsecurity=False).digest()


@pytest.mark.unit
class TestMemorySingleShot:
    """Test single-request storage."""

    async def test_upload_whole(self, memory_transport: MemoryTransport, sample_metadata: dict[str, str]) -> None:
        """
        Test storing an object in one request.

        Verifies:
        - The ETag is the quoted MD5, as S3 returns it
        - Data and metadata are retrievable
        """
        data = b"hello world"

        result = await memory_transport.upload_whole(BUCKET, "hello.txt", sample_metadata, data)

        assert result.etag == f'"{_md5(data).hex()}"'
        assert result.version_id is None
        assert await memory_transport.exists(BUCKET, "hello.txt")
        assert await memory_transport.get_bytes(BUCKET, "hello.txt") == data
        assert await memory_transport.get_metadata(BUCKET, "hello.txt") == sample_metadata

    async def test_content_md5_verified(self, memory_transport: MemoryTransport) -> None:
        """
        Test a Content-MD5 that does not match the body.

        Verifies:
        - BadDigest is raised and nothing is stored
        """
        wrong = base64.b64encode(_md5(b"other")).decode()

        with pytest.raises(UploadError, match="BadDigest"):
            await memory_transport.upload_whole(BUCKET, "k", {}, b"body", content_md5=wrong)

        assert not await memory_transport.exists(BUCKET, "k")

    async def test_versioning(self) -> None:
        """
        Test a versioned store.

        Verifies:
        - Every write gets a distinct version id
        """
        transport = MemoryTransport(MemoryConfig(versioning=True))

        first = await transport.upload_whole(BUCKET, "k", {}, b"one")
        second = await transport.upload_whole(BUCKET, "k", {}, b"two")

        assert first.version_id
        assert second.version_id
        assert first.version_id != second.version_id

    async def test_max_size(self) -> None:
        """
        Test the storage limit.

        Verifies:
        - Writes beyond max_size are rejected
        - Stored parts count towards the limit
        """
        transport = MemoryTransport(MemoryConfig(max_size=10))
        upload_id = await transport.create_session(BUCKET, "k", {})
        await transport.upload_part(BUCKET, "k", upload_id, 1, b"x" * 8)

        with pytest.raises(UploadError, match="Max size"):
            await transport.upload_whole(BUCKET, "other", {}, b"abc")

    async def test_missing_object(self, memory_transport: MemoryTransport) -> None:
        """
        Test reading an object that was never stored.

        Verifies:
        - get_bytes() raises UploadError
        """
        with pytest.raises(UploadError, match="NoSuchKey"):
            await memory_transport.get_bytes(BUCKET, "missing")


@pytest.mark.unit
class TestMemorySessions:
    """Test multipart session bookkeeping."""

    async def test_find_existing_session(self, memory_transport: MemoryTransport) -> None:
        """
        Test session discovery.

        Verifies:
        - None when nothing is pending
        - The most recent session for the exact key is returned
        - Sessions for other keys are ignored
        """
        assert await memory_transport.find_existing_session(BUCKET, "k") is None

        await memory_transport.create_session(BUCKET, "k", {})
        latest = await memory_transport.create_session(BUCKET, "k", {})
        await memory_transport.create_session(BUCKET, "k2", {})

        assert await memory_transport.find_existing_session(BUCKET, "k") == latest
        assert await memory_transport.find_existing_session("other-bucket", "k") is None

    async def test_list_uploaded_parts(self, memory_transport: MemoryTransport) -> None:
        """
        Test part listings.

        Verifies:
        - Parts are listed in ascending order with unquoted digests
        - Re-uploading a part replaces it
        """
        upload_id = await memory_transport.create_session(BUCKET, "k", {})
        await memory_transport.upload_part(BUCKET, "k", upload_id, 2, b"two")
        await memory_transport.upload_part(BUCKET, "k", upload_id, 1, b"one")
        await memory_transport.upload_part(BUCKET, "k", upload_id, 2, b"TWO")

        records = await memory_transport.list_uploaded_parts(BUCKET, "k", upload_id)

        assert records == [PartRecord(1, _md5(b"one").hex()), PartRecord(2, _md5(b"TWO").hex())]

    async def test_unknown_upload_id(self, memory_transport: MemoryTransport) -> None:
        """
        Test operations on an unknown upload id.

        Verifies:
        - UploadSessionNotFoundError is raised for every session operation
        """
        with pytest.raises(UploadSessionNotFoundError):
            await memory_transport.list_uploaded_parts(BUCKET, "k", "nope")
        with pytest.raises(UploadSessionNotFoundError):
            await memory_transport.upload_part(BUCKET, "k", "nope", 1, b"x")
        with pytest.raises(UploadSessionNotFoundError):
            await memory_transport.complete_session(BUCKET, "k", "nope", [UploadedPart(1, "x")])
        with pytest.raises(UploadSessionNotFoundError):
            await memory_transport.abort_session(BUCKET, "k", "nope")

    @pytest.mark.parametrize("part_number", [0, 10_001])
    async def test_part_number_bounds(self, memory_transport: MemoryTransport, part_number: int) -> None:
        """
        Test part numbers outside 1..10000.

        Verifies:
        - InvalidArgument is raised
        """
        upload_id = await memory_transport.create_session(BUCKET, "k", {})

        with pytest.raises(UploadError, match="InvalidArgument"):
            await memory_transport.upload_part(BUCKET, "k", upload_id, part_number, b"x")

    async def test_abort_discards_parts(self, memory_transport: MemoryTransport) -> None:
        """
        Test abort_session().

        Verifies:
        - The session disappears from discovery
        - No object is created
        """
        upload_id = await memory_transport.create_session(BUCKET, "k", {})
        await memory_transport.upload_part(BUCKET, "k", upload_id, 1, b"x")

        await memory_transport.abort_session(BUCKET, "k", upload_id)

        assert await memory_transport.find_existing_session(BUCKET, "k") is None
        assert not await memory_transport.exists(BUCKET, "k")


@pytest.mark.unit
class TestMemoryCompletion:
    """Test assembly of multipart uploads."""

    async def _upload(self, transport: MemoryTransport, bodies: list[bytes]) -> tuple[str, list[UploadedPart]]:
        upload_id = await transport.create_session(BUCKET, "k", {"Content-Type": "text/plain"})
        parts = []
        for number, body in enumerate(bodies, start=1):
            etag = await transport.upload_part(BUCKET, "k", upload_id, number, body)
            parts.append(UploadedPart(number, etag.strip('"')))
        return upload_id, parts

    async def test_composite_etag(self, memory_transport: MemoryTransport) -> None:
        """
        Test a successful completion.

        Verifies:
        - The object is the concatenation of the parts
        - The ETag is md5 of the part digests with a part count suffix
        - Session metadata is applied and the session is removed
        """
        bodies = [b"first", b"second"]
        upload_id, parts = await self._upload(memory_transport, bodies)

        result = await memory_transport.complete_session(BUCKET, "k", upload_id, parts)

        expected = hashlib.md5(_md5(b"first") + _md5(b"second"), usedforsecurity=False).hexdigest()
        assert result.etag == f'"{expected}-2"'
        assert await memory_transport.get_bytes(BUCKET, "k") == b"firstsecond"
        assert await memory_transport.get_metadata(BUCKET, "k") == {"Content-Type": "text/plain"}
        assert await memory_transport.find_existing_session(BUCKET, "k") is None

    async def test_empty_part_list_rejected(self, memory_transport: MemoryTransport) -> None:
        """
        Test completing with no parts.

        Verifies:
        - MalformedXML is raised
        """
        upload_id, _ = await self._upload(memory_transport, [b"x"])

        with pytest.raises(UploadError, match="MalformedXML"):
            await memory_transport.complete_session(BUCKET, "k", upload_id, [])

    async def test_out_of_order_parts_rejected(self, memory_transport: MemoryTransport) -> None:
        """
        Test completing with parts in descending order.

        Verifies:
        - InvalidPartOrder is raised
        """
        upload_id, parts = await self._upload(memory_transport, [b"a", b"b"])

        with pytest.raises(UploadError, match="InvalidPartOrder"):
            await memory_transport.complete_session(BUCKET, "k", upload_id, list(reversed(parts)))

    async def test_stale_etag_rejected(self, memory_transport: MemoryTransport) -> None:
        """
        Test completing with an ETag that does not match the stored part.

        Verifies:
        - InvalidPart is raised and the session survives
        """
        upload_id, parts = await self._upload(memory_transport, [b"a", b"b"])
        parts[1] = UploadedPart(2, _md5(b"stale").hex())

        with pytest.raises(UploadError, match="InvalidPart"):
            await memory_transport.complete_session(BUCKET, "k", upload_id, parts)

        assert await memory_transport.find_existing_session(BUCKET, "k") == upload_id
