"""Shared pytest fixtures for object-uploader tests."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING
from unittest.mock import AsyncMock

import pytest

if TYPE_CHECKING:
    from object_uploader.backends.memory import MemoryTransport
    from object_uploader.backends.s3 import S3Transport


TEST_BUCKET = "test-bucket"

TRANSPORT_METHODS = (
    "find_existing_session",
    "create_session",
    "list_uploaded_parts",
    "upload_whole",
    "upload_part",
    "complete_session",
    "abort_session",
)


# ==================================================================================== #
# PYTEST CONFIGURATION
# ==================================================================================== #


def pytest_configure(config):
    """Configure pytest with custom settings and markers."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, isolated)")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "slow: Tests that take more than 1 second")

    os.environ["PYTHONDONTWRITEBYTECODE"] = "1"


# MemoryTransport fixtures
@pytest.fixture
def memory_transport() -> MemoryTransport:
    """
    Fresh in-memory transport for each test.

    Provides an isolated S3 model with no size limits.
    Ideal for fast unit tests of the upload state machine.
    """
    from object_uploader.backends.memory import MemoryTransport

    return MemoryTransport()


@pytest.fixture
def spy_transport(memory_transport: MemoryTransport) -> MemoryTransport:
    """
    Memory transport whose operations are wrapped in AsyncMocks.

    Every call still reaches the in-memory store, but await counts and
    arguments can be asserted. Failures can be injected by replacing a
    mock's side_effect.
    """
    for name in TRANSPORT_METHODS:
        setattr(memory_transport, name, AsyncMock(side_effect=getattr(memory_transport, name)))
    return memory_transport


# S3Transport fixtures
# NOTE: Uses moto server mode for aiobotocore compatibility.
# The decorator-based mock_aws() doesn't work with aiobotocore's async API.


@pytest.fixture(scope="session")
def moto_server():
    """
    Start moto server for S3 mocking with aiobotocore (session-scoped).

    Uses moto's ThreadedMotoServer to run moto in a separate thread,
    which properly handles aiobotocore's async requests.
    """
    from moto.server import ThreadedMotoServer

    server = ThreadedMotoServer(port="0", verbose=False)
    server.start()

    host, port = server.get_host_and_port()
    endpoint_url = f"http://{host}:{port}"

    os.environ["AWS_ACCESS_KEY_ID"] = "testing"
    os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
    os.environ["AWS_SECURITY_TOKEN"] = "testing"
    os.environ["AWS_SESSION_TOKEN"] = "testing"
    os.environ["AWS_DEFAULT_REGION"] = "us-east-1"

    yield endpoint_url

    server.stop()


@pytest.fixture(scope="session")
def mock_s3_bucket_setup(moto_server: str):
    """
    Create mock S3 bucket once per session (session-scoped).

    Args:
        moto_server: Endpoint URL from moto server fixture
    """
    import boto3

    s3_client = boto3.client(
        "s3",
        endpoint_url=moto_server,
        region_name="us-east-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )
    s3_client.create_bucket(Bucket=TEST_BUCKET)

    return {"client": s3_client, "endpoint_url": moto_server}


@pytest.fixture
def mock_s3_bucket(mock_s3_bucket_setup: dict):
    """
    Provide S3 bucket with per-test cleanup (function-scoped).

    Deletes all objects and aborts every pending multipart upload after
    each test, so resume tests never see another test's sessions.

    Args:
        mock_s3_bucket_setup: Session-scoped bucket setup fixture
    """
    yield mock_s3_bucket_setup

    s3_client = mock_s3_bucket_setup["client"]
    uploads = s3_client.list_multipart_uploads(Bucket=TEST_BUCKET).get("Uploads", [])
    for upload in uploads:
        s3_client.abort_multipart_upload(Bucket=TEST_BUCKET, Key=upload["Key"], UploadId=upload["UploadId"])

    response = s3_client.list_objects_v2(Bucket=TEST_BUCKET)
    objects_to_delete = [{"Key": obj["Key"]} for obj in response.get("Contents", [])]
    if objects_to_delete:
        s3_client.delete_objects(Bucket=TEST_BUCKET, Delete={"Objects": objects_to_delete})


@pytest.fixture
def s3_transport(mock_s3_bucket: dict) -> S3Transport:
    """
    S3 transport against the moto server.

    Args:
        mock_s3_bucket: Fixture providing mocked S3 client with test bucket
    """
    from object_uploader.backends.s3 import S3Config, S3Transport

    return S3Transport(
        S3Config(
            region="us-east-1",
            endpoint_url=mock_s3_bucket["endpoint_url"],
            access_key_id="testing",
            secret_access_key="testing",
        )
    )


# Test data fixtures - use session scope for immutable test data
@pytest.fixture(scope="session")
def sample_text_data() -> bytes:
    """Payload smaller than the test part size.

    Session-scoped as this is immutable data that can be reused across all tests.
    """
    return b"tiny"


@pytest.fixture(scope="session")
def multipart_data() -> bytes:
    """Forty bytes whose 8-byte parts all differ.

    With part_size=8 this uploads as five parts.
    """
    return bytes(i * 7 % 251 for i in range(40))


@pytest.fixture
def sample_metadata() -> dict[str, str]:
    """Sample object metadata.

    Function-scoped as tests may modify this dict.
    """
    return {
        "Content-Type": "application/octet-stream",
        "author": "test-user",
        "environment": "test",
    }


# Async iterator fixture
@pytest.fixture
def async_data_chunks():
    """
    Factory fixture for creating async data iterators.

    Returns a callable that creates async iterators from bytes,
    useful for testing streaming upload functionality.
    """

    async def _create_async_chunks(data: bytes, chunk_size: int = 1024):
        """Split data into chunks and yield asynchronously."""
        for i in range(0, len(data), chunk_size):
            yield data[i : i + chunk_size]

    return _create_async_chunks
