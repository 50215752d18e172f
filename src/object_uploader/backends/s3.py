"""Amazon S3 and S3-compatible transport."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from object_uploader.base import BaseTransport
from object_uploader.exceptions import (
    ConfigurationError,
    UploadConnectionError,
    UploadError,
    UploadSessionNotFoundError,
)
from object_uploader.hashing import sanitize_etag
from object_uploader.types import PartRecord, UploadedPart, UploadResult

__all__ = ("S3Config", "S3Transport")

logger = logging.getLogger(__name__)

_USER_METADATA_PREFIX = "x-amz-meta-"

# Request headers that map to dedicated put_object/create_multipart_upload parameters
_HEADER_PARAMS = {
    "cache-control": "CacheControl",
    "content-disposition": "ContentDisposition",
    "content-encoding": "ContentEncoding",
    "content-language": "ContentLanguage",
    "content-type": "ContentType",
    "x-amz-storage-class": "StorageClass",
    "x-amz-website-redirect-location": "WebsiteRedirectLocation",
}


def _split_metadata(metadata: dict[str, str]) -> dict[str, Any]:
    """Turn object metadata into boto parameters.

    Standard headers become their dedicated parameter; everything else is user
    metadata, with any ``x-amz-meta-`` prefix removed.
    """
    params: dict[str, Any] = {}
    user_metadata: dict[str, str] = {}
    for name, value in metadata.items():
        lowered = name.lower()
        if lowered in _HEADER_PARAMS:
            params[_HEADER_PARAMS[lowered]] = str(value)
        elif lowered.startswith(_USER_METADATA_PREFIX):
            user_metadata[name[len(_USER_METADATA_PREFIX) :]] = str(value)
        else:
            user_metadata[name] = str(value)
    if user_metadata:
        params["Metadata"] = user_metadata
    return params


def _error_code(error: Exception) -> str | None:
    return getattr(error, "response", {}).get("Error", {}).get("Code")


@dataclass
class S3Config:
    """Configuration for S3-compatible stores.

    Supports AWS S3 and S3-compatible services like:
    - MinIO
    - Cloudflare R2
    - DigitalOcean Spaces
    - Backblaze B2

    Attributes:
        region: AWS region (e.g., "us-east-1")
        endpoint_url: Custom endpoint for S3-compatible services
        access_key_id: AWS access key ID (falls back to environment/IAM)
        secret_access_key: AWS secret access key
        session_token: AWS session token for temporary credentials
        use_ssl: Use SSL/TLS for connections
        verify_ssl: Verify SSL certificates
        max_pool_connections: Maximum connection pool size
    """

    region: str | None = None
    endpoint_url: str | None = None
    access_key_id: str | None = None
    secret_access_key: str | None = None
    session_token: str | None = None
    use_ssl: bool = True
    verify_ssl: bool = True
    max_pool_connections: int = 10


class S3Transport(BaseTransport):
    """Amazon S3 and S3-compatible transport.

    Uses aioboto3 for async S3 operations with support for AWS S3 and
    S3-compatible services.

    Example:
        >>> # AWS S3
        >>> transport = S3Transport(S3Config(region="us-east-1"))
        >>> result = await transport.put("my-bucket", "backups/db.tar", stream)

        >>> # MinIO
        >>> transport = S3Transport(
        ...     S3Config(
        ...         endpoint_url="http://localhost:9000",
        ...         access_key_id="...",
        ...         secret_access_key="...",
        ...     )
        ... )

    Note:
        A client is created per operation. Credentials can come from:
        1. Explicit configuration (access_key_id, secret_access_key)
        2. Environment variables (AWS_ACCESS_KEY_ID, AWS_SECRET_ACCESS_KEY)
        3. IAM roles (when running on EC2/ECS/Lambda)
    """

    def __init__(self, config: S3Config | None = None) -> None:
        """Initialize S3Transport.

        Args:
            config: Configuration for the S3 transport
        """
        self.config = config or S3Config()
        self._session = None

    async def _get_client(self) -> Any:
        """Get a new S3 client context manager.

        Returns:
            aioboto3 S3 client

        Raises:
            ConfigurationError: If aioboto3 is not installed
            UploadConnectionError: If unable to create client
        """
        try:
            import aioboto3
        except ImportError as e:
            raise ConfigurationError("aioboto3 is required for S3Transport. Install it with: pip install aioboto3") from e

        try:
            from botocore.config import Config

            if self._session is None:
                self._session = aioboto3.Session(
                    aws_access_key_id=self.config.access_key_id,
                    aws_secret_access_key=self.config.secret_access_key,
                    aws_session_token=self.config.session_token,
                    region_name=self.config.region,
                )

            config = Config(
                max_pool_connections=self.config.max_pool_connections,
            )

            # aioboto3 clients are async context managers that can only be entered once
            return self._session.client(
                "s3",
                endpoint_url=self.config.endpoint_url,
                use_ssl=self.config.use_ssl,
                verify=self.config.verify_ssl,
                config=config,
            )

        except Exception as e:
            raise UploadConnectionError(f"Failed to create S3 client: {e}") from e

    async def find_existing_session(self, bucket: str, key: str) -> str | None:
        """Find the most recently initiated incomplete upload for key.

        Uploads are listed by prefix, so only exact key matches count.

        Args:
            bucket: Bucket holding the object
            key: Object key

        Returns:
            The upload id, or None if there is no incomplete upload

        Raises:
            UploadError: If the listing fails
        """
        client = await self._get_client()

        try:
            async with client as s3:
                paginator = s3.get_paginator("list_multipart_uploads")
                latest: tuple[Any, str] | None = None
                async for page in paginator.paginate(Bucket=bucket, Prefix=key):
                    for upload in page.get("Uploads", []):
                        if upload["Key"] != key:
                            continue
                        if latest is None or upload["Initiated"] > latest[0]:
                            latest = (upload["Initiated"], upload["UploadId"])

                if latest is None:
                    return None
                logger.debug("Found incomplete upload %s for %s/%s", latest[1], bucket, key)
                return latest[1]

        except Exception as e:
            raise UploadError(f"Failed to list multipart uploads for {key}: {e}") from e

    async def create_session(self, bucket: str, key: str, metadata: dict[str, str]) -> str:
        """Initiate a multipart upload.

        Args:
            bucket: Bucket holding the object
            key: Object key
            metadata: Object metadata

        Returns:
            The new upload id

        Raises:
            UploadError: If the upload cannot be initiated
        """
        client = await self._get_client()

        try:
            async with client as s3:
                response = await s3.create_multipart_upload(
                    Bucket=bucket,
                    Key=key,
                    **_split_metadata(metadata),
                )
                return response["UploadId"]

        except Exception as e:
            raise UploadError(f"Failed to initiate multipart upload for {key}: {e}") from e

    async def list_uploaded_parts(self, bucket: str, key: str, upload_id: str) -> list[PartRecord] | None:
        """List the parts stored for an upload.

        Args:
            bucket: Bucket holding the object
            key: Object key
            upload_id: Multipart upload id

        Returns:
            PartRecords with unquoted ETags, in the order the store lists them

        Raises:
            UploadSessionNotFoundError: If the upload id is unknown
            UploadError: If the listing fails
        """
        client = await self._get_client()

        try:
            async with client as s3:
                paginator = s3.get_paginator("list_parts")
                records: list[PartRecord] = []
                async for page in paginator.paginate(Bucket=bucket, Key=key, UploadId=upload_id):
                    records.extend(
                        PartRecord(part_number=part["PartNumber"], digest=sanitize_etag(part.get("ETag")))
                        for part in page.get("Parts", [])
                    )
                return records

        except Exception as e:
            if _error_code(e) == "NoSuchUpload":
                raise UploadSessionNotFoundError(upload_id) from e
            raise UploadError(f"Failed to list parts of upload {upload_id} for {key}: {e}") from e

    async def upload_whole(
        self,
        bucket: str,
        key: str,
        metadata: dict[str, str],
        body: bytes,
        *,
        content_md5: str | None = None,
    ) -> UploadResult:
        """Store an object with a single PUT.

        Args:
            bucket: Bucket holding the object
            key: Object key
            metadata: Object metadata
            body: Object contents
            content_md5: Base64 MD5 for the Content-MD5 header

        Returns:
            UploadResult with the object's ETag and version id

        Raises:
            UploadError: If the upload fails
        """
        client = await self._get_client()

        upload_params: dict[str, Any] = {
            "Bucket": bucket,
            "Key": key,
            "Body": body,
            **_split_metadata(metadata),
        }
        if content_md5:
            upload_params["ContentMD5"] = content_md5

        try:
            async with client as s3:
                response = await s3.put_object(**upload_params)
                return UploadResult(
                    etag=response.get("ETag", ""),
                    version_id=response.get("VersionId"),
                )

        except Exception as e:
            raise UploadError(f"Failed to upload object {key}: {e}") from e

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
        """Upload one part of a multipart upload.

        Args:
            bucket: Bucket holding the object
            key: Object key
            upload_id: Multipart upload id
            part_number: Part number (1-indexed)
            body: Part contents
            content_md5: Base64 MD5 for the Content-MD5 header

        Returns:
            The part's ETag as returned by S3 (quoted)

        Raises:
            UploadSessionNotFoundError: If the upload id is unknown
            UploadError: If the upload fails
        """
        client = await self._get_client()

        part_params: dict[str, Any] = {
            "Bucket": bucket,
            "Key": key,
            "UploadId": upload_id,
            "PartNumber": part_number,
            "Body": body,
        }
        if content_md5:
            part_params["ContentMD5"] = content_md5

        try:
            async with client as s3:
                response = await s3.upload_part(**part_params)
                return response.get("ETag", "")

        except Exception as e:
            if _error_code(e) == "NoSuchUpload":
                raise UploadSessionNotFoundError(upload_id) from e
            raise UploadError(f"Failed to upload part {part_number} of {key}: {e}") from e

    async def complete_session(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        parts: Sequence[UploadedPart],
    ) -> UploadResult:
        """Complete a multipart upload.

        Args:
            bucket: Bucket holding the object
            key: Object key
            upload_id: Multipart upload id
            parts: Every part of the object, in ascending part number order

        Returns:
            UploadResult with the composite ETag and version id

        Raises:
            UploadSessionNotFoundError: If the upload id is unknown
            UploadError: If completion fails
        """
        client = await self._get_client()

        try:
            async with client as s3:
                response = await s3.complete_multipart_upload(
                    Bucket=bucket,
                    Key=key,
                    UploadId=upload_id,
                    MultipartUpload={
                        "Parts": [{"PartNumber": part.part_number, "ETag": part.etag} for part in parts],
                    },
                )
                return UploadResult(
                    etag=response.get("ETag", ""),
                    version_id=response.get("VersionId"),
                )

        except Exception as e:
            if _error_code(e) == "NoSuchUpload":
                raise UploadSessionNotFoundError(upload_id) from e
            raise UploadError(f"Failed to complete multipart upload {upload_id} for {key}: {e}") from e

    async def abort_session(self, bucket: str, key: str, upload_id: str) -> None:
        """Abort a multipart upload and discard its parts.

        Args:
            bucket: Bucket holding the object
            key: Object key
            upload_id: Multipart upload id

        Raises:
            UploadSessionNotFoundError: If the upload id is unknown
            UploadError: If aborting fails
        """
        client = await self._get_client()

        try:
            async with client as s3:
                await s3.abort_multipart_upload(
                    Bucket=bucket,
                    Key=key,
                    UploadId=upload_id,
                )

        except Exception as e:
            if _error_code(e) == "NoSuchUpload":
                raise UploadSessionNotFoundError(upload_id) from e
            raise UploadError(f"Failed to abort multipart upload {upload_id} for {key}: {e}") from e

    async def close(self) -> None:
        """Drop the cached aioboto3 session."""
        self._session = None
