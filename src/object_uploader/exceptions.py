"""Exception hierarchy for object-uploader."""

from __future__ import annotations

__all__ = [
    "ConfigurationError",
    "UploadConnectionError",
    "UploadError",
    "UploadSessionNotFoundError",
    "UploadStateError",
]


class UploadError(Exception):
    """Base exception for all upload-related errors.

    Transports should raise exceptions derived from this class so callers can
    handle failures the same way whichever object store sits underneath.
    """


class UploadSessionNotFoundError(UploadError):
    """Raised when the object store has no record of a multipart session.

    Attributes:
        upload_id: The multipart upload id that was not found
    """

    def __init__(self, upload_id: str) -> None:
        """Initialize UploadSessionNotFoundError.

        Args:
            upload_id: The multipart upload id that was not found
        """
        self.upload_id = upload_id
        super().__init__(f"Multipart upload not found: {upload_id}")


class UploadStateError(UploadError):
    """Raised when an operation is not valid in the uploader's current state.

    This typically occurs when:
    - A chunk is written after the upload completed or failed
    - A session id is assigned twice
    - The same part number is recorded twice
    """


class UploadConnectionError(UploadError):
    """Raised when unable to connect to the object store.

    This typically occurs when:
    - Network connectivity issues prevent access
    - The client library cannot be initialized
    - Invalid endpoint configuration
    """


class ConfigurationError(UploadError):
    """Raised when uploader or transport configuration is invalid.

    This typically occurs when:
    - The part size is outside the provider's bounds
    - The object is larger than the store accepts
    - A required client library is missing
    """
