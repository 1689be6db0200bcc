from __future__ import annotations


class PhotosDomainError(Exception):
    """Base exception for announcement photo operations."""

    code = "PHOTO_ERROR"


class PhotoValidationError(PhotosDomainError):
    code = "INVALID_FILE_FORMAT"


class PayloadTooLargeError(PhotosDomainError):
    code = "PAYLOAD_TOO_LARGE"


class AnnouncementNotFoundError(PhotosDomainError):
    code = "NOT_FOUND"


class PhotoStorageError(PhotosDomainError):
    """The blob could not be written to durable storage."""

    code = "STORAGE_ERROR"


class PhotoTransactionError(PhotosDomainError):
    """The blob was written but linking it to the announcement failed."""

    code = "TRANSACTION_ERROR"
