from __future__ import annotations

from .errors import (
    AnnouncementNotFoundError,
    PayloadTooLargeError,
    PhotoStorageError,
    PhotoTransactionError,
    PhotoValidationError,
    PhotosDomainError,
)
from .service import (
    canonical_photo_url,
    delete_photo,
    photo_storage_root,
    remove_photo,
    sweep_orphan_photos,
    upload_photo,
)
from .types import PhotoErrorDetail, PhotoErrorResponse, PhotoUploadResponse

__all__ = [
    "AnnouncementNotFoundError",
    "PayloadTooLargeError",
    "PhotoErrorDetail",
    "PhotoErrorResponse",
    "PhotoStorageError",
    "PhotoTransactionError",
    "PhotoUploadResponse",
    "PhotoValidationError",
    "PhotosDomainError",
    "canonical_photo_url",
    "delete_photo",
    "photo_storage_root",
    "remove_photo",
    "sweep_orphan_photos",
    "upload_photo",
]
