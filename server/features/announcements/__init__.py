from __future__ import annotations

from .errors import AnnouncementMissingError, AnnouncementsDomainError
from .repo import find_by_id, list_photo_urls, update_photo_url

__all__ = [
    "AnnouncementMissingError",
    "AnnouncementsDomainError",
    "find_by_id",
    "list_photo_urls",
    "update_photo_url",
]
