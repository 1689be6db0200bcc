from __future__ import annotations


class AnnouncementsDomainError(Exception):
    """Base exception for announcement persistence operations."""


class AnnouncementMissingError(AnnouncementsDomainError):
    pass
