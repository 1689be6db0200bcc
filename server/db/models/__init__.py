from .announcements import Announcement

__all__ = [
    "Announcement",
]
