from .base import Base
from .models import Announcement

__all__ = [
    "Announcement",
    "Base",
]
