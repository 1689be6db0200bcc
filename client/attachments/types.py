from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from shared.image_formats import supported_formats_label

from .display import display_file_name, format_file_size


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AttachmentMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    file_name: str
    file_size_bytes: int = Field(ge=0)
    format_identifier: str
    pixel_width: int | None = None
    pixel_height: int | None = None
    source_asset_identifier: str | None = None
    cached_location: str | None = None
    created_at: datetime = Field(default_factory=_utc_now)
    remote_url: str | None = None

    @property
    def display_name(self) -> str:
        return display_file_name(self.file_name)

    @property
    def formatted_file_size(self) -> str:
        return format_file_size(self.file_size_bytes)

    def with_cached_location(self, location: Path | str) -> AttachmentMetadata:
        return self.model_copy(update={"cached_location": str(location)})

    def with_remote_url(self, remote_url: str) -> AttachmentMetadata:
        return self.model_copy(update={"remote_url": remote_url})


@dataclass(frozen=True)
class Empty:
    pass


@dataclass(frozen=True)
class Loading:
    progress_hint: float | None = None


@dataclass(frozen=True)
class Confirmed:
    metadata: AttachmentMetadata


@dataclass(frozen=True)
class Error:
    reason: str


AttachmentStatus = Empty | Loading | Confirmed | Error


class AttachmentMessage(str, Enum):
    UNSUPPORTED_FORMAT = "unsupported_format"
    FILE_TOO_LARGE = "file_too_large"
    SELECTION_CANCELLED = "selection_cancelled"
    SAVE_OR_LOAD_FAILED = "save_or_load_failed"
    PHOTO_MANDATORY = "photo_mandatory"

    @property
    def text(self) -> str:
        return _MESSAGE_TEXT[self]


_MESSAGE_TEXT: dict[AttachmentMessage, str] = {
    AttachmentMessage.UNSUPPORTED_FORMAT: f"Please upload {supported_formats_label()} format",
    AttachmentMessage.FILE_TOO_LARGE: "File size exceeds 20MB limit",
    AttachmentMessage.SELECTION_CANCELLED: "Photo selection was cancelled",
    AttachmentMessage.SAVE_OR_LOAD_FAILED: "Failed to load the photo. Please try again.",
    AttachmentMessage.PHOTO_MANDATORY: "Photo is mandatory",
}


@dataclass(frozen=True)
class PhotoSelection:
    """Raw picker output. ``file_name`` is for display only; the format comes from the bytes."""

    data: bytes
    file_name: str
    source_asset_identifier: str | None = None
