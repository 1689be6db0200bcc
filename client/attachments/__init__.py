from __future__ import annotations

from .cache import AttachmentCacheError, AttachmentCacheErrorKind, LocalAttachmentCache
from .controller import ClientAttachmentController
from .display import display_file_name, format_file_size
from .notice import NoticeScheduler
from .preview import InMemoryPreviewManager, PreviewHandle, PreviewResourceManager, TempFilePreviewManager
from .session import ReportSession
from .transport import UploadTransportClient, UploadTransportError
from .types import (
    AttachmentMessage,
    AttachmentMetadata,
    AttachmentStatus,
    Confirmed,
    Empty,
    Error,
    Loading,
    PhotoSelection,
)

__all__ = [
    "AttachmentCacheError",
    "AttachmentCacheErrorKind",
    "AttachmentMessage",
    "AttachmentMetadata",
    "AttachmentStatus",
    "ClientAttachmentController",
    "Confirmed",
    "Empty",
    "Error",
    "InMemoryPreviewManager",
    "LocalAttachmentCache",
    "Loading",
    "NoticeScheduler",
    "PhotoSelection",
    "PreviewHandle",
    "PreviewResourceManager",
    "ReportSession",
    "TempFilePreviewManager",
    "UploadTransportClient",
    "UploadTransportError",
    "display_file_name",
    "format_file_size",
]
