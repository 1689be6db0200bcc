from __future__ import annotations

import asyncio
import errno
import logging
import os
from enum import Enum
from pathlib import Path

from pydantic import ValidationError

from client.core.config import get_client_settings

from .types import AttachmentMetadata

logger = logging.getLogger(__name__)

_SLOT_DIRECTORY = "report_missing_pet"
_METADATA_FILE = "metadata.json"
_BLOB_SUFFIX = ".img"


class AttachmentCacheErrorKind(str, Enum):
    LOW_DISK_SPACE = "low_disk_space"
    WRITE_FAILED = "write_failed"
    METADATA_DECODING_FAILED = "metadata_decoding_failed"
    CLEAR_FAILED = "clear_failed"
    DIRECTORY_CREATION_FAILED = "directory_creation_failed"
    MISSING_CACHED_FILE = "missing_cached_file"


class AttachmentCacheError(Exception):
    def __init__(self, kind: AttachmentCacheErrorKind, message: str | None = None):
        super().__init__(message or kind.value)
        self.kind = kind


def _atomic_write_bytes(path: Path, value: bytes) -> None:
    tmp_path = path.with_suffix(f"{path.suffix}.tmp")
    try:
        tmp_path.write_bytes(value)
        os.replace(tmp_path, path)
    finally:
        tmp_path.unlink(missing_ok=True)


def _write_error(exc: OSError) -> AttachmentCacheError:
    if exc.errno == errno.ENOSPC:
        return AttachmentCacheError(AttachmentCacheErrorKind.LOW_DISK_SPACE, str(exc))
    return AttachmentCacheError(AttachmentCacheErrorKind.WRITE_FAILED, str(exc))


class LocalAttachmentCache:
    """Single-slot on-disk cache for the photo of the report being drafted.

    The slot holds at most one ``<id>.img`` blob next to ``metadata.json``.
    Blocking file I/O runs in worker threads.
    """

    def __init__(self, base_dir: Path | str | None = None):
        root = Path(base_dir) if base_dir is not None else Path(get_client_settings().cache_dir)
        self._directory = root / _SLOT_DIRECTORY

    @property
    def directory(self) -> Path:
        return self._directory

    @property
    def _metadata_path(self) -> Path:
        return self._directory / _METADATA_FILE

    async def save(self, data: bytes, metadata: AttachmentMetadata) -> AttachmentMetadata:
        return await asyncio.to_thread(self._save, data, metadata)

    async def load_current(self) -> AttachmentMetadata | None:
        return await asyncio.to_thread(self._load_current)

    async def update_metadata(self, metadata: AttachmentMetadata) -> None:
        await asyncio.to_thread(self._update_metadata, metadata)

    async def file_exists(self, location: str | None) -> bool:
        if not location:
            return False
        return await asyncio.to_thread(Path(location).is_file)

    async def read_bytes(self, metadata: AttachmentMetadata) -> bytes:
        return await asyncio.to_thread(self._read_bytes, metadata)

    async def clear_current(self) -> None:
        await asyncio.to_thread(self._clear_current)

    def _ensure_directory(self) -> Path:
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise AttachmentCacheError(
                AttachmentCacheErrorKind.DIRECTORY_CREATION_FAILED,
                str(exc),
            ) from exc
        return self._directory

    def _save(self, data: bytes, metadata: AttachmentMetadata) -> AttachmentMetadata:
        directory = self._ensure_directory()
        previous = self._read_metadata_or_none()
        blob_path = directory / f"{metadata.id}{_BLOB_SUFFIX}"
        try:
            _atomic_write_bytes(blob_path, data)
        except OSError as exc:
            raise _write_error(exc) from exc

        saved = metadata.with_cached_location(blob_path)
        try:
            _atomic_write_bytes(self._metadata_path, saved.model_dump_json(indent=2).encode("utf-8"))
        except OSError as exc:
            blob_path.unlink(missing_ok=True)
            raise _write_error(exc) from exc

        if previous is not None and previous.cached_location not in (None, str(blob_path)):
            try:
                Path(previous.cached_location).unlink(missing_ok=True)
            except OSError:
                logger.warning("Could not remove replaced attachment %s", previous.id, exc_info=True)
        logger.debug("Cached attachment %s (%d bytes)", saved.id, len(data))
        return saved

    def _read_metadata(self) -> AttachmentMetadata | None:
        path = self._metadata_path
        if not path.exists():
            return None
        try:
            return AttachmentMetadata.model_validate_json(path.read_bytes())
        except (ValidationError, OSError, ValueError) as exc:
            raise AttachmentCacheError(
                AttachmentCacheErrorKind.METADATA_DECODING_FAILED,
                str(exc),
            ) from exc

    def _read_metadata_or_none(self) -> AttachmentMetadata | None:
        try:
            return self._read_metadata()
        except AttachmentCacheError:
            logger.warning("Ignoring unreadable attachment metadata in %s", self._directory)
            return None

    def _load_current(self) -> AttachmentMetadata | None:
        metadata = self._read_metadata()
        if metadata is None:
            return None
        if not metadata.cached_location or not Path(metadata.cached_location).is_file():
            logger.info("Cached attachment %s lost its file; dropping metadata", metadata.id)
            try:
                self._metadata_path.unlink(missing_ok=True)
            except OSError:
                logger.warning("Could not drop stale attachment metadata", exc_info=True)
            return None
        return metadata

    def _update_metadata(self, metadata: AttachmentMetadata) -> None:
        if not metadata.cached_location or not Path(metadata.cached_location).is_file():
            raise AttachmentCacheError(AttachmentCacheErrorKind.MISSING_CACHED_FILE)
        try:
            _atomic_write_bytes(self._metadata_path, metadata.model_dump_json(indent=2).encode("utf-8"))
        except OSError as exc:
            raise _write_error(exc) from exc

    def _read_bytes(self, metadata: AttachmentMetadata) -> bytes:
        if not metadata.cached_location:
            raise AttachmentCacheError(AttachmentCacheErrorKind.MISSING_CACHED_FILE)
        try:
            return Path(metadata.cached_location).read_bytes()
        except OSError as exc:
            raise AttachmentCacheError(AttachmentCacheErrorKind.MISSING_CACHED_FILE, str(exc)) from exc

    def _clear_current(self) -> None:
        if not self._directory.exists():
            return
        try:
            for path in self._directory.iterdir():
                if path.is_file():
                    path.unlink(missing_ok=True)
        except OSError as exc:
            raise AttachmentCacheError(AttachmentCacheErrorKind.CLEAR_FAILED, str(exc)) from exc
