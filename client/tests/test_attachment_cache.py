from __future__ import annotations

import errno
import importlib
from datetime import datetime, timezone
from pathlib import Path

import pytest

from client.attachments.cache import AttachmentCacheError, AttachmentCacheErrorKind, LocalAttachmentCache
from client.attachments.types import AttachmentMetadata

cache_module = importlib.import_module("client.attachments.cache")

JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x00" * 60


def _metadata(attachment_id: str = "a1", *, file_name: str = "dog.jpg") -> AttachmentMetadata:
    return AttachmentMetadata(
        id=attachment_id,
        file_name=file_name,
        file_size_bytes=len(JPEG_BYTES),
        format_identifier="image/jpeg",
        created_at=datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc),
    )


@pytest.mark.asyncio
async def test_save_then_load_returns_metadata_with_location(tmp_path: Path):
    cache = LocalAttachmentCache(tmp_path)

    saved = await cache.save(JPEG_BYTES, _metadata())
    loaded = await cache.load_current()

    assert saved.cached_location == str(tmp_path / "report_missing_pet" / "a1.img")
    assert loaded == saved
    assert await cache.file_exists(saved.cached_location) is True
    assert await cache.read_bytes(saved) == JPEG_BYTES


@pytest.mark.asyncio
async def test_save_replaces_previous_entry(tmp_path: Path):
    cache = LocalAttachmentCache(tmp_path)
    first = await cache.save(JPEG_BYTES, _metadata("first"))

    second = await cache.save(JPEG_BYTES + b"\x01", _metadata("second"))

    assert (await cache.load_current()).id == "second"
    assert not Path(first.cached_location).exists()
    assert sorted(path.name for path in cache.directory.iterdir()) == ["metadata.json", "second.img"]
    assert await cache.read_bytes(second) == JPEG_BYTES + b"\x01"


@pytest.mark.asyncio
async def test_load_current_drops_metadata_when_blob_is_gone(tmp_path: Path):
    cache = LocalAttachmentCache(tmp_path)
    saved = await cache.save(JPEG_BYTES, _metadata())
    Path(saved.cached_location).unlink()

    assert await cache.load_current() is None
    assert not (cache.directory / "metadata.json").exists()


@pytest.mark.asyncio
async def test_load_current_on_empty_slot_returns_none(tmp_path: Path):
    assert await LocalAttachmentCache(tmp_path).load_current() is None


@pytest.mark.asyncio
async def test_unreadable_metadata_raises_decoding_error(tmp_path: Path):
    cache = LocalAttachmentCache(tmp_path)
    cache.directory.mkdir(parents=True)
    (cache.directory / "metadata.json").write_text('{"id": 3}', encoding="utf-8")

    with pytest.raises(AttachmentCacheError) as exc_info:
        await cache.load_current()

    assert exc_info.value.kind is AttachmentCacheErrorKind.METADATA_DECODING_FAILED


@pytest.mark.asyncio
async def test_clear_current_removes_blob_and_metadata(tmp_path: Path):
    cache = LocalAttachmentCache(tmp_path)
    await cache.save(JPEG_BYTES, _metadata())

    await cache.clear_current()

    assert list(cache.directory.iterdir()) == []
    assert await cache.load_current() is None


@pytest.mark.asyncio
async def test_read_bytes_for_missing_blob_raises(tmp_path: Path):
    cache = LocalAttachmentCache(tmp_path)
    metadata = _metadata().with_cached_location(tmp_path / "nowhere.img")

    with pytest.raises(AttachmentCacheError) as exc_info:
        await cache.read_bytes(metadata)

    assert exc_info.value.kind is AttachmentCacheErrorKind.MISSING_CACHED_FILE
    assert await cache.file_exists(metadata.cached_location) is False
    assert await cache.file_exists(None) is False


@pytest.mark.asyncio
async def test_update_metadata_persists_remote_url(tmp_path: Path):
    cache = LocalAttachmentCache(tmp_path)
    saved = await cache.save(JPEG_BYTES, _metadata())

    await cache.update_metadata(saved.with_remote_url("/images/abc.jpeg"))

    assert (await cache.load_current()).remote_url == "/images/abc.jpeg"


@pytest.mark.asyncio
async def test_directory_creation_failure_is_reported(tmp_path: Path):
    blocker = tmp_path / "blocker"
    blocker.write_text("file, not a directory", encoding="utf-8")
    cache = LocalAttachmentCache(blocker)

    with pytest.raises(AttachmentCacheError) as exc_info:
        await cache.save(JPEG_BYTES, _metadata())

    assert exc_info.value.kind is AttachmentCacheErrorKind.DIRECTORY_CREATION_FAILED


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("error_number", "kind"),
    [
        (errno.ENOSPC, AttachmentCacheErrorKind.LOW_DISK_SPACE),
        (errno.EACCES, AttachmentCacheErrorKind.WRITE_FAILED),
    ],
)
async def test_write_failures_map_to_error_kinds(monkeypatch, tmp_path: Path, error_number, kind):
    def _failing_write(_path, _value):
        raise OSError(error_number, "write failed")

    monkeypatch.setattr(cache_module, "_atomic_write_bytes", _failing_write)
    cache = LocalAttachmentCache(tmp_path)

    with pytest.raises(AttachmentCacheError) as exc_info:
        await cache.save(JPEG_BYTES, _metadata())

    assert exc_info.value.kind is kind
    assert await cache.load_current() is None
