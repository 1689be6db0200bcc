from __future__ import annotations

import logging
import os
import stat
import time
from pathlib import Path, PurePosixPath
from uuid import UUID, uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from server.core.config import get_settings
from server.db.utils import with_transaction
from server.features.announcements import repo
from shared.image_formats import MAX_PHOTO_SIZE_BYTES, detect_image_format

from .errors import (
    AnnouncementNotFoundError,
    PayloadTooLargeError,
    PhotoStorageError,
    PhotoTransactionError,
    PhotoValidationError,
)

logger = logging.getLogger(__name__)


def photo_storage_root() -> Path:
    settings = get_settings()
    root = Path(settings.photo_storage_dir)
    if not root.is_absolute():
        project_root = Path(__file__).resolve().parents[3]
        root = project_root / root
    root.mkdir(parents=True, exist_ok=True)
    return root


def canonical_photo_url(announcement_id: UUID | str, extension: str) -> str:
    prefix = get_settings().photo_public_prefix.rstrip("/")
    return f"{prefix}/{announcement_id}.{extension}"


def _blob_path(root: Path, announcement_id: UUID, extension: str) -> Path:
    return root / f"{announcement_id}.{extension}"


def _url_file_name(photo_url: str) -> str:
    return PurePosixPath(photo_url.strip()).name


def _write_blob(path: Path, payload: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(f"{path.name}.{uuid4().hex}.tmp")
    try:
        tmp_path.write_bytes(payload)
        os.replace(tmp_path, path)
    finally:
        if tmp_path.exists():
            tmp_path.unlink()


def _parse_blob_owner(file_name: str) -> UUID | None:
    head = file_name.split(".", 1)[0]
    try:
        return UUID(head)
    except ValueError:
        return None


async def upload_photo(
    session: AsyncSession,
    *,
    announcement_id: UUID | str,
    payload: bytes,
    destination_root: Path | None = None,
) -> str:
    """Validate ``payload``, store it for the announcement and link its canonical URL.

    Checks run cheapest first and nothing is written until all of them pass. The
    blob is written before the database update; if that update fails the blob stays
    on disk and is left for ``sweep_orphan_photos``. Blobs of the same announcement in
    another format are left in place too; the sweep removes them once they fall out of
    the grace period, so a concurrent upload never loses the file it just linked.
    """
    size_bytes = len(payload)
    if size_bytes > MAX_PHOTO_SIZE_BYTES:
        logger.info(
            "Rejected photo for announcement %s: %d bytes exceeds limit",
            announcement_id,
            size_bytes,
        )
        raise PayloadTooLargeError(
            f"Photo exceeds max size of {MAX_PHOTO_SIZE_BYTES} bytes."
        )

    image_format = detect_image_format(payload)
    if image_format is None:
        logger.info("Rejected photo for announcement %s: unrecognized signature", announcement_id)
        raise PhotoValidationError("Photo content is not a supported image format.")

    announcement = await repo.find_by_id(session, announcement_id)
    if announcement is None:
        raise AnnouncementNotFoundError(f"Announcement '{announcement_id}' was not found.")

    root = destination_root or photo_storage_root()
    blob_path = _blob_path(root, announcement.id, image_format.extension)
    photo_url = canonical_photo_url(announcement.id, image_format.extension)

    try:
        _write_blob(blob_path, payload)
    except OSError as exc:
        logger.error("Writing photo blob %s failed", blob_path.name, exc_info=True)
        raise PhotoStorageError(f"Could not store photo for announcement '{announcement.id}'.") from exc

    async def _link_photo(tx: AsyncSession) -> None:
        await repo.update_photo_url(tx, announcement_id=announcement.id, photo_url=photo_url)

    try:
        await with_transaction(session, _link_photo)
    except Exception as exc:
        logger.error(
            "Linking photo %s failed; blob left on disk for reconciliation",
            blob_path.name,
            exc_info=True,
        )
        raise PhotoTransactionError(
            f"Could not link photo to announcement '{announcement.id}'."
        ) from exc

    logger.info(
        "Stored photo for announcement %s (%s, %d bytes)",
        announcement.id,
        image_format.content_type,
        size_bytes,
    )
    return photo_url


def delete_photo(photo_url: str | None, *, destination_root: Path | None = None) -> bool:
    """Best-effort removal of a stored photo. Returns ``True`` when a file was removed."""
    if not photo_url or not photo_url.strip():
        return False
    file_name = _url_file_name(photo_url)
    if not file_name:
        return False

    root = destination_root or photo_storage_root()
    try:
        (root / file_name).unlink()
    except FileNotFoundError:
        logger.info("Photo %s was already gone", file_name)
        return False
    except OSError:
        logger.warning("Could not delete photo %s", file_name, exc_info=True)
        return False
    return True


async def remove_photo(
    session: AsyncSession,
    *,
    announcement_id: UUID | str,
    destination_root: Path | None = None,
) -> None:
    announcement = await repo.find_by_id(session, announcement_id)
    if announcement is None:
        raise AnnouncementNotFoundError(f"Announcement '{announcement_id}' was not found.")
    previous_url = announcement.photo_url
    if previous_url is None:
        return

    async def _unlink_photo(tx: AsyncSession) -> None:
        await repo.update_photo_url(tx, announcement_id=announcement.id, photo_url=None)

    try:
        await with_transaction(session, _unlink_photo)
    except Exception as exc:
        raise PhotoTransactionError(
            f"Could not unlink photo from announcement '{announcement.id}'."
        ) from exc
    delete_photo(previous_url, destination_root=destination_root)


async def sweep_orphan_photos(
    session: AsyncSession,
    *,
    destination_root: Path | None = None,
    grace_seconds: int | None = None,
    now: float | None = None,
) -> list[str]:
    """Delete blobs that no announcement references.

    Only files older than the grace period are considered so an upload that is
    still between its write and its commit is never touched.
    """
    root = destination_root or photo_storage_root()
    if not root.exists():
        return []
    grace = get_settings().photo_orphan_grace_seconds if grace_seconds is None else grace_seconds
    cutoff = (time.time() if now is None else now) - max(0, grace)

    candidates: dict[UUID, list[Path]] = {}
    for path in root.iterdir():
        owner = _parse_blob_owner(path.name)
        if owner is None:
            continue
        try:
            file_stat = path.stat()
        except FileNotFoundError:
            # Renamed or removed by an upload since the listing.
            continue
        if not stat.S_ISREG(file_stat.st_mode) or file_stat.st_mtime > cutoff:
            continue
        candidates.setdefault(owner, []).append(path)

    if not candidates:
        return []

    linked_urls = await repo.list_photo_urls(session, list(candidates))
    removed: list[str] = []
    for owner, paths in candidates.items():
        linked_url = linked_urls.get(owner)
        linked_name = _url_file_name(linked_url) if linked_url else None
        for path in paths:
            if path.name == linked_name:
                continue
            try:
                path.unlink()
            except OSError:
                logger.warning("Could not delete orphan photo %s", path.name, exc_info=True)
                continue
            logger.info("Deleted orphan photo %s", path.name)
            removed.append(path.name)
    return sorted(removed)
