from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from server.db.models import Announcement

from .errors import AnnouncementMissingError


def _to_uuid(value: UUID | str) -> UUID | None:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        return None


async def find_by_id(session: AsyncSession, announcement_id: UUID | str) -> Announcement | None:
    announcement_uuid = _to_uuid(announcement_id)
    if announcement_uuid is None:
        return None
    stmt = select(Announcement).where(Announcement.id == announcement_uuid)
    return (await session.execute(stmt)).scalar_one_or_none()


async def update_photo_url(
    tx: AsyncSession,
    *,
    announcement_id: UUID,
    photo_url: str | None,
) -> None:
    stmt = (
        update(Announcement)
        .where(Announcement.id == announcement_id)
        .values(photo_url=photo_url, updated_at=func.now())
    )
    result = await tx.execute(stmt)
    if result.rowcount == 0:
        raise AnnouncementMissingError(f"Announcement '{announcement_id}' disappeared before update.")


async def list_photo_urls(
    session: AsyncSession,
    announcement_ids: list[UUID],
) -> dict[UUID, str | None]:
    if not announcement_ids:
        return {}
    stmt = select(Announcement.id, Announcement.photo_url).where(Announcement.id.in_(announcement_ids))
    rows = (await session.execute(stmt)).all()
    return {row.id: row.photo_url for row in rows}
