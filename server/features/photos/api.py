from __future__ import annotations

from fastapi import APIRouter, Depends, File, HTTPException, Response, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from server.api.common import error_detail
from server.db.session import get_db_session
from shared.image_formats import MAX_PHOTO_SIZE_BYTES

from .errors import (
    AnnouncementNotFoundError,
    PayloadTooLargeError,
    PhotoStorageError,
    PhotoTransactionError,
    PhotoValidationError,
)
from .service import remove_photo, upload_photo
from .types import PhotoErrorResponse, PhotoUploadResponse

router = APIRouter(prefix="/api/v1/announcements", tags=["photos"])

_ERROR_RESPONSES = {
    400: {"model": PhotoErrorResponse},
    404: {"model": PhotoErrorResponse},
    413: {"model": PhotoErrorResponse},
    500: {"model": PhotoErrorResponse},
}

_READ_CHUNK_BYTES = 1024 * 1024


def _raise_http_error(exc: Exception) -> None:
    if isinstance(exc, PhotoValidationError):
        raise HTTPException(status_code=400, detail=error_detail(exc.code, str(exc))) from exc
    if isinstance(exc, PayloadTooLargeError):
        raise HTTPException(status_code=413, detail=error_detail(exc.code, str(exc))) from exc
    if isinstance(exc, AnnouncementNotFoundError):
        raise HTTPException(status_code=404, detail=error_detail(exc.code, str(exc))) from exc
    if isinstance(exc, (PhotoStorageError, PhotoTransactionError)):
        raise HTTPException(status_code=500, detail=error_detail(exc.code, str(exc))) from exc
    raise exc


async def _read_upload_limited(upload: UploadFile, *, max_size: int) -> bytes:
    # Stops one chunk past the ceiling; the service rejects anything above it.
    total = 0
    chunks: list[bytes] = []
    while True:
        chunk = await upload.read(_READ_CHUNK_BYTES)
        if not chunk:
            break
        chunks.append(chunk)
        total += len(chunk)
        if total > max_size:
            break
    return b"".join(chunks)


@router.post(
    "/{announcement_id}/photos",
    response_model=PhotoUploadResponse,
    status_code=status.HTTP_201_CREATED,
    responses=_ERROR_RESPONSES,
)
async def post_announcement_photo(
    announcement_id: str,
    photo: UploadFile | None = File(default=None),
    session: AsyncSession = Depends(get_db_session),
) -> PhotoUploadResponse:
    if photo is None:
        raise HTTPException(
            status_code=400,
            detail=error_detail("MISSING_PHOTO", "Multipart field 'photo' is required."),
        )
    payload = await _read_upload_limited(photo, max_size=MAX_PHOTO_SIZE_BYTES)
    try:
        photo_url = await upload_photo(
            session,
            announcement_id=announcement_id,
            payload=payload,
        )
    except Exception as exc:
        _raise_http_error(exc)
    return PhotoUploadResponse(photo_url=photo_url)


@router.delete(
    "/{announcement_id}/photos",
    status_code=status.HTTP_204_NO_CONTENT,
    responses=_ERROR_RESPONSES,
)
async def delete_announcement_photo(
    announcement_id: str,
    session: AsyncSession = Depends(get_db_session),
) -> Response:
    try:
        await remove_photo(session, announcement_id=announcement_id)
    except Exception as exc:
        _raise_http_error(exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
