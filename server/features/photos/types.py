from __future__ import annotations

from pydantic import BaseModel


class PhotoUploadResponse(BaseModel):
    photo_url: str


class PhotoErrorDetail(BaseModel):
    code: str
    message: str


class PhotoErrorResponse(BaseModel):
    detail: PhotoErrorDetail
