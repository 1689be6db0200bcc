from __future__ import annotations

import logging

import httpx

from client.core.config import get_client_settings

logger = logging.getLogger(__name__)

_PHOTO_FIELD = "photo"


class UploadTransportError(Exception):
    def __init__(self, message: str, *, status_code: int | None = None, code: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.code = code


def _error_code(response: httpx.Response) -> str | None:
    try:
        payload = response.json()
    except ValueError:
        return None
    detail = payload.get("detail") if isinstance(payload, dict) else None
    if isinstance(detail, dict):
        code = detail.get("code")
        return code if isinstance(code, str) else None
    return None


class UploadTransportClient:
    """Posts a confirmed photo to ``/api/v1/announcements/{id}/photos``."""

    def __init__(
        self,
        base_url: str | None = None,
        *,
        timeout_seconds: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        settings = get_client_settings()
        self._base_url = (base_url or settings.api_base_url).rstrip("/")
        self._timeout = timeout_seconds if timeout_seconds is not None else settings.upload_timeout_seconds
        self._transport = transport

    async def upload_photo(
        self,
        *,
        announcement_id: str,
        data: bytes,
        file_name: str,
        content_type: str,
        management_password: str | None = None,
    ) -> str:
        auth = httpx.BasicAuth(announcement_id, management_password) if management_password else None
        url = f"/api/v1/announcements/{announcement_id}/photos"
        try:
            async with httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                transport=self._transport,
            ) as client:
                response = await client.post(
                    url,
                    files={_PHOTO_FIELD: (file_name, data, content_type)},
                    auth=auth,
                )
        except httpx.HTTPError as exc:
            logger.warning("Photo upload for announcement %s failed: %s", announcement_id, exc)
            raise UploadTransportError(f"Photo upload failed: {exc}") from exc

        if response.status_code != 201:
            code = _error_code(response)
            logger.warning(
                "Photo upload for announcement %s rejected with %d (%s)",
                announcement_id,
                response.status_code,
                code,
            )
            raise UploadTransportError(
                f"Photo upload rejected with status {response.status_code}.",
                status_code=response.status_code,
                code=code,
            )

        try:
            photo_url = response.json().get("photo_url")
        except (ValueError, AttributeError) as exc:
            raise UploadTransportError("Photo upload returned an unreadable body.", status_code=201) from exc
        if not isinstance(photo_url, str) or not photo_url:
            raise UploadTransportError("Photo upload response is missing photo_url.", status_code=201)
        logger.info("Uploaded photo for announcement %s (%d bytes)", announcement_id, len(data))
        return photo_url
