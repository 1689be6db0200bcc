from __future__ import annotations

import logging

from client.core.config import ClientSettings, get_client_settings

from .cache import AttachmentCacheError, LocalAttachmentCache
from .controller import AttachmentCache, ClientAttachmentController, Notices, UploadTransport
from .notice import NoticeScheduler
from .preview import PreviewResourceManager, TempFilePreviewManager
from .transport import UploadTransportClient
from .types import AttachmentStatus

logger = logging.getLogger(__name__)


class ReportSession:
    """The single photo slot of the missing-pet report currently being drafted."""

    def __init__(
        self,
        *,
        settings: ClientSettings | None = None,
        cache: AttachmentCache | None = None,
        previews: PreviewResourceManager | None = None,
        notices: Notices | None = None,
        transport: UploadTransport | None = None,
    ):
        settings = settings or get_client_settings()
        self.cache = cache if cache is not None else LocalAttachmentCache(settings.cache_dir)
        self.photo = ClientAttachmentController(
            cache=self.cache,
            previews=previews if previews is not None else TempFilePreviewManager(),
            notices=notices if notices is not None else NoticeScheduler(),
            transport=(
                transport
                if transport is not None
                else UploadTransportClient(
                    settings.api_base_url,
                    timeout_seconds=settings.upload_timeout_seconds,
                )
            ),
            notice_duration_ms=settings.notice_duration_ms,
        )

    async def start(self) -> AttachmentStatus:
        return await self.photo.restore()

    async def submit_photo(
        self,
        announcement_id: str,
        *,
        management_password: str | None = None,
    ) -> str | None:
        return await self.photo.upload(announcement_id, management_password=management_password)

    async def clear(self) -> None:
        """Tear down the slot after the report is submitted or abandoned."""
        await self.photo.aclose()
        try:
            await self.cache.clear_current()
        except AttachmentCacheError:
            logger.warning("Could not clear cached report photo", exc_info=True)
