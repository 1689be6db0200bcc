from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Coroutine
from typing import Any, Protocol, TypeVar, assert_never
from uuid import uuid4

from client.core.config import get_client_settings

from .notice import NoticeScheduler
from .preview import PreviewHandle, PreviewResourceManager
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
from .validation import SelectionRejectedError, precheck_selection, read_pixel_size

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AttachmentCache(Protocol):
    async def save(self, data: bytes, metadata: AttachmentMetadata) -> AttachmentMetadata: ...

    async def load_current(self) -> AttachmentMetadata | None: ...

    async def update_metadata(self, metadata: AttachmentMetadata) -> None: ...

    async def file_exists(self, location: str | None) -> bool: ...

    async def read_bytes(self, metadata: AttachmentMetadata) -> bytes: ...

    async def clear_current(self) -> None: ...


class UploadTransport(Protocol):
    async def upload_photo(
        self,
        *,
        announcement_id: str,
        data: bytes,
        file_name: str,
        content_type: str,
        management_password: str | None = None,
    ) -> str: ...


class Notices(Protocol):
    def schedule(self, duration_ms: int, on_fire: Callable[[], None]) -> None: ...

    def cancel(self) -> None: ...


class ClientAttachmentController:
    """Owns the photo slot status for one report form.

    Every async step runs under a generation number; a completion whose generation
    is no longer current is discarded. Cache operations are chained in the order
    they were issued.
    """

    def __init__(
        self,
        *,
        cache: AttachmentCache,
        previews: PreviewResourceManager,
        notices: Notices | None = None,
        transport: UploadTransport | None = None,
        notice_duration_ms: int | None = None,
        on_change: Callable[[ClientAttachmentController], None] | None = None,
    ):
        self._cache = cache
        self._previews = previews
        self._notices = notices if notices is not None else NoticeScheduler()
        self._transport = transport
        self._notice_duration_ms = (
            notice_duration_ms
            if notice_duration_ms is not None
            else get_client_settings().notice_duration_ms
        )
        self._on_change = on_change

        self._status: AttachmentStatus = Empty()
        self._message: AttachmentMessage | None = None
        self._generation = 0
        self._displayed: AttachmentMetadata | None = None
        self._confirmed_handle: PreviewHandle | None = None
        self._pending_handle: PreviewHandle | None = None
        self._mandatory_notice_visible = False
        self._io_tail: asyncio.Task[Any] | None = None
        self._tasks: set[asyncio.Task[Any]] = set()
        self._closed = False

    @property
    def status(self) -> AttachmentStatus:
        return self._status

    @property
    def message(self) -> AttachmentMessage | None:
        return self._message

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def mandatory_notice_visible(self) -> bool:
        return self._mandatory_notice_visible

    @property
    def card_metadata(self) -> AttachmentMetadata | None:
        match self._status:
            case Confirmed(metadata=metadata):
                return metadata
            case Loading():
                return self._displayed
            case Empty() | Error():
                return None
            case _ as unreachable:
                assert_never(unreachable)

    @property
    def preview_handle(self) -> PreviewHandle | None:
        match self._status:
            case Confirmed():
                return self._confirmed_handle
            case Loading():
                return self._pending_handle or self._confirmed_handle
            case Empty() | Error():
                return None
            case _ as unreachable:
                assert_never(unreachable)

    def select(self, selection: PhotoSelection) -> bool:
        self._ensure_open()
        try:
            image_format = precheck_selection(selection.data)
        except SelectionRejectedError as exc:
            logger.info(
                "Rejected photo selection (%d bytes): %s",
                len(selection.data),
                exc.message.value,
            )
            self._message = exc.message
            self._notify()
            return False

        self._generation += 1
        generation = self._generation
        self._displayed = self.card_metadata
        self._release_pending_handle()

        width, height = read_pixel_size(selection.data)
        metadata = AttachmentMetadata(
            id=uuid4().hex,
            file_name=selection.file_name,
            file_size_bytes=len(selection.data),
            format_identifier=image_format.content_type,
            pixel_width=width,
            pixel_height=height,
            source_asset_identifier=selection.source_asset_identifier,
        )
        self._pending_handle = self._previews.create(selection.data)
        self._set_status(Loading())
        self._spawn(self._persist(generation, selection.data, metadata))
        return True

    def cancel_selection(self) -> bool:
        if self._closed or not isinstance(self._status, Loading):
            return False
        self._generation += 1
        logger.info("Photo selection cancelled at generation %d", self._generation)
        self._discard_attachment(AttachmentMessage.SELECTION_CANCELLED)
        return True

    def remove(self) -> None:
        self._ensure_open()
        self._generation += 1
        self._discard_attachment(None)

    async def restore(self) -> AttachmentStatus:
        self._ensure_open()
        self._generation += 1
        generation = self._generation

        try:
            metadata = await self._run_io(self._cache.load_current)
            data: bytes | None = None
            if metadata is not None and await self._cache.file_exists(metadata.cached_location):
                data = await self._run_io(lambda: self._cache.read_bytes(metadata))
        except Exception:
            logger.warning("Restoring cached photo failed", exc_info=True)
            if self._owns(generation):
                self._discard_attachment(AttachmentMessage.SAVE_OR_LOAD_FAILED)
            return self._status

        if not self._owns(generation):
            logger.info("Discarding stale restore at generation %d", generation)
            return self._status

        if metadata is None:
            self._release_handles()
            self._set_status(Empty())
            return self._status

        if data is None or not self._is_restorable(data):
            logger.info("Cached photo %s is unusable; clearing slot", metadata.id)
            self._discard_attachment(None)
            return self._status

        self._release_handles()
        self._confirmed_handle = self._previews.create(data)
        self._displayed = None
        self._set_status(Confirmed(metadata))
        return self._status

    def request_continue(self) -> bool:
        match self._status:
            case Confirmed():
                return True
            case Empty() | Loading() | Error():
                self._show_mandatory_notice()
                return False
            case _ as unreachable:
                assert_never(unreachable)

    async def upload(
        self,
        announcement_id: str,
        *,
        management_password: str | None = None,
    ) -> str | None:
        self._ensure_open()
        if self._transport is None:
            raise RuntimeError("No upload transport configured.")
        if not isinstance(self._status, Confirmed):
            self._show_mandatory_notice()
            return None

        metadata = self._status.metadata
        self._generation += 1
        generation = self._generation
        self._displayed = metadata
        self._set_status(Loading())

        try:
            data = await self._run_io(lambda: self._cache.read_bytes(metadata))
            remote_url = await self._transport.upload_photo(
                announcement_id=announcement_id,
                data=data,
                file_name=metadata.file_name,
                content_type=metadata.format_identifier,
                management_password=management_password,
            )
        except Exception:
            if self._is_current(generation):
                logger.warning("Uploading photo %s failed", metadata.id, exc_info=True)
                self._discard_attachment(AttachmentMessage.SAVE_OR_LOAD_FAILED)
            else:
                logger.info("Discarding failed upload for superseded generation %d", generation)
            return None

        if not self._is_current(generation):
            logger.info("Discarding stale upload result for generation %d", generation)
            return None

        uploaded = metadata.with_remote_url(remote_url)
        self._displayed = None
        self._set_status(Confirmed(uploaded))
        self._spawn(self._remember_remote_url(uploaded))
        return remote_url

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._generation += 1
        self._notices.cancel()
        self._mandatory_notice_visible = False
        self._release_handles()

    async def aclose(self) -> None:
        self.close()
        await self.wait_idle()

    async def wait_idle(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _persist(self, generation: int, data: bytes, metadata: AttachmentMetadata) -> None:
        try:
            saved = await self._run_io(lambda: self._cache.save(data, metadata))
        except Exception:
            if not self._is_current(generation):
                logger.info("Discarding failed save of superseded photo %s", metadata.id)
                return
            logger.warning("Saving photo %s failed", metadata.id, exc_info=True)
            self._discard_attachment(AttachmentMessage.SAVE_OR_LOAD_FAILED)
            return

        if not self._is_current(generation):
            logger.info("Discarding stale save of photo %s", saved.id)
            await self._clear_slot(only_id=saved.id)
            return

        if self._confirmed_handle is not None:
            self._previews.release(self._confirmed_handle)
        self._confirmed_handle, self._pending_handle = self._pending_handle, None
        self._displayed = None
        self._set_status(Confirmed(saved))

    async def _remember_remote_url(self, metadata: AttachmentMetadata) -> None:
        try:
            await self._run_io(lambda: self._cache.update_metadata(metadata))
        except Exception:
            logger.warning("Could not record remote url for photo %s", metadata.id, exc_info=True)

    async def _clear_slot(self, *, only_id: str | None = None) -> None:
        async def _clear() -> None:
            if only_id is not None:
                current = await self._cache.load_current()
                if current is None or current.id != only_id:
                    return
            await self._cache.clear_current()

        try:
            await self._run_io(_clear)
        except Exception:
            logger.warning("Clearing cached photo failed", exc_info=True)

    async def _run_io(self, operation: Callable[[], Awaitable[T]]) -> T:
        task = asyncio.create_task(self._after(self._io_tail, operation))
        self._io_tail = task
        return await task

    @staticmethod
    async def _after(previous: asyncio.Task[Any] | None, operation: Callable[[], Awaitable[T]]) -> T:
        if previous is not None and not previous.done():
            await asyncio.wait({previous})
        return await operation()

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _is_current(self, generation: int) -> bool:
        return self._owns(generation) and isinstance(self._status, Loading)

    def _owns(self, generation: int) -> bool:
        return not self._closed and generation == self._generation

    @staticmethod
    def _is_restorable(data: bytes) -> bool:
        try:
            precheck_selection(data)
        except SelectionRejectedError:
            return False
        return True

    def _discard_attachment(self, message: AttachmentMessage | None) -> None:
        self._release_handles()
        self._displayed = None
        self._set_status(Empty(), message=message)
        self._spawn(self._clear_slot())

    def _release_pending_handle(self) -> None:
        if self._pending_handle is not None:
            self._previews.release(self._pending_handle)
            self._pending_handle = None

    def _release_handles(self) -> None:
        self._release_pending_handle()
        if self._confirmed_handle is not None:
            self._previews.release(self._confirmed_handle)
            self._confirmed_handle = None

    def _show_mandatory_notice(self) -> None:
        self._mandatory_notice_visible = True
        self._notices.schedule(self._notice_duration_ms, self._hide_mandatory_notice)
        self._notify()

    def _hide_mandatory_notice(self) -> None:
        self._mandatory_notice_visible = False
        self._notify()

    def _set_status(self, status: AttachmentStatus, *, message: AttachmentMessage | None = None) -> None:
        self._status = status
        self._message = message
        if isinstance(status, Confirmed) and self._mandatory_notice_visible:
            self._notices.cancel()
            self._mandatory_notice_visible = False
        self._notify()

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change(self)

    def _ensure_open(self) -> None:
        if self._closed:
            raise RuntimeError("Attachment controller is closed.")
