from __future__ import annotations

import io
import logging

from PIL import Image, UnidentifiedImageError

from shared.image_formats import MAX_PHOTO_SIZE_BYTES, ImageFormat, detect_image_format

from .types import AttachmentMessage

logger = logging.getLogger(__name__)


class SelectionRejectedError(Exception):
    def __init__(self, message: AttachmentMessage):
        super().__init__(message.text)
        self.message = message


def precheck_selection(data: bytes) -> ImageFormat:
    if not data:
        raise SelectionRejectedError(AttachmentMessage.UNSUPPORTED_FORMAT)
    if len(data) > MAX_PHOTO_SIZE_BYTES:
        raise SelectionRejectedError(AttachmentMessage.FILE_TOO_LARGE)
    image_format = detect_image_format(data)
    if image_format is None:
        raise SelectionRejectedError(AttachmentMessage.UNSUPPORTED_FORMAT)
    return image_format


def read_pixel_size(data: bytes) -> tuple[int | None, int | None]:
    """Best-effort pixel dimensions from the image header."""
    try:
        with Image.open(io.BytesIO(data)) as image:
            width, height = image.size
    except (
        UnidentifiedImageError,
        Image.DecompressionBombError,
        OSError,
        ValueError,
        SyntaxError,
        IndexError,
    ):
        logger.debug("Pixel size unavailable for %d byte selection", len(data), exc_info=True)
        return None, None
    return width, height
