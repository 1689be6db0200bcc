"""Image format detection by content signature.

Both the client pre-check and the server upload path decide the format from the
leading bytes only. Declared content types and filename extensions are ignored.
"""
from __future__ import annotations

from dataclasses import dataclass

MAX_PHOTO_SIZE_BYTES = 20 * 1024 * 1024

_HEADER_SAMPLE_BYTES = 32
_HEIC_BRANDS = {b"heic", b"heix", b"hevc", b"hevx", b"heim", b"heis"}
_HEIF_BRANDS = {b"mif1", b"msf1"}


@dataclass(frozen=True)
class ImageFormat:
    content_type: str
    extension: str
    label: str


JPEG = ImageFormat(content_type="image/jpeg", extension="jpeg", label="JPG")
PNG = ImageFormat(content_type="image/png", extension="png", label="PNG")
GIF = ImageFormat(content_type="image/gif", extension="gif", label="GIF")
WEBP = ImageFormat(content_type="image/webp", extension="webp", label="WEBP")
BMP = ImageFormat(content_type="image/bmp", extension="bmp", label="BMP")
TIFF = ImageFormat(content_type="image/tiff", extension="tiff", label="TIFF")
HEIC = ImageFormat(content_type="image/heic", extension="heic", label="HEIC")
HEIF = ImageFormat(content_type="image/heif", extension="heif", label="HEIF")

SUPPORTED_FORMATS: tuple[ImageFormat, ...] = (JPEG, PNG, GIF, WEBP, BMP, TIFF, HEIC, HEIF)
_BY_CONTENT_TYPE = {item.content_type: item for item in SUPPORTED_FORMATS}
_BY_EXTENSION = {item.extension: item for item in SUPPORTED_FORMATS}


def _detect_iso_bmff(header: bytes) -> ImageFormat | None:
    if len(header) < 12 or header[4:8] != b"ftyp":
        return None
    brand = header[8:12]
    if brand in _HEIC_BRANDS:
        return HEIC
    if brand in _HEIF_BRANDS:
        return HEIF
    return None


def detect_image_format(data: bytes) -> ImageFormat | None:
    """Return the image format whose signature matches ``data``, if any."""
    if not data:
        return None
    header = bytes(data[:_HEADER_SAMPLE_BYTES])
    if header.startswith(b"\xff\xd8"):
        return JPEG
    if header.startswith(b"\x89PNG\r\n\x1a\n"):
        return PNG
    if header.startswith((b"GIF87a", b"GIF89a")):
        return GIF
    if header.startswith(b"RIFF") and header[8:12] == b"WEBP":
        return WEBP
    if header.startswith(b"BM") and len(header) >= 14:
        return BMP
    if header.startswith((b"II*\x00", b"MM\x00*")):
        return TIFF
    return _detect_iso_bmff(header)


def is_supported_content_type(content_type: str) -> bool:
    return (content_type or "").strip().lower() in _BY_CONTENT_TYPE


def format_for_content_type(content_type: str) -> ImageFormat | None:
    return _BY_CONTENT_TYPE.get((content_type or "").strip().lower())


def format_for_extension(extension: str) -> ImageFormat | None:
    return _BY_EXTENSION.get((extension or "").strip().lower().lstrip("."))


def supported_formats_label() -> str:
    labels = [item.label for item in SUPPORTED_FORMATS]
    return f"{', '.join(labels[:-1])}, or {labels[-1]}"
