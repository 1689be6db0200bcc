from __future__ import annotations

_MAX_DISPLAY_NAME_LENGTH = 20
_TRUNCATED_NAME_LENGTH = 17
_KB = 1_000
_MB = 1_000_000


def display_file_name(file_name: str) -> str:
    if len(file_name) <= _MAX_DISPLAY_NAME_LENGTH:
        return file_name
    return f"{file_name[:_TRUNCATED_NAME_LENGTH]}..."


def format_file_size(size_bytes: int) -> str:
    """Human-readable decimal size, e.g. ``"2 KB"`` or ``"1.4 MB"``."""
    if size_bytes < _MB:
        return f"{round(size_bytes / _KB)} KB"
    megabytes = round(size_bytes / _MB, 1)
    if megabytes.is_integer():
        return f"{int(megabytes)} MB"
    return f"{megabytes} MB"
