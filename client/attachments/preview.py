from __future__ import annotations

import logging
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol
from uuid import uuid4

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PreviewHandle:
    token: str
    location: str | None = None


class PreviewResourceManager(Protocol):
    def create(self, data: bytes) -> PreviewHandle: ...

    def release(self, handle: PreviewHandle) -> None: ...


class TempFilePreviewManager:
    """Previews backed by temporary files. Releasing a handle twice is a no-op."""

    def __init__(self, directory: Path | None = None):
        self._directory = directory
        self._live: dict[str, Path] = {}

    @property
    def live_count(self) -> int:
        return len(self._live)

    def create(self, data: bytes) -> PreviewHandle:
        if self._directory is not None:
            self._directory.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            dir=self._directory,
            prefix="petspot-preview-",
            suffix=".img",
            delete=False,
        ) as handle_file:
            handle_file.write(data)
            path = Path(handle_file.name)
        token = uuid4().hex
        self._live[token] = path
        return PreviewHandle(token=token, location=str(path))

    def release(self, handle: PreviewHandle) -> None:
        path = self._live.pop(handle.token, None)
        if path is None:
            return
        try:
            path.unlink(missing_ok=True)
        except OSError:
            logger.warning("Could not remove preview file %s", path, exc_info=True)

    def release_all(self) -> None:
        for token in list(self._live):
            self.release(PreviewHandle(token=token))


class InMemoryPreviewManager:
    def __init__(self):
        self._live: dict[str, bytes] = {}
        self.created = 0
        self.released = 0

    @property
    def live_count(self) -> int:
        return len(self._live)

    def create(self, data: bytes) -> PreviewHandle:
        token = uuid4().hex
        self._live[token] = data
        self.created += 1
        return PreviewHandle(token=token)

    def release(self, handle: PreviewHandle) -> None:
        if self._live.pop(handle.token, None) is not None:
            self.released += 1

    def data_for(self, handle: PreviewHandle) -> bytes | None:
        return self._live.get(handle.token)
