from __future__ import annotations

import asyncio
from collections.abc import Callable


class NoticeScheduler:
    """Holds at most one pending auto-hide callback."""

    def __init__(self) -> None:
        self._handle: asyncio.TimerHandle | None = None

    @property
    def is_pending(self) -> bool:
        return self._handle is not None

    def schedule(self, duration_ms: int, on_fire: Callable[[], None]) -> None:
        self.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(max(0, duration_ms) / 1000, self._fire, on_fire)

    def cancel(self) -> None:
        if self._handle is None:
            return
        self._handle.cancel()
        self._handle = None

    def _fire(self, on_fire: Callable[[], None]) -> None:
        self._handle = None
        on_fire()
