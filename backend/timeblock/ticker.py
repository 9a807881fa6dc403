from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class DisplayTicker:
    """Re-render elapsed times periodically while the display target is live.

    The ticker only reads; ``render`` is expected to recompute durations from
    stored timestamps and the current time.
    """

    def __init__(
        self,
        render: Callable[[], Awaitable[None]],
        *,
        interval: float,
        is_live: Callable[[], bool],
    ) -> None:
        self._render = render
        self.interval = max(float(interval), 0.01)
        self._is_live = is_live
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run())

    async def _run(self) -> None:
        while self._is_live():
            try:
                await self._render()
            except Exception:
                logger.exception("Display refresh failed, stopping ticker")
                return
            await asyncio.sleep(self.interval)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
