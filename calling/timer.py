"""
Duration timer — recurring asyncio tick while a call is Connected.

Each tick reports the session's wall-clock duration, so a host that was
throttled or suspended shows the right value on its next tick.
"""
from __future__ import annotations

import asyncio
import structlog
from typing import Callable, Optional

logger = structlog.get_logger()


class DurationTimer:

    def __init__(self, interval: float, on_tick: Callable[[], None]):
        self.interval = interval
        self._on_tick = on_tick
        self._task: Optional[asyncio.Task] = None
        self.ticks = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start ticking. Requires a running event loop."""
        if self.running:
            return
        self.ticks = 0
        self._task = asyncio.get_running_loop().create_task(self._run())

    def stop(self) -> None:
        if self._task is not None:
            if not self._task.done():
                self._task.cancel()
            self._task = None

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            self.ticks += 1
            try:
                self._on_tick()
            except Exception as e:
                logger.error("duration_tick_failed", error=str(e))
