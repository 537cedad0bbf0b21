"""
Tick scheduler for the apparatus simulation.

One asyncio task per session sleeps for the configured interval and applies a
single tick each time it wakes. A late wake applies one tick, never a
catch-up burst.
"""

import asyncio
import logging
from typing import Callable, Optional

from .apparatus import ApparatusModel

logger = logging.getLogger(__name__)


class ApparatusTicker:
    """Periodic driver for an ApparatusModel, bound to a session's lifetime."""

    def __init__(
        self,
        model: ApparatusModel,
        interval: float,
        on_tick: Optional[Callable[[ApparatusModel], None]] = None
    ):
        if interval <= 0:
            raise ValueError("Tick interval must be positive")
        self.model = model
        self.interval = interval
        self.on_tick = on_tick
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start ticking on the running event loop."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.debug(f"Started {self.model.kind.value} ticker every {self.interval}s")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            self.model.tick()
            if self.on_tick:
                self.on_tick(self.model)

    async def stop(self) -> None:
        """Cancel the tick task and wait for it to finish."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.debug(f"Stopped {self.model.kind.value} ticker after {self.model.tick_count} ticks")
