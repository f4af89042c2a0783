"""Fixed-interval asyncio ticker driving the session cadences."""
import asyncio
from typing import Awaitable, Callable, Optional, Union
from safesignal.core.logging import logger

TickCallback = Callable[[float], Union[None, Awaitable[None]]]


class Ticker:
    """
    Calls ``callback(now)`` every ``interval`` seconds on the running loop.

    ``now`` is the scheduled tick time on the loop's monotonic clock, spaced
    exactly ``interval`` apart. A failing callback is logged and
    the ticker keeps running. ``stop()`` cancels synchronously so no further
    callback runs once it returns.
    """

    def __init__(self, interval: float, callback: TickCallback, name: str = "ticker"):
        if interval <= 0:
            raise ValueError(f"Ticker interval must be positive, got {interval}")
        self.interval = interval
        self.callback = callback
        self.name = name
        self._task: Optional[asyncio.Task] = None
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self) -> None:
        """Schedule the ticker on the running event loop (no-op if already running)."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.debug(f"Ticker {self.name} started ({self.interval}s)")

    def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        if self._task is not None:
            self._task.cancel()
            self._task = None
        logger.debug(f"Ticker {self.name} stopped")

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        next_tick = loop.time() + self.interval
        while self._running:
            await asyncio.sleep(max(next_tick - loop.time(), 0.0))
            if not self._running:
                break
            # Callbacks receive the scheduled time, not the wake-up time
            scheduled = next_tick
            next_tick += self.interval
            try:
                result = self.callback(scheduled)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.error(f"Ticker {self.name} callback failed: {e}", exc_info=True)
