"""Recurring background task on the running event loop."""

import asyncio
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


class BackgroundScheduler:
    """Awaits ``callback`` every ``interval_ms`` until stopped.

    Failures of the callback are logged and the schedule continues.

    Example:
        ```python
        scheduler = BackgroundScheduler(60_000, cache.cleanup, name="cleanup")
        scheduler.start()
        ...
        await scheduler.stop()
        ```
    """

    def __init__(
        self,
        interval_ms: float,
        callback: Callable[[], Awaitable[object]],
        name: str = "background",
    ) -> None:
        self.interval_ms = interval_ms
        self._callback = callback
        self._name = name
        self._task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Schedule the loop on the running event loop.

        Raises:
            RuntimeError: If no event loop is running
        """
        if self.is_running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name=f"{self._name}-scheduler")
        logger.debug("Started %s scheduler (every %.0fms)", self._name, self.interval_ms)

    def cancel(self) -> asyncio.Task | None:
        """Request cancellation without waiting; returns the cancelled task."""
        task, self._task = self._task, None
        if task is None or task.done():
            return None
        task.cancel()
        return task

    async def stop(self) -> None:
        """Cancel the loop and wait for it to finish."""
        task = self.cancel()
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.debug("Stopped %s scheduler", self._name)

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_ms / 1000)
            try:
                await self._callback()
            except Exception:
                logger.exception("Scheduled %s task failed", self._name)
