import asyncio
import logging
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)


class AsyncDebouncer:
    """
    Run only the latest scheduled coroutine, once `delay` seconds pass with no
    newer call. Each `call` cancels whatever is still waiting.
    """

    def __init__(self, delay: float):
        self.delay = delay
        self._task: asyncio.Task | None = None

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def call(self, fn: Callable[[], Awaitable[None]]) -> None:
        self.cancel()
        self._task = asyncio.get_running_loop().create_task(self._run(fn))

    async def _run(self, fn: Callable[[], Awaitable[None]]) -> None:
        await asyncio.sleep(self.delay)
        try:
            await fn()
        except asyncio.CancelledError:
            raise
        except Exception:
            # Superseded tasks are never awaited.
            logger.exception("debounced call failed")

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def wait(self) -> None:
        """Wait for the pending call, if any, to finish."""
        task = self._task
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            pass
