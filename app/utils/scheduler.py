import asyncio
import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class PeriodicTask:
    """
    Run a blocking job every ``interval`` seconds on the running event loop.

    The job runs in a worker thread so store calls never block request
    handling. Exceptions are logged and the job runs again on the next tick.
    """

    def __init__(self, name: str, job: Callable[[], object], interval: float):
        self.name = name
        self.job = job
        self.interval = interval
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name=self.name)
        logger.info("Started %s (every %ss).", self.name, self.interval)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Stopped %s.", self.name)

    async def run_once(self) -> object:
        try:
            return await asyncio.to_thread(self.job)
        except Exception:
            logger.exception("Error during %s.", self.name)
            return None

    async def _loop(self) -> None:
        while True:
            await self.run_once()
            await asyncio.sleep(self.interval)
