"""Cancellable periodic tasks and out-of-order response filtering."""

import asyncio
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


class ResponseSequencer:
    """Tags fetches with increasing numbers; only the newest completed one wins.

    A response whose fetch started before the last applied one is stale and
    must be dropped, even if it arrives later.
    """

    def __init__(self) -> None:
        self._issued = 0
        self._applied = 0

    def next(self) -> int:
        self._issued += 1
        return self._issued

    def accept(self, sequence: int) -> bool:
        if sequence <= self._applied:
            logger.debug("Dropping stale response #%d (applied #%d)", sequence, self._applied)
            return False
        self._applied = sequence
        return True


class PeriodicTask:
    """Runs `func` every `interval_seconds` between `start()` and `stop()`.

    Ticks never overlap: the next wait starts after the previous tick
    completes. `stop()` lets an in-flight tick finish.
    """

    def __init__(self, name: str, interval_seconds: float, func: Callable[[], Awaitable[object]]):
        self._name = name
        self._interval = interval_seconds
        self._func = func
        self._task: asyncio.Task | None = None
        self._stopping = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._stopping = asyncio.Event()
        self._task = asyncio.create_task(self._run(), name=self._name)
        logger.debug("Started %s (every %ss)", self._name, self._interval)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._stopping.set()
        task, self._task = self._task, None
        await task
        logger.debug("Stopped %s", self._name)

    async def _run(self) -> None:
        while not self._stopping.is_set():
            try:
                await self._func()
            except Exception:
                logger.exception("Error in %s tick", self._name)
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self._interval)
            except TimeoutError:
                pass
