import asyncio
from typing import Coroutine

from shared.helper.HelperConfig import HelperConfig


class TaskSupervisor:
    """Bounded, tracked runner for fire-and-forget background work.

    At most ``CV_WORKER_CONCURRENCY`` jobs run at once. Every submitted task is
    kept referenced until it finishes, failures are logged with traceback and
    counted, and :meth:`shutdown` drains or cancels whatever is still pending.
    """

    def __init__(self, helper_config: HelperConfig, concurrency: int | None = None) -> None:
        self.logging = helper_config.get_logger()
        if concurrency is None:
            concurrency = helper_config.get_positive_int("CV_WORKER_CONCURRENCY", default=4)
        if concurrency < 1:
            raise ValueError(f"Worker concurrency must be at least 1. Got: {concurrency}")
        self.concurrency = concurrency
        self._sem = asyncio.Semaphore(concurrency)
        self._tasks: set[asyncio.Task] = set()
        self.completed = 0
        self.failed = 0

    ##########################################
    ################ GETTER ##################
    ##########################################

    def pending_count(self) -> int:
        return len(self._tasks)

    ##########################################
    ################ RUNNING #################
    ##########################################

    async def _run(self, name: str, coro: Coroutine) -> None:
        try:
            async with self._sem:
                await coro
            self.completed += 1
        except asyncio.CancelledError:
            # cancelled while waiting for a slot: the coroutine was never started
            coro.close()
            self.logging.warning("Background task '%s' was cancelled.", name)
            raise
        except Exception:
            self.failed += 1
            self.logging.exception("Background task '%s' failed.", name)

    def submit(self, name: str, coro: Coroutine) -> asyncio.Task:
        """Schedule ``coro`` on the running loop and return its task.

        Must be called from within the event loop.
        """
        task = asyncio.create_task(self._run(name, coro), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def wait_idle(self) -> None:
        """Wait until every submitted task, including ones submitted meanwhile, has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self, timeout: float = 10.0) -> None:
        """Drain pending tasks for up to ``timeout`` seconds, then cancel the rest."""
        if not self._tasks:
            return
        self.logging.info("Waiting for %d background task(s) to finish...", len(self._tasks))
        try:
            await asyncio.wait_for(self.wait_idle(), timeout=timeout)
        except asyncio.TimeoutError:
            remaining = list(self._tasks)
            self.logging.warning("Cancelling %d background task(s) still running after %.1fs.", len(remaining), timeout)
            for task in remaining:
                task.cancel()
            await asyncio.gather(*remaining, return_exceptions=True)
