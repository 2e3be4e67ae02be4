import asyncio
import logging
from collections.abc import Coroutine

logger = logging.getLogger(__name__)


class BackgroundTasks:
    """Fire-and-forget tasks that stay observable and cancellable.

    Callers do not await spawned work. Failures are logged from a done
    callback and ``shutdown`` cancels whatever is still running.
    """

    def __init__(self):
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Coroutine, name: str) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.info(f'Background task {task.get_name()} cancelled')
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                f'Background task {task.get_name()} failed: {exc}',
                exc_info=(type(exc), exc, exc.__traceback__),
                extra={'task': task.get_name()},
            )

    async def wait(self) -> None:
        """Wait for the tasks pending right now to finish."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info(f'Background tasks stopped ({len(tasks)} cancelled)')
