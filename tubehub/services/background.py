"""
Fire-and-forget task dispatcher.

Side effects that must not hold up or fail a response (view counting) are
submitted here as detached asyncio tasks. The dispatcher keeps a reference
to every running task, logs failures, and drains what is left at shutdown.
"""
import asyncio
import logging
from typing import Awaitable, Set

logger = logging.getLogger(__name__)


class BackgroundDispatcher:
    """Owns detached tasks for the lifetime of the application."""

    def __init__(self, shutdown_timeout: float = 5.0):
        self.shutdown_timeout = shutdown_timeout
        self._tasks: Set[asyncio.Task] = set()
        self._closed = False

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def submit(self, coro: Awaitable, name: str = "background") -> bool:
        """
        Schedule a coroutine without awaiting it.

        Returns:
            True if scheduled, False if the dispatcher is shut down
        """
        if self._closed:
            logger.warning(f"Dropping background task {name}: dispatcher is shut down")
            coro.close()
            return False

        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return True

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.info(f"Background task {task.get_name()} cancelled")
            return
        error = task.exception()
        if error is not None:
            logger.error(
                f"Background task {task.get_name()} failed: {type(error).__name__}: {error}",
                exc_info=error,
            )

    async def drain(self) -> None:
        """Wait for outstanding tasks."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        """Stop accepting work and wait for running tasks, cancelling stragglers."""
        self._closed = True
        if not self._tasks:
            return

        tasks = list(self._tasks)
        logger.info(f"Shutting down: waiting for {len(tasks)} background task(s)...")
        done, pending = await asyncio.wait(tasks, timeout=self.shutdown_timeout)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            logger.warning(f"Cancelled {len(pending)} background task(s) still running at shutdown")
