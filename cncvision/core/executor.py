"""Single-flight FIFO executor for pipeline invocations."""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Union

from .notify import NullObserver, notify
from .vision.config_defaults import FAILURE_MESSAGE_MS, SETTLE_DELAY_S

logger = logging.getLogger(__name__)

Invocation = Callable[[], Union[Any, Awaitable[Any]]]


@dataclass
class Task:
    invocation: Invocation
    description: str
    completion: "asyncio.Future[Any]"


class TaskExecutor:
    """Run submitted invocations one at a time, in submission order.

    A worker coroutine is started on the first submission and exits when the
    queue is empty. Each invocation is bracketed by ``progress_started`` /
    ``progress_ended`` notifications; failures settle only their own future
    and never stop the queue. After every invocation the worker sleeps for
    ``settle_delay`` seconds so the event loop can service other work.
    """

    def __init__(self, observer: Optional[object] = None, settle_delay: float = SETTLE_DELAY_S) -> None:
        self.observer = observer or NullObserver()
        self.settle_delay = max(0.0, float(settle_delay))
        self._queue: "asyncio.Queue[Task]" = asyncio.Queue()
        self._worker: Optional[asyncio.Task] = None
        self._current: Optional[Task] = None

    # Public API --------------------------------------------------------------

    def submit(self, invocation: Invocation, description: str = "task") -> "asyncio.Future[Any]":
        """Queue ``invocation`` and return a future settled with its outcome.

        Must be called from a running event loop.
        """
        loop = asyncio.get_running_loop()
        task = Task(invocation=invocation, description=description, completion=loop.create_future())
        self._queue.put_nowait(task)
        logger.debug("[EXECUTOR] queued '%s' (%d pending)", description, self._queue.qsize())
        if self._worker is None or self._worker.done():
            self._worker = loop.create_task(self._drain())
        return task.completion

    def clear(self) -> int:
        """Drop every task that has not started yet. Their futures stay pending.

        An invocation already running still completes; the worker stops once
        it is done.
        """
        dropped = 0
        while True:
            try:
                self._queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            self._queue.task_done()
            dropped += 1
        if dropped:
            logger.info("[EXECUTOR] cleared %d pending task(s)", dropped)
        return dropped

    def queue_length(self) -> int:
        return self._queue.qsize()

    @property
    def is_running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    @property
    def busy(self) -> bool:
        """True while an invocation is executing (not during the settle delay)."""
        return self._current is not None

    @property
    def current_description(self) -> Optional[str]:
        return self._current.description if self._current is not None else None

    async def join(self) -> None:
        """Wait until every queued task has been processed or cleared."""
        await self._queue.join()
        if self._worker is not None and not self._worker.done():
            await self._worker

    # Internals ---------------------------------------------------------------

    async def _drain(self) -> None:
        """Consume queued tasks sequentially."""
        while True:
            try:
                task = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            try:
                await self._run(task)
            finally:
                self._queue.task_done()
            await asyncio.sleep(self.settle_delay)

    async def _run(self, task: Task) -> None:
        self._current = task
        notify(self.observer, "progress_started", task.description)
        try:
            result = task.invocation()
            if inspect.isawaitable(result):
                result = await result
        except Exception as exc:
            logger.error("[EXECUTOR] '%s' failed: %s", task.description, exc, exc_info=True)
            notify(
                self.observer,
                "user_message",
                f"Failed: {task.description}: {exc}",
                FAILURE_MESSAGE_MS,
            )
            if not task.completion.done():
                task.completion.set_exception(exc)
        else:
            if not task.completion.done():
                task.completion.set_result(result)
        finally:
            self._current = None
            notify(self.observer, "progress_ended")
