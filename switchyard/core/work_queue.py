"""
Serial job queues.

Every mutation (scan, write, sync, install) goes through one queue so that
jobs run strictly one at a time in submission order. Point status queries
go through a second queue so they never wait behind a slow clone.
"""

import asyncio
import functools
import inspect
import logging
from typing import Any, Callable, Optional

from switchyard.lib.logger import log_operation
from switchyard.lib.typed_errors import ErrorCode, OperationResult

logger = logging.getLogger(__name__)

_STOP = object()


class WorkQueue:
    """
    One worker task draining a FIFO of jobs.

    A job is a plain callable (run in a thread via asyncio.to_thread) or a
    coroutine function (awaited on the loop). submit() returns a future that
    is resolved exactly once: with the job's return value, or with an
    INTERNAL_ERROR OperationResult if the job raised. Nothing raised by a
    job propagates past the queue.
    """

    def __init__(self, name: str):
        self.name = name
        self._queue: Optional[asyncio.Queue] = None
        self._worker_task: Optional[asyncio.Task] = None
        self._processed = 0

    @property
    def running(self) -> bool:
        return self._worker_task is not None and not self._worker_task.done()

    @property
    def pending(self) -> int:
        return self._queue.qsize() if self._queue is not None else 0

    @property
    def processed(self) -> int:
        return self._processed

    def start(self) -> None:
        """Start the worker on the running loop."""
        if self.running:
            logger.warning(f"{self.name} queue already running")
            return
        self._queue = asyncio.Queue()
        self._worker_task = asyncio.create_task(self._worker_loop())
        logger.debug(f"{self.name} queue started")

    async def stop(self) -> None:
        """Finish every job already submitted, then stop the worker."""
        if self._worker_task is None or self._queue is None:
            return
        await self._queue.put((_STOP, (), {}, None, None))
        await self._worker_task
        self._worker_task = None
        logger.debug(f"{self.name} queue stopped after {self._processed} jobs")

    def submit(self, fn: Callable[..., Any], *args: Any, label: Optional[str] = None, **kwargs: Any) -> asyncio.Future:
        """Enqueue a job and return the future for its result."""
        if not self.running:
            self.start()
        future = asyncio.get_running_loop().create_future()
        self._queue.put_nowait((fn, args, kwargs, future, label or _job_name(fn)))
        return future

    async def run(self, fn: Callable[..., Any], *args: Any, label: Optional[str] = None, **kwargs: Any) -> Any:
        """Submit and wait for the result."""
        return await self.submit(fn, *args, label=label, **kwargs)

    async def _worker_loop(self) -> None:
        while True:
            fn, args, kwargs, future, label = await self._queue.get()
            if fn is _STOP:
                break
            result = await self._execute(fn, args, kwargs, label)
            if isinstance(result, OperationResult):
                log_operation(logger, label, result)
            self._processed += 1
            if not future.done():
                future.set_result(result)

    async def _execute(self, fn: Callable[..., Any], args: tuple, kwargs: dict, label: str) -> Any:
        try:
            if inspect.iscoroutinefunction(fn):
                return await fn(*args, **kwargs)
            return await asyncio.to_thread(functools.partial(fn, *args, **kwargs))
        except Exception as e:
            logger.error(f"{self.name} job '{label}' failed: {e}", exc_info=True)
            return OperationResult.fail(ErrorCode.INTERNAL_ERROR, f"Internal error: {e}")


def _job_name(fn: Callable[..., Any]) -> str:
    return getattr(fn, "__qualname__", None) or repr(fn)
