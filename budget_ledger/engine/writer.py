"""
Single-Writer Queue

DESIGN DECISION: Mutations against the record store are serialized through
one asyncio task draining one queue, instead of a shared "busy" boolean
that every caller has to remember to check.

- Callers submit a job (an awaitable factory) and await its result
- Jobs run strictly one at a time, in submission order
- A failing job fails only its own caller; the worker keeps draining
- Every job carries the correlation ID of the operation that queued it

Reads do not go through the writer. A job must never submit another job
to the same writer: it would wait on a queue that only it can drain.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional
from uuid import UUID

import structlog


logger = structlog.get_logger(__name__)


JobFactory = Callable[[], Awaitable[Any]]


@dataclass
class _Job:
    operation: str
    factory: JobFactory
    correlation_id: Optional[UUID]
    future: asyncio.Future = field(repr=False)


class SerialWriter:
    """
    Runs submitted mutation jobs one at a time.

    The worker task is started lazily on the first submit, on the running
    event loop. If that loop has gone away (a new asyncio.run), a fresh
    queue and worker are created.
    """

    def __init__(self):
        self._queue: Optional[asyncio.Queue] = None
        self._worker: Optional[asyncio.Task] = None

    @property
    def pending(self) -> int:
        """Jobs queued and not yet started."""
        return self._queue.qsize() if self._queue is not None else 0

    def _ensure_started(self) -> asyncio.Queue:
        if self._worker is None or self._worker.done():
            self._queue = asyncio.Queue()
            self._worker = asyncio.create_task(self._drain(self._queue))
        return self._queue

    async def _drain(self, queue: asyncio.Queue) -> None:
        while True:
            job: _Job = await queue.get()
            try:
                if job.future.cancelled():
                    continue
                logger.debug(
                    "write_job_started",
                    operation=job.operation,
                    correlation_id=str(job.correlation_id),
                )
                try:
                    result = await job.factory()
                except Exception as e:
                    if not job.future.done():
                        job.future.set_exception(e)
                else:
                    if not job.future.done():
                        job.future.set_result(result)
            finally:
                queue.task_done()

    async def submit(
        self,
        operation: str,
        factory: JobFactory,
        correlation_id: Optional[UUID] = None,
    ) -> Any:
        """
        Queue a job and wait for its result.

        Args:
            operation: Name of the engine operation, for logging
            factory: Zero-argument callable returning the awaitable to run
            correlation_id: ID of the operation the job belongs to

        Returns:
            Whatever the job returns. Exceptions raised by the job are
            re-raised here.
        """
        queue = self._ensure_started()
        future = asyncio.get_running_loop().create_future()
        await queue.put(_Job(operation, factory, correlation_id, future))
        return await future

    async def join(self) -> None:
        """Wait until every queued job has finished."""
        if self._queue is not None and self._worker is not None and not self._worker.done():
            await self._queue.join()

    async def aclose(self) -> None:
        """Stop the worker. Jobs still queued are abandoned."""
        if self._worker is not None and not self._worker.done():
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
        self._worker = None
        self._queue = None
