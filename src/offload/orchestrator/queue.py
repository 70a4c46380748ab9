"""Serialized regeneration queue.

One worker task consumes an ``asyncio.Queue``, so at most one cycle body
runs at a time and cycles run in the order they were enqueued.  A cycle
that raises is logged and reported as ``False`` on its future; the worker
keeps going.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger("offload.regen")


class RegenerationQueue[T]:
    """Single-consumer FIFO of regeneration requests.

    Usage::

        queue = RegenerationQueue(orchestrator.run)
        ok = await queue.enqueue(request)
    """

    __slots__ = ("_queue", "_run", "_worker")

    def __init__(self, run: Callable[[T], Awaitable[object]]) -> None:
        self._run = run
        self._queue: asyncio.Queue[tuple[T, asyncio.Future[bool]]] = asyncio.Queue()
        self._worker: asyncio.Task[None] | None = None

    def enqueue(self, request: T) -> asyncio.Future[bool]:
        """Append *request*. The future resolves once its cycle has finished."""
        future: asyncio.Future[bool] = asyncio.get_running_loop().create_future()
        self._queue.put_nowait((request, future))
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._consume(), name="offload-regen")
        return future

    async def _consume(self) -> None:
        while True:
            request, future = await self._queue.get()
            try:
                await self._run(request)
            except Exception:
                logger.exception("Regeneration cycle failed")
                ok = False
            else:
                ok = True
            finally:
                self._queue.task_done()
            if not future.done():
                future.set_result(ok)

    async def drain(self) -> None:
        """Wait until every queued cycle has finished."""
        await self._queue.join()

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def close(self) -> None:
        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None
