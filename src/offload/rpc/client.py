"""HTTP batch client for container RPC.

Calls issued to the same client during one event-loop tick are queued
and flushed together as a single ``POST /api``.  Each caller awaits its
own future; the batch only changes how many requests hit the wire.

Usage::

    client = BatchRpcClient("http://127.0.0.1:8080")
    a, b = await asyncio.gather(
        client.call("pdf_urender__page_count", ("a.pdf",)),
        client.call("pdf_urender__page_count", ("b.pdf",)),
    )  # one HTTP request
"""

import asyncio
import logging
from collections.abc import Mapping
from typing import Any

import httpx

from offload.errors import RemoteCallError, RpcError
from offload.rpc.wire import RpcCall, RpcOutcome, decode_outcomes, encode_calls

logger = logging.getLogger("offload.rpc")


class BatchRpcClient:
    """Batched JSON-over-HTTP client for one backend instance."""

    __slots__ = ("_base_url", "_http", "_owns_http", "_pending", "_tasks", "_timeout")

    def __init__(
        self,
        base_url: str,
        *,
        http: httpx.AsyncClient | None = None,
        timeout: float = 60.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._http = http
        self._owns_http = http is None
        self._timeout = timeout
        self._pending: list[tuple[RpcCall, asyncio.Future[Any]]] = []
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def base_url(self) -> str:
        return self._base_url

    def call(
        self,
        method: str,
        args: tuple[Any, ...] = (),
        kwargs: Mapping[str, Any] | None = None,
    ) -> asyncio.Future[Any]:
        """Queue one call; the returned future resolves with its result."""
        loop = asyncio.get_running_loop()
        future: asyncio.Future[Any] = loop.create_future()
        if not self._pending:
            loop.call_soon(self._schedule_flush)
        self._pending.append((RpcCall(method, tuple(args), dict(kwargs or {})), future))
        return future

    def _schedule_flush(self) -> None:
        batch, self._pending = self._pending, []
        if batch:
            task = asyncio.ensure_future(self._flush(batch))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def _flush(self, batch: list[tuple[RpcCall, asyncio.Future[Any]]]) -> None:
        calls = [call for call, _ in batch]
        try:
            outcomes = await self._post(calls)
        except RpcError as exc:
            for _, future in batch:
                if not future.done():
                    future.set_exception(exc)
            return

        for (call, future), outcome in zip(batch, outcomes, strict=True):
            if future.done():
                continue
            if outcome.error is None:
                future.set_result(outcome.result)
            else:
                future.set_exception(
                    RemoteCallError(method=call.method, type=outcome.error[0], message=outcome.error[1])
                )

    async def _post(self, calls: list[RpcCall]) -> list[RpcOutcome]:
        if self._http is None:
            self._http = httpx.AsyncClient(timeout=self._timeout)
        logger.debug("POST %s/api (%d call(s))", self._base_url, len(calls))
        try:
            response = await self._http.post(
                f"{self._base_url}/api",
                content=encode_calls(calls),
                headers={"content-type": "application/json"},
            )
            response.raise_for_status()
            return decode_outcomes(response.content, len(calls))
        except (httpx.HTTPError, TypeError, ValueError) as exc:
            msg = f"RPC batch to {self._base_url} failed: {exc}"
            raise RpcError(msg) from exc

    async def aclose(self) -> None:
        if self._owns_http and self._http is not None:
            await self._http.aclose()
            self._http = None
