"""ASGI server side of container RPC.

``BatchRpcApp`` exposes a dispatch surface object over HTTP:

- ``POST /api`` — run a batch of calls against the surface's methods
- ``GET /health`` — liveness probe used by local launchers and images

The bundled container entry builds one of these around its generated
``Api`` class and hands it to uvicorn via ``serve()``.
"""

import asyncio
import inspect
import logging
from collections.abc import MutableMapping
from typing import Any

from offload.rpc.wire import (
    RpcCall,
    RpcOutcome,
    WireError,
    decode_calls,
    encode_outcomes,
)

logger = logging.getLogger("offload.rpc")

type Scope = MutableMapping[str, Any]


class BatchRpcApp:
    """ASGI application dispatching batched calls to a surface object.

    Calls within one batch run concurrently; outcomes keep request order.
    Only public methods are callable.
    """

    __slots__ = ("_surface",)

    def __init__(self, surface: object) -> None:
        self._surface = surface

    async def __call__(self, scope: Scope, receive: Any, send: Any) -> None:
        if scope["type"] == "lifespan":
            await self._lifespan(receive, send)
            return
        if scope["type"] != "http":
            return

        path = scope.get("path", "/")
        method = scope.get("method", "GET")

        if path == "/health":
            await _respond(send, 200, b"ok", "text/plain")
            return

        if path != "/api":
            await _respond(send, 404, b"Not found", "text/plain")
            return

        if method != "POST":
            await _respond(send, 405, b"Method not allowed", "text/plain")
            return

        body = await _read_body(receive)
        try:
            calls = decode_calls(body)
        except WireError as exc:
            await _respond(send, 400, str(exc).encode("utf-8"), "text/plain")
            return

        outcomes = await asyncio.gather(*(self._run(call) for call in calls))
        try:
            payload = encode_outcomes(outcomes)
        except (TypeError, ValueError) as exc:
            logger.exception("Batch results are not JSON-serializable")
            await _respond(send, 500, str(exc).encode("utf-8"), "text/plain")
            return
        await _respond(send, 200, payload, "application/json")

    async def _run(self, call: RpcCall) -> RpcOutcome:
        if call.method.startswith("_"):
            return RpcOutcome(error=("AttributeError", f"{call.method} is not callable"))
        func = getattr(self._surface, call.method, None)
        if func is None or not callable(func):
            return RpcOutcome(error=("AttributeError", f"No such method: {call.method}"))
        try:
            result = func(*call.args, **call.kwargs)
            if inspect.isawaitable(result):
                result = await result
        except Exception as exc:
            logger.exception("Call %s failed", call.method)
            return RpcOutcome(error=(type(exc).__name__, str(exc)))
        return RpcOutcome(result=result)

    @staticmethod
    async def _lifespan(receive: Any, send: Any) -> None:
        while True:
            message = await receive()
            if message["type"] == "lifespan.startup":
                await send({"type": "lifespan.startup.complete"})
            elif message["type"] == "lifespan.shutdown":
                await send({"type": "lifespan.shutdown.complete"})
                return


async def _read_body(receive: Any) -> bytes:
    chunks: list[bytes] = []
    while True:
        message = await receive()
        chunks.append(message.get("body", b""))
        if not message.get("more_body", False):
            return b"".join(chunks)


async def _respond(send: Any, status: int, body: bytes, content_type: str) -> None:
    await send(
        {
            "type": "http.response.start",
            "status": status,
            "headers": [
                (b"content-type", content_type.encode("latin-1")),
                (b"content-length", str(len(body)).encode("latin-1")),
            ],
        }
    )
    await send({"type": "http.response.body", "body": body})


def serve(app: BatchRpcApp, host: str = "0.0.0.0", port: int = 8080) -> None:
    """Run *app* under uvicorn. Blocks until the server stops."""
    import uvicorn

    logger.info("offload container listening on %s:%d", host, port)
    uvicorn.run(app, host=host, port=port, log_level="info")
