"""Await-if-needed helpers for user callables.

Routing-key functions and key resolvers may be plain functions or
coroutine functions; callers go through these two helpers instead of
checking ``inspect.isawaitable`` themselves::

    key = await invoke(resolver, namespace, export_name, ctx, key)
    key = await settle(evaluate_key(variant, ctx))
"""

import inspect
from typing import Any


async def settle(value: Any) -> Any:
    """Await *value* if it is awaitable, otherwise return it unchanged."""
    if inspect.isawaitable(value):
        value = await value
    return value


async def invoke(func: Any, *args: Any, **kwargs: Any) -> Any:
    """Call *func* and settle the result."""
    return await settle(func(*args, **kwargs))
