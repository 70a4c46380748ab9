"""Generic forwarding used by every generated proxy.

A proxy keeps the export's call signature and hands its actual arguments
to ``dispatch()``, which evaluates the routing key, resolves it, and calls
the flattened method on the backend serving that key.
"""

from collections.abc import Mapping
from types import MappingProxyType
from typing import Any

from offload._internal.paths import dispatch_method_name
from offload.runtime.backends import ContainerPool
from offload.runtime.keys import (
    CallContext,
    RoutingKey,
    evaluate_key,
    resolve_container_key,
)


class _Missing:
    """Placeholder for a default the proxy cannot reproduce locally."""

    __slots__ = ()

    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()


def _strip_missing(
    args: tuple[Any, ...], kwargs: Mapping[str, Any]
) -> tuple[tuple[Any, ...], dict[str, Any]]:
    # An omitted positional can only be followed by other omitted positionals.
    end = len(args)
    while end and args[end - 1] is MISSING:
        end -= 1
    return args[:end], {k: v for k, v in kwargs.items() if v is not MISSING}


def _call_context(
    args: tuple[Any, ...],
    forwarded: tuple[Any, ...],
    kwargs: dict[str, Any],
    positional: tuple[str, ...],
) -> CallContext:
    # Regular parameters travel by keyword; the context sees them in
    # declaration order, up to the first one left to the backend.
    ctx_args = list(forwarded)
    ctx_kwargs = dict(kwargs)
    if len(forwarded) == len(args):
        for name in positional:
            if name not in ctx_kwargs:
                break
            ctx_args.append(ctx_kwargs.pop(name))
    return CallContext(args=tuple(ctx_args), kwargs=MappingProxyType(ctx_kwargs))


async def dispatch(
    pool: ContainerPool,
    namespace: str,
    export_name: str,
    key: RoutingKey,
    args: tuple[Any, ...],
    kwargs: Mapping[str, Any],
    positional: tuple[str, ...] = (),
) -> Any:
    """Route one proxy call to its backend and return the remote result.

    *positional* names the parameters the proxy forwards by keyword even
    though the caller may pass them positionally; the routing key's
    ``CallContext`` lists their values in ``args``.
    """
    forwarded, call_kwargs = _strip_missing(args, kwargs)
    ctx = _call_context(args, forwarded, call_kwargs, positional)
    resolved = await resolve_container_key(namespace, export_name, ctx, evaluate_key(key, ctx))
    stub = pool(container_key=resolved)
    return await stub.call(dispatch_method_name(namespace, export_name), forwarded, call_kwargs)
