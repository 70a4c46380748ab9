"""Container key resolution protocol.

Every generated proxy computes a routing key before dispatching a call.
The key expression written in the container module is classified once,
when the proxy module is imported, into a tagged variant:

- ``LiteralKey("instance-2")`` — always the same key;
- ``ComputedKey(func)`` — ``func(ctx)`` returns a key, sync or async;
- ``DEFAULT_KEY`` — no expression was given, route to ``"default"``.

At call time the variant is evaluated against the ``CallContext`` and the
result handed to ``resolve_container_key()``, which applies an optional
project-wide resolver hook and validates the final key.
"""

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from offload._internal.invoke import invoke, settle
from offload.errors import RoutingError

DEFAULT_KEY_VALUE = "default"


@dataclass(frozen=True, slots=True)
class CallContext:
    """The actual arguments of one proxy invocation."""

    args: tuple[Any, ...] = ()
    kwargs: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))


@dataclass(frozen=True, slots=True)
class LiteralKey:
    value: str


@dataclass(frozen=True, slots=True)
class ComputedKey:
    func: Callable[[CallContext], str | Awaitable[str]]


type RoutingKey = LiteralKey | ComputedKey

DEFAULT_KEY = LiteralKey(DEFAULT_KEY_VALUE)


def routing_key(value: Any) -> RoutingKey:
    """Classify a key expression evaluated in a proxy module.

    Accepts ``None`` (default key), a string, a callable, or a
    ``ContainerKeyToken``-like object carrying a ``container_key`` attribute.
    """
    if value is not None and hasattr(value, "container_key"):
        value = value.container_key
    match value:
        case None:
            return DEFAULT_KEY
        case str():
            return LiteralKey(value)
        case LiteralKey() | ComputedKey():
            return value
        case _ if callable(value):
            return ComputedKey(value)
    msg = f"Routing key must be a string or a callable, got {type(value).__name__}"
    raise RoutingError(msg)


def evaluate_key(key: RoutingKey, ctx: CallContext) -> str | Awaitable[str]:
    """Evaluate a key variant for one call. May return an awaitable."""
    match key:
        case LiteralKey(value=value):
            return value
        case ComputedKey(func=func):
            return func(ctx)
    msg = f"Unknown routing key variant: {key!r}"
    raise RoutingError(msg)


# -- Resolver hook --

type KeyResolver = Callable[[str, str, CallContext, str], str | Awaitable[str]]

_resolver: KeyResolver | None = None


def set_container_key_resolver(resolver: KeyResolver | None) -> None:
    """Install (or with ``None``, remove) the project-wide key resolver.

    The resolver receives ``(namespace, export_name, ctx, key)`` with the
    evaluated key already awaited, and returns the key to route on::

        def pin_tenant(namespace, export_name, ctx, key):
            return f"{current_tenant()}:{key}"

        set_container_key_resolver(pin_tenant)
    """
    global _resolver
    _resolver = resolver


async def resolve_container_key(
    namespace: str,
    export_name: str,
    ctx: CallContext,
    fallback_key: str | Awaitable[str],
) -> str:
    """Resolve the concrete container key for one call.

    Args:
        namespace: Namespace of the container module.
        export_name: Name of the called export.
        ctx: The call context.
        fallback_key: The evaluated routing-key expression (or
            ``"default"``), possibly still awaitable.

    Raises:
        RoutingError: If the resulting key is not a non-empty string.
    """
    key = await settle(fallback_key)
    if _resolver is not None:
        key = await invoke(_resolver, namespace, export_name, ctx, key)
    if not isinstance(key, str) or not key:
        msg = f"Container key for {namespace}.{export_name} must be a non-empty string, got {key!r}"
        raise RoutingError(msg)
    return key
