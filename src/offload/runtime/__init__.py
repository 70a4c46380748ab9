"""Runtime support imported by generated proxies and client wiring.

- ``offload.runtime.keys`` — routing-key variants and the container key
  resolution protocol
- ``offload.runtime.backends`` — key-addressed backend pool
- ``offload.runtime.dispatch`` — the generic forwarding every proxy uses
"""

from offload.runtime.backends import ContainerPool, ContainerStub, LocalLauncher, StaticEndpoints
from offload.runtime.dispatch import MISSING, dispatch
from offload.runtime.keys import (
    DEFAULT_KEY,
    CallContext,
    ComputedKey,
    LiteralKey,
    resolve_container_key,
    routing_key,
    set_container_key_resolver,
)

__all__ = [
    "DEFAULT_KEY",
    "MISSING",
    "CallContext",
    "ComputedKey",
    "ContainerPool",
    "ContainerStub",
    "LiteralKey",
    "LocalLauncher",
    "StaticEndpoints",
    "dispatch",
    "resolve_container_key",
    "routing_key",
    "set_container_key_resolver",
]
