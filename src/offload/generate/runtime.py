"""Runtime marker generator.

Emits the tiny module container code imports its markers from::

    from __generated__.runtime import container_fn, container_key

    @container_fn(key=container_key(lambda ctx: f"user-{ctx.args[0]}"))
    async def profile(user_id: str) -> dict: ...

The markers do nothing at runtime: ``container_fn`` returns the function
unchanged, so the module behaves normally inside the backend.  Discovery
reads them statically.  The output does not depend on discovered modules.
"""

import ast

from offload.generate.emit import parse_snippet

_RUNTIME_SOURCE = '''
from collections.abc import Awaitable, Callable
from typing import Any

type ContainerKey = str | Callable[[Any], str | Awaitable[str]]


class ContainerKeyToken:
    __slots__ = ("container_key",)

    def __init__(self, value: ContainerKey) -> None:
        self.container_key = value


def container_key(value: ContainerKey) -> ContainerKeyToken:
    return ContainerKeyToken(value)


def container_fn(fn: Any = None, key: ContainerKeyToken | ContainerKey | None = None) -> Any:
    if fn is None or isinstance(fn, (str, ContainerKeyToken)):
        return lambda func: func
    return fn
'''


def runtime_declarations() -> ast.Module:
    return ast.Module(body=parse_snippet(_RUNTIME_SOURCE), type_ignores=[])


def package_declarations() -> ast.Module:
    """Body of the generated package's ``__init__.py`` files (empty)."""
    return ast.Module(body=[], type_ignores=[])
