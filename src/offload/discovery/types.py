"""Data models for container module discovery.

Immutable frozen dataclasses.  Structural equality of these objects is the
only dirty signal the regeneration cycle trusts: a re-parse that produces
an equal descriptor is not a change, whatever happened to the file bytes.
"""

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ExportDescriptor:
    """One entry function exported by a container module.

    Attributes:
        name: Exported name.
        routing_key_expression: Source text of the routing-key expression
            (a literal or a function of the call context), or ``None`` to
            use the default key.
        parameters: Unparsed parameter list, e.g. ``"url: str, page: int = 1"``.
        returns: Unparsed return annotation, or ``None``.
    """

    name: str
    routing_key_expression: str | None = None
    parameters: str = "*args, **kwargs"
    returns: str | None = None


@dataclass(frozen=True, slots=True)
class ModuleDescriptor:
    """A discovered container module.

    Attributes:
        absolute_path: Resolved filesystem path (the cache key).
        relative_path: POSIX path relative to the project root.
        module_name: Dotted import name relative to its source root.
        namespace: Identifier derived purely from ``relative_path``.
        exports: Qualifying exports, in source order.
    """

    absolute_path: str
    relative_path: str
    module_name: str
    namespace: str
    exports: tuple[ExportDescriptor, ...]
