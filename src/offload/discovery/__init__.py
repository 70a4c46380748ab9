"""Container module discovery.

Finds ``*_container.py`` files, reads their entry functions statically,
and keeps the per-file descriptor cache that decides whether a
regeneration cycle has anything to do.

Usage::

    from offload.discovery import ModuleRegistry

    registry = ModuleRegistry(root, ("**/*_container.py",))
    registry.discover()
    dirty = registry.refresh()
"""

from offload.discovery.cache import ModuleRegistry
from offload.discovery.extract import extract_exports
from offload.discovery.types import ExportDescriptor, ModuleDescriptor

__all__ = [
    "ExportDescriptor",
    "ModuleDescriptor",
    "ModuleRegistry",
    "extract_exports",
]
