"""Import redirection for host code.

With the hook installed, ``import pdf.render_container`` in the host
process loads the generated proxy for that module instead of the module
itself, so callers keep their imports and get remote calls::

    from offload.importer import install_import_hook

    install_import_hook(".", load_config("."))
    from pdf.render_container import render   # proxy

Only container modules that have a generated proxy are redirected.  The
container process never installs the hook and imports the real modules.
"""

import importlib.abc
import importlib.util
import logging
import sys
from collections.abc import Sequence
from importlib.machinery import ModuleSpec
from pathlib import Path
from types import ModuleType

from offload._internal.paths import relative_posix, sanitize_namespace
from offload.config import OffloadConfig
from offload.discovery.cache import ModuleRegistry
from offload.generate.layout import Layout

logger = logging.getLogger("offload.regen")


class ProxyFinder(importlib.abc.MetaPathFinder):
    """Meta path finder that swaps container modules for their proxies."""

    def __init__(self, layout: Layout, registry: ModuleRegistry, source_roots: tuple[str, ...]) -> None:
        self._layout = layout
        self._registry = registry
        self._bases = tuple((layout.root / r).resolve() for r in source_roots)

    @property
    def layout(self) -> Layout:
        return self._layout

    def proxy_for(self, fullname: str) -> Path | None:
        """Generated proxy file for module *fullname*, if there is one."""
        rel = Path(*fullname.split("."))
        for base in self._bases:
            candidate = base / rel.with_suffix(".py")
            if not candidate.is_file() or not self._registry.matches(candidate):
                continue
            rel_path = relative_posix(candidate.resolve(), self._layout.root)
            proxy = self._layout.proxy_path(sanitize_namespace(rel_path.removesuffix(".py")))
            return proxy if proxy.is_file() else None
        return None

    def find_spec(
        self,
        fullname: str,
        path: Sequence[str] | None = None,
        target: ModuleType | None = None,
    ) -> ModuleSpec | None:
        if fullname.startswith(self._layout.package + "."):
            return None
        proxy = self.proxy_for(fullname)
        if proxy is None:
            return None
        logger.debug("Redirecting import of %s to %s", fullname, proxy)
        return importlib.util.spec_from_file_location(fullname, proxy)


def install_import_hook(root: str | Path, config: OffloadConfig) -> ProxyFinder:
    """Put a ``ProxyFinder`` at the front of ``sys.meta_path``. Idempotent per root."""
    layout = Layout.for_config(root, config)
    for finder in sys.meta_path:
        if isinstance(finder, ProxyFinder) and finder.layout == layout:
            return finder
    registry = ModuleRegistry(
        layout.root,
        config.files,
        source_roots=config.source_roots,
        excluded=(config.generated_dir, config.artifacts_dir, config.out_dir),
    )
    finder = ProxyFinder(layout, registry, config.source_roots)
    sys.meta_path.insert(0, finder)
    return finder


def uninstall_import_hook(finder: ProxyFinder) -> None:
    if finder in sys.meta_path:
        sys.meta_path.remove(finder)
