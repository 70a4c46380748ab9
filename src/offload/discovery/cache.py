"""Container module registry — the known-file universe plus the module cache.

The registry owns two pieces of state:

- the set of known container files (absolute paths), seeded by
  ``discover()`` and adjusted by explicit ``track()``/``forget()`` calls
  from the dev watcher;
- the module cache, absolute path -> last ``ModuleDescriptor``.

Both are mutated only from the event loop thread (inside a queued
regeneration cycle or the coordinator's event-merge step), so no locking
is needed.
"""

import logging
from pathlib import Path, PurePosixPath

from offload._internal.paths import (
    glob_to_regex,
    is_ignored,
    module_name_for,
    relative_posix,
    sanitize_namespace,
)
from offload.discovery.extract import extract_exports
from offload.discovery.types import ModuleDescriptor

logger = logging.getLogger("offload.discovery")


class ModuleRegistry:
    """Discovers container modules and detects real content changes.

    Usage::

        registry = ModuleRegistry(root, ("**/*_container.py",))
        registry.discover()
        if registry.refresh():
            regenerate(registry.modules())
    """

    __slots__ = ("_cache", "_excluded", "_known", "_matchers", "_patterns", "_root", "_source_roots")

    def __init__(
        self,
        root: str | Path,
        patterns: tuple[str, ...],
        *,
        source_roots: tuple[str, ...] = (".",),
        excluded: tuple[str, ...] = (),
    ) -> None:
        self._root = Path(root).resolve()
        self._patterns = patterns
        self._matchers = tuple(glob_to_regex(p) for p in patterns)
        self._source_roots = source_roots
        self._excluded = excluded
        self._known: set[Path] = set()
        self._cache: dict[Path, ModuleDescriptor] = {}

    @property
    def root(self) -> Path:
        return self._root

    @property
    def known_files(self) -> frozenset[Path]:
        return frozenset(self._known)

    def matches(self, path: str | Path) -> bool:
        """Whether *path* is a candidate container file."""
        abs_path = Path(path).resolve()
        try:
            rel = PurePosixPath(relative_posix(abs_path, self._root))
        except ValueError:
            return False
        if is_ignored(rel, self._excluded):
            return False
        return any(m.match(rel.as_posix()) for m in self._matchers)

    def discover(self) -> set[Path]:
        """Expand the glob patterns into the known-file universe."""
        for pattern in self._patterns:
            for path in self._root.glob(pattern):
                if path.is_file() and self.matches(path):
                    self._known.add(path.resolve())
        logger.debug("Discovered %d container file(s)", len(self._known))
        return set(self._known)

    def track(self, path: str | Path) -> None:
        self._known.add(Path(path).resolve())

    def forget(self, path: str | Path) -> None:
        self._known.discard(Path(path).resolve())

    def modules(self) -> list[ModuleDescriptor]:
        """Cached descriptors sorted by namespace (ordinal)."""
        return sorted(self._cache.values(), key=lambda m: m.namespace)

    def get(self, path: str | Path) -> ModuleDescriptor | None:
        return self._cache.get(Path(path).resolve())

    def refresh(
        self,
        changed: frozenset[Path] | set[Path] | None = None,
        removed: frozenset[Path] | set[Path] | None = None,
    ) -> bool:
        """Re-parse *changed* files (or the whole universe) and update the cache.

        Removed files are purged first.  Returns True when any descriptor
        was added, changed or evicted.
        """
        dirty = False
        recreated = {Path(p).resolve() for p in changed or ()}

        for raw in removed or ():
            path = Path(raw).resolve()
            if path in recreated and path.is_file():
                # Deleted and written again within one window (atomic saves).
                self._known.add(path)
                continue
            self._known.discard(path)
            if self._cache.pop(path, None) is not None:
                dirty = True

        targets = [Path(p).resolve() for p in changed] if changed else sorted(self._known)
        for path in targets:
            if not path.is_file():
                continue
            try:
                descriptor = self._describe(path)
            except (OSError, SyntaxError, UnicodeDecodeError, ValueError) as exc:
                # Keep the last known descriptor; the next edit will retry.
                logger.warning("Skipping %s: %s", path, exc)
                continue

            if descriptor is None:
                if self._cache.pop(path, None) is not None:
                    dirty = True
                continue

            if self._cache.get(path) != descriptor:
                self._cache[path] = descriptor
                dirty = True

        return dirty

    def _describe(self, path: Path) -> ModuleDescriptor | None:
        source = path.read_text(encoding="utf-8")
        exports = extract_exports(source, filename=str(path))
        if not exports:
            return None
        rel = relative_posix(path, self._root)
        return ModuleDescriptor(
            absolute_path=str(path),
            relative_path=rel,
            module_name=module_name_for(path, self._root, self._source_roots),
            namespace=sanitize_namespace(rel.removesuffix(path.suffix)),
            exports=exports,
        )
