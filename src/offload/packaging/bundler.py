"""Zipapp bundler for the container server.

``build()`` starts from the generated entry file, follows module-level
imports through the project's source roots and the installed packages,
and writes a single executable ``.pyz``:

- standard-library modules and the configured externals are left out
  (externals are installed in the image from ``requirements.txt``);
- only imports at module level are followed, including those under
  module-level ``if``/``try`` blocks but not ``if TYPE_CHECKING:``;
- members are sorted and carry a fixed timestamp, so the same inputs
  always produce the same bytes and an unchanged bundle is never
  rewritten.

Compiled extension modules cannot be imported from a zip; reaching one
raises ``PackagingError`` naming the package to mark as external.
"""

import ast
import importlib.machinery
import importlib.metadata
import io
import logging
import sys
import zipfile
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

from offload._internal.fs import write_if_changed
from offload.errors import PackagingError
from offload.packaging.manifest import RUNTIME_REQUIREMENTS, canonical_name

logger = logging.getLogger("offload.regen")

_FIXED_DATE = (1980, 1, 1, 0, 0, 0)


@dataclass(frozen=True, slots=True)
class _Found:
    name: str
    origin: Path | None  # None for namespace packages
    is_package: bool
    search_locations: tuple[str, ...]


def _module_imports(tree: ast.Module, module: str, is_package: bool) -> Iterator[tuple[str, bool]]:
    """Yield ``(dotted_name, optional)`` for each module-level import.

    ``optional`` is True for imports inside a ``try`` block, which are
    commonly guarded by ``except ImportError``.
    """
    package = module if is_package else module.rpartition(".")[0]

    def walk(body: list[ast.stmt], optional: bool) -> Iterator[tuple[str, bool]]:
        for node in body:
            if isinstance(node, ast.Import):
                for alias in node.names:
                    yield alias.name, optional
            elif isinstance(node, ast.ImportFrom):
                base = _absolute_from(node, package)
                if base is None:
                    continue
                if base:
                    yield base, optional
                for alias in node.names:
                    if alias.name != "*":
                        # May name a submodule; resolved only if it is one.
                        yield f"{base}.{alias.name}" if base else alias.name, True
            elif isinstance(node, ast.If):
                if not _is_type_checking(node.test):
                    yield from walk(node.body, optional)
                yield from walk(node.orelse, optional)
            elif isinstance(node, ast.Try | ast.TryStar):
                yield from walk(node.body, True)
                for handler in node.handlers:
                    yield from walk(handler.body, True)
                yield from walk(node.orelse, optional)
                yield from walk(node.finalbody, optional)
            elif isinstance(node, ast.With):
                yield from walk(node.body, optional)

    yield from walk(tree.body, False)


def _absolute_from(node: ast.ImportFrom, package: str) -> str | None:
    if not node.level:
        return node.module or ""
    parts = package.split(".") if package else []
    if node.level - 1 > len(parts):
        return None
    base = parts[: len(parts) - (node.level - 1)]
    if node.module:
        base.append(node.module)
    return ".".join(base)


def _is_type_checking(test: ast.expr) -> bool:
    match test:
        case ast.Name(id="TYPE_CHECKING") | ast.Attribute(attr="TYPE_CHECKING"):
            return True
    return False


class _Bundle:
    __slots__ = ("_external_tops", "_files", "_found", "_search_path", "_seen")

    def __init__(self, source_roots: tuple[Path, ...], externals: tuple[str, ...]) -> None:
        self._search_path = [str(p) for p in source_roots] + [p for p in sys.path if p]
        self._external_tops = _external_import_names(externals)
        self._found: dict[str, _Found | None] = {}
        self._files: dict[str, Path] = {}
        self._seen: set[str] = set()

    @property
    def files(self) -> dict[str, Path]:
        return self._files

    def add_entry(self, entry: Path) -> None:
        tree = _parse(entry)
        for name, optional in _module_imports(tree, "__main__", is_package=False):
            self._require(name, optional, importer=str(entry))

    def _require(self, name: str, optional: bool, importer: str) -> None:
        top = name.partition(".")[0]
        if not top or top in sys.stdlib_module_names or top in self._external_tops:
            return
        if name in self._seen:
            return

        parts = name.split(".")
        for depth in range(1, len(parts) + 1):
            dotted = ".".join(parts[:depth])
            found = self._find(dotted)
            if found is None:
                if not optional:
                    logger.warning("Cannot resolve import %r from %s; not bundled", dotted, importer)
                return
            if dotted not in self._seen:
                self._seen.add(dotted)
                self._include(found)

    def _find(self, dotted: str) -> _Found | None:
        if dotted in self._found:
            return self._found[dotted]
        parent, _, _ = dotted.rpartition(".")
        if parent:
            parent_found = self._found.get(parent) or self._find(parent)
            if parent_found is None or not parent_found.is_package:
                self._found[dotted] = None
                return None
            path = list(parent_found.search_locations)
        else:
            path = self._search_path

        spec = importlib.machinery.PathFinder.find_spec(dotted, path)
        found: _Found | None = None
        if spec is not None:
            locations = tuple(spec.submodule_search_locations or ())
            origin = Path(spec.origin) if spec.origin and spec.has_location else None
            found = _Found(dotted, origin, spec.submodule_search_locations is not None, locations)
        self._found[dotted] = found
        return found

    def _include(self, found: _Found) -> None:
        if found.origin is None:
            return
        if found.origin.suffix != ".py":
            top = found.name.partition(".")[0]
            msg = (
                f"{found.name} is a compiled module ({found.origin.name}) and cannot be "
                f"bundled; add {top!r} to external"
            )
            raise PackagingError(msg)

        member = found.name.replace(".", "/")
        member = f"{member}/__init__.py" if found.is_package else f"{member}.py"
        self._files[member] = found.origin

        tree = _parse(found.origin)
        for name, optional in _module_imports(tree, found.name, found.is_package):
            self._require(name, optional, importer=found.name)


def _external_import_names(externals: tuple[str, ...]) -> frozenset[str]:
    """Top-level import names provided by the external distributions."""
    wanted = {canonical_name(e) for e in (*externals, *RUNTIME_REQUIREMENTS)}
    tops = {e.replace("-", "_") for e in wanted}
    for top, dists in importlib.metadata.packages_distributions().items():
        if any(canonical_name(d) in wanted for d in dists):
            tops.add(top)
    return frozenset(tops)


def _parse(path: Path) -> ast.Module:
    try:
        return ast.parse(path.read_bytes(), filename=str(path))
    except (OSError, SyntaxError, ValueError) as exc:
        msg = f"Cannot bundle {path}: {exc}"
        raise PackagingError(msg) from exc


def _archive(entry: Path, files: dict[str, Path], platform: str) -> bytes:
    buffer = io.BytesIO()
    buffer.write(f"#!/usr/bin/env {platform}\n".encode())
    with zipfile.ZipFile(buffer, "w") as archive:
        members = {"__main__.py": entry, **files}
        for member in sorted(members):
            info = zipfile.ZipInfo(member, date_time=_FIXED_DATE)
            info.compress_type = zipfile.ZIP_DEFLATED
            info.external_attr = 0o644 << 16
            archive.writestr(info, members[member].read_bytes())
    return buffer.getvalue()


def build(
    entry: Path,
    output_file: Path,
    externals: tuple[str, ...] = (),
    platform: str = "python3",
    source_roots: tuple[Path, ...] = (),
) -> bool:
    """Bundle *entry* and everything it imports into *output_file*.

    Returns True when the bundle was (re)written.

    Raises:
        PackagingError: If the entry or a dependency cannot be bundled.
    """
    if not entry.is_file():
        msg = f"Container entry not found: {entry}"
        raise PackagingError(msg)

    bundle = _Bundle(source_roots, externals)
    bundle.add_entry(entry)
    logger.debug("Bundling %d module(s) into %s", len(bundle.files) + 1, output_file)

    try:
        data = _archive(entry, bundle.files, platform)
        written = write_if_changed(output_file, data)
    except OSError as exc:
        msg = f"Cannot write {output_file}: {exc}"
        raise PackagingError(msg) from exc

    if written:
        output_file.chmod(0o755)
    return written
