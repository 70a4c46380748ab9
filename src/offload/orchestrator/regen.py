"""Regeneration cycles.

The ``Orchestrator`` owns the module registry and the regeneration queue.
A cycle brings every artifact up to date with the container modules on
disk::

    discover (first cycle only) -> refresh(changed, removed)
        -> skip when nothing changed
        -> generate runtime, client and proxies
        -> package the server into the artifacts directory
        -> release only: package again into <out_dir>/<artifacts_dir>

Every cycle runs through the queue, so cycles never overlap.
"""

import asyncio
import keyword
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path

from offload.config import CustomDockerfile, OffloadConfig
from offload.discovery.cache import ModuleRegistry
from offload.discovery.types import ModuleDescriptor
from offload.errors import ConfigurationError
from offload.generate import Emitter, generate_all
from offload.generate.emit import emit
from offload.generate.layout import Layout
from offload.orchestrator.queue import RegenerationQueue
from offload.packaging.bundler import build as build_bundle
from offload.packaging.dockerfile import resolve_custom_dockerfile
from offload.packaging.server import Bundler, build_container_server

logger = logging.getLogger("offload.regen")


class BuildKind(StrEnum):
    DEV = "dev"
    RELEASE = "release"


@dataclass(frozen=True, slots=True)
class RegenerationRequest:
    """What one cycle should look at.

    Empty ``changed`` means "re-read every known file".
    """

    kind: BuildKind = BuildKind.DEV
    changed: frozenset[Path] = field(default_factory=frozenset)
    removed: frozenset[Path] = field(default_factory=frozenset)
    force: bool = False

    def merge(self, other: "RegenerationRequest") -> "RegenerationRequest":
        """Union of both deltas; ``force`` and release kind are sticky."""
        kind = BuildKind.RELEASE if BuildKind.RELEASE in (self.kind, other.kind) else BuildKind.DEV
        return RegenerationRequest(
            kind=kind,
            changed=self.changed | other.changed,
            removed=self.removed | other.removed,
            force=self.force or other.force,
        )

    @property
    def empty(self) -> bool:
        return not self.changed and not self.removed and not self.force


class Orchestrator:
    """Runs serialized regeneration cycles for one project.

    Raises:
        ConfigurationError: At construction, for an invalid class name or a
            configured custom Dockerfile that does not exist.
    """

    __slots__ = (
        "_bundler",
        "_config",
        "_discovered",
        "_emitter",
        "_generated_once",
        "_layout",
        "_queue",
        "_registry",
    )

    def __init__(
        self,
        root: str | Path,
        config: OffloadConfig,
        *,
        emitter: Emitter = emit,
        bundler: Bundler = build_bundle,
    ) -> None:
        if not config.class_name.isidentifier() or keyword.iskeyword(config.class_name):
            msg = f"class-name must be a Python identifier, got {config.class_name!r}"
            raise ConfigurationError(msg)
        if isinstance(config.docker, CustomDockerfile):
            resolve_custom_dockerfile(Path(root), config.docker)

        self._config = config
        self._layout = Layout.for_config(root, config)
        self._registry = ModuleRegistry(
            self._layout.root,
            config.files,
            source_roots=config.source_roots,
            excluded=(config.generated_dir, config.artifacts_dir, config.out_dir),
        )
        self._emitter = emitter
        self._bundler = bundler
        self._queue: RegenerationQueue[RegenerationRequest] = RegenerationQueue(self.run)
        self._discovered = False
        self._generated_once = False

    @property
    def config(self) -> OffloadConfig:
        return self._config

    @property
    def layout(self) -> Layout:
        return self._layout

    @property
    def registry(self) -> ModuleRegistry:
        return self._registry

    @property
    def queue(self) -> RegenerationQueue[RegenerationRequest]:
        return self._queue

    @property
    def generated_once(self) -> bool:
        return self._generated_once

    def enqueue(
        self,
        kind: BuildKind | str = BuildKind.DEV,
        *,
        changed: Iterable[str | Path] = (),
        removed: Iterable[str | Path] = (),
        force: bool = False,
    ) -> asyncio.Future[bool]:
        """Queue one cycle. The future resolves to False if the cycle failed."""
        request = RegenerationRequest(
            kind=BuildKind(kind),
            changed=frozenset(Path(p).resolve() for p in changed),
            removed=frozenset(Path(p).resolve() for p in removed),
            force=force,
        )
        return self._queue.enqueue(request)

    async def run(self, request: RegenerationRequest) -> bool:
        """One regeneration cycle. Returns False when it was skipped.

        Call through ``enqueue()`` so cycles stay serialized.
        """
        if not self._discovered:
            self._registry.discover()
            self._discovered = True

        dirty = self._registry.refresh(request.changed or None, request.removed)
        if not dirty and not request.force and self._generated_once:
            logger.debug("No container changes; skipping regeneration")
            return False

        modules = self._registry.modules()
        written = generate_all(modules, self._layout, self._config, emitter=self._emitter)
        logger.info(
            "Generated proxies for %d container module(s) (%d file(s) updated)",
            len(modules),
            len(written),
        )

        self._package(modules, self._layout.artifacts_dir)
        if request.kind is BuildKind.RELEASE:
            self._package(modules, self._layout.release_dir)

        self._generated_once = True
        return True

    def _package(self, modules: list[ModuleDescriptor], out_dir: Path) -> None:
        build_container_server(
            modules,
            out_dir,
            self._layout,
            self._config,
            emitter=self._emitter,
            build=self._bundler,
        )

    async def close(self) -> None:
        await self._queue.close()
