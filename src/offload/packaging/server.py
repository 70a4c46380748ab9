"""Container server packaging step.

Writes the full server artifact set into one output directory::

    <out>/container_entry.py   dispatch surface (generated)
    <out>/server.pyz           bundled entry + imported sources
    <out>/manifest.json        name, version, external dependencies
    <out>/requirements.txt     what the image installs
    <out>/Dockerfile           generated, or the user's custom one
"""

import logging
from collections.abc import Callable
from pathlib import Path

from offload._internal.fs import ensure_dir, write_if_changed
from offload.config import CustomDockerfile, OffloadConfig
from offload.discovery.types import ModuleDescriptor
from offload.generate.dispatch import entry_declarations
from offload.generate.emit import emit
from offload.generate.layout import (
    BUNDLE_FILE,
    DOCKERFILE,
    ENTRY_FILE,
    MANIFEST_FILE,
    REQUIREMENTS_FILE,
    Layout,
)
from offload.packaging import bundler
from offload.packaging.dockerfile import render_custom_dockerfile, render_dockerfile
from offload.packaging.manifest import collect_external_deps

logger = logging.getLogger("offload.regen")

type Bundler = Callable[..., bool]
type Emitter = Callable[..., str]


def build_container_server(
    modules: list[ModuleDescriptor],
    out_dir: Path,
    layout: Layout,
    config: OffloadConfig,
    *,
    emitter: Emitter = emit,
    build: Bundler = bundler.build,
) -> list[Path]:
    """Package the container server into *out_dir*. Returns the files written.

    Raises:
        PackagingError: If bundling fails.
        ConfigurationError: If a configured custom Dockerfile is missing.
    """
    ensure_dir(out_dir)
    written: list[Path] = []

    entry = out_dir / ENTRY_FILE
    if write_if_changed(entry, emitter(entry_declarations(modules, config))):
        written.append(entry)

    bundle = out_dir / BUNDLE_FILE
    if build(
        entry,
        bundle,
        externals=config.external,
        platform=config.platform,
        source_roots=tuple(layout.root / r for r in config.source_roots),
    ):
        written.append(bundle)

    manifest = collect_external_deps(layout.root / "pyproject.toml", config.external)
    if isinstance(config.docker, CustomDockerfile):
        dockerfile = render_custom_dockerfile(layout.root, config.docker)
    else:
        dockerfile = render_dockerfile(config.docker, config.container_port)

    for name, text in (
        (MANIFEST_FILE, manifest.to_json()),
        (REQUIREMENTS_FILE, manifest.requirements_txt()),
        (DOCKERFILE, dockerfile),
    ):
        path = out_dir / name
        if write_if_changed(path, text):
            written.append(path)

    logger.info("Container server ready in %s (%d file(s) updated)", out_dir, len(written))
    return written
