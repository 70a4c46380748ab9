"""Artifact generators.

Each generator is a pure function from discovered modules (sorted by
namespace) and configuration to ``ast.Module`` declarations; ``emit()``
renders them and ``write_if_changed()`` skips identical output.  Running
``generate_all()`` twice on the same input writes nothing the second time.
"""

import logging
from collections.abc import Callable
from pathlib import Path

from offload._internal.fs import ensure_dir, write_if_changed
from offload.config import OffloadConfig
from offload.discovery.types import ModuleDescriptor
from offload.generate.client import client_declarations
from offload.generate.dispatch import entry_declarations
from offload.generate.emit import GENERATED_HEADER, emit
from offload.generate.layout import CLIENT_FILE, PROXIES_DIR, RUNTIME_FILE, Layout
from offload.generate.proxies import proxy_declarations
from offload.generate.runtime import package_declarations, runtime_declarations

__all__ = [
    "Layout",
    "client_declarations",
    "emit",
    "entry_declarations",
    "generate_all",
    "proxy_declarations",
    "runtime_declarations",
]

logger = logging.getLogger("offload.regen")

type Emitter = Callable[..., str]


def generate_all(
    modules: list[ModuleDescriptor],
    layout: Layout,
    config: OffloadConfig,
    *,
    emitter: Emitter = emit,
) -> list[Path]:
    """Regenerate the generated package. Returns the files actually written."""
    gdir = ensure_dir(layout.generated_dir)
    proxies_dir = ensure_dir(gdir / PROXIES_DIR)
    outputs: dict[Path, str] = {
        gdir / "__init__.py": emitter(package_declarations()),
        proxies_dir / "__init__.py": emitter(package_declarations()),
        gdir / RUNTIME_FILE: emitter(
            runtime_declarations(),
            header=("AUTO-GENERATED (runtime marker)", "Intentionally tiny. Imported by container modules."),
        ),
        gdir / CLIENT_FILE: emitter(client_declarations(layout, config)),
    }
    for module in modules:
        outputs[layout.proxy_path(module.namespace)] = emitter(
            proxy_declarations(module, layout),
            header=(GENERATED_HEADER, f"Proxy for: {module.relative_path}"),
        )

    written = [path for path, text in outputs.items() if write_if_changed(path, text)]

    for stale in sorted(proxies_dir.glob("*.py")):
        if stale not in outputs:
            logger.debug("Removing stale proxy %s", stale.name)
            stale.unlink()
            written.append(stale)

    return written
