"""Client wiring generator.

Emits ``client.py`` in the generated package: a ``ContainerPool``
subclass carrying the configured binding, port, forwarded environment
variables and the location of the bundled artifact, plus the module-level
``containers`` pool every proxy dispatches through.
"""

import ast
import os

from offload.config import OffloadConfig
from offload.generate.emit import parse_snippet
from offload.generate.layout import BUNDLE_FILE, Layout


def client_declarations(layout: Layout, config: OffloadConfig) -> ast.Module:
    artifact = os.path.relpath(layout.artifacts_dir / BUNDLE_FILE, layout.generated_dir)
    source = "\n".join(
        [
            "from pathlib import Path",
            "from offload.runtime import ContainerPool",
            f"class {config.class_name}(ContainerPool):",
            f"    binding = {config.binding!r}",
            f"    port = {config.container_port!r}",
            f"    env_vars = {tuple(config.env_vars)!r}",
            f"    artifact = {artifact.replace(os.sep, '/')!r}",
            f"containers = {config.class_name}.from_environment(Path(__file__).parent)",
        ]
    )
    return ast.Module(body=parse_snippet(source), type_ignores=[])
