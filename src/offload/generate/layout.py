"""Where generated and packaged files live for one project."""

from dataclasses import dataclass
from pathlib import Path

from offload._internal.paths import module_name_for
from offload.config import OffloadConfig

RUNTIME_FILE = "runtime.py"
CLIENT_FILE = "client.py"
PROXIES_DIR = "proxies"

ENTRY_FILE = "container_entry.py"
BUNDLE_FILE = "server.pyz"
MANIFEST_FILE = "manifest.json"
REQUIREMENTS_FILE = "requirements.txt"
DOCKERFILE = "Dockerfile"


@dataclass(frozen=True, slots=True)
class Layout:
    """Resolved output locations.

    Attributes:
        root: Project root.
        generated_dir: Importable package holding runtime, client and proxies.
        package: Dotted import name of ``generated_dir``.
        artifacts_dir: Packaging sink for the dev-target server artifact.
        release_dir: Packaging sink for release builds.
    """

    root: Path
    generated_dir: Path
    package: str
    artifacts_dir: Path
    release_dir: Path

    @classmethod
    def for_config(cls, root: str | Path, config: OffloadConfig) -> "Layout":
        root = Path(root).resolve()
        generated_dir = root / config.generated_dir
        return cls(
            root=root,
            generated_dir=generated_dir,
            package=module_name_for(generated_dir / "__init__.py", root, config.source_roots),
            artifacts_dir=root / config.artifacts_dir,
            release_dir=root / config.out_dir / config.artifacts_dir,
        )

    def proxy_path(self, namespace: str) -> Path:
        return self.generated_dir / PROXIES_DIR / f"{namespace}.py"

    def proxy_module(self, namespace: str) -> str:
        return f"{self.package}.{PROXIES_DIR}.{namespace}"
