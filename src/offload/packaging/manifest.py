"""Container manifest — which runtime dependencies the image installs.

Only packages explicitly marked external are installed in the image
(everything else is bundled into ``server.pyz``).  Their version
specifiers are taken from the project's own ``pyproject.toml`` so the
container runs the same versions as the host.
"""

import json
import re
import tomllib
from dataclasses import dataclass
from pathlib import Path

DEFAULT_NAME = "offload-container"
DEFAULT_VERSION = "0.0.0"

# The ASGI server the container entry runs under.
RUNTIME_REQUIREMENTS = ("uvicorn",)

_NAME_RE = re.compile(r"^\s*([A-Za-z0-9][A-Za-z0-9._-]*)")


def canonical_name(name: str) -> str:
    """PEP 503 normalized distribution name."""
    return re.sub(r"[-_.]+", "-", name).lower()


def requirement_name(requirement: str) -> str | None:
    match = _NAME_RE.match(requirement)
    return canonical_name(match.group(1)) if match else None


@dataclass(frozen=True, slots=True)
class Manifest:
    name: str
    version: str
    dependencies: tuple[str, ...]

    def to_json(self) -> str:
        data = {"name": self.name, "version": self.version, "dependencies": list(self.dependencies)}
        return json.dumps(data, indent=2) + "\n"

    def requirements_txt(self) -> str:
        return "".join(f"{dep}\n" for dep in self.dependencies)


def collect_external_deps(pyproject: Path, external: tuple[str, ...]) -> Manifest:
    """Build the manifest for *external* from the project's declared dependencies.

    Declared requirements are looked up in ``[project].dependencies`` first,
    then each ``[project.optional-dependencies]`` group, then
    ``[dependency-groups]``.  An external with no declaration is kept
    unpinned.
    """
    project: dict = {}
    groups: dict = {}
    if pyproject.is_file():
        try:
            data = tomllib.loads(pyproject.read_text(encoding="utf-8"))
        except tomllib.TOMLDecodeError:
            data = {}
        project = data.get("project", {})
        groups = data.get("dependency-groups", {})

    sources: list[list[str]] = [project.get("dependencies", [])]
    sources += list(project.get("optional-dependencies", {}).values())
    sources += [[g for g in group if isinstance(g, str)] for group in groups.values()]

    declared: dict[str, str] = {}
    for source in sources:
        for requirement in source:
            name = requirement_name(requirement)
            if name is not None and name not in declared:
                declared[name] = requirement.strip()

    deps: list[str] = []
    seen: set[str] = set()
    for raw in (*external, *RUNTIME_REQUIREMENTS):
        name = canonical_name(raw)
        if name in seen:
            continue
        seen.add(name)
        deps.append(declared.get(name, raw))

    return Manifest(
        name=str(project.get("name", DEFAULT_NAME)),
        version=str(project.get("version", DEFAULT_VERSION)),
        dependencies=tuple(deps),
    )
