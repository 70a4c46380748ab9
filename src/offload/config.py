"""Offload configuration.

Every setting lives on one frozen ``OffloadConfig``; nothing reads raw
configuration tables after loading.  ``load_config()`` builds one from the
``[tool.offload]`` table of a project's ``pyproject.toml``.
"""

import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

from offload.errors import ConfigurationError


@dataclass(frozen=True, slots=True)
class DockerUser:
    """Non-root runtime user for the generated image.

    Package installs still run as root; the user is applied before CMD.
    """

    name: str
    uid: int | None = None
    gid: int | None = None


@dataclass(frozen=True, slots=True)
class DockerOptions:
    """Options for the generated Dockerfile."""

    base_image: str = "python:3.12-slim"
    system_packages: tuple[str, ...] = ()
    pre_install_commands: tuple[str, ...] = ()
    post_install_commands: tuple[str, ...] = ()
    env: tuple[tuple[str, str], ...] = ()
    user: DockerUser | None = None


@dataclass(frozen=True, slots=True)
class CustomDockerfile:
    """Use a fully custom Dockerfile (path resolved from project root)."""

    path: str


@dataclass(frozen=True, slots=True)
class OffloadConfig:
    """Offload configuration. Immutable after creation.

    All fields have sensible defaults. Override what you need::

        config = OffloadConfig(container_port=9000, external=("numpy",))
    """

    # Discovery
    files: tuple[str, ...] = ("**/*_container.py",)
    source_roots: tuple[str, ...] = ("src", ".")

    # Output locations (relative to the project root)
    generated_dir: str = "src/__generated__"
    artifacts_dir: str = ".offload"
    out_dir: str = "dist"

    # Backend wiring
    binding: str = "OFFLOAD_FN"  # env var holding comma-separated backend URLs
    class_name: str = "OffloadContainer"
    container_port: int = 8080
    env_vars: tuple[tuple[str, str], ...] = ()  # (container name, host env key)

    # Packaging
    external: tuple[str, ...] = ()
    docker: DockerOptions | CustomDockerfile = field(default_factory=DockerOptions)
    platform: str = "python3"

    # Dev loop
    auto_rebuild: bool = True
    rebuild_debounce: float = 0.6  # seconds


def normalize_env_vars(value: Any) -> tuple[tuple[str, str], ...]:
    """Accept a list of names or a ``{container_name: host_key}`` mapping."""
    if isinstance(value, Mapping):
        return tuple((str(k), str(v)) for k, v in value.items())
    if isinstance(value, (list, tuple)):
        pairs: list[tuple[str, str]] = []
        for item in value:
            if isinstance(item, str):
                pairs.append((item, item))
            elif isinstance(item, (list, tuple)) and len(item) == 2:
                pairs.append((str(item[0]), str(item[1])))
            else:
                msg = f"env-vars entries must be names or [container, host] pairs, got {item!r}"
                raise ConfigurationError(msg)
        return tuple(pairs)
    msg = f"env-vars must be a list or a table, got {type(value).__name__}"
    raise ConfigurationError(msg)


def _docker_from_table(table: Any) -> DockerOptions | CustomDockerfile:
    if not isinstance(table, Mapping):
        msg = f"docker must be a table, got {type(table).__name__}"
        raise ConfigurationError(msg)
    table = {_snake(k): v for k, v in table.items()}

    if "dockerfile_path" in table or "dockerfile" in table:
        path = table.get("dockerfile_path", table.get("dockerfile"))
        if not isinstance(path, str):
            msg = "docker.dockerfile-path must be a string"
            raise ConfigurationError(msg)
        return CustomDockerfile(path=path)

    user = table.pop("user", None)
    if user is not None:
        if not isinstance(user, Mapping) or "name" not in user:
            msg = "docker.user must be a table with at least a name"
            raise ConfigurationError(msg)
        user = DockerUser(name=str(user["name"]), uid=user.get("uid"), gid=user.get("gid"))

    env = table.pop("env", {})
    if not isinstance(env, Mapping):
        msg = "docker.env must be a table"
        raise ConfigurationError(msg)

    allowed = {f.name for f in fields(DockerOptions)} - {"user", "env"}
    unknown = set(table) - allowed
    if unknown:
        msg = f"Unknown docker option(s): {', '.join(sorted(unknown))}"
        raise ConfigurationError(msg)

    kwargs = {k: tuple(v) if isinstance(v, list) else v for k, v in table.items()}
    return DockerOptions(
        **kwargs,
        env=tuple((str(k), str(v)) for k, v in env.items()),
        user=user,
    )


def _snake(key: str) -> str:
    return key.replace("-", "_")


def config_from_mapping(table: Mapping[str, Any]) -> OffloadConfig:
    """Build an OffloadConfig from a ``[tool.offload]``-shaped mapping.

    Keys may be written in kebab-case or snake_case.  Lists become tuples.

    Raises:
        ConfigurationError: On unknown keys or values of the wrong shape.
    """
    known = {f.name for f in fields(OffloadConfig)}
    kwargs: dict[str, Any] = {}
    for raw_key, value in table.items():
        key = _snake(raw_key)
        if key not in known:
            msg = f"Unknown [tool.offload] option: {raw_key!r}"
            raise ConfigurationError(msg)
        if key == "docker":
            kwargs[key] = _docker_from_table(value)
        elif key == "env_vars":
            kwargs[key] = normalize_env_vars(value)
        elif isinstance(value, list):
            kwargs[key] = tuple(value)
        else:
            kwargs[key] = value

    for key in ("files", "source_roots", "external"):
        value = kwargs.get(key)
        if value is not None and not all(isinstance(v, str) for v in value):
            msg = f"{key} must be a list of strings"
            raise ConfigurationError(msg)

    return OffloadConfig(**kwargs)


def load_config(root: str | Path) -> OffloadConfig:
    """Read ``[tool.offload]`` from ``<root>/pyproject.toml``.

    Returns the defaults when the file or the table is absent.
    """
    pyproject = Path(root) / "pyproject.toml"
    if not pyproject.is_file():
        return OffloadConfig()
    try:
        data = tomllib.loads(pyproject.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as exc:
        msg = f"Invalid {pyproject}: {exc}"
        raise ConfigurationError(msg) from exc
    table = data.get("tool", {}).get("offload", {})
    return config_from_mapping(table)
