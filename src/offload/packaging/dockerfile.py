"""Image-build descriptor for the container server."""

import json
import re
from pathlib import Path

from offload.config import CustomDockerfile, DockerOptions
from offload.errors import ConfigurationError

_START_CMD = '["python", "./server.pyz"]'


def resolve_custom_dockerfile(root: Path, options: CustomDockerfile) -> Path:
    """Absolute path of a configured custom Dockerfile.

    Raises:
        ConfigurationError: If the file does not exist.
    """
    path = (root / options.path).resolve()
    if not path.is_file():
        msg = f"Custom Dockerfile not found: {options.path} (resolved to {path})"
        raise ConfigurationError(msg)
    return path


def render_custom_dockerfile(root: Path, options: CustomDockerfile) -> str:
    """The user's Dockerfile, with a start command appended unless it has one."""
    text = resolve_custom_dockerfile(root, options).read_text(encoding="utf-8")
    if "server.pyz" in text and re.search(r"\b(CMD|ENTRYPOINT)\b", text):
        return text
    return "\n".join([text.rstrip(), "", "# offload runtime start", f"CMD {_START_CMD}", ""])


def render_dockerfile(options: DockerOptions, container_port: int) -> str:
    lines = [
        "# AUTO-GENERATED. DO NOT EDIT.",
        f"FROM {options.base_image}",
        "WORKDIR /app",
    ]
    if options.system_packages:
        lines += [
            "# System packages (from offload options)",
            "RUN apt-get update && apt-get install -y --no-install-recommends "
            f"{' '.join(options.system_packages)} \\",
            "    && rm -rf /var/lib/apt/lists/*",
        ]
    lines += [f"RUN {cmd}" for cmd in options.pre_install_commands]
    lines += [
        "# Install deps (only externals declared via offload options)",
        "COPY requirements.txt ./",
        "RUN pip install --no-cache-dir -r requirements.txt",
        "# Server bundle",
        "COPY ./server.pyz ./server.pyz",
        "ENV PYTHONUNBUFFERED=1",
    ]
    lines += [f"ENV {key}={json.dumps(value)}" for key, value in options.env]
    lines += [f"RUN {cmd}" for cmd in options.post_install_commands]

    user = options.user
    if user is not None and user.name:
        gid = f" --gid {user.gid}" if user.gid else ""
        uid = f" --uid {user.uid}" if user.uid else ""
        lines += [
            "# Runtime user (from offload options)",
            f"RUN groupadd --system{gid} {user.name} \\",
            "    && useradd --system --create-home --no-log-init "
            f"--home-dir /home/{user.name} --gid {user.name}{uid} {user.name}",
            f"RUN chown -R {user.name}:{user.name} /app",
            f"USER {user.name}",
        ]

    lines += [
        f"ENV PORT={container_port}",
        f"EXPOSE {container_port}",
        f"CMD {_START_CMD}",
        "",
    ]
    return "\n".join(lines)
