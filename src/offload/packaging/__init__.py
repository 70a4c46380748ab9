"""Container server packaging: entry, zipapp bundle, manifest and Dockerfile."""

from offload.packaging.bundler import build
from offload.packaging.dockerfile import render_custom_dockerfile, render_dockerfile
from offload.packaging.manifest import Manifest, collect_external_deps
from offload.packaging.server import build_container_server

__all__ = [
    "Manifest",
    "build",
    "build_container_server",
    "collect_external_deps",
    "render_custom_dockerfile",
    "render_dockerfile",
]
