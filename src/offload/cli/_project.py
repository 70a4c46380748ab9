"""Shared project loading for CLI commands."""

import sys
from pathlib import Path

from offload.config import load_config
from offload.errors import ConfigurationError
from offload.orchestrator.regen import Orchestrator


def load_orchestrator(root: str) -> Orchestrator:
    """Orchestrator for the project at *root*. Exits with code 1 on bad config."""
    path = Path(root).resolve()
    try:
        return Orchestrator(path, load_config(path))
    except ConfigurationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc
