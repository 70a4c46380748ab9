"""Filesystem helpers for generated artifacts.

``write_if_changed`` is what keeps regeneration idempotent on disk: an
unchanged artifact is never rewritten, so the dev watcher never sees a
write caused by offload itself.
"""

from pathlib import Path


def ensure_dir(path: Path) -> Path:
    """Create *path* (and parents) if missing. Returns *path*."""
    path.mkdir(parents=True, exist_ok=True)
    return path


def write_if_changed(path: Path, content: str | bytes) -> bool:
    """Write *content* to *path* unless the file already holds exactly it.

    Returns True when the file was written.
    """
    data = content.encode("utf-8") if isinstance(content, str) else content
    try:
        if path.read_bytes() == data:
            return False
    except FileNotFoundError:
        pass
    ensure_dir(path.parent)
    path.write_bytes(data)
    return True
