"""Filesystem watcher feeding the dev-loop coordinator.

A watchdog observer runs on its own thread; every event is handed to the
event loop with ``call_soon_threadsafe`` so the coordinator only ever
runs on the loop thread.  Moves are reported as an unlink of the old
path followed by an add of the new one.
"""

import asyncio
import logging
from collections.abc import Callable
from pathlib import Path

from watchdog.events import (
    DirCreatedEvent,
    DirDeletedEvent,
    DirModifiedEvent,
    DirMovedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver

logger = logging.getLogger("offload.dev")

type EventSink = Callable[[str, str], None]


def _path(raw: str | bytes) -> str:
    return raw.decode() if isinstance(raw, bytes) else raw


class LoopBridgeHandler(FileSystemEventHandler):
    """Forwards file events as ``(kind, absolute_path)`` to *sink* on *loop*."""

    def __init__(self, loop: asyncio.AbstractEventLoop, sink: EventSink) -> None:
        super().__init__()
        self._loop = loop
        self._sink = sink

    def _emit(self, kind: str, raw: str | bytes) -> None:
        path = str(Path(_path(raw)).resolve())
        if self._loop.is_closed():
            return
        self._loop.call_soon_threadsafe(self._sink, kind, path)

    def on_created(self, event: DirCreatedEvent | FileCreatedEvent) -> None:
        if not event.is_directory:
            self._emit("add", event.src_path)

    def on_modified(self, event: DirModifiedEvent | FileModifiedEvent) -> None:
        if not event.is_directory:
            self._emit("change", event.src_path)

    def on_deleted(self, event: DirDeletedEvent | FileDeletedEvent) -> None:
        if not event.is_directory:
            self._emit("unlink", event.src_path)

    def on_moved(self, event: DirMovedEvent | FileMovedEvent) -> None:
        if not event.is_directory:
            self._emit("unlink", event.src_path)
            self._emit("add", event.dest_path)


def start_watcher(
    root: str | Path,
    sink: EventSink,
    *,
    loop: asyncio.AbstractEventLoop | None = None,
) -> BaseObserver:
    """Watch *root* recursively. Call ``stop()`` and ``join()`` on the result."""
    loop = loop or asyncio.get_running_loop()
    observer = Observer()
    observer.schedule(LoopBridgeHandler(loop, sink), str(root), recursive=True)
    observer.daemon = True
    observer.start()
    logger.debug("Watching %s", root)
    return observer
