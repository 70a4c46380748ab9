"""Development loop pieces: the host server process and the file watcher."""

from offload.dev.host import SubprocessHost
from offload.dev.watcher import LoopBridgeHandler, start_watcher

__all__ = ["LoopBridgeHandler", "SubprocessHost", "start_watcher"]
