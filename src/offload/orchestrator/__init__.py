"""Regeneration scheduling: the serialized queue, cycles and the dev-loop coordinator."""

from offload.orchestrator.coordinator import DevLoopCoordinator, HostServer, Mode
from offload.orchestrator.queue import RegenerationQueue
from offload.orchestrator.regen import BuildKind, Orchestrator, RegenerationRequest

__all__ = [
    "BuildKind",
    "DevLoopCoordinator",
    "HostServer",
    "Mode",
    "Orchestrator",
    "RegenerationQueue",
    "RegenerationRequest",
]
