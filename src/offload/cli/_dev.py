"""``offload dev`` — watch, regenerate, restart.

Runs the first regeneration cycle, starts the host dev server command (if
given), then feeds filesystem events into the dev-loop coordinator until
interrupted.
"""

import argparse
import asyncio
import contextlib
import logging
import sys

from offload.cli._project import load_orchestrator
from offload.dev.host import SubprocessHost
from offload.dev.watcher import start_watcher
from offload.orchestrator.coordinator import DevLoopCoordinator, Mode
from offload.orchestrator.regen import BuildKind, Orchestrator

logger = logging.getLogger("offload.dev")


async def dev_loop(orchestrator: Orchestrator, command: list[str], *, restart: bool = True) -> None:
    """Run until cancelled."""
    config = orchestrator.config
    if not await orchestrator.enqueue(BuildKind.DEV, force=True):
        logger.warning("Initial regeneration failed; watching for fixes")

    host = SubprocessHost(command, cwd=orchestrator.layout.root) if command else None
    coordinator = DevLoopCoordinator(
        orchestrator,
        host,
        auto_rebuild=config.auto_rebuild and restart,
        debounce=config.rebuild_debounce,
        mode=Mode.SERVE if host is not None else Mode.BUILD,
    )
    observer = start_watcher(orchestrator.layout.root, coordinator.on_event)
    try:
        if host is not None:
            await host.start()
        await asyncio.Event().wait()
    finally:
        coordinator.close()
        observer.stop()
        observer.join(timeout=5.0)
        if host is not None:
            await host.stop()
        await orchestrator.close()


def run_dev(args: argparse.Namespace) -> None:
    command = list(args.host_command)
    if command and command[0] == "--":
        command = command[1:]

    orchestrator = load_orchestrator(args.root)
    print(f"offload dev: watching {orchestrator.layout.root} (Ctrl+C to stop)", file=sys.stderr)
    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(dev_loop(orchestrator, command, restart=not args.no_restart))
