"""Dev-loop coordination between file events, regeneration and the host server.

A burst of file events becomes one regeneration request; a burst of
regenerations becomes one host restart::

    on_event ... on_event  --debounce-->  enqueue(dev, delta)
                                               --restart debounce-->  drain(); host.restart()

Both timers are ``loop.call_later`` handles and re-arming cancels the
previous one.  Everything here runs on the event loop thread; the watcher
hands events over with ``call_soon_threadsafe``.
"""

import asyncio
import logging
from enum import StrEnum
from pathlib import Path
from typing import Literal, Protocol

from offload._internal.paths import relative_posix
from offload.orchestrator.regen import BuildKind, Orchestrator, RegenerationRequest

logger = logging.getLogger("offload.dev")

type EventKind = Literal["add", "change", "unlink"]

RESTART_DEBOUNCE = 0.05  # seconds


class HostServer(Protocol):
    """The development server being coordinated. Only restart is required."""

    async def restart(self) -> None: ...


class Mode(StrEnum):
    SERVE = "serve"
    BUILD = "build"


class DevLoopCoordinator:
    """Debounces watcher events into regeneration cycles and host restarts.

    Usage::

        coordinator = DevLoopCoordinator(orchestrator, host)
        watcher = start_watcher(root, coordinator.on_event)
    """

    __slots__ = (
        "_auto_rebuild",
        "_debounce",
        "_delta",
        "_host",
        "_last_cycle",
        "_mode",
        "_orchestrator",
        "_reasons",
        "_regen_timer",
        "_restart_debounce",
        "_restart_in_flight",
        "_restart_task",
        "_restart_timer",
    )

    def __init__(
        self,
        orchestrator: Orchestrator,
        host: HostServer | None = None,
        *,
        auto_rebuild: bool = True,
        debounce: float = 0.6,
        restart_debounce: float = RESTART_DEBOUNCE,
        mode: Mode | str = Mode.SERVE,
    ) -> None:
        self._orchestrator = orchestrator
        self._host = host
        self._auto_rebuild = auto_rebuild
        self._debounce = debounce
        self._restart_debounce = restart_debounce
        self._mode = Mode(mode)
        self._delta = RegenerationRequest()
        self._reasons: list[str] = []
        self._regen_timer: asyncio.TimerHandle | None = None
        self._restart_timer: asyncio.TimerHandle | None = None
        self._restart_task: asyncio.Task[None] | None = None
        self._restart_in_flight = False
        self._last_cycle: asyncio.Future[bool] | None = None

    @property
    def pending(self) -> RegenerationRequest:
        """Delta accumulated since the last debounce fire."""
        return self._delta

    @property
    def restart_in_flight(self) -> bool:
        return self._restart_in_flight

    @property
    def last_cycle(self) -> asyncio.Future[bool] | None:
        """Future of the most recently enqueued cycle."""
        return self._last_cycle

    def on_event(self, kind: EventKind, path: str | Path) -> None:
        """Record one file event and re-arm the regeneration debounce."""
        registry = self._orchestrator.registry
        if not registry.matches(path):
            return
        abs_path = Path(path).resolve()
        rel = relative_posix(abs_path, registry.root)

        if kind == "unlink":
            registry.forget(abs_path)
            delta = RegenerationRequest(removed=frozenset({abs_path}))
            reason = f"removed {rel}"
        else:
            registry.track(abs_path)
            delta = RegenerationRequest(changed=frozenset({abs_path}))
            reason = f"changed {rel}"

        self._delta = self._delta.merge(delta)
        self._reasons.append(reason)
        logger.debug("File event: %s", reason)

        if self._regen_timer is not None:
            self._regen_timer.cancel()
        loop = asyncio.get_running_loop()
        self._regen_timer = loop.call_later(self._debounce, self._fire_regeneration)

    def _fire_regeneration(self) -> None:
        self._regen_timer = None
        snapshot, self._delta = self._delta, RegenerationRequest()
        reasons, self._reasons = self._reasons, []
        if snapshot.empty:
            return

        logger.info("Regenerating (%s)", ", ".join(dict.fromkeys(reasons)))
        self._last_cycle = self._orchestrator.enqueue(
            BuildKind.DEV, changed=snapshot.changed, removed=snapshot.removed
        )

        if (
            self._auto_rebuild
            and self._mode is Mode.SERVE
            and self._host is not None
            and not self._restart_in_flight
        ):
            if self._restart_timer is not None:
                self._restart_timer.cancel()
            loop = asyncio.get_running_loop()
            self._restart_timer = loop.call_later(self._restart_debounce, self._fire_restart)

    def _fire_restart(self) -> None:
        self._restart_timer = None
        self._restart_task = asyncio.ensure_future(self._restart())

    async def _restart(self) -> None:
        await self._orchestrator.queue.drain()
        if self._restart_in_flight or self._host is None:
            return
        self._restart_in_flight = True
        try:
            logger.info("Container artifacts updated; restarting dev server")
            await self._host.restart()
        except Exception:
            logger.exception("Dev server restart failed")
        finally:
            self._restart_in_flight = False

    async def wait_idle(self) -> None:
        """Wait for the pending cycle and any restart it triggered."""
        if self._last_cycle is not None:
            await self._last_cycle
        if self._restart_task is not None:
            await self._restart_task

    def close(self) -> None:
        for timer in (self._regen_timer, self._restart_timer):
            if timer is not None:
                timer.cancel()
        self._regen_timer = None
        self._restart_timer = None
