"""Tests for offload.dev — host process and watcher bridge."""

import asyncio
import sys
from pathlib import Path

import pytest

from offload.dev.host import SubprocessHost
from offload.dev.watcher import start_watcher

SLEEPER = [sys.executable, "-c", "import time; time.sleep(30)"]


class TestSubprocessHost:
    def test_empty_command(self) -> None:
        with pytest.raises(ValueError):
            SubprocessHost([])

    @pytest.mark.asyncio
    async def test_start_restart_stop(self, tmp_path: Path) -> None:
        host = SubprocessHost(SLEEPER, cwd=tmp_path, grace=2.0)

        await host.start()
        assert host.running

        await host.restart()
        assert host.running
        assert host.restarts == 1

        await host.stop()
        assert not host.running

    @pytest.mark.asyncio
    async def test_stop_when_not_started(self) -> None:
        host = SubprocessHost(SLEEPER)
        await host.stop()
        assert not host.running

    @pytest.mark.asyncio
    async def test_wait_for_exit(self) -> None:
        host = SubprocessHost([sys.executable, "-c", "raise SystemExit(3)"])
        await host.start()

        assert await host.wait() == 3
        assert not host.running


class TestWatcher:
    @pytest.mark.asyncio
    async def test_events_arrive_on_loop(self, tmp_path: Path) -> None:
        events: list[tuple[str, str]] = []
        arrived = asyncio.Event()

        def sink(kind: str, path: str) -> None:
            events.append((kind, path))
            arrived.set()

        observer = start_watcher(tmp_path, sink)
        try:
            await asyncio.sleep(0.1)
            target = tmp_path / "new_container.py"
            target.write_text("x = 1\n")
            await asyncio.wait_for(arrived.wait(), timeout=5.0)
        finally:
            observer.stop()
            observer.join(timeout=5.0)

        assert any(path == str(target.resolve()) for _, path in events)
        assert {kind for kind, _ in events} <= {"add", "change"}
