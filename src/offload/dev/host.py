"""Restartable host dev server running as a child process.

``offload dev -- uvicorn app:app --port 8000`` runs the command after the
first regeneration cycle and restarts it whenever the coordinator asks.
"""

import asyncio
import contextlib
import logging
import os
from collections.abc import Mapping, Sequence
from pathlib import Path

logger = logging.getLogger("offload.dev")


class SubprocessHost:
    """A command that can be started, restarted and stopped.

    Restarting stops the current process (SIGTERM, then SIGKILL after
    ``grace`` seconds) and starts a fresh one with the same command.
    """

    __slots__ = ("_command", "_cwd", "_env", "_grace", "_process", "_restarts")

    def __init__(
        self,
        command: Sequence[str],
        *,
        cwd: str | Path | None = None,
        env: Mapping[str, str] | None = None,
        grace: float = 5.0,
    ) -> None:
        if not command:
            msg = "Host command must not be empty"
            raise ValueError(msg)
        self._command = tuple(command)
        self._cwd = Path(cwd) if cwd is not None else None
        self._env = dict(env) if env is not None else None
        self._grace = grace
        self._process: asyncio.subprocess.Process | None = None
        self._restarts = 0

    @property
    def command(self) -> tuple[str, ...]:
        return self._command

    @property
    def running(self) -> bool:
        return self._process is not None and self._process.returncode is None

    @property
    def restarts(self) -> int:
        return self._restarts

    async def start(self) -> None:
        if self.running:
            return
        env = {**os.environ, **self._env} if self._env is not None else None
        self._process = await asyncio.create_subprocess_exec(*self._command, cwd=self._cwd, env=env)
        logger.info("Started %s (pid %d)", " ".join(self._command), self._process.pid)

    async def stop(self) -> None:
        process, self._process = self._process, None
        if process is None or process.returncode is not None:
            return
        process.terminate()
        try:
            await asyncio.wait_for(process.wait(), timeout=self._grace)
        except TimeoutError:
            logger.warning("pid %d did not exit after %.1fs; killing", process.pid, self._grace)
            with contextlib.suppress(ProcessLookupError):
                process.kill()
            await process.wait()

    async def restart(self) -> None:
        await self.stop()
        await self.start()
        self._restarts += 1

    async def wait(self) -> int | None:
        """Wait for the current process to exit on its own."""
        if self._process is None:
            return None
        return await self._process.wait()
