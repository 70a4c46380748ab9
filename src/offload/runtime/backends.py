"""Backend instances addressed by container key.

Routing is key-addressed, not round-robin: the same key always reaches
the same backend instance, and different keys may reach independently
lived instances.  Two placement strategies are provided:

- ``StaticEndpoints`` — a fixed set of backend URLs (usually from the
  environment variable named by the pool's ``binding``).  A key is placed
  by rendezvous hashing over SHA-256, so every process agrees on the
  placement without coordination.
- ``LocalLauncher`` — development fallback: one local backend process per
  key, started lazily from the bundled artifact.

``ContainerPool`` is what generated code talks to::

    stub = containers(container_key="instance-2")
    result = await stub.call("pdf_urender__render", args, kwargs)
"""

import asyncio
import contextlib
import hashlib
import logging
import os
import socket
import sys
from collections.abc import Awaitable, Callable, Mapping
from pathlib import Path
from typing import Any, ClassVar, Protocol

import httpx

from offload.errors import RoutingError
from offload.rpc.client import BatchRpcClient

logger = logging.getLogger("offload.rpc")


class Placement(Protocol):
    """Maps a container key to a backend base URL."""

    async def endpoint_for(self, key: str) -> str: ...

    async def aclose(self) -> None: ...


def rendezvous_pick(key: str, endpoints: tuple[str, ...]) -> str:
    """Highest-random-weight choice of an endpoint for *key*.

    Stable across processes and interpreter runs (no ``hash()`` seeding),
    and adding an endpoint only moves the keys that now prefer it.
    """
    if not endpoints:
        msg = "No backend endpoints configured"
        raise RoutingError(msg)

    def weight(endpoint: str) -> bytes:
        return hashlib.sha256(f"{endpoint}\x00{key}".encode()).digest()

    return max(endpoints, key=weight)


class StaticEndpoints:
    """Fixed backend URLs; keys placed by rendezvous hashing."""

    __slots__ = ("_endpoints",)

    def __init__(self, endpoints: tuple[str, ...]) -> None:
        self._endpoints = tuple(e.rstrip("/") for e in endpoints)

    @property
    def endpoints(self) -> tuple[str, ...]:
        return self._endpoints

    async def endpoint_for(self, key: str) -> str:
        return rendezvous_pick(key, self._endpoints)

    async def aclose(self) -> None:
        return None


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


type Spawner = Callable[[list[str], Mapping[str, str]], Awaitable[Any]]


async def _spawn(argv: list[str], env: Mapping[str, str]) -> asyncio.subprocess.Process:
    return await asyncio.create_subprocess_exec(*argv, env=dict(env))


class LocalLauncher:
    """One local backend process per key, started on first use.

    Each process runs the bundled ``server.pyz`` on a free port with the
    forwarded environment variables, and is considered ready once
    ``/health`` answers.
    """

    __slots__ = ("_artifact", "_env_vars", "_instances", "_locks", "_spawner", "_startup_timeout")

    def __init__(
        self,
        artifact: Path,
        *,
        env_vars: tuple[tuple[str, str], ...] = (),
        spawner: Spawner = _spawn,
        startup_timeout: float = 30.0,
    ) -> None:
        self._artifact = artifact
        self._env_vars = env_vars
        self._spawner = spawner
        self._startup_timeout = startup_timeout
        self._instances: dict[str, tuple[str, Any]] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def container_env(self, port: int) -> dict[str, str]:
        """Environment for a new backend process."""
        env = {k: v for k, v in os.environ.items() if k in {"PATH", "HOME", "LANG", "PYTHONPATH"}}
        for container_name, host_key in self._env_vars:
            value = os.environ.get(host_key)
            if value is not None:
                env[container_name] = value
        env["PORT"] = str(port)
        return env

    async def endpoint_for(self, key: str) -> str:
        # Per-key lock: cold starts for different keys proceed in parallel.
        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            instance = self._instances.get(key)
            if instance is not None:
                return instance[0]
            if not self._artifact.is_file():
                msg = f"Container artifact not built yet: {self._artifact}"
                raise RoutingError(msg)
            port = _free_port()
            url = f"http://127.0.0.1:{port}"
            logger.info("Starting local container for key %r on port %d", key, port)
            process = await self._spawner([sys.executable, str(self._artifact)], self.container_env(port))
            try:
                await self._wait_healthy(url)
            except RoutingError:
                if getattr(process, "returncode", 0) is None:
                    process.terminate()
                raise
            self._instances[key] = (url, process)
            return url

    async def _wait_healthy(self, url: str) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._startup_timeout
        async with httpx.AsyncClient(timeout=1.0) as client:
            while loop.time() < deadline:
                with contextlib.suppress(httpx.HTTPError):
                    response = await client.get(f"{url}/health")
                    if response.status_code == 200:
                        return
                await asyncio.sleep(0.1)
        msg = f"Local container at {url} did not become healthy in {self._startup_timeout}s"
        raise RoutingError(msg)

    async def aclose(self) -> None:
        instances, self._instances = self._instances, {}
        for _, process in instances.values():
            if process is None or getattr(process, "returncode", 0) is not None:
                continue
            process.terminate()
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(process.wait(), timeout=5.0)


class ContainerStub:
    """Handle on the backend instance serving one container key."""

    __slots__ = ("_client", "_endpoint", "_key", "_placement")

    def __init__(self, key: str, placement: Placement) -> None:
        self._key = key
        self._placement = placement
        self._endpoint: str | None = None
        self._client: BatchRpcClient | None = None

    @property
    def key(self) -> str:
        return self._key

    @property
    def endpoint(self) -> str | None:
        """Backend identifier, known after the first call."""
        return self._endpoint

    async def connect(self) -> BatchRpcClient:
        if self._client is None:
            endpoint = await self._placement.endpoint_for(self._key)
            if self._client is None:
                self._endpoint = endpoint
                self._client = BatchRpcClient(endpoint)
        return self._client

    async def call(
        self,
        method: str,
        args: tuple[Any, ...] = (),
        kwargs: Mapping[str, Any] | None = None,
    ) -> Any:
        client = await self.connect()
        return await client.call(method, args, kwargs)

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


class ContainerPool:
    """Key-addressed pool of backend stubs.

    Generated client wiring subclasses this and sets the class attributes::

        class OffloadContainer(ContainerPool):
            binding = "OFFLOAD_FN"
            port = 8080
            env_vars = (("API_TOKEN", "API_TOKEN"),)
            artifact = ".offload/server.pyz"
    """

    binding: ClassVar[str] = "OFFLOAD_FN"
    port: ClassVar[int] = 8080
    env_vars: ClassVar[tuple[tuple[str, str], ...]] = ()
    artifact: ClassVar[str] = ".offload/server.pyz"

    __slots__ = ("_placement", "_stubs")

    def __init__(self, placement: Placement | None = None) -> None:
        self._placement = placement
        self._stubs: dict[str, ContainerStub] = {}

    @classmethod
    def normalize_endpoint(cls, raw: str) -> str:
        """Bare hosts get a scheme and the container port."""
        endpoint = raw.strip()
        if "://" not in endpoint:
            endpoint = f"http://{endpoint}"
            if ":" not in endpoint.removeprefix("http://"):
                endpoint = f"{endpoint}:{cls.port}"
        return endpoint.rstrip("/")

    @classmethod
    def from_environment(cls, base_dir: str | Path = ".") -> "ContainerPool":
        """Static endpoints from ``$<binding>`` when set, local launcher otherwise."""
        raw = os.environ.get(cls.binding, "")
        endpoints = tuple(cls.normalize_endpoint(e) for e in raw.split(",") if e.strip())
        if endpoints:
            return cls(StaticEndpoints(endpoints))
        return cls(LocalLauncher(Path(base_dir) / cls.artifact, env_vars=cls.env_vars))

    @property
    def placement(self) -> Placement:
        if self._placement is None:
            self._placement = type(self).from_environment().placement
        return self._placement

    def __call__(self, *, container_key: str) -> ContainerStub:
        stub = self._stubs.get(container_key)
        if stub is None:
            stub = ContainerStub(container_key, self.placement)
            self._stubs[container_key] = stub
        return stub

    async def aclose(self) -> None:
        stubs, self._stubs = self._stubs, {}
        for stub in stubs.values():
            await stub.aclose()
        if self._placement is not None:
            await self._placement.aclose()
