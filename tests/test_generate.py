"""Tests for offload.generate — runtime marker, client wiring, dispatch surface and proxies."""

import inspect
import sys
import textwrap
import types
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from offload.config import OffloadConfig
from offload.discovery.cache import ModuleRegistry
from offload.discovery.types import ExportDescriptor, ModuleDescriptor
from offload.generate import generate_all
from offload.generate.dispatch import entry_declarations
from offload.generate.emit import GENERATED_HEADER, emit
from offload.generate.layout import Layout
from offload.generate.proxies import proxy_declarations
from offload.runtime.backends import ContainerPool
from offload.runtime.keys import DEFAULT_KEY, CallContext, ComputedKey, LiteralKey

# Flat project: mymodule.py at the root, generated package at __generated__/.
FLAT = OffloadConfig(files=("mymodule.py",), source_roots=(".",), generated_dir="__generated__")


def _discover(root: Path, config: OffloadConfig) -> list[ModuleDescriptor]:
    registry = ModuleRegistry(root, config.files, source_roots=config.source_roots)
    registry.discover()
    registry.refresh()
    return registry.modules()


def _module(*exports: ExportDescriptor) -> ModuleDescriptor:
    return ModuleDescriptor(
        absolute_path="/p/mymodule.py",
        relative_path="mymodule.py",
        module_name="mymodule",
        namespace="mymodule",
        exports=exports,
    )


def _load_proxy(
    module: ModuleDescriptor,
    monkeypatch: pytest.MonkeyPatch,
    calls: list[tuple[Any, ...]],
) -> dict[str, Any]:
    """Execute a generated proxy with a recording dispatch."""
    client = types.ModuleType("__generated__.client")
    client.containers = "POOL"  # type: ignore[attr-defined]
    monkeypatch.setitem(sys.modules, "__generated__", types.ModuleType("__generated__"))
    monkeypatch.setitem(sys.modules, "__generated__.client", client)

    layout = Layout(Path("/p"), Path("/p/__generated__"), "__generated__", Path("/p/.o"), Path("/p/d"))
    namespace: dict[str, Any] = {}
    exec(compile(emit(proxy_declarations(module, layout)), "<proxy>", "exec"), namespace)

    async def record(
        pool: Any, ns: str, name: str, key: Any, args: Any, kwargs: Any, positional: Any = ()
    ) -> str:
        calls.append((pool, ns, name, key, args, kwargs))
        return "remote"

    namespace["_dispatch"] = record
    return namespace


class _KeyLog(ContainerPool):
    """Pool that records the resolved key and forwarded call instead of connecting."""

    def __init__(self) -> None:
        super().__init__(placement=None)
        self.log: list[tuple[str, str, tuple[Any, ...], dict[str, Any]]] = []

    def __call__(self, *, container_key: str) -> Any:
        log = self.log

        class _Stub:
            async def call(self, method: str, args: tuple[Any, ...], kwargs: Any) -> str:
                log.append((container_key, method, args, dict(kwargs)))
                return container_key

        return _Stub()


def _load_routed_proxy(
    module: ModuleDescriptor, monkeypatch: pytest.MonkeyPatch, pool: ContainerPool
) -> dict[str, Any]:
    """Execute a generated proxy wired to the real dispatch and *pool*."""
    client = types.ModuleType("__generated__.client")
    client.containers = pool  # type: ignore[attr-defined]
    monkeypatch.setitem(sys.modules, "__generated__", types.ModuleType("__generated__"))
    monkeypatch.setitem(sys.modules, "__generated__.client", client)

    layout = Layout(Path("/p"), Path("/p/__generated__"), "__generated__", Path("/p/.o"), Path("/p/d"))
    namespace: dict[str, Any] = {}
    exec(compile(emit(proxy_declarations(module, layout)), "<proxy>", "exec"), namespace)
    return namespace


class TestFreshProject:
    @pytest.fixture
    def root(self, tmp_path: Path, write_file: Callable[[str, str], Path]) -> Path:
        write_file(
            "mymodule.py",
            """
            from __generated__.runtime import container_fn

            @container_fn
            def f(a: int, b: int = 2) -> int:
                return a + b
            """,
        )
        return tmp_path

    def test_first_cycle_outputs(self, root: Path) -> None:
        modules = _discover(root, FLAT)
        layout = Layout.for_config(root, FLAT)

        written = generate_all(modules, layout, FLAT)

        gen = root / "__generated__"
        assert set(written) == {
            gen / "__init__.py",
            gen / "proxies" / "__init__.py",
            gen / "runtime.py",
            gen / "client.py",
            gen / "proxies" / "mymodule.py",
        }
        assert "def container_fn(" in (gen / "runtime.py").read_text()
        proxy = (gen / "proxies" / "mymodule.py").read_text()
        assert proxy.startswith(f"# {GENERATED_HEADER}\n# Proxy for: mymodule.py\n")
        assert "async def f(a: int, b: int=2) -> int:" in proxy

        entry = emit(entry_declarations(modules, FLAT))
        assert "import mymodule as m_mymodule" in entry
        assert "def mymodule__f(self, *args, **kwargs):" in entry

    def test_second_run_writes_nothing(self, root: Path) -> None:
        modules = _discover(root, FLAT)
        layout = Layout.for_config(root, FLAT)
        generate_all(modules, layout, FLAT)
        snapshot = {p: p.read_bytes() for p in (root / "__generated__").rglob("*.py")}

        assert generate_all(modules, layout, FLAT) == []
        assert {p: p.read_bytes() for p in (root / "__generated__").rglob("*.py")} == snapshot

    def test_stale_proxy_removed(self, root: Path) -> None:
        layout = Layout.for_config(root, FLAT)
        generate_all(_discover(root, FLAT), layout, FLAT)
        proxy = root / "__generated__" / "proxies" / "mymodule.py"

        written = generate_all([], layout, FLAT)

        assert proxy in written
        assert not proxy.exists()

    def test_dispatch_surface_calls_original(
        self, root: Path, monkeypatch: pytest.MonkeyPatch, isolated_modules: None
    ) -> None:
        modules = _discover(root, FLAT)
        generate_all(modules, Layout.for_config(root, FLAT), FLAT)
        monkeypatch.syspath_prepend(str(root))

        namespace: dict[str, Any] = {"__name__": "container_entry"}
        exec(compile(emit(entry_declarations(modules, FLAT)), "<entry>", "exec"), namespace)

        assert namespace["Api"]().mymodule__f(1, b=5) == 6

    @pytest.mark.asyncio
    async def test_proxy_keeps_signature(
        self, root: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        (module,) = _discover(root, FLAT)
        calls: list[tuple[Any, ...]] = []
        proxy = _load_proxy(module, monkeypatch, calls)

        f = proxy["f"]
        params = inspect.signature(f).parameters
        assert list(params) == ["a", "b"]
        assert params["b"].default == 2
        assert inspect.iscoroutinefunction(f)
        assert proxy["__all__"] == ["f"]

        assert await f(1) == "remote"
        assert calls == [("POOL", "mymodule", "f", DEFAULT_KEY, (), {"a": 1, "b": 2})]


class TestProxyForwarding:
    @pytest.mark.asyncio
    async def test_parameter_kinds(self, monkeypatch: pytest.MonkeyPatch) -> None:
        calls: list[tuple[Any, ...]] = []
        proxy = _load_proxy(
            _module(ExportDescriptor("mixed", parameters="a, /, b, *, c=1, **extra")),
            monkeypatch,
            calls,
        )

        await proxy["mixed"](1, 2, c=3, d=4)

        assert calls[0][4:] == ((1,), {"b": 2, "c": 3, "d": 4})

    @pytest.mark.asyncio
    async def test_varargs_forward_positionally(self, monkeypatch: pytest.MonkeyPatch) -> None:
        calls: list[tuple[Any, ...]] = []
        proxy = _load_proxy(
            _module(ExportDescriptor("va", parameters="a, *rest, flag=False")),
            monkeypatch,
            calls,
        )

        await proxy["va"](1, 2, 3, flag=True)

        assert calls[0][4:] == ((1, 2, 3), {"flag": True})

    @pytest.mark.asyncio
    async def test_non_literal_default_becomes_missing(self, monkeypatch: pytest.MonkeyPatch) -> None:
        calls: list[tuple[Any, ...]] = []
        proxy = _load_proxy(
            _module(ExportDescriptor("nl", parameters="x=DEFAULT_SIZE, y=(1, 2)")),
            monkeypatch,
            calls,
        )

        await proxy["nl"]()

        kwargs = calls[0][5]
        assert kwargs["x"] is proxy["_MISSING"]
        assert kwargs["y"] == (1, 2)

    def test_key_bindings(self, monkeypatch: pytest.MonkeyPatch) -> None:
        proxy = _load_proxy(
            _module(
                ExportDescriptor("plain"),
                ExportDescriptor("fixed", routing_key_expression="'instance-2'"),
                ExportDescriptor("computed", routing_key_expression="lambda ctx: ctx.args[0]"),
            ),
            monkeypatch,
            [],
        )

        assert proxy["_KEY_plain"] == DEFAULT_KEY
        assert proxy["_KEY_fixed"] == LiteralKey("instance-2")
        assert isinstance(proxy["_KEY_computed"], ComputedKey)


class TestComputedKeyRouting:
    @pytest.fixture
    def profile(
        self,
        tmp_path: Path,
        write_file: Callable[[str, str], Path],
        monkeypatch: pytest.MonkeyPatch,
    ) -> tuple[Any, _KeyLog]:
        write_file(
            "mymodule.py",
            """
            from __generated__.runtime import container_fn, container_key

            @container_fn(key=container_key(lambda ctx: f"user-{ctx.args[0]}"))
            def profile(user_id: str) -> dict:
                return {"id": user_id}
            """,
        )
        (module,) = _discover(tmp_path, FLAT)
        pool = _KeyLog()
        return _load_routed_proxy(module, monkeypatch, pool)["profile"], pool

    @pytest.mark.asyncio
    async def test_positional_call(self, profile: tuple[Any, _KeyLog]) -> None:
        proxy, pool = profile

        assert await proxy("u-42") == "user-u-42"
        assert pool.log == [("user-u-42", "mymodule__profile", (), {"user_id": "u-42"})]

    @pytest.mark.asyncio
    async def test_keyword_call(self, profile: tuple[Any, _KeyLog]) -> None:
        proxy, pool = profile

        assert await proxy(user_id="u-42") == "user-u-42"
        assert pool.log[0][0] == "user-u-42"

    @pytest.mark.asyncio
    async def test_context_shape(self, monkeypatch: pytest.MonkeyPatch) -> None:
        module = _module(
            ExportDescriptor(
                "render",
                routing_key_expression="lambda ctx: seen.append(ctx) or 'k'",
                parameters="doc, size=PAGE, scale=1.0, *, dpi=72",
            )
        )
        proxy = _load_routed_proxy(module, monkeypatch, _KeyLog())
        seen: list[CallContext] = []
        proxy["seen"] = seen

        await proxy["render"]("a.pdf", scale=2.0, dpi=300)

        # The omitted non-literal default ends the positional run.
        assert seen[0].args == ("a.pdf",)
        assert dict(seen[0].kwargs) == {"scale": 2.0, "dpi": 300}


class TestClientWiring:
    def test_pool_subclass(self, tmp_path: Path) -> None:
        config = OffloadConfig(class_name="Workers", binding="WORKERS", env_vars=(("TOKEN", "HOST_TOKEN"),))
        layout = Layout.for_config(tmp_path, config)

        generate_all([], layout, config)

        text = (tmp_path / "src" / "__generated__" / "client.py").read_text()
        assert "class Workers(ContainerPool):" in text
        assert "binding = 'WORKERS'" in text
        assert "env_vars = (('TOKEN', 'HOST_TOKEN'),)" in text
        assert "artifact = '../../.offload/server.pyz'" in text
        assert "containers = Workers.from_environment(Path(__file__).parent)" in text


class TestEmit:
    def test_header_and_body(self) -> None:
        import ast

        text = emit(ast.parse("x = 1"), header=("one", "two"))
        assert text == "# one\n# two\nx = 1\n"

    def test_empty_module(self) -> None:
        import ast

        assert emit(ast.Module(body=[], type_ignores=[])) == f"# {GENERATED_HEADER}\n"

    def test_deterministic(self) -> None:
        module = _module(ExportDescriptor("a", parameters="x: int"))
        layout = Layout(Path("/p"), Path("/p/g"), "g", Path("/p/.o"), Path("/p/d"))
        assert emit(proxy_declarations(module, layout)) == emit(proxy_declarations(module, layout))


def test_runtime_markers_are_transparent(tmp_path: Path) -> None:
    layout = Layout.for_config(tmp_path, OffloadConfig())
    generate_all([], layout, OffloadConfig())
    namespace: dict[str, Any] = {}
    source = (tmp_path / "src" / "__generated__" / "runtime.py").read_text()
    exec(compile(source, "<runtime>", "exec"), namespace)
    container_fn, container_key = namespace["container_fn"], namespace["container_key"]

    def f(x: int) -> int:
        return x

    assert container_fn(f) is f
    assert container_fn()(f) is f
    assert container_fn(key="k")(f) is f
    assert container_fn(container_key("k"))(f) is f
    assert container_key("k").container_key == "k"
    assert textwrap.dedent(source).startswith("# AUTO-GENERATED (runtime marker)")
