"""Shared fixtures: throwaway projects with container modules."""

import textwrap
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

from offload.runtime.keys import set_container_key_resolver

CALC_SOURCE = '''
from __generated__.runtime import container_fn, container_key


@container_fn
def add(a: int, b: int = 2) -> int:
    return a + b


@container_fn(key=container_key(lambda ctx: "instance-2"))
async def pinned(name: str) -> str:
    return f"hello {name}"
'''


@pytest.fixture(autouse=True)
def _reset_key_resolver() -> Iterator[None]:
    yield
    set_container_key_resolver(None)


@pytest.fixture
def write_file(tmp_path: Path) -> Callable[[str, str], Path]:
    """Write a dedented file relative to the project root."""

    def write(rel: str, source: str) -> Path:
        path = tmp_path / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(source).lstrip(), encoding="utf-8")
        return path

    return write


@pytest.fixture
def project(tmp_path: Path, write_file: Callable[[str, str], Path]) -> Path:
    """A project with ``src/calc_container.py`` exporting ``add`` and ``pinned``."""
    write_file(
        "pyproject.toml",
        """
        [project]
        name = "calc-app"
        version = "1.2.3"
        dependencies = ["httpx>=0.27", "numpy>=2.0"]
        """,
    )
    write_file("src/calc_container.py", CALC_SOURCE)
    return tmp_path


@pytest.fixture
def isolated_modules() -> Iterator[None]:
    """Forget modules imported during the test (generated packages differ per project)."""
    import sys

    before = set(sys.modules)
    yield
    for name in set(sys.modules) - before:
        del sys.modules[name]
