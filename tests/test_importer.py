"""Tests for offload.importer — redirecting container imports to proxies."""

import importlib
import inspect
from pathlib import Path
from typing import Any

import pytest

from offload.config import OffloadConfig
from offload.importer import install_import_hook, uninstall_import_hook
from offload.orchestrator.regen import Orchestrator


def _bundle(entry: Path, output_file: Path, **kwargs: Any) -> bool:
    return False


async def _generate(root: Path, config: OffloadConfig) -> None:
    orchestrator = Orchestrator(root, config, bundler=_bundle)
    try:
        assert await orchestrator.enqueue() is True
    finally:
        await orchestrator.close()


class TestProxyFinder:
    @pytest.mark.asyncio
    async def test_container_module_becomes_proxy(
        self, project: Path, monkeypatch: pytest.MonkeyPatch, isolated_modules: None
    ) -> None:
        config = OffloadConfig()
        await _generate(project, config)
        monkeypatch.delenv(config.binding, raising=False)
        monkeypatch.syspath_prepend(str(project / "src"))

        finder = install_import_hook(project, config)
        try:
            module = importlib.import_module("calc_container")
        finally:
            uninstall_import_hook(finder)

        assert module.__file__ == str(
            project / "src" / "__generated__" / "proxies" / "src_scalc_ucontainer.py"
        )
        assert inspect.iscoroutinefunction(module.add)
        assert list(inspect.signature(module.add).parameters) == ["a", "b"]

    @pytest.mark.asyncio
    async def test_other_modules_untouched(
        self,
        project: Path,
        monkeypatch: pytest.MonkeyPatch,
        write_file: Any,
        isolated_modules: None,
    ) -> None:
        config = OffloadConfig()
        await _generate(project, config)
        write_file("src/plain_helpers.py", "VALUE = 1\n")
        monkeypatch.syspath_prepend(str(project / "src"))

        finder = install_import_hook(project, config)
        try:
            assert finder.proxy_for("plain_helpers") is None
            assert importlib.import_module("plain_helpers").VALUE == 1
        finally:
            uninstall_import_hook(finder)

    def test_module_without_proxy_not_redirected(self, project: Path) -> None:
        finder = install_import_hook(project, OffloadConfig())
        try:
            assert finder.proxy_for("calc_container") is None
        finally:
            uninstall_import_hook(finder)

    def test_install_is_idempotent(self, project: Path) -> None:
        config = OffloadConfig()
        finder = install_import_hook(project, config)
        try:
            assert install_import_hook(project, config) is finder
        finally:
            uninstall_import_hook(finder)
