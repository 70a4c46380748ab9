"""Tests for offload.config — OffloadConfig frozen dataclass and [tool.offload] loading."""

from pathlib import Path

import pytest

from offload.config import (
    CustomDockerfile,
    DockerOptions,
    DockerUser,
    OffloadConfig,
    config_from_mapping,
    load_config,
    normalize_env_vars,
)
from offload.errors import ConfigurationError


class TestOffloadConfig:
    def test_defaults(self) -> None:
        cfg = OffloadConfig()

        assert cfg.files == ("**/*_container.py",)
        assert cfg.generated_dir == "src/__generated__"
        assert cfg.artifacts_dir == ".offload"
        assert cfg.out_dir == "dist"
        assert cfg.binding == "OFFLOAD_FN"
        assert cfg.class_name == "OffloadContainer"
        assert cfg.container_port == 8080
        assert cfg.external == ()
        assert cfg.docker == DockerOptions()
        assert cfg.auto_rebuild is True
        assert cfg.rebuild_debounce == 0.6

    def test_override(self) -> None:
        cfg = OffloadConfig(container_port=9000, external=("numpy",))

        assert cfg.container_port == 9000
        assert cfg.external == ("numpy",)

    def test_frozen(self) -> None:
        cfg = OffloadConfig()

        with pytest.raises(AttributeError):
            cfg.container_port = 1  # type: ignore[misc]


class TestEnvVars:
    def test_names(self) -> None:
        assert normalize_env_vars(["API_TOKEN"]) == (("API_TOKEN", "API_TOKEN"),)

    def test_mapping(self) -> None:
        assert normalize_env_vars({"TOKEN": "HOST_TOKEN"}) == (("TOKEN", "HOST_TOKEN"),)

    def test_pairs(self) -> None:
        assert normalize_env_vars([["TOKEN", "HOST_TOKEN"]]) == (("TOKEN", "HOST_TOKEN"),)

    def test_bad_entry(self) -> None:
        with pytest.raises(ConfigurationError):
            normalize_env_vars([42])

    def test_bad_type(self) -> None:
        with pytest.raises(ConfigurationError):
            normalize_env_vars("API_TOKEN")


class TestConfigFromMapping:
    def test_kebab_and_snake_keys(self) -> None:
        cfg = config_from_mapping({"container-port": 9000, "class_name": "Workers"})

        assert cfg.container_port == 9000
        assert cfg.class_name == "Workers"

    def test_lists_become_tuples(self) -> None:
        cfg = config_from_mapping({"external": ["numpy", "pillow"]})
        assert cfg.external == ("numpy", "pillow")

    def test_unknown_key(self) -> None:
        with pytest.raises(ConfigurationError, match="Unknown"):
            config_from_mapping({"bogus": True})

    def test_non_string_patterns(self) -> None:
        with pytest.raises(ConfigurationError):
            config_from_mapping({"files": [1, 2]})

    def test_docker_options(self) -> None:
        cfg = config_from_mapping(
            {
                "docker": {
                    "base-image": "python:3.13-slim",
                    "system-packages": ["ffmpeg"],
                    "env": {"MODE": "prod"},
                    "user": {"name": "app", "uid": 1000},
                }
            }
        )

        assert cfg.docker == DockerOptions(
            base_image="python:3.13-slim",
            system_packages=("ffmpeg",),
            env=(("MODE", "prod"),),
            user=DockerUser(name="app", uid=1000),
        )

    def test_custom_dockerfile(self) -> None:
        cfg = config_from_mapping({"docker": {"dockerfile-path": "docker/Dockerfile"}})
        assert cfg.docker == CustomDockerfile(path="docker/Dockerfile")

    def test_unknown_docker_option(self) -> None:
        with pytest.raises(ConfigurationError, match="docker"):
            config_from_mapping({"docker": {"gpu": True}})


class TestLoadConfig:
    def test_missing_pyproject(self, tmp_path: Path) -> None:
        assert load_config(tmp_path) == OffloadConfig()

    def test_reads_tool_table(self, tmp_path: Path) -> None:
        (tmp_path / "pyproject.toml").write_text(
            '[tool.offload]\nbinding = "WORKERS"\nenv-vars = ["API_TOKEN"]\n',
            encoding="utf-8",
        )
        cfg = load_config(tmp_path)

        assert cfg.binding == "WORKERS"
        assert cfg.env_vars == (("API_TOKEN", "API_TOKEN"),)

    def test_invalid_toml(self, tmp_path: Path) -> None:
        (tmp_path / "pyproject.toml").write_text("[tool.offload\n", encoding="utf-8")

        with pytest.raises(ConfigurationError, match="Invalid"):
            load_config(tmp_path)
