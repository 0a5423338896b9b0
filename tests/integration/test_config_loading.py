"""Integration tests for configuration loading with layered precedence.

Tests the real load_config() function with actual YAML files, environment
variables, and CLI overrides to verify precedence: defaults < YAML < ENV < CLI.
"""

from __future__ import annotations

import os
from pathlib import Path

import pytest
import yaml

from playerscout.infrastructure.config.load import load_config

pytestmark = pytest.mark.integration


@pytest.fixture()
def yaml_config(tmp_path: Path) -> Path:
    """Write a minimal YAML config and return its path."""
    config = {
        "app_name": "playerscout-test",
        "environment": "test",
        "http": {
            "timeout_seconds": 10.0,
            "user_agent": "TestAgent/1.0",
        },
        "logging": {"level": "DEBUG", "format": "console"},
        "cache": {"ttl_seconds": 1800, "failure_ttl_seconds": 30},
        "sources": {
            "priority": ["rezka", "collaps"],
            "rezka": {"host": "https://rezka.example/", "translator_id": 56},
            "videohub": {"enabled": False},
        },
    }
    path = tmp_path / "config.yaml"
    path.write_text(yaml.dump(config), encoding="utf-8")
    return path


class TestDefaultsOnly:
    """Load with no YAML, no ENV, no CLI: pure defaults."""

    def test_defaults_produce_valid_config(self) -> None:
        config = load_config()
        assert config.app_name == "playerscout"
        assert config.environment == "dev"
        assert config.http_timeout_seconds == 15.0
        assert config.log_level == "INFO"
        assert config.log_format == "console"  # dev → console
        assert config.cache_ttl_seconds == 600
        assert config.cache_failure_ttl_seconds is None
        assert config.search_timeout_seconds == 30.0

    def test_default_sources(self) -> None:
        config = load_config()
        assert config.sources.priority == ["collaps", "videohub", "rezka"]
        assert config.sources.rezka.relay_host == "https://cors.apn.monster"
        assert config.sources.collaps.relay_host == "https://cors.apn.monster"
        assert config.sources.videohub.relay_host is None

    def test_defaults_derive_log_format_from_environment(self) -> None:
        config = load_config(cli_overrides={"environment": "prod"})
        assert config.log_format == "json"


class TestYamlOverrides:
    """YAML values override defaults."""

    def test_yaml_overrides_defaults(self, yaml_config: Path) -> None:
        config = load_config(config_path=yaml_config)
        assert config.app_name == "playerscout-test"
        assert config.environment == "test"
        assert config.http_timeout_seconds == 10.0
        assert config.http_user_agent == "TestAgent/1.0"
        assert config.log_level == "DEBUG"
        assert config.cache_ttl_seconds == 1800
        assert config.cache_failure_ttl_seconds == 30

    def test_yaml_source_sections(self, yaml_config: Path) -> None:
        config = load_config(config_path=yaml_config)
        assert config.sources.priority == ["rezka", "collaps"]
        assert config.sources.rezka.host == "https://rezka.example"
        assert config.sources.rezka.translator_id == 56
        assert config.sources.videohub.enabled is False
        # Untouched source keeps its defaults
        assert config.sources.collaps.api_host == "https://api.bhcesh.me"

    def test_yaml_file_not_found_raises(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_config(config_path=tmp_path / "nonexistent.yaml")

    def test_yaml_must_be_mapping(self, tmp_path: Path) -> None:
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ValueError, match="mapping"):
            load_config(config_path=path)

    def test_empty_yaml_keeps_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        assert load_config(config_path=path).app_name == "playerscout"


class TestEnvOverrides:
    """Environment variables override YAML and defaults."""

    def test_env_overrides_yaml(
        self, yaml_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("PLAYERSCOUT_LOG_LEVEL", "WARNING")
        monkeypatch.setenv("PLAYERSCOUT_HTTP_TIMEOUT_SECONDS", "60.0")

        config = load_config(config_path=yaml_config)
        assert config.log_level == "WARNING"
        assert config.http_timeout_seconds == 60.0
        # YAML values not overridden by ENV stay
        assert config.app_name == "playerscout-test"

    def test_relay_host_applies_to_every_source(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("PLAYERSCOUT_RELAY_HOST", "https://relay.example/")

        config = load_config()
        for source in (
            config.sources.rezka,
            config.sources.collaps,
            config.sources.videohub,
        ):
            assert source.relay_host == "https://relay.example"

    def test_empty_relay_host_means_direct(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("PLAYERSCOUT_RELAY_HOST", "")
        config = load_config()
        assert config.sources.rezka.relay_host is None

    def test_source_credentials(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PLAYERSCOUT_COLLAPS_TOKEN", "secret")
        monkeypatch.setenv("PLAYERSCOUT_VIDEOHUB_PUB", "99")
        monkeypatch.setenv("PLAYERSCOUT_REZKA_HOST", "https://mirror.example")

        config = load_config()
        assert config.sources.collaps.token == "secret"
        assert config.sources.videohub.pub == "99"
        assert config.sources.rezka.host == "https://mirror.example"

    def test_dotenv_file(self, tmp_path: Path) -> None:
        dotenv = tmp_path / ".env"
        dotenv.write_text("PLAYERSCOUT_SEARCH_TIMEOUT_SECONDS=7\n", encoding="utf-8")

        try:
            config = load_config(dotenv_path=dotenv)
        finally:
            os.environ.pop("PLAYERSCOUT_SEARCH_TIMEOUT_SECONDS", None)
        assert config.search_timeout_seconds == 7.0

    def test_missing_dotenv_raises(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_config(dotenv_path=tmp_path / ".env")


class TestCliOverrides:
    """CLI overrides beat everything (highest precedence)."""

    def test_cli_overrides_yaml_and_env(
        self, yaml_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("PLAYERSCOUT_LOG_LEVEL", "WARNING")

        config = load_config(
            config_path=yaml_config,
            cli_overrides={"log_level": "ERROR"},
        )
        assert config.log_level == "ERROR"

    def test_cli_relay_beats_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PLAYERSCOUT_RELAY_HOST", "https://env.example")
        config = load_config(cli_overrides={"relay_host": "https://cli.example"})
        assert config.sources.collaps.relay_host == "https://cli.example"

    def test_cli_overrides_with_sectioned_format(self, yaml_config: Path) -> None:
        config = load_config(
            config_path=yaml_config,
            cli_overrides={"search": {"timeout_seconds": 5.0}},
        )
        assert config.search_timeout_seconds == 5.0

    def test_invalid_value_rejected(self) -> None:
        with pytest.raises(ValueError):
            load_config(cli_overrides={"search_timeout_seconds": 0})
