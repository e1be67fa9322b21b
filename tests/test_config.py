"""Tests for agentwire.yaml loading and validation."""

from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from agentwire.config import AgentWireConfig, ConfigError, load_config


def _write(tmp_path: Path, content: str, name: str = "agentwire.yaml") -> Path:
    path = tmp_path / name
    path.write_text(textwrap.dedent(content))
    return path


@pytest.fixture(autouse=True)
def _clear_timeout_env(monkeypatch: pytest.MonkeyPatch) -> None:
    # setenv first so teardown also removes values written by load_dotenv.
    monkeypatch.setenv("CLAUDE_TIMEOUT_MS", "")
    monkeypatch.delenv("CLAUDE_TIMEOUT_MS")


class TestLoadConfig:
    def test_full_config(self, tmp_path: Path) -> None:
        path = _write(
            tmp_path,
            """\
            version: "1"
            agent:
              binary: /usr/local/bin/claude
              workdir: ./work
              timeout_seconds: 600
              model_aliases:
                fast: claude-haiku-4-5
            remote:
              host: dev@build-box
              port: 2222
              key_path: ~/.ssh/id_ed25519
              workdir: ~/repo
              keepalive_interval: 15
            """,
        )
        config = load_config(path)
        assert config.agent.binary == "/usr/local/bin/claude"
        assert config.agent.timeout_seconds == 600
        assert config.agent.model_aliases == {"fast": "claude-haiku-4-5"}
        assert config.remote is not None
        assert config.remote.host == "dev@build-box"
        assert config.remote.port == 2222
        assert config.remote.connect_timeout == 20
        assert config.remote.keepalive_interval == 15

    def test_defaults_when_no_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        config = load_config()
        assert config == AgentWireConfig()
        assert config.agent.timeout_seconds == 1800
        assert config.agent.model_aliases["sonnet"] == "claude-sonnet-4-6"
        assert config.remote is None

    def test_default_file_picked_up(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        _write(tmp_path, "agent:\n  timeout_seconds: 30\n")
        monkeypatch.chdir(tmp_path)
        assert load_config().agent.timeout_seconds == 30

    def test_empty_file_uses_defaults(self, tmp_path: Path) -> None:
        assert load_config(_write(tmp_path, "")) == AgentWireConfig()

    def test_explicit_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="Config file not found"):
            load_config(tmp_path / "missing.yaml")


class TestValidationErrors:
    def test_invalid_yaml_reports_position(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "agent: [unclosed\n")
        with pytest.raises(ConfigError, match=r"Invalid YAML in agentwire.yaml \(line"):
            load_config(path)

    def test_non_mapping(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="Expected a YAML mapping"):
            load_config(_write(tmp_path, "- a\n- b\n"))

    def test_unknown_field(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "agent:\n  binray: claude\n")
        with pytest.raises(ConfigError) as exc_info:
            load_config(path)
        assert "agent → binray: Unknown field" in str(exc_info.value)

    def test_remote_requires_host(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "remote:\n  port: 22\n")
        with pytest.raises(ConfigError) as exc_info:
            load_config(path)
        assert "remote → host: This field is required" in str(exc_info.value)

    def test_bad_host(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "remote:\n  host: 'dev@'\n")
        with pytest.raises(ConfigError, match="Invalid host"):
            load_config(path)

    def test_non_positive_timeout(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "agent:\n  timeout_seconds: 0\n")
        with pytest.raises(ConfigError, match="timeout_seconds"):
            load_config(path)


class TestEnvironment:
    def test_timeout_env_override(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CLAUDE_TIMEOUT_MS", "90000")
        config = load_config(_write(tmp_path, "agent:\n  timeout_seconds: 600\n"))
        assert config.agent.timeout_seconds == 90

    def test_timeout_env_must_be_integer(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("CLAUDE_TIMEOUT_MS", "soon")
        with pytest.raises(ConfigError, match="CLAUDE_TIMEOUT_MS must be an integer"):
            load_config(_write(tmp_path, ""))

    def test_dotenv_beside_config_loaded(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        (tmp_path / ".env").write_text("CLAUDE_TIMEOUT_MS=5000\n")
        config = load_config(_write(tmp_path, ""))
        assert config.agent.timeout_seconds == 5
