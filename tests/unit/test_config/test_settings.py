"""Tests for configuration loading and validation."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from photonterm.config.settings import (
    ChannelConfig,
    ServerConfig,
    SessionConfig,
    Settings,
    load_settings,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Isolate every test from the developer's environment and .env file."""
    monkeypatch.chdir(tmp_path)
    # load_settings writes .env values into os.environ; an empty value
    # lets it do so while still being restored afterwards
    monkeypatch.setenv("BACKEND_URL", "")
    monkeypatch.delenv("PHOTONTERM_CHANNEL__URL", raising=False)


class TestSettings:
    """Test configuration models and loading."""

    def test_default_settings(self) -> None:
        """Default Settings should be valid."""
        settings = Settings()
        assert settings.channel.url == "http://127.0.0.1:5001"
        assert settings.session.default_prompt == "Input:"
        assert settings.server.port == 8765
        assert settings.logging.level == "INFO"

    def test_channel_config_defaults(self) -> None:
        """ChannelConfig should mirror the web client's reconnection policy."""
        config = ChannelConfig()
        assert config.transports == ["polling"]
        assert config.reconnection_attempts == 10
        assert config.reconnection_delay == 1.0
        assert config.connect_timeout == 25.0

    def test_session_config_defaults(self) -> None:
        config = SessionConfig()
        assert config.auto_indent is True
        assert config.abort_notice == "[process aborted]"
        assert config.tag_runs is False

    def test_invalid_transport_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ChannelConfig(transports=["carrier-pigeon"])

    def test_invalid_port_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ServerConfig(port=0)

    def test_nested_env_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PHOTONTERM_SESSION__TAG_RUNS", "true")
        assert Settings().session.tag_runs is True


class TestLoadSettings:
    def test_missing_file(self, tmp_path: Path) -> None:
        """load_settings with missing file should return defaults."""
        settings = load_settings(tmp_path / "nonexistent.yaml")
        assert settings.channel.url == "http://127.0.0.1:5001"

    def test_yaml_file(self, tmp_path: Path) -> None:
        path = tmp_path / "photonterm.yaml"
        path.write_text(
            "channel:\n"
            "  url: http://runner:7000\n"
            "  transports: [websocket]\n"
            "session:\n"
            "  default_prompt: '>'\n"
        )
        settings = load_settings(path)
        assert settings.channel.url == "http://runner:7000"
        assert settings.channel.transports == ["websocket"]
        assert settings.session.default_prompt == ">"

    def test_empty_yaml_file(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_settings(path).server.host == "127.0.0.1"

    def test_backend_url_fills_missing_url(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("BACKEND_URL", "http://backend:5001")
        settings = load_settings(tmp_path / "nonexistent.yaml")
        assert settings.channel.url == "http://backend:5001"

    def test_yaml_url_wins_over_backend_url(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("BACKEND_URL", "http://backend:5001")
        path = tmp_path / "photonterm.yaml"
        path.write_text("channel:\n  url: http://yaml:5001\n")
        assert load_settings(path).channel.url == "http://yaml:5001"

    def test_dotenv_backend_url(self, tmp_path: Path) -> None:
        (tmp_path / ".env").write_text("# runner\nBACKEND_URL=http://dotenv:5001\n")
        settings = load_settings(tmp_path / "nonexistent.yaml")
        assert settings.channel.url == "http://dotenv:5001"
