"""Configuration management for photonterm.

Loads settings from a YAML configuration file with environment variable
overrides. Supports .env files and the non-prefixed ``BACKEND_URL``
variable used by the web front end for the runner address.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config/photonterm.yaml")


class ChannelConfig(BaseModel):
    url: str = Field(default="http://127.0.0.1:5001", description="Remote runner Socket.IO URL")
    transports: list[Literal["polling", "websocket"]] = Field(default_factory=lambda: ["polling"])
    socketio_path: str = Field(default="socket.io")
    reconnection: bool = Field(default=True)
    reconnection_attempts: int = Field(default=10, ge=0, description="0 retries forever")
    reconnection_delay: float = Field(default=1.0, gt=0)
    reconnection_delay_max: float = Field(default=5.0, gt=0)
    connect_timeout: float = Field(default=25.0, gt=0)


class SessionConfig(BaseModel):
    auto_indent: bool = Field(default=True, description="Ask the runner to auto-indent submitted code")
    default_prompt: str = Field(default="Input:", description="Prompt shown when the runner sends none")
    abort_notice: str = Field(default="[process aborted]")
    tag_runs: bool = Field(
        default=False,
        description="Send a run_id with exec_start and drop inbound events tagged for another run",
    )


class ServerConfig(BaseModel):
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8765, ge=1, le=65535)


class LoggingConfig(BaseModel):
    level: str = Field(default="INFO")
    format: str = Field(
        default="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    file: str | None = Field(default=None)


class Settings(BaseSettings):
    """Root configuration for photonterm.

    Loads from YAML file and supports environment variable overrides.
    Reads .env files automatically.
    """

    model_config = {
        "env_prefix": "PHOTONTERM_",
        "env_nested_delimiter": "__",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    channel: ChannelConfig = Field(default_factory=ChannelConfig)
    session: SessionConfig = Field(default_factory=SessionConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_settings(config_path: Path | str | None = None) -> Settings:
    """Load settings from YAML + .env + environment variables.

    Priority: YAML file > prefixed env vars > .env file > defaults. A
    non-prefixed BACKEND_URL only fills the channel URL when YAML leaves
    it unset.
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

    _load_dotenv()

    yaml_data = {}
    if path.exists():
        with open(path) as f:
            yaml_data = yaml.safe_load(f) or {}
        logger.info("Loaded configuration from %s", path)
    else:
        logger.warning("Config file %s not found, using defaults + env vars", path)

    _apply_env_overrides(yaml_data)

    return Settings(**yaml_data)


def _load_dotenv() -> None:
    """Load .env file into os.environ if it exists."""
    env_path = Path(".env")
    if not env_path.exists():
        return
    with open(env_path) as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            if "=" in line:
                key, _, value = line.partition("=")
                key = key.strip()
                value = value.strip()
                if not os.environ.get(key):
                    os.environ[key] = value


def _apply_env_overrides(yaml_data: dict) -> None:
    """Apply environment variable overrides for non-prefixed vars."""
    backend_url = os.environ.get("BACKEND_URL", "")
    if not backend_url:
        return

    channel = yaml_data.setdefault("channel", {})
    if not channel.get("url"):
        channel["url"] = backend_url
