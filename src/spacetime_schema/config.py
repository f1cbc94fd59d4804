"""Configuration management for the SpacetimeDB schema tool.

Loads settings from environment variables or .env file.
Server nicknames are resolved separately from the SpacetimeDB CLI config
(see servers.py).
"""

from dataclasses import dataclass
from pathlib import Path

from pydantic_settings import BaseSettings

LOCAL_SERVER_URL = "http://localhost:3000"
CLOUD_SERVER_URL = "https://maincloud.spacetimedb.com"


@dataclass
class ServerConfig:
    """One server entry from the SpacetimeDB CLI config."""

    nickname: str
    host: str
    protocol: str = "http"

    @property
    def base_url(self) -> str:
        """Base URL for the HTTP API."""
        return f"{self.protocol}://{self.host}"


def default_cli_config_path() -> Path:
    """Location of the SpacetimeDB CLI config file."""
    return Path.home() / ".config" / "spacetime" / "cli.toml"


class Settings(BaseSettings):
    """Schema tool settings.

    Values are loaded from STDB_* environment variables.
    For local development, use a .env file.
    """

    # Server nickname or full URL
    server: str = "local"
    schema_version: str = "9"

    # HTTP
    timeout: float = 30.0
    verify_ssl: bool = True

    cli_config_path: Path = default_cli_config_path()

    # Logging
    log_level: str = "WARNING"

    model_config = {
        "env_prefix": "STDB_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


# Singleton settings instance
settings = Settings()
