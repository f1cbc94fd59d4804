"""Server nickname resolution.

Maps short names like "local" or "maincloud" to a base URL. Nicknames are
read from the SpacetimeDB CLI config (~/.config/spacetime/cli.toml) when it
exists; otherwise built-in defaults apply.
"""

import logging
import tomllib
from pathlib import Path
from typing import Protocol, runtime_checkable

from spacetime_schema.config import CLOUD_SERVER_URL, LOCAL_SERVER_URL, ServerConfig, settings

logger = logging.getLogger(__name__)

_BUILTIN_SERVERS: dict[str, str] = {
    "local": LOCAL_SERVER_URL,
    "cloud": CLOUD_SERVER_URL,
    "maincloud": CLOUD_SERVER_URL,
}


@runtime_checkable
class ServerProvider(Protocol):
    """Interface for looking up configured servers by nickname."""

    def get_server_names(self) -> list[str]:
        """Return all configured nicknames."""
        ...

    def get_server(self, nickname: str) -> ServerConfig | None:
        """Return the server for a nickname, or None if not configured."""
        ...

    def get_default_server(self) -> str:
        """Return the default nickname, or empty string if none."""
        ...


class CliTomlServerProvider:
    """Server provider backed by the SpacetimeDB CLI's cli.toml.

    A missing file is not an error: the provider simply has no servers.
    """

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or settings.cli_config_path
        self._servers: dict[str, ServerConfig] = {}
        self._default = ""
        self._load()

    def _load(self) -> None:
        """Parse server_configs entries from the config file."""
        if not self._path.is_file():
            logger.debug("No CLI config at %s", self._path)
            return

        try:
            config = tomllib.loads(self._path.read_text(encoding="utf-8"))
        except tomllib.TOMLDecodeError as e:
            raise ValueError(f"Invalid SpacetimeDB CLI config {self._path}: {e}") from e

        for entry in config.get("server_configs", []):
            if not isinstance(entry, dict):
                continue
            nickname = entry.get("nickname")
            host = entry.get("host")
            protocol = entry.get("protocol")
            # Entries without protocol+host can't produce a URL
            if not (isinstance(nickname, str) and isinstance(host, str)):
                continue
            if not isinstance(protocol, str):
                continue
            self._servers[nickname] = ServerConfig(nickname=nickname, host=host, protocol=protocol)

        default = config.get("default_server", "")
        self._default = default if isinstance(default, str) else ""
        logger.debug("Loaded %d server(s) from %s", len(self._servers), self._path)

    def get_server_names(self) -> list[str]:
        """Return all configured nicknames."""
        return sorted(self._servers.keys())

    def get_server(self, nickname: str) -> ServerConfig | None:
        """Return the server for a nickname, or None if not configured."""
        return self._servers.get(nickname)

    def get_default_server(self) -> str:
        """Return default_server from the config file, or empty string."""
        return self._default


def resolve_server_url(server: str, provider: ServerProvider | None = None) -> str:
    """Resolve a server nickname or address to a base URL.

    Resolution order (first match wins):
      1. Already a full http:// or https:// URL -> returned unchanged
      2. Nickname configured in cli.toml       -> <protocol>://<host>
      3. "local"                               -> http://localhost:3000
      4. "cloud" / "maincloud"                 -> https://maincloud.spacetimedb.com
      5. Anything else                         -> http://<server>

    Args:
        server: Nickname, host[:port], or full URL.
        provider: Server lookup. Defaults to the CLI config file.

    Returns:
        Base URL without a trailing slash.
    """
    if server.startswith(("http://", "https://")):
        return server.rstrip("/")

    if provider is None:
        provider = CliTomlServerProvider()

    configured = provider.get_server(server)
    if configured is not None:
        return configured.base_url

    if server in _BUILTIN_SERVERS:
        return _BUILTIN_SERVERS[server]

    return f"http://{server}"


def list_servers(provider: ServerProvider | None = None) -> str:
    """Format configured and built-in server nicknames with their URLs."""
    if provider is None:
        provider = CliTomlServerProvider()

    default = provider.get_default_server()
    lines = ["Servers:"]
    for name in provider.get_server_names():
        marker = " (default)" if name == default else ""
        lines.append(f"  {name}: {resolve_server_url(name, provider)}{marker}")

    configured = set(provider.get_server_names())
    for name, url in _BUILTIN_SERVERS.items():
        if name not in configured:
            lines.append(f"  {name}: {url} (built-in)")
    return "\n".join(lines)
