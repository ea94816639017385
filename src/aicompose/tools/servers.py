"""Discovery of MCP tool servers from ``MCP_SERVER_TOOL_*`` environment variables.

Each server is described by one variable per field, sharing a key::

    MCP_SERVER_TOOL_GITHUB_TRANSPORT=sse
    MCP_SERVER_TOOL_GITHUB_BASEURL=https://mcp.example.com/sse

Keys are case-insensitive. Servers whose merged configuration is invalid are
logged and skipped.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable, Mapping
from enum import Enum
from typing import Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict

__all__ = [
    "ENV_PREFIX",
    "ToolServerConfig",
    "ToolServerResolver",
    "Transport",
    "describe_servers",
]

LOGGER = logging.getLogger(__name__)

ENV_PREFIX = "MCP_SERVER_TOOL_"


class Transport(str, Enum):
    """Transports a tool server may be reached over."""

    SSE = "sse"
    STREAMABLE_HTTP = "http-stream"


class ToolServerConfig(BaseModel):
    """Connection settings for one MCP tool server."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str
    transport: str = ""
    base_url: str = ""

    def validate_config(self) -> None:
        """Raise ``ValueError`` when the configuration cannot be used."""
        if not self.base_url:
            raise ValueError(f"invalid mcp config {self.name!r}: baseURL required")
        if self.transport not in {item.value for item in Transport}:
            raise ValueError(
                f"invalid mcp config {self.name!r}: transport must be one of 'sse' or 'http-stream'"
            )

    def merge(self, other: "ToolServerConfig") -> "ToolServerConfig":
        """Fill fields left empty here with the values of ``other``."""
        return self.model_copy(
            update={
                "transport": self.transport or other.transport,
                "base_url": self.base_url or other.base_url,
            }
        )


class ToolServerResolver:
    """Derive tool server configurations from process environment entries."""

    def __init__(self, environ: Optional[Mapping[str, str]] = None) -> None:
        self._environ = environ

    def from_environ(self) -> Dict[str, ToolServerConfig]:
        """Return the valid tool server configurations keyed by server name."""
        environ = self._environ if self._environ is not None else os.environ
        configs: Dict[str, ToolServerConfig] = {}
        for name, value in sorted(environ.items()):
            parsed = self.parse(name, value)
            if parsed is None:
                continue
            key, config = parsed
            current = configs.get(key)
            configs[key] = current.merge(config) if current else config

        valid: Dict[str, ToolServerConfig] = {}
        for key, config in configs.items():
            try:
                config.validate_config()
            except ValueError as error:
                LOGGER.warning("Skipping invalid tool server config: %s", error)
                continue
            valid[key] = config
        return valid

    @staticmethod
    def parse(name: str, value: str) -> Optional[Tuple[str, ToolServerConfig]]:
        """Parse one environment entry, or return ``None`` when it is unrelated."""
        if not name.startswith(ENV_PREFIX):
            return None
        remainder = name[len(ENV_PREFIX) :]
        key, separator, field_name = remainder.rpartition("_")
        if not separator or not key:
            return None
        key = key.lower()
        field_name = field_name.lower()
        value = value.strip()
        if field_name == "transport":
            return key, ToolServerConfig(name=key, transport=value.lower())
        if field_name == "baseurl":
            return key, ToolServerConfig(name=key, base_url=value)
        LOGGER.debug("Ignoring unknown tool server field %s", name)
        return key, ToolServerConfig(name=key)


def describe_servers(configs: Iterable[ToolServerConfig]) -> list[str]:
    """Return one human-readable line per server."""
    return [f"{config.name}: {config.transport} {config.base_url}" for config in configs]
