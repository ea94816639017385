"""Tool integrations exposed to the model."""

from .servers import ENV_PREFIX, ToolServerConfig, ToolServerResolver, Transport, describe_servers

__all__ = [
    "ENV_PREFIX",
    "ToolServerConfig",
    "ToolServerResolver",
    "Transport",
    "describe_servers",
]
