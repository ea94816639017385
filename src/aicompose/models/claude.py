"""Production client that speaks the Anthropic Messages API."""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Iterable
from typing import Any, Callable, Dict, Optional

from ..tools.servers import ToolServerConfig
from .llm_client import LLMClient, LLMResponseFormatError, LLMTransportError

__all__ = ["AnthropicClient", "DEFAULT_MODEL"]

LOGGER = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-3-7-sonnet-latest"
API_VERSION = "2023-06-01"
MCP_BETA = "mcp-client-2025-04-04"

Transport = Callable[[Dict[str, Any], Dict[str, str], Optional[float]], str]


class AnthropicClient(LLMClient):
    """Thin adapter around the Anthropic Messages API."""

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        base_url: str = "https://api.anthropic.com/v1/messages",
        model: str = DEFAULT_MODEL,
        transport: Optional[Transport] = None,
        timeout: float = 120.0,
        tool_servers: Iterable[ToolServerConfig] = (),
    ) -> None:
        super().__init__(model=model)
        self._api_key = api_key or os.getenv("ANTHROPIC_API_KEY")
        self._base_url = base_url
        timeout_override = os.getenv("ANTHROPIC_TIMEOUT")
        if timeout_override:
            try:
                parsed = float(timeout_override)
                if parsed > 0:
                    timeout = parsed
            except ValueError:
                LOGGER.warning("Ignoring non-numeric ANTHROPIC_TIMEOUT %r", timeout_override)
        self._timeout = timeout
        self._tool_servers = list(tool_servers)
        self._transport = transport or self._http_transport

        if transport is None and not self._api_key:
            raise ValueError("An API key is required when using the default transport.")

    def _raw_invoke(self, payload: Dict[str, Any], *, timeout: Optional[float] = None) -> str:
        """Send the request over the configured transport."""
        headers = {
            "content-type": "application/json",
            "anthropic-version": API_VERSION,
        }
        if self._api_key:
            headers["x-api-key"] = self._api_key
        if self._tool_servers:
            payload = dict(payload)
            payload["mcp_servers"] = [
                {"type": "url", "url": server.base_url, "name": server.name} for server in self._tool_servers
            ]
            headers["anthropic-beta"] = MCP_BETA

        effective_timeout = self._timeout if timeout is None else min(self._timeout, timeout)
        try:
            raw_response = self._transport(payload, headers, effective_timeout)
        except LLMTransportError:
            raise
        except Exception as error:  # pragma: no cover
            raise LLMTransportError(f"Transport rejected the request: {error}") from error

        text = self._extract_text(raw_response)
        if text is None:
            raise LLMResponseFormatError("Messages API response did not contain text content.")
        return text

    def _http_transport(
        self,
        payload: Dict[str, Any],
        headers: Dict[str, str],
        timeout: Optional[float],
    ) -> str:
        """Default HTTP transport that targets the Messages API."""
        import urllib.error
        import urllib.request

        LOGGER.debug("Sending Messages API request for model %s", payload.get("model"))
        data = json.dumps(payload).encode("utf-8")
        request = urllib.request.Request(self._base_url, data=data, headers=headers, method="POST")

        try:
            with urllib.request.urlopen(request, timeout=timeout) as response:
                raw = response.read()
                status = getattr(response, "status", 200)
        except TimeoutError as error:  # pragma: no cover - network-dependent
            raise LLMTransportError("Messages API response timed out.") from error
        except urllib.error.HTTPError as error:  # pragma: no cover - network-dependent
            message = error.read().decode("utf-8", errors="ignore")
            raise LLMTransportError(f"HTTP {error.code}: {message}") from error
        except urllib.error.URLError as error:  # pragma: no cover - network-dependent
            raise LLMTransportError(f"Failed to reach Messages API endpoint: {error.reason}") from error

        if status >= 400:
            raise LLMTransportError(f"Unexpected HTTP status {status}")

        return raw.decode("utf-8")

    @staticmethod
    def _extract_text(raw_response: str) -> Optional[str]:
        """Join the text blocks of a Messages API response."""
        if not raw_response:
            return None

        try:
            data = json.loads(raw_response)
        except json.JSONDecodeError:
            return raw_response

        if not isinstance(data, dict):
            return None
        if data.get("type") == "error":
            error = data.get("error") if isinstance(data.get("error"), dict) else {}
            raise LLMTransportError(f"Messages API error: {error.get('message') or raw_response}")

        content = data.get("content")
        if not isinstance(content, list):
            return None

        # Tool use interleaves non-text blocks; only the text is the reply.
        fragments = [
            block["text"]
            for block in content
            if isinstance(block, dict) and block.get("type") == "text" and isinstance(block.get("text"), str)
        ]
        if not fragments:
            return None
        return "\n".join(fragments)
