"""Agent invocation: one prompt in, one reply out."""

from __future__ import annotations

import logging
import re
from typing import Callable, Optional, Protocol

from ..documents.salvage import AGENT_OUTPUT_ERROR_MARKER
from .llm_client import LLMClient, LLMClientError, LLMRequest

__all__ = [
    "Agent",
    "AgentInvoker",
    "AgentOutputError",
    "ClientFactory",
    "extract_tagged_output",
]

LOGGER = logging.getLogger(__name__)


ClientFactory = Callable[[str], LLMClient]


class AgentOutputError(LLMClientError):
    """Raised when a reply lacks the tagged section the caller asked for."""

    def __init__(self, reply: str) -> None:
        super().__init__(f"{AGENT_OUTPUT_ERROR_MARKER} {reply}")
        self.reply = reply


class AgentInvoker(Protocol):
    """Anything that can turn a prompt into a reply."""

    def invoke(
        self,
        *,
        key: str,
        system: str,
        prompt: str,
        model: str,
        output_tag: Optional[str] = None,
        deadline: Optional[float] = None,
    ) -> str:
        ...


def extract_tagged_output(reply: str, tag: str) -> str:
    """Return the text inside ``<tag>...</tag>`` or raise ``AgentOutputError``."""
    pattern = re.compile(rf"<{re.escape(tag)}>(.*)</{re.escape(tag)}>", re.DOTALL)
    match = pattern.search(reply)
    if not match:
        raise AgentOutputError(reply)
    return match.group(1)


class Agent:
    """Default invoker that builds a client per API key and sends one request."""

    def __init__(self, client_factory: ClientFactory, *, max_tokens: int = 1024, temperature: float = 0.0) -> None:
        self._client_factory = client_factory
        self._max_tokens = max_tokens
        self._temperature = temperature

    def invoke(
        self,
        *,
        key: str,
        system: str,
        prompt: str,
        model: str,
        output_tag: Optional[str] = None,
        deadline: Optional[float] = None,
    ) -> str:
        client = self._client_factory(key)
        request = LLMRequest(
            prompt=prompt,
            model=model or None,
            system_prompt=system or None,
            temperature=self._temperature,
            max_tokens=self._max_tokens,
            deadline=deadline,
        )
        reply = client.complete(request)
        LOGGER.debug("Got reply from model %s: %s", request.model or client.model, reply)
        if output_tag is None:
            return reply
        return extract_tagged_output(reply, output_tag)
