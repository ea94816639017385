"""Convenience exports for language-model client implementations."""

from .agent import Agent, AgentInvoker, AgentOutputError, extract_tagged_output
from .claude import DEFAULT_MODEL, AnthropicClient
from .llm_client import (
    LLMClient,
    LLMClientError,
    LLMRequest,
    LLMResponseFormatError,
    LLMTransportError,
)

__all__ = [
    "Agent",
    "AgentInvoker",
    "AgentOutputError",
    "AnthropicClient",
    "DEFAULT_MODEL",
    "LLMClient",
    "LLMClientError",
    "LLMRequest",
    "LLMResponseFormatError",
    "LLMTransportError",
    "extract_tagged_output",
]
