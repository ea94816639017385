"""Client base class shared by all language-model integrations."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

__all__ = [
    "LLMClient",
    "LLMClientError",
    "LLMRequest",
    "LLMResponseFormatError",
    "LLMTransportError",
]


class LLMClientError(RuntimeError):
    """Base error raised for language-model client failures."""


class LLMTransportError(LLMClientError):
    """Raised when the underlying transport fails to return a response."""


class LLMResponseFormatError(LLMClientError):
    """Raised when the model returns a payload without usable text."""


@dataclass(slots=True)
class LLMRequest:
    """Text request sent to an LLM."""

    prompt: str
    model: Optional[str] = None
    system_prompt: Optional[str] = None
    temperature: float = 0.0
    max_tokens: int = 1024
    deadline: Optional[float] = None

    def remaining(self) -> Optional[float]:
        """Return seconds left before ``deadline`` (``time.monotonic`` based)."""
        if self.deadline is None:
            return None
        return self.deadline - time.monotonic()

    def to_payload(self, default_model: str) -> Dict[str, Any]:
        """Render a transport-ready payload for the Messages API."""
        messages: List[Dict[str, Any]] = [
            {
                "role": "user",
                "content": [{"type": "text", "text": self.prompt}],
            }
        ]
        payload: Dict[str, Any] = {
            "model": self.model or default_model,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "messages": messages,
        }
        if self.system_prompt:
            payload["system"] = self.system_prompt
        return payload


class LLMClient:
    """High-level helper that sends one request and returns the reply text."""

    def __init__(self, model: str) -> None:
        self._model = model

    @property
    def model(self) -> str:
        """Return the default model name configured for this client."""
        return self._model

    def complete(self, request: LLMRequest) -> str:
        """Invoke the underlying model and return its reply text."""
        remaining = request.remaining()
        if remaining is not None and remaining <= 0:
            raise LLMTransportError("deadline exceeded before the model was called")
        payload = request.to_payload(self._model)
        text = self._raw_invoke(payload, timeout=remaining)
        if not text or not text.strip():
            raise LLMResponseFormatError("Model returned an empty response.")
        return text

    def _raw_invoke(self, payload: Dict[str, Any], *, timeout: Optional[float] = None) -> str:
        """Perform the transport call. Subclasses must implement."""
        raise NotImplementedError("Subclasses must implement _raw_invoke().")
