from __future__ import annotations

from typing import Any, Dict, List, Optional

import pytest

from aicompose.models.agent import Agent, AgentOutputError, extract_tagged_output
from aicompose.models.llm_client import LLMClient


class CannedClient(LLMClient):
    def __init__(self, reply: str) -> None:
        super().__init__("canned-model")
        self.reply = reply
        self.payloads: List[Dict[str, Any]] = []

    def _raw_invoke(self, payload: Dict[str, Any], *, timeout: Optional[float] = None) -> str:
        self.payloads.append(payload)
        return self.reply


def test_agent_builds_one_client_per_key_and_extracts_tag() -> None:
    clients: Dict[str, CannedClient] = {}

    def factory(key: str) -> LLMClient:
        clients[key] = CannedClient("<analysis>x</analysis><output>\na: b\n</output>")
        return clients[key]

    agent = Agent(factory, max_tokens=256, temperature=0.5)
    reply = agent.invoke(key="sk-1", system="sys", prompt="p", model="claude-test", output_tag="output")

    assert reply == "\na: b\n"
    payload = clients["sk-1"].payloads[0]
    assert payload["model"] == "claude-test"
    assert payload["system"] == "sys"
    assert payload["max_tokens"] == 256
    assert payload["temperature"] == 0.5


def test_agent_returns_full_reply_without_tag() -> None:
    agent = Agent(lambda _key: CannedClient("plain answer"))

    assert agent.invoke(key="k", system="", prompt="p", model="") == "plain answer"


def test_agent_falls_back_to_client_model() -> None:
    client = CannedClient("ok")
    Agent(lambda _key: client).invoke(key="k", system="", prompt="p", model="")

    assert client.payloads[0]["model"] == "canned-model"
    assert "system" not in client.payloads[0]


def test_missing_tag_raises_agent_output_error() -> None:
    agent = Agent(lambda _key: CannedClient("```yaml\nkind: Bucket\n```"))

    with pytest.raises(AgentOutputError) as excinfo:
        agent.invoke(key="k", system="", prompt="p", model="m", output_tag="output")

    assert excinfo.value.reply == "```yaml\nkind: Bucket\n```"


def test_extract_tagged_output_spans_lines() -> None:
    assert extract_tagged_output("pre <out>a\nb</out> post", "out") == "a\nb"
