from __future__ import annotations

import base64
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


@dataclass(slots=True)
class ScriptedAgent:
    """Agent double that records every call and returns a scripted reply."""

    reply: str = ""
    error: Optional[BaseException] = None
    calls: List[Dict[str, Any]] = field(default_factory=list)

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
        call = {
            "key": key,
            "system": system,
            "prompt": prompt,
            "model": model,
            "output_tag": output_tag,
            "deadline": deadline,
        }
        self.calls.append(call)
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture()
def scripted_agent() -> ScriptedAgent:
    return ScriptedAgent()


def encoded(value: str) -> str:
    return base64.b64encode(value.encode("utf-8")).decode("ascii")


@pytest.fixture()
def composition_request() -> Dict[str, Any]:
    """Wire-form request observing one composite and one composed resource."""

    return {
        "meta": {"tag": "demo"},
        "input": {
            "apiVersion": "claude.fn.upbound.io/v1alpha1",
            "kind": "Prompt",
            "userPrompt": "Create a bucket for the composite.",
        },
        "observed": {
            "composite": {
                "resource": {
                    "apiVersion": "example.org/v1",
                    "kind": "XStorage",
                    "metadata": {"name": "storage"},
                    "spec": {"region": "us-east-1"},
                }
            },
            "resources": {
                "storage-bucket": {
                    "resource": {
                        "apiVersion": "s3.aws.upbound.io/v1beta1",
                        "kind": "Bucket",
                        "metadata": {"labels": {"app": "storage"}},
                    }
                }
            },
        },
        "credentials": {
            "claude": {"credentialData": {"data": {"ANTHROPIC_API_KEY": encoded("sk-test\n")}}},
        },
    }
