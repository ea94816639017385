"""Typed records for the function request/response exchange and its input."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Base model that reads and writes the camelCase wire form."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_wire(self) -> Dict[str, Any]:
        """Return the JSON-compatible wire representation."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Severity(str, Enum):
    """Severity of a result reported back to the orchestrator."""

    FATAL = "SEVERITY_FATAL"
    WARNING = "SEVERITY_WARNING"
    NORMAL = "SEVERITY_NORMAL"


class Target(str, Enum):
    """Which resource a result or condition is reported against."""

    COMPOSITE = "TARGET_COMPOSITE"
    COMPOSITE_AND_CLAIM = "TARGET_COMPOSITE_AND_CLAIM"


class ConditionStatus(str, Enum):
    """Status of a reported condition."""

    TRUE = "STATUS_CONDITION_TRUE"
    FALSE = "STATUS_CONDITION_FALSE"
    UNKNOWN = "STATUS_CONDITION_UNKNOWN"


class Resource(WireModel):
    """One resource as observed by, or desired from, the orchestrator."""

    resource: Dict[str, Any] = Field(default_factory=dict)
    connection_details: Optional[Dict[str, str]] = None
    ready: Optional[str] = None


class State(WireModel):
    """Composite resource plus its composed resources."""

    composite: Optional[Resource] = None
    resources: Dict[str, Resource] = Field(default_factory=dict)


class Resources(WireModel):
    """A list of resources required by the function."""

    items: List[Resource] = Field(default_factory=list)


class CredentialData(WireModel):
    """Credential values, base64 encoded as on the wire."""

    data: Dict[str, str] = Field(default_factory=dict)


class Credentials(WireModel):
    """A named credential supplied with the request."""

    credential_data: Optional[CredentialData] = None


class RequestMeta(WireModel):
    tag: str = ""


class RunFunctionRequest(WireModel):
    """Request sent by the orchestrator for one invocation."""

    meta: Optional[RequestMeta] = None
    observed: Optional[State] = None
    desired: Optional[State] = None
    input: Optional[Dict[str, Any]] = None
    context: Optional[Dict[str, Any]] = None
    credentials: Dict[str, Credentials] = Field(default_factory=dict)
    required_resources: Dict[str, Resources] = Field(default_factory=dict)


class ResponseMeta(WireModel):
    tag: str = ""
    ttl: str = "60s"


class Result(WireModel):
    """Message reported back to the orchestrator."""

    severity: Severity
    message: str
    target: Target = Target.COMPOSITE


class Condition(WireModel):
    """Status condition reported back to the orchestrator."""

    type: str
    status: ConditionStatus
    reason: str
    message: Optional[str] = None
    target: Target = Target.COMPOSITE


class RunFunctionResponse(WireModel):
    """Response returned to the orchestrator for one invocation."""

    meta: ResponseMeta = Field(default_factory=ResponseMeta)
    desired: Optional[State] = None
    results: List[Result] = Field(default_factory=list)
    context: Optional[Dict[str, Any]] = None
    conditions: List[Condition] = Field(default_factory=list)


class PromptInput(WireModel):
    """Function input naming the instruction handed to the model."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        protected_namespaces=(),
    )

    api_version: str = "claude.fn.upbound.io/v1alpha1"
    kind: str = "Prompt"
    system_prompt: str = ""
    user_prompt: str = ""
    prompt: str = ""
    context_fields: List[str] = Field(default_factory=list)
    model_name: str = ""

    @property
    def instruction(self) -> str:
        """Return the user instruction, honouring the legacy ``prompt`` field."""
        return (self.user_prompt or self.prompt).strip()


__all__ = [
    "Condition",
    "ConditionStatus",
    "CredentialData",
    "Credentials",
    "PromptInput",
    "RequestMeta",
    "Resource",
    "Resources",
    "ResponseMeta",
    "Result",
    "RunFunctionRequest",
    "RunFunctionResponse",
    "Severity",
    "State",
    "Target",
    "WireModel",
]
