"""Function runner: turns one orchestrator request into one response.

Two pipelines are supported:

``composition``
    The request observes a composite resource. The composite and its composed
    resources are serialised into the composition prompt, and the model's reply
    is resolved into the desired composed resources.

``operation``
    The request carries a watched resource instead. The watched resources are
    serialised into the operation prompt and the model's reply is reported back
    verbatim as a result.

Every failure becomes a single fatal result; nothing is retried here.
"""

from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from pydantic import ValidationError

from ..documents.codec import DocumentError
from ..documents.replies import ReplyParseFailure, clean_reply, resolve_reply
from ..documents.resources import serialize_document, serialize_resources
from ..documents.salvage import extract_reply_from_error
from ..journal import InvocationRecord, write_invocation_log
from ..models.agent import AgentInvoker
from ..models.claude import DEFAULT_MODEL
from ..models.llm_client import LLMClientError
from ..prompts import (
    COMPOSITION_PROMPT,
    DEFAULT_SYSTEM_PROMPT,
    OPERATION_PROMPT,
    compose_instruction,
    render_context_fields,
)
from . import response
from .schema import PromptInput, Resource, RunFunctionRequest, RunFunctionResponse, State

__all__ = [
    "ComposeFunction",
    "FunctionError",
    "FunctionSettings",
    "IGNORED_RESOURCE_KEY",
    "WATCHED_RESOURCE_KEY",
]

LOGGER = logging.getLogger(__name__)

IGNORED_RESOURCE_KEY = "ops.upbound.io/ignored-resource"
WATCHED_RESOURCE_KEY = "ops.crossplane.io/watched-resource"
OUTPUT_TAG = "output"


class FunctionError(Exception):
    """Carries the fatal message of a failed pipeline step."""


@dataclass(slots=True)
class FunctionSettings:
    """Runtime settings for the function runner."""

    credential_name: str = "claude"
    credential_key: str = "ANTHROPIC_API_KEY"
    default_model: str = DEFAULT_MODEL
    ttl_seconds: int = response.DEFAULT_TTL_SECONDS
    logs_root: Optional[Path] = None

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "FunctionSettings":
        """Build settings from the ``function``, ``models`` and ``paths`` sections."""
        function_cfg = config.get("function") or {}
        models_cfg = config.get("models") or {}
        paths_cfg = config.get("paths") or {}
        settings = cls()
        name = function_cfg.get("credential_name")
        if isinstance(name, str) and name.strip():
            settings.credential_name = name.strip()
        key = function_cfg.get("credential_key")
        if isinstance(key, str) and key.strip():
            settings.credential_key = key.strip()
        ttl = function_cfg.get("ttl_seconds")
        if isinstance(ttl, int) and ttl > 0:
            settings.ttl_seconds = ttl
        model = models_cfg.get("default")
        if isinstance(model, str) and model.strip():
            settings.default_model = model.strip()
        logs = paths_cfg.get("logs")
        if isinstance(logs, str) and logs.strip():
            settings.logs_root = Path(logs.strip())
        return settings


class ComposeFunction:
    """Delegates resource synthesis for one request to a language model."""

    def __init__(self, agent: AgentInvoker, settings: Optional[FunctionSettings] = None) -> None:
        self._agent = agent
        self._settings = settings or FunctionSettings()

    def run_function(
        self,
        request: RunFunctionRequest,
        *,
        deadline: Optional[float] = None,
    ) -> RunFunctionResponse:
        """Run the function for ``request`` and return the response."""
        tag = request.meta.tag if request.meta else ""
        LOGGER.info("Running function (tag=%s)", tag)
        rsp = response.to(request, self._settings.ttl_seconds)

        context = request.context or {}
        if context.get(IGNORED_RESOURCE_KEY) is True:
            response.normal(rsp, "received an ignored resource, skipping")
            return response.succeed(rsp)

        record = InvocationRecord(pipeline=_pipeline(request), tag=tag)
        try:
            prompt_input = self._prompt_input(request)
            key = self._api_key(request)
            record.model = prompt_input.model_name or self._settings.default_model
            record.system_prompt = prompt_input.system_prompt or DEFAULT_SYSTEM_PROMPT
            record.prompt = self._build_prompt(request, prompt_input)
            missing = _missing_context_fields(request, prompt_input)
            if missing:
                LOGGER.warning("Context fields not present in request: %s", ", ".join(missing))
                response.warning(rsp, f"context fields not found in request: {', '.join(missing)}")
            LOGGER.debug("Using prompt: %s", record.prompt)
            if record.pipeline == "composition":
                self._compose(rsp, key, record, deadline)
            else:
                self._operate(rsp, key, record, deadline)
        except FunctionError as failure:
            record.error = str(failure)
            LOGGER.info("Function failed (tag=%s): %s", tag, failure)
            response.fatal(rsp, str(failure))
        finally:
            self._journal(record)
        return rsp

    def render_prompt(self, request: RunFunctionRequest) -> str:
        """Return the prompt ``request`` would be sent with, without calling the model."""
        return self._build_prompt(request, self._prompt_input(request))

    def _prompt_input(self, request: RunFunctionRequest) -> PromptInput:
        if not request.input:
            raise FunctionError("cannot get Function input: input is required")
        try:
            prompt_input = PromptInput.model_validate(request.input)
        except ValidationError as error:
            raise FunctionError(f"cannot get Function input: {error}") from error
        if not prompt_input.instruction:
            raise FunctionError("cannot get Function input: userPrompt is required")
        return prompt_input

    def _api_key(self, request: RunFunctionRequest) -> str:
        name = self._settings.credential_name
        key_name = self._settings.credential_key
        prefix = f'cannot get {key_name} from credential "{name}"'
        credentials = request.credentials.get(name)
        if credentials is None:
            raise FunctionError(f"{prefix}: {name}: credential not found")
        if credentials.credential_data is None:
            raise FunctionError(f"{prefix}: expected credential data")
        encoded = credentials.credential_data.data.get(key_name)
        if encoded is None:
            raise FunctionError(f"{prefix}: credential is missing required key {key_name!r}")
        try:
            raw = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as error:
            raise FunctionError(f"{prefix}: value is not base64 encoded") from error
        try:
            return raw.decode("utf-8").strip("\n")
        except UnicodeDecodeError as error:
            raise FunctionError(f"{prefix}: value is not valid UTF-8") from error

    def _build_prompt(self, request: RunFunctionRequest, prompt_input: PromptInput) -> str:
        context = request.context or {}
        instruction = compose_instruction(
            prompt_input.instruction,
            render_context_fields(context, prompt_input.context_fields),
        )

        if _pipeline(request) == "composition":
            observed = request.observed or State()
            composite = observed.composite or Resource()
            try:
                composite_text = serialize_document(composite.resource)
            except DocumentError as error:
                raise FunctionError(f"cannot convert observed composite resource to YAML: {error}") from error
            try:
                composed_text = serialize_resources(
                    {name: resource.resource for name, resource in observed.resources.items()}
                )
            except DocumentError as error:
                raise FunctionError(f"cannot convert observed composed resources to YAML: {error}") from error
            return COMPOSITION_PROMPT.render(composite=composite_text, composed=composed_text, input=instruction)

        watched = request.required_resources.get(WATCHED_RESOURCE_KEY)
        if watched is None:
            raise FunctionError("request observes no composite resource and carries no watched resource")
        documents: Dict[str, Dict[str, Any]] = {}
        for index, item in enumerate(watched.items):
            name = _watched_name(item.resource, index)
            if name in documents:
                name = f"{name}-{index}"
            documents[name] = item.resource
        try:
            resources_text = serialize_resources(documents)
        except DocumentError as error:
            raise FunctionError(f"cannot convert watched resources to YAML: {error}") from error
        return OPERATION_PROMPT.render(resources=resources_text, input=instruction)

    def _compose(
        self,
        rsp: RunFunctionResponse,
        key: str,
        record: InvocationRecord,
        deadline: Optional[float],
    ) -> None:
        try:
            reply = self._agent.invoke(
                key=key,
                system=record.system_prompt,
                prompt=record.prompt,
                model=record.model,
                output_tag=OUTPUT_TAG,
                deadline=deadline,
            )
        except LLMClientError as error:
            salvaged, ok = extract_reply_from_error(error)
            if not ok:
                raise FunctionError(f"cannot invoke agent: {error}") from error
            LOGGER.warning("Agent output was not tagged; resolving the salvaged reply instead")
            record.salvaged = True
            reply = salvaged
        record.reply = reply
        record.cleaned = clean_reply(reply)
        LOGGER.debug("Extracted output from reply: %s", record.cleaned)

        try:
            resources = resolve_reply(reply)
        except ReplyParseFailure as error:
            raise FunctionError(f"cannot parse agent output as resources: {error}") from error

        record.identifiers = sorted(resources)
        if rsp.desired is None:
            rsp.desired = State()
        rsp.desired.resources = {
            identifier: Resource(resource=document) for identifier, document in resources.items()
        }

    def _operate(
        self,
        rsp: RunFunctionResponse,
        key: str,
        record: InvocationRecord,
        deadline: Optional[float],
    ) -> None:
        try:
            reply = self._agent.invoke(
                key=key,
                system=record.system_prompt,
                prompt=record.prompt,
                model=record.model,
                deadline=deadline,
            )
        except LLMClientError as error:
            raise FunctionError(f"cannot invoke agent: {error}") from error
        record.reply = reply
        response.normal(rsp, reply)
        response.succeed(rsp)

    def _journal(self, record: InvocationRecord) -> None:
        if self._settings.logs_root is None:
            return
        write_invocation_log(self._settings.logs_root, record)


def _pipeline(request: RunFunctionRequest) -> str:
    if request.observed is not None and request.observed.composite is not None:
        return "composition"
    return "operation"


def _watched_name(document: Mapping[str, Any], index: int) -> str:
    metadata = document.get("metadata")
    if isinstance(metadata, Mapping):
        name = metadata.get("name")
        if isinstance(name, str) and name:
            namespace = metadata.get("namespace")
            if isinstance(namespace, str) and namespace:
                return f"{namespace}/{name}"
            return name
    return f"watched-{index}"


def _missing_context_fields(request: RunFunctionRequest, prompt_input: PromptInput) -> list[str]:
    context = request.context or {}
    return [name.strip() for name in prompt_input.context_fields if name.strip() and name.strip() not in context]
