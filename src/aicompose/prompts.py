"""Prompt templates and helpers shared across the composition pipelines."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from string import Template
from typing import Any, FrozenSet

import yaml


class TemplateBindingFailure(ValueError):
    """Raised when a prompt template is malformed or bound with the wrong names."""


@dataclass(frozen=True, slots=True)
class PromptTemplate:
    """Immutable ``string.Template`` whose placeholders are checked up front."""

    name: str
    text: str
    required: FrozenSet[str]
    _template: Template = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        template = Template(self.text)
        if not template.is_valid():
            raise TemplateBindingFailure(f"prompt template {self.name!r} has invalid placeholders")
        identifiers = frozenset(template.get_identifiers())
        if identifiers != frozenset(self.required):
            missing = sorted(frozenset(self.required) - identifiers)
            unexpected = sorted(identifiers - frozenset(self.required))
            raise TemplateBindingFailure(
                f"prompt template {self.name!r} placeholders do not match: "
                f"missing={missing} unexpected={unexpected}"
            )
        object.__setattr__(self, "_template", template)

    def render(self, **values: str) -> str:
        """Bind every placeholder to plain text."""
        names = frozenset(values)
        if names != self.required:
            raise TemplateBindingFailure(
                f"prompt template {self.name!r} expects {sorted(self.required)}, got {sorted(names)}"
            )
        return self._template.substitute(values)


DEFAULT_SYSTEM_PROMPT = (
    "You are a Kubernetes templating tool. You create and update Kubernetes Resource Model "
    "manifests that are applied with server-side apply. Keep existing values unless a change "
    "is required, and never invent credentials."
)

COMPOSITION_PROMPT = PromptTemplate(
    name="composition",
    required=frozenset({"composite", "composed", "input"}),
    text="""\
Generate or update Kubernetes manifests for the composite resource below.

The composite resource:

<composite>
$composite
</composite>

The composed resources that already exist, if any:

<composed>
$composed
</composed>

Additional instructions:

<input>
$input
</input>

Rules:

1. Every manifest must be valid for server-side apply and fully specify its intent.
2. Omit metadata.name and metadata.namespace.
3. Annotate every manifest with "upbound.io/name". Its value is the composite resource
   name followed by the kind of the manifest. Add a sequence number when several
   manifests share a kind. Reuse the annotation of an existing composed resource when
   the manifest updates it.
4. Relate manifests with labels derived from the composite resource name.
5. Reuse values of existing composed resources and change them only when necessary.

Think through the resources you need inside <analysis> tags first. Then emit the
manifests as a YAML stream, every manifest preceded by a "---" line, inside
<output> tags. Do not put anything else inside the <output> tags.
""",
)

OPERATION_PROMPT = PromptTemplate(
    name="operation",
    required=frozenset({"resources", "input"}),
    text="""\
Review the watched Kubernetes resources below and answer the instructions.

<resources>
$resources
</resources>

<input>
$input
</input>

Reply in plain text. Be concise and specific about the resources you refer to.
""",
)


def render_context_fields(context: Mapping[str, Any] | None, fields: Iterable[str]) -> str:
    """Render the selected request context values as a YAML block."""
    selected: dict[str, Any] = {}
    for name in fields:
        key = name.strip()
        if key and context and key in context:
            selected[key] = context[key]
    if not selected:
        return ""
    body = yaml.safe_dump(selected, sort_keys=True, default_flow_style=False, allow_unicode=True)
    return f"Context:\n\n<context>\n{body.rstrip()}\n</context>"


def compose_instruction(user_prompt: str, context_block: str = "") -> str:
    """Join the user instruction and an optional context block."""
    parts = [user_prompt.strip()]
    if context_block:
        parts.append(context_block)
    return "\n\n".join(part for part in parts if part)


__all__ = [
    "COMPOSITION_PROMPT",
    "DEFAULT_SYSTEM_PROMPT",
    "OPERATION_PROMPT",
    "PromptTemplate",
    "TemplateBindingFailure",
    "compose_instruction",
    "render_context_fields",
]
