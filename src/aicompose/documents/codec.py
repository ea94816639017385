"""Conversion between structured resource documents and their YAML/JSON text."""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any, Dict, FrozenSet

import yaml
from pydantic import JsonValue, TypeAdapter, ValidationError

__all__ = [
    "Document",
    "DocumentError",
    "EncodeFailure",
    "MalformedDocument",
    "decode",
    "encode",
]


Document = Dict[str, JsonValue]

_DOCUMENT_ADAPTER: TypeAdapter[Document] = TypeAdapter(Document)
_TIMESTAMP_TAG = "tag:yaml.org,2002:timestamp"


class DocumentError(ValueError):
    """Base error raised while converting structured documents."""


class MalformedDocument(DocumentError):
    """Raised when text is not a single structured object."""


class EncodeFailure(DocumentError):
    """Raised when a document cannot be rendered as text."""


class _DocumentLoader(yaml.SafeLoader):
    """Safe loader that keeps timestamps as plain strings and keys as text.

    Keys are converted while the mapping is built, so ``1`` and ``true`` stay
    distinct keys instead of colliding as equal Python values.
    """

    def construct_mapping(self, node: yaml.Node, deep: bool = False) -> Dict[str, Any]:
        if not isinstance(node, yaml.MappingNode):
            raise yaml.constructor.ConstructorError(
                None, None, f"expected a mapping node, but found {node.id}", node.start_mark
            )
        self.flatten_mapping(node)
        mapping: Dict[str, Any] = {}
        for key_node, value_node in node.value:
            key = self.construct_object(key_node, deep=True)
            mapping[_key_text(key)] = self.construct_object(value_node, deep=deep)
        return mapping


_DocumentLoader.yaml_implicit_resolvers = {
    first: [(tag, pattern) for tag, pattern in resolvers if tag != _TIMESTAMP_TAG]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


def encode(document: Mapping[str, Any]) -> str:
    """Render ``document`` as block-style YAML with sorted keys."""
    try:
        return yaml.safe_dump(
            _plain(document),
            sort_keys=True,
            default_flow_style=False,
            allow_unicode=True,
        )
    except (yaml.YAMLError, TypeError) as error:
        raise EncodeFailure(f"cannot encode document: {error}") from error


def decode(text: str) -> Document:
    """Parse ``text`` as exactly one structured object."""
    if not text or not text.strip():
        raise MalformedDocument("document is empty")

    stripped = text.strip()
    data: Any
    if stripped.startswith("{"):
        try:
            data = json.loads(stripped)
        except json.JSONDecodeError:
            data = _load_yaml(stripped)
    else:
        data = _load_yaml(text)

    if not isinstance(data, Mapping):
        raise MalformedDocument(f"expected a mapping at the top level, got {type(data).__name__}")

    try:
        _reject_cycles(data, frozenset())
        return _DOCUMENT_ADAPTER.validate_python(data)
    except ValidationError as error:
        raise MalformedDocument(f"document holds unsupported values: {error}") from error
    except RecursionError as error:
        raise MalformedDocument("document is nested too deeply") from error


def _load_yaml(text: str) -> Any:
    try:
        return yaml.load(text, Loader=_DocumentLoader)  # noqa: S506 - SafeLoader subclass
    except yaml.YAMLError as error:
        raise MalformedDocument(f"cannot parse YAML: {error}") from error
    except RecursionError as error:
        raise MalformedDocument("YAML is nested too deeply") from error


def _reject_cycles(value: Any, ancestors: FrozenSet[int]) -> None:
    """Raise ``MalformedDocument`` when an alias makes a node contain itself."""
    if isinstance(value, Mapping):
        children = list(value.values())
    elif isinstance(value, list):
        children = value
    else:
        return
    marker = id(value)
    if marker in ancestors:
        raise MalformedDocument("document contains a cyclic alias")
    inner = ancestors | {marker}
    for child in children:
        _reject_cycles(child, inner)


def _key_text(key: Any) -> str:
    if isinstance(key, str):
        return key
    if isinstance(key, bool):
        return "true" if key else "false"
    if key is None:
        return "null"
    return str(key)


def _plain(value: Any) -> Any:
    """Unwrap mapping and sequence subclasses the safe dumper refuses."""
    if isinstance(value, Mapping):
        return {key: _plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(item) for item in value]
    return value
