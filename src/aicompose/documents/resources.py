"""Serialisation of identifier-keyed resource sets into YAML streams."""

from __future__ import annotations

import copy
from collections.abc import Mapping
from typing import Any, Dict, MutableMapping

from .codec import Document, EncodeFailure, encode

__all__ = [
    "DOCUMENT_SEPARATOR",
    "IDENTITY_ANNOTATION",
    "ResourceSet",
    "annotate",
    "read_identifier",
    "serialize_document",
    "serialize_resources",
]


ResourceSet = Dict[str, Document]

DOCUMENT_SEPARATOR = "---"
IDENTITY_ANNOTATION = "upbound.io/name"


def read_identifier(document: Mapping[str, Any]) -> str:
    """Return the identifier a document carries, or ``""`` when it has none.

    The identity annotation wins; ``metadata.name`` is the fallback for replies
    that name resources without annotating them.
    """
    metadata = document.get("metadata")
    if not isinstance(metadata, Mapping):
        return ""
    annotations = metadata.get("annotations")
    if isinstance(annotations, Mapping):
        value = annotations.get(IDENTITY_ANNOTATION)
        if isinstance(value, str) and value:
            return value
    name = metadata.get("name")
    if isinstance(name, str):
        return name
    return ""


def annotate(document: MutableMapping[str, Any], identifier: str) -> None:
    """Write ``identifier`` into the identity annotation of ``document`` in place."""
    metadata = document.setdefault("metadata", {})
    if metadata is None:
        metadata = document["metadata"] = {}
    if not isinstance(metadata, MutableMapping):
        raise EncodeFailure(f"cannot annotate {identifier!r}: metadata is not a mapping")
    annotations = metadata.setdefault("annotations", {})
    if annotations is None:
        annotations = metadata["annotations"] = {}
    if not isinstance(annotations, MutableMapping):
        raise EncodeFailure(f"cannot annotate {identifier!r}: metadata.annotations is not a mapping")
    annotations[IDENTITY_ANNOTATION] = identifier


def serialize_document(document: Mapping[str, Any]) -> str:
    """Render a single document, such as the composite resource."""
    return encode(document)


def serialize_resources(resources: Mapping[str, Mapping[str, Any]]) -> str:
    """Render ``resources`` as a YAML stream sorted by identifier.

    Every document is annotated with its identifier and preceded by a separator
    line, the first one included.
    """
    chunks: list[str] = []
    for identifier in sorted(resources):
        document = copy.deepcopy(dict(resources[identifier]))
        annotate(document, identifier)
        try:
            rendered = encode(document)
        except EncodeFailure as error:
            raise EncodeFailure(f"cannot encode resource {identifier!r}: {error}") from error
        chunks.append(f"{DOCUMENT_SEPARATOR}\n{rendered}")
    return "".join(chunks)
