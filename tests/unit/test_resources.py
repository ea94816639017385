from __future__ import annotations

import pytest

from aicompose.documents.codec import EncodeFailure
from aicompose.documents.replies import resolve_reply
from aicompose.documents.resources import (
    IDENTITY_ANNOTATION,
    annotate,
    read_identifier,
    serialize_document,
    serialize_resources,
)


def test_read_identifier_prefers_annotation_over_name() -> None:
    document = {"metadata": {"name": "plain", "annotations": {IDENTITY_ANNOTATION: "annotated"}}}

    assert read_identifier(document) == "annotated"
    assert read_identifier({"metadata": {"name": "plain"}}) == "plain"
    assert read_identifier({"kind": "Bucket"}) == ""
    assert read_identifier({"metadata": "oops"}) == ""


def test_serialize_resources_annotates_and_sorts() -> None:
    resources = {
        "b": {"kind": "Queue"},
        "a": {"kind": "Bucket", "metadata": {"annotations": {IDENTITY_ANNOTATION: "stale"}}},
    }

    text = serialize_resources(resources)

    assert text == (
        "---\n"
        "kind: Bucket\n"
        "metadata:\n"
        "  annotations:\n"
        "    upbound.io/name: a\n"
        "---\n"
        "kind: Queue\n"
        "metadata:\n"
        "  annotations:\n"
        "    upbound.io/name: b\n"
    )
    # Callers keep their own documents untouched.
    assert resources["a"]["metadata"]["annotations"][IDENTITY_ANNOTATION] == "stale"
    assert "metadata" not in resources["b"]


def test_serialize_resources_ignores_insertion_order() -> None:
    first = {"x": {"kind": "A"}, "y": {"kind": "B"}}
    second = {"y": {"kind": "B"}, "x": {"kind": "A"}}

    assert serialize_resources(first) == serialize_resources(second)


def test_serialize_resources_of_empty_set_is_empty() -> None:
    assert serialize_resources({}) == ""


def test_serialized_set_resolves_back_to_itself() -> None:
    resources = {
        "storage-bucket": {"apiVersion": "s3/v1", "kind": "Bucket", "spec": {"region": "eu"}},
        "storage-policy": {"apiVersion": "iam/v1", "kind": "Policy", "spec": {"rules": ["read"]}},
    }

    resolved = resolve_reply(serialize_resources(resources))

    assert sorted(resolved) == sorted(resources)
    for identifier, document in resolved.items():
        assert document["metadata"]["annotations"][IDENTITY_ANNOTATION] == identifier
        assert document["spec"] == resources[identifier]["spec"]


def test_annotate_rejects_non_mapping_metadata() -> None:
    with pytest.raises(EncodeFailure):
        annotate({"metadata": ["bad"]}, "x")

    with pytest.raises(EncodeFailure):
        serialize_resources({"x": {"metadata": {"annotations": "bad"}}})


def test_serialize_document_has_no_separator() -> None:
    assert serialize_document({"kind": "XStorage"}) == "kind: XStorage\n"
