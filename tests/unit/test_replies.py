from __future__ import annotations

import logging

import pytest

from aicompose.documents.codec import MalformedDocument
from aicompose.documents.replies import ReplyParseFailure, clean_reply, resolve_reply, split_stream, unfence


def test_single_empty_object_resolves_to_unnamed_entry() -> None:
    assert resolve_reply("{}") == {"": {}}


def test_plain_yaml_mapping_resolves_to_unnamed_entry() -> None:
    assert resolve_reply("a: b") == {"": {"a": "b"}}


@pytest.mark.parametrize("reply", ["", "   \n\t", "```\n```", "```yaml\n\n```"])
def test_empty_reply_fails(reply: str) -> None:
    with pytest.raises(ReplyParseFailure):
        resolve_reply(reply)


@pytest.mark.parametrize("reply", ['"some-response"', "{a: ", "- a\n- b"])
def test_reply_without_any_document_fails(reply: str) -> None:
    with pytest.raises(ReplyParseFailure) as excinfo:
        resolve_reply(reply)

    assert excinfo.value.errors
    assert isinstance(excinfo.value.__cause__, MalformedDocument)


def test_stream_resolves_by_identity_annotation() -> None:
    reply = (
        "---\n"
        "metadata:\n"
        "  name: a\n"
        "  annotations:\n"
        "    upbound.io/name: a\n"
        "---\n"
        "metadata:\n"
        "  name: b\n"
        "  annotations:\n"
        "    upbound.io/name: b\n"
    )

    resources = resolve_reply(reply)

    assert sorted(resources) == ["a", "b"]
    assert resources["b"]["metadata"]["name"] == "b"


@pytest.mark.parametrize(
    "reply",
    [
        '```json\n{"metadata":{"name":"test"}}\n```',
        "```yaml\nmetadata:\n  name: test\n```",
        "```\nmetadata:\n  name: test\n```",
        '\n  ```json\n{"metadata": {"name": "test"}}```  \n',
    ],
)
def test_fenced_reply_is_unwrapped(reply: str) -> None:
    assert resolve_reply(reply) == {"test": {"metadata": {"name": "test"}}}


def test_duplicate_identifiers_keep_the_last_document(caplog: pytest.LogCaptureFixture) -> None:
    reply = (
        "---\nmetadata:\n  annotations:\n    upbound.io/name: x\nspec:\n  n: 1\n"
        "---\nmetadata:\n  annotations:\n    upbound.io/name: x\nspec:\n  n: 2\n"
    )

    with caplog.at_level(logging.WARNING, logger="aicompose.documents.replies"):
        resources = resolve_reply(reply)

    assert list(resources) == ["x"]
    assert resources["x"]["spec"] == {"n": 2}
    assert "more than one document" in caplog.text


def test_malformed_segments_are_dropped_when_others_decode(caplog: pytest.LogCaptureFixture) -> None:
    reply = "---\nmetadata:\n  name: ok\n---\n{broken: \n---\njust text\n"

    with caplog.at_level(logging.WARNING, logger="aicompose.documents.replies"):
        resources = resolve_reply(reply)

    assert resources == {"ok": {"metadata": {"name": "ok"}}}
    assert "Dropped 2 malformed document(s)" in caplog.text


def test_resolution_is_deterministic() -> None:
    reply = "---\nmetadata:\n  name: a\n---\nmetadata:\n  name: b\n"

    assert resolve_reply(reply) == resolve_reply(reply)


def test_unfence_is_idempotent() -> None:
    fenced = "```yaml\nkind: Bucket\n```"

    once = unfence(fenced)

    assert once == "kind: Bucket"
    assert unfence(once) == once
    assert unfence("kind: Bucket") == "kind: Bucket"


def test_unfence_leaves_unknown_language_tags_alone() -> None:
    text = "```python\nprint('hi')\n```"

    assert unfence(text) == text


def test_clean_reply_trims_before_unfencing() -> None:
    assert clean_reply("\n\n```json\n{}\n```\n") == "{}"


def test_split_stream_ignores_separator_lookalikes() -> None:
    text = "a: 1\n---\nb: '---'\n--- \nc: 3\n"

    assert split_stream(text) == ["a: 1\n", "\nb: '---'\n", "\nc: 3\n"]


def test_cyclic_reply_fails_cleanly() -> None:
    with pytest.raises(ReplyParseFailure, match="cyclic alias"):
        resolve_reply("metadata: &m\n  self: *m\n")


def test_crlf_reply_is_unfenced_and_split() -> None:
    assert resolve_reply('```json\r\n{"metadata":{"name":"t"}}\r\n```') == {"t": {"metadata": {"name": "t"}}}

    stream = "---\r\nmetadata:\r\n  name: a\r\n---\r\nmetadata:\r\n  name: b\r\n"
    assert sorted(resolve_reply(stream)) == ["a", "b"]
