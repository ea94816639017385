"""Resolution of free-form model replies into identifier-keyed resource sets.

Replies are untrusted text. Resolution is a single linear pass:

1. trim surrounding whitespace;
2. strip one Markdown code fence (optionally tagged ``json`` or ``yaml``);
3. if the text is one JSON object, it is the only document;
4. otherwise split it on ``---`` separator lines and decode every segment;
5. key every decoded document by its identifier.

Segments that fail to decode are dropped as long as at least one segment
decodes. A reply that yields no document at all is a ``ReplyParseFailure``.
"""

from __future__ import annotations

import json
import logging
import re
from typing import List

from .codec import Document, DocumentError, MalformedDocument, decode
from .resources import DOCUMENT_SEPARATOR, ResourceSet, read_identifier

__all__ = [
    "ReplyParseFailure",
    "clean_reply",
    "resolve_reply",
    "split_stream",
    "unfence",
]

LOGGER = logging.getLogger(__name__)

_FENCE_PATTERN = re.compile(r"\A```(?:json|yaml)?[ \t]*\r?\n(?P<body>.*?)\r?\n?```\Z", re.DOTALL)
_SEPARATOR_PATTERN = re.compile(rf"^{re.escape(DOCUMENT_SEPARATOR)}[ \t\r]*$", re.MULTILINE)


class ReplyParseFailure(DocumentError):
    """Raised when a reply contains no decodable document."""

    def __init__(self, message: str, errors: List[DocumentError] | None = None) -> None:
        super().__init__(message)
        self.errors: List[DocumentError] = list(errors or [])


def unfence(text: str) -> str:
    """Return the interior of a fenced code block, or ``text`` unchanged."""
    match = _FENCE_PATTERN.match(text)
    if not match:
        return text
    return match.group("body").strip()


def clean_reply(raw: str) -> str:
    """Trim and unfence a raw reply."""
    return unfence((raw or "").strip())


def split_stream(text: str) -> list[str]:
    """Split a multi-document stream into its non-empty segments."""
    return [segment for segment in _SEPARATOR_PATTERN.split(text) if segment.strip()]


def resolve_reply(raw: str) -> ResourceSet:
    """Resolve a model reply into resources keyed by identifier."""
    cleaned = clean_reply(raw)
    if not cleaned:
        raise ReplyParseFailure("reply is empty")

    single = _single_object(cleaned)
    if single is not None:
        return {read_identifier(single): single}

    resources: ResourceSet = {}
    errors: list[DocumentError] = []
    for index, segment in enumerate(split_stream(cleaned)):
        try:
            document = decode(segment)
        except MalformedDocument as error:
            errors.append(error)
            continue
        identifier = read_identifier(document)
        if identifier in resources:
            LOGGER.warning(
                "Reply holds more than one document for identifier %r; keeping document %d",
                identifier,
                index,
            )
        resources[identifier] = document

    if not resources:
        if not errors:
            raise ReplyParseFailure("reply holds no documents")
        first = errors[0]
        raise ReplyParseFailure(f"cannot parse reply: {first}", errors) from first

    if errors:
        LOGGER.warning("Dropped %d malformed document(s) from reply: %s", len(errors), errors[0])
    return resources


def _single_object(text: str) -> Document | None:
    """Return the document when ``text`` is exactly one JSON object."""
    if not text.startswith("{"):
        return None
    try:
        json.loads(text)
    except json.JSONDecodeError:
        return None
    try:
        return decode(text)
    except MalformedDocument:
        return None
