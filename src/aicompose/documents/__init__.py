"""Structured document codec, resource streams, and reply resolution."""

from .codec import Document, DocumentError, EncodeFailure, MalformedDocument, decode, encode
from .replies import ReplyParseFailure, clean_reply, resolve_reply, split_stream, unfence
from .resources import (
    DOCUMENT_SEPARATOR,
    IDENTITY_ANNOTATION,
    ResourceSet,
    annotate,
    read_identifier,
    serialize_document,
    serialize_resources,
)
from .salvage import AGENT_OUTPUT_ERROR_MARKER, extract_reply_from_error

__all__ = [
    "AGENT_OUTPUT_ERROR_MARKER",
    "DOCUMENT_SEPARATOR",
    "Document",
    "DocumentError",
    "EncodeFailure",
    "IDENTITY_ANNOTATION",
    "MalformedDocument",
    "ReplyParseFailure",
    "ResourceSet",
    "annotate",
    "clean_reply",
    "decode",
    "encode",
    "extract_reply_from_error",
    "read_identifier",
    "resolve_reply",
    "serialize_document",
    "serialize_resources",
    "split_stream",
    "unfence",
]
