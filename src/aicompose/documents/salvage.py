"""Recovery of reply text embedded in agent output parsing errors."""

from __future__ import annotations

from typing import Iterator

from .replies import unfence

__all__ = ["AGENT_OUTPUT_ERROR_MARKER", "extract_reply_from_error"]


# Shared with the agent, which prefixes unparseable replies with it.
AGENT_OUTPUT_ERROR_MARKER = "unable to parse agent output:"


def extract_reply_from_error(error: BaseException | None) -> tuple[str, bool]:
    """Return the reply wrapped by an agent output error and whether one was found.

    The marker may sit anywhere in the message, behind prefixes added by
    callers that wrapped the error, or in any exception of the chain.
    """
    if error is None:
        return "", False
    for message in _chain_messages(error):
        index = message.find(AGENT_OUTPUT_ERROR_MARKER)
        if index == -1:
            continue
        payload = message[index + len(AGENT_OUTPUT_ERROR_MARKER) :]
        return unfence(payload.strip()).strip(), True
    return "", False


def _chain_messages(error: BaseException) -> Iterator[str]:
    seen: set[int] = set()
    current: BaseException | None = error
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield str(current)
        current = current.__cause__ or current.__context__
