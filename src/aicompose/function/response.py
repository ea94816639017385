"""Helpers that build and annotate function responses."""

from __future__ import annotations

import copy

from .schema import (
    Condition,
    ConditionStatus,
    ResponseMeta,
    Result,
    RunFunctionRequest,
    RunFunctionResponse,
    Severity,
    Target,
)

DEFAULT_TTL_SECONDS = 60


def to(request: RunFunctionRequest, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> RunFunctionResponse:
    """Start a response that carries the request's tag, desired state, and context."""
    tag = request.meta.tag if request.meta else ""
    return RunFunctionResponse(
        meta=ResponseMeta(tag=tag, ttl=f"{ttl_seconds}s"),
        desired=request.desired.model_copy(deep=True) if request.desired else None,
        context=copy.deepcopy(request.context) if request.context is not None else None,
    )


def fatal(response: RunFunctionResponse, message: str) -> RunFunctionResponse:
    """Record a fatal result; the orchestrator stops the pipeline on it."""
    response.results.append(Result(severity=Severity.FATAL, message=message, target=Target.COMPOSITE))
    return response


def warning(response: RunFunctionResponse, message: str) -> RunFunctionResponse:
    response.results.append(Result(severity=Severity.WARNING, message=message, target=Target.COMPOSITE))
    return response


def normal(response: RunFunctionResponse, message: str) -> RunFunctionResponse:
    response.results.append(Result(severity=Severity.NORMAL, message=message, target=Target.COMPOSITE))
    return response


def succeed(response: RunFunctionResponse, reason: str = "Success") -> RunFunctionResponse:
    """Mark the invocation successful for both the composite and its claim."""
    response.conditions.append(
        Condition(
            type="FunctionSuccess",
            status=ConditionStatus.TRUE,
            reason=reason,
            target=Target.COMPOSITE_AND_CLAIM,
        )
    )
    return response


def is_fatal(response: RunFunctionResponse) -> bool:
    return any(result.severity == Severity.FATAL for result in response.results)


__all__ = [
    "DEFAULT_TTL_SECONDS",
    "fatal",
    "is_fatal",
    "normal",
    "succeed",
    "to",
    "warning",
]
