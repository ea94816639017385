"""Function runner and the request/response records it exchanges."""

from .runner import (
    IGNORED_RESOURCE_KEY,
    WATCHED_RESOURCE_KEY,
    ComposeFunction,
    FunctionError,
    FunctionSettings,
)
from .schema import PromptInput, RunFunctionRequest, RunFunctionResponse

__all__ = [
    "ComposeFunction",
    "FunctionError",
    "FunctionSettings",
    "IGNORED_RESOURCE_KEY",
    "PromptInput",
    "RunFunctionRequest",
    "RunFunctionResponse",
    "WATCHED_RESOURCE_KEY",
]
