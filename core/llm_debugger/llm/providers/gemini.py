"""Gemini ``generateContent`` wire format."""

from __future__ import annotations

from typing import Any

from llm_debugger.llm.types import CanonicalResponse, Usage

_GRPC_STATUS = {
    400: "INVALID_ARGUMENT",
    401: "UNAUTHENTICATED",
    403: "PERMISSION_DENIED",
    404: "NOT_FOUND",
    429: "RESOURCE_EXHAUSTED",
    500: "INTERNAL",
    503: "UNAVAILABLE",
    504: "DEADLINE_EXCEEDED",
}


def map_usage_to_gemini(usage: Usage) -> dict[str, Any]:
    """Map canonical usage onto ``usageMetadata``.

    Reasoning is folded into ``candidatesTokenCount``; cache creation has no
    Gemini counterpart.
    """
    mapped: dict[str, Any] = {
        "promptTokenCount": usage.input,
        "candidatesTokenCount": usage.output,
        "totalTokenCount": usage.input + usage.output,
    }
    if usage.cache_read is not None:
        mapped["cachedContentTokenCount"] = usage.cache_read
    return mapped


def to_gemini_generate(response: CanonicalResponse, model: str) -> dict[str, Any]:
    """Build a ``GenerateContentResponse`` body.

    Args:
        response: Canonical response.
        model: Requested model (Gemini does not echo it in the body).

    Returns:
        JSON-ready response body.
    """
    del model
    parts: list[dict[str, Any]] = []
    if response.content:
        parts.append({"text": response.content})
    for call in response.tool_calls or ():
        parts.append({"functionCall": {"name": call.name, "args": {} if call.arguments is None else call.arguments}})

    return {
        "candidates": [{"content": {"role": "model", "parts": parts}, "finishReason": "STOP", "index": 0}],
        "usageMetadata": map_usage_to_gemini(response.usage),
    }


def to_gemini_chunks(response: CanonicalResponse, model: str) -> list[dict[str, Any]]:
    """Build the stream chunks: exactly one, equal to the generate response."""
    return [to_gemini_generate(response, model)]


def grpc_status(status: int) -> str:
    """Return the gRPC status name Gemini reports for an HTTP status."""
    if status in _GRPC_STATUS:
        return _GRPC_STATUS[status]
    if status >= 500:
        return "INTERNAL"
    return "INVALID_ARGUMENT"


def error_envelope(  # pylint: disable=unused-argument
    status: int, message: str, param: str | None = None, code: str | None = None
) -> dict[str, Any]:
    """Build the Gemini error body."""
    return {"error": {"code": status, "message": message, "status": grpc_status(status)}}
