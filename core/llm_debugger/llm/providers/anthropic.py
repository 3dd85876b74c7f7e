"""Anthropic Messages wire format."""

from __future__ import annotations

from typing import Any

from llm_debugger.llm.streaming import StreamEvent, dumps
from llm_debugger.llm.tokens import generate_id
from llm_debugger.llm.types import CanonicalResponse, Usage

STOP_REASON = "end_turn"

_ERROR_TYPES = {
    400: "invalid_request_error",
    401: "authentication_error",
    403: "permission_error",
    404: "not_found_error",
    413: "request_too_large",
    429: "rate_limit_error",
    529: "overloaded_error",
}


def map_usage_to_anthropic(usage: Usage) -> dict[str, Any]:
    """Map canonical usage onto the Messages usage object.

    Reasoning tokens are already part of ``output`` and have no field of their
    own. There is no total.
    """
    mapped: dict[str, Any] = {"input_tokens": usage.input, "output_tokens": usage.output}
    if usage.cache_read is not None:
        mapped["cache_read_input_tokens"] = usage.cache_read
    if usage.cache_creation is not None:
        mapped["cache_creation_input_tokens"] = usage.cache_creation
    return mapped


def _content_blocks(response: CanonicalResponse) -> list[dict[str, Any]]:
    blocks: list[dict[str, Any]] = []
    if response.content:
        blocks.append({"type": "text", "text": response.content})
    if response.reasoning:
        blocks.append({"type": "thinking", "thinking": response.reasoning})
    for call in response.tool_calls or ():
        blocks.append(
            {
                "type": "tool_use",
                "id": call.id,
                "name": call.name,
                "input": {} if call.arguments is None else call.arguments,
            }
        )
    return blocks


def to_anthropic_message(response: CanonicalResponse, model: str) -> dict[str, Any]:
    """Build a ``message`` body.

    Args:
        response: Canonical response.
        model: Model name echoed back to the client.

    Returns:
        JSON-ready response body with text, thinking and tool_use blocks in
        that order.
    """
    return {
        "id": generate_id("msg"),
        "type": "message",
        "role": "assistant",
        "model": model,
        "content": _content_blocks(response),
        "stop_reason": STOP_REASON,
        "usage": map_usage_to_anthropic(response.usage),
    }


def _block_events(index: int, start: dict[str, Any], delta: dict[str, Any]) -> list[StreamEvent]:
    return [
        StreamEvent(
            event="content_block_start",
            data={"type": "content_block_start", "index": index, "content_block": start},
        ),
        StreamEvent(
            event="content_block_delta",
            data={"type": "content_block_delta", "index": index, "delta": delta},
        ),
        StreamEvent(event="content_block_stop", data={"type": "content_block_stop", "index": index}),
    ]


def to_anthropic_events(response: CanonicalResponse, model: str) -> list[StreamEvent]:
    """Build the Messages stream.

    ``message_start`` (usage with input tokens only), a text block (always,
    possibly empty), a thinking block and one tool_use block per call when
    present, ``message_delta`` with the stop reason and full usage, then
    ``message_stop``. Every event is named.

    Args:
        response: Canonical response.
        model: Model name echoed back to the client.

    Returns:
        Ordered stream events.
    """
    usage = map_usage_to_anthropic(response.usage)
    events = [
        StreamEvent(
            event="message_start",
            data={
                "type": "message_start",
                "message": {
                    "id": generate_id("msg"),
                    "type": "message",
                    "role": "assistant",
                    "model": model,
                    "content": [],
                    "usage": {"input_tokens": usage["input_tokens"]},
                },
            },
        )
    ]

    events += _block_events(0, {"type": "text", "text": ""}, {"type": "text_delta", "text": response.content or ""})
    index = 1
    if response.reasoning:
        events += _block_events(
            index,
            {"type": "thinking", "thinking": ""},
            {"type": "thinking_delta", "thinking": response.reasoning},
        )
        index += 1
    for call in response.tool_calls or ():
        arguments = {} if call.arguments is None else call.arguments
        events += _block_events(
            index,
            {"type": "tool_use", "id": call.id, "name": call.name, "input": {}},
            {"type": "input_json_delta", "partial_json": dumps(arguments)},
        )
        index += 1

    events.append(
        StreamEvent(
            event="message_delta",
            data={"type": "message_delta", "delta": {"stop_reason": STOP_REASON}, "usage": usage},
        )
    )
    events.append(StreamEvent(event="message_stop", data={"type": "message_stop"}))
    return events


def error_type(status: int) -> str:
    """Return the Anthropic error type for an HTTP status."""
    if status in _ERROR_TYPES:
        return _ERROR_TYPES[status]
    if status >= 500:
        return "api_error"
    return "invalid_request_error"


def error_envelope(  # pylint: disable=unused-argument
    status: int, message: str, param: str | None = None, code: str | None = None
) -> dict[str, Any]:
    """Build the Anthropic error body."""
    return {"type": "error", "error": {"type": error_type(status), "message": message}}
