"""OpenAI wire format: chat completions, responses, completions and embeddings.

All functions here are pure: they take a canonical response (or plain values)
and return the JSON-ready body or the ordered list of stream events.
"""

from __future__ import annotations

import base64
import struct
from collections.abc import Sequence
from typing import Any

from llm_debugger.llm.streaming import DONE, StreamEvent, dumps
from llm_debugger.llm.tokens import generate_id, now_seconds
from llm_debugger.llm.types import CanonicalResponse, ToolCall, Usage


def map_usage_to_openai_chat(usage: Usage) -> dict[str, Any]:
    """Map canonical usage onto the chat/completions usage object.

    Args:
        usage: Canonical usage.

    Returns:
        ``prompt_tokens``/``completion_tokens``/``total_tokens`` plus the
        details objects for optional fields that are present.
    """
    mapped: dict[str, Any] = {
        "prompt_tokens": usage.input,
        "completion_tokens": usage.output,
        "total_tokens": usage.input + usage.output,
    }
    if usage.cache_read is not None:
        mapped["prompt_tokens_details"] = {"cached_tokens": usage.cache_read}
    if usage.reasoning is not None:
        mapped["completion_tokens_details"] = {"reasoning_tokens": usage.reasoning}
    return mapped


def map_usage_to_openai_responses(usage: Usage) -> dict[str, Any]:
    """Map canonical usage onto the Responses API usage object."""
    mapped: dict[str, Any] = {
        "input_tokens": usage.input,
        "output_tokens": usage.output,
        "total_tokens": usage.input + usage.output,
    }
    if usage.cache_read is not None:
        mapped["input_tokens_details"] = {"cached_tokens": usage.cache_read}
    if usage.reasoning is not None:
        mapped["output_tokens_details"] = {"reasoning_tokens": usage.reasoning}
    return mapped


def _arguments_json(arguments: Any) -> str:
    return dumps({} if arguments is None else arguments)


def _tool_calls(tool_calls: Sequence[ToolCall]) -> list[dict[str, Any]]:
    return [
        {
            "id": call.id or generate_id("call"),
            "type": "function",
            "function": {"name": call.name, "arguments": _arguments_json(call.arguments)},
        }
        for call in tool_calls
    ]


def to_openai_chat(response: CanonicalResponse, model: str) -> dict[str, Any]:
    """Build a ``chat.completion`` body.

    Args:
        response: Canonical response.
        model: Model name echoed back to the client.

    Returns:
        JSON-ready response body.
    """
    message: dict[str, Any] = {"role": "assistant", "content": response.content or ""}
    if response.reasoning:
        message["reasoning_content"] = response.reasoning
    if response.tool_calls:
        message["tool_calls"] = _tool_calls(response.tool_calls)

    return {
        "id": generate_id("chatcmpl"),
        "object": "chat.completion",
        "created": now_seconds(),
        "model": model,
        "choices": [{"index": 0, "message": message, "finish_reason": "stop"}],
        "usage": map_usage_to_openai_chat(response.usage),
    }


def to_openai_chat_events(response: CanonicalResponse, model: str, include_usage: bool = False) -> list[StreamEvent]:
    """Build the ``chat.completion.chunk`` stream.

    Order: role chunk, content chunk (only when there is content, reasoning or
    a tool call), stop chunk, usage chunk (only with ``include_usage``), then
    ``[DONE]``. Only the usage chunk carries a ``usage`` key.

    Args:
        response: Canonical response.
        model: Model name echoed back to the client.
        include_usage: Value of ``stream_options.include_usage``.

    Returns:
        Ordered stream events.
    """
    chunk_id = generate_id("chatcmpl")
    created = now_seconds()

    def chunk(choices: list[dict[str, Any]]) -> dict[str, Any]:
        return {
            "id": chunk_id,
            "object": "chat.completion.chunk",
            "created": created,
            "model": model,
            "choices": choices,
        }

    events = [StreamEvent(data=chunk([{"index": 0, "delta": {"role": "assistant"}, "finish_reason": None}]))]

    delta: dict[str, Any] = {}
    if response.content:
        delta["content"] = response.content
    if response.reasoning:
        delta["reasoning_content"] = response.reasoning
    if response.tool_calls:
        delta["tool_calls"] = [dict(call, index=i) for i, call in enumerate(_tool_calls(response.tool_calls))]
    if delta:
        events.append(StreamEvent(data=chunk([{"index": 0, "delta": delta, "finish_reason": None}])))

    events.append(StreamEvent(data=chunk([{"index": 0, "delta": {}, "finish_reason": "stop"}])))

    if include_usage:
        usage_chunk = chunk([])
        usage_chunk["usage"] = map_usage_to_openai_chat(response.usage)
        events.append(StreamEvent(data=usage_chunk))

    events.append(StreamEvent(data=DONE))
    return events


def to_openai_responses(response: CanonicalResponse, model: str) -> dict[str, Any]:
    """Build a Responses API ``response`` body."""
    output: list[dict[str, Any]] = [
        {
            "type": "message",
            "role": "assistant",
            "content": [{"type": "output_text", "text": response.content or ""}],
        }
    ]
    for call in response.tool_calls or ():
        output.append(
            {
                "type": "tool_call",
                "id": call.id,
                "name": call.name,
                "arguments": _arguments_json(call.arguments),
            }
        )

    return {
        "id": generate_id("resp"),
        "object": "response",
        "created": now_seconds(),
        "model": model,
        "status": "completed",
        "output": output,
        "usage": map_usage_to_openai_responses(response.usage),
    }


def to_openai_responses_events(response: CanonicalResponse, model: str) -> list[StreamEvent]:
    """Build the Responses API stream.

    One ``response.output_text.delta`` event when there is content, then a
    ``response.completed`` event that carries the whole non-streaming body.
    """
    base = to_openai_responses(response, model)
    events: list[StreamEvent] = []
    if response.content:
        events.append(StreamEvent(data={"type": "response.output_text.delta", "delta": response.content}))
    events.append(StreamEvent(data={"type": "response.completed", **base}))
    return events


def to_openai_completion(text: str, model: str, usage: Usage) -> dict[str, Any]:
    """Build a legacy ``text_completion`` body."""
    return {
        "id": generate_id("cmpl"),
        "object": "text_completion",
        "created": now_seconds(),
        "model": model,
        "choices": [{"index": 0, "text": text, "finish_reason": "stop"}],
        "usage": map_usage_to_openai_chat(usage),
    }


def embedding_vector(text: str, size: int) -> list[float]:
    """Return a deterministic fake embedding for ``text``.

    Each component is ``((sum of code points) + 31 * i) % 1000 / 1000``,
    rounded to four decimals.
    """
    total = sum(ord(char) for char in text)
    return [round(((total + 31 * i) % 1000) / 1000, 4) for i in range(size)]


def encode_embedding_base64(vector: Sequence[float]) -> str:
    """Pack ``vector`` as little-endian float32 and base64-encode it."""
    packed = struct.pack(f"<{len(vector)}f", *vector)
    return base64.b64encode(packed).decode("ascii")


def to_openai_embedding(embeddings: Sequence[Any], model: str, input_tokens: int) -> dict[str, Any]:
    """Build an embeddings ``list`` body.

    Args:
        embeddings: One vector (or base64 string) per input.
        model: Model name echoed back to the client.
        input_tokens: Token count of all inputs.

    Returns:
        JSON-ready response body.
    """
    return {
        "object": "list",
        "data": [
            {"object": "embedding", "index": index, "embedding": embedding}
            for index, embedding in enumerate(embeddings)
        ],
        "model": model,
        "usage": {"prompt_tokens": input_tokens, "total_tokens": input_tokens},
    }


def error_envelope(  # pylint: disable=unused-argument
    status: int, message: str, param: str | None = None, code: str | None = None
) -> dict[str, Any]:
    """Build the OpenAI error body; the status is only carried by the HTTP response."""
    return {"error": {"message": message, "type": "invalid_request_error", "param": param, "code": code}}
