"""Anthropic endpoints: messages and token counting."""

from __future__ import annotations

from llm_debugger.config import ServerConfig
from llm_debugger.extract import extract_anthropic_text
from llm_debugger.handlers.base import JsonReply, Reply, Request, StreamReply
from llm_debugger.handlers.common import (
    ANTHROPIC_COUNT_FIELDS,
    ANTHROPIC_MESSAGE_FIELDS,
    calculate_delay,
    generate,
    validate_body,
)
from llm_debugger.llm.providers import anthropic
from llm_debugger.llm.streaming import StreamFormat
from llm_debugger.llm.tokens import count_tokens
from llm_debugger.llm.types import CanonicalResponse

PROVIDER = "anthropic"


def messages(request: Request, config: ServerConfig) -> Reply:
    """POST /v1/messages."""
    body = request.json
    model = str(body.get("model") or "")

    def render(response: CanonicalResponse) -> Reply:
        if body.get("stream") is True:
            events = anthropic.to_anthropic_events(response, model)
            return StreamReply(events=tuple(events), stream_format=StreamFormat.SSE_NAMED)
        return JsonReply(body=anthropic.to_anthropic_message(response, model))

    return generate(
        request,
        config,
        provider=PROVIDER,
        allowed_fields=ANTHROPIC_MESSAGE_FIELDS,
        model=body.get("model"),
        text=extract_anthropic_text(body.get("messages")),
        render=render,
    )


def count_message_tokens(request: Request, config: ServerConfig) -> Reply:
    """POST /v1/messages/count_tokens."""
    invalid = validate_body(request, ANTHROPIC_COUNT_FIELDS, PROVIDER, config)
    if invalid is not None:
        return invalid
    text = extract_anthropic_text(request.json.get("messages"))
    return JsonReply(
        body={"input_tokens": count_tokens(text.all_text, config.token_counting)},
        delay_ms=calculate_delay(request, config),
        input_summary=text.all_text,
        behavior="count_tokens",
    )
