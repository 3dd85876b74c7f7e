"""Gemini endpoints: ``models/{model}:{action}``."""

from __future__ import annotations

from collections.abc import Mapping

from llm_debugger.config import ServerConfig
from llm_debugger.extract import extract_gemini_text
from llm_debugger.handlers.base import JsonReply, Reply, Request, StreamReply
from llm_debugger.handlers.common import (
    GEMINI_COUNT_FIELDS,
    GEMINI_GENERATE_FIELDS,
    calculate_delay,
    error_reply,
    generate,
    validate_body,
)
from llm_debugger.llm.providers import gemini
from llm_debugger.llm.streaming import StreamEvent, StreamFormat
from llm_debugger.llm.tokens import count_tokens
from llm_debugger.llm.types import CanonicalResponse

PROVIDER = "gemini"


def split_model_action(model_action: str) -> tuple[str, str]:
    """Split ``gemini-pro:generateContent`` into model and action."""
    model, _, action = model_action.partition(":")
    return model, action


def generate_content(request: Request, config: ServerConfig, model: str) -> Reply:
    """POST /v1beta/models/{model}:generateContent."""

    def render(response: CanonicalResponse) -> Reply:
        return JsonReply(body=gemini.to_gemini_generate(response, model))

    return _generate(request, config, model, render)


def stream_generate_content(request: Request, config: ServerConfig, model: str) -> Reply:
    """POST /v1beta/models/{model}:streamGenerateContent.

    Sent as data-only SSE, or as NDJSON with ``?stream_format=ndjson``.
    """
    ndjson = request.query.get("stream_format") == "ndjson"

    def render(response: CanonicalResponse) -> Reply:
        chunks = gemini.to_gemini_chunks(response, model)
        return StreamReply(
            events=tuple(StreamEvent(data=chunk) for chunk in chunks),
            stream_format=StreamFormat.NDJSON if ndjson else StreamFormat.SSE_DATA,
        )

    return _generate(request, config, model, render)


def _generate(request: Request, config: ServerConfig, model: str, render) -> Reply:
    return generate(
        request,
        config,
        provider=PROVIDER,
        allowed_fields=GEMINI_GENERATE_FIELDS,
        model=model,
        text=extract_gemini_text(request.json.get("contents")),
        render=render,
        model_required=False,
    )


def count_content_tokens(request: Request, config: ServerConfig) -> Reply:
    """POST /v1beta/models/{model}:countTokens."""
    invalid = validate_body(request, GEMINI_COUNT_FIELDS, PROVIDER, config)
    if invalid is not None:
        return invalid
    body = request.json
    contents = body.get("contents")
    if not contents and isinstance(body.get("generateContentRequest"), Mapping):
        contents = body["generateContentRequest"].get("contents")
    text = extract_gemini_text(contents)
    return JsonReply(
        body={"totalTokens": count_tokens(text.all_text, config.token_counting)},
        delay_ms=calculate_delay(request, config),
        input_summary=text.all_text,
        behavior="count_tokens",
    )


def model_action(request: Request, config: ServerConfig) -> Reply:
    """Dispatch POST /v1beta/models/{model}:{action}."""
    model, action = split_model_action(request.path_params.get("model_action", ""))
    if action == "generateContent":
        return generate_content(request, config, model)
    if action == "streamGenerateContent":
        return stream_generate_content(request, config, model)
    if action == "countTokens":
        return count_content_tokens(request, config)
    return error_reply(PROVIDER, 404, f"Unknown action: {action}")
