"""OpenAI endpoints: chat, responses, completions, embeddings, moderations, images."""

from __future__ import annotations

import base64

from llm_debugger.config import ServerConfig, parse_integer
from llm_debugger.extract import ExtractedText, extract_input_text, extract_openai_chat_text, extract_prompt_text
from llm_debugger.handlers.base import JsonReply, Reply, Request, StreamReply
from llm_debugger.handlers.common import (
    OPENAI_CHAT_FIELDS,
    OPENAI_COMPLETIONS_FIELDS,
    OPENAI_EMBEDDINGS_FIELDS,
    OPENAI_RESPONSES_FIELDS,
    calculate_delay,
    check_model,
    generate,
    validate_body,
)
from llm_debugger.llm.providers import openai
from llm_debugger.llm.streaming import StreamFormat
from llm_debugger.llm.tokens import combine_tokens, count_tokens, generate_id, now_seconds
from llm_debugger.llm.types import CanonicalResponse

PROVIDER = "openai"
DEFAULT_MODERATION_MODEL = "omni-moderation-latest"
DEFAULT_IMAGE_MODEL = "image-model"


def chat_completions(request: Request, config: ServerConfig) -> Reply:
    """POST /v1/chat/completions."""
    body = request.json
    model = str(body.get("model") or "")
    stream_options = body.get("stream_options")
    include_usage = isinstance(stream_options, dict) and stream_options.get("include_usage") is True

    def render(response: CanonicalResponse) -> Reply:
        if body.get("stream") is True:
            events = openai.to_openai_chat_events(response, model, include_usage=include_usage)
            return StreamReply(events=tuple(events), stream_format=StreamFormat.SSE_DATA)
        return JsonReply(body=openai.to_openai_chat(response, model))

    return generate(
        request,
        config,
        provider=PROVIDER,
        allowed_fields=OPENAI_CHAT_FIELDS,
        model=body.get("model"),
        text=extract_openai_chat_text(body.get("messages")),
        render=render,
    )


def responses(request: Request, config: ServerConfig) -> Reply:
    """POST /v1/responses."""
    body = request.json
    model = str(body.get("model") or "")
    input_text = extract_input_text(body.get("input"))

    def render(response: CanonicalResponse) -> Reply:
        if body.get("stream") is True:
            events = openai.to_openai_responses_events(response, model)
            return StreamReply(events=tuple(events), stream_format=StreamFormat.SSE_DATA)
        return JsonReply(body=openai.to_openai_responses(response, model))

    return generate(
        request,
        config,
        provider=PROVIDER,
        allowed_fields=OPENAI_RESPONSES_FIELDS,
        model=body.get("model"),
        text=ExtractedText(last_user=input_text, all_text=input_text),
        render=render,
    )


def completions(request: Request, config: ServerConfig) -> Reply:
    """POST /v1/completions (always answered as a single JSON body)."""
    body = request.json
    model = str(body.get("model") or "")
    prompt = extract_prompt_text(body.get("prompt"))

    def render(response: CanonicalResponse) -> Reply:
        return JsonReply(body=openai.to_openai_completion(response.content or "", model, response.usage))

    return generate(
        request,
        config,
        provider=PROVIDER,
        allowed_fields=OPENAI_COMPLETIONS_FIELDS,
        model=body.get("model"),
        text=ExtractedText(last_user=prompt, all_text=prompt),
        render=render,
    )


def embeddings(request: Request, config: ServerConfig) -> Reply:
    """POST /v1/embeddings."""
    invalid = validate_body(request, OPENAI_EMBEDDINGS_FIELDS, PROVIDER, config)
    if invalid is not None:
        return invalid
    body = request.json
    _, rejected = check_model(PROVIDER, body.get("model"), config)
    if rejected is not None:
        return rejected

    raw_input = body.get("input")
    inputs = [("" if item is None else str(item)) for item in (raw_input if isinstance(raw_input, list) else [raw_input])]
    vectors = [openai.embedding_vector(text, config.embedding_size) for text in inputs]
    if body.get("encoding_format") == "base64":
        data = [openai.encode_embedding_base64(vector) for vector in vectors]
    else:
        data = vectors

    return JsonReply(
        body=openai.to_openai_embedding(data, str(body["model"]), combine_tokens(inputs, config.token_counting)),
        delay_ms=calculate_delay(request, config),
        input_summary=" ".join(inputs),
        behavior="embedding",
    )


def moderations(request: Request, config: ServerConfig) -> Reply:
    """POST /v1/moderations: nothing is ever flagged."""
    body = request.json
    return JsonReply(
        body={
            "id": generate_id("modr"),
            "model": body.get("model") or DEFAULT_MODERATION_MODEL,
            "results": [
                {
                    "flagged": False,
                    "categories": {"hate": False, "violence": False},
                    "category_scores": {"hate": 0.0, "violence": 0.0},
                }
            ],
        },
        delay_ms=calculate_delay(request, config),
        input_summary=extract_input_text(body.get("input")),
        behavior="moderation",
    )


def image_generations(request: Request, config: ServerConfig) -> Reply:
    """POST /v1/images/generations: placeholder URLs or base64 payloads."""
    body = request.json
    prompt = str(body.get("prompt") or "")
    count = parse_integer(body.get("n"), 1) or 1
    response_format = body.get("response_format") or "url"
    model = str(body.get("model") or DEFAULT_IMAGE_MODEL)

    data = []
    for i in range(max(1, count)):
        if response_format == "b64_json":
            data.append({"b64_json": base64.b64encode(f"dummy-{i}".encode("utf-8")).decode("ascii")})
        else:
            data.append({"url": f"https://dummy.local/image/{generate_id('img')}"})

    payload: dict = {"created": now_seconds(), "data": data}
    if "gpt" in model.lower():
        tokens = count_tokens(prompt, config.token_counting)
        payload["usage"] = {
            "input_tokens": tokens,
            "output_tokens": 0,
            "total_tokens": tokens,
            "input_tokens_details": {"text_tokens": tokens, "image_tokens": 0},
        }

    return JsonReply(
        body=payload,
        delay_ms=calculate_delay(request, config),
        input_summary=prompt,
        behavior="image_generation",
    )
