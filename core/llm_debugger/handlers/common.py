# Licensed to the Apache Software Foundation (ASF) under one
# or more contributor license agreements.  See the NOTICE file
# distributed with this work for additional information
# regarding copyright ownership.  The ASF licenses this file
# to you under the Apache License, Version 2.0 (the
# "License"); you may not use this file except in compliance
# with the License.  You may obtain a copy of the License at
#
#   http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing,
# software distributed under the License is distributed on an
# "AS IS" BASIS, WITHOUT WARRANTIES OR CONDITIONS OF ANY
# KIND, either express or implied.  See the License for the
# specific language governing permissions and limitations
# under the License.

"""Steps shared by every generation endpoint.

A generation request goes through the same pipeline regardless of provider:

  1) strict field validation (only when enabled)
  2) model presence and model existence checks
  3) simulated errors (``x-error`` header, ``simulate_error`` field, error rate)
  4) behavior resolution
  5) fixture replay or configured error, or rendering the canonical response

:func:`generate` runs the pipeline; the provider modules only supply the text
extraction and the rendering step.
"""

from __future__ import annotations

import dataclasses
import logging
import math
from collections.abc import Callable, Mapping
from typing import Any

from llm_debugger.config import ServerConfig, parse_integer, parse_number
from llm_debugger.extract import ExtractedText
from llm_debugger.handlers.base import JsonReply, Reply, Request, StreamReply
from llm_debugger.llm.behavior import ResolveContext, resolve_response
from llm_debugger.llm.exceptions import DirectiveError, FixtureError
from llm_debugger.llm.fixtures import replay
from llm_debugger.llm.providers import build_error
from llm_debugger.llm.registry import resolve_model_name, should_reject_model
from llm_debugger.llm.types import CanonicalResponse, ErrorInfo, ResolutionResult

logger = logging.getLogger(__name__)

OPENAI_CHAT_FIELDS = frozenset(
    {
        "model",
        "messages",
        "temperature",
        "max_tokens",
        "stream",
        "stream_options",
        "seed",
        "tools",
        "tool_choice",
        "functions",
        "function_call",
        "top_p",
        "n",
        "stop",
    }
)
OPENAI_COMPLETIONS_FIELDS = frozenset(
    {"model", "prompt", "max_tokens", "temperature", "top_p", "n", "stream", "stop", "seed"}
)
OPENAI_EMBEDDINGS_FIELDS = frozenset({"model", "input", "encoding_format", "user"})
OPENAI_RESPONSES_FIELDS = frozenset(
    {
        "model",
        "input",
        "stream",
        "stream_options",
        "temperature",
        "max_output_tokens",
        "tools",
        "tool_choice",
        "seed",
    }
)
ANTHROPIC_MESSAGE_FIELDS = frozenset(
    {"model", "messages", "max_tokens", "stream", "temperature", "tools", "tool_choice", "system", "metadata"}
)
ANTHROPIC_COUNT_FIELDS = frozenset({"model", "messages"})
GEMINI_GENERATE_FIELDS = frozenset({"contents", "generationConfig", "safetySettings", "tools", "toolConfig"})
GEMINI_COUNT_FIELDS = frozenset({"contents", "generateContentRequest"})

Renderer = Callable[[CanonicalResponse], Reply]


def error_reply(
    provider: str,
    status: int,
    message: str,
    param: str | None = None,
    code: str | None = None,
    input_summary: str = "",
    behavior: str | None = None,
) -> JsonReply:
    """Build an error reply in the provider's envelope."""
    return JsonReply(
        status=status,
        body=build_error(provider, status, message, param, code),
        input_summary=input_summary,
        behavior=behavior,
    )


def validate_body(request: Request, allowed: frozenset[str], provider: str, config: ServerConfig) -> JsonReply | None:
    """Reject bodies with unknown top-level fields when strict validation is on.

    Args:
        request: Incoming request.
        allowed: Field names the endpoint accepts.
        provider: Provider whose error envelope to use.
        config: Server configuration.

    Returns:
        A 400 reply, or None if the body is acceptable.
    """
    if not config.strict_validation:
        return None
    if not isinstance(request.body, Mapping):
        return error_reply(provider, 400, "Invalid JSON body")
    unknown = [str(key) for key in request.body if key not in allowed]
    if unknown:
        return error_reply(provider, 400, f"Unknown fields: {', '.join(unknown)}")
    return None


def check_model(provider: str, model: Any, config: ServerConfig, required: bool = True) -> tuple[str, JsonReply | None]:
    """Map the requested model onto a configured one.

    Args:
        provider: Provider whose error envelope to use.
        model: Requested model name.
        config: Server configuration.
        required: Whether a missing model is an error.

    Returns:
        ``(resolved_name, None)`` or ``("", error_reply)``.
    """
    if not model:
        if required:
            return "", error_reply(provider, 400, "Missing model")
        return "", None

    resolved = resolve_model_name(str(model), config.model_registry)
    if should_reject_model(resolved, config.model_registry):
        if provider == "openai":
            return "", error_reply(provider, 404, "Unknown model", "model", "invalid_model")
        return "", error_reply(provider, 404, "Unknown model")
    return resolved, None


def seeded_random(seed: float) -> float:
    """Deterministic pseudo-random number in [0, 1) derived from ``seed``."""
    x = math.sin(seed) * 10000
    return x - math.floor(x)


def _valid_status(value: Any) -> int:
    status = parse_integer(value, 0)
    return status if 100 <= status <= 599 else 400


def simulated_error(request: Request, config: ServerConfig) -> ErrorInfo | None:
    """Return the error the client asked to be simulated, if any.

    The ``x-error`` header wins over the ``simulate_error`` body field. An
    object gives ``status``/``message``; any other value is parsed as a status
    (400 when it is not one). Without either, requests carrying a numeric
    ``seed`` fail with a 500 when the seeded draw falls below ``error_rate``.
    """
    directive: Any = request.header("x-error")
    if directive is None:
        directive = request.json.get("simulate_error")

    if directive is not None and directive != "":
        if isinstance(directive, Mapping):
            return ErrorInfo(
                status=_valid_status(directive.get("status")),
                message=str(directive.get("message") or "Simulated error"),
            )
        text = str(directive).lower() if isinstance(directive, bool) else str(directive)
        return ErrorInfo(status=_valid_status(directive), message=f"Simulated error ({text})")

    seed = request.json.get("seed")
    if config.error_rate > 0 and seed is not None and not isinstance(seed, bool):
        value = parse_number(seed, math.nan)
        if math.isfinite(value) and seeded_random(value) < config.error_rate:
            return ErrorInfo(status=500, message="Simulated error")
    return None


def calculate_delay(request: Request, config: ServerConfig, extra_ms: int = 0) -> int:
    """Total simulated delay: configured latency + ``x-delay-ms`` + ``extra_ms``."""
    header_delay = parse_integer(request.header("x-delay-ms"), 0)
    return max(0, config.latency_ms + header_delay + extra_ms)


def resolve_request(request: Request, config: ServerConfig, model: str, text: ExtractedText) -> ResolutionResult:
    """Run the behavior resolver for a request."""
    ctx = ResolveContext(
        registry=config.model_registry,
        model_name=model,
        input_text=text.all_text,
        last_user_message=text.last_user,
        request_body=request.json,
        headers=request.headers,
        default_behavior=config.default_behavior,
        token_counting=config.token_counting,
        config_dir=config.config_dir,
    )
    return resolve_response(ctx)


def fixture_reply(provider: str, fixture: Any, request: Request, config: ServerConfig) -> Reply:
    """Replay a recorded fixture as a JSON body or a paced stream."""
    try:
        plan = replay(fixture, calculate_delay(request, config))
    except FixtureError as exc:
        return error_reply(provider, 500, str(exc))

    if plan.streaming:
        return StreamReply(
            events=plan.events or (),
            stream_format=plan.stream_format,
            content_type=plan.content_type,
            delay_ms=plan.delay_ms,
        )
    return JsonReply(status=plan.status, headers=plan.headers, body=plan.body, delay_ms=plan.delay_ms)


def generate(
    request: Request,
    config: ServerConfig,
    *,
    provider: str,
    allowed_fields: frozenset[str],
    model: Any,
    text: ExtractedText,
    render: Renderer,
    model_required: bool = True,
) -> Reply:
    """Run the generation pipeline.

    Args:
        request: Incoming request.
        config: Server configuration.
        provider: Provider tag used for error envelopes.
        allowed_fields: Fields accepted in strict mode.
        model: Requested model name.
        text: Extracted request text.
        render: Builds the success reply from the canonical response.
        model_required: Whether a missing model is a 400.

    Returns:
        The reply, annotated with the log summary and behavior label.

    Raises:
        DirectiveError: If resolution produced no response, fixture or error.
    """
    invalid = validate_body(request, allowed_fields, provider, config)
    if invalid is not None:
        return invalid

    resolved, rejected = check_model(provider, model, config, required=model_required)
    if rejected is not None:
        return rejected

    summary = text.summary
    simulated = simulated_error(request, config)
    if simulated is not None:
        logger.debug("simulating %d for %s", simulated.status, request.path)
        return error_reply(provider, simulated.status, simulated.message, input_summary=summary)

    result = resolve_request(request, config, resolved, text)
    if result.mode == "file":
        reply = fixture_reply(provider, result.file, request, config)
    elif result.mode == "error" and result.error is not None:
        reply = error_reply(provider, result.error.status, result.error.message)
    elif result.response is not None:
        reply = dataclasses.replace(render(result.response), delay_ms=calculate_delay(request, config))
    else:
        raise DirectiveError(f"behavior {result.behavior!r} resolved to no response")

    return dataclasses.replace(reply, input_summary=summary, behavior=result.behavior)
