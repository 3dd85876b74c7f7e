"""Recorded fixture loading and replay.

A fixture is a request/response log captured from a real provider::

    request:
      body: {model: gpt-4o, stream: true, ...}
    response:
      status: 200
      headers: {content-type: text/event-stream}
      body:
        - {id: chatcmpl-1, object: chat.completion.chunk, choices: [...]}
        - {done: true}
    duration_ms: 850

The stored body is replayed verbatim. For streaming fixtures the body is a
list of chunks; ``{done: true}`` becomes the ``[DONE]`` terminator, and
Anthropic-style ``message_*`` chunks are re-tagged with their SSE event name.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from llm_debugger.llm.config_loader import read_document, resolve_path
from llm_debugger.llm.exceptions import FixtureError
from llm_debugger.llm.streaming import DONE, StreamEvent, StreamFormat

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FixtureReplay:
    """What to send back for a recorded fixture.

    Attributes:
        status: HTTP status (streams are always sent with 200).
        headers: Stored response headers (non-streaming replays only).
        body: Stored JSON body (non-streaming replays only).
        events: Stream events (streaming replays only).
        stream_format: Framing of ``events``.
        content_type: Content type of the stream.
        delay_ms: Total delay: request-level delay plus recorded duration.
    """

    status: int = 200
    headers: dict[str, str] = field(default_factory=dict)
    body: Any = None
    events: tuple[StreamEvent, ...] | None = None
    stream_format: StreamFormat | None = None
    content_type: str | None = None
    delay_ms: int = 0

    @property
    def streaming(self) -> bool:
        """Return True if this replay is a stream."""
        return self.events is not None


def load_fixture(path: str, base_dir: str | Path | None) -> Any:
    """Load a fixture document relative to the config directory.

    Args:
        path: Fixture path from the directive.
        base_dir: Config directory.

    Returns:
        Parsed fixture document.

    Raises:
        FixtureError: If the path is empty or the file cannot be read or parsed.
    """
    resolved = resolve_path(base_dir, path)
    if resolved is None:
        raise FixtureError("Invalid fixture path.")
    try:
        document = read_document(resolved)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        raise FixtureError(f"Cannot load fixture {resolved}: {exc}") from exc
    logger.debug("loaded fixture %s", resolved)
    return document


def _first_present(*values: Any) -> Any:
    for value in values:
        if value is not None:
            return value
    return None


def _as_int(value: Any, default: int = 0) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return default


def _header(headers: Mapping[str, Any], name: str) -> str | None:
    for key, value in headers.items():
        if str(key).lower() == name:
            return str(value)
    return None


def normalize_recorded_event(chunk: Any) -> StreamEvent:
    """Convert one recorded chunk into a stream event."""
    if isinstance(chunk, Mapping):
        if chunk.get("done"):
            return StreamEvent(data=DONE)
        if chunk.get("event"):
            data = chunk.get("data")
            return StreamEvent(event=str(chunk["event"]), data=chunk if data is None else data)
        chunk_type = chunk.get("type")
        if isinstance(chunk_type, str) and chunk_type.startswith("message_"):
            return StreamEvent(event=chunk_type, data=chunk)
    return StreamEvent(data=chunk)


def replay(fixture: Any, requested_delay_ms: int = 0) -> FixtureReplay:
    """Plan the replay of a loaded fixture.

    Args:
        fixture: Parsed fixture document.
        requested_delay_ms: Request-level simulated delay.

    Returns:
        The replay plan.

    Raises:
        FixtureError: If the fixture is empty or records an error.
    """
    if not isinstance(fixture, Mapping):
        raise FixtureError("Fixture missing")

    recorded_error = fixture.get("error")
    if recorded_error:
        message = recorded_error.get("message") if isinstance(recorded_error, Mapping) else str(recorded_error)
        raise FixtureError(message or "Fixture error")

    response = fixture.get("response")
    if not isinstance(response, Mapping):
        response = {}
    request = fixture.get("request") if isinstance(fixture.get("request"), Mapping) else {}
    request_body = request.get("body") if isinstance(request.get("body"), Mapping) else {}

    headers = response.get("headers") if isinstance(response.get("headers"), Mapping) else {}
    status = _as_int(response.get("status"), 200) or 200
    body = response["body"] if "body" in response else fixture.get("body")
    delay_ms = max(0, int(requested_delay_ms)) + max(0, _as_int(fixture.get("duration_ms")))

    streaming = bool(
        _first_present(response.get("is_streaming"), fixture.get("is_streaming"), request_body.get("stream"))
    )
    if not streaming:
        return FixtureReplay(
            status=status,
            headers={str(k): str(v) for k, v in headers.items()},
            body={} if body is None else body,
            delay_ms=delay_ms,
        )

    chunks = body if isinstance(body, list) else [body]
    events = tuple(normalize_recorded_event(chunk) for chunk in chunks)
    content_type = _header(headers, "content-type") or StreamFormat.SSE_NAMED.content_type
    if "ndjson" in content_type:
        fmt = StreamFormat.NDJSON
    elif any(event.event for event in events):
        fmt = StreamFormat.SSE_NAMED
    else:
        fmt = StreamFormat.SSE_DATA

    return FixtureReplay(
        status=200,
        events=events,
        stream_format=fmt,
        content_type=content_type,
        delay_ms=delay_ms,
    )
