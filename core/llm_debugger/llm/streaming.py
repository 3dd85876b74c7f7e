"""Paced stream emission (Server-Sent Events and NDJSON).

The emitter spreads a total delay budget evenly over the events of a stream:
each event waits ``floor(total_delay_ms / event_count)`` milliseconds before
it is written, including the first one. Emission is sequential; if the sink
reports that the client went away, the loop stops after the current cycle.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

logger = logging.getLogger(__name__)

DONE = "[DONE]"


class StreamFormat(str, Enum):
    """Wire framing of a stream."""

    SSE_NAMED = "sse_named"
    SSE_DATA = "sse_data"
    NDJSON = "ndjson"

    @property
    def content_type(self) -> str:
        """Default content type for this framing."""
        if self is StreamFormat.NDJSON:
            return "application/x-ndjson"
        return "text/event-stream"


@dataclass(frozen=True)
class StreamEvent:
    """One stream event; ``data`` is a JSON object or a literal such as ``[DONE]``."""

    data: Any
    event: str | None = None


class ByteSink(Protocol):
    """Destination of a stream (an HTTP response body, a buffer in tests)."""

    @property
    def closed(self) -> bool:
        """True once the consumer has gone away."""
        ...

    async def write(self, chunk: bytes) -> None:
        """Write one framed event."""
        ...


def dumps(payload: Any) -> str:
    """Serialize ``payload`` as compact JSON, keeping non-ASCII text as is."""
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)


def _data_text(data: Any) -> str:
    if isinstance(data, str):
        return data
    return dumps(data)


def format_event(event: StreamEvent, fmt: StreamFormat) -> bytes:
    """Frame a single event.

    Args:
        event: Event to frame.
        fmt: Target framing.

    Returns:
        Encoded bytes ready to be written.
    """
    if fmt is StreamFormat.NDJSON:
        return f"{dumps(event.data)}\n".encode("utf-8")

    lines = ""
    if fmt is StreamFormat.SSE_NAMED and event.event:
        lines += f"event: {event.event}\n"
    lines += f"data: {_data_text(event.data)}\n\n"
    return lines.encode("utf-8")


def per_event_delay_ms(total_delay_ms: int, event_count: int) -> int:
    """Return the pause before each event."""
    if total_delay_ms <= 0:
        return 0
    return int(total_delay_ms) // max(1, event_count)


async def emit(
    events: Sequence[StreamEvent],
    total_delay_ms: int,
    fmt: StreamFormat,
    sink: ByteSink,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> int:
    """Write ``events`` to ``sink`` with even pacing.

    Args:
        events: Ordered events.
        total_delay_ms: Delay budget for the whole stream.
        fmt: Wire framing.
        sink: Destination.
        sleep: Sleep primitive (seconds), replaceable in tests.

    Returns:
        Number of events written.
    """
    delay_ms = per_event_delay_ms(total_delay_ms, len(events))
    written = 0

    for event in events:
        if delay_ms > 0:
            await sleep(delay_ms / 1000.0)
        if sink.closed:
            logger.debug("client went away after %d of %d events", written, len(events))
            break
        try:
            await sink.write(format_event(event, fmt))
        except OSError as exc:
            logger.debug("stream write failed after %d events: %s", written, exc)
            break
        written += 1

    return written
