"""Request and reply types shared by the endpoint handlers.

Handlers are plain functions ``(request, config) -> Reply``. They never touch
the ASGI channel: the HTTP entrypoint applies the reply's delay, writes the
body or paces the stream, and logs ``input_summary`` and ``behavior``.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from llm_debugger.llm.streaming import StreamEvent, StreamFormat


@dataclass(frozen=True)
class Request:
    """An incoming HTTP request with its JSON body already parsed.

    Attributes:
        method: Upper-case HTTP method.
        path: URL path without the query string.
        headers: Request headers with lower-case names.
        query: Query parameters (first value wins).
        body: Parsed JSON body, or None when the request had none.
        path_params: Values captured from the route pattern.
    """

    method: str
    path: str
    headers: Mapping[str, str] = field(default_factory=dict)
    query: Mapping[str, str] = field(default_factory=dict)
    body: Any = None
    path_params: Mapping[str, str] = field(default_factory=dict)

    def header(self, name: str) -> str | None:
        """Return a header value, or None when absent or blank."""
        value = self.headers.get(name.lower())
        if value is None or not value.strip():
            return None
        return value.strip()

    @property
    def json(self) -> Mapping[str, Any]:
        """The body if it is a JSON object, else an empty mapping."""
        return self.body if isinstance(self.body, Mapping) else {}


@dataclass(frozen=True)
class Reply:
    """Base reply.

    Attributes:
        status: HTTP status.
        headers: Extra response headers.
        delay_ms: Delay before the body (for streams: spread over the events).
        input_summary: Request text shown in the access log.
        behavior: Behavior label shown in the access log.
    """

    status: int = 200
    headers: Mapping[str, str] = field(default_factory=dict)
    delay_ms: int = 0
    input_summary: str = ""
    behavior: str | None = None


@dataclass(frozen=True)
class JsonReply(Reply):
    """A JSON response body."""

    body: Any = None


@dataclass(frozen=True)
class StreamReply(Reply):
    """A paced event stream."""

    events: tuple[StreamEvent, ...] = ()
    stream_format: StreamFormat = StreamFormat.SSE_DATA
    content_type: str | None = None

    @property
    def media_type(self) -> str:
        """Content type sent with the stream."""
        return self.content_type or self.stream_format.content_type
