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

"""
LLM Debugger HTTP entrypoint (ASGI).

This module exposes the endpoint handlers over HTTP as a plain ASGI
application. Per request it:

- answers ASGI lifespan events so process managers can stop it cleanly
- assigns a request id (echoed from ``x-request-id`` or generated)
- applies the API key gate when ``require_auth`` is set
- parses the JSON body and dispatches to the matching route
- sleeps for the reply's delay, or paces a stream over it
- logs one access line: ``METHOD path status Nms input="..." behavior="..."``

Handler exceptions never reach the client as a traceback: they become a 500
in the route's provider error envelope.

Run:
  uvicorn llm_debugger.core:create_default_app --factory --host 0.0.0.0 --port 3000
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
import time
from collections.abc import Awaitable, Callable, MutableMapping, Sequence
from dataclasses import dataclass
from typing import Any
from urllib.parse import parse_qs

from llm_debugger.auth import ApiKeyGate, AuthError
from llm_debugger.config import ServerConfig
from llm_debugger.handlers.base import JsonReply, Reply, Request, StreamReply
from llm_debugger.handlers.common import error_reply
from llm_debugger.llm.exceptions import LLMDebuggerError
from llm_debugger.llm.streaming import dumps, emit
from llm_debugger.llm.tokens import generate_id

logger = logging.getLogger(__name__)

# ASGI typing helpers
Scope = MutableMapping[str, Any]
Receive = Callable[[], Awaitable[MutableMapping[str, Any]]]
Send = Callable[[MutableMapping[str, Any]], Awaitable[None]]

Handler = Callable[[Request, ServerConfig], Reply]
Sleep = Callable[[float], Awaitable[Any]]

MAX_BODY_BYTES = 2 * 1024 * 1024

# Stored fixture headers that must not be replayed verbatim.
_HOP_BY_HOP = {"content-length", "transfer-encoding", "connection", "content-encoding", "keep-alive"}

_CORS_HEADERS = [
    (b"access-control-allow-origin", b"*"),
]


@dataclass(frozen=True)
class Route:
    """One routing table entry.

    Attributes:
        method: HTTP method.
        pattern: Path pattern; ``{name}`` captures one path segment.
        handler: Endpoint handler.
        provider: Provider whose error envelope failures of this route use.
    """

    method: str
    pattern: str
    handler: Handler
    provider: str = "openai"

    def match(self, method: str, path: str) -> dict[str, str] | None:
        """Return the captured path parameters, or None if the route does not match."""
        if method != self.method:
            return None
        found = _compile(self.pattern).fullmatch(path)
        return found.groupdict() if found else None


_PATTERNS: dict[str, re.Pattern[str]] = {}


def _compile(pattern: str) -> re.Pattern[str]:
    compiled = _PATTERNS.get(pattern)
    if compiled is None:
        regex = re.sub(r"\{(\w+)\}", r"(?P<\1>[^/]+)", re.escape(pattern).replace(r"\{", "{").replace(r"\}", "}"))
        compiled = re.compile(regex)
        _PATTERNS[pattern] = compiled
    return compiled


class AsgiSink:
    """Stream sink writing to an ASGI response.

    A background task watches ``receive`` for ``http.disconnect`` so a paced
    stream stops once the client has gone away.
    """

    def __init__(self, receive: Receive, send: Send) -> None:
        """Initialize the sink for one response."""
        self._receive = receive
        self._send = send
        self._closed = False
        self._watcher: asyncio.Task[None] | None = None

    @property
    def closed(self) -> bool:
        """True once the client has disconnected."""
        return self._closed

    async def _watch(self) -> None:
        while not self._closed:
            message = await self._receive()
            if message.get("type") == "http.disconnect":
                self._closed = True

    async def open(self, status: int, headers: Sequence[tuple[bytes, bytes]]) -> None:
        """Send the response head and start watching for disconnects."""
        await self._send({"type": "http.response.start", "status": status, "headers": list(headers)})
        self._watcher = asyncio.create_task(self._watch())

    async def write(self, chunk: bytes) -> None:
        """Send one body chunk."""
        await self._send({"type": "http.response.body", "body": chunk, "more_body": True})

    async def close(self) -> None:
        """Finish the response and stop the watcher."""
        try:
            if not self._closed:
                await self._send({"type": "http.response.body", "body": b"", "more_body": False})
        finally:
            if self._watcher is not None:
                self._watcher.cancel()
                try:
                    await self._watcher
                except asyncio.CancelledError:
                    # Watcher cancelled as part of closing - ignore.
                    pass


def _decode_headers(scope: Scope) -> dict[str, str]:
    """Collect request headers with lower-case names (first value wins)."""
    headers: dict[str, str] = {}
    for key, value in scope.get("headers") or []:
        try:
            name = key.decode("latin-1").lower()
            headers.setdefault(name, value.decode("utf-8").strip())
        except UnicodeDecodeError:  # pragma: no cover - malformed header values are skipped
            continue
    return headers


def _decode_query(scope: Scope) -> dict[str, str]:
    qs = scope.get("query_string") or b""
    if not qs:
        return {}
    params = parse_qs(qs.decode("utf-8"), keep_blank_values=True)
    return {key: values[0] for key, values in params.items() if values}


class HttpApp:
    """ASGI application serving one :class:`ServerConfig`."""

    def __init__(self, config: ServerConfig, routes: Sequence[Route], sleep: Sleep = asyncio.sleep) -> None:
        """Initialize the application.

        Args:
            config: Server configuration.
            routes: Routing table, matched in order.
            sleep: Sleep primitive (seconds), replaceable in tests.
        """
        self.config = config
        self.routes = list(routes)
        self.gate = ApiKeyGate(enabled=config.require_auth)
        self._sleep = sleep

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """ASGI application entrypoint.

        Args:
            scope: ASGI scope.
            receive: ASGI receive callable.
            send: ASGI send callable.
        """
        scope_type = scope.get("type")

        if scope_type == "lifespan":
            await self._lifespan(receive, send)
            return

        if scope_type != "http":
            # Only HTTP and lifespan are supported here.
            return

        await self._handle_http(scope, receive, send)

    async def _lifespan(self, receive: Receive, send: Send) -> None:
        while True:
            message = await receive()
            msg_type = message.get("type")

            if msg_type == "lifespan.startup":
                logger.info(
                    "LLM debugger server ready (%d configured models)",
                    len(self.config.model_registry.trigger_models) + len(self.config.model_registry.behavior_models),
                )
                await send({"type": "lifespan.startup.complete"})
            elif msg_type == "lifespan.shutdown":
                await send({"type": "lifespan.shutdown.complete"})
                return

    async def _read_body(self, receive: Receive) -> tuple[bytes, int] | None:
        """Read the request body.

        Returns:
            ``(body, size)``, or None if the client disconnected first. Bodies
            over MAX_BODY_BYTES are drained and returned empty with their size.
        """
        chunks: list[bytes] = []
        size = 0
        while True:
            message = await receive()
            if message.get("type") == "http.disconnect":
                return None
            chunk = message.get("body", b"")
            size += len(chunk)
            if size <= MAX_BODY_BYTES:
                chunks.append(chunk)
            if not message.get("more_body", False):
                return (b"".join(chunks) if size <= MAX_BODY_BYTES else b""), size

    def _route(self, method: str, path: str) -> tuple[Route | None, dict[str, str]]:
        for route in self.routes:
            params = route.match(method, path)
            if params is not None:
                return route, params
        return None, {}

    def _dispatch(self, scope: Scope, headers: dict[str, str], raw_body: bytes, size: int) -> Reply:
        method = str(scope.get("method", "GET")).upper()
        path = scope.get("path", "")
        route, params = self._route(method, path)
        provider = route.provider if route is not None else "openai"

        try:
            self.gate.verify(headers)
        except AuthError as exc:
            return error_reply("openai", 401, str(exc))

        if route is None:
            return JsonReply(status=404, body={"error": {"message": "Not found"}})

        if size > MAX_BODY_BYTES:
            return error_reply(provider, 413, "Request body too large")

        body: Any = None
        if raw_body.strip():
            try:
                body = json.loads(raw_body)
            except ValueError:
                return error_reply(provider, 400, "Invalid JSON body")

        request = Request(
            method=method,
            path=path,
            headers=headers,
            query=_decode_query(scope),
            body=body,
            path_params=params,
        )
        try:
            return route.handler(request, self.config)
        except LLMDebuggerError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            return error_reply(provider, 500, str(exc))
        except Exception:  # pylint: disable=broad-exception-caught
            logger.exception("unhandled error in %s %s", method, path)
            return error_reply(provider, 500, "Internal server error")

    async def _handle_http(self, scope: Scope, receive: Receive, send: Send) -> None:
        start = time.monotonic()
        headers = _decode_headers(scope)
        request_id = headers.get("x-request-id") or generate_id("req")
        method = str(scope.get("method", "GET")).upper()

        if method == "OPTIONS":
            reply: Reply = JsonReply(status=204)
        else:
            received = await self._read_body(receive)
            if received is None:
                logger.debug("client disconnected before sending a body")
                return
            raw_body, size = received
            reply = self._dispatch(scope, headers, raw_body, size)

        base_headers = [(b"x-request-id", request_id.encode("utf-8"))] + _CORS_HEADERS
        if method == "OPTIONS":
            base_headers += [
                (b"access-control-allow-methods", b"GET, POST, OPTIONS"),
                (b"access-control-allow-headers", b"*"),
            ]

        if isinstance(reply, StreamReply):
            await self._send_stream(reply, base_headers, receive, send)
        else:
            await self._send_json(reply, base_headers, send)

        self._log(scope, reply, start)

    async def _send_json(self, reply: Reply, base_headers: list[tuple[bytes, bytes]], send: Send) -> None:
        if reply.delay_ms > 0:
            await self._sleep(reply.delay_ms / 1000.0)

        body = getattr(reply, "body", None)
        data = b"" if reply.status == 204 else dumps({} if body is None else body).encode("utf-8")
        headers = list(base_headers)
        extra = {str(k).lower(): str(v) for k, v in reply.headers.items() if str(k).lower() not in _HOP_BY_HOP}
        extra.setdefault("content-type", "application/json; charset=utf-8")
        headers += [(k.encode("latin-1"), v.encode("latin-1", "replace")) for k, v in extra.items()]
        headers.append((b"content-length", str(len(data)).encode("ascii")))

        await send({"type": "http.response.start", "status": reply.status, "headers": headers})
        await send({"type": "http.response.body", "body": data})

    async def _send_stream(
        self,
        reply: StreamReply,
        base_headers: list[tuple[bytes, bytes]],
        receive: Receive,
        send: Send,
    ) -> None:
        headers = list(base_headers) + [
            (b"content-type", reply.media_type.encode("latin-1")),
            (b"cache-control", b"no-cache"),
            (b"connection", b"keep-alive"),
        ]
        sink = AsgiSink(receive, send)
        await sink.open(200, headers)
        try:
            written = await emit(reply.events, reply.delay_ms, reply.stream_format, sink, sleep=self._sleep)
            logger.debug("streamed %d of %d events", written, len(reply.events))
        finally:
            await sink.close()

    @staticmethod
    def _log(scope: Scope, reply: Reply, start: float) -> None:
        duration_ms = int((time.monotonic() - start) * 1000)
        path = scope.get("path", "")
        qs = (scope.get("query_string") or b"").decode("latin-1")
        if qs:
            path = f"{path}?{qs}"
        status = 200 if isinstance(reply, StreamReply) else reply.status
        logger.info(
            '%s %s %d %dms input="%s" behavior="%s"',
            str(scope.get("method", "GET")).upper(),
            path,
            status,
            duration_ms,
            reply.input_summary or "-",
            reply.behavior or "-",
        )
