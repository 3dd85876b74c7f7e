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

"""Pytest configuration.

These tests are designed to work both when the debugger is installed (editable
or wheel) and when running directly from a source checkout.

In a clean checkout, the `llm_debugger` package lives under `core/`. Add that
directory to `sys.path` so `pytest` can import it without requiring an
editable install.
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import pytest

_CORE_DIR = str(Path(__file__).resolve().parents[1] / "core")
if _CORE_DIR not in sys.path:
    sys.path.insert(0, _CORE_DIR)


def pytest_configure() -> None:
    """Configure sys.path for local-source test runs."""
    if _CORE_DIR not in sys.path:
        sys.path.insert(0, _CORE_DIR)


class RecordingSleep:
    """Stand-in for asyncio.sleep that records the requested delays."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)

    @property
    def total_ms(self) -> int:
        return round(sum(self.calls) * 1000)


@pytest.fixture
def fake_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def make_app(fake_sleep):
    """Build an app for an in-memory models mapping; delays are recorded, not slept."""
    from llm_debugger.config import ServerConfig
    from llm_debugger.core import create_app

    def _make(models=None, **kwargs):
        return create_app(ServerConfig.for_models(models, **kwargs), sleep=fake_sleep)

    return _make


@pytest.fixture
def call():
    """Send one request to an ASGI app and return the buffered httpx response."""
    import httpx

    def _call(app, method, path, json=None, headers=None, content=None, params=None):
        async def _go():
            transport = httpx.ASGITransport(app=app)
            async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
                return await client.request(method, path, json=json, headers=headers, content=content, params=params)

        return asyncio.run(_go())

    return _call


def parse_sse(text: str) -> list[tuple[str | None, str]]:
    """Split an SSE body into ``(event, data)`` pairs."""
    events = []
    for block in text.split("\n\n"):
        if not block.strip():
            continue
        name = None
        data = None
        for line in block.split("\n"):
            if line.startswith("event: "):
                name = line[len("event: "):]
            elif line.startswith("data: "):
                data = line[len("data: "):]
        events.append((name, data))
    return events


@pytest.fixture
def sse():
    return parse_sse
