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

"""Core application wiring.

This module builds the routing table and the ASGI application for a given
configuration. ``create_default_app`` loads the configuration from the config
file and environment and is the uvicorn factory target.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

from llm_debugger.config import ServerConfig, build_server_config
from llm_debugger.entrypoints.http import HttpApp, Route
from llm_debugger.handlers import anthropic, gemini, meta, openai

OPENAI_PREFIX = "/v1"
GEMINI_OPENAI_COMPAT_PREFIX = "/v1beta/openai"


def _openai_routes(prefix: str) -> list[Route]:
    return [
        Route("GET", f"{prefix}/models", meta.list_models),
        Route("GET", f"{prefix}/models/{{model}}", meta.get_model),
        Route("POST", f"{prefix}/chat/completions", openai.chat_completions),
        Route("POST", f"{prefix}/completions", openai.completions),
        Route("POST", f"{prefix}/embeddings", openai.embeddings),
        Route("POST", f"{prefix}/responses", openai.responses),
        Route("POST", f"{prefix}/moderations", openai.moderations),
        Route("POST", f"{prefix}/images/generations", openai.image_generations),
    ]


def build_routes(config: ServerConfig) -> list[Route]:
    """Build the routing table.

    Args:
        config: Server configuration (decides whether the Gemini OpenAI-compat
            routes are served).

    Returns:
        Routes in match order.
    """
    routes = [
        Route("GET", "/", meta.root),
        Route("GET", "/health", meta.health),
    ]
    routes += _openai_routes(OPENAI_PREFIX)
    if config.enable_gemini_openai_compat:
        routes += _openai_routes(GEMINI_OPENAI_COMPAT_PREFIX)
    routes += [
        Route("POST", "/v1/messages", anthropic.messages, provider="anthropic"),
        Route("POST", "/v1/messages/count_tokens", anthropic.count_message_tokens, provider="anthropic"),
        Route("GET", "/v1beta/models", meta.list_gemini_models, provider="gemini"),
        Route("GET", "/v1beta/models/{model}", meta.get_gemini_model, provider="gemini"),
        Route("POST", "/v1beta/models/{model_action}", gemini.model_action, provider="gemini"),
    ]
    return routes


def create_app(config: ServerConfig, sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep) -> HttpApp:
    """Create the ASGI application for ``config``.

    Args:
        config: Server configuration.
        sleep: Sleep primitive used for simulated latency.

    Returns:
        ASGI application.
    """
    return HttpApp(config, build_routes(config), sleep=sleep)


def create_default_app() -> HttpApp:
    """Create the application from the config file and environment."""
    return create_app(build_server_config())
