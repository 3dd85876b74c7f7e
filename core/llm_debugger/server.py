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
LLM Debugger server entry point.

Serves the ASGI application with uvicorn.

Run:
  python3 -m llm_debugger.server
  python3 -m llm_debugger.server --config config.yaml --port 3000
"""

from __future__ import annotations

import logging

import uvicorn

from llm_debugger.config import ServerConfig
from llm_debugger.core import create_app

logger = logging.getLogger(__name__)


def run(config: ServerConfig, host: str | None = None, port: int | None = None, log_level: str = "info") -> None:
    """Run the debugger server until interrupted.

    Args:
        config: Server configuration.
        host: Interface override (defaults to ``config.host``).
        port: Port override (defaults to ``config.port``).
        log_level: uvicorn log level.
    """
    bind_host = host or config.host
    bind_port = port or config.port
    logger.info("LLM debugger server listening on http://%s:%d", bind_host, bind_port)
    uvicorn.run(
        create_app(config),
        host=bind_host,
        port=bind_port,
        log_level=log_level.lower(),
        access_log=False,
    )


if __name__ == "__main__":
    import sys

    from llm_debugger.cli import main

    raise SystemExit(main(["serve", *sys.argv[1:]]))
