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

"""API key gate for the debugger server.

Provider SDKs always send a credential: OpenAI and Gemini-compat clients use
``Authorization: Bearer <key>``, Anthropic clients use ``x-api-key`` and the
Gemini SDK ``x-goog-api-key``. When the gate is enabled a request must carry
one of them; the value itself is never checked.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

_CREDENTIAL_HEADERS = ("authorization", "x-api-key", "x-goog-api-key")


class AuthError(ValueError):
    """Raised when a request carries no credential."""


@dataclass(frozen=True)
class ApiKeyGate:
    """Presence check for API credentials.

    Attributes:
        enabled: Whether requests must carry a credential.
    """

    enabled: bool = False

    def verify(self, headers: Mapping[str, str]) -> str:
        """Check the request headers.

        Args:
            headers: Request headers with lower-case names.

        Returns:
            Name of the header that carried the credential, or "auth-disabled".

        Raises:
            AuthError: If the gate is enabled and no credential header is set.
        """
        if not self.enabled:
            return "auth-disabled"

        for name in _CREDENTIAL_HEADERS:
            if (headers.get(name) or "").strip():
                return name
        raise AuthError("Missing API key")
