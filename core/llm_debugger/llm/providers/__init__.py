"""Per-provider translators and error envelopes."""

from __future__ import annotations

from typing import Any, Callable, Dict

from llm_debugger.llm.exceptions import ConfigError
from llm_debugger.llm.providers import anthropic, gemini, openai

ErrorBuilder = Callable[..., Dict[str, Any]]

_ERROR_BUILDERS: Dict[str, ErrorBuilder] = {
    "openai": openai.error_envelope,
    "anthropic": anthropic.error_envelope,
    "gemini": gemini.error_envelope,
}


def build_error(
    provider: str,
    status: int,
    message: str,
    param: str | None = None,
    code: str | None = None,
) -> dict[str, Any]:
    """
    Build the error body a provider's SDK expects.

    Args:
        provider: "openai", "anthropic" or "gemini".
        status: HTTP status of the error response.
        message: Human-readable error message.
        param: Offending request parameter (OpenAI only).
        code: Machine-readable error code (OpenAI only).

    Returns:
        JSON-ready error body.

    Raises:
        ConfigError: If provider is unknown.
    """
    builder = _ERROR_BUILDERS.get(provider)
    if not builder:
        raise ConfigError(f"Unknown provider: {provider}")
    return builder(status, message, param, code)


__all__ = ["anthropic", "build_error", "gemini", "openai"]
