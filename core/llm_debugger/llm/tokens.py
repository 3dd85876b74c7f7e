"""Deterministic token counting and id helpers.

Token counts are a text-length heuristic, not a real tokenizer:

  - ``chars``: length of the string (default)
  - ``words``: number of whitespace-delimited tokens in the trimmed string
"""

from __future__ import annotations

import time
import uuid
from collections.abc import Iterable
from typing import Any

from llm_debugger.llm.types import TokenCounting

DEFAULT_TOKEN_COUNTING: TokenCounting = "chars"


def normalize_token_counting(value: Any) -> TokenCounting:
    """Map a configured strategy name onto a supported strategy.

    Args:
        value: Raw config value (e.g. "words", "Word", None).

    Returns:
        "words" for word-like names, otherwise "chars".
    """
    if not value:
        return DEFAULT_TOKEN_COUNTING
    normalized = str(value).strip().lower()
    if normalized in ("words", "word"):
        return "words"
    return "chars"


def count_tokens(text: Any, strategy: str = DEFAULT_TOKEN_COUNTING) -> int:
    """Count tokens in ``text`` under ``strategy``.

    Args:
        text: Input text; falsy values count as zero.
        strategy: "chars" or "words".

    Returns:
        Non-negative token count.
    """
    if not text:
        return 0
    value = str(text)
    if strategy == "words":
        return len(value.split())
    return len(value)


def combine_tokens(values: str | Iterable[Any] | None, strategy: str = DEFAULT_TOKEN_COUNTING) -> int:
    """Sum token counts over a single string or a sequence of strings."""
    if not values:
        return 0
    if isinstance(values, str):
        return count_tokens(values, strategy)
    return sum(count_tokens(value, strategy) for value in values)


def generate_id(prefix: str = "id") -> str:
    """Return an opaque id such as ``chatcmpl_<uuid4>``."""
    return f"{prefix}_{uuid.uuid4()}"


def now_seconds() -> int:
    """Return the current unix time in whole seconds."""
    return int(time.time())
