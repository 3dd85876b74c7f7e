"""Canonical usage calculation."""

from __future__ import annotations

from llm_debugger.llm.directives import UsageOverrides
from llm_debugger.llm.tokens import DEFAULT_TOKEN_COUNTING, combine_tokens, count_tokens
from llm_debugger.llm.types import Usage


def compute_usage(
    content: str,
    reasoning: str | None,
    input_text: str,
    overrides: UsageOverrides | None = None,
    strategy: str = DEFAULT_TOKEN_COUNTING,
) -> Usage:
    """Derive the usage record for one response.

    Optional fields are only present when an override sets them, except
    ``reasoning``, which is also derived from non-empty reasoning text. Cache
    counters are never synthesized.

    Args:
        content: Assistant text.
        reasoning: Reasoning summary, if any.
        input_text: Full extracted request text.
        overrides: Configured token counts that replace computed ones.
        strategy: Token counting strategy.

    Returns:
        The usage record.
    """
    ov = overrides or UsageOverrides()

    input_tokens = ov.input if ov.input is not None else combine_tokens(input_text, strategy)
    output_tokens = ov.output if ov.output is not None else combine_tokens([content, reasoning], strategy)

    reasoning_tokens: int | None = None
    if ov.reasoning is not None:
        reasoning_tokens = ov.reasoning
    elif reasoning:
        reasoning_tokens = count_tokens(reasoning, strategy)

    return Usage(
        input=input_tokens,
        output=output_tokens,
        reasoning=reasoning_tokens,
        cache_read=ov.cache_read,
        cache_creation=ov.cache_creation,
    )
