from llm_debugger.llm.directives import UsageOverrides
from llm_debugger.llm.usage import compute_usage


def test_usage_counts_chars_by_default():
    usage = compute_usage("hello", None, "abc")
    assert usage.input == 3
    assert usage.output == 5
    assert usage.reasoning is None
    assert usage.cache_read is None
    assert usage.cache_creation is None


def test_reasoning_counts_toward_output_and_reasoning_tokens():
    usage = compute_usage("answer", "think", "q")
    assert usage.output == len("answer") + len("think")
    assert usage.reasoning == len("think")


def test_words_strategy():
    usage = compute_usage("one two three", "a b", "  hello   world ", strategy="words")
    assert usage.input == 2
    assert usage.output == 5
    assert usage.reasoning == 2


def test_overrides_replace_computed_counts():
    usage = compute_usage(
        "hello",
        "thinking",
        "input text",
        UsageOverrides(input=1, output=2, reasoning=3, cache_read=4, cache_creation=5),
    )
    assert (usage.input, usage.output, usage.reasoning, usage.cache_read, usage.cache_creation) == (1, 2, 3, 4, 5)


def test_zero_override_is_kept():
    usage = compute_usage("hello", None, "input", UsageOverrides(input=0, cache_read=0))
    assert usage.input == 0
    assert usage.cache_read == 0
    assert usage.cache_creation is None


def test_empty_text_counts_zero():
    usage = compute_usage("", "", "")
    assert usage.input == 0
    assert usage.output == 0
    assert usage.reasoning is None
