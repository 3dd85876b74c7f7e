from llm_debugger.llm.directives import (
    EchoDirective,
    ErrorDirective,
    FileDirective,
    InvalidDirective,
    MessageDirective,
    normalize_directive,
)


def test_bare_string_is_message():
    directive = normalize_directive("Hi there!")
    assert isinstance(directive, MessageDirective)
    assert directive.content == "Hi there!"


def test_scalars_and_none_become_message_text():
    assert normalize_directive(42).content == "42"
    assert normalize_directive(True).content == "true"
    assert normalize_directive(None).content == ""


def test_untyped_object_is_message():
    directive = normalize_directive({"content": "Hi", "reasoning": "because"})
    assert isinstance(directive, MessageDirective)
    assert directive.reasoning == "because"


def test_tool_calls_accept_args_alias():
    directive = normalize_directive({"type": "message", "tool_calls": [{"name": "lookup", "args": {"q": 1}}]})
    assert directive.tool_calls[0].name == "lookup"
    assert directive.tool_calls[0].arguments == {"q": 1}
    assert directive.tool_calls[0].id is None


def test_echo_file_and_error():
    assert isinstance(normalize_directive({"type": "echo"}), EchoDirective)
    assert normalize_directive({"type": "file", "path": "f.yaml"}) == FileDirective(type="file", path="f.yaml")

    error = normalize_directive({"type": "error"})
    assert isinstance(error, ErrorDirective)
    assert (error.status, error.message) == (500, "Error")

    error = normalize_directive({"type": "error", "status": 429, "message": "slow down"})
    assert (error.status, error.message) == (429, "slow down")


def test_usage_overrides_are_parsed():
    directive = normalize_directive({"content": "x", "usage": {"input": 3, "cache_read": 1}})
    assert directive.usage.input == 3
    assert directive.usage.cache_read == 1
    assert directive.usage.output is None


def test_malformed_directives_become_invalid():
    assert isinstance(normalize_directive(["a", "b"]), InvalidDirective)
    assert isinstance(normalize_directive({"type": "teleport"}), InvalidDirective)
    assert isinstance(normalize_directive({"type": "file"}), InvalidDirective)
    assert isinstance(normalize_directive({"type": "error", "status": 42}), InvalidDirective)

    invalid = normalize_directive({"type": "message", "usage": {"input": -1}})
    assert isinstance(invalid, InvalidDirective)
    assert "usage" in invalid.reason
