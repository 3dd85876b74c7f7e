import pytest

from llm_debugger.llm.behavior import (
    THINKER_CONTENT,
    THINKER_REASONING,
    WEIRDO_CONTENT,
    WEIRDO_OUTPUT_TOKENS,
    ResolveContext,
    RobotScript,
    compile_script_pattern,
    match_robot_script,
    resolve_response,
    resolve_tool_name,
)
from llm_debugger.llm.exceptions import DirectiveError, FixtureError, ScriptError
from llm_debugger.llm.registry import normalize_models


def _ctx(models=None, model="m", text="hello", **kwargs):
    kwargs.setdefault("input_text", text)
    return ResolveContext(registry=normalize_models(models or {}), model_name=model, last_user_message=text, **kwargs)


def test_default_behavior_echoes_last_user_message():
    result = resolve_response(_ctx(text="repeat me"))
    assert result.mode == "canonical"
    assert result.behavior == "Echo"
    assert result.response.content == "repeat me"
    assert result.response.tool_calls is None


def test_echo_falls_back_to_all_text():
    result = resolve_response(_ctx(text="", input_text="system text"))
    assert result.response.content == "system text"


def test_weirdo_and_thinker_builtins():
    weirdo = resolve_response(_ctx(model="weirdo"))
    assert weirdo.response.content == WEIRDO_CONTENT
    assert weirdo.response.usage.output == WEIRDO_OUTPUT_TOKENS

    thinker = resolve_response(_ctx(model="Thinker"))
    assert thinker.response.content == THINKER_CONTENT
    assert thinker.response.reasoning == THINKER_REASONING
    assert thinker.response.usage.reasoning == len(THINKER_REASONING)


def test_x_behavior_header_beats_triggers():
    ctx = _ctx({"m": [{"hello": "configured"}]}, headers={"x-behavior": "thinker"})
    result = resolve_response(ctx)
    assert result.behavior == "thinker"
    assert result.response.content == THINKER_CONTENT


def test_trigger_match_is_labelled_with_model():
    result = resolve_response(_ctx({"base": [{"hello": "from base"}], "m": [{"_inherit": "base"}]}))
    assert result.behavior == "config:base"
    assert result.response.content == "from base"


def test_message_directive_with_usage_and_tool_calls():
    models = {
        "m": [
            {
                "hello": {
                    "content": "calling",
                    "reasoning": "need data",
                    "tool_calls": [{"id": "call_1", "name": "lookup", "args": {"q": 1}}, {"name": "other"}],
                    "usage": {"input": 10, "cache_read": 4},
                }
            }
        ]
    }
    response = resolve_response(_ctx(models)).response
    assert response.reasoning == "need data"
    assert response.usage.input == 10
    assert response.usage.cache_read == 4
    assert response.usage.output == len("calling") + len("need data")
    assert response.tool_calls[0].id == "call_1"
    assert response.tool_calls[0].arguments == {"q": 1}
    assert response.tool_calls[1].id.startswith("tool_")
    assert response.tool_calls[1].arguments == {}


def test_echo_directive_keeps_usage_overrides():
    result = resolve_response(_ctx({"m": [{"hello": {"type": "echo", "usage": {"output": 1}}}]}))
    assert result.response.content == "hello"
    assert result.response.usage.output == 1


def test_error_directive():
    result = resolve_response(_ctx({"m": [{"hello": {"type": "error", "status": 429, "message": "slow"}}]}))
    assert result.mode == "error"
    assert result.error.status == 429
    assert result.error.message == "slow"


def test_invalid_directive_raises():
    with pytest.raises(DirectiveError):
        resolve_response(_ctx({"m": [{"hello": {"type": "error", "status": 42}}]}))


def test_file_directive_loads_fixture(tmp_path):
    (tmp_path / "rec.yaml").write_text("response:\n  body: {id: x}\n", encoding="utf-8")
    result = resolve_response(_ctx({"m": [{"hello": {"type": "file", "path": "rec.yaml"}}]}, config_dir=tmp_path))
    assert result.mode == "file"
    assert result.file == {"response": {"body": {"id": "x"}}}


def test_file_directive_missing_fixture(tmp_path):
    with pytest.raises(FixtureError):
        resolve_response(_ctx({"m": [{"hello": {"type": "file", "path": "nope.yaml"}}]}, config_dir=tmp_path))


def test_unknown_default_behavior_echoes():
    result = resolve_response(_ctx(default_behavior="mystery", text="abc"))
    assert result.behavior == "mystery"
    assert result.response.content == "abc"


@pytest.mark.parametrize(
    "pattern, text, matched",
    [
        ("/hel+o/", "well hello there", True),
        ("/HELLO/i", "hello", True),
        ("/HELLO/", "hello", False),
        ("/^b$/m", "a\nb", True),
        ("/a.b/s", "a\nb", True),
        ("/x/gu", "x", True),
    ],
)
def test_compile_script_pattern(pattern, text, matched):
    regex = compile_script_pattern(pattern)
    assert regex is not None
    assert (regex.search(text) is not None) is matched


@pytest.mark.parametrize("pattern", ["plain", "/", "/abc/q", "/(/"])
def test_compile_script_pattern_rejects(pattern):
    assert compile_script_pattern(pattern) is None


def test_robot_script_matching():
    script = RobotScript.model_validate(
        {
            "rules": [
                {"match": 42, "response": "never"},
                {"match": "/weather/i", "response": "Sunny"},
                {"match": "exact text", "response": {"k": "v"}},
                {"match": "no response"},
                "not a rule",
            ],
            "fallback": "beep",
        }
    )
    assert match_robot_script(script, "What's the WEATHER?") == "Sunny"
    assert match_robot_script(script, "exact text") == '{"k":"v"}'
    assert match_robot_script(script, "no response") == "beep"
    assert match_robot_script(script, "42") == "beep"
    assert match_robot_script(script, "other") == "beep"


def test_robot_script_without_rules():
    assert match_robot_script(None, "input") == "input"
    assert match_robot_script(RobotScript(fallback="fb"), "input") == "fb"
    assert match_robot_script(RobotScript(rules=[]), "input") == ""


def test_robot_model_with_script_file(tmp_path):
    (tmp_path / "robot.yaml").write_text(
        "rules:\n  - match: /ping/\n    response: pong\nfallback: beep\n", encoding="utf-8"
    )
    models = {"Robot": {"behavior": "robot", "script": "robot.yaml"}}

    result = resolve_response(_ctx(models, model="Robot", text="ping!", config_dir=tmp_path))
    assert result.behavior == "robot"
    assert result.response.content == "pong"

    result = resolve_response(_ctx(models, model="Robot", text="other", config_dir=tmp_path))
    assert result.response.content == "beep"


def test_robot_builtin_uses_robot_model_rules():
    models = {"Robot": {"rules": [{"match": "hi", "response": "hello human"}]}}
    result = resolve_response(_ctx(models, model="robot", text="hi", headers={"x-behavior": "robot"}))
    assert result.response.content == "hello human"


def test_robot_inline_rules_with_fallback():
    models = {"bot": {"behavior": "robot", "rules": [{"match": "a", "response": "b"}], "fallback": "?"}}
    assert resolve_response(_ctx(models, model="bot", text="a")).response.content == "b"
    assert resolve_response(_ctx(models, model="bot", text="z")).response.content == "?"


def test_robot_missing_script_raises(tmp_path):
    models = {"Robot": {"behavior": "robot", "script": "missing.yaml"}}
    with pytest.raises(ScriptError):
        resolve_response(_ctx(models, model="Robot", config_dir=tmp_path))


def test_robot_without_script_echoes():
    result = resolve_response(_ctx(model="robot", text="as is"))
    assert result.response.content == "as is"


@pytest.mark.parametrize(
    "body, expected",
    [
        ({}, None),
        ({"tools": [{"type": "function", "function": {"name": "a"}}]}, "a"),
        ({"tools": [{"name": "anthropic_tool", "input_schema": {}}]}, "anthropic_tool"),
        ({"tools": [{"functionDeclarations": [{"name": "g"}]}]}, "g"),
        ({"tools": [{"function": {"name": "a"}}], "tool_choice": "none"}, None),
        ({"tools": [{"function": {"name": "a"}}], "tool_choice": "auto"}, "a"),
        ({"tools": [{"function": {"name": "a"}}], "tool_choice": {"type": "function", "function": {"name": "b"}}}, "b"),
        ({"tools": [{"name": "a"}], "tool_choice": {"type": "tool", "name": "c"}}, "c"),
        ({"tools": [{"name": "a"}], "tool_choice": {"type": "none"}}, None),
        ({"tools": [{"functionDeclarations": [{"name": "g"}]}], "toolConfig": {"functionCallingConfig": {"mode": "NONE"}}}, None),
        ({"functions": [{"name": "legacy"}]}, "legacy"),
        ({"functions": [{"name": "legacy"}], "function_call": "none"}, None),
        ({"functions": [{"name": "legacy"}], "function_call": {"name": "forced"}}, "forced"),
    ],
)
def test_resolve_tool_name(body, expected):
    assert resolve_tool_name(body) == expected


def test_tool_call_is_synthesized_from_request():
    body = {"tools": [{"type": "function", "function": {"name": "lookup"}}]}
    response = resolve_response(_ctx(text="find it", request_body=body)).response
    assert len(response.tool_calls) == 1
    assert response.tool_calls[0].name == "lookup"
    assert response.tool_calls[0].arguments == {"input": "find it"}
    assert response.tool_calls[0].id.startswith("tool_")


def test_tool_arguments_from_header():
    body = {"tools": [{"name": "lookup"}]}
    ctx = _ctx(request_body=body, headers={"x-tool-result": '{"city": "Oslo"}'})
    assert resolve_response(ctx).response.tool_calls[0].arguments == {"city": "Oslo"}

    ctx = _ctx(request_body=body, headers={"x-tool-result": "not json"})
    assert resolve_response(ctx).response.tool_calls[0].arguments == {"input": "hello"}


def test_configured_tool_calls_win_over_request_tools():
    models = {"m": [{"hello": {"tool_calls": [{"name": "configured"}]}}]}
    body = {"tools": [{"name": "offered"}]}
    response = resolve_response(_ctx(models, request_body=body)).response
    assert [call.name for call in response.tool_calls] == ["configured"]
