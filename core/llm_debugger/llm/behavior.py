"""Behavior resolution.

Decides what a request gets back. The decision order is, first match wins:

  1) an ``x-behavior`` header forces a built-in behavior
  2) a trigger (or inherited default) of the requested model
  3) a configured behavior model
  4) a model named after a built-in behavior (echo, robot, weirdo, thinker)
  5) the server's default behavior

Built-in behaviors produce canonical responses; trigger directives may also ask
for a recorded fixture or an error. When the request offers tools and nothing
configured a tool call, one call to the first eligible tool is synthesized.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from llm_debugger.llm.config_loader import read_document, resolve_path
from llm_debugger.llm.directives import (
    EchoDirective,
    ErrorDirective,
    FileDirective,
    InvalidDirective,
    MessageDirective,
    NormalizedDirective,
    UsageOverrides,
)
from llm_debugger.llm.exceptions import DirectiveError, ScriptError
from llm_debugger.llm.fixtures import load_fixture
from llm_debugger.llm.registry import resolve_trigger_response
from llm_debugger.llm.streaming import dumps
from llm_debugger.llm.tokens import DEFAULT_TOKEN_COUNTING, generate_id
from llm_debugger.llm.types import (
    BehaviorModel,
    CanonicalResponse,
    ErrorInfo,
    ModelRegistry,
    ResolutionResult,
    ToolCall,
)
from llm_debugger.llm.usage import compute_usage

logger = logging.getLogger(__name__)

BUILTIN_BEHAVIORS = ("echo", "robot", "weirdo", "thinker")

WEIRDO_CONTENT = "asdkjhasd kajshd aksjdh asdkjhasd kajshd aksjdh"
WEIRDO_OUTPUT_TOKENS = 999999
THINKER_CONTENT = "Here is my thoughtful response."
THINKER_REASONING = "Thinking through the problem in a concise summary."

ROBOT_MODEL = "Robot"

_REGEX_FLAGS = {"i": re.IGNORECASE, "m": re.MULTILINE, "s": re.DOTALL, "g": 0, "y": 0, "u": 0}
_AUTO_TOOL_CHOICES = ("auto", "required", "any")


@dataclass(frozen=True)
class ResolveContext:  # pylint: disable=too-many-instance-attributes
    """Everything the resolver needs to know about one request.

    Attributes:
        registry: Normalized models.
        model_name: Requested model, already mapped to its configured spelling.
        input_text: All extracted request text.
        last_user_message: Text of the last non-empty user message.
        request_body: Parsed JSON body.
        headers: Request headers with lower-case names.
        default_behavior: Server default behavior name.
        token_counting: Token counting strategy.
        config_dir: Directory fixtures and scripts are resolved against.
    """

    registry: ModelRegistry
    model_name: str
    input_text: str = ""
    last_user_message: str = ""
    request_body: Mapping[str, Any] = field(default_factory=dict)
    headers: Mapping[str, str] = field(default_factory=dict)
    default_behavior: str = "Echo"
    token_counting: str = DEFAULT_TOKEN_COUNTING
    config_dir: Optional[Path] = None

    @property
    def user_text(self) -> str:
        """Last user message, else all text."""
        return self.last_user_message or self.input_text or ""


class RobotRule(BaseModel):
    """One rule of a robot script."""

    model_config = ConfigDict(extra="ignore")

    match: Any = None
    response: Optional[str] = None

    @field_validator("response", mode="before")
    @classmethod
    def _response_text(cls, value: Any) -> Any:
        if value is None or isinstance(value, str):
            return value
        if isinstance(value, (Mapping, list)):
            return dumps(value)
        return str(value)


class RobotScript(BaseModel):
    """A robot script: ordered rules plus an optional fallback."""

    model_config = ConfigDict(extra="ignore")

    rules: Optional[list[RobotRule]] = None
    fallback: Optional[str] = None

    @field_validator("rules", mode="before")
    @classmethod
    def _only_rule_objects(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return None
        return [item for item in value if isinstance(item, Mapping)]

    @field_validator("fallback", mode="before")
    @classmethod
    def _fallback_text(cls, value: Any) -> Any:
        if value is None or value == "":
            return None
        return str(value)


def compile_script_pattern(pattern: str) -> re.Pattern[str] | None:
    """Compile a ``/body/flags`` pattern.

    Args:
        pattern: Candidate pattern string.

    Returns:
        Compiled regex, or None if ``pattern`` is not in slash form or is invalid.
    """
    if not pattern.startswith("/"):
        return None
    end = pattern.rfind("/")
    if end <= 0:
        return None
    body, flag_text = pattern[1:end], pattern[end + 1:]
    flags = 0
    for char in flag_text:
        if char not in _REGEX_FLAGS:
            return None
        flags |= _REGEX_FLAGS[char]
    try:
        return re.compile(body, flags)
    except re.error:
        logger.debug("ignoring malformed robot pattern %r", pattern)
        return None


def match_robot_script(script: RobotScript | None, user_input: str) -> str:
    """Run a robot script against the user's text.

    Args:
        script: Parsed script, or None.
        user_input: Text to match.

    Returns:
        The first matching rule's response (else the fallback, else ""). Without
        rules the fallback is returned, or the input itself.
    """
    if script is None or script.rules is None:
        fallback = script.fallback if script is not None else None
        return fallback or user_input or ""

    for rule in script.rules:
        if not isinstance(rule.match, str) or not rule.match:
            continue
        regex = compile_script_pattern(rule.match)
        matched = regex.search(user_input) is not None if regex is not None else False
        if matched or rule.match == user_input:
            if rule.response is not None:
                return rule.response
            return script.fallback or ""

    return script.fallback or ""


def _parse_script(raw: Any, source: str) -> RobotScript:
    if raw is None:
        return RobotScript()
    if not isinstance(raw, Mapping):
        raise ScriptError(f"Robot script {source} must be a mapping")
    try:
        return RobotScript.model_validate(raw)
    except ValidationError as exc:
        raise ScriptError(f"Invalid robot script {source}: {exc}") from exc


def load_robot_script(path: str, base_dir: Path | str | None) -> RobotScript:
    """Read a robot script file.

    Args:
        path: Script path from the config.
        base_dir: Config directory.

    Returns:
        Parsed script.

    Raises:
        ScriptError: If the file cannot be read or parsed.
    """
    resolved = resolve_path(base_dir, path)
    if resolved is None:
        raise ScriptError("Invalid robot script path.")
    try:
        raw = read_document(resolved)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        raise ScriptError(f"Cannot load robot script {resolved}: {exc}") from exc
    return _parse_script(raw, str(resolved))


def _robot_script(ctx: ResolveContext, entry: BehaviorModel | None) -> RobotScript | None:
    """Find the script for a robot behavior: inline rules, own file, then the Robot model."""
    if entry is not None and entry.rules:
        return _parse_script({"rules": entry.rules, "fallback": entry.fallback}, "rules")

    script_path = entry.script if entry is not None else None
    if not script_path:
        robot = ctx.registry.behavior_models.get(ROBOT_MODEL)
        if robot is not None and robot is not entry:
            if robot.rules:
                return _parse_script({"rules": robot.rules, "fallback": robot.fallback}, "rules")
            script_path = robot.script
    if not script_path:
        return None
    return load_robot_script(script_path, ctx.config_dir)


def resolve_tool_name(body: Mapping[str, Any]) -> str | None:
    """Pick the tool a synthesized call should target.

    Args:
        body: Parsed request body (any provider).

    Returns:
        Tool name, or None when the request offers no tools or disables them.
    """
    tool_choice = body.get("tool_choice") or body.get("toolChoice")
    if tool_choice is None:
        tool_choice = body.get("function_call")

    if isinstance(tool_choice, str):
        if tool_choice == "none":
            return None
        if tool_choice and tool_choice not in _AUTO_TOOL_CHOICES:
            return tool_choice
    elif isinstance(tool_choice, Mapping):
        if tool_choice.get("type") == "none":
            return None
        function = tool_choice.get("function")
        if isinstance(function, Mapping) and function.get("name"):
            return str(function["name"])
        if tool_choice.get("type") == "tool" and tool_choice.get("name"):
            return str(tool_choice["name"])
        if tool_choice.get("name") and not tool_choice.get("type"):
            return str(tool_choice["name"])

    tool_config = body.get("toolConfig") or body.get("tool_config")
    if isinstance(tool_config, Mapping):
        calling = tool_config.get("functionCallingConfig") or tool_config.get("function_calling_config")
        if isinstance(calling, Mapping) and str(calling.get("mode", "")).upper() == "NONE":
            return None

    tools = body.get("tools") or body.get("functions")
    if not isinstance(tools, list) or not tools or not isinstance(tools[0], Mapping):
        return None
    first = tools[0]
    function = first.get("function")
    if isinstance(function, Mapping) and function.get("name"):
        return str(function["name"])
    if first.get("name"):
        return str(first["name"])
    declarations = first.get("functionDeclarations") or first.get("function_declarations")
    if isinstance(declarations, list) and declarations and isinstance(declarations[0], Mapping):
        name = declarations[0].get("name")
        if name:
            return str(name)
    return None


def _forced_arguments(headers: Mapping[str, str]) -> Any:
    raw = headers.get("x-tool-result")
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        logger.debug("ignoring x-tool-result header that is not JSON")
        return None


def build_tool_calls_from_request(ctx: ResolveContext) -> tuple[ToolCall, ...]:
    """Synthesize the tool call implied by the request, if any."""
    name = resolve_tool_name(ctx.request_body)
    if not name:
        return ()
    arguments = _forced_arguments(ctx.headers)
    if arguments is None:
        arguments = {"input": ctx.user_text}
    return (ToolCall(id=generate_id("tool"), name=name, arguments=arguments),)


def _canonical(
    ctx: ResolveContext,
    content: str,
    reasoning: str | None = None,
    tool_calls: tuple[ToolCall, ...] | None = None,
    overrides: UsageOverrides | None = None,
) -> CanonicalResponse:
    if not tool_calls:
        tool_calls = build_tool_calls_from_request(ctx) or None
    return CanonicalResponse(
        content=content,
        reasoning=reasoning,
        tool_calls=tool_calls,
        usage=compute_usage(content, reasoning, ctx.input_text, overrides, ctx.token_counting),
    )


def run_behavior(ctx: ResolveContext, behavior: str | None, entry: BehaviorModel | None = None) -> ResolutionResult:
    """Run a built-in behavior.

    Args:
        ctx: Request context.
        behavior: Behavior name (case-insensitive); blank means the server default.
        entry: Behavior model that selected it, if any.

    Returns:
        A canonical resolution labelled with the behavior name.

    Raises:
        ScriptError: If a robot script cannot be loaded.
    """
    label = (behavior or ctx.default_behavior or "Echo").strip()
    key = label.lower()

    if key == "robot":
        content = match_robot_script(_robot_script(ctx, entry), ctx.user_text)
        response = _canonical(ctx, content)
    elif key == "weirdo":
        response = _canonical(ctx, WEIRDO_CONTENT, overrides=UsageOverrides(output=WEIRDO_OUTPUT_TOKENS))
    elif key == "thinker":
        response = _canonical(ctx, THINKER_CONTENT, reasoning=THINKER_REASONING)
    else:
        response = _canonical(ctx, ctx.user_text)

    return ResolutionResult(mode="canonical", behavior=label, response=response)


def _configured_tool_calls(directive: MessageDirective) -> tuple[ToolCall, ...] | None:
    if not directive.tool_calls:
        return None
    return tuple(
        ToolCall(
            id=spec.id or generate_id("tool"),
            name=spec.name,
            arguments={} if spec.arguments is None else spec.arguments,
        )
        for spec in directive.tool_calls
    )


def run_directive(ctx: ResolveContext, directive: NormalizedDirective, label: str) -> ResolutionResult:
    """Turn a trigger directive into a resolution.

    Args:
        ctx: Request context.
        directive: Normalized directive.
        label: Behavior label for logging.

    Returns:
        The resolution.

    Raises:
        DirectiveError: If the directive was invalid in the config.
        FixtureError: If a fixture cannot be loaded.
    """
    if isinstance(directive, InvalidDirective):
        raise DirectiveError(f"Invalid response directive for {label}: {directive.reason}")

    if isinstance(directive, FileDirective):
        fixture = load_fixture(directive.path, ctx.config_dir)
        return ResolutionResult(mode="file", behavior=label, file=fixture)

    if isinstance(directive, ErrorDirective):
        return ResolutionResult(
            mode="error",
            behavior=label,
            error=ErrorInfo(status=directive.status, message=directive.message),
        )

    if isinstance(directive, EchoDirective):
        response = _canonical(ctx, ctx.user_text, overrides=directive.usage)
        return ResolutionResult(mode="canonical", behavior=label, response=response)

    response = _canonical(
        ctx,
        directive.content,
        reasoning=directive.reasoning,
        tool_calls=_configured_tool_calls(directive),
        overrides=directive.usage,
    )
    return ResolutionResult(mode="canonical", behavior=label, response=response)


def resolve_response(ctx: ResolveContext) -> ResolutionResult:
    """Resolve the response for one request.

    Args:
        ctx: Request context.

    Returns:
        A canonical, file or error resolution.

    Raises:
        DirectiveError: If the matched directive is invalid.
        FixtureError: If a fixture cannot be loaded.
        ScriptError: If a robot script cannot be loaded.
    """
    forced = (ctx.headers.get("x-behavior") or "").strip()
    if forced:
        return run_behavior(ctx, forced)

    match = resolve_trigger_response(ctx.model_name, ctx.last_user_message, ctx.registry)
    if match is not None:
        return run_directive(ctx, match.response, f"config:{match.model}")

    entry = ctx.registry.behavior_models.get(ctx.model_name)
    if entry is not None:
        return run_behavior(ctx, entry.behavior or ctx.model_name, entry)

    if ctx.model_name and ctx.model_name.lower() in BUILTIN_BEHAVIORS:
        return run_behavior(ctx, ctx.model_name)

    return run_behavior(ctx, ctx.default_behavior)
