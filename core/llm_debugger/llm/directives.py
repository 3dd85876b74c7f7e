"""Response directive schema.

A directive is the value attached to a trigger or ``_default`` entry of a model.
Config files allow several loosely-typed shapes::

    hello: "Hi there!"                       # bare string -> message
    hello: {content: "Hi"}                   # untyped object -> message
    hello: {type: echo}
    hello: {type: message, content: "Hi", reasoning: "...", tool_calls: [...]}
    hello: {type: file, path: fixtures/hello.yaml}
    hello: {type: error, status: 429, message: "slow down"}

:func:`normalize_directive` converts all of them into one discriminated union
once, when the registry is built. A value that cannot be converted becomes an
:class:`InvalidDirective`; it does not stop the server from starting, but any
request that resolves to it fails.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated, Any, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator, model_validator


def _coerce_text(value: Any) -> Any:
    """Render scalar config values as text; leave everything else to validation."""
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return value


class UsageOverrides(BaseModel):
    """Token counts that replace the computed values."""

    model_config = ConfigDict(extra="ignore")

    input: Optional[int] = Field(default=None, ge=0)
    output: Optional[int] = Field(default=None, ge=0)
    reasoning: Optional[int] = Field(default=None, ge=0)
    cache_read: Optional[int] = Field(default=None, ge=0)
    cache_creation: Optional[int] = Field(default=None, ge=0)


class ToolCallSpec(BaseModel):
    """A configured tool call; ``args`` is accepted as an alias of ``arguments``."""

    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    name: str
    arguments: Any = None

    @model_validator(mode="before")
    @classmethod
    def _fold_args(cls, data: Any) -> Any:
        if isinstance(data, Mapping) and data.get("arguments") is None and "args" in data:
            data = dict(data)
            data["arguments"] = data.pop("args")
        return data


class EchoDirective(BaseModel):
    """Answer with the user's own text."""

    model_config = ConfigDict(extra="ignore")

    type: Literal["echo"]
    usage: Optional[UsageOverrides] = None


class MessageDirective(BaseModel):
    """Answer with literal content, reasoning and tool calls."""

    model_config = ConfigDict(extra="ignore")

    type: Literal["message"]
    content: str = ""
    reasoning: Optional[str] = None
    tool_calls: Optional[list[ToolCallSpec]] = None
    usage: Optional[UsageOverrides] = None

    @field_validator("content", mode="before")
    @classmethod
    def _content_text(cls, value: Any) -> Any:
        value = _coerce_text(value)
        return "" if value is None else value

    @field_validator("reasoning", mode="before")
    @classmethod
    def _reasoning_text(cls, value: Any) -> Any:
        return _coerce_text(value)


class FileDirective(BaseModel):
    """Replay a recorded fixture file, relative to the config directory."""

    model_config = ConfigDict(extra="ignore")

    type: Literal["file"]
    path: str = Field(min_length=1)


class ErrorDirective(BaseModel):
    """Fail the request with a provider-shaped error."""

    model_config = ConfigDict(extra="ignore")

    type: Literal["error"]
    status: int = Field(default=500, ge=100, le=599)
    message: str = "Error"

    @field_validator("status", mode="before")
    @classmethod
    def _default_status(cls, value: Any) -> Any:
        return value or 500

    @field_validator("message", mode="before")
    @classmethod
    def _default_message(cls, value: Any) -> Any:
        value = _coerce_text(value)
        return value or "Error"


Directive = Annotated[
    Union[EchoDirective, MessageDirective, FileDirective, ErrorDirective],
    Field(discriminator="type"),
]

_DIRECTIVE_ADAPTER: TypeAdapter[Any] = TypeAdapter(Directive)


@dataclass(frozen=True)
class InvalidDirective:
    """Placeholder for a directive that failed validation.

    Attributes:
        raw: The original config value.
        reason: Human-readable validation failure.
    """

    raw: Any
    reason: str


NormalizedDirective = Union[EchoDirective, MessageDirective, FileDirective, ErrorDirective, InvalidDirective]


def normalize_directive(raw: Any) -> NormalizedDirective:
    """Convert any supported directive shape into the tagged union.

    Args:
        raw: Directive value as found in the config file.

    Returns:
        A directive model, or :class:`InvalidDirective` if ``raw`` is malformed.
        Never raises.
    """
    if raw is None or isinstance(raw, (str, bool, int, float)):
        return MessageDirective(type="message", content=_coerce_text(raw) or "")

    if not isinstance(raw, Mapping):
        return InvalidDirective(raw=raw, reason=f"unsupported directive type: {type(raw).__name__}")

    data = dict(raw)
    if data.get("type") is None:
        data["type"] = "message"
    try:
        return _DIRECTIVE_ADAPTER.validate_python(data)
    except ValidationError as exc:
        return InvalidDirective(raw=raw, reason=_summarize(exc))


def _summarize(exc: ValidationError) -> str:
    """Flatten a pydantic error into one line."""
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "; ".join(parts) or str(exc)
