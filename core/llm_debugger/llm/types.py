"""Normalized types shared by the resolver, the translators and the HTTP layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Mapping


Provider = Literal["openai", "anthropic", "gemini"]
ResolutionMode = Literal["canonical", "file", "error"]
TokenCounting = Literal["chars", "words"]


@dataclass(frozen=True)
class ToolCall:
    """Represents a tool invocation the fake model asks the client to run."""

    id: str
    name: str
    arguments: Any = field(default_factory=dict)


@dataclass(frozen=True)
class Usage:
    """Canonical token accounting.

    Optional fields left as ``None`` are absent: translators must omit the
    matching provider field rather than emit a zero.
    """

    input: int
    output: int
    reasoning: int | None = None
    cache_read: int | None = None
    cache_creation: int | None = None


@dataclass(frozen=True)
class CanonicalResponse:
    """Provider-agnostic result of resolving one request."""

    content: str
    usage: Usage
    reasoning: str | None = None
    tool_calls: tuple[ToolCall, ...] | None = None


@dataclass(frozen=True)
class ErrorInfo:
    """Status and message of a configured or simulated error."""

    status: int
    message: str


@dataclass(frozen=True)
class ResolutionResult:
    """Outcome of the behavior resolver.

    Exactly one of ``response``, ``file`` or ``error`` is set, matching ``mode``.
    ``behavior`` is a human-readable label used for logging only.
    """

    mode: ResolutionMode
    behavior: str
    response: CanonicalResponse | None = None
    file: Any = None
    error: ErrorInfo | None = None


@dataclass(frozen=True)
class TriggerEntry:
    """One exact-match rule of a trigger model."""

    match: str
    response: Any


@dataclass(frozen=True)
class DefaultEntry:
    """Fallback rule used when no trigger of a model matches."""

    response: Any


@dataclass(frozen=True)
class TriggerModel:
    """Ordered match rules of a trigger-based model."""

    entries: tuple[TriggerEntry, ...] = ()
    default_entry: DefaultEntry | None = None
    parent: str | None = None


@dataclass(frozen=True)
class BehaviorModel:
    """A model bound to a built-in or scripted behavior."""

    behavior: str | None = None
    script: str | None = None
    rules: Any = None
    fallback: str | None = None


@dataclass(frozen=True)
class TriggerMatch:
    """Directive found by the inheritance walk."""

    response: Any
    model: str
    is_default: bool


@dataclass(frozen=True)
class ModelRegistry:
    """Parsed model configuration; read-only for the life of the process."""

    trigger_models: Mapping[str, TriggerModel] = field(default_factory=dict)
    behavior_models: Mapping[str, BehaviorModel] = field(default_factory=dict)
    base_models: frozenset[str] = frozenset()

    @property
    def configured(self) -> bool:
        """Return True when at least one model is configured."""
        return bool(self.trigger_models) or bool(self.behavior_models)

    def has_model(self, name: str) -> bool:
        """Return True if ``name`` is a configured trigger or behavior model."""
        return name in self.trigger_models or name in self.behavior_models
