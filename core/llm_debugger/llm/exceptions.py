"""Exceptions raised by the resolution engine."""


class LLMDebuggerError(RuntimeError):
    """Base exception for all LLM debugger errors."""


class ConfigError(LLMDebuggerError):
    """Raised when a configuration file cannot be read or parsed."""


class FixtureError(LLMDebuggerError):
    """Raised when a recorded fixture cannot be loaded."""


class ScriptError(LLMDebuggerError):
    """Raised when a robot script cannot be loaded."""


class DirectiveError(LLMDebuggerError):
    """Raised when a request reaches a malformed response directive."""
