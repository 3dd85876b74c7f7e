"""LLM package exports."""

from llm_debugger.llm.types import CanonicalResponse, ModelRegistry, ResolutionResult, ToolCall, Usage
from llm_debugger.llm.registry import normalize_models, resolve_trigger_response
from llm_debugger.llm.behavior import ResolveContext, resolve_response
from llm_debugger.llm.streaming import StreamEvent, StreamFormat, emit

__all__ = [
    "CanonicalResponse",
    "ModelRegistry",
    "ResolutionResult",
    "ToolCall",
    "Usage",
    "normalize_models",
    "resolve_trigger_response",
    "ResolveContext",
    "resolve_response",
    "StreamEvent",
    "StreamFormat",
    "emit",
]
