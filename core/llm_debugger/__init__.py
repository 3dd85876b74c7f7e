"""LLM Debugger: a deterministic stand-in for OpenAI, Anthropic and Gemini APIs."""

__version__ = "0.1.0"
