"""Request text extraction.

Each provider shapes conversation history differently. The helpers here
reduce a request to two strings: the text of the last user message and all
message text joined with newlines.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from llm_debugger.llm.streaming import dumps


@dataclass(frozen=True)
class ExtractedText:
    """Text pulled out of a request.

    Attributes:
        last_user: Last user message with non-empty text.
        all_text: Text of every message, joined with newlines.
    """

    last_user: str = ""
    all_text: str = ""

    @property
    def summary(self) -> str:
        """Short form for the access log."""
        return self.last_user or self.all_text or ""


def _openai_content(content: Any) -> str:
    if not content:
        return ""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "".join(_openai_content(part) for part in content)
    if isinstance(content, Mapping):
        if content.get("text"):
            return _openai_content(content["text"])
        if content.get("content"):
            return _openai_content(content["content"])
        return ""
    return str(content)


def _anthropic_content(content: Any) -> str:
    if isinstance(content, str):
        return content
    if not isinstance(content, list):
        return ""
    return "".join(
        str(block.get("text") or "")
        for block in content
        if isinstance(block, Mapping) and block.get("type") == "text"
    )


def _gemini_parts(parts: Any) -> str:
    if not isinstance(parts, list):
        return ""
    return "".join(part["text"] for part in parts if isinstance(part, Mapping) and isinstance(part.get("text"), str))


def _collect(items: Any, text_of, role_key: str = "role") -> ExtractedText:
    if not isinstance(items, list):
        return ExtractedText()
    last_user = ""
    parts: list[str] = []
    for item in items:
        if not isinstance(item, Mapping):
            continue
        text = text_of(item)
        if text:
            parts.append(text)
            if item.get(role_key) == "user":
                last_user = text
    return ExtractedText(last_user=last_user, all_text="\n".join(parts))


def extract_openai_chat_text(messages: Any) -> ExtractedText:
    """Extract text from OpenAI chat ``messages``.

    Content may be a string, a list of parts (``text`` or nested ``content``)
    or a single part object.
    """
    return _collect(messages, lambda message: _openai_content(message.get("content")))


def extract_anthropic_text(messages: Any) -> ExtractedText:
    """Extract text from Anthropic ``messages`` (``text`` blocks only)."""
    return _collect(messages, lambda message: _anthropic_content(message.get("content")))


def extract_gemini_text(contents: Any) -> ExtractedText:
    """Extract text from Gemini ``contents`` (parts with a string ``text``)."""
    return _collect(contents, lambda content: _gemini_parts(content.get("parts")))


def extract_prompt_text(prompt: Any) -> str:
    """Flatten a completions ``prompt`` (string or list of strings)."""
    if isinstance(prompt, list):
        return "\n".join(str(item) for item in prompt)
    if prompt is None:
        return ""
    return str(prompt)


def extract_input_text(value: Any) -> str:
    """Flatten a Responses/moderations ``input``.

    Lists are joined with newlines; items that are not strings are rendered
    as JSON.
    """
    if isinstance(value, list):
        return "\n".join(item if isinstance(item, str) else dumps(item) for item in value)
    if value is None:
        return ""
    return value if isinstance(value, str) else dumps(value)
