"""YAML/JSON document loading.

Config files, recorded fixtures and robot scripts all use the same format
rules: ``.json`` files are parsed as JSON, everything else as YAML.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml


def resolve_path(base_dir: str | Path | None, target: str | Path | None) -> Path | None:
    """Resolve ``target`` relative to ``base_dir``.

    Args:
        base_dir: Directory relative paths are resolved against (cwd if None).
        target: Path from the config file.

    Returns:
        Absolute path, or None if ``target`` is empty.
    """
    if not target:
        return None
    base = Path(base_dir) if base_dir else Path.cwd()
    return (base / Path(target)).resolve()


def parse_document(text: str, suffix: str) -> Any:
    """Parse a document body according to its file suffix.

    Raises:
        json.JSONDecodeError: For malformed JSON.
        yaml.YAMLError: For malformed YAML.
    """
    if suffix.lower() == ".json":
        return json.loads(text)
    return yaml.safe_load(text)


def read_document(path: Path) -> Any:
    """Read and parse a YAML or JSON file.

    Args:
        path: File path.

    Returns:
        Parsed document (None for an empty YAML file).

    Raises:
        OSError: If the file cannot be read.
        ValueError: If the content cannot be parsed (JSON errors are ValueErrors).
        yaml.YAMLError: For malformed YAML.
    """
    return parse_document(path.read_text(encoding="utf-8"), path.suffix)
