"""LLM Debugger server configuration.

This module defines a frozen dataclass `ServerConfig` that centralizes runtime
configuration for the debugger server. Values are resolved per key with the
precedence:

  1) environment variable ``LLM_DEBUGGER_<KEY>`` (e.g. ``LLM_DEBUGGER_PORT``)
  2) the YAML/JSON config file
  3) built-in defaults

The config file path comes from ``--config``, then ``LLM_DEBUGGER_CONFIG``,
``CONFIG_PATH`` or ``CONFIG``, else ``./config.yaml``. A missing file is not an
error; the server then runs with defaults and the built-in models.
"""
from __future__ import annotations

import logging
import os
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from llm_debugger.llm.config_loader import read_document
from llm_debugger.llm.exceptions import ConfigError
from llm_debugger.llm.registry import normalize_models
from llm_debugger.llm.tokens import DEFAULT_TOKEN_COUNTING, normalize_token_counting
from llm_debugger.llm.types import ModelRegistry

logger = logging.getLogger(__name__)

SERVER_NAME = "LLM Debugger Server"

ENV_PREFIX = "LLM_DEBUGGER_"
CONFIG_PATH_ENVS = ("LLM_DEBUGGER_CONFIG", "CONFIG_PATH", "CONFIG")
DEFAULT_CONFIG_FILE = "config.yaml"

_TRUE = {"1", "true", "yes", "y", "on"}
_FALSE = {"0", "false", "no", "n", "off"}


def parse_boolean(value: Any, fallback: bool) -> bool:
    """Parse a boolean-ish config value.

    Args:
        value: Raw value (bool, number or string such as "yes"/"off").
        fallback: Returned when ``value`` is unset or unrecognized.

    Returns:
        Parsed boolean.
    """
    if isinstance(value, bool):
        return value
    if value is None or value == "":
        return fallback
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    return fallback


def parse_integer(value: Any, fallback: int) -> int:
    """Parse an integer config value, falling back on junk."""
    if value is None or value == "" or isinstance(value, bool):
        return fallback
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return fallback


def parse_number(value: Any, fallback: float) -> float:
    """Parse a float config value, falling back on junk."""
    if value is None or value == "" or isinstance(value, bool):
        return fallback
    try:
        return float(value)
    except (TypeError, ValueError):
        return fallback


def parse_string(value: Any, fallback: str) -> str:
    """Return ``value`` as a stripped string, or ``fallback`` when blank."""
    if value is None:
        return fallback
    text = str(value).strip()
    return text or fallback


@dataclass(frozen=True)
class ConfigItem:
    """One configurable key.

    Attributes:
        key: Config file key (also the ServerConfig field name).
        default: Built-in default.
        parse: Parser taking ``(raw, fallback)``.
        note: Short description shown by ``llm-debugger config show``.
    """

    key: str
    default: Any
    parse: Callable[[Any, Any], Any]
    note: str

    @property
    def env_name(self) -> str:
        """Environment variable overriding this key."""
        return f"{ENV_PREFIX}{self.key.upper()}"


CONFIG_ITEMS: tuple[ConfigItem, ...] = (
    ConfigItem("host", "0.0.0.0", parse_string, "Interface to bind"),
    ConfigItem("port", 3000, parse_integer, "Port to listen on"),
    ConfigItem("strict_validation", False, parse_boolean, "Reject unknown request fields"),
    ConfigItem("require_auth", False, parse_boolean, "Require authorization or x-api-key"),
    ConfigItem("default_behavior", "Echo", parse_string, "Behavior for unconfigured models"),
    ConfigItem("token_counting", DEFAULT_TOKEN_COUNTING, parse_string, "Token heuristic: chars or words"),
    ConfigItem("embedding_size", 8, parse_integer, "Length of fake embedding vectors"),
    ConfigItem("latency_ms", 0, parse_integer, "Delay added to every response"),
    ConfigItem("error_rate", 0.0, parse_number, "Chance of a 500 for seeded requests"),
    ConfigItem("enable_gemini_openai_compat", False, parse_boolean, "Serve /v1beta/openai/* routes"),
)


@dataclass(frozen=True)
class ServerConfig:  # pylint: disable=too-many-instance-attributes
    """Resolved configuration for one server instance.

    Attributes:
        host: Interface to bind.
        port: Port to listen on.
        strict_validation: Reject unknown top-level request fields with a 400.
        require_auth: Require an ``authorization`` or ``x-api-key`` header.
        default_behavior: Behavior used when nothing else matches.
        token_counting: Token counting strategy ("chars" or "words").
        embedding_size: Length of generated embedding vectors.
        latency_ms: Delay added to every response.
        error_rate: Probability of a simulated 500 for requests with a seed.
        enable_gemini_openai_compat: Mirror OpenAI routes under /v1beta/openai.
        config_path: Config file the values came from, if any.
        config_dir: Directory fixtures and scripts are resolved against.
        models_config: Raw ``models`` section.
        model_registry: Normalized models.
    """

    host: str = "0.0.0.0"
    port: int = 3000
    strict_validation: bool = False
    require_auth: bool = False
    default_behavior: str = "Echo"
    token_counting: str = DEFAULT_TOKEN_COUNTING
    embedding_size: int = 8
    latency_ms: int = 0
    error_rate: float = 0.0
    enable_gemini_openai_compat: bool = False
    config_path: Path | None = None
    config_dir: Path = field(default_factory=Path.cwd)
    models_config: Mapping[str, Any] = field(default_factory=dict)
    model_registry: ModelRegistry = field(default_factory=ModelRegistry)

    @classmethod
    def for_models(cls, models: Mapping[str, Any] | None = None, **kwargs: Any) -> "ServerConfig":
        """Build a config from an in-memory ``models`` mapping.

        Args:
            models: Raw models section.
            **kwargs: Other ServerConfig fields.

        Returns:
            ServerConfig instance.
        """
        models = dict(models or {})
        if "token_counting" in kwargs:
            kwargs["token_counting"] = normalize_token_counting(kwargs["token_counting"])
        return cls(models_config=models, model_registry=normalize_models(models), **kwargs)

    def describe(self) -> list[dict[str, Any]]:
        """Return the configurable keys with their effective values."""
        return [
            {"key": item.key, "value": getattr(self, item.key), "env": item.env_name, "note": item.note}
            for item in CONFIG_ITEMS
        ]


def resolve_config_path(explicit: str | Path | None = None, env: Mapping[str, str] | None = None) -> Path:
    """Pick the config file path.

    Args:
        explicit: Path given on the command line.
        env: Environment mapping (defaults to ``os.environ``).

    Returns:
        Absolute path (the file may not exist).
    """
    env = os.environ if env is None else env
    candidate: str | Path | None = explicit
    if not candidate:
        for name in CONFIG_PATH_ENVS:
            value = env.get(name, "").strip()
            if value:
                candidate = value
                break
    return Path(candidate or DEFAULT_CONFIG_FILE).expanduser().resolve()


def load_file_config(path: Path) -> dict[str, Any]:
    """Load the config document at ``path``.

    Args:
        path: Config file path.

    Returns:
        Parsed mapping, or an empty dict if the file does not exist.

    Raises:
        ConfigError: If the file exists but cannot be read or is not a mapping.
    """
    if not path.exists():
        logger.info("config file %s not found; using defaults", path)
        return {}
    try:
        data = read_document(path)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        raise ConfigError(f"Cannot read config file {path}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise ConfigError(f"Config file {path} must contain a mapping at the top level")
    return dict(data)


def _get(env: Mapping[str, str], file_config: Mapping[str, Any], item: ConfigItem) -> Any:
    """Resolve one key: env first, then file, then default."""
    env_val = env.get(item.env_name)
    if env_val is not None and env_val != "":
        return item.parse(env_val, item.parse(file_config.get(item.key), item.default))
    return item.parse(file_config.get(item.key), item.default)


def build_server_config(
    config_path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
) -> ServerConfig:
    """Build the server configuration from file and environment.

    Args:
        config_path: Explicit config file path (``--config``).
        env: Environment mapping (defaults to ``os.environ``).

    Returns:
        ServerConfig instance.

    Raises:
        ConfigError: If an existing config file cannot be parsed.
    """
    env = os.environ if env is None else env
    path = resolve_config_path(config_path, env)
    file_config = load_file_config(path)

    values = {item.key: _get(env, file_config, item) for item in CONFIG_ITEMS}
    values["token_counting"] = normalize_token_counting(values["token_counting"])
    values["embedding_size"] = max(1, values["embedding_size"])
    values["latency_ms"] = max(0, values["latency_ms"])

    models = file_config.get("models")
    if models is not None and not isinstance(models, Mapping):
        logger.warning("ignoring 'models' in %s: expected a mapping", path)
        models = None
    models = dict(models or {})

    config = ServerConfig(
        config_path=path if path.exists() else None,
        config_dir=path.parent,
        models_config=models,
        model_registry=normalize_models(models),
        **values,
    )
    logger.debug("loaded config from %s (%d models)", path, len(models))
    return config
