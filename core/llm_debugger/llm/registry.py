"""Model registry: parsing of the ``models`` config section and trigger lookup.

Example config::

    models:
      base:
        - hello: "hi from base"
        - _default: "base default"
      child:
        - _inherit: base
        - hello: "hi from child"
      Robot:
        behavior: robot
        script: robot.yaml
      greeter: "Hello!"

``base`` only appears as an inheritance parent of ``child``; such names are
recorded as base models and hidden from public listings.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from llm_debugger.llm.directives import normalize_directive
from llm_debugger.llm.types import BehaviorModel, DefaultEntry, ModelRegistry, TriggerEntry, TriggerMatch, TriggerModel

INHERIT_KEY = "_inherit"
DEFAULT_KEY = "_default"


def normalize_models(models_config: Any) -> ModelRegistry:
    """Build a :class:`ModelRegistry` from the raw ``models`` mapping.

    Accepted shapes per model name:

      - list of single-key objects: trigger list
      - string: a single default message
      - object with a ``triggers`` list: trigger list
      - object with ``behavior`` / ``script`` / ``rules``: behavior model
      - object with a ``_default`` key: a single default entry

    Anything else is ignored. This function never raises.

    Args:
        models_config: Parsed ``models`` section (usually a dict).

    Returns:
        The registry.
    """
    trigger_models: dict[str, TriggerModel] = {}
    behavior_models: dict[str, BehaviorModel] = {}
    base_models: set[str] = set()

    if not isinstance(models_config, Mapping):
        return ModelRegistry()

    for raw_name, value in models_config.items():
        name = str(raw_name)
        if isinstance(value, list):
            trigger_models[name] = _parse_trigger_list(value, base_models)
            continue

        if isinstance(value, str):
            trigger_models[name] = _parse_trigger_list([{DEFAULT_KEY: value}], base_models)
            continue

        if isinstance(value, Mapping):
            if isinstance(value.get("triggers"), list):
                trigger_models[name] = _parse_trigger_list(value["triggers"], base_models)
                continue

            if value.get("behavior") or value.get("script") or value.get("rules"):
                behavior_models[name] = BehaviorModel(
                    behavior=_optional_str(value.get("behavior")),
                    script=_optional_str(value.get("script")),
                    rules=value.get("rules"),
                    fallback=_optional_str(value.get("fallback")),
                )
                continue

            if DEFAULT_KEY in value:
                trigger_models[name] = _parse_trigger_list([{DEFAULT_KEY: value[DEFAULT_KEY]}], base_models)
                continue

    return ModelRegistry(
        trigger_models=trigger_models,
        behavior_models=behavior_models,
        base_models=frozenset(base_models),
    )


def _optional_str(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def _parse_trigger_list(items: Iterable[Any], base_models: set[str]) -> TriggerModel:
    """Walk a trigger list in order.

    The first ``_inherit`` item sets the parent, the first ``_default`` item sets
    the fallback; later duplicates are ignored. Other single-key objects become
    entries; multi-key or non-object items are skipped.
    """
    entries: list[TriggerEntry] = []
    default_entry: DefaultEntry | None = None
    parent: str | None = None
    seen_inherit = False

    for item in items:
        if not isinstance(item, Mapping) or not item:
            continue

        if INHERIT_KEY in item:
            if not seen_inherit:
                seen_inherit = True
                candidate = item[INHERIT_KEY]
                if isinstance(candidate, str) and candidate:
                    parent = candidate
                    base_models.add(candidate)
            continue

        if DEFAULT_KEY in item:
            if default_entry is None:
                default_entry = DefaultEntry(response=normalize_directive(item[DEFAULT_KEY]))
            continue

        if len(item) != 1:
            continue
        match, response = next(iter(item.items()))
        entries.append(TriggerEntry(match=str(match), response=normalize_directive(response)))

    return TriggerModel(entries=tuple(entries), default_entry=default_entry, parent=parent)


def resolve_trigger_response(model_name: str, user_message: str, registry: ModelRegistry) -> TriggerMatch | None:
    """Find the directive for ``user_message`` along the inheritance chain.

    An exact trigger match anywhere in the chain wins over every default, even
    a default defined on the requested model itself. Defaults are only used
    when the whole chain has no exact match, and then the nearest one wins.

    Args:
        model_name: Requested (resolved) model name.
        user_message: Last user message, compared exactly.
        registry: Model registry.

    Returns:
        The matching directive, the nearest default, or None.
    """
    visited: set[str] = set()
    current: str | None = model_name
    fallback: TriggerMatch | None = None

    while current and current not in visited:
        visited.add(current)
        model = registry.trigger_models.get(current)
        if model is None:
            break

        for entry in model.entries:
            if entry.match == user_message:
                return TriggerMatch(response=entry.response, model=current, is_default=False)

        if fallback is None and model.default_entry is not None:
            fallback = TriggerMatch(response=model.default_entry.response, model=current, is_default=True)

        current = model.parent

    return fallback


def list_model_names(registry: ModelRegistry, exclude_base_models: bool = True) -> list[str]:
    """List public model names in config order.

    Names starting with ``_`` are private. Base models (only used through
    ``_inherit``) are hidden unless ``exclude_base_models`` is False.
    """
    names: dict[str, None] = {}
    for name in list(registry.trigger_models) + list(registry.behavior_models):
        if not name.startswith("_"):
            names[name] = None

    if exclude_base_models:
        for base in registry.base_models:
            names.pop(base, None)

    return list(names)


def resolve_model_name(model: str, registry: ModelRegistry) -> str:
    """Return the configured spelling of ``model``, matching case-insensitively."""
    if not model or registry.has_model(model):
        return model
    lowered = model.lower()
    for name in list(registry.trigger_models) + list(registry.behavior_models):
        if name.lower() == lowered:
            return name
    return model


def should_reject_model(model: str, registry: ModelRegistry) -> bool:
    """Return True if models are configured and ``model`` is not one of them."""
    if not registry.configured:
        return False
    return not registry.has_model(model)
