import random

from llm_debugger.llm.directives import MessageDirective
from llm_debugger.llm.registry import (
    list_model_names,
    normalize_models,
    resolve_model_name,
    resolve_trigger_response,
    should_reject_model,
)


def _content(match):
    assert isinstance(match.response, MessageDirective)
    return match.response.content


def test_normalize_models_shapes():
    registry = normalize_models(
        {
            "triggers-list": [{"hello": "hi"}, {"_default": "fallback"}],
            "bare": "Hello!",
            "wrapped": {"triggers": [{"ping": "pong"}]},
            "Robot": {"behavior": "robot", "script": "robot.yaml"},
            "only-default": {"_default": "just this"},
            "ignored": 42,
        }
    )

    assert set(registry.trigger_models) == {"triggers-list", "bare", "wrapped", "only-default"}
    assert set(registry.behavior_models) == {"Robot"}
    assert registry.behavior_models["Robot"].script == "robot.yaml"
    assert registry.trigger_models["bare"].entries == ()
    assert registry.trigger_models["bare"].default_entry.response.content == "Hello!"


def test_normalize_models_non_mapping_is_empty():
    registry = normalize_models(["not", "a", "mapping"])
    assert not registry.configured


def test_trigger_list_skips_malformed_items_and_duplicates():
    registry = normalize_models(
        {
            "m": [
                {"_inherit": "base"},
                {"_inherit": "other"},
                {"_default": "first"},
                {"_default": "second"},
                {"a": "1", "b": "2"},
                "not-an-object",
                {},
                {"hello": "hi"},
            ]
        }
    )
    model = registry.trigger_models["m"]
    assert model.parent == "base"
    assert model.default_entry.response.content == "first"
    assert [entry.match for entry in model.entries] == ["hello"]
    assert registry.base_models == frozenset({"base"})


def test_exact_match_is_not_normalized():
    registry = normalize_models({"m": [{"hello": "hi"}]})
    assert resolve_trigger_response("m", "hello", registry) is not None
    assert resolve_trigger_response("m", "Hello", registry) is None
    assert resolve_trigger_response("m", " hello", registry) is None


def test_inheritance_ancestor_match_beats_own_default():
    registry = normalize_models(
        {
            "base": [{"hello": "hi from base"}, {"_default": "base default"}],
            "child": [{"_inherit": "base"}, {"_default": "child default"}],
        }
    )

    match = resolve_trigger_response("child", "hello", registry)
    assert _content(match) == "hi from base"
    assert match.model == "base"
    assert match.is_default is False

    match = resolve_trigger_response("child", "unknown", registry)
    assert _content(match) == "child default"
    assert match.model == "child"
    assert match.is_default is True


def test_nearest_default_wins_when_nothing_matches():
    registry = normalize_models(
        {
            "a": [{"_default": "a default"}],
            "b": [{"_inherit": "a"}],
            "c": [{"_inherit": "b"}],
        }
    )
    match = resolve_trigger_response("c", "anything", registry)
    assert _content(match) == "a default"
    assert match.model == "a"


def test_missing_parent_ends_the_walk():
    registry = normalize_models({"child": [{"_inherit": "ghost"}, {"x": "y"}]})
    assert resolve_trigger_response("child", "nothing", registry) is None


def test_cyclic_inheritance_terminates():
    registry = normalize_models(
        {
            "a": [{"_inherit": "b"}, {"from-a": "A"}],
            "b": [{"_inherit": "a"}, {"from-b": "B"}, {"_default": "b default"}],
        }
    )
    assert _content(resolve_trigger_response("a", "from-b", registry)) == "B"
    assert _content(resolve_trigger_response("a", "none", registry)) == "b default"

    registry = normalize_models({"self": [{"_inherit": "self"}, {"x": "y"}]})
    assert resolve_trigger_response("self", "z", registry) is None


def test_random_chains_prefer_any_exact_match_over_any_default():
    rng = random.Random(1234)
    for _ in range(50):
        length = rng.randint(2, 8)
        names = [f"m{i}" for i in range(length)]
        match_level = rng.randrange(length)
        models = {}
        for level, name in enumerate(names):
            items = []
            if level + 1 < length:
                items.append({"_inherit": names[level + 1]})
            if rng.random() < 0.7:
                items.append({"_default": f"default {level}"})
            if level == match_level:
                items.append({"target": f"match {level}"})
            items.append({f"noise {level}": "noise"})
            rng.shuffle(items)
            models[name] = items

        registry = normalize_models(models)
        match = resolve_trigger_response(names[0], "target", registry)
        assert match is not None
        assert _content(match) == f"match {match_level}"
        assert match.is_default is False


def test_list_model_names_hides_private_and_base_models():
    registry = normalize_models(
        {
            "base": [{"_default": "x"}],
            "child": [{"_inherit": "base"}],
            "_private": "hidden",
            "Robot": {"behavior": "robot"},
        }
    )
    assert list_model_names(registry) == ["child", "Robot"]
    assert list_model_names(registry, exclude_base_models=False) == ["base", "child", "Robot"]


def test_resolve_model_name_is_case_insensitive():
    registry = normalize_models({"MyModel": "hi", "Robot": {"behavior": "robot"}})
    assert resolve_model_name("mymodel", registry) == "MyModel"
    assert resolve_model_name("ROBOT", registry) == "Robot"
    assert resolve_model_name("other", registry) == "other"
    assert resolve_model_name("", registry) == ""


def test_should_reject_model_only_when_models_are_configured():
    empty = normalize_models({})
    assert should_reject_model("anything", empty) is False

    registry = normalize_models({"known": "hi"})
    assert should_reject_model("known", registry) is False
    assert should_reject_model("unknown", registry) is True
