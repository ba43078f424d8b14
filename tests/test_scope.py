from __future__ import annotations

import pytest

from data_model.scope import DEFAULT_SCOPE, parse_scope
from solver import ScopeError, load_model_dict, resolve
from solver.scope import implicit_facts


# ---------------------------------------------------------------------------
# parse_scope
# ---------------------------------------------------------------------------

def test_parse_scope_default_and_overrides():
    spec = parse_scope("3 but 5 Time, 4 Event, exactly 0 Attacker")
    assert spec.default == 3
    assert spec.bounds == {"Time": 5, "Event": 4, "Attacker": 0}
    assert spec.exact == frozenset({"Attacker"})
    assert str(spec) == "3 but 5 Time, 4 Event, exactly 0 Attacker"


def test_parse_scope_empty_gives_default():
    assert parse_scope(None).default == DEFAULT_SCOPE
    assert parse_scope("   ").default == DEFAULT_SCOPE


def test_parse_scope_without_default():
    spec = parse_scope("5 Time, exactly 1 Attacker")
    assert spec.default is None
    assert spec.bounds == {"Time": 5, "Attacker": 1}


def test_parse_scope_accepts_for_prefix():
    assert parse_scope("for 4").default == 4


@pytest.mark.parametrize("text", ["Time 5", "3 Time, 4 Time", "3 but 5 Time,"])
def test_parse_scope_rejects_bad_text(text):
    with pytest.raises(ValueError):
        parse_scope(text)


# ---------------------------------------------------------------------------
# resolve
# ---------------------------------------------------------------------------

def test_resolve_ros_scope_without_attacker(ros_model):
    table = resolve("3 but exactly 5 Time, 4 Event, exactly 0 Attacker", ros_model)
    b = table.bounds
    assert (b["Time"].lower, b["Time"].upper) == (5, 5)
    assert (b["Joystick"].lower, b["Joystick"].upper) == (1, 1)
    assert (b["Attacker"].lower, b["Attacker"].upper) == (0, 0)
    # abstrakcyjna: górny limit = suma podsygnatur
    assert (b["Component"].lower, b["Component"].upper) == (2, 2)
    assert (b["Topic"].lower, b["Topic"].upper) == (1, 1)
    assert (b["Data"].lower, b["Data"].upper) == (1, 3)
    assert (b["Twist"].lower, b["Twist"].upper) == (0, 3)
    assert (b["Event"].lower, b["Event"].upper) == (0, 4)
    assert (b["Publish"].lower, b["Publish"].upper) == (0, 4)


def test_resolve_ros_scope_with_attacker(ros_model):
    table = resolve("3 but exactly 5 Time, 4 Event, exactly 1 Attacker", ros_model)
    assert table.is_exact("Attacker")
    assert table.lower("Component") == table.upper("Component") == 3


def test_resolve_ordered_sig_is_bounded_above(ros_model, ticks_model):
    table = resolve("3 but 5 Time, 4 Event, exactly 0 Attacker", ros_model)
    assert (table.lower("Time"), table.upper("Time")) == (0, 5)
    assert not table.is_exact("Time")
    assert str(resolve("4", ticks_model).bounds["Tick"]) == "0..4"
    assert resolve("exactly 4 Tick", ticks_model).is_exact("Tick")


def test_resolve_childless_abstract_sig():
    model = load_model_dict({
        "model": "shapes",
        "sigs": [{"name": "Shape", "abstract": True}],
        "predicates": [{"name": "Any", "body": True}],
    })
    assert resolve("3", model).upper("Shape") == 0
    with pytest.raises(ScopeError) as exc:
        resolve("exactly 2 Shape", model)
    assert exc.value.sig == "Shape"


def test_resolve_one_sig_rejects_other_bound(ros_model):
    with pytest.raises(ScopeError) as exc:
        resolve("3 but 2 Joystick", ros_model)
    assert exc.value.sig == "Joystick"


def test_resolve_unknown_sig(ros_model):
    with pytest.raises(ScopeError) as exc:
        resolve("3 but 1 Ghost", ros_model)
    assert exc.value.sig == "Ghost"


def test_resolve_missing_default(ros_model):
    with pytest.raises(ScopeError) as exc:
        resolve("5 Time", ros_model)
    assert exc.value.sig == "Component"


def test_resolve_child_exceeds_parent(ros_model):
    with pytest.raises(ScopeError) as exc:
        resolve("3 but exactly 4 Attacker", ros_model)
    assert exc.value.sig == "Attacker"


def test_resolve_syntax_error_is_scope_error(ros_model):
    with pytest.raises(ScopeError):
        resolve("Time 5", ros_model)


# ---------------------------------------------------------------------------
# Fakty niejawne
# ---------------------------------------------------------------------------

def test_implicit_facts_cover_declarations(ros_model):
    table = resolve("3 but exactly 5 Time, 4 Event, exactly 0 Attacker", ros_model)
    names = {f.name for f in implicit_facts(ros_model, table)}
    assert "sig Joystick in Component" in names
    assert "disj Publish, Callback" in names
    assert "abstract Event" in names
    assert "type inbox" in names
    assert "mult at" in names
    assert "mult mapping" in names
    assert "mult advertises" not in names
    assert "scope #Time <= 5" in names
    assert "scope #Time >= 5" in names
