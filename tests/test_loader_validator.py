from __future__ import annotations

import pytest

from data_model.expressions import Closure, Compare, Const, Equal, Join, Mult, Not, Quant, Rel, Restrict, Var
from data_model.signatures import Multiplicity
from solver import ModelError, load_model, load_model_dict, parse_expr, parse_formula
from validator import ErrorCode, ModelValidator


def _codes(raw: dict) -> list[ErrorCode]:
    return ModelValidator().validate(raw).codes()


@pytest.fixture
def graph(graph_raw):
    """Kopia modelu grafu z podmienionymi sekcjami."""
    def make(**changes) -> dict:
        raw = dict(graph_raw)
        raw.update(changes)
        return raw
    return make


# ---------------------------------------------------------------------------
# Ładowanie
# ---------------------------------------------------------------------------

def test_load_ros_model(ros_model):
    assert ros_model.name == "ros_cmdvel"
    mapping = ros_model.relations["mapping"]
    assert mapping.cols == ("Joystick", "JoyIn", "Twist")
    assert mapping.mult == Multiplicity.LONE
    assert mapping.owner == "Joystick"
    assert ros_model.relations["inbox"].owner is None
    assert ros_model.sigs["Time"].ordered
    assert [c.name for c in ros_model.commands] == [
        "SafeWithoutAttacker", "AttackerBreaksSafety", "JoystickDrivesWheel",
    ]
    assert ros_model.predicates["SafeCmd"].params == ()
    assert [p.var for p in ros_model.functions["received"].params] == ["c", "t"]


def test_ros_model_is_valid_without_warnings(ros_raw):
    report = ModelValidator().validate(ros_raw)
    assert report.is_valid, [str(e) for e in report.errors]
    assert report.warnings == []


def test_parse_expressions():
    assert parse_expr([".", "a", "b", "c"]) == Join(Join(Rel("a"), Rel("b")), Rel("c"))
    assert parse_expr("x", frozenset({"x"})) == Var("x")
    assert parse_expr("univ") == Const("univ")
    assert parse_expr(["^", "edge"]) == Closure(Rel("edge"))
    assert parse_expr(["*", "edge"]) == Closure(Rel("edge"), reflexive=True)
    assert parse_expr(["<:", "Node", "edge"]) == Restrict(Rel("Node"), Rel("edge"))
    assert parse_expr([":>", "edge", "Node"]) == Restrict(Rel("edge"), Rel("Node"), domain=False)


def test_parse_formulas():
    assert parse_formula(["!=", "a", "b"]) == Not(Equal(Rel("a"), Rel("b")))
    assert isinstance(parse_formula(["=", ["#", "a"], 2]), Compare)
    assert parse_formula(["some", "a"]) == Mult("some", Rel("a"))
    q = parse_formula(["all", [["x", "A"], ["y", "x"]], ["in", "y", "x"]])
    assert isinstance(q, Quant)
    # druga dziedzina widzi zmienną pierwszej
    assert q.decls[1].domain == Var("x")


def test_parse_rejects_unknown_operator():
    with pytest.raises(ModelError):
        parse_formula(["xor", True, False])
    with pytest.raises(ModelError):
        parse_expr(["in", "a", "b"])


def test_load_model_dict_raises_with_report(graph):
    raw = graph(facts=[{"name": "bad", "body": ["some", "ghost"]}])
    with pytest.raises(ModelError) as exc:
        load_model_dict(raw)
    assert exc.value.report.codes() == [ErrorCode.UNKNOWN_NAME]
    assert "ghost" in str(exc.value)


def test_load_model_file_errors(tmp_path):
    with pytest.raises(ModelError):
        load_model(tmp_path / "missing.json")
    broken = tmp_path / "broken.json"
    broken.write_text("{ not json", encoding="utf-8")
    with pytest.raises(ModelError):
        load_model(broken)


# ---------------------------------------------------------------------------
# Walidacja
# ---------------------------------------------------------------------------

def test_schema_violation_stops_early():
    assert _codes({"model": "x"}) == [ErrorCode.SCHEMA_VIOLATION]


def test_duplicate_names(graph, graph_raw):
    raw = graph(sigs=graph_raw["sigs"] + [{"name": "Node"}])
    assert ErrorCode.DUPLICATE_NAME in _codes(raw)


def test_reserved_name(graph, graph_raw):
    raw = graph(sigs=graph_raw["sigs"] + [{"name": "univ"}])
    assert ErrorCode.DUPLICATE_NAME in _codes(raw)


def test_unknown_parent_sig(graph, graph_raw):
    raw = graph(sigs=graph_raw["sigs"] + [{"name": "Leaf", "extends": "Ghost"}])
    assert _codes(raw) == [ErrorCode.UNKNOWN_SIG]


def test_inheritance_cycle(graph):
    raw = graph(sigs=[{"name": "A", "extends": "B"}, {"name": "B", "extends": "A"}],
                 facts=[], predicates=[], commands=[])
    assert ErrorCode.BAD_EXTENDS in _codes(raw)


def test_ordering_only_on_top_level_sigs(graph, graph_raw):
    raw = graph(sigs=graph_raw["sigs"] + [{"name": "Step", "extends": "Node", "ordered": True}])
    assert ErrorCode.BAD_ORDERING in _codes(raw)


def test_arity_mismatch(graph):
    raw = graph(facts=[{"name": "bad", "body": ["in", "edge", "Node"]}])
    assert _codes(raw) == [ErrorCode.ARITY_MISMATCH]


def test_type_mismatch_in_join():
    raw = {
        "model": "typed",
        "sigs": [
            {"name": "A", "fields": [{"name": "f", "cols": ["B"]}]},
            {"name": "B"},
        ],
        "facts": [{"name": "bad", "body": ["some", [".", "f", "f"]]}],
    }
    assert ErrorCode.TYPE_MISMATCH in _codes(raw)


def test_restriction_needs_unary_set(graph):
    ok = graph(facts=[{"name": "ok", "body": ["some", [":>", "edge", "Node"]]}])
    assert _codes(ok) == []
    bad = graph(facts=[{"name": "bad", "body": ["some", ["<:", "edge", "edge"]]}])
    assert _codes(bad) == [ErrorCode.ARITY_MISMATCH]


def test_int_in_membership_is_bad_expression(graph):
    raw = graph(facts=[{"name": "bad", "body": ["in", 1, "Node"]}])
    assert _codes(raw) == [ErrorCode.BAD_EXPRESSION]


def test_ordering_relation_requires_ordered_sig(graph):
    raw = graph(facts=[{"name": "bad", "body": ["some", "Node/first"]}])
    assert _codes(raw) == [ErrorCode.UNKNOWN_NAME]


def test_recursive_predicates(graph, graph_raw):
    raw = graph(predicates=graph_raw["predicates"] + [
        {"name": "P", "body": ["call", "Q"]},
        {"name": "Q", "body": ["call", "P"]},
    ])
    assert _codes(raw) == [ErrorCode.RECURSIVE_DEFINITION]


def test_command_errors(graph):
    raw = graph(commands=[
        {"name": "A", "kind": "check", "target": "Missing"},
        {"name": "B", "kind": "run", "target": "HasEdge", "expect": "verified"},
    ])
    assert _codes(raw) == [ErrorCode.BAD_COMMAND, ErrorCode.BAD_COMMAND]


def test_scope_errors(graph):
    raw = graph(commands=[
        {"name": "A", "kind": "run", "target": "HasEdge", "scope": "3 but 4 Ghost"},
        {"name": "B", "kind": "run", "target": "HasEdge", "scope": "Node 3"},
    ])
    assert _codes(raw) == [ErrorCode.BAD_SCOPE, ErrorCode.BAD_SCOPE]


def test_missing_commands_is_only_a_warning(graph):
    report = ModelValidator().validate(graph(commands=[]))
    assert report.is_valid
    assert any("poleceń" in w for w in report.warnings)


def test_every_code_belongs_to_a_stage():
    assert {code.stage for code in ErrorCode} == set("ABCDE")
    assert ErrorCode.BAD_SCOPE.stage == "E"
