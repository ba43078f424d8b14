from __future__ import annotations

import pytest

from data_model.expressions import Call, Card, Rel, Subset
from data_model.model import Function, Model
from data_model.signatures import Sig
from solver import (
    AtomPool,
    Bounds,
    EvaluationError,
    Evaluator,
    RelationStore,
    parse_expr,
    parse_formula,
    resolve,
)
from solver.evaluator import k_and, k_not, k_or


def _exact(tuples) -> Bounds:
    ts = frozenset(tuples)
    return Bounds(ts, ts)


@pytest.fixture
def graph(graph_model):
    pool = AtomPool(graph_model, resolve("2", graph_model))
    return graph_model, pool, Evaluator(graph_model, pool)


@pytest.fixture
def cycle_store():
    """Dwa węzły połączone w obie strony: 0 -> 1 -> 0."""
    return RelationStore({
        "Node": _exact([(0,), (1,)]),
        "edge": _exact([(0, 1), (1, 0)]),
    })


@pytest.fixture
def chain_store():
    return RelationStore({
        "Node": _exact([(0,), (1,)]),
        "edge": _exact([(0, 1)]),
    })


def test_kleene_connectives():
    assert k_and(True, None) is None
    assert k_and(False, None) is False
    assert k_or(True, None) is True
    assert k_or(False, None) is None
    assert k_not(None) is None


def test_exact_evaluation_on_complete_store(graph, cycle_store, chain_store):
    model, _, ev = graph
    acyclic = model.predicates["Acyclic"].body
    assert ev.holds(acyclic, chain_store) is True
    assert ev.holds(acyclic, cycle_store) is False


def test_last_failure_records_first_failing_binding(graph, cycle_store):
    model, _, ev = graph
    assert ev.holds(model.predicates["Acyclic"].body, cycle_store) is False
    assert ev.last_failure is not None
    assert ev.last_failure.binding == {"n": "Node$0"}


def test_last_failure_cleared_on_success(graph, cycle_store, chain_store):
    model, _, ev = graph
    ev.holds(model.predicates["Acyclic"].body, cycle_store)
    ev.holds(model.predicates["Acyclic"].body, chain_store)
    assert ev.last_failure is None


def test_undecided_relations_give_deferred_value(graph_model, graph):
    _, pool, ev = graph
    store = RelationStore.initial(graph_model, pool)
    some_edge = parse_formula(["some", "edge"])
    assert ev.evaluate(some_edge, store) is None
    assert ev.evaluate_int(Card(Rel("edge")), store) == (0, 4)

    store, _ = store.apply([("edge", (0, 1), True)])
    assert ev.evaluate(some_edge, store) is True
    assert ev.evaluate(parse_formula(["no", "edge"]), store) is False


def test_holds_rejects_undecided_formula(graph_model, graph):
    _, pool, ev = graph
    store = RelationStore.initial(graph_model, pool)
    with pytest.raises(EvaluationError):
        ev.holds(parse_formula(["some", "edge"]), store)
    with pytest.raises(EvaluationError):
        ev.value(Rel("edge"), store)


def test_quantifier_kinds(graph, chain_store):
    _, _, ev = graph
    has_successor = ["some", [".", "x", "edge"]]
    for kind, expected in [("all", False), ("some", True), ("no", False), ("one", True), ("lone", True)]:
        f = parse_formula([kind, [["x", "Node"]], has_successor])
        assert ev.evaluate(f, chain_store) is expected, kind


def test_predicate_and_function_calls(graph, chain_store, cycle_store):
    _, _, ev = graph
    reach = parse_formula(["some", [["a", "Node"], ["b", "Node"]], ["call", "Reaches", "a", "b"]])
    assert ev.evaluate(reach, chain_store) is True
    self_reach = parse_formula(["some", [["a", "Node"]], ["call", "Reaches", "a", "a"]])
    assert ev.evaluate(self_reach, chain_store) is False
    assert ev.evaluate(self_reach, cycle_store) is True


def test_relational_operators(graph, chain_store):
    _, _, ev = graph
    assert ev.value(parse_expr(["~", "edge"]), chain_store) == {(1, 0)}
    assert ev.value(parse_expr(["*", "edge"]), chain_store) == {(0, 0), (1, 1), (0, 1)}
    assert ev.value(parse_expr(["-", "Node", [".", "edge", "Node"]]), chain_store) == {(1,)}
    assert ev.value(parse_expr(["->", "Node", "Node"]), chain_store) == {
        (0, 0), (0, 1), (1, 0), (1, 1)
    }
    assert ev.value(parse_expr(["let", "s", [".", "Node", "edge"], ["+", "s", "s"]]), chain_store) == {(1,)}


def test_domain_and_range_restriction(graph, graph_model, cycle_store):
    _, pool, ev = graph
    env = {"x": _exact([(0,)])}
    dom = parse_expr(["<:", "x", "edge"], frozenset({"x"}))
    rng = parse_expr([":>", "edge", "x"], frozenset({"x"}))
    assert ev.evaluate_expr(dom, cycle_store, env) == _exact([(0, 1)])
    assert ev.evaluate_expr(rng, cycle_store, env) == _exact([(1, 0)])

    store = RelationStore.initial(graph_model, pool)
    b = ev.evaluate_expr(parse_expr(["<:", "Node", "edge"]), store)
    assert b.lower == frozenset()
    assert len(b.upper) == 4


def test_witnesses_enumerate_bindings(graph, chain_store):
    _, _, ev = graph
    q = parse_formula(["some", [["x", "Node"]], ["some", [".", "x", "edge"]]])
    assert list(ev.witnesses(q, chain_store)) == [{"x": (0,)}]
    assert list(ev.witnesses(q, chain_store, satisfying=False)) == [{"x": (1,)}]


def test_unknown_relation_is_evaluation_error(graph, chain_store):
    _, _, ev = graph
    with pytest.raises(EvaluationError):
        ev.evaluate(Subset(Rel("ghost"), Rel("Node")), chain_store)


def test_call_depth_is_bounded():
    model = Model(
        name="loop",
        sigs={"A": Sig("A")},
        functions={"f": Function("f", (), Call("f"))},
    )
    pool = AtomPool(model, resolve("1", model))
    ev = Evaluator(model, pool)
    store = RelationStore.initial(model, pool)
    with pytest.raises(EvaluationError):
        ev.evaluate_expr(Call("f"), store)
