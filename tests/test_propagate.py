from __future__ import annotations

import pytest

from solver import AtomPool, Bounds, Conflict, Evaluator, RelationStore, parse_expr, parse_formula, resolve
from solver.propagate import Propagator


@pytest.fixture
def setup(graph_model):
    pool = AtomPool(graph_model, resolve("2", graph_model))
    prop = Propagator(Evaluator(graph_model, pool))
    return prop, RelationStore.initial(graph_model, pool)


@pytest.fixture
def nodes_store(setup):
    """Oba węzły obecne, krawędzie nieustalone."""
    _, store = setup
    store, _ = store.apply([("Node", (0,), True), ("Node", (1,), True)])
    return store


def test_no_excludes_every_candidate(setup):
    prop, store = setup
    literals = prop.force(parse_formula(["no", "edge"]), True, store)
    assert literals == [
        ("edge", (0, 0), False),
        ("edge", (0, 1), False),
        ("edge", (1, 0), False),
        ("edge", (1, 1), False),
    ]


def test_subset_pushes_lower_bound_through_transpose(setup):
    prop, store = setup
    store, _ = store.apply([("edge", (0, 1), True)])
    literals = prop.force(parse_formula(["in", "edge", ["~", "edge"]]), True, store)
    assert literals == [("edge", (1, 0), True)]


def test_force_against_known_value_conflicts(setup):
    prop, store = setup
    store, _ = store.apply([("edge", (0, 1), True)])
    with pytest.raises(Conflict):
        prop.force(parse_formula(["no", "edge"]), True, store)


def test_already_satisfied_forces_nothing(setup):
    prop, store = setup
    store, _ = store.apply([("edge", (0, 1), True)])
    assert prop.force(parse_formula(["some", "edge"]), True, store) == []


def test_cardinality_upper_bound(setup):
    prop, store = setup
    literals = prop.force(parse_formula(["<=", ["#", "edge"], 0]), True, store)
    assert {lit[1] for lit in literals} == {(0, 0), (0, 1), (1, 0), (1, 1)}
    assert all(lit[2] is False for lit in literals)


def test_join_exclusion_reaches_relation(nodes_store, setup):
    prop, _ = setup
    literals = prop.force_tuple(parse_expr([".", "Node", "edge"]), (1,), False, nodes_store)
    assert literals == [("edge", (0, 1), False), ("edge", (1, 1), False)]


def test_join_single_candidate_is_included(nodes_store, setup):
    prop, _ = setup
    joined = parse_expr([".", "Node", "edge"])
    # dwóch kandydatów: (0, 1) i (1, 1)
    assert prop.force_tuple(joined, (1,), True, nodes_store) == []
    store, _ = nodes_store.apply([("edge", (1, 1), False)])
    assert prop.force_tuple(joined, (1,), True, store) == [("edge", (0, 1), True)]


def test_universal_quantifier_forces_each_binding(nodes_store, setup):
    prop, _ = setup
    f = parse_formula(["all", [["n", "Node"]], ["not", ["in", "n", [".", "n", "edge"]]]])
    assert prop.force(f, True, nodes_store) == [
        ("edge", (0, 0), False),
        ("edge", (1, 1), False),
    ]


def test_existential_single_candidate(nodes_store, setup):
    prop, _ = setup
    store, _ = nodes_store.apply([("edge", (0, 0), False), ("edge", (1, 0), False), ("edge", (1, 1), False)])
    f = parse_formula(["some", [["n", "Node"]], ["some", [".", "n", "edge"]]])
    assert prop.force(f, True, store) == [("edge", (0, 1), True)]


def test_implication_forces_consequent(nodes_store, setup):
    prop, _ = setup
    store, _ = nodes_store.apply([("edge", (0, 1), True)])
    f = parse_formula(["=>", ["some", "edge"], ["in", "edge", ["~", "edge"]]])
    assert prop.force(f, True, store) == [("edge", (1, 0), True)]


def test_restriction_forces_relation_tuple(nodes_store, setup):
    prop, _ = setup
    env = {"x": Bounds(frozenset({(1,)}), frozenset({(1,)}))}
    rng = parse_expr([":>", "edge", "x"], frozenset({"x"}))
    assert prop.force_tuple(rng, (0, 1), True, nodes_store, env) == [("edge", (0, 1), True)]
    assert prop.force_tuple(rng, (0, 1), False, nodes_store, env) == [("edge", (0, 1), False)]
