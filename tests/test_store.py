from __future__ import annotations

import pytest

from solver import AtomPool, Bounds, Conflict, RelationStore, resolve
from solver.store import (
    closure,
    difference,
    intersection,
    join,
    ordering_tuples,
    product,
    restrict,
    transpose,
    union,
)


def test_join_matches_adjacent_columns():
    a = frozenset({(1, 2), (3, 4)})
    b = frozenset({(2, 5), (2, 6), (7, 8)})
    assert join(a, b) == {(1, 5), (1, 6)}
    assert join(frozenset(), b) == frozenset()


def test_product_and_transpose():
    a = frozenset({(1,), (2,)})
    b = frozenset({(3,)})
    assert product(a, b) == {(1, 3), (2, 3)}
    assert transpose(product(a, b)) == {(3, 1), (3, 2)}


def test_closure_is_transitive():
    r = frozenset({(1, 2), (2, 3), (3, 4)})
    assert closure(r) == {(1, 2), (2, 3), (3, 4), (1, 3), (2, 4), (1, 4)}


def test_set_operators_and_restriction():
    a = frozenset({(1, 2), (3, 4)})
    b = frozenset({(3, 4), (5, 6)})
    assert union(a, b) == {(1, 2), (3, 4), (5, 6)}
    assert intersection(a, b) == {(3, 4)}
    assert difference(a, b) == {(1, 2)}
    assert restrict(a | b, 0, [1, 5]) == {(1, 2), (5, 6)}
    assert restrict(a | b, -1, [4]) == {(3, 4)}


def test_ordering_tuples_follow_present_prefix():
    order = (7, 8, 9)
    two = ordering_tuples(order, 2)
    assert two["first"] == {(7,)}
    assert two["last"] == {(8,)}
    assert two["next"] == two["nexts"] == {(7, 8)}
    assert two["prevs"] == {(8, 7)}
    assert all(not ts for ts in ordering_tuples(order, 0).values())
    assert ordering_tuples(order, 3)["nexts"] == {(7, 8), (7, 9), (8, 9)}


def test_bounds_three_valued_membership():
    b = Bounds(frozenset({(1,)}), frozenset({(1,), (2,)}))
    assert b.contains((1,)) is True
    assert b.contains((2,)) is None
    assert b.contains((3,)) is False
    assert not b.exact


def test_apply_narrows_and_reports_changes():
    store = RelationStore({"r": Bounds(frozenset(), frozenset({(1,), (2,)}))})
    new, changed = store.apply([("r", (1,), True), ("r", (2,), False)])
    assert changed == {"r"}
    assert new.bounds("r") == Bounds(frozenset({(1,)}), frozenset({(1,)}))
    assert new.is_complete()
    # oryginał bez zmian
    assert store.contains("r", (1,)) is None


def test_apply_without_effect_returns_same_store():
    store = RelationStore({"r": Bounds(frozenset({(1,)}), frozenset({(1,)}))})
    new, changed = store.apply([("r", (1,), True), ("r", (5,), False)])
    assert new is store
    assert changed == set()


def test_apply_conflicts():
    store = RelationStore({"r": Bounds(frozenset({(1,)}), frozenset({(1,), (2,)}))})
    with pytest.raises(Conflict):
        store.apply([("r", (3,), True)])
    with pytest.raises(Conflict):
        store.apply([("r", (1,), False)])


def test_include_and_exclude():
    store = RelationStore({"r": Bounds(frozenset({(1,)}), frozenset({(1,), (2,)}))})
    assert store.include("r", (2,)).contains("r", (2,)) is True
    assert store.exclude("r", (2,)).bounds("r").upper == {(1,)}
    assert store.include("r", (1,)) is store
    with pytest.raises(Conflict):
        store.include("r", (3,))
    with pytest.raises(Conflict):
        store.exclude("r", (1,))


def test_assign_outside_bounds_conflicts():
    store = RelationStore({"r": Bounds(frozenset({(1,)}), frozenset({(1,), (2,)}))})
    assert store.assign("r", [(1,), (2,)]).tuples("r") == {(1,), (2,)}
    with pytest.raises(Conflict):
        store.assign("r", [(2,)])


def test_initial_store_bounds(ros_model):
    pool = AtomPool(ros_model, resolve("3 but exactly 5 Time, 4 Event, exactly 0 Attacker", ros_model))
    store = RelationStore.initial(ros_model, pool)
    times = pool.ordering("Time")

    assert store.bounds("Time/first").lower == {(times[0],)}
    assert store.bounds("Time/last").lower == {(times[-1],)}
    assert store.tuples("Time/next") == set(zip(times, times[1:]))
    assert len(store.tuples("Time/nexts")) == 10
    assert store.is_committed("Time")

    joystick = pool.fixed("Joystick")[0]
    assert store.contains("Joystick", (joystick,)) is True
    assert store.tuples("mapping") == frozenset()
    # mapping: Joystick x JoyIn x (2 kandydatów Twist)
    assert len(store.bounds("mapping").upper) == 2
    assert not store.is_complete()


def test_initial_ordering_bounds_cover_every_prefix(ticks_model):
    pool = AtomPool(ticks_model, resolve("3", ticks_model))
    store = RelationStore.initial(ticks_model, pool)
    a, b, c = pool.ordering("Tick")

    assert store.bounds("Tick/first") == Bounds(frozenset(), frozenset({(a,)}))
    assert store.bounds("Tick/last").upper == {(a,), (b,), (c,)}
    assert store.bounds("Tick/next") == Bounds(frozenset(), frozenset({(a, b), (b, c)}))
    assert store.bounds("Tick/prevs").upper == {(b, a), (c, a), (c, b)}
    assert not store.is_committed("Tick")
