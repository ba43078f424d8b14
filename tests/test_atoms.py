from __future__ import annotations

import pytest

from solver import AtomPool, load_model_dict, resolve


@pytest.fixture
def pool(ros_model):
    return AtomPool(ros_model, resolve("3 but exactly 5 Time, 4 Event, exactly 0 Attacker", ros_model))


def test_pool_size_and_free_atoms(pool):
    # 5 Time + Joystick, Wheel + CmdVel + JoyIn i 2 wolne Data + 4 wolne Event
    assert len(pool) == 15
    assert len(pool.free_atoms()) == 6


def test_exact_ordered_sig_atoms_are_fixed(pool):
    order = pool.ordering("Time")
    assert [pool.name(a) for a in order] == [f"Time${k}" for k in range(5)]
    assert pool.fixed("Time") == order
    assert not any(pool.is_free(a) for a in order)


def test_one_sigs_get_dedicated_atoms(pool):
    assert [pool.name(a) for a in pool.fixed("Component")] == ["Joystick$0", "Wheel$0"]
    assert pool.atoms("Attacker") == ()
    assert pool.count("CmdVel") == 1


def test_free_atoms_carry_tag_options(pool):
    twists = pool.atoms("Twist")
    assert len(twists) == 2
    for a in twists:
        assert pool.tags(a) == (None, "Twist")
        assert pool.top(a) == "Data"
    events = pool.atoms("Event")
    assert [pool.name(a) for a in events] == [f"Event${k}" for k in range(4)]
    assert pool.tags(events[0]) == (None, "Publish", "Callback")
    assert pool.atoms("Publish") == events


def test_in_sig_follows_hierarchy(pool):
    assert pool.in_sig("Publish", "Event")
    assert not pool.in_sig("Publish", "Callback")
    assert not pool.in_sig(None, "Event")


def test_iter_atoms_restarts(pool):
    assert list(pool.iter_atoms("Event")) == list(pool.iter_atoms("Event"))


def test_ordered_sig_atoms_below_bound_are_optional(ros_model):
    pool = AtomPool(ros_model, resolve("3 but 5 Time, 4 Event, exactly 0 Attacker", ros_model))
    order = pool.ordering("Time")
    assert [pool.name(a) for a in order] == [f"Time${k}" for k in range(5)]
    assert pool.fixed("Time") == ()
    assert all(pool.tags(a) == (None, "Time") and pool.is_ordered(a) for a in order)
    assert len(pool.free_atoms()) == 11


def test_some_ordered_sig_fixes_first_atom(ticks_model):
    pool = AtomPool(ticks_model, resolve("3", ticks_model))
    assert pool.fixed("Tick") == ()

    model = load_model_dict({
        "model": "steps",
        "sigs": [{"name": "Step", "ordered": True, "mult": "some"}],
        "predicates": [{"name": "Any", "body": True}],
    })
    pool = AtomPool(model, resolve("3", model))
    order = pool.ordering("Step")
    assert pool.fixed("Step") == order[:1]
    assert [pool.tags(a) for a in order[1:]] == [(None, "Step")] * 2
