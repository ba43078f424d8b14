from __future__ import annotations

from data_model.expressions import Not, PredCall, Quant
from data_model.model import CommandKind
from solver import SearchOptions, Status, Verdict, check, enumerate_instances, execute, resolve, run, solve
from solver.checker import goal_formula, property_formula


def test_check_is_verified_when_negation_unsat(graph_model):
    result = check(graph_model, "Acyclic", "1")
    assert result.verdict == Verdict.VERIFIED
    assert result.instance is None
    assert result.bounded
    goal = goal_formula(graph_model, "Acyclic", CommandKind.CHECK)
    assert solve(graph_model, goal, resolve("1", graph_model)).status == Status.UNSAT


def test_check_counterexample_violates_property(graph_model):
    result = check(graph_model, "Acyclic", "2")
    assert result.verdict == Verdict.COUNTEREXAMPLE
    assert result.instance.named("edge") == [("Node$0", "Node$1"), ("Node$1", "Node$0")]


def test_run_satisfiable_and_unsatisfiable(graph_model):
    assert run(graph_model, "HasEdge", "2").verdict == Verdict.SATISFIABLE
    assert run(graph_model, "HasEdge", "1").verdict == Verdict.UNSATISFIABLE


def test_verified_summary_states_scope_limit(graph_model):
    summary = check(graph_model, "Acyclic", "1").summary()
    assert "1" in summary
    assert "nie jest dowód" in summary


def test_execute_uses_command_expectation(graph_model):
    result = execute(graph_model, "AcyclicTwo")
    assert result.command == "AcyclicTwo"
    assert result.expected == Verdict.COUNTEREXAMPLE
    assert result.matches

    result = execute(graph_model, "EdgeOne")
    assert result.verdict == Verdict.UNSATISFIABLE
    assert result.matches


def test_default_expectations(graph_model):
    assert execute(graph_model, "AcyclicOne").expected == Verdict.VERIFIED
    assert execute(graph_model, "EdgeTwo").expected == Verdict.SATISFIABLE


def test_timeout_is_never_verified(graph_model):
    result = check(graph_model, "Acyclic", "2", SearchOptions(max_nodes=1))
    assert result.verdict == Verdict.TIMEOUT
    assert not result.matches
    assert "budżet" in result.summary()


def test_params_are_quantified_by_kind(graph_model):
    checked = property_formula(graph_model, "Reaches", CommandKind.CHECK)
    assert isinstance(checked, Quant) and checked.kind == "all"
    assert [d.var for d in checked.decls] == ["a", "b"]

    ran = property_formula(graph_model, "Reaches", CommandKind.RUN)
    assert isinstance(ran, Quant) and ran.kind == "some"

    goal = goal_formula(graph_model, "Acyclic", CommandKind.CHECK)
    assert goal == Not(PredCall("Acyclic"))


def test_run_with_params(graph_model):
    result = execute(graph_model, "ReachTwo")
    assert result.verdict == Verdict.SATISFIABLE
    assert result.instance.tuples("edge")


def test_enumerate_counterexamples(graph_model):
    instances = list(enumerate_instances(graph_model, "AcyclicTwo", limit=5))
    assert len(instances) == 1
    assert instances[0].named("edge") == [("Node$0", "Node$1"), ("Node$1", "Node$0")]
