from __future__ import annotations

import json

import pytest

import solver
from sf.cli import main
from solver import InternalInvariantViolation, SearchTimeout


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch, tmp_path):
    for name in ("SF_BUDGET_NODES", "SF_BUDGET_SECONDS", "SF_WORKERS"):
        monkeypatch.delenv(name, raising=False)
    # .env z katalogu repozytorium nie może wpływać na testy
    monkeypatch.chdir(tmp_path)


def _exit_code(argv: list[str]) -> int:
    with pytest.raises(SystemExit) as exc:
        main(argv)
    return exc.value.code


# ---------------------------------------------------------------------------
# validate
# ---------------------------------------------------------------------------

def test_validate_ok(write_model, graph_raw, capsys):
    main(["validate", write_model(graph_raw)])
    assert "OK" in capsys.readouterr().out


def test_validate_invalid_model(write_model, graph_raw, capsys):
    graph_raw["facts"] = [{"name": "bad", "body": ["some", "ghost"]}]
    assert _exit_code(["validate", write_model(graph_raw)]) == 1
    assert "E_UNKNOWN_NAME" in capsys.readouterr().out


def test_validate_missing_file(tmp_path):
    assert _exit_code(["validate", str(tmp_path / "nope.json")]) == 1


def test_validate_json(write_model, graph_raw, capsys):
    main(["validate", write_model(graph_raw), "--json"])
    out = json.loads(capsys.readouterr().out)
    assert out == {"model": "graph", "is_valid": True, "errors": [], "warnings": []}


# ---------------------------------------------------------------------------
# solve
# ---------------------------------------------------------------------------

def test_solve_all_commands_json(write_model, graph_raw, capsys):
    main(["solve", write_model(graph_raw), "--json"])
    reports = json.loads(capsys.readouterr().out)
    assert [r["command"] for r in reports] == [
        "AcyclicOne", "AcyclicTwo", "EdgeOne", "EdgeTwo", "ReachTwo",
    ]
    assert all(r["matches"] for r in reports)
    assert reports[1]["verdict"] == "counterexample"


def test_solve_text_output(write_model, graph_raw, capsys):
    main(["solve", write_model(graph_raw), "-c", "AcyclicTwo"])
    out = capsys.readouterr().out
    assert "COUNTEREXAMPLE" in out
    assert "Node$0" in out


def test_solve_mismatch_exits_1(write_model, graph_raw):
    graph_raw["commands"] = [
        {"name": "Cyclic", "kind": "check", "target": "Acyclic", "scope": "2"},
    ]
    assert _exit_code(["solve", write_model(graph_raw)]) == 1


def test_solve_budget_exits_2(write_model, graph_raw):
    argv = ["solve", write_model(graph_raw), "-c", "AcyclicTwo", "--budget-nodes", "1"]
    assert _exit_code(argv) == 2


def test_solve_budget_from_env(write_model, graph_raw, monkeypatch):
    monkeypatch.setenv("SF_BUDGET_NODES", "1")
    assert _exit_code(["solve", write_model(graph_raw), "-c", "AcyclicTwo"]) == 2


def test_solve_errors_exit_3(write_model, graph_raw, tmp_path):
    path = write_model(graph_raw)
    assert _exit_code(["solve", path, "-c", "Missing"]) == 3
    assert _exit_code(["solve", str(tmp_path / "nope.json")]) == 3

    solo = {
        "model": "solo",
        "sigs": [{"name": "Solo", "mult": "one"}],
        "predicates": [{"name": "Any", "body": True}],
        "commands": [{"name": "Two", "kind": "run", "target": "Any", "scope": "2 Solo"}],
    }
    assert _exit_code(["solve", write_model(solo, "solo.json")]) == 3


def test_solve_limit_lists_instances(write_model, graph_raw, capsys):
    main(["solve", write_model(graph_raw), "-c", "EdgeTwo", "--limit", "3", "--json"])
    (report,) = json.loads(capsys.readouterr().out)
    assert 1 <= len(report["instances"]) <= 3


def test_solve_limit_timeout_keeps_json_clean(write_model, graph_raw, capsys, monkeypatch):
    def exhausted(*args, **kwargs):
        raise SearchTimeout(5, 0.1)

    monkeypatch.setattr(solver, "enumerate_instances", exhausted)
    main(["solve", write_model(graph_raw), "-c", "EdgeTwo", "--limit", "3", "--json"])
    captured = capsys.readouterr()
    (report,) = json.loads(captured.out)
    assert report["verdict"] == "satisfiable"
    assert "instances" not in report
    assert "Enumeracja instancji przerwana" in captured.err


def test_solve_limit_internal_error_exits_3(write_model, graph_raw, capsys, monkeypatch):
    def broken(*args, **kwargs):
        raise InternalInvariantViolation("irreflexive", None, {})

    monkeypatch.setattr(solver, "enumerate_instances", broken)
    argv = ["solve", write_model(graph_raw), "-c", "EdgeTwo", "--limit", "3", "--json"]
    assert _exit_code(argv) == 3
    assert "irreflexive" in capsys.readouterr().err


# ---------------------------------------------------------------------------
# sigs / scope
# ---------------------------------------------------------------------------

def test_sigs_lists_fields(write_model, graph_raw, capsys):
    main(["sigs", write_model(graph_raw)])
    out = capsys.readouterr().out
    assert "Node" in out
    assert "edge" in out


def test_sigs_model_error(tmp_path):
    assert _exit_code(["sigs", str(tmp_path / "nope.json")]) == 3


def test_scope_from_text(write_model, graph_raw, capsys):
    main(["scope", write_model(graph_raw), "--scope", "2"])
    out = capsys.readouterr().out
    assert "Node$0" in out
    assert "Node$1" in out


def test_scope_from_command(write_model, graph_raw, capsys):
    main(["scope", write_model(graph_raw), "--command", "AcyclicOne"])
    out = capsys.readouterr().out
    assert "Node$0" in out
    assert "Node$1" not in out


def test_scope_unknown_command(write_model, graph_raw):
    assert _exit_code(["scope", write_model(graph_raw), "--command", "Missing"]) == 3
