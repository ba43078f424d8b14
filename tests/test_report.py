from __future__ import annotations

import json

from solver import execute, render, to_json


def test_counterexample_report(graph_model):
    report = render(execute(graph_model, "AcyclicTwo"))

    assert report["command"] == "AcyclicTwo"
    assert report["kind"] == "check"
    assert report["verdict"] == "counterexample"
    assert report["expected"] == "counterexample"
    assert report["matches"] is True
    assert report["bounded"] is True
    assert report["scope"]["spec"] == "2"
    assert report["scope"]["sigs"]["Node"] == {"lower": 0, "upper": 2}

    inst = report["instance"]
    assert inst["atoms"] == {"Node": ["Node$0", "Node$1"]}
    assert inst["relations"] == {
        "Node": {"edge": [["Node$0", "Node$1"], ["Node$1", "Node$0"]]},
    }
    # pierwszy węzeł, dla którego Acyclic nie zachodzi
    assert report["witness"] == {"n": "Node$0"}


def test_verified_report_has_no_instance(graph_model):
    report = render(execute(graph_model, "AcyclicOne"))
    assert report["verdict"] == "verified"
    assert report["instance"] is None
    assert report["witness"] is None
    assert set(report["stats"]) == {"nodes", "conflicts", "propagations", "pruned", "elapsed"}


def test_run_witness_binds_params(graph_model):
    report = render(execute(graph_model, "ReachTwo"))
    assert report["verdict"] == "satisfiable"
    witness = report["witness"]
    assert set(witness) == {"a", "b"}
    assert all(v.startswith("Node$") for v in witness.values())


def test_to_json_roundtrip(graph_model):
    reports = [render(execute(graph_model, name)) for name in ("AcyclicOne", "AcyclicTwo")]
    text = to_json(reports)
    assert json.loads(text) == reports
    assert "\n  " in text
