from __future__ import annotations

import copy
import json
import pathlib

import pytest

from solver import load_model, load_model_dict

ROOT = pathlib.Path(__file__).resolve().parent.parent
ROS_MODEL = ROOT / "models" / "ros_cmdvel.json"

# Graf skierowany bez pętli własnych; Acyclic ma kontrprzykład dopiero od 2 węzłów.
GRAPH = {
    "model": "graph",
    "sigs": [
        {"name": "Node", "fields": [{"name": "edge", "cols": ["Node"]}]},
    ],
    "facts": [
        {"name": "irreflexive", "body": ["no", ["&", "edge", "iden"]]},
    ],
    "predicates": [
        {"name": "Acyclic", "body": ["all", [["n", "Node"]],
            ["not", ["in", "n", [".", "n", ["^", "edge"]]]]]},
        {"name": "HasEdge", "body": ["some", "edge"]},
        {"name": "Reaches", "params": [["a", "Node"], ["b", "Node"]],
         "body": ["in", "b", [".", "a", ["^", "edge"]]]},
    ],
    "commands": [
        {"name": "AcyclicOne", "kind": "check", "target": "Acyclic", "scope": "1"},
        {"name": "AcyclicTwo", "kind": "check", "target": "Acyclic", "scope": "2",
         "expect": "counterexample"},
        {"name": "EdgeOne", "kind": "run", "target": "HasEdge", "scope": "1",
         "expect": "unsatisfiable"},
        {"name": "EdgeTwo", "kind": "run", "target": "HasEdge", "scope": "2"},
        {"name": "ReachTwo", "kind": "run", "target": "Reaches", "scope": "2"},
    ],
}

# Jedna sygnatura bez pól: instancje to podzbiory puli atomów.
BAG = {
    "model": "bag",
    "sigs": [{"name": "Item"}],
    "predicates": [{"name": "Anything", "body": True}],
    "commands": [{"name": "AllBags", "kind": "run", "target": "Anything", "scope": "3"}],
}


# Jedna sygnatura uporządkowana; obecne atomy zawsze tworzą prefiks porządku.
TICKS = {
    "model": "ticks",
    "sigs": [{"name": "Tick", "ordered": True}],
    "predicates": [
        {"name": "AtMostTwo", "body": ["<=", ["#", "Tick"], 2]},
        {"name": "ExactlyTwo", "body": ["=", ["#", "Tick"], 2]},
        {"name": "Anything", "body": True},
    ],
    "commands": [
        {"name": "SmallTwo", "kind": "run", "target": "AtMostTwo", "scope": "2 Tick"},
        {"name": "SmallThree", "kind": "run", "target": "AtMostTwo", "scope": "3 Tick"},
    ],
}


@pytest.fixture
def graph_raw():
    return copy.deepcopy(GRAPH)


@pytest.fixture
def graph_model():
    return load_model_dict(copy.deepcopy(GRAPH))


@pytest.fixture
def bag_model():
    return load_model_dict(copy.deepcopy(BAG))


@pytest.fixture(scope="session")
def ros_model():
    return load_model(ROS_MODEL)


@pytest.fixture
def write_model(tmp_path):
    """Zapisuje słownik modelu do pliku JSON i zwraca ścieżkę jako str."""
    def write(raw: dict, name: str = "model.json") -> str:
        path = tmp_path / name
        path.write_text(json.dumps(raw, ensure_ascii=False), encoding="utf-8")
        return str(path)
    return write


@pytest.fixture
def ros_raw():
    return json.loads(ROS_MODEL.read_text(encoding="utf-8"))


@pytest.fixture
def ticks_model():
    return load_model_dict(copy.deepcopy(TICKS))
