"""
solver/report.py — raport wyniku polecenia jako zwykły słownik (JSON-owalny).

render(result) → {
    "command", "kind", "target", "verdict", "expected", "matches",
    "bounded", "summary",
    "scope":    {"spec": "3 but 5 Time", "sigs": {S: {"lower", "upper"}}},
    "instance": None | {
        "atoms":     {Sig: ["Sig$0", ...]}        wg najbardziej szczegółowej sygnatury
        "relations": {Owner: {rel: [[a, b], ...]}} pola wg sygnatury-właściciela,
                                                   relacje globalne pod ""
    },
    "witness":  None | {var: "Atom$k" albo "A$0->B$1"},
    "stats":    {"nodes", "conflicts", "propagations", "pruned", "elapsed"},
}
"""

from __future__ import annotations

import json
from typing import Any

from data_model.expressions import Formula, Not, PredCall, Quant
from data_model.model import Model

from .checker import CheckResult
from .evaluator import Evaluator
from .instance import Instance
from .store import Bounds, RelationStore


def _store_of(instance: Instance) -> RelationStore:
    return RelationStore({name: Bounds(ts, ts) for name, ts in instance.relations.items()})


def witness(model: Model, instance: Instance, goal: Formula) -> dict[str, str] | None:
    """
    Wiązanie zewnętrznego kwantyfikatora celu: dla ¬(all ...) pierwsze
    wiązanie łamiące ciało, dla (some ...) pierwsze spełniające.
    Wywołanie predykatu bez parametrów jest rozwijane do jego ciała.
    """
    negated = False
    f: Formula = goal
    while True:
        if isinstance(f, Not):
            negated = not negated
            f = f.formula
        elif isinstance(f, PredCall) and not f.args and f.name in model.predicates:
            f = model.predicates[f.name].body
        else:
            break
    if not isinstance(f, Quant):
        return None
    if (f.kind, negated) == ("all", True):
        satisfying = False
    elif (f.kind, negated) == ("some", False):
        satisfying = True
    else:
        return None

    ev = Evaluator(model, instance.pool)
    for binding in ev.witnesses(f, _store_of(instance), satisfying=satisfying):
        return {var: "->".join(instance.labels(t)) for var, t in binding.items()}
    return None


def render_instance(instance: Instance) -> dict[str, Any]:
    model = instance.model
    atoms: dict[str, list[str]] = {}
    for name in model.sigs:
        members = [instance.label(a) for a in instance.atoms(name) if instance.tag(a) == name]
        if members:
            atoms[name] = members

    relations: dict[str, dict[str, list[list[str]]]] = {}
    for rel in model.relations.values():
        owner = rel.owner or ""
        relations.setdefault(owner, {})[rel.name] = [list(t) for t in instance.named(rel.name)]
    return {"atoms": atoms, "relations": relations}


def render(result: CheckResult) -> dict[str, Any]:
    table = result.table
    report: dict[str, Any] = {
        "command":  result.command,
        "kind":     str(result.kind),
        "target":   result.target,
        "verdict":  str(result.verdict),
        "expected": str(result.expected),
        "matches":  result.matches,
        "bounded":  result.bounded,
        "summary":  result.summary(),
        "scope": {
            "spec": str(table.spec),
            "sigs": {
                name: {"lower": b.lower, "upper": b.upper}
                for name, b in table.bounds.items()
            },
        },
        "instance": None,
        "witness":  None,
        "stats":    result.stats.as_dict(),
    }
    if result.instance is not None:
        report["instance"] = render_instance(result.instance)
        report["witness"] = witness(result.instance.model, result.instance, result.goal)
    return report


def to_json(report: dict[str, Any] | list[dict[str, Any]]) -> str:
    return json.dumps(report, ensure_ascii=False, indent=2)
