"""
solver/loader.py — ładowanie modelu z pliku JSON do struktur data_model.

Publiczne API:
  load_model(path)          -> Model   (ModelError przy błędach JSON/walidacji)
  load_model_dict(raw)      -> Model
  parse_expr(node, bound)   -> Expr     S-wyrażenie → wyrażenie relacyjne
  parse_formula(node, bound)-> Formula  S-wyrażenie → formuła

S-wyrażenia:
  "Name"                    zmienna (gdy związana), univ/none/iden, sygnatura,
                            relacja albo relacja porządku ("Time/next")
  3                         literał całkowity
  true / false              formuła stała
  [".", a, b, ...]          złączenie (lewostronne), także "->", "+", "-", "&"
  ["<:", s, r] [":>", r, s] zawężenie dziedziny / przeciwdziedziny do zbioru s
  ["~", r] ["^", r] ["*", r]
  ["#", e]                  liczność
  ["in", a, b] ["=", a, b] ["!=", a, b] ["<", i, j] ...
  ["not", f] ["and", f...] ["or", f...] ["=>", f, g] ["<=>", f, g]
  ["all", [["x", D], ...], f]   kwantyfikator (też some/no/one/lone)
  ["some", e]                   test krotności (też no/one/lone)
  ["let", "x", e, body]  ["call", name, args...]
"""

from __future__ import annotations

import json
import logging
import pathlib
from typing import Any

from data_model.expressions import (
    COMPARISONS,
    MULTIPLICITIES,
    QUANTIFIERS,
    And,
    Call,
    Card,
    Closure,
    Compare,
    Const,
    Decl,
    Diff,
    Equal,
    Expr,
    Formula,
    Iff,
    Implies,
    IntExpr,
    IntLit,
    Intersect,
    Let,
    Mult,
    Not,
    Or,
    PredCall,
    Quant,
    Rel,
    Restrict,
    Subset,
    Transpose,
    Truth,
    Var,
    join_all,
    product_all,
    union_all,
)
from data_model.model import Command, CommandKind, Fact, Function, Model, Predicate
from data_model.signatures import BUILTIN_CONSTS, Multiplicity, Relation, Sig
from validator import ModelValidator

from .errors import ModelError

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# S-wyrażenia
# ---------------------------------------------------------------------------

def _is_int_node(node: Any) -> bool:
    if isinstance(node, bool):
        return False
    return isinstance(node, int) or (isinstance(node, list) and bool(node) and node[0] == "#")


def parse_expr(node: Any, bound: frozenset[str] = frozenset()) -> Expr:
    if isinstance(node, str):
        if node in bound:
            return Var(node)
        if node in BUILTIN_CONSTS:
            return Const(node)
        return Rel(node)
    if not isinstance(node, list) or not node:
        raise ModelError(f"Niepoprawne wyrażenie relacyjne: {node!r}")

    op, args = node[0], node[1:]
    if op in (".", "->", "+", "&", "-", "<:", ":>"):
        parts = [parse_expr(a, bound) for a in args]
        if op == ".":
            return join_all(*parts)
        if op == "->":
            return product_all(*parts)
        if op == "+":
            return union_all(*parts)
        out = parts[0]
        for p in parts[1:]:
            if op == "&":
                out = Intersect(out, p)
            elif op == "-":
                out = Diff(out, p)
            else:
                out = Restrict(out, p, domain=op == "<:")
        return out
    if op == "~":
        return Transpose(parse_expr(args[0], bound))
    if op in ("^", "*"):
        return Closure(parse_expr(args[0], bound), reflexive=op == "*")
    if op == "let":
        var, value, body = args
        return Let(var, parse_expr(value, bound), parse_expr(body, bound | {var}))
    if op == "call":
        return Call(args[0], tuple(parse_expr(a, bound) for a in args[1:]))
    raise ModelError(f"'{op}' nie jest operatorem wyrażenia relacyjnego.")


def parse_int(node: Any, bound: frozenset[str] = frozenset()) -> IntExpr:
    if isinstance(node, int) and not isinstance(node, bool):
        return IntLit(node)
    if isinstance(node, list) and len(node) == 2 and node[0] == "#":
        return Card(parse_expr(node[1], bound))
    raise ModelError(f"Niepoprawne wyrażenie całkowite: {node!r}")


def _parse_decls(raw: list, bound: frozenset[str]) -> tuple[tuple[Decl, ...], frozenset[str]]:
    decls: list[Decl] = []
    for var, domain in raw:
        decls.append(Decl(var, parse_expr(domain, bound)))
        bound = bound | {var}
    return tuple(decls), bound


def parse_formula(node: Any, bound: frozenset[str] = frozenset()) -> Formula:
    if isinstance(node, bool):
        return Truth(node)
    if not isinstance(node, list) or not node:
        raise ModelError(f"Niepoprawna formuła: {node!r}")

    op, args = node[0], node[1:]
    if op == "not":
        return Not(parse_formula(args[0], bound))
    if op == "and":
        return And(tuple(parse_formula(a, bound) for a in args))
    if op == "or":
        return Or(tuple(parse_formula(a, bound) for a in args))
    if op == "=>":
        return Implies(parse_formula(args[0], bound), parse_formula(args[1], bound))
    if op == "<=>":
        return Iff(parse_formula(args[0], bound), parse_formula(args[1], bound))
    if op == "in":
        return Subset(parse_expr(args[0], bound), parse_expr(args[1], bound))
    if op in ("=", "!=") and not any(_is_int_node(a) for a in args):
        eq = Equal(parse_expr(args[0], bound), parse_expr(args[1], bound))
        return eq if op == "=" else Not(eq)
    if op in COMPARISONS:
        return Compare(op, parse_int(args[0], bound), parse_int(args[1], bound))
    if op in QUANTIFIERS:
        if len(args) == 2 and isinstance(args[0], list) and all(
            isinstance(d, list) and len(d) == 2 for d in args[0]
        ) and args[0]:
            decls, inner = _parse_decls(args[0], bound)
            return Quant(op, decls, parse_formula(args[1], inner))
        if op in MULTIPLICITIES:
            return Mult(op, parse_expr(args[0], bound))
    if op == "let":
        var, value, body = args
        return Let(var, parse_expr(value, bound), parse_formula(body, bound | {var}))
    if op == "call":
        return PredCall(args[0], tuple(parse_expr(a, bound) for a in args[1:]))
    raise ModelError(f"'{op}' nie jest operatorem formuły.")


# ---------------------------------------------------------------------------
# Model
# ---------------------------------------------------------------------------

def _params(raw: list) -> tuple[Decl, ...]:
    return tuple(Decl(var, Rel(sig)) for var, sig in raw)


def load_model_dict(raw: dict[str, Any]) -> Model:
    """
    Buduje Model z dokumentu JSON (po json.loads).

    Raises:
        ModelError: raport walidacji w atrybucie .report
    """
    report = ModelValidator().validate(raw)
    if not report.is_valid:
        raise ModelError(f"Model '{raw.get('model', '?')}' jest niepoprawny.", report)
    for w in report.warnings:
        log.warning(w)

    model = Model(name=raw["model"])
    for s in raw["sigs"]:
        model.sigs[s["name"]] = Sig(
            name=s["name"],
            parent=s.get("extends"),
            abstract=s.get("abstract", False),
            mult=Multiplicity(s["mult"]) if "mult" in s else None,
            ordered=s.get("ordered", False),
        )
    for s in raw["sigs"]:
        for f in s.get("fields", []):
            model.relations[f["name"]] = Relation(
                name=f["name"],
                cols=(s["name"],) + tuple(f["cols"]),
                mult=Multiplicity(f.get("mult", "set")),
                owner=s["name"],
            )
    for r in raw.get("relations", []):
        model.relations[r["name"]] = Relation(
            name=r["name"],
            cols=tuple(r["cols"]),
            mult=Multiplicity(r.get("mult", "set")),
        )

    for fn in raw.get("functions", []):
        params = _params(fn.get("params", []))
        bound = frozenset(p.var for p in params)
        model.functions[fn["name"]] = Function(fn["name"], params, parse_expr(fn["body"], bound))
    for p in raw.get("predicates", []):
        params = _params(p.get("params", []))
        bound = frozenset(d.var for d in params)
        model.predicates[p["name"]] = Predicate(p["name"], params, parse_formula(p["body"], bound))
    for f in raw.get("facts", []):
        model.facts.append(Fact(f["name"], parse_formula(f["body"])))
    for c in raw.get("commands", []):
        model.commands.append(Command(
            name=c["name"],
            kind=CommandKind(c["kind"]),
            target=c["target"],
            scope=c.get("scope"),
            expect=c.get("expect"),
        ))

    log.debug(
        "Model '%s': %d sygnatur, %d relacji, %d faktów, %d poleceń",
        model.name, len(model.sigs), len(model.relations), len(model.facts), len(model.commands),
    )
    return model


def load_model(path: pathlib.Path | str) -> Model:
    """Wczytuje model z pliku JSON (UTF-8)."""
    path = pathlib.Path(path)
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ModelError(f"Nie można odczytać pliku modelu {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ModelError(f"Plik {path} nie jest poprawnym JSON: {e}") from e
    if not isinstance(raw, dict):
        raise ModelError(f"Plik {path}: oczekiwano obiektu JSON na najwyższym poziomie.")
    return load_model_dict(raw)
