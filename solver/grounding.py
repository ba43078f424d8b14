"""
solver/grounding.py — rozwinięcie faktów w instancje obserwujące relacje.

Fakt jest dzielony na niezależne kawałki:
  - koniunkcja             → każdy składnik osobno
  - A => (B and C)         → A => B, A => C
  - all x: D | φ           → jedna instancja na krotkę kandydującą dziedziny D
                             (liczonej w magazynie początkowym); gdy
                             przynależność krotki nie jest pewna, instancja
                             dostaje strażnika (D, krotka)
  - no x: D | φ            → all x: D | not φ

FactInstance.reads — nazwy relacji czytanych przez ciało i strażników
(z rozwinięciem wywołań predykatów/funkcji); silnik budzi instancję tylko
wtedy, gdy któraś z nich się zmieni.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Iterator
from dataclasses import dataclass

from data_model.expressions import And, Call, Const, Expr, Formula, Implies, Not, PredCall, Quant, Rel
from data_model.model import Fact, Model

from .evaluator import Env, Evaluator, singleton
from .propagate import Propagator
from .store import Literal, RelationStore, Tuple


@dataclass(frozen=True, slots=True)
class Guard:
    """Warunek przynależności krotki 'tup' do dziedziny 'domain' (liczonej w 'env')."""
    domain: Expr
    env:    Env
    tup:    Tuple


@dataclass(eq=False, slots=True)
class FactInstance:
    index:  int
    fact:   str
    body:   Formula
    env:    Env
    guards: tuple[Guard, ...]
    reads:  frozenset[str]

    def evaluate(self, ev: Evaluator, store: RelationStore) -> bool | None:
        """Wartość instancji: fałszywy strażnik → True (wiązanie nie istnieje)."""
        guard: bool | None = True
        for g in self.guards:
            m = ev.evaluate_expr(g.domain, store, g.env).contains(g.tup)
            if m is False:
                return True
            if m is None:
                guard = None
        v = ev.evaluate(self.body, store, self.env)
        if v is True or guard is True:
            return v
        return None

    def force(self, prop: Propagator, store: RelationStore) -> list[Literal]:
        ev = prop.evaluator
        open_guards = []
        for g in self.guards:
            m = ev.evaluate_expr(g.domain, store, g.env).contains(g.tup)
            if m is False:
                return []
            if m is None:
                open_guards.append(g)
        if not open_guards:
            return prop.force(self.body, True, store, self.env)
        if len(open_guards) == 1 and ev.evaluate(self.body, store, self.env) is False:
            g = open_guards[0]
            return prop.force_tuple(g.domain, g.tup, False, store, g.env)
        return []

    def describe(self, ev: Evaluator) -> str:
        pool = ev.pool
        binding = ", ".join(
            f"{var}={'->'.join(pool.name(a) for a in next(iter(b.lower)))}"
            for var, b in self.env.items()
            if len(b.lower) == 1
        )
        return f"{self.fact} [{binding}]" if binding else self.fact


# ---------------------------------------------------------------------------
# Relacje czytane przez formułę
# ---------------------------------------------------------------------------

def relation_reads(node: object, model: Model, seen: set[str] | None = None) -> set[str]:
    """Nazwy relacji, od których zależy wartość węzła (z rozwinięciem wywołań)."""
    seen = set() if seen is None else seen
    out: set[str] = set()
    if isinstance(node, Rel):
        out.add(node.name)
    elif isinstance(node, Const):
        if node.kind in ("univ", "iden"):
            out.update(model.top_sigs())
    elif isinstance(node, (Call, PredCall)):
        for arg in node.args:
            out |= relation_reads(arg, model, seen)
        key = f"{type(node).__name__}:{node.name}"
        if key not in seen:
            seen.add(key)
            target = (
                model.functions.get(node.name)
                if isinstance(node, Call)
                else model.predicates.get(node.name)
            )
            if target is not None:
                for p in target.params:
                    out |= relation_reads(p.domain, model, seen)
                out |= relation_reads(target.body, model, seen)
    elif isinstance(node, tuple):
        for item in node:
            out |= relation_reads(item, model, seen)
    elif dataclasses.is_dataclass(node):
        for f in dataclasses.fields(node):
            out |= relation_reads(getattr(node, f.name), model, seen)
    return out


# ---------------------------------------------------------------------------
# Rozwinięcie
# ---------------------------------------------------------------------------

def _split(
    f: Formula,
    env: Env,
    guards: tuple[Guard, ...],
    ev: Evaluator,
    store: RelationStore,
) -> Iterator[tuple[Formula, Env, tuple[Guard, ...]]]:
    if isinstance(f, And):
        for item in f.items:
            yield from _split(item, env, guards, ev, store)
    elif isinstance(f, Implies) and isinstance(f.rhs, And):
        for item in f.rhs.items:
            yield from _split(Implies(f.lhs, item), env, guards, ev, store)
    elif isinstance(f, Quant) and f.kind == "no":
        yield from _split(Quant("all", f.decls, Not(f.body)), env, guards, ev, store)
    elif isinstance(f, Not) and isinstance(f.formula, Quant) and f.formula.kind == "some":
        q = f.formula
        yield from _split(Quant("all", q.decls, Not(q.body)), env, guards, ev, store)
    elif isinstance(f, Quant) and f.kind == "all":
        decl, rest = f.decls[0], f.decls[1:]
        body = Quant("all", rest, f.body) if rest else f.body
        dom = ev.evaluate_expr(decl.domain, store, env)
        for t in sorted(dom.upper):
            inner = {**env, decl.var: singleton(t)}
            g = guards if t in dom.lower else guards + (Guard(decl.domain, env, t),)
            yield from _split(body, inner, g, ev, store)
    elif isinstance(f, Not) and isinstance(f.formula, Not):
        yield from _split(f.formula.formula, env, guards, ev, store)
    else:
        yield f, env, guards


def ground(facts: list[Fact], ev: Evaluator, store: RelationStore) -> list[FactInstance]:
    """
    Instancje wszystkich faktów względem magazynu początkowego.

    Instancje prawdziwe już w magazynie początkowym są pomijane
    (monotoniczność: pozostaną prawdziwe w każdej gałęzi).
    """
    model = ev.model
    out: list[FactInstance] = []
    reads_cache: dict[Formula, frozenset[str]] = {}
    for fact in facts:
        for body, env, guards in _split(fact.body, {}, (), ev, store):
            if body not in reads_cache:
                reads_cache[body] = frozenset(relation_reads(body, model))
            reads = set(reads_cache[body])
            for g in guards:
                reads |= relation_reads(g.domain, model)
            inst = FactInstance(
                index=len(out),
                fact=fact.name,
                body=body,
                env=env,
                guards=guards,
                reads=frozenset(reads),
            )
            if inst.evaluate(ev, store) is True:
                continue
            out.append(inst)
    return out

