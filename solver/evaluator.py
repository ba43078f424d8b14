"""
solver/evaluator.py — trójwartościowa ewaluacja formuł nad magazynem relacji.

Wyrażenie relacyjne → Bounds(lower, upper): krotki na pewno / być może
należące do wartości wyrażenia. Dla zatwierdzonego magazynu lower == upper.

Formuła → True / False / None (logika Kleene'ego). None oznacza wynik
odroczony: wartość zależy od niezatwierdzonych krotek; obsługuje ją
wyszukiwanie (propagacja albo dalsze rozgałęzienie), to nie jest błąd.

Kwantyfikatory: skończona enumeracja krotek dziedziny (w kolejności
sortowania). Przynależność krotki do dziedziny też bywa nieustalona —
wtedy wiązanie liczy się warunkowo:
  all:  m ⇒ φ       some: m ∧ φ       one/lone: zliczanie m ∧ φ

Evaluator.last_failure — pierwsze wiązanie, przy którym 'all' dało False
(diagnostyka InternalInvariantViolation i raportu).
"""

from __future__ import annotations

from typing import TypeAlias

from collections.abc import Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING

from data_model.expressions import (
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
    Join,
    Let,
    Mult,
    Not,
    Or,
    PredCall,
    Product,
    Quant,
    Rel,
    Restrict,
    Subset,
    Transpose,
    Truth,
    Union,
    Var,
)
from data_model.model import Model

from . import store as ops
from .errors import SolverError
from .store import EMPTY, Bounds, RelationStore, Tuple, TupleSet

if TYPE_CHECKING:
    from .atoms import AtomPool

Env: TypeAlias = dict[str, Bounds]

# Zabezpieczenie przed rekursją wywołań (odrzucaną już przy ładowaniu modelu)
MAX_CALL_DEPTH = 64


class EvaluationError(SolverError):
    """Wyrażenie nie daje się obliczyć (nieznana nazwa, rekursja, brak wartości)."""


# ---------------------------------------------------------------------------
# Logika Kleene'ego
# ---------------------------------------------------------------------------

def k_not(v: bool | None) -> bool | None:
    return None if v is None else not v


def k_and(a: bool | None, b: bool | None) -> bool | None:
    if a is False or b is False:
        return False
    if a is True and b is True:
        return True
    return None


def k_or(a: bool | None, b: bool | None) -> bool | None:
    if a is True or b is True:
        return True
    if a is False and b is False:
        return False
    return None


def singleton(t: Tuple) -> Bounds:
    ts = frozenset((t,))
    return Bounds(ts, ts)


# ---------------------------------------------------------------------------
# Wiązania kwantyfikatorów
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class BindingPart:
    """Jedna deklaracja wiązania: krotka 'tup' z dziedziny decl.domain."""
    decl:   Decl
    env:    Env            # środowisko, w którym liczono dziedzinę
    tup:    Tuple
    member: bool | None    # True = na pewno w dziedzinie, None = nieustalone


@dataclass(frozen=True, slots=True)
class Binding:
    env:    Env
    member: bool | None
    parts:  tuple[BindingPart, ...]


@dataclass(frozen=True, slots=True)
class Failure:
    formula: Formula
    binding: dict[str, str]


# ---------------------------------------------------------------------------
# Evaluator
# ---------------------------------------------------------------------------

class Evaluator:
    """
    Ewaluator formuł i wyrażeń modelu nad dowolnym RelationStore.

    Bezstanowy względem magazynu: ten sam obiekt obsługuje wszystkie gałęzie
    wyszukiwania (jedynym stanem jest diagnostyczne last_failure).
    """

    def __init__(self, model: Model, pool: AtomPool) -> None:
        self._model = model
        self._pool  = pool
        self._tops  = tuple(model.top_sigs())
        self.last_failure: Failure | None = None

    @property
    def model(self) -> Model:
        return self._model

    @property
    def pool(self) -> AtomPool:
        return self._pool

    # ------------------------------------------------------------------
    # Publiczny interfejs
    # ------------------------------------------------------------------

    def evaluate(self, formula: Formula, store: RelationStore, env: Env | None = None) -> bool | None:
        return self._formula(formula, store, env or {}, 0)

    def evaluate_expr(self, expr: Expr, store: RelationStore, env: Env | None = None) -> Bounds:
        return self._expr(expr, store, env or {}, 0)

    def evaluate_int(self, expr: IntExpr, store: RelationStore, env: Env | None = None) -> tuple[int, int]:
        return self._int(expr, store, env or {}, 0)

    def value(self, expr: Expr, store: RelationStore, env: Env | None = None) -> TupleSet:
        """Dokładna wartość wyrażenia; EvaluationError gdy nieustalona."""
        b = self.evaluate_expr(expr, store, env)
        if not b.exact:
            raise EvaluationError(f"Wartość '{expr}' nie jest ustalona w tym magazynie.")
        return b.lower

    def holds(self, formula: Formula, store: RelationStore, env: Env | None = None) -> bool:
        """
        Dokładna wartość formuły. Przy False pierwsze nieudane wiązanie
        kwantyfikatora 'all' trafia do last_failure.
        """
        self.last_failure = None
        v = self.evaluate(formula, store, env)
        if v is None:
            raise EvaluationError(f"Formuła '{formula}' nie jest ustalona w tym magazynie.")
        if v:
            self.last_failure = None
        return v

    def bindings(self, decls: tuple[Decl, ...], store: RelationStore, env: Env | None = None) -> Iterator[Binding]:
        return self._bindings(decls, store, env or {}, 0, 0, True, ())

    def witnesses(
        self,
        quant: Quant,
        store: RelationStore,
        env: Env | None = None,
        satisfying: bool = True,
    ) -> Iterator[dict[str, Tuple]]:
        """
        Wiązania zmiennych kwantyfikatora, przy których ciało ma wartość
        'satisfying' (a wiązanie na pewno należy do dziedziny). Leniwie.
        """
        for b in self.bindings(quant.decls, store, env):
            if b.member is not True:
                continue
            if self.evaluate(quant.body, store, b.env) is satisfying:
                yield {p.decl.var: p.tup for p in b.parts}

    # ------------------------------------------------------------------
    # Wyrażenia relacyjne
    # ------------------------------------------------------------------

    def _univ(self, store: RelationStore) -> Bounds:
        lower: set[Tuple] = set()
        upper: set[Tuple] = set()
        for top in self._tops:
            b = store.bounds(top)
            lower |= b.lower
            upper |= b.upper
        return Bounds(frozenset(lower), frozenset(upper))

    def _expr(self, e: Expr, store: RelationStore, env: Env, depth: int) -> Bounds:
        if isinstance(e, Rel):
            if e.name not in store:
                raise EvaluationError(f"Nieznana relacja '{e.name}'.")
            return store.bounds(e.name)
        if isinstance(e, Var):
            try:
                return env[e.name]
            except KeyError:
                raise EvaluationError(f"Niezwiązana zmienna '{e.name}'.") from None
        if isinstance(e, Join):
            a = self._expr(e.left, store, env, depth)
            b = self._expr(e.right, store, env, depth)
            return Bounds(ops.join(a.lower, b.lower), ops.join(a.upper, b.upper))
        if isinstance(e, Union):
            a = self._expr(e.left, store, env, depth)
            b = self._expr(e.right, store, env, depth)
            return Bounds(ops.union(a.lower, b.lower), ops.union(a.upper, b.upper))
        if isinstance(e, Intersect):
            a = self._expr(e.left, store, env, depth)
            b = self._expr(e.right, store, env, depth)
            return Bounds(ops.intersection(a.lower, b.lower), ops.intersection(a.upper, b.upper))
        if isinstance(e, Diff):
            a = self._expr(e.left, store, env, depth)
            b = self._expr(e.right, store, env, depth)
            return Bounds(ops.difference(a.lower, b.upper), ops.difference(a.upper, b.lower))
        if isinstance(e, Restrict):
            a = self._expr(e.left, store, env, depth)
            b = self._expr(e.right, store, env, depth)
            rel, sub, col = (b, a, 0) if e.domain else (a, b, -1)
            return Bounds(
                ops.restrict(rel.lower, col, (t[0] for t in sub.lower)),
                ops.restrict(rel.upper, col, (t[0] for t in sub.upper)),
            )
        if isinstance(e, Product):
            a = self._expr(e.left, store, env, depth)
            b = self._expr(e.right, store, env, depth)
            return Bounds(ops.product(a.lower, b.lower), ops.product(a.upper, b.upper))
        if isinstance(e, Transpose):
            a = self._expr(e.expr, store, env, depth)
            return Bounds(ops.transpose(a.lower), ops.transpose(a.upper))
        if isinstance(e, Closure):
            a = self._expr(e.expr, store, env, depth)
            out = Bounds(ops.closure(a.lower), ops.closure(a.upper))
            if e.reflexive:
                u = self._univ(store)
                out = Bounds(
                    out.lower | ops.identity(u.lower),
                    out.upper | ops.identity(u.upper),
                )
            return out
        if isinstance(e, Const):
            if e.kind == "none":
                return Bounds(EMPTY, EMPTY)
            u = self._univ(store)
            if e.kind == "univ":
                return u
            if e.kind == "iden":
                return Bounds(ops.identity(u.lower), ops.identity(u.upper))
            raise EvaluationError(f"Nieznana stała '{e.kind}'.")
        if isinstance(e, Call):
            fn = self._model.functions.get(e.name)
            if fn is None:
                raise EvaluationError(f"Nieznana funkcja '{e.name}'.")
            if depth >= MAX_CALL_DEPTH:
                raise EvaluationError(f"Przekroczona głębokość wywołań w '{e.name}'.")
            inner = {
                p.var: self._expr(arg, store, env, depth)
                for p, arg in zip(fn.params, e.args)
            }
            return self._expr(fn.body, store, inner, depth + 1)
        if isinstance(e, Let):
            inner = {**env, e.var: self._expr(e.value, store, env, depth)}
            return self._expr(e.body, store, inner, depth)
        raise EvaluationError(f"'{e}' nie jest wyrażeniem relacyjnym.")

    # ------------------------------------------------------------------
    # Wyrażenia całkowite (przedziały)
    # ------------------------------------------------------------------

    def _int(self, e: IntExpr, store: RelationStore, env: Env, depth: int) -> tuple[int, int]:
        if isinstance(e, IntLit):
            return e.value, e.value
        if isinstance(e, Card):
            b = self._expr(e.expr, store, env, depth)
            return len(b.lower), len(b.upper)
        raise EvaluationError(f"'{e}' nie jest wyrażeniem całkowitym.")

    # ------------------------------------------------------------------
    # Formuły
    # ------------------------------------------------------------------

    def _formula(self, f: Formula, store: RelationStore, env: Env, depth: int) -> bool | None:
        if isinstance(f, Subset):
            a = self._expr(f.lhs, store, env, depth)
            b = self._expr(f.rhs, store, env, depth)
            return _subset(a, b)
        if isinstance(f, And):
            result: bool | None = True
            for item in f.items:
                v = self._formula(item, store, env, depth)
                if v is False:
                    return False
                if v is None:
                    result = None
            return result
        if isinstance(f, Or):
            result = False
            for item in f.items:
                v = self._formula(item, store, env, depth)
                if v is True:
                    return True
                if v is None:
                    result = None
            return result
        if isinstance(f, Not):
            return k_not(self._formula(f.formula, store, env, depth))
        if isinstance(f, Implies):
            a = self._formula(f.lhs, store, env, depth)
            if a is False:
                return True
            b = self._formula(f.rhs, store, env, depth)
            if b is True:
                return True
            return b if a is True else None
        if isinstance(f, Iff):
            a = self._formula(f.lhs, store, env, depth)
            if a is None:
                return None
            b = self._formula(f.rhs, store, env, depth)
            if b is None:
                return None
            return a == b
        if isinstance(f, Equal):
            a = self._expr(f.lhs, store, env, depth)
            b = self._expr(f.rhs, store, env, depth)
            return k_and(_subset(a, b), _subset(b, a))
        if isinstance(f, Mult):
            return _multiplicity(f.kind, self._expr(f.expr, store, env, depth))
        if isinstance(f, Compare):
            return _compare(
                f.op,
                self._int(f.lhs, store, env, depth),
                self._int(f.rhs, store, env, depth),
            )
        if isinstance(f, Quant):
            return self._quant(f, store, env, depth)
        if isinstance(f, Truth):
            return f.value
        if isinstance(f, PredCall):
            pred = self._model.predicates.get(f.name)
            if pred is None:
                raise EvaluationError(f"Nieznany predykat '{f.name}'.")
            if depth >= MAX_CALL_DEPTH:
                raise EvaluationError(f"Przekroczona głębokość wywołań w '{f.name}'.")
            inner = {
                p.var: self._expr(arg, store, env, depth)
                for p, arg in zip(pred.params, f.args)
            }
            return self._formula(pred.body, store, inner, depth + 1)
        if isinstance(f, Let):
            inner = {**env, f.var: self._expr(f.value, store, env, depth)}
            return self._formula(f.body, store, inner, depth)
        raise EvaluationError(f"'{f}' nie jest formułą.")

    def _bindings(
        self,
        decls: tuple[Decl, ...],
        store: RelationStore,
        env: Env,
        depth: int,
        i: int,
        member: bool | None,
        parts: tuple[BindingPart, ...],
    ) -> Iterator[Binding]:
        if i == len(decls):
            yield Binding(env, member, parts)
            return
        decl = decls[i]
        dom = self._expr(decl.domain, store, env, depth)
        for t in sorted(dom.upper):
            m = True if t in dom.lower else None
            inner = {**env, decl.var: singleton(t)}
            yield from self._bindings(
                decls, store, inner, depth, i + 1,
                k_and(member, m),
                parts + (BindingPart(decl, env, t, m),),
            )

    def _quant(self, f: Quant, store: RelationStore, env: Env, depth: int) -> bool | None:
        kind = f.kind
        if kind == "all":
            result: bool | None = True
            for b in self._bindings(f.decls, store, env, depth, 0, True, ()):
                v = self._formula(f.body, store, b.env, depth)
                if v is True:
                    continue
                if v is False and b.member is True:
                    if self.last_failure is None:
                        self.last_failure = Failure(f, self._describe(b))
                    return False
                result = None
            return result

        trues = unknown = 0
        for b in self._bindings(f.decls, store, env, depth, 0, True, ()):
            v = k_and(b.member, self._formula(f.body, store, b.env, depth))
            if v is True:
                trues += 1
                if kind == "some":
                    return True
                if kind == "no" or trues > 1:
                    return False
            elif v is None:
                unknown += 1

        if kind == "some":
            return False if unknown == 0 else None
        if kind == "no":
            return True if unknown == 0 else None
        if kind == "one":
            if trues + unknown == 0:
                return False
            return True if trues == 1 and unknown == 0 else None
        if kind == "lone":
            return True if trues + unknown <= 1 else None
        raise EvaluationError(f"Nieznany kwantyfikator '{kind}'.")

    def _describe(self, b: Binding) -> dict[str, str]:
        return {
            p.decl.var: "->".join(self._pool.name(a) for a in p.tup)
            for p in b.parts
        }


# ---------------------------------------------------------------------------
# Formuły atomowe nad ograniczeniami
# ---------------------------------------------------------------------------

def _subset(a: Bounds, b: Bounds) -> bool | None:
    if a.upper <= b.lower:
        return True
    if not a.lower <= b.upper:
        return False
    return None


def _multiplicity(kind: str, b: Bounds) -> bool | None:
    lo, hi = len(b.lower), len(b.upper)
    if kind == "some":
        return True if lo > 0 else (False if hi == 0 else None)
    if kind == "no":
        return False if lo > 0 else (True if hi == 0 else None)
    if kind == "one":
        if lo > 1 or hi == 0:
            return False
        return True if lo == 1 and hi == 1 else None
    if kind == "lone":
        if lo > 1:
            return False
        return True if hi <= 1 else None
    raise EvaluationError(f"Nieznana krotność '{kind}'.")


def _compare(op: str, a: tuple[int, int], b: tuple[int, int]) -> bool | None:
    (alo, ahi), (blo, bhi) = a, b
    if op == "<":
        return True if ahi < blo else (False if alo >= bhi else None)
    if op == "<=":
        return True if ahi <= blo else (False if alo > bhi else None)
    if op == ">":
        return _compare("<", b, a)
    if op == ">=":
        return _compare("<=", b, a)
    if op == "=":
        if alo == ahi == blo == bhi:
            return True
        return False if ahi < blo or bhi < alo else None
    if op == "!=":
        return k_not(_compare("=", a, b))
    raise EvaluationError(f"Nieznany operator porównania '{op}'.")
