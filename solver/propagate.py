"""
solver/propagate.py — wymuszanie krotek wynikających z częściowo ocenionych faktów.

Propagator.force(formula, want, store, env) → lista literałów, które muszą
zajść, aby formuła miała wartość 'want'. Wnioskowanie jest poprawne, ale
niezupełne: brak literałów nie znaczy, że nic nie wynika; rozstrzygnie to
dalsze rozgałęzienie.

Reguły (skrót):
  and/or        — reguła jednostkowa (jedyny nieustalony składnik)
  =>, <=>       — wymuszenie strony przeciwnej, gdy jedna jest znana
  A in B        — krotki pewne w A → do B; krotki spoza B → poza A
  some/no/one   — krotki graniczne na poziomie liczności
  #E op k       — jak wyżej, dla porównań liczności ze stałą
  all x: D | φ  — φ dla wiązań pewnych; wiązanie poza dziedzinę, gdy φ = False
  some x: D | φ — jedyny kandydat: wiązanie do dziedziny i φ

Sprzeczność (formuła już ma wartość przeciwną) → Conflict.
"""

from __future__ import annotations

from data_model.expressions import (
    And,
    Call,
    Card,
    Compare,
    Const,
    Diff,
    Equal,
    Expr,
    Formula,
    Iff,
    Implies,
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
    Union,
    Var,
)

from .evaluator import MAX_CALL_DEPTH, Binding, Env, EvaluationError, Evaluator, k_and, k_not
from .store import Conflict, Literal, RelationStore, Tuple

# Zaprzeczenie i odwrócenie stron porównania
_NEGATE = {"<": ">=", "<=": ">", ">": "<=", ">=": "<", "=": "!=", "!=": "="}
_FLIP   = {"<": ">", "<=": ">=", ">": "<", ">=": "<=", "=": "=", "!=": "!="}


class Propagator:

    def __init__(self, evaluator: Evaluator) -> None:
        self._ev    = evaluator
        self._model = evaluator.model
        self._pool  = evaluator.pool

    @property
    def evaluator(self) -> Evaluator:
        return self._ev

    def force(
        self,
        formula: Formula,
        want: bool,
        store: RelationStore,
        env: Env | None = None,
    ) -> list[Literal]:
        out: list[Literal] = []
        self._force(formula, want, store, env or {}, out, 0)
        return out

    def force_tuple(
        self,
        expr: Expr,
        t: Tuple,
        present: bool,
        store: RelationStore,
        env: Env | None = None,
    ) -> list[Literal]:
        out: list[Literal] = []
        self._tuple(expr, t, present, store, env or {}, out, 0)
        return out

    # ------------------------------------------------------------------
    # Formuły
    # ------------------------------------------------------------------

    def _force(
        self,
        f: Formula,
        want: bool,
        store: RelationStore,
        env: Env,
        out: list[Literal],
        depth: int,
    ) -> None:
        v = self._ev.evaluate(f, store, env)
        if v is want:
            return
        if v is not None:
            raise Conflict(reason=f"'{f}' ma wartość {v}, wymagane {want}")

        if isinstance(f, Not):
            self._force(f.formula, not want, store, env, out, depth)

        elif isinstance(f, And):
            if want:
                for item in f.items:
                    self._force(item, True, store, env, out, depth)
            else:
                self._unit(f.items, False, store, env, out, depth)

        elif isinstance(f, Or):
            if not want:
                for item in f.items:
                    self._force(item, False, store, env, out, depth)
            else:
                self._unit(f.items, True, store, env, out, depth)

        elif isinstance(f, Implies):
            if not want:
                self._force(f.lhs, True, store, env, out, depth)
                self._force(f.rhs, False, store, env, out, depth)
                return
            a = self._ev.evaluate(f.lhs, store, env)
            if a is True:
                self._force(f.rhs, True, store, env, out, depth)
            elif self._ev.evaluate(f.rhs, store, env) is False:
                self._force(f.lhs, False, store, env, out, depth)

        elif isinstance(f, Iff):
            a = self._ev.evaluate(f.lhs, store, env)
            if a is not None:
                self._force(f.rhs, a if want else not a, store, env, out, depth)
                return
            b = self._ev.evaluate(f.rhs, store, env)
            if b is not None:
                self._force(f.lhs, b if want else not b, store, env, out, depth)

        elif isinstance(f, Subset):
            self._subset(f.lhs, f.rhs, want, store, env, out, depth)

        elif isinstance(f, Equal):
            if want:
                self._subset(f.lhs, f.rhs, True, store, env, out, depth)
                self._subset(f.rhs, f.lhs, True, store, env, out, depth)

        elif isinstance(f, Mult):
            self._mult(f, want, store, env, out, depth)

        elif isinstance(f, Compare):
            self._compare(f, want, store, env, out, depth)

        elif isinstance(f, Quant):
            self._quant(f, want, store, env, out, depth)

        elif isinstance(f, PredCall):
            pred = self._model.predicates[f.name]
            self._guard(f.name, depth)
            inner = {
                p.var: self._ev.evaluate_expr(arg, store, env)
                for p, arg in zip(pred.params, f.args)
            }
            self._force(pred.body, want, store, inner, out, depth + 1)

        elif isinstance(f, Let):
            inner = {**env, f.var: self._ev.evaluate_expr(f.value, store, env)}
            self._force(f.body, want, store, inner, out, depth)

    def _guard(self, name: str, depth: int) -> None:
        if depth >= MAX_CALL_DEPTH:
            raise EvaluationError(f"Przekroczona głębokość wywołań w '{name}'.")

    def _unit(self, items, target, store, env, out, depth) -> None:
        """Jedyny nieustalony składnik dostaje wartość 'target'."""
        open_items = [i for i in items if self._ev.evaluate(i, store, env) is None]
        if len(open_items) == 1:
            self._force(open_items[0], target, store, env, out, depth)

    def _subset(self, lhs, rhs, want, store, env, out, depth) -> None:
        a = self._ev.evaluate_expr(lhs, store, env)
        b = self._ev.evaluate_expr(rhs, store, env)
        if want:
            for t in sorted(a.lower - b.lower):
                self._tuple(rhs, t, True, store, env, out, depth)
            for t in sorted(a.upper - b.upper):
                self._tuple(lhs, t, False, store, env, out, depth)
        else:
            candidates = a.upper - b.lower
            if len(candidates) == 1:
                (t,) = candidates
                self._tuple(lhs, t, True, store, env, out, depth)
                self._tuple(rhs, t, False, store, env, out, depth)

    def _mult(self, f: Mult, want, store, env, out, depth) -> None:
        kind = f.kind
        if not want:
            if kind in ("some", "no"):
                kind = "no" if kind == "some" else "some"
            else:
                return
        b = self._ev.evaluate_expr(f.expr, store, env)
        undecided = sorted(b.upper - b.lower)
        if kind == "no":
            for t in undecided:
                self._tuple(f.expr, t, False, store, env, out, depth)
        elif kind == "some":
            if not b.lower and len(b.upper) == 1:
                self._tuple(f.expr, undecided[0], True, store, env, out, depth)
        elif kind in ("one", "lone"):
            if len(b.lower) == 1:
                for t in undecided:
                    self._tuple(f.expr, t, False, store, env, out, depth)
            elif kind == "one" and not b.lower and len(b.upper) == 1:
                self._tuple(f.expr, undecided[0], True, store, env, out, depth)

    def _compare(self, f: Compare, want, store, env, out, depth) -> None:
        op, lhs, rhs = (f.op if want else _NEGATE[f.op]), f.lhs, f.rhs
        if isinstance(lhs, IntLit) and isinstance(rhs, Card):
            lhs, rhs, op = rhs, lhs, _FLIP[op]
        if not (isinstance(lhs, Card) and isinstance(rhs, IntLit)):
            return
        k = rhs.value
        b = self._ev.evaluate_expr(lhs.expr, store, env)
        undecided = sorted(b.upper - b.lower)

        at_most = {"<": k - 1, "<=": k, "=": k}.get(op)
        at_least = {">": k + 1, ">=": k, "=": k}.get(op)
        if at_most is not None and len(b.lower) == at_most:
            for t in undecided:
                self._tuple(lhs.expr, t, False, store, env, out, depth)
        elif at_least is not None and len(b.upper) == at_least:
            for t in undecided:
                self._tuple(lhs.expr, t, True, store, env, out, depth)

    # ------------------------------------------------------------------
    # Kwantyfikatory
    # ------------------------------------------------------------------

    def _quant(self, f: Quant, want, store, env, out, depth) -> None:
        kind = f.kind
        # każde wiązanie: m ⇒ (φ == target)
        universal = {("all", True): True, ("no", True): False, ("some", False): False}
        # istnieje wiązanie: m ∧ (φ == target)
        existential = {("some", True): True, ("all", False): False, ("no", False): True}

        if (kind, want) in universal:
            target = universal[(kind, want)]
            for b in self._ev.bindings(f.decls, store, env):
                v = self._ev.evaluate(f.body, store, b.env)
                if b.member is True:
                    if v is None:
                        self._force(f.body, target, store, b.env, out, depth)
                    elif v is not target:
                        raise Conflict(reason=f"'{f}' nie zachodzi dla wiązania")
                elif v is (not target):
                    self._exclude_binding(b, store, out, depth)

        elif (kind, want) in existential:
            target = existential[(kind, want)]
            candidates: list[Binding] = []
            for b in self._ev.bindings(f.decls, store, env):
                v = self._ev.evaluate(f.body, store, b.env)
                r = k_and(b.member, v if target else k_not(v))
                if r is True:
                    return
                if r is None:
                    candidates.append(b)
            if len(candidates) == 1:
                self._include_binding(candidates[0], store, out, depth)
                self._force(f.body, target, store, candidates[0].env, out, depth)

        elif kind in ("one", "lone") and want:
            trues: list[Binding] = []
            open_: list[tuple[Binding, bool | None]] = []
            for b in self._ev.bindings(f.decls, store, env):
                v = self._ev.evaluate(f.body, store, b.env)
                r = k_and(b.member, v)
                if r is True:
                    trues.append(b)
                elif r is None:
                    open_.append((b, v))
            if len(trues) == 1:
                for b, v in open_:
                    if b.member is True:
                        self._force(f.body, False, store, b.env, out, depth)
                    elif v is True:
                        self._exclude_binding(b, store, out, depth)
            elif kind == "one" and not trues and len(open_) == 1:
                b = open_[0][0]
                self._include_binding(b, store, out, depth)
                self._force(f.body, True, store, b.env, out, depth)

    def _exclude_binding(self, b: Binding, store, out, depth) -> None:
        unknown = [p for p in b.parts if p.member is None]
        if len(unknown) == 1:
            p = unknown[0]
            self._tuple(p.decl.domain, p.tup, False, store, p.env, out, depth)

    def _include_binding(self, b: Binding, store, out, depth) -> None:
        for p in b.parts:
            if p.member is None:
                self._tuple(p.decl.domain, p.tup, True, store, p.env, out, depth)

    # ------------------------------------------------------------------
    # Krotki wyrażeń
    # ------------------------------------------------------------------

    def _tuple(
        self,
        e: Expr,
        t: Tuple,
        present: bool,
        store: RelationStore,
        env: Env,
        out: list[Literal],
        depth: int,
    ) -> None:
        b = self._ev.evaluate_expr(e, store, env)
        current = b.contains(t)
        if current is present:
            return
        if current is not None:
            raise Conflict(reason=f"{e} ∋ {t}: wymagane {present}")

        if isinstance(e, Rel):
            out.append((e.name, t, present))

        elif isinstance(e, Var):
            return

        elif isinstance(e, Const):
            # univ / iden: przez sygnaturę najwyższego poziomu atomu
            if e.kind in ("univ", "iden"):
                out.append((self._pool.top(t[0]), (t[0],), present))

        elif isinstance(e, Union):
            if present:
                a = self._ev.evaluate_expr(e.left, store, env).contains(t)
                c = self._ev.evaluate_expr(e.right, store, env).contains(t)
                if a is False:
                    self._tuple(e.right, t, True, store, env, out, depth)
                elif c is False:
                    self._tuple(e.left, t, True, store, env, out, depth)
            else:
                self._tuple(e.left, t, False, store, env, out, depth)
                self._tuple(e.right, t, False, store, env, out, depth)

        elif isinstance(e, Intersect):
            if present:
                self._tuple(e.left, t, True, store, env, out, depth)
                self._tuple(e.right, t, True, store, env, out, depth)
            else:
                a = self._ev.evaluate_expr(e.left, store, env).contains(t)
                c = self._ev.evaluate_expr(e.right, store, env).contains(t)
                if a is True:
                    self._tuple(e.right, t, False, store, env, out, depth)
                elif c is True:
                    self._tuple(e.left, t, False, store, env, out, depth)

        elif isinstance(e, Diff):
            if present:
                self._tuple(e.left, t, True, store, env, out, depth)
                self._tuple(e.right, t, False, store, env, out, depth)
            else:
                a = self._ev.evaluate_expr(e.left, store, env).contains(t)
                c = self._ev.evaluate_expr(e.right, store, env).contains(t)
                if a is True:
                    self._tuple(e.right, t, True, store, env, out, depth)
                elif c is False:
                    self._tuple(e.left, t, False, store, env, out, depth)

        elif isinstance(e, Restrict):
            rel, sub = (e.right, e.left) if e.domain else (e.left, e.right)
            atom = (t[0],) if e.domain else (t[-1],)
            if present:
                self._tuple(rel, t, True, store, env, out, depth)
                self._tuple(sub, atom, True, store, env, out, depth)
            else:
                a = self._ev.evaluate_expr(rel, store, env).contains(t)
                c = self._ev.evaluate_expr(sub, store, env).contains(atom)
                if c is True:
                    self._tuple(rel, t, False, store, env, out, depth)
                elif a is True:
                    self._tuple(sub, atom, False, store, env, out, depth)

        elif isinstance(e, Transpose):
            self._tuple(e.expr, (t[1], t[0]), present, store, env, out, depth)

        elif isinstance(e, Product):
            left = self._ev.evaluate_expr(e.left, store, env)
            if not left.upper:
                return
            k = len(next(iter(left.upper)))
            head, tail = t[:k], t[k:]
            if present:
                self._tuple(e.left, head, True, store, env, out, depth)
                self._tuple(e.right, tail, True, store, env, out, depth)
            else:
                right = self._ev.evaluate_expr(e.right, store, env)
                if left.contains(head) is True:
                    self._tuple(e.right, tail, False, store, env, out, depth)
                elif right.contains(tail) is True:
                    self._tuple(e.left, head, False, store, env, out, depth)

        elif isinstance(e, Join):
            self._join(e, t, present, store, env, out, depth)

        elif isinstance(e, Call):
            fn = self._model.functions[e.name]
            self._guard(e.name, depth)
            inner = {
                p.var: self._ev.evaluate_expr(arg, store, env)
                for p, arg in zip(fn.params, e.args)
            }
            self._tuple(fn.body, t, present, store, inner, out, depth + 1)

        elif isinstance(e, Let):
            inner = {**env, e.var: self._ev.evaluate_expr(e.value, store, env)}
            self._tuple(e.body, t, present, store, inner, out, depth)

        # Closure: brak wymuszeń

    def _join(self, e: Join, t, present, store, env, out, depth) -> None:
        left  = self._ev.evaluate_expr(e.left, store, env)
        right = self._ev.evaluate_expr(e.right, store, env)
        if not left.upper:
            return
        k = len(next(iter(left.upper)))
        prefix, suffix = t[:k - 1], t[k - 1:]
        candidates = sorted(
            (x, (x[-1],) + suffix)
            for x in left.upper
            if x[:-1] == prefix and (x[-1],) + suffix in right.upper
        )
        if present:
            if len(candidates) == 1:
                x, y = candidates[0]
                self._tuple(e.left, x, True, store, env, out, depth)
                self._tuple(e.right, y, True, store, env, out, depth)
            return
        for x, y in candidates:
            if x in left.lower:
                self._tuple(e.right, y, False, store, env, out, depth)
            elif y in right.lower:
                self._tuple(e.left, x, False, store, env, out, depth)
