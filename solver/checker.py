"""
solver/checker.py — polecenia analizy: check (szukanie kontrprzykładu) i run.

  check P  → szukaj instancji faktów ∧ ¬P
             brak     → VERIFIED (tylko w zadanym zakresie!)
             jest     → COUNTEREXAMPLE(instancja)
  run P    → szukaj instancji faktów ∧ P
             jest     → SATISFIABLE(instancja)
             brak     → UNSATISFIABLE
Budżet wyczerpany → TIMEOUT (nigdy VERIFIED ani UNSATISFIABLE).

Parametry predykatu są kwantyfikowane po swoich dziedzinach:
uniwersalnie dla check, egzystencjalnie dla run.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import StrEnum
from itertools import islice

from data_model.expressions import Formula, Not, PredCall, Quant, Var
from data_model.model import Command, CommandKind, Model
from data_model.scope import ScopeSpec

from .engine import Problem, SearchOptions, SearchStats, Status, iter_instances, solve
from .errors import ModelError
from .instance import Instance
from .scope import ScopeTable, resolve

log = logging.getLogger(__name__)


class Verdict(StrEnum):
    VERIFIED       = "verified"
    COUNTEREXAMPLE = "counterexample"
    SATISFIABLE    = "satisfiable"
    UNSATISFIABLE  = "unsatisfiable"
    TIMEOUT        = "timeout"


_VERDICTS: dict[tuple[CommandKind, Status], Verdict] = {
    (CommandKind.CHECK, Status.SAT):     Verdict.COUNTEREXAMPLE,
    (CommandKind.CHECK, Status.UNSAT):   Verdict.VERIFIED,
    (CommandKind.CHECK, Status.TIMEOUT): Verdict.TIMEOUT,
    (CommandKind.RUN,   Status.SAT):     Verdict.SATISFIABLE,
    (CommandKind.RUN,   Status.UNSAT):   Verdict.UNSATISFIABLE,
    (CommandKind.RUN,   Status.TIMEOUT): Verdict.TIMEOUT,
}

_DEFAULT_EXPECT = {
    CommandKind.CHECK: Verdict.VERIFIED,
    CommandKind.RUN:   Verdict.SATISFIABLE,
}


@dataclass(slots=True)
class CheckResult:
    verdict:  Verdict
    kind:     CommandKind
    target:   str
    table:    ScopeTable
    goal:     Formula
    instance: Instance | None = None
    stats:    SearchStats = field(default_factory=SearchStats)
    command:  str | None = None
    expect:   Verdict | None = None

    @property
    def bounded(self) -> bool:
        """Wynik negatywny (VERIFIED / UNSATISFIABLE) dotyczy tylko zakresu."""
        return True

    @property
    def expected(self) -> Verdict:
        return self.expect or _DEFAULT_EXPECT[self.kind]

    @property
    def matches(self) -> bool:
        return self.verdict == self.expected

    def summary(self) -> str:
        scope = str(self.table)
        if self.verdict == Verdict.VERIFIED:
            return (
                f"{self.target}: brak kontrprzykładu w zakresie {scope} "
                f"(wynik ograniczony do zakresu, to nie jest dowód)"
            )
        if self.verdict == Verdict.COUNTEREXAMPLE:
            return f"{self.target}: znaleziono kontrprzykład w zakresie {scope}"
        if self.verdict == Verdict.SATISFIABLE:
            return f"{self.target}: znaleziono instancję w zakresie {scope}"
        if self.verdict == Verdict.UNSATISFIABLE:
            return f"{self.target}: brak instancji w zakresie {scope} (wynik ograniczony do zakresu)"
        return f"{self.target}: przekroczony budżet wyszukiwania (zakres {scope})"


# ---------------------------------------------------------------------------
# Formuła celu
# ---------------------------------------------------------------------------

def property_formula(model: Model, target: str, kind: CommandKind) -> Formula:
    """Wywołanie predykatu z parametrami związanymi kwantyfikatorem (all / some)."""
    pred = model.predicates.get(target)
    if pred is None:
        raise ModelError(f"Polecenie odwołuje się do nieznanego predykatu '{target}'.")
    call = PredCall(target, tuple(Var(p.var) for p in pred.params))
    if not pred.params:
        return call
    return Quant("all" if kind == CommandKind.CHECK else "some", pred.params, call)


def goal_formula(model: Model, target: str, kind: CommandKind) -> Formula:
    prop = property_formula(model, target, kind)
    return Not(prop) if kind == CommandKind.CHECK else prop


# ---------------------------------------------------------------------------
# API
# ---------------------------------------------------------------------------

def _analyse(
    model: Model,
    target: str,
    kind: CommandKind,
    scope: ScopeSpec | str | None,
    options: SearchOptions | None,
    command: Command | None = None,
) -> CheckResult:
    table = resolve(scope, model)
    goal  = goal_formula(model, target, kind)
    log.info("%s %s w zakresie %s", kind, target, table)

    result  = solve(model, goal, table, options)
    verdict = _VERDICTS[(kind, result.status)]
    return CheckResult(
        verdict=verdict,
        kind=kind,
        target=target,
        table=table,
        goal=goal,
        instance=result.instance,
        stats=result.stats,
        command=command.name if command is not None else None,
        expect=Verdict(command.expect) if command is not None and command.expect else None,
    )


def check(
    model: Model,
    target: str,
    scope: ScopeSpec | str | None = None,
    options: SearchOptions | None = None,
) -> CheckResult:
    return _analyse(model, target, CommandKind.CHECK, scope, options)


def run(
    model: Model,
    target: str,
    scope: ScopeSpec | str | None = None,
    options: SearchOptions | None = None,
) -> CheckResult:
    return _analyse(model, target, CommandKind.RUN, scope, options)


def execute(model: Model, command: Command | str, options: SearchOptions | None = None) -> CheckResult:
    """
    Wykonuje polecenie modelu; CheckResult.matches mówi, czy werdykt jest
    zgodny z oczekiwanym (domyślnie: check → verified, run → satisfiable).
    """
    if isinstance(command, str):
        command = model.command(command)
    return _analyse(model, command.target, command.kind, command.scope, options, command)


def enumerate_instances(
    model: Model,
    command: Command | str,
    limit: int,
    options: SearchOptions | None = None,
) -> Iterator[Instance]:
    """
    Do 'limit' kolejnych instancji celu polecenia (kontrprzykładów dla check).

    Raises:
        SearchTimeout: budżet wyczerpany przed zebraniem 'limit' instancji
    """
    if isinstance(command, str):
        command = model.command(command)
    table   = resolve(command.scope, model)
    goal    = goal_formula(model, command.target, command.kind)
    problem = Problem(model, table, goal)
    yield from islice(iter_instances(problem, options), limit)
