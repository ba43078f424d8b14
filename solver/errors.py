"""
solver/errors.py — wyjątki solvera.

SolverError                  — baza
  ModelError                 — model niepoprawny (raport walidacji); wyszukiwanie nie startuje
  ScopeError                 — sprzeczny albo brakujący zakres (nazwa sygnatury)
  SearchTimeout              — wyczerpany budżet; zamieniany na status TIMEOUT
  InternalInvariantViolation — instancja nie przeszła ponownej walidacji (błąd silnika)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from validator.types import ValidationReport


class SolverError(Exception):
    """Baza wyjątków scopefinder."""


class ModelError(SolverError):
    def __init__(self, message: str, report: ValidationReport | None = None) -> None:
        super().__init__(message)
        self.report = report

    def __str__(self) -> str:
        base = super().__str__()
        if self.report is None or not self.report.errors:
            return base
        lines = [base] + [f"  {e}" for e in self.report.errors]
        return "\n".join(lines)


class ScopeError(SolverError):
    def __init__(self, sig: str, message: str) -> None:
        super().__init__(f"{sig}: {message}")
        self.sig = sig


class SearchTimeout(SolverError):
    def __init__(self, nodes: int, elapsed: float) -> None:
        super().__init__(f"Budżet wyczerpany po {nodes} węzłach ({elapsed:.2f}s).")
        self.nodes   = nodes
        self.elapsed = elapsed


class InternalInvariantViolation(SolverError):
    """
    Zatwierdzona instancja nie spełnia faktu.

    - fact:     nazwa faktu (albo "$goal")
    - binding:  pierwsze znalezione wiązanie zmiennych, przy którym fakt nie zachodzi
    - instance: częściowa instancja (relacja → krotki nazw atomów)
    """

    def __init__(
        self,
        fact: str,
        binding: dict[str, Any] | None,
        instance: dict[str, Any],
    ) -> None:
        super().__init__(
            f"Instancja nie spełnia faktu '{fact}' (wiązanie: {binding or '-'}). "
            f"To błąd silnika, nie modelu."
        )
        self.fact     = fact
        self.binding  = binding
        self.instance = instance
