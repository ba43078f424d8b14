"""
validator/types.py — kody błędów i struktury raportu walidacji modelu.

ValidationError — pojedynczy błąd z kodem, ścieżką JSON Pointer,
    komunikatem i mechaniczną instrukcją naprawy.
ValidationReport — wynik walidacji: is_valid, errors, warnings.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class ErrorCode(StrEnum):
    """Stałe kody błędów walidatora (stage A–E)."""

    # A — JSON Schema
    SCHEMA_VIOLATION     = "E_SCHEMA_VIOLATION"

    # B — deklaracje sygnatur i relacji
    DUPLICATE_NAME       = "E_DUPLICATE_NAME"
    UNKNOWN_SIG          = "E_UNKNOWN_SIG"
    BAD_EXTENDS          = "E_BAD_EXTENDS"
    BAD_ORDERING         = "E_BAD_ORDERING"

    # C — wyrażenia i formuły
    UNKNOWN_NAME         = "E_UNKNOWN_NAME"
    ARITY_MISMATCH       = "E_ARITY_MISMATCH"
    TYPE_MISMATCH        = "E_TYPE_MISMATCH"
    BAD_EXPRESSION       = "E_BAD_EXPRESSION"

    # D — rekursja predykatów / funkcji
    RECURSIVE_DEFINITION = "E_RECURSIVE_DEFINITION"

    # E — polecenia i zakresy
    BAD_COMMAND          = "E_BAD_COMMAND"
    BAD_SCOPE            = "E_BAD_SCOPE"

    @property
    def stage(self) -> str:
        """Etap walidatora (A–E), który zgłasza ten kod."""
        return _STAGE[self]


_STAGE: dict[ErrorCode, str] = {
    ErrorCode.SCHEMA_VIOLATION:     "A",
    ErrorCode.DUPLICATE_NAME:       "B",
    ErrorCode.UNKNOWN_SIG:          "B",
    ErrorCode.BAD_EXTENDS:          "B",
    ErrorCode.BAD_ORDERING:         "B",
    ErrorCode.UNKNOWN_NAME:         "C",
    ErrorCode.ARITY_MISMATCH:       "C",
    ErrorCode.TYPE_MISMATCH:        "C",
    ErrorCode.BAD_EXPRESSION:       "C",
    ErrorCode.RECURSIVE_DEFINITION: "D",
    ErrorCode.BAD_COMMAND:          "E",
    ErrorCode.BAD_SCOPE:            "E",
}


@dataclass(slots=True)
class ValidationError:
    """
    Pojedynczy błąd walidacji.

    - code:         stały identyfikator klasy błędu (ErrorCode)
    - path:         JSON Pointer do miejsca błędu, np. "/facts/2/body/1"
    - message:      czytelny opis błędu
    - expected_fix: krótka mechaniczna instrukcja naprawy
    - details:      opcjonalny słownik z dodatkowymi danymi
    """

    code: ErrorCode
    path: str
    message: str
    expected_fix: str
    details: dict[str, Any] | None = None

    def __str__(self) -> str:
        return f"[{self.code}] {self.path}: {self.message}"


@dataclass(slots=True)
class ValidationReport:
    """
    Wynik pełnej walidacji modelu.

    - is_valid: True gdy brak błędów (warnings nie wpływają)
    - errors:   lista błędów (ValidationError)
    - warnings: lista komunikatów ostrzegawczych (str)
    """

    is_valid: bool
    errors: list[ValidationError] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def codes(self) -> list[ErrorCode]:
        return [e.code for e in self.errors]
