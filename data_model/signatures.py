"""
Sygnatury i relacje — deklaracje typów modelu.

Sig          — nazwany zbiór atomów w drzewie pojedynczego dziedziczenia
Relation     — nazwana relacja nad kolumnami-sygnaturami; pole sygnatury
               to relacja, której pierwsza kolumna jest sygnaturą-właścicielem
Multiplicity — krotność sygnatury albo ostatniej kolumny relacji

Sygnatura uporządkowana (ordered) dostaje relacje porządku nad obecnymi atomami:
  S/first  S/last  S/next  S/prev  S/nexts  S/prevs
"""

from __future__ import annotations

from typing import TypeAlias

from dataclasses import dataclass
from enum import StrEnum

# ---------------------------------------------------------------------------
# Aliasy typów
# ---------------------------------------------------------------------------

# Wzorzec: ^[A-Za-z_][A-Za-z0-9_']*$  np. "Event", "Time"
SigName: TypeAlias = str

ORDERING_OPS: tuple[str, ...] = ("first", "last", "next", "prev", "nexts", "prevs")

# Nazwy wbudowanych stałych relacyjnych
BUILTIN_CONSTS: frozenset[str] = frozenset({"univ", "none", "iden"})


def ordering_name(sig: SigName, op: str) -> str:
    """Nazwa relacji porządku, np. ordering_name('Time', 'next') → 'Time/next'."""
    return f"{sig}/{op}"


# ---------------------------------------------------------------------------
# Multiplicity
# ---------------------------------------------------------------------------

class Multiplicity(StrEnum):
    """
    Krotność.

    Dla relacji dotyczy ostatniej kolumny: liczba krotek na każdy prefiks.
    Dla sygnatury: liczba atomów (one = dokładnie 1, lone = 0..1, some = 1..).
    """
    SET  = "set"
    ONE  = "one"
    LONE = "lone"
    SOME = "some"


# ---------------------------------------------------------------------------
# Sig
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class Sig:
    """
    Sygnatura (typ atomów).

    - name:     nazwa sygnatury
    - parent:   sygnatura nadrzędna (None dla sygnatury najwyższego poziomu)
    - abstract: atomy wyłącznie z podsygnatur
    - mult:     one / lone / some (None = bez ograniczenia poza zakresem)
    - ordered:  czy sygnatura ma liniowy porządek atomów (np. Time)
    """
    name: SigName
    parent: SigName | None = None
    abstract: bool = False
    mult: Multiplicity | None = None
    ordered: bool = False

    @property
    def is_top(self) -> bool:
        return self.parent is None


# ---------------------------------------------------------------------------
# Relation
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class Relation:
    """
    Relacja nad krotkami atomów.

    - name:  nazwa relacji (unikalna w modelu)
    - cols:  sygnatury kolejnych kolumn; arność = len(cols)
    - mult:  krotność ostatniej kolumny na prefiks cols[:-1]
    - owner: sygnatura, w której zadeklarowano pole (None dla relacji wolnej)
    """
    name: str
    cols: tuple[SigName, ...]
    mult: Multiplicity = Multiplicity.SET
    owner: SigName | None = None

    @property
    def arity(self) -> int:
        return len(self.cols)

    def __str__(self) -> str:
        kw = "" if self.mult == Multiplicity.SET else f"{self.mult} "
        head = " -> ".join(self.cols[:-1])
        if head:
            return f"{self.name}: {head} -> {kw}{self.cols[-1]}"
        return f"{self.name}: {kw}{self.cols[-1]}"
