"""
Model — kompletny, sparsowany opis analizowanego systemu.

Fact       — nazwane ograniczenie obowiązujące w każdej instancji
Predicate  — nazwany, parametryzowany szablon formuły
Function   — nazwany, parametryzowany szablon wyrażenia relacyjnego
Command    — polecenie analizy: check <predykat> / run <predykat> + zakres
Model      — sygnatury, relacje, fakty, predykaty, funkcje, polecenia

Model jest niemutowalny po załadowaniu; solver współdzieli go między
gałęziami wyszukiwania bez kopiowania.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum

from .expressions import Decl, Expr, Formula
from .signatures import Relation, Sig, SigName


@dataclass(frozen=True, slots=True)
class Fact:
    name: str
    body: Formula


@dataclass(frozen=True, slots=True)
class Predicate:
    name:   str
    params: tuple[Decl, ...]
    body:   Formula


@dataclass(frozen=True, slots=True)
class Function:
    name:   str
    params: tuple[Decl, ...]
    body:   Expr


class CommandKind(StrEnum):
    CHECK = "check"
    RUN   = "run"


@dataclass(frozen=True, slots=True)
class Command:
    """
    Polecenie analizy.

    - name:   nazwa polecenia (unikalna w modelu)
    - kind:   check (szukaj kontrprzykładu) / run (szukaj instancji)
    - target: nazwa predykatu
    - scope:  tekst zakresu, np. "3 but 5 Time, 4 Event" (None = domyślny)
    - expect: oczekiwany werdykt (None = check → verified, run → satisfiable)
    """
    name:   str
    kind:   CommandKind
    target: str
    scope:  str | None = None
    expect: str | None = None


@dataclass(slots=True)
class Model:
    name:       str
    sigs:       dict[SigName, Sig]           = field(default_factory=dict)
    relations:  dict[str, Relation]          = field(default_factory=dict)
    facts:      list[Fact]                   = field(default_factory=list)
    predicates: dict[str, Predicate]         = field(default_factory=dict)
    functions:  dict[str, Function]          = field(default_factory=dict)
    commands:   list[Command]                = field(default_factory=list)

    # ------------------------------------------------------------------
    # Drzewo sygnatur
    # ------------------------------------------------------------------

    def children(self, name: SigName) -> list[SigName]:
        return [s.name for s in self.sigs.values() if s.parent == name]

    def ancestors(self, name: SigName) -> list[SigName]:
        """Przodkowie od rodzica do korzenia (bez samej sygnatury)."""
        out: list[SigName] = []
        cur = self.sigs[name].parent
        while cur is not None:
            out.append(cur)
            cur = self.sigs[cur].parent
        return out

    def top(self, name: SigName) -> SigName:
        chain = self.ancestors(name)
        return chain[-1] if chain else name

    def subtree(self, name: SigName) -> list[SigName]:
        """Sygnatura i wszyscy jej potomkowie w porządku preorder."""
        out = [name]
        for child in self.children(name):
            out.extend(self.subtree(child))
        return out

    def top_sigs(self) -> list[SigName]:
        return [s.name for s in self.sigs.values() if s.is_top]

    def ordered_sigs(self) -> list[SigName]:
        return [s.name for s in self.sigs.values() if s.ordered]

    # ------------------------------------------------------------------
    # Relacje i polecenia
    # ------------------------------------------------------------------

    def fields_of(self, name: SigName) -> list[Relation]:
        return [r for r in self.relations.values() if r.owner == name]

    def command(self, name: str) -> Command:
        for cmd in self.commands:
            if cmd.name == name:
                return cmd
        raise KeyError(f"Brak polecenia '{name}' w modelu '{self.name}'.")
