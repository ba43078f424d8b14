"""
solver/atoms.py — pula atomów dla rozwiązanego zakresu.

Atomy to liczby całkowite 0..n-1 (tożsamość = równość liczb). Dla każdej
sygnatury najwyższego poziomu T alokowane są:

  - atomy dedykowane: po lower(S) atomów każdej konkretnej sygnatury-liścia S
    o dokładnym limicie (np. 'one sig Wheel', 'exactly 5 Time'); ich
    najbardziej szczegółowa sygnatura jest ustalona,
  - atomy wolne: ich najbardziej szczegółową sygnaturę ("tag") wybiera
    wyszukiwanie spośród opcji; opcja None oznacza atom nieobecny.

Liczba wolnych atomów = min(upper(T) - dedykowane, suma górnych limitów opcji).

Sygnatura uporządkowana S (zawsze najwyższego poziomu, bez podsygnatur)
dostaje upper(S) atomów S$0..S$k-1 w kolejności porządku: pierwsze lower(S)
są pewne, pozostałe mają opcje (None, S). Obecne atomy zawsze tworzą prefiks
porządku; decyduje o tym jedna grupa "długości" (solver/engine.py).
"""

from __future__ import annotations

from typing import TypeAlias

from collections.abc import Iterator
from functools import cached_property

from data_model.model import Model
from data_model.signatures import SigName

from .errors import ScopeError
from .scope import ScopeTable

Atom: TypeAlias = int
Tag: TypeAlias = SigName | None


class AtomPool:
    """
    Niemutowalna pula atomów współdzielona przez wszystkie gałęzie wyszukiwania.

    Użycie:
        pool = AtomPool(model, table)
        pool.atoms("Event")     → (8, 9, 10, 11)   kandydaci (także podsygnatur)
        pool.fixed("Time")      → (0, 1, 2, 3, 4)  pewni członkowie ('exactly 5 Time')
        pool.tags(9)            → (None, 'Publish', 'Callback')
        pool.name(0)            → 'Time$0'
    """

    def __init__(self, model: Model, table: ScopeTable) -> None:
        self._model = model
        self._table = table
        self._names: list[str] = []
        self._tops:  list[SigName] = []
        self._tags:  list[tuple[Tag, ...]] = []
        self._by_top: dict[SigName, tuple[Atom, ...]] = {}
        self._allocate()

    # ------------------------------------------------------------------
    # Alokacja
    # ------------------------------------------------------------------

    def _is_dedicated(self, name: SigName) -> bool:
        sig = self._model.sigs[name]
        return (
            not sig.abstract
            and not self._model.children(name)
            and self._table.is_exact(name)
        )

    def _add(self, name: str, top: SigName, tags: tuple[Tag, ...]) -> Atom:
        self._names.append(name)
        self._tops.append(top)
        self._tags.append(tags)
        return len(self._names) - 1

    def _allocate(self) -> None:
        model, table = self._model, self._table
        for top in model.top_sigs():
            if model.sigs[top].ordered:
                self._by_top[top] = tuple(
                    self._add(f"{top}${k}", top, (top,) if k < table.lower(top) else (None, top))
                    for k in range(table.upper(top))
                )
                continue

            members: list[Atom] = []
            sigs = model.subtree(top)

            dedicated = 0
            for name in sigs:
                if self._is_dedicated(name):
                    for k in range(table.lower(name)):
                        members.append(self._add(f"{name}${k}", top, (name,)))
                    dedicated += table.lower(name)
            if dedicated > table.upper(top):
                raise ScopeError(
                    top,
                    f"{dedicated} atomów o ustalonej sygnaturze przekracza limit {table.upper(top)}",
                )

            options = [
                name for name in sigs
                if not model.sigs[name].abstract
                and not self._is_dedicated(name)
                and table.upper(name) > 0
            ]
            capacity = sum(table.upper(name) for name in options)
            free = min(table.upper(top) - dedicated, capacity)
            tags: tuple[Tag, ...] = tuple(options)
            if table.lower(top) < dedicated + free:
                tags = (None,) + tags
            for k in range(free):
                members.append(self._add(f"{top}${k}", top, tags))

            self._by_top[top] = tuple(members)

    # ------------------------------------------------------------------
    # Zapytania
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._names)

    def name(self, atom: Atom) -> str:
        return self._names[atom]

    def top(self, atom: Atom) -> SigName:
        return self._tops[atom]

    def tags(self, atom: Atom) -> tuple[Tag, ...]:
        """Możliwe najbardziej szczegółowe sygnatury atomu (None = nieobecny)."""
        return self._tags[atom]

    def is_free(self, atom: Atom) -> bool:
        return len(self._tags[atom]) > 1 or self._tags[atom][0] is None

    def free_atoms(self) -> tuple[Atom, ...]:
        return tuple(a for a in range(len(self._names)) if self.is_free(a))

    def top_atoms(self, top: SigName) -> tuple[Atom, ...]:
        return self._by_top[top]

    @cached_property
    def _subtrees(self) -> dict[SigName, frozenset[SigName]]:
        return {name: frozenset(self._model.subtree(name)) for name in self._model.sigs}

    def atoms(self, sig: SigName) -> tuple[Atom, ...]:
        """Atomy, które mogą należeć do sygnatury (z podsygnaturami)."""
        sub = self._subtrees[sig]
        top = self._model.top(sig)
        return tuple(
            a for a in self._by_top[top]
            if any(t is not None and t in sub for t in self._tags[a])
        )

    def fixed(self, sig: SigName) -> tuple[Atom, ...]:
        """Atomy na pewno należące do sygnatury (dedykowane)."""
        sub = self._subtrees[sig]
        return tuple(
            a for a in self.atoms(sig)
            if not self.is_free(a) and self._tags[a][0] in sub
        )

    def iter_atoms(self, sig: SigName) -> Iterator[Atom]:
        """Leniwa, skończona sekwencja atomów sygnatury; każde wywołanie zaczyna od nowa."""
        yield from self.atoms(sig)

    def count(self, sig: SigName) -> int:
        return len(self.atoms(sig))

    def ordering(self, sig: SigName) -> tuple[Atom, ...]:
        """Kandydaci sygnatury uporządkowanej w kolejności first → last."""
        return self._by_top[sig]

    def is_ordered(self, atom: Atom) -> bool:
        return self._model.sigs[self._tops[atom]].ordered

    def in_sig(self, tag: Tag, sig: SigName) -> bool:
        """Czy atom o tagu 'tag' należy do sygnatury 'sig'."""
        return tag is not None and tag in self._subtrees[sig]

    def subtree(self, sig: SigName) -> frozenset[SigName]:
        return self._subtrees[sig]

    def __repr__(self) -> str:
        return f"AtomPool({', '.join(self._names)})"
