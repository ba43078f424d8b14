"""
solver/symmetry.py — łamanie symetrii atomów wymiennych (lex-leader).

Dwa wolne atomy tej samej sygnatury najwyższego poziomu i z tymi samymi
opcjami tagu są wymienne: zamiana ich w dowolnej instancji daje instancję
izomorficzną. Atomy sygnatury uporządkowanej nie są wymienne.
Dla każdej pary sąsiednich atomów wymiennych (x, y) i permutacji π = (x y) wymagamy

    V ≤lex π(V)        (False < True)

gdzie V to wektor wszystkich zmiennych wyszukiwania (bity tagów, potem
krotki relacji) w kolejności rozgałęziania. Porównanie przerywa pierwsza
nieustalona pozycja, więc test jest poprawny także dla częściowego
przypisania: odcina tylko gałęzie, w których każda kompletna instancja
jest niekanoniczna.
"""

from __future__ import annotations

from typing import TypeAlias

import logging
from dataclasses import dataclass

from .atoms import Atom, AtomPool
from .store import RelationStore, Tuple

log = logging.getLogger(__name__)

Variable: TypeAlias = tuple[str, Tuple]


def swap(t: Tuple, x: Atom, y: Atom) -> Tuple:
    return tuple(y if a == x else x if a == y else a for a in t)


@dataclass(frozen=True, slots=True)
class SymmetryPair:
    x:     Atom
    y:     Atom
    # (zmienna, jej obraz) w kolejności V; tylko zmienne ruszane przez (x y)
    moved: tuple[tuple[Variable, Variable], ...]


class LexLeader:
    """
    Użycie:
        lex = LexLeader(pool, variables)
        lex.ok(store)   → False, gdy gałąź na pewno nie zawiera instancji kanonicznej
    """

    def __init__(self, pool: AtomPool, variables: list[Variable]) -> None:
        self._pairs: list[SymmetryPair] = []

        classes: dict[tuple, list[Atom]] = {}
        for a in pool.free_atoms():
            if pool.is_ordered(a):
                continue
            classes.setdefault((pool.top(a), pool.tags(a)), []).append(a)

        for atoms in classes.values():
            for x, y in zip(atoms, atoms[1:]):
                moved = []
                for rel, t in variables:
                    if x not in t and y not in t:
                        continue
                    image = swap(t, x, y)
                    if image != t:
                        moved.append(((rel, t), (rel, image)))
                self._pairs.append(SymmetryPair(x, y, tuple(moved)))

        log.debug(
            "Symetrie: %s",
            ", ".join(f"({pool.name(p.x)} {pool.name(p.y)})" for p in self._pairs) or "-",
        )

    @property
    def pairs(self) -> list[SymmetryPair]:
        return self._pairs

    def ok(self, store: RelationStore) -> bool:
        for pair in self._pairs:
            for (rel, t), (rel_img, t_img) in pair.moved:
                a = store.contains(rel, t)
                b = store.contains(rel_img, t_img)
                if a is None or b is None:
                    break
                if a == b:
                    continue
                if a and not b:
                    return False
                break
        return True
