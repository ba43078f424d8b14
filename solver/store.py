"""
solver/store.py — magazyn relacji (ograniczenia dolne/górne) i operatory relacyjne.

Każda relacja (także sygnatury jako relacje unarne oraz relacje porządku)
ma parę zbiorów krotek:
  lower — krotki na pewno obecne
  upper — krotki być może obecne (lower ⊆ upper)
Relacja jest zatwierdzona (committed), gdy lower == upper.

RelationStore jest niemutowalny: każda zmiana kopiuje jeden poziom słownika
i zbiory zmienionych relacji, więc powrót w wyszukiwaniu to porzucenie
referencji.

Operatory (join, product, union, ...) są czyste: zwracają nowe frozenset.
"""

from __future__ import annotations

from typing import TypeAlias

from collections.abc import Iterable
from typing import TYPE_CHECKING, NamedTuple

from data_model.signatures import ORDERING_OPS, ordering_name

if TYPE_CHECKING:
    from data_model.model import Model
    from .atoms import AtomPool

Tuple: TypeAlias = tuple[int, ...]
TupleSet: TypeAlias = frozenset[Tuple]
# Literał: (relacja, krotka, obecna?)
Literal: TypeAlias = tuple[str, Tuple, bool]

EMPTY: TupleSet = frozenset()


class Bounds(NamedTuple):
    lower: TupleSet
    upper: TupleSet

    @property
    def exact(self) -> bool:
        return self.lower == self.upper

    def contains(self, t: Tuple) -> bool | None:
        if t in self.lower:
            return True
        if t not in self.upper:
            return False
        return None


class Conflict(Exception):
    """Sprzeczność: krotka wymuszona poza ograniczeniami relacji."""

    def __init__(self, rel: str = "", tup: Tuple = (), reason: str = "") -> None:
        super().__init__(reason or f"{rel}{tup}")
        self.rel = rel
        self.tup = tup


# ---------------------------------------------------------------------------
# Operatory relacyjne (czyste)
# ---------------------------------------------------------------------------

def join(a: TupleSet, b: TupleSet) -> TupleSet:
    """Złączenie na sąsiednich kolumnach: ostatnia kolumna a = pierwsza kolumna b."""
    if not a or not b:
        return EMPTY
    index: dict[int, list[Tuple]] = {}
    for t in b:
        index.setdefault(t[0], []).append(t[1:])
    return frozenset(
        x[:-1] + y
        for x in a
        for y in index.get(x[-1], ())
    )


def product(a: TupleSet, b: TupleSet) -> TupleSet:
    return frozenset(x + y for x in a for y in b)


def union(a: TupleSet, b: TupleSet) -> TupleSet:
    return a | b


def difference(a: TupleSet, b: TupleSet) -> TupleSet:
    return a - b


def intersection(a: TupleSet, b: TupleSet) -> TupleSet:
    return a & b


def transpose(a: TupleSet) -> TupleSet:
    return frozenset((t[1], t[0]) for t in a)


def closure(a: TupleSet) -> TupleSet:
    """Domknięcie przechodnie relacji binarnej."""
    result = set(a)
    frontier = set(a)
    succ: dict[int, set[int]] = {}
    for x, y in a:
        succ.setdefault(x, set()).add(y)
    while frontier:
        new = {
            (x, z)
            for (x, y) in frontier
            for z in succ.get(y, ())
            if (x, z) not in result
        }
        result |= new
        frontier = new
    return frozenset(result)


def identity(atoms: TupleSet) -> TupleSet:
    return frozenset((t[0], t[0]) for t in atoms)


def restrict(a: TupleSet, col: int, atoms: Iterable[int]) -> TupleSet:
    """Krotki, których kolumna 'col' należy do zbioru atomów."""
    allowed = set(atoms)
    return frozenset(t for t in a if t[col] in allowed)


def ordering_tuples(order: tuple[int, ...], m: int) -> dict[str, TupleSet]:
    """Relacje porządku, gdy obecny jest prefiks order[:m]."""
    present = order[:m]
    nxt = frozenset(zip(present, present[1:]))
    nexts = closure(nxt)
    return {
        "first": frozenset({(present[0],)}) if present else EMPTY,
        "last":  frozenset({(present[-1],)}) if present else EMPTY,
        "next":  nxt,
        "prev":  transpose(nxt),
        "nexts": nexts,
        "prevs": transpose(nexts),
    }


# ---------------------------------------------------------------------------
# RelationStore
# ---------------------------------------------------------------------------

class RelationStore:
    __slots__ = ("_bounds",)

    def __init__(self, bounds: dict[str, Bounds]) -> None:
        self._bounds = bounds

    @classmethod
    def initial(cls, model: Model, pool: AtomPool) -> RelationStore:
        """
        Ograniczenia początkowe:
          sygnatura S: lower = atomy dedykowane, upper = kandydaci
          relacja R:   lower = ∅, upper = iloczyn kandydatów kolumn
          porządek S:  first/last/next/prev/nexts/prevs; lower = część wspólna,
                       upper = suma wartości po wszystkich długościach prefiksu
        """
        bounds: dict[str, Bounds] = {}
        for name in model.sigs:
            bounds[name] = Bounds(
                frozenset((a,) for a in pool.fixed(name)),
                frozenset((a,) for a in pool.atoms(name)),
            )
        for rel in model.relations.values():
            upper: TupleSet = frozenset({()})
            for col in rel.cols:
                upper = product(upper, bounds[col].upper)
            bounds[rel.name] = Bounds(EMPTY, upper)
        for name in model.ordered_sigs():
            order = pool.ordering(name)
            lo = len(pool.fixed(name))
            options = [ordering_tuples(order, m) for m in range(lo, len(order) + 1)]
            for op in ORDERING_OPS:
                values = [opt[op] for opt in options]
                bounds[ordering_name(name, op)] = Bounds(
                    frozenset.intersection(*values),
                    frozenset.union(*values),
                )
        return cls(bounds)

    # ------------------------------------------------------------------
    # Odczyt
    # ------------------------------------------------------------------

    def names(self) -> list[str]:
        return list(self._bounds)

    def __contains__(self, name: str) -> bool:
        return name in self._bounds

    def bounds(self, name: str) -> Bounds:
        return self._bounds[name]

    def tuples(self, name: str) -> TupleSet:
        """Krotki na pewno obecne; dla relacji zatwierdzonej — jej wartość."""
        return self._bounds[name].lower

    def contains(self, name: str, t: Tuple) -> bool | None:
        """Przynależność trójwartościowa: True / False / None (nieustalona)."""
        return self._bounds[name].contains(t)

    def is_committed(self, name: str) -> bool:
        return self._bounds[name].exact

    def is_complete(self) -> bool:
        return all(b.exact for b in self._bounds.values())

    def snapshot(self) -> dict[str, TupleSet]:
        return {name: b.lower for name, b in self._bounds.items()}

    # ------------------------------------------------------------------
    # Zmiany (zwracają nowy magazyn)
    # ------------------------------------------------------------------

    def assign(self, name: str, tuples: Iterable[Tuple]) -> RelationStore:
        """Nadpisanie całej relacji; Conflict gdy wartość wychodzi poza ograniczenia."""
        value = frozenset(tuples)
        b = self._bounds[name]
        if not b.lower <= value or not value <= b.upper:
            raise Conflict(name, reason=f"wartość {name} poza ograniczeniami")
        new = dict(self._bounds)
        new[name] = Bounds(value, value)
        return RelationStore(new)

    def include(self, name: str, t: Tuple) -> RelationStore:
        return self.apply([(name, t, True)])[0]

    def exclude(self, name: str, t: Tuple) -> RelationStore:
        return self.apply([(name, t, False)])[0]

    def apply(self, literals: Iterable[Literal]) -> tuple[RelationStore, set[str]]:
        """
        Zatwierdza literały; zwraca (nowy magazyn, nazwy zmienionych relacji).

        Raises:
            Conflict: krotka wymuszona jako obecna poza upper albo
                      jako nieobecna w lower
        """
        new: dict[str, Bounds] | None = None
        changed: set[str] = set()
        for name, t, present in literals:
            b = (new or self._bounds)[name]
            if present:
                if t in b.lower:
                    continue
                if t not in b.upper:
                    raise Conflict(name, t)
                b = Bounds(b.lower | {t}, b.upper)
            else:
                if t not in b.upper:
                    continue
                if t in b.lower:
                    raise Conflict(name, t)
                b = Bounds(b.lower, b.upper - {t})
            if new is None:
                new = dict(self._bounds)
            new[name] = b
            changed.add(name)
        if new is None:
            return self, changed
        return RelationStore(new), changed
