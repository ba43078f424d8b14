"""
solver/instance.py — znaleziona instancja: zatwierdzone wartości wszystkich relacji.

Atomy dostają nazwy w stylu Alloy według najbardziej szczegółowej
sygnatury i kolejności w puli: Publish$0, Publish$1, Callback$0, ...
Atomy nieobecne w instancji (tag None) nie mają nazwy.
"""

from __future__ import annotations

from data_model.model import Model
from data_model.signatures import SigName

from .atoms import Atom, AtomPool
from .store import RelationStore, Tuple, TupleSet


class Instance:

    def __init__(self, model: Model, pool: AtomPool, relations: dict[str, TupleSet]) -> None:
        self.model     = model
        self.pool      = pool
        self.relations = relations
        self._tags: dict[Atom, SigName] = {}
        self._labels: dict[Atom, str] = {}
        self._assign_labels()

    @classmethod
    def from_store(cls, model: Model, pool: AtomPool, store: RelationStore) -> Instance:
        return cls(model, pool, store.snapshot())

    def _assign_labels(self) -> None:
        depth = {name: len(self.model.ancestors(name)) for name in self.model.sigs}
        for top in self.model.top_sigs():
            for a in self.pool.top_atoms(top):
                best: SigName | None = None
                for sig in self.pool.subtree(top):
                    if (a,) in self.relations[sig] and (best is None or depth[sig] > depth[best]):
                        best = sig
                if best is not None:
                    self._tags[a] = best

        counters: dict[SigName, int] = {}
        for a in sorted(self._tags):
            sig = self._tags[a]
            k = counters.get(sig, 0)
            counters[sig] = k + 1
            self._labels[a] = f"{sig}${k}"

    # ------------------------------------------------------------------

    def tuples(self, name: str) -> TupleSet:
        return self.relations[name]

    def atoms(self, sig: SigName) -> tuple[Atom, ...]:
        return tuple(sorted(t[0] for t in self.relations[sig]))

    def tag(self, atom: Atom) -> SigName | None:
        """Najbardziej szczegółowa sygnatura atomu (None = atom nieobecny)."""
        return self._tags.get(atom)

    def label(self, atom: Atom) -> str:
        return self._labels.get(atom, self.pool.name(atom))

    def labels(self, t: Tuple) -> tuple[str, ...]:
        return tuple(self.label(a) for a in t)

    def named(self, name: str) -> list[tuple[str, ...]]:
        return sorted(self.labels(t) for t in self.relations[name])

    def as_dict(self) -> dict[str, list[list[str]]]:
        """Sygnatury i relacje modelu (bez relacji porządku) jako listy nazw."""
        names = list(self.model.sigs) + list(self.model.relations)
        return {name: [list(t) for t in self.named(name)] for name in names}

    def __repr__(self) -> str:
        return f"Instance({len(self._tags)} atomów)"
