"""
solver/engine.py — silnik wyszukiwania: DFS z propagacją i łamaniem symetrii.

Przebieg:
  1. Problem: pula atomów, magazyn początkowy, fakty (modelu + niejawne + cel)
     rozwinięte w instancje obserwujące relacje, grupy decyzyjne.
  2. Propagacja w korzeniu (wszystkie instancje) do punktu stałego.
  3. DFS po grupach w ustalonej kolejności; każda gałąź: zatwierdzenie
     literałów kandydata → propagacja → test lex-leader.
  4. Kompletny magazyn → ponowna walidacja wszystkich faktów zwykłą
     ewaluacją → Instance.

Grupy decyzyjne (kolejność rozgałęziania):
  - długość sygnatury uporządkowanej        opcje: prefiksy od najkrótszego,
                                            razem z relacjami porządku
  - tag wolnego atomu                       opcje: kolejność z puli (None pierwsze)
  - pole 'one'/'lone' dla prefiksu krotki   opcje: pusto, potem atomy wg puli
  - pojedyncza krotka relacji 'set'/'some'  opcje: nieobecna, obecna
Relacje: najpierw nie-czasowe (wg atomu prefiksu), potem czasowe krok po
kroku (klucz: indeks atomu sygnatury uporządkowanej w krotce).

Budżet (węzły / sekundy) → SearchTimeout → status TIMEOUT (nigdy UNSAT).
"""

from __future__ import annotations

from typing import TypeAlias

import logging
import threading
import time
from collections.abc import Iterator
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import StrEnum

from data_model.expressions import Formula
from data_model.model import Fact, Model
from data_model.signatures import ORDERING_OPS, Multiplicity, ordering_name

from .atoms import AtomPool
from .errors import InternalInvariantViolation, SearchTimeout
from .evaluator import Evaluator
from .grounding import FactInstance, ground
from .instance import Instance
from .propagate import Propagator
from .scope import ScopeTable, implicit_facts
from .store import Conflict, Literal, RelationStore, Tuple, ordering_tuples
from .symmetry import LexLeader, Variable

log = logging.getLogger(__name__)

# Nazwa faktu-celu (negacja właściwości albo predykat polecenia run)
GOAL = "$goal"


class Status(StrEnum):
    SAT     = "sat"
    UNSAT   = "unsat"
    TIMEOUT = "timeout"


@dataclass(slots=True)
class SearchOptions:
    """
    - max_nodes:   limit zatwierdzeń (None = bez limitu)
    - max_seconds: limit czasu ściennego (None = bez limitu)
    - workers:     > 1 → równoległe przeszukiwanie pierwszego poziomu
    - symmetry:    łamanie symetrii lex-leader
    - cancel:      zewnętrzna flaga przerwania (traktowana jak wyczerpanie budżetu)
    """
    max_nodes:   int | None = None
    max_seconds: float | None = None
    workers:     int = 1
    symmetry:    bool = True
    cancel:      threading.Event | None = None


@dataclass(slots=True)
class SearchStats:
    nodes:        int = 0
    conflicts:    int = 0
    propagations: int = 0
    pruned:       int = 0
    instances:    int = 0
    elapsed:      float = 0.0

    def merge(self, other: SearchStats) -> None:
        self.nodes        += other.nodes
        self.conflicts    += other.conflicts
        self.propagations += other.propagations
        self.pruned       += other.pruned
        self.instances    += other.instances

    def as_dict(self) -> dict[str, int | float]:
        return {
            "nodes":        self.nodes,
            "conflicts":    self.conflicts,
            "propagations": self.propagations,
            "pruned":       self.pruned,
            "elapsed":      round(self.elapsed, 3),
        }


@dataclass(slots=True)
class SolveResult:
    status:   Status
    instance: Instance | None
    stats:    SearchStats
    table:    ScopeTable
    goal:     Formula | None = None


# ---------------------------------------------------------------------------
# Grupy decyzyjne
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class Group:
    key:     tuple
    label:   str
    options: tuple[tuple[Literal, ...], ...]
    vars:    tuple[Variable, ...]
    # opcje są jedynymi dopuszczalnymi wartościami zmiennych grupy
    exclusive: bool = False

    def decided(self, store: RelationStore) -> bool:
        return all(store.contains(rel, t) is not None for rel, t in self.vars)

    def candidates(self, store: RelationStore) -> list[tuple[Literal, ...]]:
        """Opcje zgodne z magazynem, w kolejności deklaracji."""
        return [
            opt for opt in self.options
            if all(store.contains(rel, t) in (present, None) for rel, t, present in opt)
        ]


def build_groups(model: Model, pool: AtomPool, store: RelationStore) -> list[Group]:
    order_index: dict[int, int] = {}
    for sig in model.ordered_sigs():
        for i, a in enumerate(pool.ordering(sig)):
            order_index[a] = i

    def rank(t: Tuple) -> int:
        steps = [order_index[a] for a in t if a in order_index]
        return 1 + max(steps) if steps else 0

    groups: list[Group] = []
    for sig in model.ordered_sigs():
        order = pool.ordering(sig)
        lo = len(pool.fixed(sig))
        if lo == len(order):
            continue
        options: list[tuple[Literal, ...]] = []
        for m in range(lo, len(order) + 1):
            value = ordering_tuples(order, m)
            literals: list[Literal] = [(sig, (a,), i < m) for i, a in enumerate(order) if i >= lo]
            for op in ORDERING_OPS:
                name = ordering_name(sig, op)
                literals.extend((name, t, t in value[op]) for t in sorted(store.bounds(name).upper))
            options.append(tuple(literals))
        groups.append(Group(
            key=(0, 0, order[lo], 0, ()),
            label=f"#{sig}",
            options=tuple(options),
            vars=tuple((rel, t) for rel, t, _ in options[0]),
            exclusive=True,
        ))

    for a in pool.free_atoms():
        if pool.is_ordered(a):
            continue
        sigs = model.subtree(pool.top(a))
        groups.append(Group(
            key=(0, 0, a, 0, ()),
            label=f"tag {pool.name(a)}",
            options=tuple(
                tuple((s, (a,), pool.in_sig(tag, s)) for s in sigs)
                for tag in pool.tags(a)
            ),
            vars=tuple((s, (a,)) for s in sigs),
        ))

    for idx, rel in enumerate(model.relations.values()):
        upper = store.bounds(rel.name).upper
        if rel.mult in (Multiplicity.ONE, Multiplicity.LONE):
            by_prefix: dict[Tuple, list[int]] = {}
            for t in sorted(upper):
                by_prefix.setdefault(t[:-1], []).append(t[-1])
            for prefix, values in by_prefix.items():
                empty = tuple((rel.name, prefix + (w,), False) for w in values)
                groups.append(Group(
                    key=(1, rank(prefix), prefix[0] if prefix else -1, idx, prefix),
                    label=f"{rel.name}[{', '.join(pool.name(a) for a in prefix)}]",
                    options=(empty,) + tuple(
                        tuple((rel.name, prefix + (w,), w == v) for w in values)
                        for v in values
                    ),
                    vars=tuple((rel.name, prefix + (w,)) for w in values),
                ))
        else:
            for t in sorted(upper):
                groups.append(Group(
                    key=(1, rank(t), t[0], idx, t),
                    label=f"{rel.name}({', '.join(pool.name(a) for a in t)})",
                    options=(((rel.name, t, False),), ((rel.name, t, True),)),
                    vars=((rel.name, t),),
                ))

    groups.sort(key=lambda g: g.key)
    return groups


# ---------------------------------------------------------------------------
# Problem
# ---------------------------------------------------------------------------

class Problem:
    """Niemutowalne dane wyszukiwania współdzielone przez wszystkie gałęzie i wątki."""

    def __init__(
        self,
        model: Model,
        table: ScopeTable,
        goal: Formula | None = None,
        goal_name: str = GOAL,
    ) -> None:
        self.model = model
        self.table = table
        self.goal  = goal
        self.pool  = AtomPool(model, table)

        self.facts: list[Fact] = list(model.facts) + implicit_facts(model, table)
        if goal is not None:
            self.facts.append(Fact(goal_name, goal))

        self.initial = RelationStore.initial(model, self.pool)
        ev = Evaluator(model, self.pool)
        self.instances: list[FactInstance] = ground(self.facts, ev, self.initial)

        watchers: dict[str, list[int]] = {}
        for inst in self.instances:
            for name in inst.reads:
                watchers.setdefault(name, []).append(inst.index)
        self.watchers: dict[str, frozenset[int]] = {k: frozenset(v) for k, v in watchers.items()}

        self.groups = build_groups(model, self.pool, self.initial)
        self.exclusive = [g for g in self.groups if g.exclusive]
        self.variables: list[Variable] = [v for g in self.groups for v in g.vars]
        self.symmetry = LexLeader(self.pool, self.variables)

        log.debug(
            "Problem: %d atomów, %d instancji faktów, %d grup decyzyjnych",
            len(self.pool), len(self.instances), len(self.groups),
        )


# ---------------------------------------------------------------------------
# Budżet
# ---------------------------------------------------------------------------

class _Cancelled(Exception):
    """Gałąź przerwana, bo wątek o niższym indeksie znalazł instancję."""


class _Budget:
    """Licznik węzłów i zegar współdzielone przez wątki (pod blokadą)."""

    def __init__(self, options: SearchOptions) -> None:
        self._options = options
        self._lock    = threading.Lock()
        self._start   = time.monotonic()
        self.nodes    = 0

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self._start

    def tick(self, local: threading.Event | None = None) -> None:
        with self._lock:
            self.nodes += 1
            nodes = self.nodes
        opts = self._options
        if opts.max_nodes is not None and nodes > opts.max_nodes:
            raise SearchTimeout(nodes, self.elapsed)
        if opts.max_seconds is not None and self.elapsed > opts.max_seconds:
            raise SearchTimeout(nodes, self.elapsed)
        if opts.cancel is not None and opts.cancel.is_set():
            raise SearchTimeout(nodes, self.elapsed)
        if local is not None and local.is_set():
            raise _Cancelled()


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------

State: TypeAlias = tuple[RelationStore, frozenset[int]]


class Search:
    """
    Przeszukiwanie w głąb jednego poddrzewa. Każdy wątek ma własny obiekt
    Search (własny ewaluator), problem i budżet są współdzielone.
    """

    def __init__(
        self,
        problem: Problem,
        options: SearchOptions,
        budget: _Budget,
        local_cancel: threading.Event | None = None,
    ) -> None:
        self.problem = problem
        self.options = options
        self.budget  = budget
        self.stats   = SearchStats()
        self._local  = local_cancel
        self._ev     = Evaluator(problem.model, problem.pool)
        self._prop   = Propagator(self._ev)

    # ------------------------------------------------------------------
    # Propagacja
    # ------------------------------------------------------------------

    def _woken(self, changed: set[str]) -> set[int]:
        out: set[int] = set()
        for name in changed:
            out |= self.problem.watchers.get(name, frozenset())
        return out

    def _propagate(
        self,
        store: RelationStore,
        queue: set[int],
        settled: frozenset[int],
    ) -> State:
        """
        Punkt stały: instancje z kolejki są oceniane, wymuszone literały
        zatwierdzane, a instancje czytające zmienione relacje wracają do kolejki.

        Raises:
            Conflict: instancja fałszywa, sprzeczne wymuszenia albo grupa
                      wyłączna (długość porządku) bez zgodnej opcji
        """
        done = set(settled)
        instances = self.problem.instances
        queue = queue - done
        while queue:
            changed: set[str] = set()
            for idx in sorted(queue):
                if idx in done:
                    continue
                inst = instances[idx]
                v = inst.evaluate(self._ev, store)
                if v is True:
                    done.add(idx)
                    continue
                if v is False:
                    raise Conflict(reason=inst.describe(self._ev))
                literals = inst.force(self._prop, store)
                if literals:
                    store, ch = store.apply(literals)
                    if ch:
                        self.stats.propagations += len(literals)
                        changed |= ch
            queue = self._woken(changed) - done
        for g in self.problem.exclusive:
            if not g.candidates(store):
                raise Conflict(reason=f"{g.label}: brak zgodnej opcji")
        return store, frozenset(done)

    def root(self) -> State | None:
        """Magazyn początkowy po propagacji wszystkich instancji; None = sprzeczność."""
        p = self.problem
        try:
            return self._propagate(p.initial, set(range(len(p.instances))), frozenset())
        except Conflict as e:
            log.debug("Sprzeczność w korzeniu: %s", e)
            return None

    def commit(self, state: State, literals: tuple[Literal, ...]) -> State | None:
        self.budget.tick(self._local)
        self.stats.nodes += 1
        store, settled = state
        try:
            store, changed = store.apply(literals)
            store, settled = self._propagate(store, self._woken(changed), settled)
        except Conflict:
            self.stats.conflicts += 1
            return None
        if self.options.symmetry and not self.problem.symmetry.ok(store):
            self.stats.pruned += 1
            return None
        return store, settled

    # ------------------------------------------------------------------
    # DFS
    # ------------------------------------------------------------------

    def next_group(self, store: RelationStore, start: int = 0) -> int | None:
        groups = self.problem.groups
        for i in range(start, len(groups)):
            if not groups[i].decided(store):
                return i
        return None

    def explore(self, state: State) -> Iterator[Instance]:
        """Wszystkie instancje poddrzewa w kolejności kanonicznej."""
        if self.options.symmetry and not self.problem.symmetry.ok(state[0]):
            return
        gi = self.next_group(state[0])
        if gi is None:
            yield self._finish(state[0])
            return

        groups = self.problem.groups
        stack = [(state, gi, iter(groups[gi].candidates(state[0])))]
        while stack:
            parent, gi, options = stack[-1]
            literals = next(options, None)
            if literals is None:
                stack.pop()
                continue
            child = self.commit(parent, literals)
            if child is None:
                continue
            nxt = self.next_group(child[0], gi)
            if nxt is None:
                yield self._finish(child[0])
                continue
            stack.append((child, nxt, iter(groups[nxt].candidates(child[0]))))

    def _finish(self, store: RelationStore) -> Instance:
        """Ponowna walidacja kompletnego magazynu zwykłą ewaluacją."""
        p = self.problem
        instance = Instance.from_store(p.model, p.pool, store)
        if not store.is_complete():
            raise InternalInvariantViolation("<complete>", None, instance.as_dict())
        for fact in p.facts:
            if not self._ev.holds(fact.body, store):
                failure = self._ev.last_failure
                raise InternalInvariantViolation(
                    fact.name,
                    failure.binding if failure is not None else None,
                    instance.as_dict(),
                )
        self.stats.instances += 1
        return instance


# ---------------------------------------------------------------------------
# API
# ---------------------------------------------------------------------------

def iter_instances(problem: Problem, options: SearchOptions | None = None) -> Iterator[Instance]:
    """
    Kolejne instancje problemu (jednowątkowo, deterministycznie).

    Raises:
        SearchTimeout: wyczerpany budżet przed końcem enumeracji
    """
    options = options or SearchOptions()
    search = Search(problem, options, _Budget(options))
    root = search.root()
    if root is None:
        return
    yield from search.explore(root)


def _solve_parallel(
    problem: Problem,
    options: SearchOptions,
    budget: _Budget,
    stats: SearchStats,
) -> Instance | None:
    """
    Równoległe przeszukiwanie gałęzi pierwszego poziomu. Wygrywa instancja
    z gałęzi o najniższym indeksie; gałęzie o wyższych indeksach są
    przerywane, gdy tylko któraś niższa znajdzie instancję.
    """
    search = Search(problem, options, budget)
    root = search.root()
    stats.merge(search.stats)
    if root is None:
        return None
    gi = search.next_group(root[0])
    if gi is None:
        return next(search.explore(root), None)

    branches = problem.groups[gi].candidates(root[0])
    flags = [threading.Event() for _ in branches]

    def work(i: int) -> tuple[Instance | None, SearchStats]:
        s = Search(problem, options, budget, flags[i])
        try:
            child = s.commit(root, branches[i])
            if child is None:
                return None, s.stats
            found = next(s.explore(child), None)
        except _Cancelled:
            return None, s.stats
        if found is not None:
            for flag in flags[i + 1:]:
                flag.set()
        return found, s.stats

    with ThreadPoolExecutor(max_workers=options.workers, thread_name_prefix="sf") as pool:
        futures = [pool.submit(work, i) for i in range(len(branches))]
        try:
            for i, fut in enumerate(futures):
                found, s = fut.result()
                stats.merge(s)
                if found is not None:
                    for flag in flags[i + 1:]:
                        flag.set()
                    return found
            return None
        except BaseException:
            for flag in flags:
                flag.set()
            raise


def solve(
    model: Model,
    goal: Formula | None,
    table: ScopeTable,
    options: SearchOptions | None = None,
) -> SolveResult:
    """
    Szuka instancji spełniającej fakty modelu (i cel, jeśli podany).

    Raises:
        ScopeError:                 zakres niespójny z pulą atomów
        InternalInvariantViolation: instancja nie przeszła ponownej walidacji
    """
    options = options or SearchOptions()
    problem = Problem(model, table, goal)
    budget  = _Budget(options)
    stats   = SearchStats()

    try:
        if options.workers > 1:
            instance = _solve_parallel(problem, options, budget, stats)
        else:
            search = Search(problem, options, budget)
            try:
                root = search.root()
                instance = next(search.explore(root), None) if root is not None else None
            finally:
                stats.merge(search.stats)
    except SearchTimeout as e:
        stats.elapsed = budget.elapsed
        log.warning("Przekroczony budżet wyszukiwania: %s", e)
        return SolveResult(Status.TIMEOUT, None, stats, table, goal)

    stats.elapsed = budget.elapsed
    status = Status.SAT if instance is not None else Status.UNSAT
    log.debug("Wynik %s, statystyki %s", status, stats.as_dict())
    return SolveResult(status, instance, stats, table, goal)
