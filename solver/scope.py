"""
solver/scope.py — menedżer zakresu.

Publiczne API:
  parse_scope(text)                 → ScopeSpec   (z data_model.scope)
  resolve(spec, model)              → ScopeTable  (ScopeError przy sprzeczności)
  cardinality_facts(model, table)   → list[Fact]  (#S <= k, #S >= k)
  implicit_facts(model, table)      → list[Fact]  (hierarchia, typy kolumn,
                                                   krotności, liczności)

Reguły rozwiązywania zakresu:
  - sygnatura 'one'      → dokładnie 1; 'lone' → 0..1; 'some' → 1..k
  - 'exactly k'          → dolny = górny = k
  - sygnatura ordered    → jak każda inna (0..k); obecne atomy tworzą prefiks
                           porządku (solver/atoms.py)
  - podsygnatura bez wpisu dziedziczy górny limit rodzica
  - sygnatura najwyższego poziomu bez wpisu → limit domyślny (brak → ScopeError)
  - sygnatura abstrakcyjna: górny ≤ suma górnych dzieci (0 bez dzieci)
  - suma dolnych dzieci > górny rodzica → ScopeError
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from data_model.expressions import (
    Card,
    Compare,
    Decl,
    Formula,
    IntLit,
    Intersect,
    Join,
    Mult,
    Quant,
    Rel,
    Subset,
    Var,
    product_all,
    union_all,
)
from data_model.model import Fact, Model
from data_model.scope import ScopeSpec, parse_scope
from data_model.signatures import Multiplicity, SigName

from .errors import ScopeError

log = logging.getLogger(__name__)

__all__ = [
    "SigBound",
    "ScopeTable",
    "parse_scope",
    "resolve",
    "cardinality_facts",
    "implicit_facts",
]


@dataclass(frozen=True, slots=True)
class SigBound:
    lower: int
    upper: int

    @property
    def exact(self) -> bool:
        return self.lower == self.upper

    def __str__(self) -> str:
        return str(self.upper) if self.exact else f"{self.lower}..{self.upper}"


@dataclass(frozen=True, slots=True)
class ScopeTable:
    """Rozwiązany zakres: (dolny, górny) limit liczby atomów każdej sygnatury."""
    spec:   ScopeSpec
    bounds: dict[SigName, SigBound]

    def lower(self, sig: SigName) -> int:
        return self.bounds[sig].lower

    def upper(self, sig: SigName) -> int:
        return self.bounds[sig].upper

    def is_exact(self, sig: SigName) -> bool:
        return self.bounds[sig].exact

    def __str__(self) -> str:
        return str(self.spec)


# ---------------------------------------------------------------------------
# resolve
# ---------------------------------------------------------------------------

def _requested(
    spec: ScopeSpec,
    model: Model,
    name: SigName,
    inherited: int | None,
) -> SigBound:
    sig      = model.sigs[name]
    explicit = spec.bounds.get(name)
    exact    = name in spec.exact

    if explicit is None:
        if sig.mult in (Multiplicity.ONE, Multiplicity.LONE):
            k = 1
        elif inherited is not None:
            k = inherited
        elif spec.default is not None:
            k = spec.default
        else:
            raise ScopeError(name, "brak limitu w zakresie i brak limitu domyślnego")
    else:
        k = explicit

    if sig.mult == Multiplicity.ONE:
        if explicit is not None and k != 1:
            raise ScopeError(name, f"sygnatura 'one' nie może mieć limitu {k}")
        return SigBound(1, 1)
    if sig.mult == Multiplicity.LONE:
        if explicit is not None and k > 1 and exact:
            raise ScopeError(name, f"sygnatura 'lone' nie może mieć dokładnie {k} atomów")
        if k == 0:
            return SigBound(0, 0)
        return SigBound(1, 1) if exact else SigBound(0, 1)
    if sig.mult == Multiplicity.SOME:
        if k == 0:
            raise ScopeError(name, "sygnatura 'some' wymaga co najmniej 1 atomu, limit 0")
        return SigBound(k if exact else 1, k)
    if exact:
        return SigBound(k, k)
    return SigBound(0, k)


def resolve(spec: ScopeSpec | str | None, model: Model) -> ScopeTable:
    """
    Rozwiązuje zakres względem drzewa sygnatur modelu.

    Raises:
        ScopeError: nazwa sygnatury + opis sprzeczności
    """
    if not isinstance(spec, ScopeSpec):
        try:
            spec = parse_scope(spec)
        except ValueError as e:
            raise ScopeError("<scope>", str(e)) from e

    for name, k in spec.bounds.items():
        if name not in model.sigs:
            raise ScopeError(name, "zakres odwołuje się do niezadeklarowanej sygnatury")
        if k < 0:
            raise ScopeError(name, f"ujemny limit {k}")

    bounds: dict[SigName, SigBound] = {}

    # w dół: limity żądane, dziedziczenie górnego limitu rodzica
    for top in model.top_sigs():
        for name in model.subtree(top):
            parent = model.sigs[name].parent
            inherited = bounds[parent].upper if parent is not None else None
            b = _requested(spec, model, name, inherited)
            if parent is not None and b.upper > bounds[parent].upper:
                if b.lower > bounds[parent].upper:
                    raise ScopeError(
                        name,
                        f"wymaga co najmniej {b.lower} atomów, przekracza limit rodzica "
                        f"'{parent}' ({bounds[parent].upper})",
                    )
                b = SigBound(b.lower, bounds[parent].upper)
            bounds[name] = b

    # w górę: dzieci vs rodzic (postorder = odwrócony preorder)
    for top in model.top_sigs():
        for name in reversed(model.subtree(top)):
            children = model.children(name)
            abstract = model.sigs[name].abstract
            if not children and not abstract:
                continue
            b = bounds[name]
            need = sum(bounds[c].lower for c in children)
            if need > b.upper:
                raise ScopeError(
                    name,
                    f"podsygnatury wymagają co najmniej {need} atomów, limit {b.upper}",
                )
            lower, upper = max(b.lower, need), b.upper
            if abstract:
                cap = sum(bounds[c].upper for c in children)
                if cap < lower:
                    raise ScopeError(
                        name,
                        f"sygnatura abstrakcyjna wymaga {lower} atomów, "
                        f"podsygnatury mieszczą najwyżej {cap}",
                    )
                upper = min(upper, cap)
            bounds[name] = SigBound(lower, upper)

    # ponownie w dół: dzieci nie przekraczają (być może zmniejszonego) rodzica
    for top in model.top_sigs():
        for name in model.subtree(top):
            parent = model.sigs[name].parent
            if parent is None:
                continue
            b = bounds[name]
            if b.lower > bounds[parent].upper:
                raise ScopeError(
                    name,
                    f"wymaga {b.lower} atomów, rodzic '{parent}' mieści {bounds[parent].upper}",
                )
            bounds[name] = SigBound(b.lower, min(b.upper, bounds[parent].upper))

    table = ScopeTable(spec=spec, bounds=bounds)
    log.debug("Zakres %s → %s", spec, {k: str(v) for k, v in bounds.items()})
    return table


# ---------------------------------------------------------------------------
# Fakty niejawne
# ---------------------------------------------------------------------------

def cardinality_facts(model: Model, table: ScopeTable) -> list[Fact]:
    out: list[Fact] = []
    for name in model.sigs:
        b = table.bounds[name]
        out.append(Fact(f"scope #{name} <= {b.upper}", Compare("<=", Card(Rel(name)), IntLit(b.upper))))
        if b.lower > 0:
            out.append(Fact(f"scope #{name} >= {b.lower}", Compare(">=", Card(Rel(name)), IntLit(b.lower))))
    return out


def _multiplicity_formula(rel_name: str, cols: tuple[SigName, ...], mult: Multiplicity) -> Formula:
    """all x1: C1, ..., xn-1: Cn-1 | mult xn-1.(...(x1.R))"""
    expr = Rel(rel_name)
    decls: list[Decl] = []
    for i, col in enumerate(cols[:-1]):
        var = f"x{i + 1}"
        decls.append(Decl(var, Rel(col)))
        expr = Join(Var(var), expr)
    body = Mult(str(mult), expr)
    if not decls:
        return body
    return Quant("all", tuple(decls), body)


def implicit_facts(model: Model, table: ScopeTable) -> list[Fact]:
    """
    Fakty wynikające z deklaracji, nie zapisane w modelu:

      - podsygnatura ⊆ rodzic
      - rozłączność rodzeństwa
      - sygnatura abstrakcyjna = suma podsygnatur
      - typy kolumn relacji: R in C1 -> ... -> Cn
      - krotność ostatniej kolumny relacji
      - liczności z zakresu
    """
    out: list[Fact] = []

    for sig in model.sigs.values():
        if sig.parent is not None:
            out.append(Fact(f"sig {sig.name} in {sig.parent}", Subset(Rel(sig.name), Rel(sig.parent))))
        children = model.children(sig.name)
        for i, a in enumerate(children):
            for b in children[i + 1:]:
                out.append(Fact(
                    f"disj {a}, {b}",
                    Mult("no", Intersect(Rel(a), Rel(b))),
                ))
        if sig.abstract and children:
            out.append(Fact(
                f"abstract {sig.name}",
                Subset(Rel(sig.name), union_all(*(Rel(c) for c in children))),
            ))

    for rel in model.relations.values():
        out.append(Fact(
            f"type {rel.name}",
            Subset(Rel(rel.name), product_all(*(Rel(c) for c in rel.cols))),
        ))
        if rel.mult != Multiplicity.SET:
            out.append(Fact(
                f"mult {rel.name}",
                _multiplicity_formula(rel.name, rel.cols, rel.mult),
            ))

    out.extend(cardinality_facts(model, table))
    return out
