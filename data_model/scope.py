"""
Specyfikacja zakresu (scope) polecenia analizy.

Składnia (jak w Alloy, bez słowa kluczowego "for"):
  "3"                                  domyślny limit 3 dla każdej sygnatury
  "3 but 5 Time, 4 Event"              domyślny 3, nadpisania dla Time i Event
  "5 Time, exactly 0 Attacker"         bez limitu domyślnego
  "exactly 1 Attacker"                 limit dokładny (dolny = górny)

parse_scope(text) -> ScopeSpec; błąd składni → ValueError.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from .signatures import SigName

# Zakres używany, gdy polecenie nie podaje własnego
DEFAULT_SCOPE = 3

_HEAD_RE = re.compile(r"^\s*(?:for\s+)?(\d+)\s*(?:but\s+(.*))?$", re.DOTALL)
_ITEM_RE = re.compile(r"^\s*(exactly\s+)?(\d+)\s+([A-Za-z_][A-Za-z0-9_']*)\s*$")


@dataclass(frozen=True, slots=True)
class ScopeSpec:
    """
    Żądany zakres.

    - default: limit dla sygnatur bez własnego wpisu (None = brak)
    - bounds:  jawne limity per sygnatura
    - exact:   sygnatury z limitem dokładnym ("exactly k")
    """
    default: int | None
    bounds:  dict[SigName, int] = field(default_factory=dict)
    exact:   frozenset[SigName] = frozenset()

    def __str__(self) -> str:
        items = [
            f"{'exactly ' if name in self.exact else ''}{k} {name}"
            for name, k in self.bounds.items()
        ]
        if self.default is None:
            return ", ".join(items)
        if not items:
            return str(self.default)
        return f"{self.default} but {', '.join(items)}"


def parse_scope(text: str | None) -> ScopeSpec:
    """
    Parsuje tekst zakresu.

    None albo pusty tekst daje zakres domyślny (DEFAULT_SCOPE).

    Przykład:
        parse_scope("3 but 5 Time, 4 Event, exactly 0 Attacker")
        → ScopeSpec(default=3, bounds={'Time': 5, 'Event': 4, 'Attacker': 0},
                    exact=frozenset({'Attacker'}))
    """
    if text is None or not text.strip():
        return ScopeSpec(default=DEFAULT_SCOPE)

    default: int | None = None
    rest = text.strip()
    if rest.startswith("for "):
        rest = rest[4:]
    m = _HEAD_RE.match(rest)
    if m:
        default = int(m.group(1))
        rest = m.group(2) or ""
        if m.group(2) is not None and not rest.strip():
            raise ValueError(f"Brak listy po 'but' w zakresie: {text!r}")

    bounds: dict[str, int] = {}
    exact: set[str] = set()
    if rest.strip():
        for item in rest.split(","):
            im = _ITEM_RE.match(item)
            if not im:
                raise ValueError(
                    f"Niepoprawny element zakresu: {item.strip()!r}. "
                    f"Oczekiwano np. '5 Time' lub 'exactly 0 Attacker'."
                )
            name = im.group(3)
            if name in bounds:
                raise ValueError(f"Sygnatura '{name}' podana w zakresie dwukrotnie.")
            bounds[name] = int(im.group(2))
            if im.group(1):
                exact.add(name)

    if default is None and not bounds:
        raise ValueError(f"Pusty zakres: {text!r}")

    return ScopeSpec(default=default, bounds=bounds, exact=frozenset(exact))
