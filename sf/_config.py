"""Konfiguracja wyszukiwania — zmienne środowiskowe (opcjonalnie z pliku .env)."""

from __future__ import annotations

import os

from dotenv import find_dotenv, load_dotenv

from solver.engine import SearchOptions


def _int_env(name: str) -> int | None:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    try:
        return int(value)
    except ValueError:
        raise SystemExit(f"Zmienna {name} musi być liczbą całkowitą, otrzymano {value!r}.") from None


def _float_env(name: str) -> float | None:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    try:
        return float(value)
    except ValueError:
        raise SystemExit(f"Zmienna {name} musi być liczbą, otrzymano {value!r}.") from None


def options_from_env() -> SearchOptions:
    """
    SearchOptions z SF_BUDGET_NODES, SF_BUDGET_SECONDS, SF_WORKERS.
    Plik .env w katalogu roboczym nie nadpisuje zmiennych już ustawionych.
    """
    load_dotenv(find_dotenv(usecwd=True))
    return SearchOptions(
        max_nodes   = _int_env("SF_BUDGET_NODES"),
        max_seconds = _float_env("SF_BUDGET_SECONDS"),
        workers     = _int_env("SF_WORKERS") or 1,
    )
