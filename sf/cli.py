"""
sf — narzędzie CLI scopefinder.

Użycie:
  sf <komenda> [opcje]

Komendy:
  solve      Wykonuje polecenia check/run modelu i raportuje werdykty.
  validate   Waliduje plik modelu (schemat, nazwy, arność, typy kolumn).
  sigs       Listuje sygnatury i relacje modelu.
  scope      Pokazuje rozwiązany zakres polecenia albo podanego tekstu zakresu.

Kody wyjścia (sf solve):
  0  wszystkie werdykty zgodne z oczekiwanymi
  1  werdykt niezgodny (np. kontrprzykład właściwości bezpieczeństwa)
  2  przekroczony budżet wyszukiwania
  3  błąd modelu albo zakresu
"""

from __future__ import annotations

import argparse
import logging
import sys

# Windows: konsola bywa w cp1252, a teksty pomocy zawierają polskie znaki.
if hasattr(sys.stdout, "reconfigure"):
    sys.stdout.reconfigure(encoding="utf-8", errors="replace")
if hasattr(sys.stderr, "reconfigure"):
    sys.stderr.reconfigure(encoding="utf-8", errors="replace")

from rich.console import Console
from rich.logging import RichHandler

from sf.commands import scope as cmd_scope
from sf.commands import sigs as cmd_sigs
from sf.commands import solve as cmd_solve
from sf.commands import validate as cmd_validate


def setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sf",
        description="scopefinder — ograniczony wyszukiwacz modeli relacyjnych.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--version", action="version", version="sf 0.1.0"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Logi diagnostyczne (DEBUG) na stderr.",
    )

    subparsers = parser.add_subparsers(
        title="komendy",
        metavar="<komenda>",
        dest="command",
    )
    subparsers.required = True

    cmd_solve.add_parser(subparsers)
    cmd_validate.add_parser(subparsers)
    cmd_sigs.add_parser(subparsers)
    cmd_scope.add_parser(subparsers)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)
    args.func(args)


if __name__ == "__main__":
    main()
