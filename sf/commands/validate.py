"""Komenda: sf validate — waliduje plik modelu."""

from __future__ import annotations

import argparse
import dataclasses
import json
import pathlib
import sys

from rich import box
from rich.console import Console
from rich.table import Table

from validator import ModelValidator, ValidationReport

console = Console(width=200)


def _print_errors(report: ValidationReport) -> None:
    table = Table(box=box.SIMPLE, show_header=True, header_style="bold")
    table.add_column("Etap",     justify="center", no_wrap=True)
    table.add_column("Kod",      style="yellow", no_wrap=True)
    table.add_column("Ścieżka", style="cyan",   no_wrap=True)
    table.add_column("Komunikat")
    table.add_column("Poprawka", style="dim")
    for e in sorted(report.errors, key=lambda e: (e.code.stage, e.path)):
        table.add_row(e.code.stage, e.code, e.path, e.message, e.expected_fix)
    console.print(table)


def run(args: argparse.Namespace) -> None:
    model_path = pathlib.Path(args.model)
    if not model_path.exists():
        console.print(f"[red]Brak pliku modelu:[/red] {model_path}")
        raise SystemExit(1)

    try:
        raw = json.loads(model_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        console.print(f"[red]Błąd parsowania JSON:[/red] {exc}")
        raise SystemExit(1)

    report = ModelValidator().validate(raw)
    name   = raw.get("model") if isinstance(raw, dict) else None

    if args.json_output:
        print(json.dumps({
            "model":    name,
            "is_valid": report.is_valid,
            "errors":   [dataclasses.asdict(e) for e in report.errors],
            "warnings": report.warnings,
        }, ensure_ascii=False, indent=2))
    elif report.is_valid:
        console.print(f"[green]OK[/green]  Model [bold]{name}[/bold] jest poprawny.")
    else:
        stages = sorted({e.code.stage for e in report.errors})
        console.print(
            f"[red]BŁĄD[/red]  Model [bold]{name or '?'}[/bold]: "
            f"{len(report.errors)} błąd(ów), etapy {', '.join(stages)}."
        )
        _print_errors(report)

    if report.warnings and not args.json_output:
        console.print("[yellow]Ostrzeżenia:[/yellow]")
        for w in report.warnings:
            console.print(f"  [yellow]·[/yellow] {w}")

    if not report.is_valid:
        sys.exit(1)


def add_parser(subparsers: argparse._SubParsersAction) -> None:  # type: ignore[type-arg]
    p = subparsers.add_parser(
        "validate",
        help="Waliduje plik modelu (schemat, nazwy, arność, typy kolumn).",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        description="""
Etapy walidacji:
  A  JSON Schema (Draft 2020-12)
  B  deklaracje: unikalność nazw, extends, kolumny relacji, ordered
  C  wyrażenia i formuły: nazwy, arność, typy kolumn
  D  rekursja predykatów i funkcji
  E  polecenia: cel, oczekiwany werdykt, składnia zakresu

Przykłady:
  sf validate models/ros_cmdvel.json
  sf validate models/ros_cmdvel.json --json
        """,
    )
    p.add_argument("model", metavar="MODEL", help="Plik modelu JSON.")
    p.add_argument(
        "--json",
        action="store_true",
        dest="json_output",
        help="Wypisz raport jako JSON na stdout.",
    )
    p.set_defaults(func=run)
