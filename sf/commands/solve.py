"""Komenda: sf solve — wykonuje polecenia check/run modelu."""

from __future__ import annotations

import argparse
import pathlib
from typing import Any

from rich         import box
from rich.console import Console
from rich.table   import Table

from sf._config import options_from_env

console = Console(width=200)
# stdout: raport (także JSON); stderr: błędy i ostrzeżenia
err_console = Console(stderr=True, width=200)

_VERDICT_STYLE = {
    "verified":       "green",
    "satisfiable":    "green",
    "counterexample": "red",
    "unsatisfiable":  "yellow",
    "timeout":        "magenta",
}


# ---------------------------------------------------------------------------
# Wyświetlanie wyników
# ---------------------------------------------------------------------------

def _show_instance(report: dict[str, Any]) -> None:
    inst = report["instance"]

    table = Table(box=box.SIMPLE_HEAD, header_style="bold white", show_header=True)
    table.add_column("SYGNATURA", style="bold cyan", no_wrap=True)
    table.add_column("ATOMY")
    for sig, atoms in inst["atoms"].items():
        table.add_row(sig, ", ".join(atoms))
    console.print(table)

    table = Table(box=box.SIMPLE_HEAD, header_style="bold white", show_header=True)
    table.add_column("WŁAŚCICIEL", style="bold cyan", no_wrap=True)
    table.add_column("RELACJA", style="cyan", no_wrap=True)
    table.add_column("KROTKI")
    for owner, rels in inst["relations"].items():
        for name, tuples in rels.items():
            table.add_row(
                owner or "—",
                name,
                ", ".join("->".join(t) for t in tuples) or "[dim]∅[/dim]",
            )
    console.print(table)

    if report["witness"]:
        binding = ", ".join(f"{var} = {atom}" for var, atom in report["witness"].items())
        console.print(f"  Świadek: [bold]{binding}[/bold]")


def _show_result(report: dict[str, Any]) -> None:
    verdict = report["verdict"]
    style   = _VERDICT_STYLE.get(verdict, "white")
    mark    = "[green]✓[/green]" if report["matches"] else "[red]✗[/red]"
    console.print(
        f"\n{mark} [bold]{report['command'] or report['target']}[/bold]  "
        f"{report['kind']} {report['target']}  zakres=[cyan]{report['scope']['spec']}[/cyan]  "
        f"→ [{style}]{verdict.upper()}[/{style}]  "
        f"(oczekiwano: {report['expected']})"
    )
    console.print(f"  {report['summary']}")
    if report["instance"] is not None:
        _show_instance(report)
    stats = report["stats"]
    console.print(
        f"  [dim]węzły={stats['nodes']} konflikty={stats['conflicts']} "
        f"propagacje={stats['propagations']} symetrie={stats['pruned']} "
        f"czas={stats['elapsed']}s[/dim]"
    )


# ---------------------------------------------------------------------------
# Główna logika
# ---------------------------------------------------------------------------

def run(args: argparse.Namespace) -> None:
    from solver import (
        InternalInvariantViolation,
        ModelError,
        ScopeError,
        SearchTimeout,
        Verdict,
        enumerate_instances,
        execute,
        load_model,
        render,
        to_json,
    )
    from solver.report import render_instance

    try:
        model = load_model(pathlib.Path(args.model))
    except ModelError as e:
        err_console.print(f"[red]Błąd modelu:[/red] {e}")
        raise SystemExit(3)

    names = args.command or [c.name for c in model.commands]
    if not names:
        err_console.print("[yellow]Model nie zawiera poleceń — nie ma czego wykonać.[/yellow]")
        return
    known = {c.name for c in model.commands}
    unknown = [n for n in names if n not in known]
    if unknown:
        err_console.print(f"[red]Nieznane polecenia:[/red] {', '.join(unknown)}")
        raise SystemExit(3)

    options = options_from_env()
    if args.budget_nodes is not None:
        options.max_nodes = args.budget_nodes
    if args.budget_seconds is not None:
        options.max_seconds = args.budget_seconds
    if args.workers is not None:
        options.workers = args.workers

    reports: list[dict[str, Any]] = []
    timeout = mismatch = False
    for name in names:
        try:
            result = execute(model, name, options)
        except ScopeError as e:
            err_console.print(f"[red]Błąd zakresu polecenia {name}:[/red] {e}")
            raise SystemExit(3)
        except InternalInvariantViolation as e:
            err_console.print(f"[red]Błąd wewnętrzny silnika ({name}):[/red] {e}")
            raise SystemExit(3)

        report = render(result)
        if args.limit and args.limit > 1 and result.instance is not None:
            try:
                report["instances"] = [
                    render_instance(inst)
                    for inst in enumerate_instances(model, name, args.limit, options)
                ]
            except SearchTimeout as e:
                err_console.print(f"[yellow]Enumeracja instancji przerwana:[/yellow] {e}")
            except InternalInvariantViolation as e:
                err_console.print(f"[red]Błąd wewnętrzny silnika ({name}):[/red] {e}")
                raise SystemExit(3)
        reports.append(report)

        timeout  = timeout or result.verdict == Verdict.TIMEOUT
        mismatch = mismatch or not result.matches

        if not args.json_output:
            _show_result(report)
            for k, inst in enumerate(report.get("instances", [])[1:], start=2):
                console.print(f"  [bold]Instancja {k}[/bold]")
                _show_instance({"instance": inst, "witness": None})

    if args.json_output:
        print(to_json(reports))

    if timeout:
        raise SystemExit(2)
    if mismatch:
        raise SystemExit(1)


# ---------------------------------------------------------------------------
# Rejestracja parsera
# ---------------------------------------------------------------------------

def add_parser(subparsers: argparse._SubParsersAction) -> None:  # type: ignore[type-arg]
    p = subparsers.add_parser(
        "solve",
        help="Wykonuje polecenia check/run modelu i raportuje werdykty.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        description="""
Wczytuje model (JSON), dla każdego polecenia rozwiązuje zakres i szuka
instancji: dla check — kontrprzykładu (fakty ∧ ¬właściwość), dla run —
instancji predykatu. VERIFIED oznacza brak kontrprzykładu tylko w zakresie.

Budżet domyślny z SF_BUDGET_NODES / SF_BUDGET_SECONDS / SF_WORKERS (.env).

Przykłady:
  sf solve models/ros_cmdvel.json
  sf solve models/ros_cmdvel.json --command AttackerBreaksSafety --json
  sf solve models/ros_cmdvel.json --budget-seconds 30 --workers 4
  sf solve models/ros_cmdvel.json -c JoystickDrivesWheel --limit 3
        """,
    )
    p.add_argument("model", metavar="MODEL", help="Plik modelu JSON.")
    p.add_argument(
        "--command", "-c",
        metavar="NAZWA",
        action="append",
        help="Polecenie do wykonania (domyślnie wszystkie). Można podać wielokrotnie.",
    )
    p.add_argument(
        "--budget-nodes",
        metavar="N",
        type=int,
        dest="budget_nodes",
        help="Limit węzłów wyszukiwania (nadpisuje SF_BUDGET_NODES).",
    )
    p.add_argument(
        "--budget-seconds",
        metavar="S",
        type=float,
        dest="budget_seconds",
        help="Limit czasu w sekundach (nadpisuje SF_BUDGET_SECONDS).",
    )
    p.add_argument(
        "--workers",
        metavar="N",
        type=int,
        help="Liczba wątków dla pierwszego poziomu wyszukiwania (nadpisuje SF_WORKERS).",
    )
    p.add_argument(
        "--limit",
        metavar="N",
        type=int,
        help="Pokaż do N instancji (kontrprzykładów) zamiast jednej.",
    )
    p.add_argument(
        "--json",
        action="store_true",
        dest="json_output",
        help="Wypisz raporty jako JSON na stdout.",
    )
    p.set_defaults(func=run)
