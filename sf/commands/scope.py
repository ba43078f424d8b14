"""Komenda: sf scope — pokazuje rozwiązany zakres polecenia."""

from __future__ import annotations

import argparse
import pathlib

from rich         import box
from rich.console import Console
from rich.table   import Table

console = Console(width=200)


def run(args: argparse.Namespace) -> None:
    from solver import AtomPool, ModelError, ScopeError, load_model, resolve

    try:
        model = load_model(pathlib.Path(args.model))
    except ModelError as e:
        console.print(f"[red]Błąd modelu:[/red] {e}")
        raise SystemExit(3)

    if args.scope is not None:
        text = args.scope
    else:
        try:
            text = model.command(args.command).scope
        except KeyError as e:
            console.print(f"[red]Błąd:[/red] {e.args[0]}")
            raise SystemExit(3)

    try:
        table = resolve(text, model)
        pool  = AtomPool(model, table)
    except ScopeError as e:
        console.print(f"[red]Błąd zakresu:[/red] {e}")
        raise SystemExit(3)

    console.print(f"Zakres: [cyan]{table.spec}[/cyan]")
    out = Table(box=box.SIMPLE_HEAD, header_style="bold white", show_header=True)
    out.add_column("SYGNATURA", style="bold cyan", no_wrap=True)
    out.add_column("DOLNY", justify="right")
    out.add_column("GÓRNY", justify="right")
    out.add_column("ATOMY")
    for top in model.top_sigs():
        for name in model.subtree(top):
            b = table.bounds[name]
            atoms = ", ".join(pool.name(a) for a in pool.atoms(name))
            out.add_row(
                "  " * len(model.ancestors(name)) + name,
                str(b.lower),
                str(b.upper),
                atoms or "[dim]—[/dim]",
            )
    console.print(out)
    console.print(
        f"  [dim]{len(pool)} atomów, w tym {len(pool.free_atoms())} wolnych[/dim]"
    )


def add_parser(subparsers: argparse._SubParsersAction) -> None:  # type: ignore[type-arg]
    p = subparsers.add_parser(
        "scope",
        help="Pokazuje rozwiązany zakres (limity sygnatur i atomy).",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        description="""
Przykłady:
  sf scope models/ros_cmdvel.json --command SafeWithoutAttacker
  sf scope models/ros_cmdvel.json --scope "3 but 5 Time, exactly 1 Attacker"
        """,
    )
    p.add_argument("model", metavar="MODEL", help="Plik modelu JSON.")
    group = p.add_mutually_exclusive_group(required=True)
    group.add_argument("--command", "-c", metavar="NAZWA", help="Zakres polecenia modelu.")
    group.add_argument("--scope", "-s", metavar="ZAKRES", help="Tekst zakresu, np. \"3 but 5 Time\".")
    p.set_defaults(func=run)
