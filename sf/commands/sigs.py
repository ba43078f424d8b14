"""Komenda: sf sigs — listuje sygnatury i relacje modelu."""

from __future__ import annotations

import argparse
import pathlib

from rich         import box
from rich.console import Console
from rich.table   import Table

console = Console(width=200)


def run(args: argparse.Namespace) -> None:
    from solver import ModelError, load_model

    try:
        model = load_model(pathlib.Path(args.model))
    except ModelError as e:
        console.print(f"[red]Błąd modelu:[/red] {e}")
        raise SystemExit(3)

    table = Table(box=box.SIMPLE_HEAD, header_style="bold white", show_header=True)
    table.add_column("SYGNATURA", style="bold cyan", no_wrap=True)
    table.add_column("RODZIC", no_wrap=True)
    table.add_column("CECHY", no_wrap=True)
    table.add_column("POLA")
    for top in model.top_sigs():
        for name in model.subtree(top):
            sig = model.sigs[name]
            depth = len(model.ancestors(name))
            traits = [t for t in (
                "abstract" if sig.abstract else "",
                str(sig.mult) if sig.mult else "",
                "ordered" if sig.ordered else "",
            ) if t]
            table.add_row(
                "  " * depth + name,
                sig.parent or "—",
                " ".join(traits),
                "; ".join(str(r) for r in model.fields_of(name)),
            )
    console.print(table)

    free = [r for r in model.relations.values() if r.owner is None]
    if free:
        table = Table(box=box.SIMPLE_HEAD, header_style="bold white", show_header=True)
        table.add_column("RELACJA", style="bold cyan", no_wrap=True)
        table.add_column("ARNOŚĆ", justify="right")
        table.add_column("DEKLARACJA")
        for rel in free:
            table.add_row(rel.name, str(rel.arity), str(rel))
        console.print(table)

    console.print(
        f"  [dim]{len(model.sigs)} sygnatur, {len(model.relations)} relacji, "
        f"{len(model.facts)} faktów, {len(model.predicates)} predykatów, "
        f"{len(model.commands)} poleceń[/dim]"
    )


def add_parser(subparsers: argparse._SubParsersAction) -> None:  # type: ignore[type-arg]
    p = subparsers.add_parser(
        "sigs",
        help="Listuje sygnatury (drzewo dziedziczenia) i relacje modelu.",
    )
    p.add_argument("model", metavar="MODEL", help="Plik modelu JSON.")
    p.set_defaults(func=run)
