"""Fragment recording commands."""

import uuid

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from cli.commands.values import parse_pairs
from cli.utils import get_components
from shared_types import ValueAxis

console = Console()


@click.group()
def fragments():
    """Personal records used as evidence."""


@fragments.command("add")
@click.argument("text")
@click.option("--valence", "-v", type=click.FloatRange(-1.0, 1.0), required=True,
              help="How you felt, from -1 (negative) to 1 (positive)")
@click.option("--axis", "axes", multiple=True, help="Value axis weight, e.g. --axis growth=0.8")
def fragments_add(text: str, valence: float, axes: tuple[str, ...]):
    """Record a fragment and optionally soft-assign it to value axes."""
    axis_weights = {}
    for name, raw in parse_pairs(axes, "--axis").items():
        try:
            weight = float(raw)
            axis = ValueAxis.parse(name)
        except ValueError as e:
            raise click.BadParameter(str(e), param_hint="--axis") from e
        if not 0.0 <= weight <= 1.0:
            raise click.BadParameter(f"Weight for {name} must be 0-1", param_hint="--axis")
        axis_weights[axis] = weight

    c = get_components()
    fragment_id = uuid.uuid4().hex[:12]
    c["index"].add_fragment(c["user_id"], fragment_id, text, valence)
    if axis_weights:
        c["graph_store"].record_fragment(c["user_id"], axis_weights, valence)
    console.print(f"[green]Added fragment[/] {fragment_id}")


@fragments.command("list")
@click.option("--limit", "-n", default=20)
@click.option("--deleted", is_flag=True, help="Include deleted fragments")
def fragments_list(limit: int, deleted: bool):
    """Recent fragments, newest first."""
    c = get_components()
    found = c["index"].list_fragments(c["user_id"], limit=limit, include_deleted=deleted)
    if not found:
        console.print("[yellow]No fragments recorded yet.[/]")
        return

    table = Table(show_header=True)
    table.add_column("ID", style="dim")
    table.add_column("Recorded")
    table.add_column("Valence", justify="right")
    table.add_column("Text")
    for f in found:
        recorded = f"{f.created_at:%Y-%m-%d %H:%M}" if f.created_at else "-"
        text = f"[strike]{escape(f.text)}[/]" if f.is_deleted else escape(f.text)
        table.add_row(f.id, recorded, f"{f.valence:+.2f}", text)
    console.print(table)


@fragments.command("delete")
@click.argument("fragment_id")
def fragments_delete(fragment_id: str):
    """Hide a fragment from evidence. The value graph keeps what it learned."""
    c = get_components()
    if not c["index"].delete_fragment(c["user_id"], fragment_id):
        raise click.ClickException(f"Fragment not found: {fragment_id}")
    console.print(f"[green]Deleted fragment[/] {fragment_id}")
