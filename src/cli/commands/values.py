"""Value importance and value graph commands."""

import click
from rich.console import Console
from rich.table import Table

from cli.utils import get_components
from shared_types import EdgeType, ValueAxis
from values import ValueEdge, denormalize_to_scale, parse_importance_input

console = Console()


def parse_pairs(pairs: tuple[str, ...], what: str) -> dict[str, str]:
    parsed = {}
    for pair in pairs:
        name, sep, value = pair.partition("=")
        if not sep:
            raise click.BadParameter(f"Expected axis=value, got: {pair}", param_hint=what)
        parsed[name.strip()] = value.strip()
    return parsed


@click.group()
def importance():
    """Explicit importance of each value axis (1-10)."""


@importance.command("set")
@click.argument("pairs", nargs=-1, required=True)
def importance_set(pairs: tuple[str, ...]):
    """Set importance, e.g. `mirror importance set growth=8 health=6`."""
    try:
        changes = parse_importance_input(parse_pairs(pairs, "PAIRS"))
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="PAIRS") from e

    c = get_components()
    new = c["importance_store"].set_importance(c["user_id"], changes)
    console.print(f"[green]Saved version {new.version}[/]")


@importance.command("show")
def importance_show():
    """Current importance of every axis."""
    c = get_components()
    current = c["importance_store"].latest(c["user_id"])

    table = Table(show_header=True, title="Value importance")
    table.add_column("Axis")
    table.add_column("Importance (1-10)", justify="right")
    table.add_column("Source", style="dim")
    for axis in ValueAxis:
        value = current.get(axis) if current else 0.5
        explicit = current is not None and current.has_explicit(axis)
        table.add_row(axis.display_name, f"{denormalize_to_scale(value):.1f}", "set" if explicit else "default")
    console.print(table)
    if current:
        console.print(f"[dim]Version {current.version}, {current.created_at:%Y-%m-%d %H:%M}[/]")


@importance.command("history")
@click.option("--limit", "-n", default=10)
def importance_history(limit: int):
    """Past versions, newest first."""
    c = get_components()
    versions = c["importance_store"].history(c["user_id"], limit=limit)
    if not versions:
        console.print("[yellow]No importance set yet.[/]")
        return
    for v in versions:
        changed = ", ".join(
            f"{axis.value}={denormalize_to_scale(value):.0f}" for axis, value in v.importance.items()
        )
        console.print(f"  v{v.version}  [dim]{v.created_at:%Y-%m-%d %H:%M}[/]  {changed}")


@click.group("values")
def values_group():
    """Value graph learned from your fragments."""


def _valence_style(value: float) -> str:
    if value > 0.1:
        return "green"
    if value < -0.1:
        return "red"
    return "dim"


@values_group.command("graph")
@click.option("--all-edges", is_flag=True, help="Include weak edges")
def values_graph(all_edges: bool):
    """Per-axis valence and trend, plus support and conflict edges."""
    c = get_components()
    store = c["graph_store"]
    nodes = store.nodes(c["user_id"])

    table = Table(show_header=True, title="Value graph")
    table.add_column("Axis")
    table.add_column("Valence", justify="right")
    table.add_column("Trend")
    table.add_column("Fragments", justify="right")
    for axis, node in nodes.items():
        style = _valence_style(node.avg_valence)
        table.add_row(
            axis.display_name,
            f"[{style}]{node.avg_valence:+.2f}[/]",
            node.trend.value,
            str(node.fragment_count),
        )
    console.print(table)

    edges = [e for e in store.edges(c["user_id"]) if all_edges or e.is_significant]
    if not edges:
        console.print("[dim]No value edges recorded.[/]")
        return
    for edge in edges:
        marker = "[red]conflict[/]" if edge.is_conflict else "[green]support[/]"
        console.print(f"  {marker}  {edge.weight:.2f}  {edge.describe()}")


@values_group.command("link")
@click.argument("first")
@click.argument("second")
@click.option("--type", "edge_type", type=click.Choice([t.value for t in EdgeType]), required=True)
@click.option("--weight", "-w", type=click.FloatRange(0.0, 1.0), required=True)
def values_link(first: str, second: str, edge_type: str, weight: float):
    """Record that two values support each other or pull apart."""
    c = get_components()
    try:
        edge = ValueEdge(
            user_id=c["user_id"],
            source=ValueAxis.parse(first),
            target=ValueAxis.parse(second),
            edge_type=EdgeType(edge_type),
            weight=weight,
        )
    except ValueError as e:
        raise click.BadParameter(str(e)) from e

    try:
        c["graph_store"].save_edge(edge)
    except ValueError as e:
        raise click.ClickException(str(e)) from e
    console.print(f"[green]Saved[/] {edge.describe()}")
