"""Decision history, feedback and explanation commands."""

import asyncio
import sys

import click
from rich.console import Console
from rich.table import Table

from cli.commands.decide import render_decision
from cli.utils import get_components
from decisions import DecisionError, FeedbackStatus, SettingsConflictError
from shared_types import FeedbackType

console = Console()


@click.group()
def decisions():
    """Browse past decisions."""


@decisions.command("list")
@click.option("--limit", "-n", default=20, help="Max decisions to show")
def decisions_list(limit: int):
    """List recent decisions."""
    c = get_components()
    rows = c["store"].list_for_user(c["user_id"], limit=limit)
    if not rows:
        console.print("[yellow]No decisions yet.[/]")
        return

    table = Table(show_header=True, title="Decisions")
    table.add_column("Date", style="cyan", width=10)
    table.add_column("ID", style="dim")
    table.add_column("Title", max_width=40)
    table.add_column("P(A)", justify="right")
    table.add_column("P(B)", justify="right")
    table.add_column("Feedback")

    for d in rows:
        feedback = c["store"].get_feedback(d.id)
        table.add_row(
            d.created_at.strftime("%Y-%m-%d"),
            d.id[:12],
            d.title[:40],
            f"{d.result.probability_a:.0%}",
            f"{d.result.probability_b:.0%}",
            feedback.feedback_type.value if feedback else "-",
        )
    console.print(table)


@decisions.command("show")
@click.argument("decision_id")
@click.option("--breakdown", is_flag=True, help="Show the stored calculation breakdown")
def decisions_show(decision_id: str, breakdown: bool):
    """Show one decision."""
    c = get_components()
    decision = c["store"].get_for_user(c["user_id"], decision_id)
    if decision is None:
        console.print(f"[red]Decision not found:[/] {decision_id}")
        sys.exit(1)
    render_decision(decision, show_breakdown=breakdown)
    if breakdown and not decision.result.has_breakdown:
        console.print("[dim]No breakdown was stored for this decision.[/]")
    if decision.explanation:
        console.print(f"\n{decision.explanation.summary}")


@decisions.command("pending")
def decisions_pending():
    """Decisions from 1-3 days ago still waiting for feedback."""
    c = get_components()
    rows = c["store"].find_needing_feedback(c["user_id"])
    if not rows:
        console.print("[green]Nothing waiting for feedback.[/]")
        return
    for d in rows:
        console.print(f"  [cyan]{d.id}[/]  {d.title}  [dim]{d.created_at:%Y-%m-%d %H:%M}[/]")
    console.print("\nRecord how it went: [bold]mirror feedback <id> satisfied|neutral|regret[/]")


@click.command()
@click.argument("decision_id")
@click.argument("outcome", type=click.Choice([t.value for t in FeedbackType]))
def feedback(decision_id: str, outcome: str):
    """Record how a decision turned out (once per decision)."""
    c = get_components()
    try:
        result = asyncio.run(c["service"].submit_feedback(c["user_id"], decision_id, FeedbackType(outcome)))
    except SettingsConflictError as e:
        console.print(f"[red]Feedback saved but settings update failed:[/] {e}")
        console.print("Run `mirror settings replay` to apply it later.")
        sys.exit(1)

    if result.status == FeedbackStatus.NOT_FOUND:
        console.print(f"[red]Decision not found:[/] {decision_id}")
        sys.exit(1)
    if result.status == FeedbackStatus.CONFLICT:
        existing = result.feedback.feedback_type.value if result.feedback else "unknown"
        console.print(f"[yellow]Feedback already recorded for this decision ({existing}).[/]")
        sys.exit(1)

    console.print(f"[green]Recorded:[/] {outcome}")
    if result.update:
        console.print(f"[dim]{result.update.rationale}[/]")


@click.command()
@click.argument("decision_id")
def explain(decision_id: str):
    """Plain-language explanation of a decision's numbers."""
    c = get_components(with_explainer=True)
    try:
        explanation = asyncio.run(c["service"].explain_decision(c["user_id"], decision_id))
    except DecisionError as e:
        console.print(f"[red]Error:[/] {e}")
        sys.exit(1)

    console.print(f"\n[bold]Summary[/]\n{explanation.summary}")
    console.print(f"\n[bold]Evidence[/]\n{explanation.evidence_summary}")
    console.print(f"\n[bold]Values[/]\n{explanation.value_summary}")
