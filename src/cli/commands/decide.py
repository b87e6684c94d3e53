"""Decision creation and display commands."""

import asyncio
import json
import sys
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from cli.utils import get_components
from decisions import CreateDecisionCommand, DecisionError, DecisionValidationError
from decisions.models import Decision
from shared_types import ValueAxis

console = Console()

AXIS_CHOICES = [axis.value for axis in ValueAxis]


def _pct(value: float) -> str:
    return f"{value:.1%}"


def render_decision(decision: Decision, show_breakdown: bool = False) -> None:
    """Print a decision's numbers. Descriptive only: no option is singled out."""
    result = decision.result
    console.print(f"\n[bold]{decision.title}[/]  [dim]{decision.id}[/]")

    table = Table(show_header=True)
    table.add_column("")
    table.add_column("Option", max_width=50)
    table.add_column("Fit probability", justify="right")
    table.add_column("Regret risk", justify="right")
    table.add_row("A", decision.option_a, _pct(result.probability_a), _pct(result.regret_risk_a))
    table.add_row("B", decision.option_b, _pct(result.probability_b), _pct(result.regret_risk_b))
    console.print(table)

    values = Table(show_header=True, title="Value alignment (0.5 = does not separate)")
    values.add_column("Axis")
    values.add_column("Alignment", justify="right")
    for axis, value in result.value_alignment.items():
        style = "cyan" if abs(value - 0.5) >= 0.1 else "dim"
        values.add_row(axis.display_name, f"[{style}]{value:.3f}[/]")
    console.print(values)

    if result.evidence_ids:
        console.print(f"[dim]Evidence: {', '.join(result.evidence_ids)}[/]")
    else:
        console.print("[dim]No similar past records yet; fit is neutral.[/]")

    if show_breakdown and result.breakdown is not None:
        render_breakdown(result.breakdown)


def render_breakdown(breakdown) -> None:
    fit, regret, params, scores = breakdown.fit, breakdown.regret, breakdown.parameters, breakdown.scores
    console.print("\n[bold]Breakdown[/]")
    console.print(
        f"  Fit A {fit.fit_score_a:.4f}  Fit B {fit.fit_score_b:.4f}  "
        f"total weight {fit.total_weight:.4f}"
    )
    console.print(
        f"  Regret: historical {regret.historical_regret_rate:.3f}, variance {regret.valence_variance:.3f}, "
        f"negativity A {regret.option_negativity_a:.3f} / B {regret.option_negativity_b:.3f} "
        f"[dim]({regret.data_reliability.value} reliability, {regret.feedback_count} samples)[/]"
    )
    console.print(
        f"  {scores.formula}: A {scores.score_a:.4f}, B {scores.score_b:.4f} "
        f"(lambda {params.sensitivity_weight:.3f})"
    )
    if fit.contributions:
        table = Table(show_header=True, title="Top contributions")
        table.add_column("Record", style="cyan")
        table.add_column("Summary", max_width=40)
        table.add_column("To A", justify="right")
        table.add_column("To B", justify="right")
        table.add_column("Leans", justify="center")
        for c in fit.contributions:
            table.add_row(
                c.record_id, c.summary, f"{c.contribution_to_a:.4f}", f"{c.contribution_to_b:.4f}",
                c.favored_option.value,
            )
        console.print(table)


@click.command()
@click.option("--title", "-t", required=True, help="What the decision is about")
@click.option("--option-a", "-a", required=True, help="First option")
@click.option("--option-b", "-b", required=True, help="Second option")
@click.option("--priority", type=click.Choice(AXIS_CHOICES), default=None, help="Value axis to weight evidence by")
@click.option("--breakdown", is_flag=True, help="Include and show the full calculation breakdown")
@click.option("--json", "as_json", is_flag=True, help="Print JSON instead of tables")
def decide(title: str, option_a: str, option_b: str, priority: Optional[str], breakdown: bool, as_json: bool):
    """Project two options against your recorded history."""
    c = get_components()
    try:
        command = CreateDecisionCommand(
            user_id=c["user_id"],
            title=title,
            option_a=option_a,
            option_b=option_b,
            priority_axis=ValueAxis.parse(priority) if priority else None,
        )
    except DecisionValidationError as e:
        raise click.BadParameter(str(e)) from e

    try:
        decision = asyncio.run(c["service"].create_decision(command, include_breakdown=breakdown))
    except DecisionError as e:
        console.print(f"[red]Error:[/] {e}")
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(decision.to_dict(), indent=2))
    else:
        render_decision(decision, show_breakdown=breakdown)
