"""Learned engine settings commands."""

import asyncio

import click
from rich.console import Console

from cli.utils import get_components
from decisions import SettingsConflictError

console = Console()


@click.group()
def settings():
    """Learned engine settings."""


@settings.command("show")
@click.option("--history", "-n", default=5, help="Recent parameter updates to show")
def settings_show(history: int):
    """Current sensitivity and baseline regret, with recent learner updates."""
    c = get_components()
    user_id = c["user_id"]
    current = c["settings_store"].get(user_id)
    stats = c["store"].feedback_stats(user_id)

    console.print(f"[bold]Sensitivity (lambda):[/] {current.sensitivity_weight:.4f}")
    console.print(f"[bold]Baseline regret rate:[/] {current.baseline_regret_rate:.4f}")
    console.print(f"[dim]Version {current.version}[/]")
    console.print(
        f"\nDecisions: {stats.total_decisions}  with feedback: {stats.total_with_feedback} "
        f"({stats.feedback_rate:.0%})  regret rate: {stats.regret_rate:.0%}"
    )

    updates = c["store"].parameter_updates(user_id, limit=history)
    if updates:
        console.print("\n[bold]Recent updates[/]")
        for u in updates:
            console.print(f"  [dim]{u['created_at'][:16]}[/] {u['rationale']}")
    pending = c["store"].feedback_without_update(user_id)
    if pending:
        console.print(f"\n[yellow]{len(pending)} feedback not yet learned from.[/] Run `mirror settings replay`.")


@settings.command("replay")
def settings_replay():
    """Apply feedback whose settings update was lost to write contention."""
    c = get_components()
    try:
        updates = asyncio.run(c["service"].replay_pending_learning(c["user_id"]))
    except SettingsConflictError as e:
        raise click.ClickException(f"{e}. Pending feedback is kept; try again.") from e
    if not updates:
        console.print("[dim]Nothing to replay.[/]")
        return
    for u in updates:
        console.print(f"  {u.decision_id}: {u.rationale}")
    console.print(f"[green]Applied {len(updates)} pending update(s)[/]")
