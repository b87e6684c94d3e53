"""CLI entry point for decision-mirror."""

import click

from cli.commands import (
    decide,
    decisions,
    explain,
    feedback,
    fragments,
    importance,
    settings,
    values_group,
)
from cli.config import load_config_model
from cli.logging_config import setup_logging
from observability import log_run_summary


@click.group()
@click.version_option(version="0.1.0")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.option("--json-logs", is_flag=True, help="Emit logs as JSON lines")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, json_logs: bool):
    """Decision mirror - see how two options fit your own recorded history."""
    config = load_config_model()
    level = "DEBUG" if verbose else config.logging.level
    setup_logging(
        json_mode=json_logs or config.logging.json_mode,
        level=level,
        log_file=config.paths.log_file,
    )
    if verbose:
        ctx.call_on_close(log_run_summary)


cli.add_command(decide)
cli.add_command(decisions)
cli.add_command(feedback)
cli.add_command(explain)
cli.add_command(importance)
cli.add_command(settings)
cli.add_command(fragments)
cli.add_command(values_group)


if __name__ == "__main__":
    cli()
