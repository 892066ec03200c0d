"""
blobmirror run - Execute one sync run.
"""

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from blobmirror.exceptions import ConfigurationError
from blobmirror.sync.types import RunState, RunSummary
from blobmirror.utils.logging import get_logger

logger = get_logger("blobmirror.cli.run")

app = typer.Typer(name="run", help="Run one incremental sync", invoke_without_command=True)

console = Console()

# Exit codes
EXIT_OK = 0
EXIT_ITEM_FAILURES = 1
EXIT_ABORTED = 2


@app.callback()
def run(
    ctx: typer.Context,
    env: str | None = typer.Option(None, help="Environment (selects config.<env>.yaml)"),
    project_dir: Path = typer.Option(Path.cwd(), "--project-dir", "-d", help="Directory holding config.yaml"),
    source: str | None = typer.Option(None, "--source", "-s", help="Source store URL or path (overrides config)"),
    destination: str | None = typer.Option(
        None, "--destination", "-t", help="Destination store URL or path (overrides config)"
    ),
    workers: str | None = typer.Option(None, "--workers", "-w", help="Concurrent object copies (int or 'auto')"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
) -> None:
    """
    Mirror every container and changed object from source to destination once.
    """
    if ctx.invoked_subcommand is not None:
        return

    from blobmirror.cli.common import load_cli_config
    from blobmirror.api import run_from_config

    try:
        config = load_cli_config(
            project_dir, env=env, verbose=verbose, source=source, destination=destination, workers=workers
        )
        summary = run_from_config(config)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(EXIT_ABORTED) from None

    print_summary(summary)
    raise typer.Exit(exit_code_for(summary))


def exit_code_for(summary: RunSummary) -> int:
    if summary.state is not RunState.COMPLETED:
        return EXIT_ABORTED
    if summary.failures:
        return EXIT_ITEM_FAILURES
    return EXIT_OK


def print_summary(summary: RunSummary) -> None:
    """Render a run summary as Rich tables."""
    state_style = "green" if summary.state is RunState.COMPLETED else "red"
    console.print(
        f"\n[bold]Run {summary.run_id}[/bold] [{state_style}]{summary.state.value}[/{state_style}]"
        f" [dim]{summary.source} -> {summary.destination}[/dim]"
    )
    if summary.error:
        console.print(f"[red]{summary.error}[/red]")

    table = Table(title=f"Containers ({summary.containers_processed})", show_header=True)
    table.add_column("Container", style="cyan")
    table.add_column("Copied", style="green", justify="right")
    table.add_column("Skipped", style="dim", justify="right")
    table.add_column("Failed", style="red", justify="right")
    for container in summary.containers:
        table.add_row(container.name, str(container.copied), str(container.skipped), str(container.failed))
    table.add_row("[bold]total[/bold]", str(summary.copied), str(summary.skipped), str(summary.failed))
    console.print(table)

    if summary.failures:
        failures = Table(title=f"Failures ({len(summary.failures)})", show_header=True)
        failures.add_column("Kind", style="yellow")
        failures.add_column("Container", style="cyan")
        failures.add_column("Object")
        failures.add_column("Reason", style="dim")
        for failure in summary.failures:
            failures.add_row(failure.kind, failure.container, failure.object_name or "", failure.reason)
        console.print(failures)
