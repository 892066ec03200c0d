"""
blobmirror serve - Run syncs on a cron schedule until interrupted.
"""

import asyncio
import signal
from pathlib import Path

import typer

from blobmirror.exceptions import ConfigurationError, SchedulerError
from blobmirror.utils.logging import get_logger

logger = get_logger("blobmirror.cli.serve")

app = typer.Typer(name="serve", help="Run syncs on a schedule", invoke_without_command=True)


@app.callback()
def serve(
    ctx: typer.Context,
    env: str | None = typer.Option(None, help="Environment (selects config.<env>.yaml)"),
    project_dir: Path = typer.Option(Path.cwd(), "--project-dir", "-d", help="Directory holding config.yaml"),
    source: str | None = typer.Option(None, "--source", "-s", help="Source store URL or path (overrides config)"),
    destination: str | None = typer.Option(
        None, "--destination", "-t", help="Destination store URL or path (overrides config)"
    ),
    workers: str | None = typer.Option(None, "--workers", "-w", help="Concurrent object copies (int or 'auto')"),
    cron: str | None = typer.Option(None, "--cron", help="Cron expression (default from config: '0 12,17 * * *')"),
    timezone: str | None = typer.Option(None, "--timezone", help="Timezone for the cron expression"),
    run_on_start: bool = typer.Option(False, "--run-on-start", help="Run once immediately, then follow the schedule"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
) -> None:
    """
    Start the scheduler. Each firing runs one sync; failures wait for the next firing.
    """
    if ctx.invoked_subcommand is not None:
        return

    from blobmirror.api import run_from_config
    from blobmirror.cli.common import load_cli_config
    from blobmirror.service.scheduler import DEFAULT_CRON, SyncScheduler

    try:
        config = load_cli_config(
            project_dir, env=env, verbose=verbose, source=source, destination=destination, workers=workers
        )
        schedule = config.schedule
        scheduler = SyncScheduler(
            lambda: run_from_config(config),
            cron=cron or schedule.get("cron") or DEFAULT_CRON,
            timezone=timezone or schedule.get("timezone") or "UTC",
            run_on_start=run_on_start or bool(schedule.get("run_on_start", False)),
        )
    except (ConfigurationError, SchedulerError) as e:
        logger.error(f"Configuration error: {e}")
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(2) from None

    asyncio.run(_serve(scheduler))


async def _serve(scheduler) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, scheduler.stop)
        except (NotImplementedError, RuntimeError):
            # Windows event loops have no signal handlers; Ctrl+C still raises KeyboardInterrupt
            pass
    await scheduler.run_forever()
