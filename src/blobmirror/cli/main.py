"""
Main CLI entry point.
"""

import typer

from blobmirror import __version__
from blobmirror.cli import run, serve


def version_callback(value: bool):
    """Callback to display version and exit."""
    if value:
        typer.echo(f"blobmirror version {__version__}")
        raise typer.Exit()


app = typer.Typer(
    name="blobmirror",
    help="blobmirror - Scheduled incremental replication between blob storage accounts",
    add_completion=True,
)

# Register subcommands
app.add_typer(run.app, name="run")
app.add_typer(serve.app, name="serve")


@app.callback(invoke_without_command=True)
def entrypoint(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
):
    """
    blobmirror - Scheduled incremental replication between blob storage accounts.

    Run 'blobmirror <command> --help' for help on a specific command.
    """
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


def main():
    """Main CLI entry point."""
    app()


if __name__ == "__main__":
    main()
