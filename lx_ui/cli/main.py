"""
Command-line interface for lx-suite.

Runs suites of expect-style scripts and renders their logs.
"""

from __future__ import annotations

from typing import Optional

import typer

from lx_common.api import configure_logging
from lx_runner.version import __version__
from lx_ui.cli.commands.annotate import register_annotate_command
from lx_ui.cli.commands.run import register_run_command

app = typer.Typer(help="Run suites of expect-style test scripts.", no_args_is_help=True)


@app.callback(invoke_without_command=True)
def entry(
    ctx: typer.Context,
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        help="Diagnostic log level (defaults to LX_LOG_LEVEL or WARNING).",
    ),
    version: bool = typer.Option(False, "--version", help="Print the version and exit."),
) -> None:
    """Global entry point configuring diagnostics."""
    if version:
        typer.echo(__version__)
        raise typer.Exit()
    configure_logging(level=log_level, force=True)
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


register_run_command(app)
register_annotate_command(app)


def main() -> None:
    """Console script entrypoint (Typer app)."""
    app()


if __name__ == "__main__":
    main()
