from __future__ import annotations

from pathlib import Path

import typer

from lx_runner.api import annotate_log
from lx_ui.cli.commands.run import EXIT_INPUT_ERROR


def register_annotate_command(app: typer.Typer) -> None:
    """Register the ``annotate`` command on the given Typer app."""

    @app.command("annotate")
    def annotate(
        log_file: Path = typer.Argument(..., help="Summary or event log to render."),
        recursive: bool = typer.Option(
            False, "--recursive", "-r", help="Also render the event logs of each case."
        ),
        html: str = typer.Option(
            "enable", "--html", help="Use 'validate' to check the rendered HTML."
        ),
    ) -> None:
        """Render a log file as HTML next to it."""
        error = annotate_log(recursive, log_file, {"html": html})
        if error is not None:
            typer.echo(f"ERROR: {error.path}: {error.message}".rstrip("\n"), err=True)
            raise typer.Exit(EXIT_INPUT_ERROR)
        typer.echo(f"file://{log_file.resolve()}.html")
