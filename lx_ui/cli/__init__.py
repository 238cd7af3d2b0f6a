"""Typer application for the ``lx`` command."""

from lx_ui.cli.main import app, main

__all__ = ["app", "main"]
