"""Rich-based console rendering of suite results."""

from __future__ import annotations

import sys
from typing import IO, Iterable, Sequence

from rich.console import Console
from rich.theme import Theme

from lx_runner.models.results import ScriptOutcome, SuiteWarning
from lx_runner.models.severity import Severity
from lx_runner.services.paths import drop_prefix

THEME = Theme(
    {
        "success": "green",
        "skip": "cyan",
        "warning": "yellow",
        "fail": "red",
        "error": "bold red",
    }
)

_SECTIONS = (
    ("successful", Severity.SUCCESS),
    ("skipped", Severity.SKIP),
    ("warnings", Severity.WARNING),
    ("failed", Severity.FAIL),
    ("errors", Severity.ERROR),
)


def make_console(stream: IO[str] | None = None) -> Console:
    return Console(theme=THEME, file=stream or sys.stdout, highlight=False, soft_wrap=True)


def tag_prefix(name: str) -> str:
    """Left-aligned ``name: `` tag used by progress and result lines."""
    return f"{name:<18}: "


def print_results(
    progress: str,
    summary: Severity,
    results: Sequence[ScriptOutcome],
    warnings: Iterable[SuiteWarning],
    console: Console | None = None,
) -> None:
    """Per-severity script listing followed by the suite summary line."""
    if progress == "silent":
        return
    console = console or make_console()
    warnings = list(warnings)
    console.print()
    for name, severity in _SECTIONS:
        if severity is Severity.SUCCESS:
            count = sum(1 for r in results if r.severity is severity)
            console.print(tag_prefix(name) + str(count), style=severity.value)
            continue
        if severity is Severity.WARNING:
            entries = [
                f"{drop_prefix(w.file)}:{w.lineno} - {w.details}" for w in warnings
            ]
        else:
            entries = [
                f"{drop_prefix(r.script)}:{r.lineno}"
                for r in results
                if r.severity is severity
            ]
        if not entries:
            continue
        console.print(tag_prefix(name) + str(len(entries)), style=severity.value)
        for entry in entries:
            console.print(f"\t{entry}", style=severity.value, markup=False)
    summary = Severity(summary)
    console.print(tag_prefix("summary") + summary.value.upper(), style=summary.value)
