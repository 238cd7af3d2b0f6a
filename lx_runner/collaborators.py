"""Interfaces of the collaborators the orchestrator drives.

The script parser and the case interpreter come from a backend; the
reporting collaborators have default implementations in
:mod:`lx_runner.services`.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Protocol, Sequence, runtime_checkable

from lx_runner.models.results import (
    CaseResult,
    Command,
    ParsedSummary,
    ParseResult,
    SuiteWarning,
)


@runtime_checkable
class ScriptParser(Protocol):
    def parse_file(
        self,
        script: Path,
        mode: str,
        skip_unstable: bool,
        skip_skip: bool,
        check_doc: bool,
        opts: Sequence[tuple[str, Any]],
    ) -> ParseResult:
        """Parse one script with the given per-case options."""
        ...


@runtime_checkable
class CaseInterpreter(Protocol):
    def interpret_commands(
        self,
        script: Path,
        commands: Sequence[Command],
        warnings: tuple[SuiteWarning, ...],
        start_time: float,
        opts: Sequence[tuple[str, Any]],
        opaque: Any,
    ) -> CaseResult:
        """Run one parsed script to completion (blocking)."""
        ...


class SummaryLogParser(Protocol):
    def parse(self, path: Path) -> ParsedSummary:
        """Read a persisted summary log; raise SummaryLogError when unusable."""
        ...


class Annotator(Protocol):
    def generate(
        self,
        is_recursive: bool,
        log_file: Path,
        suite_log_dir: Path,
        opts: dict[str, Any],
    ) -> Path:
        """Render ``log_file`` as HTML and return the produced file."""
        ...

    def validate(self, html_file: Path, opts: dict[str, Any]) -> None:
        """Check a rendered file; raise ReportError when it is broken."""
        ...


class JUnitWriter(Protocol):
    def write_report(self, summary_log: Path, run_dir: Path) -> Path:
        ...


class Backend(Protocol):
    """A script language implementation: a parser and an interpreter."""

    parser: ScriptParser
    interpreter: CaseInterpreter
