"""Stable runner API surface."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Iterable, Sequence

from lx_common.errors import ReportError
from lx_runner.collaborators import (
    Annotator,
    Backend,
    CaseInterpreter,
    JUnitWriter,
    ScriptParser,
    SummaryLogParser,
)
from lx_runner.engine.runner import SuiteRunner
from lx_runner.models.results import RunOutcome, SuiteError
from lx_runner.models.severity import Severity
from lx_runner.services import annotate as _annotate
from lx_runner.services.annotate import HtmlAnnotator


def run(
    files: Sequence[str],
    opts: Iterable[tuple[str, Any]],
    prev_log_dir: str | None = None,
    orig_args: Sequence[str] = (),
    *,
    backend: Backend,
    annotator: Annotator | None = None,
    junit_writer: JUnitWriter | None = None,
    summary_parser: SummaryLogParser | None = None,
) -> RunOutcome:
    """Run a suite and return its verdict or a run-level error."""
    runner = SuiteRunner(
        backend.parser,
        backend.interpreter,
        annotator=annotator,
        junit_writer=junit_writer,
        summary_parser=summary_parser,
    )
    return runner.run(files, opts, prev_log_dir, orig_args)


def annotate_log(
    is_recursive: bool,
    log_file: str | Path,
    opts: dict[str, Any] | None = None,
    *,
    annotator: Annotator | None = None,
) -> SuiteError | None:
    """Render a log file as HTML next to it."""
    opts = dict(opts or {})
    opts.setdefault("html", Severity.ENABLE)
    try:
        _annotate.annotate_log(is_recursive, Path(log_file), opts, annotator or HtmlAnnotator())
    except ReportError as exc:
        return SuiteError(path=exc.path, message=str(exc))
    return None


__all__ = [
    "Annotator",
    "Backend",
    "CaseInterpreter",
    "JUnitWriter",
    "ScriptParser",
    "SummaryLogParser",
    "SuiteRunner",
    "annotate_log",
    "run",
]
