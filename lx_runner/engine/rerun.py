"""Computes the script list, either as given or from previous runs."""

from __future__ import annotations

import logging
import re
from dataclasses import replace
from pathlib import Path
from typing import Iterable

from lx_common.errors import NoInputError, SummaryLogError
from lx_runner.collaborators import SummaryLogParser
from lx_runner.models.results import ScriptOutcome, SummaryGroup
from lx_runner.models.severity import Severity, meets
from lx_runner.models.state import RunState
from lx_runner.services.paths import SUITE_SUMMARY_LOG, drop_prefix

logger = logging.getLogger(__name__)

_SYNTAX_ERROR = re.compile(r"^Syntax error at line (\d+)$")


def _syntax_error_lineno(details: str) -> str:
    parts = details.split(": ")
    if len(parts) == 3:
        match = _SYNTAX_ERROR.match(parts[1])
        if match:
            return match.group(1)
    return "0"


def flatten_results(groups: Iterable[SummaryGroup]) -> list[ScriptOutcome]:
    """Turn grouped case records of a summary log into one outcome list."""
    outcomes: list[ScriptOutcome] = []
    for group in groups:
        for record in group.cases:
            outcome = ScriptOutcome.from_dict(record)
            if outcome.severity is Severity.ERROR and outcome.lineno == "0":
                outcome = replace(outcome, lineno=_syntax_error_lineno(outcome.details))
            outcomes.append(outcome)
    return outcomes


def filter_rerun_files(outcomes: Iterable[ScriptOutcome], threshold: Severity | str) -> list[str]:
    """Scripts whose recorded severity is at least ``threshold``."""
    return [
        drop_prefix(outcome.script)
        for outcome in outcomes
        if meets(outcome.severity, threshold)
    ]


def read_previous_results(parser: SummaryLogParser, log_dir: str | Path) -> list[ScriptOutcome]:
    summary_log = Path(log_dir) / SUITE_SUMMARY_LOG
    try:
        parsed = parser.parse(summary_log)
    except SummaryLogError as exc:
        logger.warning("Ignoring previous run %s: %s", log_dir, exc)
        return []
    return flatten_results(parsed.groups)


def compute_rerun_files(
    state: RunState, log_dirs: Iterable[str], parser: SummaryLogParser
) -> RunState:
    selected: set[str] = set()
    for log_dir in log_dirs:
        outcomes = read_previous_results(parser, log_dir)
        selected.update(filter_rerun_files(outcomes, state.rerun))
    return state.evolve(files=tuple(sorted(selected)))


def compute_files(state: RunState, parser: SummaryLogParser) -> RunState:
    """Resolve the working file list, raising :class:`NoInputError` when empty."""
    if not state.files and not state.orig_files and state.rerun is Severity.DISABLE:
        raise NoInputError()
    if state.rerun is Severity.DISABLE:
        return state
    if state.files:
        return compute_rerun_files(state, state.files, parser)
    if state.prev_log_dir is None:
        raise NoInputError()
    return compute_rerun_files(state, [state.prev_log_dir], parser)
