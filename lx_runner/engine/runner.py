"""Suite runner: option parsing, file computation, run loop and reporting."""

from __future__ import annotations

import logging
import os
import socket
import time
import traceback
from pathlib import Path
from typing import Any, Iterable, Sequence

from lx_common.config.env import user_prefix
from lx_common.errors import (
    IllegalArgumentError,
    InputFileError,
    LXError,
    NoInputError,
    ReportError,
)
from lx_runner.collaborators import (
    Annotator,
    CaseInterpreter,
    JUnitWriter,
    ScriptParser,
    SummaryLogParser,
)
from lx_runner.engine.config_files import check_config_dir, parse_config
from lx_runner.engine.expander import expand_suite
from lx_runner.engine.options import parse_run_options
from lx_runner.engine.rerun import compute_files, read_previous_results
from lx_runner.engine.sequencer import (
    CaseSequencer,
    LoopResult,
    double_rlog,
    write_results,
)
from lx_runner.engine.stop_context import stop_context
from lx_runner.engine.suite_timer import SuiteTimer
from lx_runner.models.results import RunOutcome, ScriptOutcome, SuiteError, SuiteResult
from lx_runner.models.severity import Severity, finalize_verdict
from lx_runner.models.state import RunState
from lx_runner.services.annotate import (
    HtmlAnnotator,
    annotate_final_summary_log,
    annotate_tmp_summary_log,
)
from lx_runner.services.config_log import ConfigData, write_config_log
from lx_runner.services.console import print_results
from lx_runner.services.junit import XmlJUnitWriter
from lx_runner.services.paths import (
    CASE_TAP_LOG,
    SUITE_SUMMARY_LOG,
    drop_prefix,
    normalize_filename,
    now_to_string,
)
from lx_runner.services.summary_log import (
    JsonSummaryLogParser,
    SummaryLogWriter,
    open_summary_log,
)
from lx_runner.services.tap import TapStream

logger = logging.getLogger(__name__)

SUITE_TIMEOUT_MESSAGE = "ERROR: suite timeout"


def internal_error_message(exc: BaseException) -> str:
    trace = "".join(traceback.format_tb(exc.__traceback__)).rstrip("\n")
    return f"{type(exc).__name__}: {exc}\n\t{trace}"


def adjust_files(state: RunState) -> RunState:
    """Check that all inputs exist and make them absolute."""
    if state.config_dir is not None:
        check_config_dir(Path(state.config_dir))
    for name in state.files:
        if not os.path.exists(name):
            raise InputFileError(name, f"{name}: No such file or directory\n")
    return state.evolve(files=tuple(normalize_filename(name) for name in state.files))


class SuiteRunner:
    """Runs one suite with the given collaborators.

    Only the parser and the interpreter are mandatory; reporting
    collaborators default to the plain implementations in
    :mod:`lx_runner.services`.
    """

    def __init__(
        self,
        parser: ScriptParser,
        interpreter: CaseInterpreter,
        *,
        annotator: Annotator | None = None,
        junit_writer: JUnitWriter | None = None,
        summary_parser: SummaryLogParser | None = None,
    ) -> None:
        self.annotator = annotator or HtmlAnnotator()
        self.summary_parser = summary_parser or JsonSummaryLogParser()
        self.junit_writer = junit_writer or XmlJUnitWriter(self.summary_parser)
        self.sequencer = CaseSequencer(parser, interpreter, self.annotator)

    def run(
        self,
        files: Sequence[str],
        opts: Iterable[tuple[str, Any]],
        prev_log_dir: str | None = None,
        orig_args: Sequence[str] = (),
    ) -> RunOutcome:
        files = list(files)
        state = RunState.initial(files, orig_args, prev_log_dir)
        try:
            state = parse_run_options(opts, state)
        except IllegalArgumentError as exc:
            return SuiteError(path=files[0] if files else None, message=str(exc))

        if state.is_enumeration:
            return self._enumeration_run(state)

        summary_log = Path(state.log_dir) / SUITE_SUMMARY_LOG
        timer: SuiteTimer | None = None
        try:
            config_data, state = parse_config(state)
            state = compute_files(state, self.summary_parser)
            state = adjust_files(state)
            timer = SuiteTimer.start(state.args)
            state = state.evolve(suite_timer=timer)
            with stop_context(timer.token):
                return self.full_run(state, config_data, summary_log)
        except NoInputError as exc:
            return SuiteError(path=os.getcwd(), message=str(exc), kind="no_input")
        except LXError as exc:
            return SuiteError(path=exc.context.get("path"), message=str(exc))
        except Exception as exc:
            logger.exception("Internal error while running suite")
            return SuiteError(path=str(summary_log), message=internal_error_message(exc))
        finally:
            if timer is not None:
                timer.cancel()

    def _enumeration_run(self, state: RunState) -> RunOutcome:
        """``list``, ``list_dir`` and ``doc`` runs: no logs, no reports."""
        try:
            state = compute_files(state, self.summary_parser)
            state = state.evolve(log_fd=None, summary_log=None)
            _config_data, state = parse_config(state)
            loop = self.run_suite(state, Severity.SUCCESS, [])
        except NoInputError as exc:
            return SuiteError(path=os.getcwd(), message=str(exc), kind="no_input")
        except LXError as exc:
            return SuiteError(path=exc.context.get("path"), message=str(exc))
        except Exception as exc:
            logger.exception("Internal error while listing suite")
            return SuiteError(path=os.getcwd(), message=internal_error_message(exc))
        return SuiteResult(
            summary=loop.summary,
            summary_log=None,
            results=tuple(loop.results),
            suite_timeout=loop.suite_timeout,
        )

    def full_run(self, state: RunState, config_data: ConfigData, summary_log: Path) -> SuiteResult:
        exists, writer = open_summary_log(summary_log, state.extend_run)
        with writer:
            state = state.evolve(log_fd=writer, summary_log=summary_log)
            results = self.initial_res(state, exists, config_data, writer)
            loop = self.run_suite(state, Severity.SUCCESS, results)
            print_results(loop.state.progress, loop.summary, loop.results, loop.state.warnings)
            write_results(loop.state, loop.summary, loop.results)
            end_time = now_to_string(time.time())
            write_config_log(summary_log, list(config_data) + [("end time", end_time)])
        final_state = loop.state.evolve(log_fd=None)
        if final_state.junit:
            self.write_junit(summary_log, config_data)
        annotate_final_summary_log(final_state, loop.summary, self.annotator)
        return SuiteResult(
            summary=loop.summary,
            summary_log=str(summary_log),
            results=tuple(loop.results),
            suite_timeout=loop.suite_timeout,
        )

    def initial_res(
        self,
        state: RunState,
        exists: bool,
        config_data: ConfigData,
        writer: SummaryLogWriter,
    ) -> list[ScriptOutcome]:
        """Outcomes of an extended run, or a fresh log with its config."""
        if exists:
            return read_previous_results(self.summary_parser, Path(state.log_dir))
        write_config_log(writer.path, config_data)
        writer.write_record("config", data={str(k): v for k, v in config_data})
        writer.write_results(Severity.SKIP, [], [])
        annotate_tmp_summary_log(state, Severity.SUCCESS, None, self.annotator)
        return []

    def write_junit(self, summary_log: Path, config_data: ConfigData) -> None:
        run_dir = dict(config_data).get("run_dir", os.getcwd())
        try:
            report = self.junit_writer.write_report(summary_log, Path(run_dir))
        except ReportError as exc:
            logger.error("JUnit report failed: %s", exc)
            return
        logger.info("Wrote JUnit report %s", report)

    def run_suite(
        self, state: RunState, summary: Severity, results: Sequence[ScriptOutcome]
    ) -> LoopResult:
        cases, max_width = expand_suite(state, state.files)
        state = self.tap_suite_begin(state, len(cases))
        try:
            loop = self.sequencer.run_cases(state, cases, summary, results, max_width)
            loop.summary = finalize_verdict(loop.summary, len(loop.results), state.mode)
            if loop.suite_timeout:
                double_rlog(loop.state, f"\n{SUITE_TIMEOUT_MESSAGE}\n")
                if loop.state.tap is not None:
                    loop.state.tap.diag(SUITE_TIMEOUT_MESSAGE)
            self.tap_suite_end(loop)
            return loop
        except Exception:
            if state.tap is not None:
                state.tap.bail_out("Internal error")
                state.tap.close()
            raise

    def tap_suite_begin(self, state: RunState, count: int) -> RunState:
        if state.is_enumeration:
            return state.evolve(tap=None)
        tap_log = str(Path(state.log_dir) / CASE_TAP_LOG)
        targets = (tap_log,) + tuple(state.tap_opts)
        tap = TapStream.open(targets)
        tap.plan(count)
        tap.diag("\n")
        tap.diag(f"ssh {user_prefix()}{socket.gethostname()}")
        tap.diag(f"cd {os.getcwd()}")
        tap.diag("lx " + " ".join(state.orig_args[1:]))
        if state.summary_log is not None:
            tap.diag(f"open {drop_prefix(state.summary_log)}.html")
        tap.diag("\n")
        return state.evolve(tap=tap, tap_opts=targets)

    @staticmethod
    def tap_suite_end(loop: LoopResult) -> None:
        tap = loop.state.tap
        if tap is None:
            return

        def count(severity: Severity) -> int:
            return sum(1 for r in loop.results if r.severity is severity)

        tap.diag("\n")
        tap.diag(f"Errors:     {count(Severity.ERROR)}")
        tap.diag(f"Failed:     {count(Severity.FAIL)}")
        tap.diag(f"Warnings:   {len(loop.state.warnings)}")
        tap.diag(f"Skipped:    {count(Severity.SKIP)}")
        tap.diag(f"Successful: {count(Severity.SUCCESS)}")
        tap.diag(f"Summary:    {loop.summary.value}")
        tap.close()
