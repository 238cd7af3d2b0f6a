"""The run loop: processes expanded scripts one at a time per run mode."""

from __future__ import annotations

import logging
import os
import shutil
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Sequence

from lx_runner.collaborators import Annotator, CaseInterpreter, ScriptParser
from lx_runner.engine.doc import display_docs, doc_entries
from lx_runner.engine.expander import SuiteCase
from lx_runner.models.args import (
    INFINITY,
    Opts,
    case_config_args,
    merge_case_opts,
    opts_to_args,
)
from lx_runner.models.results import (
    CaseAborted,
    CaseCompleted,
    CmdPos,
    ParseFailure,
    ParseOk,
    ParseResult,
    ParseSkip,
    ScriptOutcome,
    SuiteWarning,
)
from lx_runner.models.severity import Severity, merge
from lx_runner.models.state import RunState
from lx_runner.services.annotate import annotate_event_log, annotate_tmp_summary_log
from lx_runner.services.console import tag_prefix
from lx_runner.services.paths import drop_prefix, pretty_filename, pretty_full_lineno
from lx_runner.services.tap import TapStream

logger = logging.getLogger(__name__)

FAIL_PREFIX = "FAIL"
ORIG_EXT = ".orig"


@dataclass
class LoopResult:
    """What the run loop hands back to the suite runner."""

    state: RunState
    summary: Severity
    results: list[ScriptOutcome] = field(default_factory=list)
    listed: list[str] = field(default_factory=list)
    suite_timeout: bool = False


def skip_severity(reason: str) -> Severity:
    """A skip whose reason starts with ``FAIL`` counts as a failure."""
    return Severity.FAIL if reason.startswith(FAIL_PREFIX) else Severity.SKIP


def stack_error(
    error_stack: Sequence[CmdPos], message: str, script: str
) -> tuple[str, str, str]:
    """Return ``(main_file, full_lineno, message)`` for an error stack.

    The stack is innermost first. When the failing file is not the
    top-level script the message is prefixed with the failing file.
    """
    if not error_stack:
        return pretty_filename(script), "0", message
    main_file = error_stack[-1].file
    error_file = error_stack[0].file
    full_lineno = pretty_full_lineno(error_stack)
    if error_file != main_file:
        message = f"{pretty_filename(error_file)}: {message}"
    return pretty_filename(main_file), full_lineno, message


def write_results(state: RunState, summary: Severity, results: Sequence[ScriptOutcome]) -> None:
    if state.is_enumeration or state.log_fd is None:
        return
    state.log_fd.write_results(summary, results, state.warnings)


def double_rlog(state: RunState, text: str) -> str:
    if state.log_fd is None:
        return text
    return state.log_fd.double_write(state.progress, text)


def init_case_rlog(state: RunState, display: str, script: str) -> str:
    """Log the case header; the console gets the display path instead."""
    tag = tag_prefix("test case")
    text = f"\n{tag}{script}\n"
    if state.log_fd is None:
        return text
    state.log_fd.safe_write(text)
    if not state.silent:
        print(f"\n{tag}{display}", flush=True)
    return text


def copy_orig(log_dir: Path, script: str) -> Path | None:
    """Keep a copy of a script that never ran next to the case logs."""
    target = Path(log_dir) / (os.path.basename(script) + ORIG_EXT)
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(script, target)
    except OSError as exc:
        logger.warning("Could not copy %s to %s: %s", script, target, exc)
        return None
    return target


def tap_comment(tap: TapStream, outcome: Severity | str, lineno: str, details: str) -> None:
    head = f"{Severity(outcome).value.upper()} at line {lineno}"
    lines = details.split("\n")
    if len(lines) == 1:
        tap.diag(f"{head} - {lines[0]}")
        return
    tap.diag(head)
    for line in lines:
        tap.diag(line)


def tap_case_end(
    orig_state: RunState,
    state: RunState,
    case_count: int,
    case: SuiteCase,
    max_width: int,
    result: Severity,
    full_lineno: str,
    reason: str,
    details: str,
) -> None:
    tap = state.tap
    if tap is None:
        return
    count = str(case_count)
    indent = " " * min(4, 5 - len(count))
    descr = f"{indent}{count} {case.display}"
    todo = f"TODO - {reason}" if reason else ""
    if result is Severity.ERROR:
        ok, directive = False, ""
    elif result is Severity.FAIL:
        ok, directive = False, todo if state.skip_skip else ""
    elif result in (Severity.WARNING, Severity.SKIP):
        ok, directive = True, reason
    else:
        ok, directive = True, todo if state.skip_skip else ""
    tap.test(ok, descr, directive, max_width - case.width)
    for warning in state.warnings[len(orig_state.warnings):]:
        tap_comment(tap, Severity.WARNING, warning.lineno, warning.details)
    if details:
        tap_comment(tap, result, full_lineno, details)


class CaseSequencer:
    """Drives the parser and interpreter over an expanded suite."""

    def __init__(
        self,
        parser: ScriptParser,
        interpreter: CaseInterpreter,
        annotator: Annotator,
    ) -> None:
        self.parser = parser
        self.interpreter = interpreter
        self.annotator = annotator

    def parse_script(self, state: RunState, script: str) -> tuple[ParseResult, RunState, Opts]:
        """Parse ``script`` and resolve its per-case options.

        On success the returned state carries the script's file layer and
        the internal layer handed to the interpreter.
        """
        result = self.parser.parse_file(
            Path(script),
            state.mode,
            state.skip_unstable,
            state.skip_skip,
            True,
            case_config_args(state.args),
        )
        if not isinstance(result, ParseOk):
            return result, state, []
        file_args = opts_to_args(result.file_opts, state.args.file)
        internal: list[tuple[str, Any]] = [
            ("log_dir", str(state.log_dir)),
            ("skip_skip", state.skip_skip),
        ]
        if state.log_fd is not None:
            internal += [("log_fun", state.log_fd.safe_write), ("log_fd", state.log_fd)]
        if state.suite_timer is not None:
            internal.append(("suite_stop_token", state.suite_timer.token))
        new_state = state.evolve(
            args=state.args.evolve(internal=opts_to_args(internal), file=file_args),
            warnings=tuple(result.warnings),
        )
        return result, new_state, merge_case_opts(new_state.args)

    def run_cases(
        self,
        state: RunState,
        cases: Sequence[SuiteCase],
        summary: Severity,
        results: Sequence[ScriptOutcome],
        max_width: int,
    ) -> LoopResult:
        loop = LoopResult(state=state, summary=summary, results=list(results))
        doc_depth: Any = state.pick_val("doc", INFINITY)
        opaque: Any = None
        remaining = list(cases)
        case_count = 0
        while remaining:
            timer = loop.state.suite_timer
            if timer is not None and timer.fired():
                logger.info("Suite timeout, %d scripts not run", len(remaining))
                loop.suite_timeout = True
                break
            case = remaining.pop(0)
            case_count += 1
            if case.script is None:
                self._expansion_error(loop, case, case_count, max_width)
                continue
            doc_depth, opaque, aborted = self._run_case(
                loop, case, case.script, case_count, max_width, doc_depth, opaque
            )
            if aborted:
                logger.info("Suite timeout, %d scripts not run", len(remaining))
                loop.suite_timeout = True
                break
        self._print_listing(loop)
        return loop

    def _expansion_error(
        self, loop: LoopResult, case: SuiteCase, case_count: int, max_width: int
    ) -> None:
        state = loop.state
        reason = case.error or "unknown error"
        loop.summary = merge(loop.summary, Severity.ERROR)
        if state.is_enumeration:
            print(f"{drop_prefix(case.suite_file)}:")
            print(f"\tERROR {reason}")
            details = f"{case.suite_file}: {reason}"
        else:
            init_case_rlog(state, case.display, case.suite_file)
            details = double_rlog(
                state, f"{tag_prefix('error')}{case.suite_file}: {reason}\n"
            ).rstrip("\n")
            tap_case_end(
                state, state, case_count, case, max_width,
                Severity.ERROR, "0", reason, reason,
            )
        loop.results.append(
            ScriptOutcome(severity=Severity.ERROR, script=case.suite_file, details=details)
        )
        write_results(state, loop.summary, loop.results)

    def _run_case(
        self,
        loop: LoopResult,
        case: SuiteCase,
        script: str,
        case_count: int,
        max_width: int,
        doc_depth: Any,
        opaque: Any,
    ) -> tuple[Any, Any, bool]:
        orig = loop.state
        case_start = time.time()
        tmp = orig.evolve(warnings=(), args=orig.args.evolve(file={}, internal={}))
        result, new_state, opts = self.parse_script(tmp, script)

        if isinstance(result, ParseOk):
            parse_warnings = tuple(result.warnings)
            if orig.mode in ("list", "list_dir"):
                loop.listed.append(script)
                loop.state = self._keep(orig, new_state, parse_warnings)
            elif orig.mode == "doc":
                print(f"{drop_prefix(result.script)}:")
                doc_depth = display_docs(doc_entries(result.commands), doc_depth)
                self._adjust_warnings(loop, str(result.script), loop.summary, parse_warnings)
                loop.state = self._keep(orig, new_state, parse_warnings)
            elif orig.mode == "validate":
                init_case_rlog(new_state, case.display, script)
                severity = Severity.WARNING if parse_warnings else Severity.SUCCESS
                loop.results.append(
                    ScriptOutcome(severity=severity, script=script, warnings=parse_warnings)
                )
                loop.summary = merge(loop.summary, severity)
                double_rlog(new_state, f"{tag_prefix('result')}{severity.value.upper()}\n")
                loop.state = self._keep(orig, new_state, parse_warnings)
                tap_case_end(
                    orig, loop.state, case_count, case, max_width, severity, "0", "", ""
                )
                write_results(loop.state, loop.summary, loop.results)
            else:
                return doc_depth, *self._execute(
                    loop, orig, new_state, case, script, case_count, max_width,
                    result, opts, case_start, opaque,
                )
            return doc_depth, opaque, False

        if isinstance(result, ParseSkip):
            severity = skip_severity(result.reason)
            loop.summary = merge(loop.summary, severity)
            if orig.is_enumeration:
                return doc_depth, opaque, False
            main_file, full_lineno, _ = stack_error(result.error_stack, result.reason, script)
            init_case_rlog(orig, case.display, script)
            double_rlog(orig, f"{tag_prefix('result')}{result.reason}\n")
            copy_orig(orig.log_dir, main_file)
            tap_case_end(
                orig, orig, case_count, case, max_width,
                severity, full_lineno, result.reason, "",
            )
            loop.results.append(
                ScriptOutcome(
                    severity=severity,
                    script=main_file,
                    lineno=full_lineno,
                    details=result.reason,
                    case_log_dir=str(orig.log_dir),
                )
            )
            write_results(orig, loop.summary, loop.results)
            return doc_depth, opaque, False

        if not isinstance(result, ParseFailure):
            raise TypeError(f"Unexpected parser result: {result!r}")
        loop.summary = merge(loop.summary, Severity.ERROR)
        main_file, full_lineno, message = stack_error(
            result.error_stack, result.message, script
        )
        if orig.is_enumeration:
            print(f"{drop_prefix(script)}:")
            print(f"\tERROR {result.message}")
        else:
            init_case_rlog(orig, case.display, script)
            double_rlog(orig, f"{tag_prefix('result')}ERROR {message}\n")
            copy_orig(orig.log_dir, main_file)
            tap_case_end(
                orig, orig, case_count, case, max_width,
                Severity.ERROR, "0", result.message, result.message,
            )
        loop.results.append(
            ScriptOutcome(
                severity=Severity.ERROR,
                script=main_file,
                lineno=full_lineno,
                details=message,
            )
        )
        write_results(orig, loop.summary, loop.results)
        return doc_depth, opaque, False

    def _execute(
        self,
        loop: LoopResult,
        orig: RunState,
        state: RunState,
        case: SuiteCase,
        script: str,
        case_count: int,
        max_width: int,
        parsed: ParseOk,
        opts: Opts,
        case_start: float,
        opaque: Any,
    ) -> tuple[Any, bool]:
        annotate_tmp_summary_log(state, loop.summary, script, self.annotator)
        init_case_rlog(state, case.display, script)
        res = self.interpreter.interpret_commands(
            Path(parsed.script),
            parsed.commands,
            tuple(parsed.warnings),
            case_start,
            opts,
            opaque,
        )
        aborted = False
        if isinstance(res, CaseCompleted):
            # run-time warnings lift the case to at least warning
            severity = Severity(res.severity)
            if res.warnings:
                severity = merge(severity, Severity.WARNING)
            outcome = ScriptOutcome(
                severity=severity,
                script=script,
                lineno=res.full_lineno,
                details=res.details,
                case_log_dir=res.case_log_dir,
                events=tuple(res.events),
                warnings=tuple(res.warnings),
            )
            opaque = res.opaque
        elif isinstance(res, CaseAborted):
            severity = Severity.ERROR
            outcome = ScriptOutcome(
                severity=severity,
                script=res.main_file,
                lineno=res.full_lineno,
                details=res.details,
                case_log_dir=res.case_log_dir,
                warnings=tuple(res.warnings),
            )
            aborted = res.suite_timeout
        else:
            raise TypeError(f"Unexpected interpreter result: {res!r}")

        done = state.evolve(warnings=orig.warnings + tuple(res.warnings))
        double_rlog(done, f"{tag_prefix('result')}{severity.value.upper()}\n")
        tap_case_end(
            orig, done, case_count, case, max_width,
            severity, res.full_lineno, "", res.details,
        )
        loop.summary = merge(loop.summary, severity)
        annotate_event_log(done, script, loop.summary, res.case_log_dir, self.annotator)
        loop.results.append(outcome)
        loop.state = done
        write_results(done, loop.summary, loop.results)
        return opaque, aborted

    @staticmethod
    def _keep(
        orig: RunState, new_state: RunState, parse_warnings: tuple[SuiteWarning, ...]
    ) -> RunState:
        return new_state.evolve(warnings=orig.warnings + parse_warnings)

    @staticmethod
    def _adjust_warnings(
        loop: LoopResult,
        script: str,
        summary: Severity,
        parse_warnings: tuple[SuiteWarning, ...],
    ) -> None:
        if not parse_warnings:
            return
        loop.summary = merge(summary, Severity.WARNING)
        loop.results.append(
            ScriptOutcome(severity=Severity.WARNING, script=script, warnings=parse_warnings)
        )

    @staticmethod
    def _print_listing(loop: LoopResult) -> None:
        mode = loop.state.mode
        if mode not in ("list", "list_dir"):
            return
        paths = [drop_prefix(path) for path in loop.listed]
        if mode == "list_dir":
            paths = [os.path.dirname(path) for path in paths]
        for path in sorted(set(paths)):
            print(path)
