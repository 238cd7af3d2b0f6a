"""Tests for the rerun resolver."""

from __future__ import annotations

from pathlib import Path

import pytest

from lx_common.errors import NoInputError, SummaryLogError
from lx_runner.engine.rerun import (
    compute_files,
    filter_rerun_files,
    flatten_results,
)
from lx_runner.models.results import ParsedSummary, ScriptOutcome, SummaryGroup
from lx_runner.models.severity import OUTCOME_SEVERITIES, Severity
from lx_runner.models.state import RunState


pytestmark = [pytest.mark.unit, pytest.mark.unit_runner]


def _case(result: str, script: str, **extra) -> dict:
    return {"result": result, "script": script, **extra}


class StubParser:
    def __init__(self, by_dir: dict[str, ParsedSummary]) -> None:
        self.by_dir = by_dir
        self.paths: list[Path] = []

    def parse(self, path: Path) -> ParsedSummary:
        self.paths.append(path)
        try:
            return self.by_dir[str(path.parent)]
        except KeyError:
            raise SummaryLogError(str(path), "missing") from None


def _summary(*cases: dict) -> ParsedSummary:
    return ParsedSummary(
        summary=Severity.ERROR, groups=(SummaryGroup(name="suite", cases=tuple(cases)),)
    )


class TestFlattenResults:
    def test_maps_records(self) -> None:
        outcomes = flatten_results(
            [SummaryGroup("g", (_case("success", "/s/a.lux"), _case("fail", "/s/b.lux", lineno="7")))]
        )
        assert [(o.severity, o.script, o.lineno) for o in outcomes] == [
            (Severity.SUCCESS, "/s/a.lux", "0"),
            (Severity.FAIL, "/s/b.lux", "7"),
        ]

    def test_syntax_error_line_is_recovered(self) -> None:
        record = _case("error", "/s/c.lux", details="/s/c.lux: Syntax error at line 12: bad")
        (outcome,) = flatten_results([SummaryGroup("g", (record,))])
        assert outcome.lineno == "12"

    def test_other_errors_keep_line_zero(self) -> None:
        record = _case("error", "/s/c.lux", details="boom")
        (outcome,) = flatten_results([SummaryGroup("g", (record,))])
        assert outcome.lineno == "0"


class TestFilterRerunFiles:
    OUTCOMES = [
        ScriptOutcome(Severity.SUCCESS, "/s/a.lux"),
        ScriptOutcome(Severity.SKIP, "/s/b.lux"),
        ScriptOutcome(Severity.WARNING, "/s/c.lux"),
        ScriptOutcome(Severity.FAIL, "/s/d.lux"),
        ScriptOutcome(Severity.ERROR, "/s/e.lux"),
    ]

    def test_threshold_fail(self) -> None:
        assert filter_rerun_files(self.OUTCOMES, Severity.FAIL) == ["/s/d.lux", "/s/e.lux"]

    def test_enable_keeps_everything(self) -> None:
        assert len(filter_rerun_files(self.OUTCOMES, Severity.ENABLE)) == 5

    def test_monotone_in_threshold(self) -> None:
        previous = None
        for threshold in OUTCOME_SEVERITIES:
            current = set(filter_rerun_files(self.OUTCOMES, threshold))
            if previous is not None:
                assert current <= previous
            previous = current

    def test_prefix_is_stripped(self, workdir: Path) -> None:
        outcome = ScriptOutcome(Severity.ERROR, str(workdir / "suite" / "x.lux"))
        assert filter_rerun_files([outcome], Severity.ERROR) == [str(Path("suite") / "x.lux")]


class TestComputeFiles:
    def test_nothing_to_do(self) -> None:
        with pytest.raises(NoInputError):
            compute_files(RunState.initial([]), StubParser({}))

    def test_rerun_disabled_keeps_files(self) -> None:
        state = RunState.initial(["a.lux"])
        assert compute_files(state, StubParser({})) is state

    def test_rerun_without_previous_run(self) -> None:
        state = RunState.initial([]).evolve(rerun=Severity.FAIL)
        with pytest.raises(NoInputError):
            compute_files(state, StubParser({}))

    def test_rerun_selects_failed_scripts(self) -> None:
        parser = StubParser(
            {
                "/logs/prev": _summary(
                    _case("success", "/s/A.lux"),
                    _case("fail", "/s/B.lux"),
                    _case("error", "/s/C.lux"),
                )
            }
        )
        state = RunState.initial([], prev_log_dir="/logs/prev").evolve(rerun=Severity.FAIL)
        assert compute_files(state, parser).files == ("/s/B.lux", "/s/C.lux")

    def test_explicit_log_dirs_are_merged_and_sorted(self) -> None:
        parser = StubParser(
            {
                "/logs/one": _summary(_case("fail", "/s/Z.lux"), _case("fail", "/s/B.lux")),
                "/logs/two": _summary(_case("error", "/s/B.lux"), _case("success", "/s/A.lux")),
            }
        )
        state = RunState.initial(["/logs/one", "/logs/two", "/logs/gone"]).evolve(
            rerun=Severity.FAIL
        )
        assert compute_files(state, parser).files == ("/s/B.lux", "/s/Z.lux")
        assert len(parser.paths) == 3
