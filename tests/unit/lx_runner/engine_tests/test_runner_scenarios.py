"""End-to-end suite runs with scripted collaborators."""

from __future__ import annotations

import xml.etree.ElementTree as ET
from pathlib import Path

import pytest
import yaml

from lx_runner.api import run
from lx_runner.engine.rerun import flatten_results
from lx_runner.models.results import (
    CaseAborted,
    CaseCompleted,
    SuiteError,
    SuiteResult,
)
from lx_runner.models.severity import Severity
from lx_runner.services.junit import JUNIT_REPORT
from lx_runner.services.paths import CASE_TAP_LOG, SUITE_CONFIG_LOG, SUITE_SUMMARY_LOG
from lx_runner.services.summary_log import JsonSummaryLogParser
from tests.helpers.fakes import FakeBackend, FakeInterpreter, FakeParser, write_script


pytestmark = [pytest.mark.unit, pytest.mark.unit_runner]


@pytest.fixture
def suite(workdir: Path) -> Path:
    for name in ("a.lux", "b.lux", "c.lux"):
        write_script(workdir / "suite" / name)
    return workdir / "suite"


def _opts(log_dir: Path, *extra: tuple[str, object]) -> list[tuple[str, object]]:
    return [("log_dir", str(log_dir)), ("progress", "silent"), *extra]


def _tap(log_dir: Path) -> list[str]:
    return (log_dir / CASE_TAP_LOG).read_text(encoding="utf-8").splitlines()


class TestAllPass:
    """Three passing scripts."""

    def test_verdict_and_artifacts(self, suite: Path, fake_backend: FakeBackend) -> None:
        log_dir = suite.parent / "logs"
        outcome = run(["suite"], _opts(log_dir), backend=fake_backend)

        assert isinstance(outcome, SuiteResult)
        assert outcome.summary is Severity.SUCCESS
        assert outcome.summary_log == str(log_dir / SUITE_SUMMARY_LOG)
        assert [r.severity for r in outcome.results] == [Severity.SUCCESS] * 3
        assert (log_dir / SUITE_CONFIG_LOG).is_file()
        assert (log_dir / (SUITE_SUMMARY_LOG + ".html")).is_file()
        assert (log_dir / "a.lux.event.log.html").is_file()

    def test_tap_stream(self, suite: Path, fake_backend: FakeBackend) -> None:
        log_dir = suite.parent / "logs"
        run(["suite"], _opts(log_dir), backend=fake_backend)
        lines = _tap(log_dir)
        assert lines[0] == "1..3"
        assert "ok    1 suite/a.lux" in lines
        assert "ok    3 suite/c.lux" in lines
        assert "# open logs/lx_summary.log.html" in lines
        assert lines[-6:] == [
            "# Errors:     0",
            "# Failed:     0",
            "# Warnings:   0",
            "# Skipped:    0",
            "# Successful: 3",
            "# Summary:    success",
        ]

    def test_summary_log_round_trip(self, suite: Path, fake_backend: FakeBackend) -> None:
        log_dir = suite.parent / "logs"
        run(["suite"], _opts(log_dir), backend=fake_backend)
        parsed = JsonSummaryLogParser().parse(log_dir / SUITE_SUMMARY_LOG)
        assert parsed.summary is Severity.SUCCESS
        outcomes = flatten_results(parsed.groups)
        assert [Path(o.script).name for o in outcomes] == ["a.lux", "b.lux", "c.lux"]

    def test_config_log_has_end_time(self, suite: Path, fake_backend: FakeBackend) -> None:
        log_dir = suite.parent / "logs"
        run(["suite"], _opts(log_dir, ("suite", "nightly")), backend=fake_backend)
        config = yaml.safe_load((log_dir / SUITE_CONFIG_LOG).read_text(encoding="utf-8"))
        assert config["suite"] == "nightly"
        assert "start time" in config
        assert "end time" in config


class TestOneFailure:
    """The second script fails at line 7."""

    @pytest.fixture
    def backend(self, suite: Path) -> FakeBackend:
        log_dir = str(suite.parent / "logs")
        interpreter = FakeInterpreter(
            {"b.lux": CaseCompleted(Severity.FAIL, "7", log_dir, details="expected X")}
        )
        return FakeBackend(parser=FakeParser(), interpreter=interpreter)

    def test_verdict_is_fail(self, suite: Path, backend: FakeBackend) -> None:
        outcome = run(["suite"], _opts(suite.parent / "logs"), backend=backend)
        assert outcome.summary is Severity.FAIL
        failed = [r for r in outcome.results if r.severity is Severity.FAIL]
        assert len(failed) == 1
        assert failed[0].lineno == "7"

    def test_tap_reports_failure(self, suite: Path, backend: FakeBackend) -> None:
        log_dir = suite.parent / "logs"
        run(["suite"], _opts(log_dir), backend=backend)
        lines = _tap(log_dir)
        index = lines.index("not ok    2 suite/b.lux")
        assert lines[index + 1] == "# FAIL at line 7 - expected X"
        assert "# Failed:     1" in lines

    def test_junit_report(self, suite: Path, backend: FakeBackend) -> None:
        log_dir = suite.parent / "logs"
        run(["suite"], _opts(log_dir, ("junit", True)), backend=backend)
        root = ET.parse(log_dir / JUNIT_REPORT).getroot()
        testsuite = root.find("testsuite")
        assert testsuite is not None
        assert testsuite.get("tests") == "3"
        assert testsuite.get("failures") == "1"
        failure = root.find(".//testcase[@name='b.lux']/failure")
        assert failure is not None
        assert failure.text == "expected X"

    def test_rerun_selects_failed_script(self, suite: Path, backend: FakeBackend) -> None:
        first = suite.parent / "logs"
        run(["suite"], _opts(first), backend=backend)

        second_backend = FakeBackend()
        outcome = run(
            [],
            _opts(suite.parent / "logs2", ("rerun", "fail")),
            str(first),
            backend=second_backend,
        )
        assert isinstance(outcome, SuiteResult)
        assert [Path(r.script).name for r in outcome.results] == ["b.lux"]
        assert outcome.summary is Severity.SUCCESS
        assert [Path(c["script"]).name for c in second_backend.interpreter.calls] == ["b.lux"]


class TestSuiteTimeout:
    def test_remaining_scripts_are_dropped(self, suite: Path, capsys) -> None:
        log_dir = suite.parent / "logs"
        interpreter = FakeInterpreter(
            {
                "a.lux": CaseAborted(
                    main_file=str(suite / "a.lux"),
                    full_lineno="2",
                    case_log_dir=str(log_dir),
                    details="suite_timeout",
                )
            }
        )
        backend = FakeBackend(parser=FakeParser(), interpreter=interpreter)
        outcome = run(["suite"], _opts(log_dir), backend=backend)

        assert isinstance(outcome, SuiteResult)
        assert outcome.suite_timeout
        assert outcome.summary is Severity.ERROR
        assert len(outcome.results) == 1
        assert len(interpreter.calls) == 1
        assert "# ERROR: suite timeout" in _tap(log_dir)


class TestExtendRun:
    def test_results_accumulate(self, suite: Path, fake_backend: FakeBackend) -> None:
        log_dir = suite.parent / "logs"
        run(["suite/a.lux"], _opts(log_dir), backend=fake_backend)
        outcome = run(
            ["suite/b.lux"], _opts(log_dir, ("extend_run", True)), backend=fake_backend
        )
        assert [Path(r.script).name for r in outcome.results] == ["a.lux", "b.lux"]


class TestEnumerationRun:
    def test_doc_mode_writes_no_logs(self, suite: Path, fake_backend: FakeBackend, capsys) -> None:
        log_dir = suite.parent / "logs"
        outcome = run(["suite"], _opts(log_dir, ("mode", "doc")), backend=fake_backend)
        assert isinstance(outcome, SuiteResult)
        assert outcome.summary_log is None
        assert not log_dir.exists()
        assert fake_backend.interpreter.calls == []
        assert "suite/a.lux:" in capsys.readouterr().out

    def test_empty_listing_is_a_warning(self, workdir: Path, fake_backend: FakeBackend) -> None:
        (workdir / "empty").mkdir()
        outcome = run(["empty"], [("mode", "list")], backend=fake_backend)
        assert outcome.summary is Severity.WARNING


class TestRunErrors:
    def test_no_input(self, workdir: Path, fake_backend: FakeBackend) -> None:
        outcome = run([], [], backend=fake_backend)
        assert isinstance(outcome, SuiteError)
        assert outcome.kind == "no_input"
        assert outcome.path == str(workdir)

    def test_illegal_argument(self, workdir: Path, fake_backend: FakeBackend) -> None:
        outcome = run(["a.lux"], [("mode", "sideways")], backend=fake_backend)
        assert isinstance(outcome, SuiteError)
        assert outcome.path == "a.lux"
        assert "illegal argument" in outcome.message

    def test_missing_script(self, workdir: Path, fake_backend: FakeBackend) -> None:
        outcome = run(["ghost.lux"], _opts(workdir / "logs"), backend=fake_backend)
        assert isinstance(outcome, SuiteError)
        assert outcome.path == "ghost.lux"
        assert outcome.message == "ghost.lux: No such file or directory\n"

    def test_missing_config_dir(self, suite: Path, fake_backend: FakeBackend) -> None:
        outcome = run(
            ["suite"],
            _opts(suite.parent / "logs", ("config_dir", str(suite.parent / "nowhere"))),
            backend=fake_backend,
        )
        assert isinstance(outcome, SuiteError)
        assert "config_dir" in outcome.message
