"""Tests for HTML annotation of logs."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from lx_common.errors import ReportError
from lx_runner.models.results import ScriptOutcome
from lx_runner.models.severity import Severity
from lx_runner.models.state import RunState
from lx_runner.services.annotate import (
    HtmlAnnotator,
    annotate_event_log,
    annotate_final_summary_log,
    annotate_log,
    annotate_tmp_summary_log,
    html_path,
)
from lx_runner.services.paths import SUITE_CONFIG_LOG, SUITE_SUMMARY_LOG
from lx_runner.services.summary_log import open_summary_log


pytestmark = [pytest.mark.unit, pytest.mark.unit_runner]


@pytest.fixture
def log_dir(tmp_path: Path) -> Path:
    """A suite log dir with one finished case and its event log."""
    root = tmp_path / "logs"
    _, writer = open_summary_log(root / SUITE_SUMMARY_LOG, extend_run=False)
    with writer:
        writer.write_record("config", data={})
        writer.write_results(
            Severity.FAIL,
            [
                ScriptOutcome(
                    Severity.FAIL,
                    str(tmp_path / "s" / "a.lux"),
                    lineno="3",
                    details="expected <ok>",
                    case_log_dir=str(root),
                )
            ],
            [],
        )
    (root / "a.lux.event.log").write_text("send <x> & wait\n")
    (root / SUITE_CONFIG_LOG).write_text("suite: x\n")
    return root


class TestHtmlAnnotator:
    def test_summary_table_links_event_log(self, log_dir: Path) -> None:
        target = HtmlAnnotator().generate(False, log_dir / SUITE_SUMMARY_LOG, log_dir, {})
        assert target == log_dir / "lx_summary.log.html"
        text = target.read_text()
        assert "Summary: FAIL" in text
        assert 'href="a.lux.event.log.html"' in text
        assert "expected &lt;ok&gt;" in text
        assert not (log_dir / "a.lux.event.log.html").exists()

    def test_recursive_renders_event_logs(self, log_dir: Path) -> None:
        HtmlAnnotator().generate(True, log_dir / SUITE_SUMMARY_LOG, log_dir, {})
        event_html = (log_dir / "a.lux.event.log.html").read_text()
        assert "send &lt;x&gt; &amp; wait" in event_html

    def test_running_marker_and_output_override(self, log_dir: Path) -> None:
        out = log_dir / "snapshot.html"
        target = HtmlAnnotator().generate(
            False, log_dir / SUITE_SUMMARY_LOG, log_dir, {"html_file": out, "next_script": "b.lux"}
        )
        assert target == out
        assert "Running: b.lux" in out.read_text()

    def test_missing_log(self, tmp_path: Path) -> None:
        with pytest.raises(ReportError):
            HtmlAnnotator().generate(False, tmp_path / "gone.log", tmp_path, {})

    def test_validate_accepts_generated_page(self, log_dir: Path) -> None:
        annotator = HtmlAnnotator()
        target = annotator.generate(True, log_dir / SUITE_SUMMARY_LOG, log_dir, {})
        annotator.validate(target, {})

    def test_validate_rejects_unbalanced_tags(self, tmp_path: Path) -> None:
        page = tmp_path / "bad.html"
        page.write_text("<html><body><p>text</body></html>")
        with pytest.raises(ReportError, match="Unbalanced"):
            HtmlAnnotator().validate(page, {})


class TestAnnotateLog:
    def test_suite_log_dir_is_found_upwards(self, log_dir: Path) -> None:
        nested = log_dir / "case" / "x.event.log"
        nested.parent.mkdir()
        nested.write_text("x\n")
        annotator = MagicMock()
        annotate_log(False, nested, {}, annotator)
        assert annotator.generate.call_args.args[2] == log_dir

    def test_validate_threshold_triggers_validation(self, log_dir: Path) -> None:
        annotator = MagicMock()
        annotate_log(False, log_dir / SUITE_SUMMARY_LOG, {"html": "validate"}, annotator)
        annotator.validate.assert_called_once()

    def test_enable_threshold_skips_validation(self, log_dir: Path) -> None:
        annotator = MagicMock()
        annotate_log(False, log_dir / SUITE_SUMMARY_LOG, {"html": "enable"}, annotator)
        annotator.validate.assert_not_called()


class TestRunAnnotations:
    def _state(self, log_dir: Path, **changes) -> RunState:
        return RunState.initial([]).evolve(
            log_dir=log_dir, summary_log=log_dir / SUITE_SUMMARY_LOG, **changes
        )

    def test_tmp_summary_replaces_html(self, log_dir: Path) -> None:
        state = self._state(log_dir)
        assert annotate_tmp_summary_log(state, Severity.SUCCESS, "b.lux", HtmlAnnotator())
        html = html_path(log_dir / SUITE_SUMMARY_LOG)
        assert "Running: b.lux" in html.read_text()
        assert not (log_dir / "lx_summary.log.tmp.html").exists()

    def test_tmp_summary_failure_is_not_raised(self, log_dir: Path) -> None:
        annotator = MagicMock()
        annotator.generate.side_effect = ReportError("x", "broken")
        assert not annotate_tmp_summary_log(self._state(log_dir), Severity.SUCCESS, None, annotator)

    def test_threshold_not_met(self, log_dir: Path) -> None:
        annotator = MagicMock()
        state = self._state(log_dir, html=Severity.FAIL)
        assert not annotate_tmp_summary_log(state, Severity.WARNING, None, annotator)
        assert annotate_final_summary_log(state, Severity.WARNING, annotator) is None
        annotator.generate.assert_not_called()

    def test_disabled(self, log_dir: Path) -> None:
        annotator = MagicMock()
        state = self._state(log_dir, html=Severity.DISABLE)
        assert annotate_final_summary_log(state, Severity.ERROR, annotator) is None

    def test_enumeration_modes_skip(self, log_dir: Path) -> None:
        annotator = MagicMock()
        state = self._state(log_dir, mode="list")
        assert annotate_final_summary_log(state, Severity.ERROR, annotator) is None

    def test_final_prints_link(self, log_dir: Path, capsys) -> None:
        state = self._state(log_dir)
        target = annotate_final_summary_log(state, Severity.FAIL, HtmlAnnotator())
        assert target == html_path(log_dir / SUITE_SUMMARY_LOG)
        assert f"file://{target}" in capsys.readouterr().out

    def test_final_failure_propagates(self, log_dir: Path) -> None:
        annotator = MagicMock()
        annotator.generate.side_effect = ReportError("x", "broken")
        with pytest.raises(ReportError):
            annotate_final_summary_log(self._state(log_dir), Severity.FAIL, annotator)

    def test_event_log_error_is_printed(self, log_dir: Path, capsys) -> None:
        annotator = MagicMock()
        annotator.generate.side_effect = ReportError("/x/a.lux.event.log", "broken")
        annotate_event_log(self._state(log_dir), "a.lux", Severity.FAIL, str(log_dir), annotator)
        out = capsys.readouterr().out
        assert "INTERNAL ERROR" in out
        assert "/x/a.lux.event.log" in out
