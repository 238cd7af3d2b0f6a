"""Tests for the JUnit report writer."""

from __future__ import annotations

import xml.etree.ElementTree as ET
from pathlib import Path

import pytest

from lx_common.errors import ReportError
from lx_runner.models.results import ScriptOutcome, SuiteWarning
from lx_runner.models.severity import Severity
from lx_runner.services.junit import JUNIT_REPORT, XmlJUnitWriter
from lx_runner.services.paths import SUITE_SUMMARY_LOG
from lx_runner.services.summary_log import open_summary_log


pytestmark = [pytest.mark.unit, pytest.mark.unit_runner]


def _summary(tmp_path: Path) -> Path:
    path = tmp_path / "logs" / SUITE_SUMMARY_LOG
    run = tmp_path / "run"
    _, writer = open_summary_log(path, extend_run=False)
    with writer:
        writer.write_results(
            Severity.ERROR,
            [
                ScriptOutcome(Severity.SUCCESS, str(run / "net" / "ping.lux")),
                ScriptOutcome(
                    Severity.WARNING,
                    str(run / "net" / "dns.lux"),
                    warnings=(SuiteWarning("dns.lux", "4", "slow"),),
                ),
                ScriptOutcome(Severity.FAIL, str(run / "net" / "http.lux"), "9", "no match"),
                ScriptOutcome(Severity.ERROR, str(run / "db.lux"), "0", "crash"),
                ScriptOutcome(Severity.SKIP, str(run / "db2.lux"), "0", "SKIP no db"),
            ],
            [],
        )
    return path


class TestXmlJUnitWriter:
    def test_report_contents(self, tmp_path: Path) -> None:
        report = XmlJUnitWriter().write_report(_summary(tmp_path), tmp_path / "run")
        assert report == tmp_path / "logs" / JUNIT_REPORT
        root = ET.parse(report).getroot()
        suite = root.find("testsuite")
        assert suite is not None
        assert suite.get("name") == "run"
        assert (suite.get("tests"), suite.get("failures"), suite.get("errors"), suite.get("skipped")) == (
            "5",
            "1",
            "1",
            "1",
        )
        http = suite.find("testcase[@name='http.lux']")
        assert http is not None
        assert http.get("classname") == "net"
        assert http.find("failure").get("message") == "line 9"
        assert suite.find("testcase[@name='db.lux']/error").text == "crash"
        assert suite.find("testcase[@name='db2.lux']/skipped").get("message") == "SKIP no db"
        assert suite.find("testcase[@name='dns.lux']/system-out").text == "WARNING at line 4 - slow"
        assert suite.find("testcase[@name='db.lux']").get("classname") == "lx"

    def test_unreadable_summary(self, tmp_path: Path) -> None:
        with pytest.raises(ReportError):
            XmlJUnitWriter().write_report(tmp_path / SUITE_SUMMARY_LOG, tmp_path)
