"""JUnit XML export of a finished summary log."""

from __future__ import annotations

import logging
import os
import xml.etree.ElementTree as ET
from pathlib import Path

from lx_common.errors import ReportError, SummaryLogError
from lx_runner.collaborators import SummaryLogParser
from lx_runner.engine.rerun import flatten_results
from lx_runner.models.severity import Severity
from lx_runner.services.paths import drop_prefix
from lx_runner.services.summary_log import JsonSummaryLogParser

logger = logging.getLogger(__name__)

JUNIT_REPORT = "lx_junit.xml"


class XmlJUnitWriter:
    """Writes ``lx_junit.xml`` next to the summary log."""

    def __init__(self, parser: SummaryLogParser | None = None) -> None:
        self.parser = parser or JsonSummaryLogParser()

    def write_report(self, summary_log: Path, run_dir: Path) -> Path:
        summary_log = Path(summary_log)
        try:
            parsed = self.parser.parse(summary_log)
        except SummaryLogError as exc:
            raise ReportError(str(summary_log), str(exc), cause=exc) from exc
        outcomes = flatten_results(parsed.groups)

        def count(severity: Severity) -> str:
            return str(sum(1 for o in outcomes if o.severity is severity))

        suites = ET.Element("testsuites")
        suite = ET.SubElement(
            suites,
            "testsuite",
            name=os.path.basename(os.fspath(run_dir)) or "lx",
            tests=str(len(outcomes)),
            failures=count(Severity.FAIL),
            errors=count(Severity.ERROR),
            skipped=count(Severity.SKIP),
        )
        for outcome in outcomes:
            name = drop_prefix(outcome.script, run_dir)
            case = ET.SubElement(
                suite,
                "testcase",
                classname=os.path.dirname(name).replace(os.sep, ".") or "lx",
                name=os.path.basename(name),
            )
            message = f"line {outcome.lineno}"
            if outcome.severity is Severity.FAIL:
                ET.SubElement(case, "failure", message=message).text = outcome.details
            elif outcome.severity is Severity.ERROR:
                ET.SubElement(case, "error", message=message).text = outcome.details
            elif outcome.severity is Severity.SKIP:
                ET.SubElement(case, "skipped", message=outcome.details)
            for warning in outcome.warnings:
                ET.SubElement(case, "system-out").text = (
                    f"WARNING at line {warning.lineno} - {warning.details}"
                )

        report = summary_log.parent / JUNIT_REPORT
        try:
            ET.ElementTree(suites).write(report, encoding="utf-8", xml_declaration=True)
        except OSError as exc:
            raise ReportError(str(report), exc.strerror or str(exc), cause=exc) from exc
        logger.debug("Wrote JUnit report %s", report)
        return report
