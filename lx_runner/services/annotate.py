"""HTML annotation of summary and event logs."""

from __future__ import annotations

import html
import json
import logging
import os
from html.parser import HTMLParser
from pathlib import Path
from typing import Any

from lx_common.errors import ReportError
from lx_runner.collaborators import Annotator
from lx_runner.models.severity import Severity, meets
from lx_runner.models.state import RunState
from lx_runner.services.paths import (
    SUITE_SUMMARY_LOG,
    event_log_path,
    find_suite_log_dir,
)

logger = logging.getLogger(__name__)

HTML_EXT = ".html"
TMP_EXT = ".tmp"

_PAGE = """<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<title>{title}</title>
</head>
<body>
<h1>{title}</h1>
{body}
</body>
</html>
"""


def html_path(log_file: Path) -> Path:
    return log_file.with_name(log_file.name + HTML_EXT)


class HtmlAnnotator:
    """Plain HTML rendering of lx logs.

    Summary logs are rendered as a result table linking to the event log
    of each case; any other log is rendered verbatim inside ``<pre>``.
    ``opts["html_file"]`` overrides the output path and
    ``opts["next_script"]`` marks a snapshot taken while a case runs.
    """

    def generate(
        self,
        is_recursive: bool,
        log_file: Path,
        suite_log_dir: Path,
        opts: dict[str, Any],
    ) -> Path:
        log_file = Path(log_file)
        try:
            text = log_file.read_text(encoding="utf-8")
        except OSError as exc:
            raise ReportError(
                str(log_file), exc.strerror or str(exc), cause=exc
            ) from exc

        target = Path(opts.get("html_file") or html_path(log_file))
        if log_file.name.startswith(SUITE_SUMMARY_LOG):
            body = self._summary_body(text, log_file, target, opts)
            if is_recursive:
                self._annotate_cases(text, suite_log_dir, log_file)
        else:
            body = f"<pre>{html.escape(text)}</pre>"

        title = html.escape(opts.get("case_prefix", "") + log_file.name)
        try:
            target.write_text(_PAGE.format(title=title, body=body), encoding="utf-8")
        except OSError as exc:
            raise ReportError(str(target), exc.strerror or str(exc), cause=exc) from exc
        logger.debug("Annotated %s -> %s", log_file, target)
        return target

    def validate(self, html_file: Path, opts: dict[str, Any]) -> None:
        checker = _TagBalance()
        try:
            checker.feed(Path(html_file).read_text(encoding="utf-8"))
            checker.close()
        except OSError as exc:
            raise ReportError(str(html_file), exc.strerror or str(exc), cause=exc) from exc
        if checker.problem:
            raise ReportError(str(html_file), checker.problem)

    def _summary_body(
        self, text: str, log_file: Path, target: Path, opts: dict[str, Any]
    ) -> str:
        records = _records(text, log_file)
        latest = next(
            (r for r in reversed(records) if r.get("kind") == "results"), None
        )
        parts: list[str] = []
        next_script = opts.get("next_script")
        if next_script:
            parts.append(f"<p>Running: {html.escape(str(next_script))}</p>")
        if latest is None:
            parts.append("<p>No results yet</p>")
            return "\n".join(parts)
        summary = str(latest.get("summary", ""))
        parts.append(f"<h2>Summary: {html.escape(summary.upper())}</h2>")
        parts.append("<table>")
        parts.append("<tr><th>Result</th><th>Script</th><th>Line</th><th>Details</th></tr>")
        for group in latest.get("groups", []):
            for case in group.get("cases", []):
                parts.append(self._case_row(case, target.parent))
        parts.append("</table>")
        warnings = latest.get("warnings", [])
        if warnings:
            parts.append("<h2>Warnings</h2><ul>")
            for warning in warnings:
                parts.append(
                    "<li>{}:{} {}</li>".format(
                        html.escape(str(warning.get("file", ""))),
                        html.escape(str(warning.get("lineno", ""))),
                        html.escape(str(warning.get("details", ""))),
                    )
                )
            parts.append("</ul>")
        return "\n".join(parts)

    @staticmethod
    def _case_row(case: dict[str, Any], html_dir: Path) -> str:
        script = str(case.get("script", ""))
        label = html.escape(script)
        case_log_dir = case.get("case_log_dir")
        if case_log_dir:
            event_html = html_path(event_log_path(case_log_dir, script))
            href = os.path.relpath(event_html, html_dir)
            label = f'<a href="{html.escape(href)}">{label}</a>'
        return "<tr><td>{}</td><td>{}</td><td>{}</td><td><pre>{}</pre></td></tr>".format(
            html.escape(str(case.get("result", "")).upper()),
            label,
            html.escape(str(case.get("lineno", ""))),
            html.escape(str(case.get("details", ""))),
        )

    def _annotate_cases(self, text: str, suite_log_dir: Path, log_file: Path) -> None:
        for record in _records(text, log_file):
            if record.get("kind") != "results":
                continue
            for group in record.get("groups", []):
                for case in group.get("cases", []):
                    case_log_dir = case.get("case_log_dir")
                    if not case_log_dir:
                        continue
                    event_log = event_log_path(case_log_dir, case.get("script", ""))
                    if event_log.is_file():
                        self.generate(False, event_log, suite_log_dir, {})


def _records(text: str, log_file: Path) -> list[dict[str, Any]]:
    records = []
    for lineno, line in enumerate(text.splitlines(), start=1):
        if not line.strip():
            continue
        try:
            records.append(json.loads(line))
        except json.JSONDecodeError as exc:
            raise ReportError(
                str(log_file), f"{log_file}:{lineno}: malformed record", cause=exc
            ) from exc
    return records


class _TagBalance(HTMLParser):
    _VOID = {"meta", "br", "hr", "img", "input", "link"}

    def __init__(self) -> None:
        super().__init__()
        self.stack: list[str] = []
        self.problem: str | None = None

    def handle_starttag(self, tag: str, attrs: Any) -> None:
        if tag not in self._VOID:
            self.stack.append(tag)

    def handle_endtag(self, tag: str) -> None:
        if not self.stack or self.stack[-1] != tag:
            self.problem = self.problem or f"Unbalanced </{tag}> at line {self.getpos()[0]}"
            return
        self.stack.pop()

    def close(self) -> None:
        super().close()
        if self.stack and not self.problem:
            self.problem = f"Unclosed <{self.stack[-1]}>"


def annotate_log(
    is_recursive: bool,
    log_file: Path,
    opts: dict[str, Any],
    annotator: Annotator,
    suite_log_dir: Path | None = None,
) -> Path:
    """Render ``log_file`` and validate the result when ``html`` asks for it.

    Raises :class:`ReportError` when rendering or validation fails.
    """
    log_file = Path(log_file)
    if suite_log_dir is None:
        default_dir = log_file.parent
        suite_log_dir = find_suite_log_dir(default_dir, default_dir)
    html_file = annotator.generate(is_recursive, log_file, suite_log_dir, opts)
    if Severity(opts.get("html", Severity.ENABLE)) is Severity.VALIDATE:
        annotator.validate(html_file, opts)
    return html_file


def _html_enabled(state: RunState, summary: Severity) -> bool:
    return meets(summary, state.html) and state.html is not Severity.DISABLE


def annotate_event_log(
    state: RunState,
    script: str,
    summary: Severity,
    case_log_dir: str | None,
    annotator: Annotator,
) -> None:
    """Render the event log of a finished case; failures are reported, not raised."""
    if case_log_dir is None or not _html_enabled(state, summary):
        return
    event_log = event_log_path(case_log_dir, script)
    try:
        annotate_log(False, event_log, {}, annotator, suite_log_dir=state.log_dir)
    except ReportError as exc:
        print(f"\nINTERNAL ERROR\n\t{exc.path}:\n\t{exc}")


def annotate_tmp_summary_log(
    state: RunState,
    summary: Severity,
    next_script: str | None,
    annotator: Annotator,
) -> bool:
    """Publish a snapshot of the summary log taken before ``next_script`` runs."""
    if (
        state.is_enumeration
        or state.summary_log is None
        or not _html_enabled(state, summary)
    ):
        return False
    summary_log = Path(state.summary_log)
    tmp_html = summary_log.with_name(summary_log.name + TMP_EXT + HTML_EXT)
    if state.log_fd is not None:
        state.log_fd.sync()
    opts = {
        "case_prefix": state.case_prefix,
        "next_script": next_script,
        "html_file": tmp_html,
    }
    try:
        annotate_log(False, summary_log, opts, annotator, suite_log_dir=state.log_dir)
        os.replace(tmp_html, html_path(summary_log))
    except (ReportError, OSError) as exc:
        logger.warning("Intermediate annotation of %s failed: %s", summary_log, exc)
        return False
    return True


def annotate_final_summary_log(
    state: RunState, summary: Severity, annotator: Annotator
) -> Path | None:
    """Render the finished summary log; raises :class:`ReportError` on failure."""
    if (
        state.is_enumeration
        or state.summary_log is None
        or not _html_enabled(state, summary)
    ):
        return None
    opts = {"case_prefix": state.case_prefix, "html": state.html}
    html_file = annotate_log(False, Path(state.summary_log), opts, annotator)
    if not state.silent:
        print(f"\nfile://{html_path(Path(state.summary_log))}")
    return html_file
