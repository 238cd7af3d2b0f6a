"""Append-only suite summary log.

The summary log is a JSON-lines file. Each line is a record with a
``kind``:

``config``   configuration snapshot written when the log is created
``case``     a script is about to be processed
``log``      free text also echoed on the console
``results``  the full outcome list so far, appended after every script

The last ``results`` record is authoritative when a log is read back.
"""

from __future__ import annotations

import json
import logging
import os
import time
from collections import OrderedDict
from pathlib import Path
from typing import IO, Any, Iterable

from lx_common.errors import SummaryLogError
from lx_runner.models.results import (
    ParsedSummary,
    ScriptOutcome,
    SuiteWarning,
    SummaryGroup,
)
from lx_runner.models.severity import Severity

logger = logging.getLogger(__name__)


class SummaryLogWriter:
    """Singly-owned handle on an open summary log."""

    def __init__(self, path: Path, handle: IO[str]) -> None:
        self.path = path
        self._handle: IO[str] | None = handle

    @property
    def closed(self) -> bool:
        return self._handle is None

    def write_record(self, kind: str, **payload: Any) -> None:
        if self._handle is None:
            raise SummaryLogError(str(self.path), f"Summary log {self.path} is closed")
        record = {"kind": kind, "time": time.time(), **payload}
        self._handle.write(json.dumps(record, default=str) + "\n")
        self._handle.flush()

    def safe_write(self, text: str) -> str:
        """Append a text record; write errors are logged, not raised."""
        try:
            self.write_record("log", text=text)
        except (OSError, SummaryLogError) as exc:
            logger.warning("Failed to write summary log %s: %s", self.path, exc)
        return text

    def double_write(self, progress: str, text: str) -> str:
        """Write ``text`` to the log and echo it unless progress is silent."""
        self.safe_write(text)
        if progress != "silent":
            print(text, end="", flush=True)
        return text

    def write_results(
        self,
        summary: Severity,
        results: Iterable[ScriptOutcome],
        warnings: Iterable[SuiteWarning],
    ) -> None:
        self.write_record(
            "results",
            summary=Severity(summary).value,
            groups=group_results(results),
            warnings=[w.to_dict() for w in warnings],
        )

    def sync(self) -> None:
        """Flush buffered data to disk before the log is read elsewhere."""
        if self._handle is None:
            return
        self._handle.flush()
        os.fsync(self._handle.fileno())

    def close(self) -> None:
        if self._handle is None:
            return
        try:
            self._handle.close()
        finally:
            self._handle = None

    def __enter__(self) -> "SummaryLogWriter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def open_summary_log(path: Path, extend_run: bool) -> tuple[bool, SummaryLogWriter]:
    """Open the summary log; ``exists`` tells whether an old log is extended."""
    exists = extend_run and path.is_file()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        handle = path.open("a" if exists else "w", encoding="utf-8")
    except OSError as exc:
        reason = exc.strerror or str(exc)
        raise SummaryLogError(
            str(path),
            f"ERROR: Failed to open logfile: {path} -> {reason}\n",
            cause=exc,
        ) from exc
    logger.debug("Opened summary log %s (extend=%s)", path, exists)
    return exists, SummaryLogWriter(path, handle)


def group_results(results: Iterable[ScriptOutcome]) -> list[dict[str, Any]]:
    """Group outcome records by the directory of their script."""
    groups: "OrderedDict[str, list[dict[str, Any]]]" = OrderedDict()
    for outcome in results:
        name = os.path.dirname(outcome.script) or "."
        groups.setdefault(name, []).append(outcome.to_dict())
    return [{"name": name, "cases": cases} for name, cases in groups.items()]


class JsonSummaryLogParser:
    """Reads the last ``results`` record of a summary log."""

    def parse(self, path: Path) -> ParsedSummary:
        try:
            lines = path.read_text(encoding="utf-8").splitlines()
        except OSError as exc:
            raise SummaryLogError(
                str(path), f"{path}: {exc.strerror or exc}", cause=exc
            ) from exc
        latest: dict[str, Any] | None = None
        for lineno, line in enumerate(lines, start=1):
            if not line.strip():
                continue
            try:
                record = json.loads(line)
            except json.JSONDecodeError as exc:
                raise SummaryLogError(
                    str(path), f"{path}:{lineno}: malformed record", cause=exc
                ) from exc
            if record.get("kind") == "results":
                latest = record
        if latest is None:
            raise SummaryLogError(str(path), f"{path}: no results recorded")
        try:
            groups = tuple(
                SummaryGroup(name=str(group["name"]), cases=tuple(group["cases"]))
                for group in latest.get("groups", [])
            )
            return ParsedSummary(
                summary=Severity(latest.get("summary", Severity.SUCCESS.value)),
                groups=groups,
                warnings=tuple(
                    SuiteWarning.from_dict(w) for w in latest.get("warnings", [])
                ),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise SummaryLogError(
                str(path), f"{path}: malformed results record", cause=exc
            ) from exc
