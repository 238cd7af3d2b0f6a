"""Test Anything Protocol stream writer."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import IO, Iterable

from lx_common.errors import ReportError

logger = logging.getLogger(__name__)


class TapStream:
    """Writes the same TAP lines to one or more targets.

    Targets are file paths, ``stdout`` or ``stderr``.
    """

    def __init__(self, targets: Iterable[str]) -> None:
        self.targets = list(targets)
        self._handles: list[tuple[IO[str], bool]] = []
        self.closed = False

    @classmethod
    def open(cls, targets: Iterable[str]) -> "TapStream":
        stream = cls(targets)
        try:
            for target in stream.targets:
                stream._handles.append(_open_target(target))
        except OSError as exc:
            stream.close()
            raise ReportError(str(exc.filename or ""), f"Cannot open TAP log: {exc}", cause=exc) from exc
        return stream

    def _write(self, line: str) -> None:
        for handle, _owned in self._handles:
            handle.write(line + "\n")
            handle.flush()

    def plan(self, count: int, directive: str = "") -> None:
        suffix = f" # {directive}" if directive else ""
        self._write(f"1..{count}{suffix}")

    def diag(self, text: str) -> None:
        if text == "\n":
            self._write("#")
            return
        for line in text.rstrip("\n").split("\n"):
            self._write(f"# {line}" if line else "#")

    def test(self, ok: bool, description: str, directive: str = "", padding: int = 0) -> None:
        """One test line; ``description`` carries the aligned case number."""
        outcome = "ok" if ok else "not ok"
        line = f"{outcome}{description}"
        if directive:
            line += " " * max(padding, 0) + f" # {directive}"
        self._write(line)

    def bail_out(self, reason: str) -> None:
        self._write(f"Bail out! {reason}")

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        for handle, owned in self._handles:
            if owned:
                try:
                    handle.close()
                except OSError as exc:
                    logger.warning("Failed to close TAP target: %s", exc)
        self._handles.clear()


def _open_target(target: str) -> tuple[IO[str], bool]:
    if target == "stdout":
        return sys.stdout, False
    if target == "stderr":
        return sys.stderr, False
    path = Path(target)
    path.parent.mkdir(parents=True, exist_ok=True)
    return path.open("w", encoding="utf-8"), True
