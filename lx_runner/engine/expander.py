"""Expands input paths into the ordered list of scripts to process."""

from __future__ import annotations

import errno
import logging
import os
import re
from dataclasses import dataclass
from typing import Iterable

from lx_runner.models.state import RunState
from lx_runner.services.paths import drop_prefix

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SuiteCase:
    """One expanded entry: a script, or a placeholder for an unreadable input."""

    suite_file: str
    script: str | None
    display: str
    error: str | None = None

    @property
    def width(self) -> int:
        return len(self.display)


def prefixed_rel_script(state: RunState, script: str) -> str:
    return state.case_prefix + drop_prefix(script)


def list_files(path: str, file_pattern: str) -> list[str]:
    """Scripts below ``path`` whose base name matches, sorted; or ``[path]``.

    Raises OSError when ``path`` cannot be read.
    """
    if os.path.isdir(path):
        regexp = re.compile(file_pattern)
        found: list[str] = []
        for root, dirs, files in os.walk(path, onerror=_raise):
            dirs.sort()
            for name in files:
                full = os.path.join(root, name)
                if regexp.search(name) and os.path.isfile(full):
                    found.append(full)
        return sorted(found)
    if os.path.exists(path):
        return [path]
    raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), path)


def _raise(exc: OSError) -> None:
    raise exc


def format_reason(exc: OSError) -> str:
    return exc.strerror or str(exc)


def expand_suite(state: RunState, inputs: Iterable[str]) -> tuple[list[SuiteCase], int]:
    """Return the expanded cases and the widest display path."""
    cases: list[SuiteCase] = []
    seen: set[str] = set()
    max_width = 0
    for suite_file in inputs:
        try:
            scripts = list_files(suite_file, state.file_pattern)
        except OSError as exc:
            reason = format_reason(exc)
            logger.debug("Cannot expand %s: %s", suite_file, reason)
            case = SuiteCase(
                suite_file=suite_file,
                script=None,
                display=prefixed_rel_script(state, suite_file),
                error=reason,
            )
            cases.append(case)
            max_width = max(max_width, case.width)
            continue
        for script in scripts:
            if script in seen:
                continue
            seen.add(script)
            case = SuiteCase(
                suite_file=suite_file,
                script=script,
                display=prefixed_rel_script(state, script),
            )
            cases.append(case)
            max_width = max(max_width, case.width)
    return cases, max_width
