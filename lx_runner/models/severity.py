"""Severity lattice used to fold script outcomes into a suite verdict."""

from __future__ import annotations

from enum import Enum
from functools import reduce
from typing import Iterable


class Severity(str, Enum):
    """Outcome classification, ordered from best to worst.

    ``ENABLE``, ``DISABLE`` and ``VALIDATE`` are thresholds only; they never
    describe a script outcome.
    """

    ENABLE = "enable"
    VALIDATE = "validate"
    SUCCESS = "success"
    SKIP = "skip"
    WARNING = "warning"
    FAIL = "fail"
    ERROR = "error"
    DISABLE = "disable"

    @property
    def priority(self) -> int:
        return _PRIORITY[self]

    def __str__(self) -> str:
        return self.value


_PRIORITY = {
    Severity.ENABLE: 0,
    Severity.VALIDATE: 0,
    Severity.SUCCESS: 1,
    Severity.SKIP: 2,
    Severity.WARNING: 3,
    Severity.FAIL: 4,
    Severity.ERROR: 5,
    Severity.DISABLE: 6,
}

OUTCOME_SEVERITIES = (
    Severity.SUCCESS,
    Severity.SKIP,
    Severity.WARNING,
    Severity.FAIL,
    Severity.ERROR,
)

THRESHOLD_SEVERITIES = (
    Severity.ENABLE,
    *OUTCOME_SEVERITIES,
    Severity.DISABLE,
)


def priority(severity: Severity | str) -> int:
    return Severity(severity).priority


def merge(a: Severity | str, b: Severity | str) -> Severity:
    """Return the worse of two severities."""
    first, second = Severity(a), Severity(b)
    if second.priority > first.priority:
        return second
    return first


def merge_all(
    severities: Iterable[Severity | str], initial: Severity = Severity.SUCCESS
) -> Severity:
    return reduce(merge, severities, Severity(initial))


def meets(severity: Severity | str, threshold: Severity | str) -> bool:
    """True when ``severity`` is at least as bad as ``threshold``."""
    return priority(severity) >= priority(threshold)


def finalize_verdict(summary: Severity, result_count: int, mode: str) -> Severity:
    """An empty suite is suspicious: outside validate mode it is a warning."""
    if result_count == 0 and mode != "validate":
        return merge(summary, Severity.WARNING)
    return summary
