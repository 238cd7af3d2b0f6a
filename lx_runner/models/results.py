"""Outcome, warning and collaborator result types."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal, Sequence, Union

from lx_runner.models.severity import Severity


@dataclass(frozen=True)
class SuiteWarning:
    """A warning raised while parsing or running a script."""

    file: str
    lineno: str
    details: str

    def to_dict(self) -> dict[str, Any]:
        return {"file": self.file, "lineno": self.lineno, "details": self.details}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SuiteWarning":
        return cls(
            file=str(data.get("file", "")),
            lineno=str(data.get("lineno", "0")),
            details=str(data.get("details", "")),
        )


@dataclass(frozen=True)
class ScriptOutcome:
    """Recorded result of one script. Immutable once appended."""

    severity: Severity
    script: str
    lineno: str = "0"
    details: str = ""
    case_log_dir: str | None = None
    events: tuple[Any, ...] = ()
    warnings: tuple[SuiteWarning, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "result": self.severity.value,
            "script": self.script,
            "lineno": self.lineno,
            "details": self.details,
            "case_log_dir": self.case_log_dir,
            "warnings": [w.to_dict() for w in self.warnings],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ScriptOutcome":
        return cls(
            severity=Severity(data["result"]),
            script=str(data["script"]),
            lineno=str(data.get("lineno", "0")),
            details=str(data.get("details") or ""),
            case_log_dir=data.get("case_log_dir"),
            warnings=tuple(SuiteWarning.from_dict(w) for w in data.get("warnings", [])),
        )


# --- Parser collaborator results ------------------------------------------


@dataclass(frozen=True)
class CmdPos:
    """One frame of an error stack."""

    file: str
    lineno: int


@dataclass(frozen=True)
class Command:
    """A parsed command; ``children`` holds commands of macros/includes."""

    type: str
    lineno: int = 0
    arg: Any = None
    children: tuple["Command", ...] = ()


@dataclass(frozen=True)
class ParseOk:
    script: Path
    commands: Sequence[Command]
    file_opts: Sequence[tuple[str, Any]] = ()
    warnings: tuple[SuiteWarning, ...] = ()


@dataclass(frozen=True)
class ParseSkip:
    """The script asked to be skipped; stack is innermost first."""

    error_stack: Sequence[CmdPos]
    reason: str


@dataclass(frozen=True)
class ParseFailure:
    error_stack: Sequence[CmdPos]
    message: str


ParseResult = Union[ParseOk, ParseSkip, ParseFailure]


# --- Interpreter collaborator results -------------------------------------

SUITE_TIMEOUT = "suite_timeout"


@dataclass(frozen=True)
class CaseCompleted:
    severity: Severity
    full_lineno: str
    case_log_dir: str
    warnings: tuple[SuiteWarning, ...] = ()
    events: tuple[Any, ...] = ()
    details: str = ""
    opaque: Any = None


@dataclass(frozen=True)
class CaseAborted:
    """The interpreter gave up on the script; ``details`` says why."""

    main_file: str
    full_lineno: str
    case_log_dir: str
    warnings: tuple[SuiteWarning, ...] = ()
    details: str = ""

    @property
    def suite_timeout(self) -> bool:
        return self.details == SUITE_TIMEOUT


CaseResult = Union[CaseCompleted, CaseAborted]


# --- Run entry point results ----------------------------------------------


@dataclass(frozen=True)
class SuiteResult:
    summary: Severity
    summary_log: str | None
    results: tuple[ScriptOutcome, ...] = ()
    suite_timeout: bool = False
    status: Literal["ok"] = "ok"


@dataclass(frozen=True)
class SuiteError:
    path: str | None
    message: str
    kind: Literal["file_error", "no_input"] = "file_error"
    status: Literal["error"] = "error"


RunOutcome = Union[SuiteResult, SuiteError]


@dataclass(frozen=True)
class SummaryGroup:
    """A group of persisted case records as read back from a summary log."""

    name: str
    cases: tuple[dict[str, Any], ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class ParsedSummary:
    summary: Severity
    groups: tuple[SummaryGroup, ...]
    warnings: tuple[SuiteWarning, ...] = ()
