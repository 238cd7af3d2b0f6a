"""Runner facade for lx-suite components."""

from lx_runner.api import SuiteRunner, annotate_log, run
from lx_runner.models.results import (
    CaseAborted,
    CaseCompleted,
    CmdPos,
    Command,
    ParseFailure,
    ParseOk,
    ParseSkip,
    ScriptOutcome,
    SuiteError,
    SuiteResult,
    SuiteWarning,
)
from lx_runner.models.severity import Severity
from lx_runner.version import __version__

__all__ = [
    "CaseAborted",
    "CaseCompleted",
    "CmdPos",
    "Command",
    "ParseFailure",
    "ParseOk",
    "ParseSkip",
    "ScriptOutcome",
    "Severity",
    "SuiteError",
    "SuiteResult",
    "SuiteRunner",
    "SuiteWarning",
    "annotate_log",
    "run",
    "__version__",
]
