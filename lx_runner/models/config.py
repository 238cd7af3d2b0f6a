"""Suite option models (validated run-level configuration)."""

from __future__ import annotations

import platform
import re
from pathlib import Path
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

Mode = Literal["list", "list_dir", "doc", "validate", "execute"]
Threshold = Literal["enable", "success", "skip", "warning", "fail", "error", "disable"]
HtmlThreshold = Literal[
    "validate", "enable", "success", "skip", "warning", "fail", "error", "disable"
]
Progress = Literal["silent", "summary", "brief", "doc", "compact", "verbose", "debug"]

DEFAULT_FILE_PATTERN = r"^[^.].*\.lux$"

# Options consumed by the orchestrator itself; everything else is a user arg.
SUITE_OPTION_NAMES = frozenset(
    {
        "file_pattern",
        "case_prefix",
        "progress",
        "config_dir",
        "start_time",
        "log_dir",
        "config_name",
        "suite",
        "run",
        "extend_run",
        "revision",
        "hostname",
        "skip_unstable",
        "skip_skip",
        "mode",
        "rerun",
        "html",
        "tap",
        "junit",
    }
)

# Suite options that are also forwarded to the scripts as user args.
SHARED_OPTION_NAMES = frozenset({"case_prefix", "progress"})


class SuiteOptions(BaseModel):
    """Run-level options of one suite invocation."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    mode: Mode = Field(default="execute", description="What to do with each script")
    rerun: Threshold = Field(default="disable", description="Rerun scripts at least this bad")
    html: HtmlThreshold = Field(default="enable", description="Annotate logs at least this bad")
    progress: Progress = Field(default="brief", description="Console verbosity")
    file_pattern: str = Field(default=DEFAULT_FILE_PATTERN, description="Regexp matched against script base names")
    case_prefix: str = Field(default="", description="Display prefix for script paths")
    config_dir: Optional[Path] = Field(default=None, description="Directory holding config files")
    config_name: Optional[str] = Field(default=None, description="Config file name without extension")
    log_dir: Path = Field(default=Path("lx_logs/latest"), description="Suite log directory")
    start_time: Optional[float] = Field(default=None, description="Suite start as epoch seconds")
    suite: str = Field(default="", description="Free-form suite name")
    run: str = Field(default="", description="Free-form run name")
    revision: str = Field(default="", description="Revision of the system under test")
    hostname: str = Field(default_factory=platform.node, description="Host name used to pick a config file")
    extend_run: bool = Field(default=False, description="Append to an existing summary log")
    skip_unstable: bool = Field(default=False, description="Skip scripts marked unstable")
    skip_skip: bool = Field(default=False, description="Run scripts even if they ask to be skipped")
    junit: bool = Field(default=False, description="Write a JUnit report at the end")
    tap: List[str] = Field(default_factory=list, description="Extra TAP stream targets")

    @field_validator("file_pattern")
    @classmethod
    def _validate_pattern(cls, value: str) -> str:
        try:
            re.compile(value)
        except re.error as exc:
            raise ValueError(f"invalid regular expression: {exc}") from exc
        return value

