"""The run state threaded through every step of a suite run."""

from __future__ import annotations

import time
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional

from lx_runner.models.args import ArgDicts, pick_val
from lx_runner.models.config import DEFAULT_FILE_PATTERN, SuiteOptions
from lx_runner.models.results import SuiteWarning
from lx_runner.models.severity import Severity

if TYPE_CHECKING:
    from lx_runner.engine.suite_timer import SuiteTimer
    from lx_runner.services.summary_log import SummaryLogWriter
    from lx_runner.services.tap import TapStream

ENUMERATION_MODES = frozenset({"list", "list_dir", "doc"})


@dataclass(frozen=True)
class RunState:
    """Immutable per-step run context; steps return ``state.evolve(...)``."""

    files: tuple[str, ...]
    orig_files: tuple[str, ...]
    orig_args: tuple[str, ...] = ()
    prev_log_dir: Optional[str] = None
    mode: str = "execute"
    log_dir: Path = Path("lx_logs/latest")
    summary_log: Optional[Path] = None
    log_fd: Optional["SummaryLogWriter"] = None
    rerun: Severity = Severity.DISABLE
    html: Severity = Severity.ENABLE
    progress: str = "brief"
    args: ArgDicts = field(default_factory=ArgDicts)
    warnings: tuple[SuiteWarning, ...] = ()
    start_time: float = field(default_factory=time.time)
    tap: Optional["TapStream"] = None
    tap_opts: tuple[str, ...] = ()
    suite_timer: Optional["SuiteTimer"] = None
    file_pattern: str = DEFAULT_FILE_PATTERN
    case_prefix: str = ""
    config_dir: Optional[Path] = None
    config_name: Optional[str] = None
    config_file: Optional[Path] = None
    suite: str = ""
    run: str = ""
    revision: str = ""
    hostname: str = ""
    extend_run: bool = False
    skip_unstable: bool = False
    skip_skip: bool = False
    junit: bool = False

    @classmethod
    def initial(
        cls,
        files: list[str] | tuple[str, ...],
        orig_args: list[str] | tuple[str, ...] = (),
        prev_log_dir: str | None = None,
    ) -> "RunState":
        return cls(
            files=tuple(files),
            orig_files=tuple(files),
            orig_args=tuple(orig_args),
            prev_log_dir=prev_log_dir,
        )

    def evolve(self, **changes: Any) -> "RunState":
        return replace(self, **changes)

    def with_options(self, options: SuiteOptions, user_args: dict[str, Any]) -> "RunState":
        """Apply validated suite options and the user argument layer."""
        return self.evolve(
            mode=options.mode,
            rerun=Severity(options.rerun),
            html=Severity(options.html),
            progress=options.progress,
            file_pattern=options.file_pattern,
            case_prefix=options.case_prefix,
            config_dir=options.config_dir,
            config_name=options.config_name,
            log_dir=options.log_dir,
            start_time=options.start_time if options.start_time is not None else self.start_time,
            suite=options.suite,
            run=options.run,
            revision=options.revision,
            hostname=options.hostname,
            extend_run=options.extend_run,
            skip_unstable=options.skip_unstable,
            skip_skip=options.skip_skip,
            junit=options.junit,
            tap_opts=tuple(options.tap),
            args=self.args.evolve(user=dict(user_args)),
        )

    @property
    def is_enumeration(self) -> bool:
        return self.mode in ENUMERATION_MODES

    @property
    def silent(self) -> bool:
        return self.progress == "silent"

    def pick_val(self, key: str, default: Any = None) -> Any:
        return pick_val(key, self.args, default)

    def add_warnings(self, warnings: tuple[SuiteWarning, ...] | list[SuiteWarning]) -> "RunState":
        return self.evolve(warnings=self.warnings + tuple(warnings))
