from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import Any, List, Optional

import typer

from lx_common.api import configure_logging
from lx_common.discovery.entrypoints import load_backend
from lx_runner.api import run as run_suite
from lx_runner.models.results import RunOutcome, SuiteError
from lx_runner.models.severity import Severity, meets
from lx_runner.services.paths import LATEST_RUN_LINK, generate_run_id

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_INPUT_ERROR = 2

DEFAULT_LOG_ROOT = Path("lx_logs")


def build_run_opts(**values: Any) -> list[tuple[str, Any]]:
    """Flatten CLI values into run options, skipping unset ones.

    List values become repeated pairs in the order given.
    """
    opts: list[tuple[str, Any]] = []
    for name, value in values.items():
        if value is None:
            continue
        if isinstance(value, list):
            opts.extend((name, item) for item in value)
        else:
            opts.append((name, value))
    return opts


def previous_log_dir(log_root: Path) -> Optional[str]:
    latest = log_root / LATEST_RUN_LINK
    if latest.exists():
        return str(latest.resolve())
    return None


def resolve_log_dir(log_root: Path, log_dir: Optional[Path], extend_run: bool) -> Path:
    """Explicit dir, the latest run when extending, else a fresh run dir."""
    if log_dir is not None:
        return log_dir
    if extend_run:
        prev = previous_log_dir(log_root)
        if prev is not None:
            return Path(prev)
    return log_root / generate_run_id()


def update_latest_link(log_root: Path, log_dir: Path) -> None:
    link = log_root / LATEST_RUN_LINK
    target = os.path.relpath(log_dir.resolve(), log_root.resolve())
    try:
        if link.is_symlink() or link.exists():
            link.unlink()
        link.symlink_to(target, target_is_directory=True)
    except OSError as exc:
        logger.warning("Could not update %s: %s", link, exc)


def exit_code(outcome: RunOutcome) -> int:
    if isinstance(outcome, SuiteError):
        return EXIT_INPUT_ERROR
    if outcome.suite_timeout or meets(outcome.summary, Severity.FAIL):
        return EXIT_FAILED
    return EXIT_OK


def register_run_command(app: typer.Typer) -> None:
    """Register the ``run`` command on the given Typer app."""

    @app.command("run")
    def run(
        files: List[str] = typer.Argument(
            None,
            help="Scripts or directories to run; previous log dirs with --rerun.",
        ),
        mode: Optional[str] = typer.Option(
            None, "--mode", help="list, list_dir, doc, validate or execute."
        ),
        rerun: Optional[str] = typer.Option(
            None, "--rerun", help="Rerun scripts of a previous run at least this bad."
        ),
        html: Optional[str] = typer.Option(
            None, "--html", help="Annotate logs when the verdict is at least this bad."
        ),
        progress: Optional[str] = typer.Option(
            None, "--progress", help="Console verbosity (silent, summary, brief, ...)."
        ),
        log_root: Path = typer.Option(
            DEFAULT_LOG_ROOT, "--log-root", help="Directory holding one log dir per run."
        ),
        log_dir: Optional[Path] = typer.Option(
            None, "--log-dir", help="Log dir for this run; defaults to a fresh run dir."
        ),
        config_dir: Optional[Path] = typer.Option(
            None, "--config-dir", help="Directory holding .luxcfg files."
        ),
        config_name: Optional[str] = typer.Option(
            None, "--config-name", help="Config file name without extension."
        ),
        file_pattern: Optional[str] = typer.Option(
            None, "--file-pattern", help="Regexp matched against script base names."
        ),
        case_prefix: Optional[str] = typer.Option(
            None, "--case-prefix", help="Prefix shown before script paths."
        ),
        suite_timeout: Optional[str] = typer.Option(
            None, "--suite-timeout", help="Suite deadline in multiplier units, or infinity."
        ),
        timeout: Optional[str] = typer.Option(
            None, "--timeout", help="Default expect timeout, or infinity."
        ),
        multiplier: Optional[int] = typer.Option(
            None, "--multiplier", help="Milliseconds per timeout unit."
        ),
        var: List[str] = typer.Option(
            None, "--var", help="Script variable NAME=VALUE; repeatable."
        ),
        tap: List[str] = typer.Option(
            None, "--tap", help="Extra TAP target: stdout, stderr or a file; repeatable."
        ),
        junit: Optional[bool] = typer.Option(
            None, "--junit/--no-junit", help="Write a JUnit report at the end."
        ),
        extend_run: Optional[bool] = typer.Option(
            None, "--extend-run/--no-extend-run", help="Append to the latest run's logs."
        ),
        skip_unstable: Optional[bool] = typer.Option(
            None, "--skip-unstable/--no-skip-unstable", help="Skip unstable scripts."
        ),
        skip_skip: Optional[bool] = typer.Option(
            None, "--skip-skip/--no-skip-skip", help="Run scripts that ask to be skipped."
        ),
        doc: Optional[str] = typer.Option(
            None, "--doc", help="Max documentation depth in doc mode, or infinity."
        ),
        hostname: Optional[str] = typer.Option(
            None, "--hostname", help="Host name used to pick the config file."
        ),
        suite: Optional[str] = typer.Option(None, "--suite", help="Suite name."),
        run_name: Optional[str] = typer.Option(None, "--run", help="Run name."),
        revision: Optional[str] = typer.Option(
            None, "--revision", help="Revision of the system under test."
        ),
        backend: Optional[str] = typer.Option(
            None,
            "--backend",
            help="Backend entry-point name or module:attribute.",
        ),
        debug: bool = typer.Option(
            False, "--debug", help="Debug the scripts and enable debug logging."
        ),
    ) -> None:
        """Run a suite of scripts."""
        if debug:
            configure_logging(debug=True, force=True)
        try:
            suite_backend = load_backend(backend)
        except (LookupError, ImportError, AttributeError, ValueError) as exc:
            typer.echo(f"ERROR: cannot load backend: {exc}", err=True)
            raise typer.Exit(EXIT_INPUT_ERROR)

        files = list(files or [])
        effective_log_dir = resolve_log_dir(log_root, log_dir, bool(extend_run))
        opts = build_run_opts(
            mode=mode,
            rerun=rerun,
            html=html,
            progress=progress,
            log_dir=str(effective_log_dir),
            config_dir=str(config_dir) if config_dir else None,
            config_name=config_name,
            file_pattern=file_pattern,
            case_prefix=case_prefix,
            suite_timeout=suite_timeout,
            timeout=timeout,
            multiplier=multiplier,
            var=var or None,
            tap=tap or None,
            junit=junit,
            extend_run=extend_run,
            skip_unstable=skip_unstable,
            skip_skip=skip_skip,
            doc=doc,
            hostname=hostname,
            suite=suite,
            run=run_name,
            revision=revision,
            debug=True if debug else None,
        )
        logger.debug("Run options: %s", opts)
        outcome = run_suite(
            files,
            opts,
            previous_log_dir(log_root),
            ["lx"] + sys.argv[1:],
            backend=suite_backend,
        )
        if isinstance(outcome, SuiteError):
            typer.echo(outcome.message.rstrip("\n"), err=True)
        elif outcome.summary_log is not None and log_dir is None:
            update_latest_link(log_root, effective_log_dir)
        raise typer.Exit(exit_code(outcome))
