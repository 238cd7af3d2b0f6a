"""Helpers for suite log layout and display paths."""

from __future__ import annotations

import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Sequence

from lx_runner.models.results import CmdPos

SUITE_SUMMARY_LOG = "lx_summary.log"
SUITE_CONFIG_LOG = "lx_config.log"
CASE_EVENT_LOG = ".event.log"
CASE_TAP_LOG = "lx.tap"
LATEST_RUN_LINK = "latest_run"


def generate_run_id() -> str:
    """Generate a timestamp-based run identifier."""
    return datetime.now(timezone.utc).strftime("run_%Y%m%d-%H%M%S-%f")


def now_to_string(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp).strftime("%Y-%m-%d %H:%M:%S")


def normalize_filename(path: str | Path) -> str:
    """Absolute path with ``.``/``..`` collapsed, symlinks kept."""
    return os.path.normpath(os.path.abspath(os.fspath(path)))


def drop_prefix(path: str | Path, root: str | Path | None = None) -> str:
    """Return ``path`` relative to ``root`` (default cwd) when it lies below it."""
    text = os.fspath(path)
    base = os.fspath(root) if root is not None else os.getcwd()
    if not os.path.isabs(text):
        return text
    try:
        rel = os.path.relpath(text, base)
    except ValueError:
        return text
    if rel == os.curdir:
        return text
    if rel == os.pardir or rel.startswith(os.pardir + os.sep):
        return text
    return rel


def pretty_filename(path: str | Path) -> str:
    return drop_prefix(normalize_filename(path))


def pretty_full_lineno(stack: Sequence[CmdPos]) -> str:
    """Colon-joined line numbers from the top-level script inwards."""
    if not stack:
        return "0"
    return ":".join(str(pos.lineno) for pos in reversed(stack))


def event_log_path(case_log_dir: str | Path, script: str | Path) -> Path:
    return Path(case_log_dir) / (Path(script).name + CASE_EVENT_LOG)


def find_suite_log_dir(directory: Path, default: Path) -> Path:
    """Walk up from ``directory`` until a suite config log is found."""
    current = directory
    while True:
        if (current / SUITE_CONFIG_LOG).is_file():
            return current
        parent = current.parent
        if parent == current:
            return default
        current = parent
