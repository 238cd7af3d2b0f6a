"""Writes the suite configuration log next to the summary log."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Iterable

import yaml

from lx_runner.services.paths import SUITE_CONFIG_LOG

ConfigData = list[tuple[str, Any]]


def _plain(value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        return [_plain(item) for item in value]
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    return str(value)


def write_config_log(summary_log: Path, config_data: Iterable[tuple[str, Any]]) -> Path:
    """Dump ``config_data`` as YAML into the suite config log."""
    config_log = summary_log.parent / SUITE_CONFIG_LOG
    payload = {str(key): _plain(value) for key, value in config_data}
    config_log.parent.mkdir(parents=True, exist_ok=True)
    with config_log.open("w", encoding="utf-8") as handle:
        yaml.safe_dump(payload, handle, sort_keys=False, default_flow_style=False)
    return config_log

