"""Diagnostics logging for lx-suite.

Everything goes through the stdlib root logger, rendered by structlog. The
suite progress and TAP stream own stdout, so diagnostics are written to
stderr and optionally mirrored into a file. Keyword arguments of
:func:`configure_logging` fall back to ``LX_LOG_LEVEL``, ``LX_LOG_JSON`` and
``LX_LOG_FILE``.
"""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass

import structlog

from lx_common.config.env import parse_bool_env

DEFAULT_LEVEL = logging.WARNING


@dataclass(frozen=True)
class LogSettings:
    level: int
    json: bool
    log_file: str | None


def level_from(value: str | int | None, *, debug: bool = False) -> int:
    """Map ``debug``, a level number or a level name to a logging level."""
    if debug:
        return logging.DEBUG
    if value is None or value == "":
        return DEFAULT_LEVEL
    if isinstance(value, int):
        return value
    if value.strip().isdigit():
        return int(value)
    return logging.getLevelNamesMapping().get(value.strip().upper(), DEFAULT_LEVEL)


def settings_from_env(
    level: str | int | None,
    debug: bool,
    log_file: str | None,
    json: bool | None,
) -> LogSettings:
    env = os.environ
    if json is None:
        json = bool(parse_bool_env(env.get("LX_LOG_JSON")))
    return LogSettings(
        level=level_from(level or env.get("LX_LOG_LEVEL"), debug=debug),
        json=json,
        log_file=env.get("LX_LOG_FILE") if log_file is None else log_file,
    )


def _pre_chain() -> list[structlog.types.Processor]:
    # shared by stdlib records and structlog events
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]


def _formatter(as_json: bool) -> logging.Formatter:
    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer()
        if as_json
        else structlog.dev.ConsoleRenderer(colors=False)
    )
    return structlog.stdlib.ProcessorFormatter(
        processor=renderer, foreign_pre_chain=_pre_chain()
    )


def _handlers(settings: LogSettings) -> list[logging.Handler]:
    formatter = _formatter(settings.json)
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if settings.log_file:
        handlers.append(logging.FileHandler(settings.log_file))
    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers


def _route_structlog() -> None:
    structlog.configure(
        processors=_pre_chain() + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def configure_logging(
    *,
    level: str | int | None = None,
    debug: bool = False,
    log_file: str | None = None,
    json: bool | None = None,
    force: bool = False,
) -> None:
    """Install the lx handlers on the root logger.

    A root logger that already has handlers is left alone unless ``force``
    is set; structlog is routed to it either way.
    """
    root = logging.getLogger()
    if force or not root.handlers:
        settings = settings_from_env(level, debug, log_file, json)
        for handler in list(root.handlers):
            root.removeHandler(handler)
        root.setLevel(settings.level)
        for handler in _handlers(settings):
            root.addHandler(handler)
    _route_structlog()
