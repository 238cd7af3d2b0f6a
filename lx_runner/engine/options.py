"""Splits the flat run options into suite options and user arguments."""

from __future__ import annotations

from typing import Any, Iterable

from pydantic import ValidationError

from lx_common.errors import IllegalArgumentError, UnknownKeyError
from lx_runner.models.args import ArgDict, opts_to_args, validate_value
from lx_runner.models.config import (
    SHARED_OPTION_NAMES,
    SUITE_OPTION_NAMES,
    SuiteOptions,
)
from lx_runner.models.state import RunState


def split_run_options(
    opts: Iterable[tuple[str, Any]],
) -> tuple[dict[str, Any], list[tuple[str, Any]]]:
    """Return ``(suite_fields, user_opts)`` keeping option order."""
    suite_fields: dict[str, Any] = {}
    user_opts: list[tuple[str, Any]] = []
    for name, value in opts:
        if name in SUITE_OPTION_NAMES:
            if name == "tap":
                suite_fields.setdefault("tap", []).append(value)
            else:
                suite_fields[name] = value
            if name in SHARED_OPTION_NAMES:
                user_opts.append((name, value))
        else:
            user_opts.append((name, value))
    return suite_fields, user_opts


def _validated_user_args(user_opts: list[tuple[str, Any]]) -> ArgDict:
    checked: list[tuple[str, Any]] = []
    for name, value in user_opts:
        try:
            checked.append((name, validate_value(name, value)))
        except (UnknownKeyError, ValueError) as exc:
            raise IllegalArgumentError(name, value) from exc
    return opts_to_args(checked)


def _first_error_field(exc: ValidationError, fields: dict[str, Any]) -> tuple[str, Any]:
    for error in exc.errors():
        loc = error.get("loc") or ()
        if loc:
            name = str(loc[0])
            return name, fields.get(name, error.get("input"))
    name = next(iter(fields), "options")
    return name, fields.get(name)


def parse_run_options(opts: Iterable[tuple[str, Any]], state: RunState) -> RunState:
    """Validate run options and apply them to ``state``.

    Raises :class:`IllegalArgumentError` for unknown names or bad values.
    """
    suite_fields, user_opts = split_run_options(opts)
    try:
        options = SuiteOptions.model_validate(suite_fields)
    except ValidationError as exc:
        name, value = _first_error_field(exc, suite_fields)
        raise IllegalArgumentError(name, value) from exc
    user_args = _validated_user_args(user_opts)
    return state.with_options(options, user_args)
