"""Layered configuration arguments with per-key merge semantics.

Arguments exist in two encodings:

* the *args* form, a mapping ``key -> value`` where list-typed keys hold a
  list of every value collected so far, and
* the *opts* form, a flat list of ``(key, value)`` pairs as read from the
  command line, config files or handed to the script parser.

Every key must be registered in :data:`ARG_SPECS`; the registry decides
whether a repeated key replaces, appends or resets the collected values.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Iterable, Mapping, Sequence

from lx_common.errors import UnknownKeyError
from lx_runner.models.severity import THRESHOLD_SEVERITIES, Severity

INFINITY = "infinity"

Opts = list[tuple[str, Any]]
ArgDict = dict[str, Any]


class MergePolicy(str, Enum):
    """How repeated writes of a key combine."""

    SINGLE = "single"
    STD_LIST = "std_list"
    RESET_LIST = "reset_list"


class MergeOper(str, Enum):
    REPLACE = "replace"
    APPEND = "append"
    RESET = "reset"


class ArgStyle(str, Enum):
    """Flattening style used by :func:`args_to_opts`."""

    CASE = "case"
    SUITE = "suite"


# --- Value domains ---------------------------------------------------------


def _as_string(value: Any) -> str:
    if isinstance(value, (str, int, float)) and not isinstance(value, bool):
        return str(value)
    raise ValueError(f"expected a string, got {value!r}")


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in {"true", "false"}:
        return value.strip().lower() == "true"
    raise ValueError(f"expected true or false, got {value!r}")


def _enum_domain(choices: Iterable[str]) -> Callable[[Any], str]:
    allowed = tuple(choices)

    def coerce(value: Any) -> str:
        text = value.value if isinstance(value, Enum) else value
        if isinstance(text, str) and text in allowed:
            return text
        raise ValueError(f"expected one of {', '.join(allowed)}, got {value!r}")

    return coerce


def _integer_domain(minimum: int, allow_infinity: bool) -> Callable[[Any], int | str]:
    def coerce(value: Any) -> int | str:
        if allow_infinity and (value == INFINITY or value == math.inf):
            return INFINITY
        if isinstance(value, bool):
            raise ValueError(f"expected an integer, got {value!r}")
        try:
            number = int(value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"expected an integer, got {value!r}") from exc
        if number < minimum:
            raise ValueError(f"expected an integer >= {minimum}, got {number}")
        return number

    return coerce


def _any(value: Any) -> Any:
    return value


MODES = ("list", "list_dir", "doc", "validate", "execute")
PROGRESS_LEVELS = ("silent", "summary", "brief", "doc", "compact", "verbose", "debug")


@dataclass(frozen=True)
class ArgSpec:
    """Type descriptor for one configuration key."""

    name: str
    merge: MergePolicy
    coerce: Callable[[Any], Any]
    case: bool = False

    def validate(self, value: Any) -> Any:
        return self.coerce(value)


def _spec(
    name: str,
    coerce: Callable[[Any], Any],
    merge: MergePolicy = MergePolicy.SINGLE,
    case: bool = False,
) -> ArgSpec:
    return ArgSpec(name=name, merge=merge, coerce=coerce, case=case)


_threshold = _enum_domain(sev.value for sev in THRESHOLD_SEVERITIES)
_html_threshold = _enum_domain(
    [Severity.VALIDATE.value] + [sev.value for sev in THRESHOLD_SEVERITIES]
)
_timeout = _integer_domain(0, allow_infinity=True)

_SUITE_SPECS = [
    _spec("rerun", _threshold),
    _spec("html", _html_threshold),
    _spec("skip_unstable", _as_bool),
    _spec("skip_skip", _as_bool),
    _spec("junit", _as_bool),
    _spec("extend_run", _as_bool),
    _spec("mode", _enum_domain(MODES)),
    _spec("doc", _timeout),
    _spec("config_name", _as_string),
    _spec("suite", _as_string),
    _spec("run", _as_string),
    _spec("revision", _as_string),
    _spec("hostname", _as_string),
    _spec("file_pattern", _as_string),
    _spec("tap", _as_string, MergePolicy.STD_LIST),
]

_CASE_SPECS = [
    _spec("debug", _as_bool, case=True),
    _spec("skip", _as_string, MergePolicy.STD_LIST, case=True),
    _spec("skip_unless", _as_string, MergePolicy.STD_LIST, case=True),
    _spec("unstable", _as_string, MergePolicy.STD_LIST, case=True),
    _spec("unstable_unless", _as_string, MergePolicy.STD_LIST, case=True),
    _spec("require", _as_string, MergePolicy.STD_LIST, case=True),
    _spec("var", _as_string, MergePolicy.RESET_LIST, case=True),
    _spec("shell_args", _as_string, MergePolicy.RESET_LIST, case=True),
    _spec("config_dir", _as_string, case=True),
    _spec("case_prefix", _as_string, case=True),
    _spec("log_dir", _as_string, case=True),
    _spec("shell_cmd", _as_string, case=True),
    _spec("shell_prompt_cmd", _as_string, case=True),
    _spec("shell_prompt_regexp", _as_string, case=True),
    _spec("shell_wrapper", _as_string, case=True),
    _spec("post_cleanup_cmd", _as_string, case=True),
    _spec("progress", _enum_domain(PROGRESS_LEVELS), case=True),
    _spec("timeout", _timeout, case=True),
    _spec("cleanup_timeout", _timeout, case=True),
    _spec("case_timeout", _timeout, case=True),
    _spec("suite_timeout", _timeout, case=True),
    _spec("flush_timeout", _timeout, case=True),
    _spec("poll_timeout", _timeout, case=True),
    _spec("risky_threshold", _timeout, case=True),
    _spec("sleep_threshold", _timeout, case=True),
    _spec("multiplier", _integer_domain(0, allow_infinity=False), case=True),
    _spec("fail_when_warning", _as_bool, case=True),
    # Injected by the run loop, never read from user input.
    _spec("log_fun", _any, case=True),
    _spec("log_fd", _any, case=True),
    _spec("suite_stop_token", _any, case=True),
]

ARG_SPECS: Mapping[str, ArgSpec] = {spec.name: spec for spec in _SUITE_SPECS + _CASE_SPECS}


def arg_spec(key: str) -> ArgSpec:
    """Return the type descriptor for ``key`` or raise :class:`UnknownKeyError`."""
    spec = ARG_SPECS.get(key)
    if spec is None:
        raise UnknownKeyError(key)
    return spec


def is_case_key(key: str) -> bool:
    spec = ARG_SPECS.get(key)
    return bool(spec and spec.case)


def validate_value(key: str, value: Any) -> Any:
    """Coerce ``value`` into the domain of ``key``; raises ValueError."""
    return arg_spec(key).validate(value)


# --- Merging ---------------------------------------------------------------


def merge_oper(key: str, updated: set[str] | frozenset[str]) -> MergeOper:
    """Decide how a write of ``key`` combines with what was collected."""
    policy = arg_spec(key).merge
    if policy is MergePolicy.STD_LIST:
        return MergeOper.APPEND
    if policy is MergePolicy.RESET_LIST:
        return MergeOper.APPEND if key in updated else MergeOper.RESET
    return MergeOper.REPLACE


def is_multi(key: str) -> bool:
    return arg_spec(key).merge is not MergePolicy.SINGLE


def merge_value(key: str, value: Any, acc: ArgDict, updated: set[str]) -> ArgDict:
    """Write one value into the grouped ``acc`` and record it in ``updated``.

    Returns a new mapping; ``acc`` is left untouched.
    """
    oper = merge_oper(key, updated)
    updated.add(key)
    merged = dict(acc)
    if oper is MergeOper.APPEND:
        merged[key] = list(acc.get(key, [])) + [value]
    elif oper is MergeOper.RESET:
        merged.pop(key, None)
        merged[key] = [value]
    else:
        merged[key] = value
    return merged


def opts_to_args(opts: Iterable[tuple[str, Any]], acc: Mapping[str, Any] | None = None) -> ArgDict:
    """Fold flat pairs into grouped form; one call is one resolution pass."""
    result: ArgDict = dict(acc or {})
    updated: set[str] = set()
    for key, value in opts:
        result = merge_value(key, value, result, updated)
    return result


def args_to_opts(args: Mapping[str, Any], style: ArgStyle = ArgStyle.CASE) -> Opts:
    """Flatten grouped args into pairs, preserving multiplicity of lists."""
    opts: Opts = []
    for key, value in args.items():
        multi = is_multi(key)
        if style is ArgStyle.SUITE and isinstance(value, list) and not value:
            continue
        if multi:
            opts.extend((key, item) for item in value)
        elif style is ArgStyle.SUITE and isinstance(value, list):
            opts.append((key, value[-1]))
        else:
            opts.append((key, value))
    return opts


# --- Layered dictionaries --------------------------------------------------


@dataclass(frozen=True)
class ArgDicts:
    """The five argument layers, highest precedence first when ordered."""

    internal: ArgDict = field(default_factory=dict)
    user: ArgDict = field(default_factory=dict)
    file: ArgDict = field(default_factory=dict)
    config: ArgDict = field(default_factory=dict)
    default: ArgDict = field(default_factory=dict)

    def ordered(self) -> tuple[ArgDict, ...]:
        return (self.internal, self.user, self.file, self.config, self.default)

    def evolve(self, **changes: ArgDict) -> "ArgDicts":
        return replace(self, **changes)


def pick_val(key: str, dicts: ArgDicts | Sequence[Mapping[str, Any]], default: Any = None) -> Any:
    """Return the value of ``key`` from the first layer that has it."""
    arg_spec(key)
    layers = dicts.ordered() if isinstance(dicts, ArgDicts) else dicts
    for layer in layers:
        if key in layer:
            return layer[key]
    return default


resolve = pick_val


def case_config_args(dicts: ArgDicts) -> Opts:
    """Flat case-typed pairs of every layer, lowest precedence first."""
    pairs: Opts = []
    for layer in reversed(dicts.ordered()):
        case_args = {key: val for key, val in layer.items() if is_case_key(key)}
        pairs.extend(args_to_opts(case_args, ArgStyle.CASE))
    return pairs


def merge_case_opts(dicts: ArgDicts) -> Opts:
    """Resolve all layers into the flat per-case option list.

    Layers are folded from lowest to highest precedence, each in its own
    resolution pass, so a higher layer replaces single values and resets
    ``reset_list`` keys while ``std_list`` keys keep accumulating.
    """
    merged: ArgDict = {}
    for layer in reversed(dicts.ordered()):
        merged = opts_to_args(args_to_opts(layer, ArgStyle.CASE), merged)
    return args_to_opts(merged, ArgStyle.CASE)
