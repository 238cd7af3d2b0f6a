"""Loading of the built-in default config and the site/host config file."""

from __future__ import annotations

import logging
import os
import platform
import sys
from importlib import resources
from pathlib import Path

import yaml

from lx_common.errors import ConfigFileError, InputFileError, UnknownKeyError
from lx_runner.models.args import Opts, opts_to_args, validate_value
from lx_runner.models.results import SuiteWarning
from lx_runner.models.state import RunState
from lx_runner.services.config_log import ConfigData
from lx_runner.services.paths import normalize_filename, now_to_string
from lx_runner.version import __version__

logger = logging.getLogger(__name__)

CONFIG_EXT = ".luxcfg"
DEFAULT_CONFIG_BASE = "luxcfg"


def default_config_dir() -> Path:
    return Path(str(resources.files("lx_runner") / "data"))


def default_config_file() -> Path:
    return default_config_dir() / DEFAULT_CONFIG_BASE


def actual_config_name() -> str:
    """``<kernel>-<machine>``, e.g. ``Linux-x86_64``."""
    system = platform.system() or sys.platform
    machine = platform.machine()
    return f"{system}-{machine}" if machine else system


def parse_config_file(path: Path) -> tuple[Opts, list[SuiteWarning]]:
    """Read a YAML config file into flat opts.

    A missing file yields no options. ``config_dir`` is made absolute
    relative to the file and ``log_dir`` entries are dropped.
    """
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
    except FileNotFoundError:
        return [], []
    except OSError as exc:
        raise ConfigFileError(str(path), f"{path}: {exc.strerror or exc}\n", cause=exc) from exc
    except yaml.YAMLError as exc:
        raise ConfigFileError(str(path), f"{path}: Syntax error: {exc}\n", cause=exc) from exc

    if data is None:
        return [], []
    if not isinstance(data, dict):
        raise ConfigFileError(str(path), f"{path}: expected a mapping of config keys\n")

    opts: Opts = []
    warnings: list[SuiteWarning] = []
    for key, raw in data.items():
        if key == "log_dir":
            continue
        values = raw if isinstance(raw, list) else [raw]
        for value in values:
            try:
                coerced = validate_value(str(key), value)
            except UnknownKeyError:
                warnings.append(
                    SuiteWarning(file=str(path), lineno="0", details=f"Unknown config key: {key}")
                )
                break
            except ValueError as exc:
                raise ConfigFileError(
                    str(path), f"{path}: Illegal value for {key}: {exc}\n", cause=exc
                ) from exc
            if key == "config_dir":
                coerced = normalize_filename(Path(path).parent / coerced)
            opts.append((str(key), coerced))
    return opts, warnings


def config_file(
    state: RunState, config_dir: Path, user_config_name: str | None, actual_name: str
) -> tuple[str, Path]:
    """Pick the host file, then the named file, then the plain default."""
    if user_config_name is None:
        host_file = config_dir / f"{state.hostname}{CONFIG_EXT}"
        if host_file.is_file():
            return state.hostname, host_file
        return _named_config_file(config_dir, actual_name)
    return _named_config_file(config_dir, user_config_name)


def _named_config_file(config_dir: Path, name: str) -> tuple[str, Path]:
    named = config_dir / f"{name}{CONFIG_EXT}"
    if named.is_file():
        return name, named
    return name, config_dir / DEFAULT_CONFIG_BASE


def check_config_dir(config_dir: Path) -> None:
    if not config_dir.is_dir():
        raise InputFileError(
            str(config_dir), f"config_dir {config_dir}: No such file or directory\n"
        )


def builtins(state: RunState, actual_name: str) -> ConfigData:
    uname = platform.uname()
    orig_args = list(state.orig_args) or ["lx"]
    return [
        ("start time", now_to_string(state.start_time)),
        ("version", __version__),
        ("root_dir", sys.prefix),
        ("run_dir", os.getcwd()),
        ("log_dir", str(state.log_dir)),
        ("command", orig_args[0]),
        ("arguments", " ".join(orig_args[1:])),
        ("hostname", state.hostname),
        ("architecture", actual_name),
        ("system info", " ".join(part for part in uname if part)),
        ("suite", state.suite),
        ("run", state.run),
        ("revision", state.revision),
        ("config name", state.config_name or ""),
        ("config_dir", str(state.config_dir) if state.config_dir else ""),
    ]


def parse_config(state: RunState) -> tuple[ConfigData, RunState]:
    """Load default and site config layers into the state."""
    default_file = default_config_file()
    default_opts, default_warnings = parse_config_file(default_file)
    default_args = opts_to_args(default_opts)
    state = state.evolve(args=state.args.evolve(default=default_args))

    rel_config_dir = state.pick_val("config_dir", state.config_dir)
    if rel_config_dir is None:
        rel_config_dir = default_config_dir()
    abs_config_dir = Path(normalize_filename(rel_config_dir))
    check_config_dir(abs_config_dir)

    actual_name = actual_config_name()
    default_data: ConfigData = (
        builtins(state, actual_name)
        + [("default file", str(default_file))]
        + list(default_args.items())
    )
    config_name, abs_config_file = config_file(
        state, abs_config_dir, state.config_name, actual_name
    )
    if abs_config_file != default_file:
        config_opts, config_warnings = parse_config_file(abs_config_file)
        config_args = opts_to_args(config_opts)
        config_data: ConfigData = [("config file", str(abs_config_file))] + list(
            config_args.items()
        )
    else:
        config_args, config_data, config_warnings = {}, [], []

    logger.debug("Using config file %s", abs_config_file)
    new_state = state.evolve(
        config_name=config_name,
        config_dir=abs_config_dir,
        config_file=abs_config_file,
        args=state.args.evolve(config=config_args),
        warnings=state.warnings + tuple(default_warnings) + tuple(config_warnings),
    )
    return default_data + config_data, new_state
