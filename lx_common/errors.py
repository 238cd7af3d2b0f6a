"""Shared error taxonomy for lx-suite."""

from __future__ import annotations

from typing import Any, Mapping


def _normalize_context_value(value: Any) -> Any:
    if isinstance(value, Mapping):
        return normalize_context(value)
    if isinstance(value, (list, tuple)):
        return [_normalize_context_value(item) for item in value]
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    return str(value)


def normalize_context(context: Mapping[str, Any]) -> dict[str, Any]:
    """Return a JSON-friendly copy of an error context mapping."""
    return {key: _normalize_context_value(val) for key, val in context.items()}


class LXError(Exception):
    """Base error type for typed failure handling."""

    def __init__(
        self,
        message: str,
        *,
        context: Mapping[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.context = normalize_context(context or {})
        if cause is not None:
            self.__cause__ = cause


class InputFileError(LXError):
    """A script, directory or config dir given as input is missing or unreadable."""

    def __init__(
        self,
        path: str | None,
        message: str,
        *,
        context: Mapping[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        merged = {"path": path, **(context or {})}
        super().__init__(message, context=merged, cause=cause)
        self.path = path


class NoInputError(LXError):
    """Neither scripts nor a previous run to rerun were given."""

    def __init__(self, message: str = "ERROR: No input files\n") -> None:
        super().__init__(message)


class IllegalArgumentError(LXError):
    """An option has an unknown name or a value outside its domain."""

    def __init__(self, name: str, value: Any) -> None:
        super().__init__(
            f"ERROR: {name} is an illegal argument ({value!r})\n",
            context={"name": name, "value": value},
        )
        self.name = name
        self.value = value


class UnknownKeyError(LXError):
    """A configuration key has no registered type descriptor."""

    def __init__(self, key: str) -> None:
        super().__init__(f"Bad argument: {key}", context={"key": key})
        self.key = key


class ConfigFileError(InputFileError):
    """A configuration file exists but could not be parsed."""


class SummaryLogError(LXError):
    """The suite summary log could not be opened, written or parsed."""

    def __init__(
        self,
        path: str,
        message: str,
        *,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, context={"path": path}, cause=cause)
        self.path = path


class ReportError(LXError):
    """A report (HTML, JUnit, TAP) could not be produced."""

    def __init__(
        self,
        path: str,
        message: str,
        *,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, context={"path": path}, cause=cause)
        self.path = path

