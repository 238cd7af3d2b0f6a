"""The suite stop token as seen from inside a running script.

While a suite runs, the runner binds the suite timer's token here. An
interpreter can then poll :func:`should_stop` or :func:`suite_timed_out`
between steps of a script and abort the case early, without the token being
passed through its own call stack.
"""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator

from lx_runner.engine.stop_token import StopToken
from lx_runner.engine.suite_timer import SUITE_TIMEOUT_REASON

_ACTIVE: ContextVar[StopToken | None] = ContextVar("lx_suite_stop", default=None)


def active_token(explicit: StopToken | None = None) -> StopToken | None:
    """``explicit`` when given, else the token bound by the running suite."""
    return explicit if explicit is not None else _ACTIVE.get()


def should_stop(explicit: StopToken | None = None) -> bool:
    token = active_token(explicit)
    return token is not None and token.should_stop()


def stop_reason(explicit: StopToken | None = None) -> str | None:
    """Why the suite asked to stop, or None while it keeps running."""
    token = active_token(explicit)
    if token is None or not token.should_stop():
        return None
    return token.reason


def suite_timed_out(explicit: StopToken | None = None) -> bool:
    return stop_reason(explicit) == SUITE_TIMEOUT_REASON


@contextmanager
def stop_context(token: StopToken | None) -> Iterator[StopToken | None]:
    """Bind ``token`` as the suite's stop token for the enclosed block."""
    binding = _ACTIVE.set(token)
    try:
        yield token
    finally:
        _ACTIVE.reset(binding)
