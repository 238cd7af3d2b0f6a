"""Suite-wide deadline that stops the run loop when it expires."""

from __future__ import annotations

import logging
import threading
from typing import Any

from lx_runner.models.args import INFINITY, ArgDicts, pick_val
from lx_runner.engine.stop_token import StopToken

logger = logging.getLogger(__name__)

ONE_SEC_MS = 1000
SUITE_TIMEOUT_REASON = "suite_timeout"


def suite_timeout_ms(dicts: ArgDicts) -> int | str:
    """``suite_timeout`` scaled by ``multiplier`` (milliseconds per unit)."""
    timeout = pick_val("suite_timeout", dicts, INFINITY)
    multiplier = pick_val("multiplier", dicts, ONE_SEC_MS)
    return multiply(timeout, multiplier)


def multiply(timeout: Any, multiplier: Any) -> int | str:
    if timeout == INFINITY or multiplier == INFINITY:
        return INFINITY
    # multiplier is milliseconds per timeout unit
    return int(timeout) * int(multiplier)


class SuiteTimer:
    """Arms a deadline that trips a :class:`StopToken` on expiry."""

    def __init__(self, timeout_ms: int | str, token: StopToken | None = None) -> None:
        self.timeout_ms = timeout_ms
        self.token = token or StopToken()
        self._timer: threading.Timer | None = None

    @classmethod
    def start(cls, dicts: ArgDicts, token: StopToken | None = None) -> "SuiteTimer":
        timer = cls(suite_timeout_ms(dicts), token)
        timer.arm()
        return timer

    def arm(self) -> None:
        if self.timeout_ms == INFINITY or self._timer is not None:
            return
        seconds = int(self.timeout_ms) / 1000.0
        self._timer = threading.Timer(seconds, self._expire)
        self._timer.daemon = True
        self._timer.start()
        logger.debug("Suite timer armed for %.3fs", seconds)

    def _expire(self) -> None:
        logger.info("Suite timeout after %s ms", self.timeout_ms)
        self.token.request_stop(SUITE_TIMEOUT_REASON)

    def fired(self) -> bool:
        return self.token.should_stop()

    def cancel(self) -> None:
        """Disarm the deadline and drain a stop that raced with completion."""
        if self._timer is None:
            return
        self._timer.cancel()
        self._timer.join()
        self._timer = None
        if self.token.clear():
            logger.debug("Discarded suite timeout that fired during completion")
