"""Stop token tripped by the suite timer."""

from __future__ import annotations

import threading


class StopToken:
    """
    Lightweight cooperative stop controller.

    The suite timer trips it from its own thread. The run loop calls
    `should_stop()` between scripts and stops consuming scripts when True.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self.reason: str | None = None

    def request_stop(self, reason: str = "stop requested") -> None:
        """Mark the token as stopped; the first reason is kept."""
        with self._lock:
            if self._event.is_set():
                return
            self.reason = reason
            self._event.set()

    def should_stop(self) -> bool:
        """Return True when stop was requested."""
        return self._event.is_set()

    def clear(self) -> bool:
        """Discard a pending stop request; returns True if one was pending."""
        with self._lock:
            pending = self._event.is_set()
            self._event.clear()
            self.reason = None
        return pending
