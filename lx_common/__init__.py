"""Shared helpers for lx-suite."""

from lx_common.api import LXError, configure_logging

__all__ = ["configure_logging", "LXError"]
