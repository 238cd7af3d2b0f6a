"""Public API surface for lx_common."""

from lx_common.errors import LXError
from lx_common.logging import configure_logging

__all__ = ["configure_logging", "LXError"]
