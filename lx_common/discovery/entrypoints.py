"""Entry-point discovery and loading helpers for suite backends."""

from __future__ import annotations

import importlib
import importlib.metadata
import logging
from typing import Any, Iterable


logger = logging.getLogger(__name__)

BACKEND_GROUP = "lx_suite.backends"


def discover_entrypoints(
    groups: Iterable[str],
) -> dict[str, importlib.metadata.EntryPoint]:
    """Collect entry points without importing them. Loaded on demand."""
    pending: dict[str, importlib.metadata.EntryPoint] = {}
    for group in groups:
        try:
            eps = importlib.metadata.entry_points().select(group=group)
        except Exception as exc:
            logger.debug("Failed to read entry points for group %s: %s", group, exc)
            eps = ()
        for entry_point in eps:
            pending.setdefault(entry_point.name, entry_point)
    return pending


def load_object(spec: str) -> Any:
    """Import ``package.module:attribute`` and return the attribute."""
    module_name, _, attr = spec.partition(":")
    if not module_name or not attr:
        raise ValueError(f"Expected 'module:attribute', got {spec!r}")
    module = importlib.import_module(module_name)
    target: Any = module
    for part in attr.split("."):
        target = getattr(target, part)
    return target


def load_backend(name_or_spec: str | None) -> Any:
    """Resolve a backend by entry-point name or explicit ``module:attr``.

    With no name, the only installed backend is used; zero or several
    installed backends is an error.
    """
    if name_or_spec and ":" in name_or_spec:
        backend = load_object(name_or_spec)
    else:
        pending = discover_entrypoints([BACKEND_GROUP])
        if name_or_spec:
            entry_point = pending.get(name_or_spec)
            if entry_point is None:
                raise LookupError(f"Unknown backend: {name_or_spec}")
        elif len(pending) == 1:
            entry_point = next(iter(pending.values()))
        elif not pending:
            raise LookupError(
                f"No backend installed in entry-point group {BACKEND_GROUP!r}"
            )
        else:
            names = ", ".join(sorted(pending))
            raise LookupError(f"Several backends installed ({names}); pick one")
        backend = entry_point.load()
    if callable(backend) and not hasattr(backend, "parser"):
        backend = backend()
    return backend
