"""Documentation extraction for ``doc`` mode."""

from __future__ import annotations

from typing import Iterable, Iterator, Union

from lx_runner.models.args import INFINITY
from lx_runner.models.results import Command

DOC_COMMAND = "doc"
ONCE_ONLY = "once_only"

DocDepth = Union[int, str]


def _walk(commands: Iterable[Command]) -> Iterator[Command]:
    for command in commands:
        yield command
        yield from _walk(command.children)


def extract_doc(commands: Iterable[Command]) -> list[Command]:
    """Documentation commands in pre-order, including nested ones."""
    return [command for command in _walk(commands) if command.type == DOC_COMMAND]


def doc_entries(commands: Iterable[Command]) -> list[tuple[int, str]]:
    return [
        (int(level), str(text))
        for command in extract_doc(commands)
        for level, text in (command.arg or ())
    ]


def display_doc(entry: tuple[int, str], max_level: DocDepth) -> DocDepth:
    """Print one entry and return the depth to use for the next one.

    A depth of ``0`` prints the first level-1 entry and then switches to
    ``once_only``, which suppresses everything for the rest of the run.
    """
    level, text = entry
    if max_level == ONCE_ONLY:
        return max_level
    if max_level == 0 and level == 1:
        print("\t" * level + text)
        return ONCE_ONLY
    if max_level == INFINITY or (isinstance(max_level, int) and level <= max_level):
        print("\t" * level + text)
    return max_level


def display_docs(entries: Iterable[tuple[int, str]], max_level: DocDepth) -> DocDepth:
    for entry in entries:
        max_level = display_doc(entry, max_level)
    return max_level
