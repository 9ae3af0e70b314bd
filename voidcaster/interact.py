"""
voidcaster/interact.py — interactive mode.

``ConfirmationBridge`` stands in for the printing sink when voidcaster runs
with ``-i``.  For each finding it shows the affected source line(s) before
and after the proposed fix, waits for a yes/no answer and queues the fix on
"yes".  Nothing is written to disk here; the queued edits are applied by
the Patch engine once the whole batch has been classified.
"""

from __future__ import annotations

import logging
import mmap
import os
import sys
from typing import Optional, Set, TextIO

from voidcaster.errors import InputExhausted
from voidcaster.model import Insert, Location, Modification, Remove
from voidcaster.patch import EditQueue
from voidcaster.reporting import FindingCollector

_log = logging.getLogger(__name__)

VOID_CAST = "(void)"

YES_ANSWERS = frozenset({"y", "yes"})
NO_ANSWERS = frozenset({"n", "no"})


def fetch_file_lines(path: str, first_line: int, count: int = 1) -> bytes:
    """
    Return ``count`` lines of ``path`` starting at the 1-based ``first_line``,
    joined by their newlines but without the final one.

    The file is mapped read-only for the duration of the call.

    Raises
    ------
    OSError    if the file cannot be opened or mapped
    ValueError if ``first_line`` lies past the end of the file
    """
    with open(path, "rb") as fh:
        size = os.fstat(fh.fileno()).st_size
        if size == 0:
            if first_line > 1:
                raise ValueError(f"line {first_line} past end of source file {path}")
            return b""
        with mmap.mmap(fh.fileno(), 0, access=mmap.ACCESS_READ) as view:
            start = 0
            for _ in range(first_line - 1):
                newline = view.find(b"\n", start)
                if newline < 0:
                    raise ValueError(
                        f"line {first_line} past end of source file {path}"
                    )
                start = newline + 1

            end = start
            for i in range(count):
                newline = view.find(b"\n", end)
                if newline < 0:
                    end = size
                    break
                end = newline if i == count - 1 else newline + 1
            return view[start:end]


def offset_of(text: bytes, origin: Location, origin_offset: int, target: Location) -> int:
    """Byte offset in ``text`` of ``target``, walking forward from ``origin``."""
    line, column = origin.line, origin.column
    offset = origin_offset
    while (line, column) < (target.line, target.column) and offset < len(text):
        if text[offset:offset + 1] == b"\n":
            line += 1
            column = 1
        else:
            column += 1
        offset += 1
    return offset


def preview_insert(line: bytes, location: Location, text: str = VOID_CAST) -> bytes:
    cut = location.column - 1
    return line[:cut] + text.encode("utf-8") + line[cut:]


def preview_remove(lines: bytes, start: Location, end: Location) -> bytes:
    """``lines`` starts at ``start.line``; drop everything from ``start`` up to ``end``."""
    start_offset = start.column - 1
    end_offset = offset_of(lines, start, start_offset, end)
    return lines[:start_offset] + lines[end_offset:]


def _text(raw: bytes) -> str:
    return raw.decode("utf-8", errors="replace")


class ConfirmationBridge(FindingCollector):
    """
    Report sink that turns accepted findings into queued modifications.

    Parameters
    ----------
    queue  : edit queue receiving the accepted fixes
    stdin  : where answers are read from (default ``sys.stdin``)
    stdout : where previews and prompts go (default ``sys.stdout``)
    """

    def __init__(
        self,
        queue: EditQueue,
        stdin: Optional[TextIO] = None,
        stdout: Optional[TextIO] = None,
    ) -> None:
        super().__init__()
        self.queue = queue
        self._decided: Set[Modification] = set()
        self._stdin = stdin
        self._stdout = stdout

    @property
    def stdin(self) -> TextIO:
        return self._stdin if self._stdin is not None else sys.stdin

    @property
    def stdout(self) -> TextIO:
        return self._stdout if self._stdout is not None else sys.stdout

    # ── prompting ───────────────────────────────────────────────────

    def ask(self) -> bool:
        """Block until the operator answers yes or no."""
        while True:
            answer = self.stdin.readline()
            if not answer:
                self.stdout.write("Okay, exiting.\n")
                self.stdout.flush()
                raise InputExhausted()
            token = answer.strip().lower()
            if token in YES_ANSWERS:
                return True
            if token in NO_ANSWERS:
                return False
            self.stdout.write("Please answer y (yes) or n (no): ")
            self.stdout.flush()

    def _load(self, file: str, first_line: int, count: int) -> bytes:
        try:
            return fetch_file_lines(file, first_line, count)
        except (OSError, ValueError) as exc:
            _log.warning("Cannot show %s: %s", file, exc)
            return b""

    def _already_decided(self, mod: Modification) -> bool:
        """
        True if the operator was already asked about ``mod``, e.g. for a
        header included by several files or a file named twice.
        """
        if mod in self._decided:
            _log.debug("Not asking again about %r", mod)
            return True
        self._decided.add(mod)
        return False

    # ── ReportSink ──────────────────────────────────────────────────

    def on_missing_cast(self, file: str, func: str, location: Location) -> None:
        fix = Insert(file, location, VOID_CAST)
        if self._already_decided(fix):
            return
        self._record_missing(file, func, location)
        line = self._load(file, location.line, 1)
        self.stdout.write(
            "\n"
            f"File {file}, line {location.line}:\n"
            f"Missing cast to void when calling function '{func}'.\n"
            "The line, currently:\n"
            f"{_text(line)}\n"
            "The line, after its modification:\n"
            f"{_text(preview_insert(line, location))}\n"
            "Apply fix? (y/n) "
        )
        self.stdout.flush()

        if self.ask():
            self.queue.add(fix)

    def on_superfluous_cast(
        self, file: str, func: str, start: Location, end: Location
    ) -> None:
        fix = Remove(file, start, end)
        if self._already_decided(fix):
            return
        self._record_superfluous(file, func, start, end)
        lines = self._load(file, start.line, end.line - start.line + 1)
        self.stdout.write(
            "\n"
            f"File {file}, lines {start.line} through {end.line}:\n"
            f"Superfluous cast to void when calling function '{func}'.\n"
            "The lines, currently:\n"
            f"{_text(lines)}\n"
            "The lines, after their modification:\n"
            f"{_text(preview_remove(lines, start, end))}\n"
            "Apply fix? (y/n) "
        )
        self.stdout.flush()

        if self.ask():
            self.queue.add(fix)


__all__ = [
    "ConfirmationBridge",
    "fetch_file_lines",
    "offset_of",
    "preview_insert",
    "preview_remove",
    "VOID_CAST",
]
