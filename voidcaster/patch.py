"""
voidcaster/patch.py
═══════════════════

Edit queue and Patch engine.

Confirmed fixes are queued as ``Insert`` / ``Remove`` modifications while
the classifier is still running.  Once every file of the batch has been
classified, ``PatchEngine.apply`` rewrites each affected file in a single
forward pass:

  original ──read──▶ cursor ──copy / skip──▶ temp file
                                │
                        Insert: copy up to `where`, write text
                        Remove: copy up to `start`, skip up to `end`
                                │
  original ──rename──▶ original~      temp ──rename──▶ original

The cursor never moves backwards, so edits of one file must not overlap; the
engine checks that (and that the file did not change since its edits were
queued) before it writes anything.  A failing file is left untouched and
reported; files patched before it stay patched.
"""

from __future__ import annotations

import hashlib
import logging
import os
import shutil
import tempfile
from dataclasses import dataclass, field
from itertools import groupby
from typing import BinaryIO, Dict, Iterator, List, Optional, Set, Tuple

from voidcaster.errors import (
    OverlappingEditsError,
    PatchError,
    StaleSourceError,
)
from voidcaster.model import Insert, Location, Modification, Remove, sort_key

_log = logging.getLogger(__name__)

TEMP_PREFIX = "voidcaster"
_COPY_CHUNK = 64 * 1024


def file_digest(path: str) -> str:
    """SHA-256 of the file's current contents."""
    h = hashlib.sha256()
    with open(path, "rb") as fh:
        for chunk in iter(lambda: fh.read(_COPY_CHUNK), b""):
            h.update(chunk)
    return h.hexdigest()


# ═════════════════════════════════════════════════════════════════════════
#  PART 1 — EDIT QUEUE
# ═════════════════════════════════════════════════════════════════════════

class EditQueue:
    """
    Ordered collection of confirmed modifications.

    The first time an edit for a file is queued the file's digest is
    recorded, so the Patch engine can tell whether the file changed
    between classification and patching.
    """

    def __init__(self) -> None:
        self._edits: List[Modification] = []
        self._seen: Set[Modification] = set()
        self._digests: Dict[str, str] = {}

    def add(self, mod: Modification) -> bool:
        """Queue ``mod``; returns False if an equal edit is already queued."""
        if mod in self._seen:
            _log.debug("Ignoring duplicate edit %r", mod)
            return False
        if mod.file not in self._digests:
            self._digests[mod.file] = file_digest(mod.file)
        self._edits.append(mod)
        self._seen.add(mod)
        return True

    def digest_for(self, file: str) -> Optional[str]:
        return self._digests.get(file)

    def clear(self) -> None:
        self._edits.clear()
        self._seen.clear()
        self._digests.clear()

    def sorted_by_file(self) -> Iterator[Tuple[str, List[Modification]]]:
        """Yield ``(file, edits)`` with edits in ascending position order."""
        ordered = sorted(self._edits, key=sort_key)
        for file, group in groupby(ordered, key=lambda m: m.file):
            yield file, list(group)

    def __len__(self) -> int:
        return len(self._edits)

    def __iter__(self) -> Iterator[Modification]:
        return iter(self._edits)

    def __bool__(self) -> bool:
        return bool(self._edits)


# ═════════════════════════════════════════════════════════════════════════
#  PART 2 — STREAM PRIMITIVES
# ═════════════════════════════════════════════════════════════════════════

def move_until(
    rf: BinaryIO,
    now: Location,
    target: Location,
    wf: Optional[BinaryIO] = None,
) -> Location:
    """
    Advance ``rf`` byte by byte from ``now`` until it sits right before
    ``target``, copying every byte read to ``wf`` if one is given.

    The stream is assumed to sit right before ``now``; a fresh stream sits
    before line 1, column 1.  Returns the new position.

    Raises
    ------
    EOFError if the file ends before ``target`` is reached.
    """
    line, column = now.line, now.column
    while (line, column) < (target.line, target.column):
        c = rf.read(1)
        if not c:
            raise EOFError(
                f"end of file at {line}:{column} before reaching {target}"
            )
        if wf is not None:
            wf.write(c)
        if c == b"\n":
            line += 1
            column = 1
        else:
            column += 1
    return Location(line, column)


def copy_rest(rf: BinaryIO, wf: BinaryIO) -> None:
    shutil.copyfileobj(rf, wf, _COPY_CHUNK)


def robust_rename(old_path: str, new_path: str) -> None:
    """
    Rename a file, copying and deleting when a plain rename is impossible
    (for instance across file systems).
    """
    try:
        os.replace(old_path, new_path)
        return
    except OSError as exc:
        _log.debug("rename %s → %s failed (%s); copying", old_path, new_path, exc)
    shutil.copyfile(old_path, new_path)
    os.unlink(old_path)


def overwrite_with_backup(original: str, replacement: str, suffix: str = "~") -> str:
    """
    Move ``original`` aside to ``original + suffix`` (an existing backup is
    overwritten), then move ``replacement`` into its place.

    Returns the backup path.
    """
    backup = original + suffix
    robust_rename(original, backup)
    try:
        robust_rename(replacement, original)
    except OSError:
        robust_rename(backup, original)
        raise
    return backup


# ═════════════════════════════════════════════════════════════════════════
#  PART 3 — PATCH ENGINE
# ═════════════════════════════════════════════════════════════════════════

def validate_edits(file: str, edits: List[Modification]) -> None:
    """
    Reject edit lists the forward-only cursor cannot apply.

    ``edits`` must already be in ascending position order.
    """
    cursor = Location(1, 1)
    for mod in edits:
        if mod.characteristic < cursor:
            raise OverlappingEditsError(
                file,
                f"edit at {mod.characteristic} overlaps a removal ending at {cursor}",
            )
        if isinstance(mod, Remove):
            if mod.end < mod.start:
                raise OverlappingEditsError(
                    file, f"removal ends ({mod.end}) before it starts ({mod.start})"
                )
            cursor = mod.end
        elif isinstance(mod, Insert):
            cursor = mod.where
        else:
            raise TypeError(f"unknown modification {mod!r}")


def rewrite(rf: BinaryIO, wf: BinaryIO, edits: List[Modification]) -> None:
    """Stream ``rf`` into ``wf`` applying ``edits`` (ascending, non-overlapping)."""
    cursor = Location(1, 1)
    for mod in edits:
        if isinstance(mod, Insert):
            move_until(rf, cursor, mod.where, wf)
            wf.write(mod.text.encode("utf-8"))
            cursor = mod.where
        elif isinstance(mod, Remove):
            move_until(rf, cursor, mod.start, wf)
            cursor = move_until(rf, mod.start, mod.end)
        else:
            raise TypeError(f"unknown modification {mod!r}")
    copy_rest(rf, wf)


@dataclass
class PatchReport:
    """What ``PatchEngine.apply`` did."""
    patched: Dict[str, str] = field(default_factory=dict)    # file → backup
    failed: Dict[str, str] = field(default_factory=dict)     # file → reason

    @property
    def ok(self) -> bool:
        return not self.failed


class PatchEngine:
    """
    Applies an ``EditQueue`` to the file system.

    Temporary files are created next to the file being rewritten unless
    ``temp_dir`` says otherwise; the rewritten file keeps the original's
    permission bits.

    Usage
    -----
    >>> queue = EditQueue()
    >>> queue.add(Insert("a.c", Location(3, 5), "(void)"))
    >>> report = PatchEngine(queue).apply()
    >>> report.patched
    {'a.c': 'a.c~'}
    """

    def __init__(
        self,
        queue: EditQueue,
        backup_suffix: str = "~",
        temp_dir: Optional[str] = None,
    ) -> None:
        self.queue = queue
        self.backup_suffix = backup_suffix
        self.temp_dir = temp_dir

    def apply(self) -> PatchReport:
        report = PatchReport()
        if not self.queue:
            return report
        for file, edits in self.queue.sorted_by_file():
            try:
                backup = self.apply_file(file, edits)
            except PatchError as exc:
                _log.error("Not patching %s", exc)
                report.failed[file] = exc.message
                continue
            _log.info("Patched %s (%d edit(s), backup %s)", file, len(edits), backup)
            report.patched[file] = backup
        return report

    def apply_file(self, file: str, edits: List[Modification]) -> str:
        """Rewrite one file; returns its backup path."""
        validate_edits(file, edits)
        self._check_fresh(file)

        try:
            fd, temp_path = tempfile.mkstemp(
                prefix=TEMP_PREFIX, dir=self._temp_dir_for(file)
            )
        except OSError as exc:
            raise PatchError(file, f"cannot create temporary file: {exc}") from exc

        try:
            with open(file, "rb") as rf, os.fdopen(fd, "wb") as wf:
                rewrite(rf, wf, edits)
        except (OSError, EOFError) as exc:
            _discard(temp_path)
            raise PatchError(file, f"I/O troubles: {exc}") from exc

        try:
            shutil.copymode(file, temp_path)
            return overwrite_with_backup(file, temp_path, self.backup_suffix)
        except OSError as exc:
            _discard(temp_path)
            raise PatchError(file, f"cannot replace file: {exc}") from exc

    def _temp_dir_for(self, file: str) -> str:
        # same directory as the original: publishing is then a plain rename
        if self.temp_dir is not None:
            return self.temp_dir
        return os.path.dirname(os.path.abspath(file))

    def _check_fresh(self, file: str) -> None:
        expected = self.queue.digest_for(file)
        if expected is None:
            return
        try:
            actual = file_digest(file)
        except OSError as exc:
            raise PatchError(file, f"cannot read file: {exc}") from exc
        if actual != expected:
            raise StaleSourceError(file, "file changed since it was analysed")


def _discard(path: str) -> None:
    try:
        os.unlink(path)
    except FileNotFoundError:
        pass


__all__ = [
    "EditQueue",
    "PatchEngine",
    "PatchReport",
    "file_digest",
    "move_until",
    "copy_rest",
    "robust_rename",
    "overwrite_with_backup",
    "validate_edits",
    "rewrite",
]
