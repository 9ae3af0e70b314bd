# voidcaster/errors.py
"""
Error types for the voidcaster pipeline.

Hierarchy
─────────
  VoidcasterError (base, carries the exit code the CLI returns)
  ├── UsageError         - bad command line / configuration
  ├── FileOpenError      - a source file cannot be read
  ├── ParseError         - libclang reported an error-severity diagnostic
  ├── TreeProviderError  - libclang itself failed (library, index, TU load)
  ├── InputExhausted     - end of input on the confirmation prompt
  └── PatchError         - applying edits to one file failed
      ├── OverlappingEditsError - edits for one file overlap or run backwards
      └── StaleSourceError      - file changed between classification and patching

``PatchError`` never terminates the run; the Patch engine catches it per file
and records it in its report.
"""

from __future__ import annotations

from typing import List, Optional, Sequence

from voidcaster.model import ExitCode


class VoidcasterError(Exception):
    """Base class for all voidcaster errors."""

    exit_code: ExitCode = ExitCode.CLANG_FAIL

    def __init__(self, message: str = "", *, exit_code: Optional[ExitCode] = None) -> None:
        super().__init__(message)
        self.message = message
        if exit_code is not None:
            self.exit_code = exit_code

    def __str__(self) -> str:
        return self.message


class UsageError(VoidcasterError):
    exit_code = ExitCode.USAGE


class FileOpenError(VoidcasterError):
    exit_code = ExitCode.FILE_OPEN

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"cannot open {path}: {reason}")
        self.path = path
        self.reason = reason


class ParseError(VoidcasterError):
    """Raised after the diagnostics of a failed parse have been printed."""

    exit_code = ExitCode.FILE_PARSE

    def __init__(self, path: str, diagnostics: Sequence[str] = ()) -> None:
        super().__init__(f"error parsing {path}")
        self.path = path
        self.diagnostics: List[str] = list(diagnostics)


class TreeProviderError(VoidcasterError):
    exit_code = ExitCode.CLANG_FAIL


class InputExhausted(VoidcasterError):
    """The operator closed standard input; leave without touching any file."""

    exit_code = ExitCode.OK

    def __init__(self) -> None:
        super().__init__("end of input on confirmation prompt")


class PatchError(VoidcasterError):
    """Applying the queued edits to ``path`` failed; other files are unaffected."""

    def __init__(self, path: str, message: str) -> None:
        super().__init__(f"{path}: {message}")
        self.path = path


class OverlappingEditsError(PatchError):
    pass


class StaleSourceError(PatchError):
    pass


__all__ = [
    "VoidcasterError",
    "UsageError",
    "FileOpenError",
    "ParseError",
    "TreeProviderError",
    "InputExhausted",
    "PatchError",
    "OverlappingEditsError",
    "StaleSourceError",
]
