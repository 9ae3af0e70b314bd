"""
voidcaster/model.py
═══════════════════

Plain data types shared by every stage of the pipeline.

  ┌───────────┐   DescentState    ┌──────────────┐   Finding    ┌─────────────┐
  │ clang AST │ ────────────────▶ │  Classifier  │ ───────────▶ │ sink/bridge │
  └───────────┘                   └──────────────┘              └──────┬──────┘
                                                                       │ Modification
                                                                       ▼
                                                                ┌─────────────┐
                                                                │ Patch engine│
                                                                └─────────────┘

Everything here is immutable (``frozen`` dataclasses) so values can be
passed freely between stages and used as dictionary keys.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Any, Dict, Optional, Union


# ═════════════════════════════════════════════════════════════════════════
#  PART 1 — EXIT CODES
# ═════════════════════════════════════════════════════════════════════════

class ExitCode(IntEnum):
    """Process exit status. The numeric values are part of the CLI contract."""
    OK = 0
    USAGE = 1
    FILE_OPEN = 2
    FILE_PARSE = 3
    EXT_SUGGEST = 4
    CLANG_FAIL = 5
    MM = 6


# ═════════════════════════════════════════════════════════════════════════
#  PART 2 — POSITIONS
# ═════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True, order=True)
class Location:
    """
    A position inside one source file.

    Both coordinates are 1-based. Columns count bytes, which is what libclang
    reports and what the Patch engine walks.
    """
    line: int = 1
    column: int = 1

    def __str__(self) -> str:
        return f"{self.line}:{self.column}"


@dataclass(frozen=True)
class Extent:
    """A span from ``start`` up to ``end``, the position just past its last character."""
    start: Location
    end: Location

    def __str__(self) -> str:
        return f"{self.start}-{self.end}"


# ═════════════════════════════════════════════════════════════════════════
#  PART 3 — DESCENT STATE
# ═════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class DescentState:
    """
    What a node knows about its immediate parent.

    Attributes
    ----------
    preceded_by_void_cast : the parent is a C-style cast to ``void``
    cast_extent           : token extent of that cast; None when the flag is
                            unset or the cast has no tokens of its own
    discard_context       : the parent is a statement list or a case label,
                            so a value computed here is thrown away
    """
    preceded_by_void_cast: bool = False
    cast_extent: Optional[Extent] = None
    discard_context: bool = False

    @classmethod
    def below_void_cast(cls, extent: Optional[Extent]) -> "DescentState":
        return cls(preceded_by_void_cast=True, cast_extent=extent)

    @classmethod
    def below_statement_list(cls) -> "DescentState":
        return cls(discard_context=True)


INITIAL_STATE = DescentState()


# ═════════════════════════════════════════════════════════════════════════
#  PART 4 — CLASSIFICATIONS
# ═════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class OkValueUsed:
    """A concrete value that is consumed, or explicitly cast away."""


@dataclass(frozen=True)
class OkValueDiscardedAsVoid:
    """A ``void`` call without a cast."""


@dataclass(frozen=True)
class MissingCast:
    """A concrete value dropped by a bare statement."""
    location: Location


@dataclass(frozen=True)
class SuperfluousCast:
    """A ``void`` call wrapped in ``(void)``."""
    extent: Extent


@dataclass(frozen=True)
class Unknown:
    """The call could not be judged."""
    reason: str


Classification = Union[
    OkValueUsed, OkValueDiscardedAsVoid, MissingCast, SuperfluousCast, Unknown
]


# ═════════════════════════════════════════════════════════════════════════
#  PART 5 — FINDINGS
# ═════════════════════════════════════════════════════════════════════════

class FindingKind(Enum):
    MISSING_CAST = "missingVoidCast"
    SUPERFLUOUS_CAST = "superfluousVoidCast"


@dataclass(frozen=True)
class Finding:
    """
    One reported defect, ready for output.

    ``end`` is only set for superfluous casts, where the finding covers the
    whole cast token run.
    """
    kind: FindingKind
    file: str
    function: str
    start: Location
    end: Optional[Location] = None

    @property
    def message(self) -> str:
        if self.kind is FindingKind.MISSING_CAST:
            return f"Missing cast to void when calling function {self.function}."
        return f"Pointless cast to void when calling function {self.function}."

    def to_gcc_format(self) -> str:
        """GCC-style diagnostic string: file:line:col: message."""
        return f"{self.file}:{self.start.line}:{self.start.column}: {self.message}"

    def to_json(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "file": self.file,
            "linenr": self.start.line,
            "column": self.start.column,
            "errorId": self.kind.value,
            "function": self.function,
            "message": self.message,
        }
        if self.end is not None:
            result["endLinenr"] = self.end.line
            result["endColumn"] = self.end.column
        return result

    def to_json_str(self) -> str:
        return json.dumps(self.to_json())


# ═════════════════════════════════════════════════════════════════════════
#  PART 6 — MODIFICATIONS
# ═════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Insert:
    """Insert ``text`` right before the character at ``where``."""
    file: str
    where: Location
    text: str

    @property
    def characteristic(self) -> Location:
        return self.where


@dataclass(frozen=True)
class Remove:
    """
    Cut the bytes from ``start`` up to the position ``end``.

    ``end`` is an Extent end: the character at ``end`` itself survives.
    """
    file: str
    start: Location
    end: Location

    @property
    def characteristic(self) -> Location:
        return self.start


Modification = Union[Insert, Remove]


def sort_key(mod: Modification):
    return (mod.file, mod.characteristic)


__all__ = [
    "ExitCode",
    "Location",
    "Extent",
    "DescentState",
    "INITIAL_STATE",
    "OkValueUsed",
    "OkValueDiscardedAsVoid",
    "MissingCast",
    "SuperfluousCast",
    "Unknown",
    "Classification",
    "FindingKind",
    "Finding",
    "Insert",
    "Remove",
    "Modification",
    "sort_key",
]
