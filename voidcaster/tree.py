"""
voidcaster/tree.py
══════════════════

Tree Provider: the thin layer between voidcaster and libclang's Python
bindings (``clang.cindex``).

Everything the classifier needs to know about a cursor goes through the
helpers in this module, so the classifier itself stays free of libclang
calls and can be driven by plain stand-in objects in tests:

  cursor_file(cur)        → file name of the cursor's location ("" if none)
  cursor_location(cur)    → Location(line, column)
  cast_extent(cur)        → Extent of a C-style cast's own token run, or None
  result_kind(target)     → ResultKind.NO_VALUE / OPAQUE / CONCRETE
  is_unprototyped(target) → callee declared without a prototype

``TreeProvider`` owns the ``clang.cindex.Index`` and turns source files into
translation units, surfacing libclang's diagnostics on the way.
"""

from __future__ import annotations

import logging
import os
import subprocess
import sys
from enum import Enum, auto
from typing import Any, List, Optional, Sequence, TextIO

from clang.cindex import (  # type: ignore[import-untyped]
    Config,
    CursorKind,
    Index,
    LibclangError,
    TranslationUnitLoadError,
    TypeKind,
)

from voidcaster.config import VoidcasterConfig
from voidcaster.errors import FileOpenError, ParseError, TreeProviderError
from voidcaster.model import Extent, Location

_log = logging.getLogger(__name__)

# clang_getDiagnosticSeverity values
SEVERITY_NAMES = {
    0: "ignored",
    1: "note",
    2: "warning",
    3: "error",
    4: "fatal error",
}
SEVERITY_ERROR = 3


# ═════════════════════════════════════════════════════════════════════════
#  PART 1 — CURSOR HELPERS
# ═════════════════════════════════════════════════════════════════════════

class ResultKind(Enum):
    """How a callee's declared result type looks from a call site."""
    NO_VALUE = auto()
    OPAQUE = auto()
    CONCRETE = auto()


_OPAQUE_TYPE_KINDS = frozenset({TypeKind.INVALID, TypeKind.UNEXPOSED})


def _location(source_location: Any) -> Location:
    return Location(source_location.line, source_location.column)


def cursor_file(cur: Any) -> str:
    """Name of the file ``cur`` is located in, or "" for built-in cursors."""
    f = cur.location.file
    return f.name if f is not None else ""


def cursor_location(cur: Any) -> Location:
    return _location(cur.location)


def canonical_kind(ctype: Any) -> Any:
    """Type kind after stripping typedefs and elaborations."""
    return ctype.get_canonical().kind


def is_void_cast(cur: Any) -> bool:
    return (
        cur.kind == CursorKind.CSTYLE_CAST_EXPR
        and canonical_kind(cur.type) == TypeKind.VOID
    )


def is_unprototyped(target: Any) -> bool:
    return target.type.kind == TypeKind.FUNCTIONNOPROTO


def result_kind(target: Any) -> ResultKind:
    """Classify the declared result type of a resolved callee."""
    kind = canonical_kind(target.result_type)
    if kind == TypeKind.VOID:
        return ResultKind.NO_VALUE
    if kind in _OPAQUE_TYPE_KINDS:
        return ResultKind.OPAQUE
    return ResultKind.CONCRETE


def cast_extent(cur: Any) -> Optional[Extent]:
    """
    Return the extent of the cast's own tokens.

    The cast's tokens are the leading run of tokens in its extent whose
    annotated cursor has the same kind and type as the cast itself; for
    ``(void)f()`` that is ``(``, ``void`` and ``)``. Comments between those
    tokens are not tokens, so they end up inside the extent.
    """
    start: Optional[Location] = None
    end: Optional[Location] = None
    for tok in cur.get_tokens():
        owner = tok.cursor
        if owner.kind != cur.kind or owner.type != cur.type:
            break
        if start is None:
            start = _location(tok.extent.start)
        end = _location(tok.extent.end)

    if start is None or end is None:
        # no token annotated as ours, e.g. the cast comes out of a macro
        return None
    return Extent(start, end)


def format_diagnostic(diag: Any) -> str:
    """``file:line:col: severity: message`` like clang's own output."""
    loc = diag.location
    name = loc.file.name if loc.file is not None else "<unknown>"
    severity = SEVERITY_NAMES.get(diag.severity, "diagnostic")
    return f"{name}:{loc.line}:{loc.column}: {severity}: {diag.spelling}"


# ═════════════════════════════════════════════════════════════════════════
#  PART 2 — GCC SYSTEM INCLUDES
# ═════════════════════════════════════════════════════════════════════════

def gcc_system_include_dir(gcc: str = "gcc") -> Optional[str]:
    """
    Ask the installed GCC for its private include directory (stddef.h & co.).

    libclang does not know where GCC keeps those headers, so parsing code that
    includes them fails without this path.
    """
    try:
        proc = subprocess.run(
            [gcc, "-print-file-name=include"],
            capture_output=True,
            text=True,
            check=False,
        )
    except OSError as exc:
        _log.debug("Cannot run %s: %s", gcc, exc)
        return None
    path = proc.stdout.strip()
    if proc.returncode != 0 or not path or not os.path.isdir(path):
        _log.debug("%s reported no usable include directory (%r)", gcc, path)
        return None
    return path


# ═════════════════════════════════════════════════════════════════════════
#  PART 3 — TREE PROVIDER
# ═════════════════════════════════════════════════════════════════════════

def _configure_library(config: VoidcasterConfig) -> None:
    if Config.loaded:
        return
    if config.libclang_file:
        _log.info("Using libclang library file %s", config.libclang_file)
        Config.set_library_file(config.libclang_file)
    elif config.libclang_path:
        _log.info("Using libclang from %s", config.libclang_path)
        Config.set_library_path(config.libclang_path)


class TreeProvider:
    """
    Parses C files into libclang translation units.

    Usage
    -----
    >>> provider = TreeProvider(VoidcasterConfig(files=["a.c"]))
    >>> tu = provider.parse("a.c")
    >>> tu.cursor.kind
    CursorKind.TRANSLATION_UNIT
    """

    def __init__(
        self,
        config: VoidcasterConfig,
        diagnostics_stream: Optional[TextIO] = None,
    ) -> None:
        self.config = config
        self._stream = diagnostics_stream
        _configure_library(config)
        try:
            self.index = Index.create()
        except LibclangError as exc:
            raise TreeProviderError(f"clang index creation failed: {exc}") from exc

    @property
    def stream(self) -> TextIO:
        return self._stream if self._stream is not None else sys.stderr

    def compiler_args(self) -> List[str]:
        args = list(self.config.clang_args)
        if self.config.add_gcc_include:
            sysinclude = gcc_system_include_dir()
            if sysinclude is not None:
                args.append(f"-I{sysinclude}")
        return args

    def parse(self, filename: str, args: Optional[Sequence[str]] = None) -> Any:
        """
        Parse ``filename`` and return its translation unit.

        Every diagnostic libclang produces is written to the diagnostics
        stream; the first one of error severity aborts the parse.
        """
        try:
            with open(filename, "rb"):
                pass
        except OSError as exc:
            raise FileOpenError(filename, exc.strerror or str(exc)) from exc

        if args is None:
            args = self.compiler_args()
        _log.debug("Parsing %s with %s", filename, list(args))
        try:
            tu = self.index.parse(filename, args=list(args))
        except TranslationUnitLoadError as exc:
            raise TreeProviderError(f"error parsing {filename}: {exc}") from exc

        printed: List[str] = []
        for diag in tu.diagnostics:
            text = format_diagnostic(diag)
            printed.append(text)
            self.stream.write(text + "\n")
            if diag.severity >= SEVERITY_ERROR:
                self.stream.write("Aborting parse.\n")
                raise ParseError(filename, printed)
        return tu


__all__ = [
    "ResultKind",
    "cursor_file",
    "cursor_location",
    "canonical_kind",
    "is_void_cast",
    "is_unprototyped",
    "result_kind",
    "cast_extent",
    "format_diagnostic",
    "gcc_system_include_dir",
    "TreeProvider",
]
