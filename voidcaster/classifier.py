"""
voidcaster/classifier.py
════════════════════════

The tree walker that decides, for every call expression, whether its value
is used, deliberately discarded, silently dropped, or pointlessly cast away.

Context only ever flows one level down: a node derives its children's
``DescentState`` from its own kind and never forwards the state it received.

  node kind                         children see
  ───────────────────────────────   ─────────────────────────────────
  COMPOUND_STMT / CASE / DEFAULT    discard_context
  CSTYLE_CAST_EXPR to void          preceded_by_void_cast + cast extent
  anything else                     defaults

Calls are classified from the state their parent handed down:

  callee unresolved / no prototype  → Unknown (warned)
  void result, cast above           → SuperfluousCast (reported)
  void result, cast from a macro    → Unknown (warned)
  void result, no cast              → OkValueDiscardedAsVoid
  opaque result type                → Unknown (silent)
  concrete, discarded, no cast      → MissingCast (reported)
  concrete otherwise                → OkValueUsed

The comma operator is not looked into: in ``f(), g();`` neither call sits
directly below the statement list, so neither is reported.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Any, List, Optional, Tuple

from clang.cindex import CursorKind  # type: ignore[import-untyped]

from voidcaster.model import (
    INITIAL_STATE,
    Classification,
    DescentState,
    MissingCast,
    OkValueDiscardedAsVoid,
    OkValueUsed,
    SuperfluousCast,
    Unknown,
)
from voidcaster.reporting import ReportSink
from voidcaster.tree import (
    ResultKind,
    cast_extent,
    cursor_file,
    cursor_location,
    is_unprototyped,
    is_void_cast,
    result_kind,
)

_log = logging.getLogger(__name__)

_DISCARDING_KINDS = frozenset({
    CursorKind.COMPOUND_STMT,
    CursorKind.CASE_STMT,
    CursorKind.DEFAULT_STMT,
})

UNRESOLVED_REASON = "can't find original definition"
OPAQUE_REASON = "result type cannot be determined"
UNLOCATED_CAST_REASON = "cast to void has no source tokens of its own"


class Classifier:
    """
    Walks a clang AST and reports findings to a ``ReportSink``.

    Parameters
    ----------
    sink            : receives missing / superfluous / unknown callbacks
    include_headers : also descend into top-level declarations that come
                      from included files

    After a walk, ``counts`` holds how often each classification occurred
    (keyed by class name) and ``calls_seen`` the number of call expressions.
    """

    def __init__(self, sink: ReportSink, include_headers: bool = False) -> None:
        self.sink = sink
        self.include_headers = include_headers
        self.counts: Counter = Counter()
        self.calls_seen = 0

    # ── entry points ────────────────────────────────────────────────

    def visit_translation_unit(self, tu: Any) -> None:
        """Classify every call in ``tu``'s main file."""
        main_file = tu.spelling
        for child in tu.cursor.get_children():
            if not self.include_headers and cursor_file(child) != main_file:
                continue
            self.visit(child, INITIAL_STATE)
        _log.info(
            "%s: %d call(s) classified %s",
            main_file, self.calls_seen, dict(self.counts),
        )

    def visit(self, node: Any, state: DescentState = INITIAL_STATE) -> None:
        """
        Depth-first, pre-order walk of ``node`` and everything below it.

        An explicit stack replaces recursion so deeply nested expressions
        cannot exhaust the interpreter's recursion limit.
        """
        stack: List[Tuple[Any, DescentState]] = [(node, state)]
        while stack:
            cur, cur_state = stack.pop()
            child_state = self._step(cur, cur_state)
            children = list(cur.get_children())
            stack.extend((child, child_state) for child in reversed(children))

    # ── per-node rules ──────────────────────────────────────────────

    def _step(self, node: Any, state: DescentState) -> DescentState:
        """Handle ``node`` and return the state its children start from."""
        kind = node.kind
        if kind in _DISCARDING_KINDS:
            return DescentState.below_statement_list()
        if kind == CursorKind.CSTYLE_CAST_EXPR:
            if is_void_cast(node):
                return DescentState.below_void_cast(cast_extent(node))
            return INITIAL_STATE
        if kind == CursorKind.CALL_EXPR:
            self.calls_seen += 1
            verdict = self.classify_call(node, state)
            self.counts[type(verdict).__name__] += 1
        return INITIAL_STATE

    def classify_call(self, call: Any, state: DescentState) -> Classification:
        """Classify one call expression and report it if it is a finding."""
        func = call.spelling
        file = cursor_file(call)
        target: Optional[Any] = call.referenced

        if target is None or is_unprototyped(target):
            location = cursor_location(call)
            self.sink.on_unknown(file, func, location, UNRESOLVED_REASON)
            return Unknown(UNRESOLVED_REASON)

        returns = result_kind(target)
        if returns is ResultKind.NO_VALUE:
            if state.preceded_by_void_cast:
                extent = state.cast_extent
                if extent is None:
                    self.sink.on_unknown(
                        file, func, cursor_location(call), UNLOCATED_CAST_REASON
                    )
                    return Unknown(UNLOCATED_CAST_REASON)
                self.sink.on_superfluous_cast(file, func, extent.start, extent.end)
                return SuperfluousCast(extent)
            return OkValueDiscardedAsVoid()

        if returns is ResultKind.OPAQUE:
            _log.debug("%s:%s: skipping call to %s (%s)",
                       file, cursor_location(call), func, OPAQUE_REASON)
            return Unknown(OPAQUE_REASON)

        if state.discard_context and not state.preceded_by_void_cast:
            location = cursor_location(call)
            self.sink.on_missing_cast(file, func, location)
            return MissingCast(location)
        return OkValueUsed()


__all__ = [
    "Classifier",
    "UNRESOLVED_REASON",
    "OPAQUE_REASON",
    "UNLOCATED_CAST_REASON",
]
