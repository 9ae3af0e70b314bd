"""
voidcaster/reporting.py — where the classifier's findings go.

The classifier only knows the ``ReportSink`` protocol.  Two implementations
exist:

* ``PrintingSink`` (this module) writes findings out, GCC-style on stderr or
  as JSON lines on stdout;
* ``ConfirmationBridge`` (``voidcaster.interact``) asks the operator about
  each finding and queues the accepted fixes.

Both keep every finding they were handed in ``findings``; the session uses
that list for the ``-s`` exit status.
"""

from __future__ import annotations

import logging
import sys
from typing import List, Optional, Protocol, TextIO, runtime_checkable

from voidcaster.model import Finding, FindingKind, Location

_log = logging.getLogger(__name__)


@runtime_checkable
class ReportSink(Protocol):
    """Callbacks invoked by the classifier, in traversal order."""

    def on_missing_cast(self, file: str, func: str, location: Location) -> None:
        ...

    def on_superfluous_cast(
        self, file: str, func: str, start: Location, end: Location
    ) -> None:
        ...

    def on_unknown(
        self, file: str, func: str, location: Location, reason: str
    ) -> None:
        ...


class FindingCollector:
    """Shared bookkeeping: remember findings, warn about unknown calls."""

    def __init__(self) -> None:
        self.findings: List[Finding] = []
        self.unknown_calls = 0

    @property
    def suggested(self) -> bool:
        return bool(self.findings)

    def _record_missing(self, file: str, func: str, location: Location) -> Finding:
        finding = Finding(FindingKind.MISSING_CAST, file, func, location)
        self.findings.append(finding)
        return finding

    def _record_superfluous(
        self, file: str, func: str, start: Location, end: Location
    ) -> Finding:
        finding = Finding(FindingKind.SUPERFLUOUS_CAST, file, func, start, end)
        self.findings.append(finding)
        return finding

    def on_unknown(
        self, file: str, func: str, location: Location, reason: str
    ) -> None:
        self.unknown_calls += 1
        _log.warning(
            "%s:%d:%d: Warning: can't check call to %s (%s).",
            file, location.line, location.column, func, reason,
        )


class PrintingSink(FindingCollector):
    """
    Reports each finding immediately.

    ``output_format`` is ``"text"`` (one GCC-style line per finding on
    *stream*, stderr by default) or ``"json"`` (one JSON object per line on
    *stream*, stdout by default).
    """

    def __init__(
        self,
        output_format: str = "text",
        stream: Optional[TextIO] = None,
    ) -> None:
        super().__init__()
        self.output_format = output_format
        self._stream = stream

    @property
    def stream(self) -> TextIO:
        if self._stream is not None:
            return self._stream
        return sys.stdout if self.output_format == "json" else sys.stderr

    def _write(self, finding: Finding) -> None:
        if self.output_format == "json":
            self.stream.write(finding.to_json_str() + "\n")
        else:
            self.stream.write(finding.to_gcc_format() + "\n")

    def on_missing_cast(self, file: str, func: str, location: Location) -> None:
        self._write(self._record_missing(file, func, location))

    def on_superfluous_cast(
        self, file: str, func: str, start: Location, end: Location
    ) -> None:
        self._write(self._record_superfluous(file, func, start, end))


__all__ = ["ReportSink", "FindingCollector", "PrintingSink"]
