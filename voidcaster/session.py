"""
voidcaster/session.py — one voidcaster run.

A ``Session`` owns every piece of state that lives for the duration of a
run: the report sink, the edit queue and the "was anything suggested" flag.
Keeping them on an object (instead of module globals) lets tests run many
isolated sessions in one process.

Lifecycle
─────────
  1. ``process_file()`` for each input file, in order; the first file that
     cannot be opened or parsed ends the batch
  2. interactive mode only: ``PatchEngine.apply()`` on the queued edits
  3. the exit code is derived from the first failure, or from the findings
     when extended status is on
"""

from __future__ import annotations

import logging
from typing import Any, Optional, TextIO

from voidcaster.classifier import Classifier
from voidcaster.config import VoidcasterConfig
from voidcaster.errors import FileOpenError, ParseError, TreeProviderError
from voidcaster.interact import ConfirmationBridge
from voidcaster.model import ExitCode
from voidcaster.patch import EditQueue, PatchEngine, PatchReport
from voidcaster.reporting import FindingCollector, PrintingSink
from voidcaster.tree import TreeProvider

_log = logging.getLogger(__name__)


class Session:
    """
    Drives classification (and, in interactive mode, patching) of a batch.

    Parameters
    ----------
    config   : run configuration
    provider : Tree Provider to parse with; created from ``config`` on first
               use when omitted
    stdin / stdout : prompt I/O for interactive mode
    report_stream  : destination of printed findings in non-interactive mode
    """

    def __init__(
        self,
        config: VoidcasterConfig,
        provider: Optional[Any] = None,
        stdin: Optional[TextIO] = None,
        stdout: Optional[TextIO] = None,
        report_stream: Optional[TextIO] = None,
    ) -> None:
        self.config = config
        self.queue = EditQueue()
        self._provider = provider
        self.sink: FindingCollector
        if config.interactive:
            self.sink = ConfirmationBridge(self.queue, stdin=stdin, stdout=stdout)
        else:
            self.sink = PrintingSink(config.output_format, stream=report_stream)
        self.patch_report: Optional[PatchReport] = None
        self.files_done = 0

    @property
    def provider(self) -> Any:
        if self._provider is None:
            self._provider = TreeProvider(self.config)
        return self._provider

    @property
    def suggested(self) -> bool:
        return self.sink.suggested

    def process_file(self, filename: str) -> Classifier:
        """Parse and classify one file; returns the classifier for its counters."""
        tu = self.provider.parse(filename)
        classifier = Classifier(self.sink, include_headers=self.config.include_headers)
        classifier.visit_translation_unit(tu)
        self.files_done += 1
        return classifier

    def apply_edits(self) -> PatchReport:
        """Apply every queued edit, then forget them."""
        engine = PatchEngine(self.queue, backup_suffix=self.config.backup_suffix)
        report = engine.apply()
        self.queue.clear()
        self.patch_report = report
        return report

    def run(self) -> ExitCode:
        """
        Process all configured files.

        ``InputExhausted`` from the confirmation prompt is not handled here:
        it ends the run before any edit is applied.
        """
        ret = ExitCode.OK
        try:
            for filename in self.config.files:
                self.process_file(filename)
        except (FileOpenError, ParseError, TreeProviderError) as exc:
            _log.error("%s", exc)
            ret = exc.exit_code

        if self.config.interactive:
            self.apply_edits()

        if (
            ret == ExitCode.OK
            and self.config.extended_status
            and not self.config.interactive
            and self.suggested
        ):
            ret = ExitCode.EXT_SUGGEST
        return ret


__all__ = ["Session"]
