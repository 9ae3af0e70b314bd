"""
voidcaster/config.py — run configuration.

One ``VoidcasterConfig`` is built by the CLI (or directly by library users and
tests) and handed to the ``Session``.  Environment variables only fill in the
libclang location when the command line leaves it open.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List, Mapping, Optional

ENV_LIBCLANG_FILE = "VOIDCASTER_LIBCLANG_FILE"
ENV_LIBCLANG_PATH = "VOIDCASTER_LIBCLANG_PATH"

OUTPUT_FORMATS = ("text", "json")


@dataclass
class VoidcasterConfig:
    """Tuning knobs for one voidcaster run."""
    files: List[str] = field(default_factory=list)
    clang_args: List[str] = field(default_factory=list)
    interactive: bool = False
    extended_status: bool = False
    add_gcc_include: bool = True
    include_headers: bool = False
    output_format: str = "text"
    backup_suffix: str = "~"
    libclang_file: Optional[str] = None
    libclang_path: Optional[str] = None

    def add_define(self, macro: str) -> None:
        self.clang_args.append(f"-D{macro}")

    def add_include_path(self, path: str) -> None:
        self.clang_args.append(f"-I{path}")

    def apply_environment(self, environ: Optional[Mapping[str, str]] = None) -> None:
        """Fill the libclang location from the environment if still unset."""
        env = os.environ if environ is None else environ
        if self.libclang_file is None and env.get(ENV_LIBCLANG_FILE):
            self.libclang_file = env[ENV_LIBCLANG_FILE]
        if self.libclang_path is None and env.get(ENV_LIBCLANG_PATH):
            self.libclang_path = env[ENV_LIBCLANG_PATH]

    def validate(self) -> List[str]:
        """Return a list of problems (empty if valid)."""
        problems: List[str] = []
        if not self.files:
            problems.append("no file specified")
        if self.output_format not in OUTPUT_FORMATS:
            problems.append(f"unknown output format {self.output_format!r}")
        if not self.backup_suffix:
            problems.append("backup suffix must not be empty")
        return problems
