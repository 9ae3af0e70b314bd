#!/usr/bin/env python3
"""voidcaster/main.py — command-line entry point.

Usage examples
--------------
    # Report missing and pointless casts to void
    voidcaster src/*.c

    # Same, with preprocessor settings
    voidcaster -DNDEBUG -Iinclude src/main.c

    # Fail a CI job (exit code 4) when anything is suggested
    voidcaster -s src/*.c

    # Review each finding and let voidcaster rewrite the files
    voidcaster -i src/main.c

Exit codes
----------
    0   OK (or findings only reported, without -s)
    1   command-line arguments were specified incorrectly
    2   a file could not be opened
    3   a file could not be parsed
    4   -s is set and a suggestion was given
    5   libclang failed internally
    6   memory management failed

The module doubles as ``python -m voidcaster`` via ``voidcaster/__main__.py``.
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional, Sequence, TextIO

from voidcaster import __version__
from voidcaster.config import OUTPUT_FORMATS, VoidcasterConfig
from voidcaster.errors import InputExhausted, UsageError, VoidcasterError
from voidcaster.model import ExitCode
from voidcaster.session import Session

_log = logging.getLogger("voidcaster")

PROG = "voidcaster"

_EPILOG = """\
Exit status:
 0  if OK
 1  if command-line arguments were specified incorrectly
 2  if a file could not be opened
 3  if a file could not be parsed
 4  if -s is set and a suggestion was given
 5  if libclang fails internally
 6  if memory management fails

Environment:
 VOIDCASTER_LIBCLANG_FILE  libclang shared library to load
 VOIDCASTER_LIBCLANG_PATH  directory containing the libclang shared library
"""


# ===========================================================================
# Utility helpers
# ===========================================================================

def _configure_logging(verbosity: int) -> None:
    """Set up the ``voidcaster`` logger.

    Parameters
    ----------
    verbosity:
        0 → WARNING, 1 → INFO, 2+ → DEBUG.
    """
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    root = logging.getLogger("voidcaster")
    if not root.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(
            logging.Formatter(
                fmt="%(asctime)s [%(levelname)-5.5s] %(name)s: %(message)s",
                datefmt="%H:%M:%S",
            )
        )
        root.addHandler(handler)
    else:
        for existing in root.handlers:
            if isinstance(existing, logging.StreamHandler):
                existing.setStream(sys.stderr)
    root.setLevel(level)


def _pointless(option: str) -> None:
    sys.stderr.write(f"Warning: it is pointless to specify {option} multiple times.\n")


class _ArgumentParser(argparse.ArgumentParser):
    """Argument errors exit with ``ExitCode.USAGE`` instead of argparse's 2."""

    def error(self, message: str) -> None:  # type: ignore[override]
        self.print_usage(sys.stderr)
        raise UsageError(f"{self.prog}: {message}")


def _build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog=PROG,
        usage="%(prog)s [OPTION]... FILE...",
        description="Proposes locations for casts to void in a C program.",
        epilog=_EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "files",
        nargs="*",
        metavar="FILE",
        help="C source files to check.",
    )
    parser.add_argument(
        "-D",
        dest="defines",
        action="append",
        default=[],
        metavar="MACRO[=VALUE]",
        help="macro to define",
    )
    parser.add_argument(
        "-I",
        dest="include_paths",
        action="append",
        default=[],
        metavar="PATH",
        help="add a path where the preprocessor shall search for includes",
    )
    parser.add_argument(
        "-g",
        dest="no_gcc_include",
        action="count",
        default=0,
        help="don't add the include path of the installed GCC automatically",
    )
    parser.add_argument(
        "-i",
        dest="interactive",
        action="count",
        default=0,
        help="interactive mode",
    )
    parser.add_argument(
        "-s",
        dest="extended_status",
        action="count",
        default=0,
        help="exit with code 4 if a suggestion is given",
    )
    parser.add_argument(
        "--include-headers",
        action="store_true",
        help="also check code that comes from included files",
    )
    parser.add_argument(
        "--output",
        choices=OUTPUT_FORMATS,
        default="text",
        help="report format in non-interactive mode (default: text)",
    )
    parser.add_argument(
        "--backup-suffix",
        default="~",
        metavar="SUFFIX",
        help='suffix of the backup made of each rewritten file (default: "~")',
    )
    parser.add_argument(
        "--libclang",
        dest="libclang_file",
        default=None,
        metavar="FILE",
        help="libclang shared library to load",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="increase log verbosity (-v info, -vv debug)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    return parser


def _config_from_args(args: argparse.Namespace) -> VoidcasterConfig:
    for option, count in (
        ("-g", args.no_gcc_include),
        ("-i", args.interactive),
        ("-s", args.extended_status),
    ):
        if count > 1:
            _pointless(option)

    config = VoidcasterConfig(
        files=list(args.files),
        interactive=bool(args.interactive),
        extended_status=bool(args.extended_status),
        add_gcc_include=not args.no_gcc_include,
        include_headers=args.include_headers,
        output_format=args.output,
        backup_suffix=args.backup_suffix,
        libclang_file=args.libclang_file,
    )
    for macro in args.defines:
        config.add_define(macro)
    for path in args.include_paths:
        config.add_include_path(path)
    config.apply_environment()
    return config


# ===========================================================================
# Main entry point
# ===========================================================================

def main(
    argv: Optional[Sequence[str]] = None,
    stdin: Optional[TextIO] = None,
    stdout: Optional[TextIO] = None,
) -> int:
    """Run the voidcaster CLI.

    Parameters
    ----------
    argv:
        Command-line arguments.  ``None`` → ``sys.argv[1:]``.
    stdin, stdout:
        Prompt I/O for interactive mode (defaults: the process's own).

    Returns
    -------
    int
        Exit code (see module docstring for semantics).
    """
    parser = _build_parser()
    try:
        args = parser.parse_args(argv)
    except UsageError as exc:
        sys.stderr.write(f"{exc}\n")
        return ExitCode.USAGE
    except SystemExit as exc:
        # --help / --version
        return exc.code if isinstance(exc.code, int) else ExitCode.USAGE

    _configure_logging(args.verbose)

    config = _config_from_args(args)
    problems: List[str] = config.validate()
    if problems:
        for problem in problems:
            sys.stderr.write(f"{PROG}: {problem}\n")
        parser.print_help(sys.stderr)
        return ExitCode.USAGE

    session = Session(config, stdin=stdin, stdout=stdout)
    try:
        return int(session.run())
    except InputExhausted:
        return ExitCode.OK
    except MemoryError:
        sys.stderr.write(f"{PROG}: out of memory\n")
        return ExitCode.MM
    except KeyboardInterrupt:
        _log.info("Interrupted by user.")
        return 130  # Standard UNIX convention for SIGINT
    except VoidcasterError as exc:
        _log.error("%s", exc)
        return exc.exit_code
    except Exception as exc:
        _log.error("Unhandled exception: %s", exc, exc_info=True)
        return ExitCode.CLANG_FAIL


if __name__ == "__main__":
    raise SystemExit(main())
