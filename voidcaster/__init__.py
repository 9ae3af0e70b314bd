"""
voidcaster — casts to void where they belong, and nowhere else
==============================================================

Finds two kinds of defects around discarded function-call results in C
sources parsed by libclang:

* a call with a concrete result used as a bare statement (missing
  ``(void)`` cast), and
* a call to a ``void`` function wrapped in a ``(void)`` cast (pointless
  cast).

In interactive mode each finding is shown to the operator and accepted
fixes are written back to the source files, each with a ``~`` backup.

Core modules
------------
model
    Locations, extents, descent state, classifications, modifications.
tree
    libclang binding: parsing, diagnostics, cursor helpers.
classifier
    The AST walker deciding the fate of every call expression.
reporting
    Report sink protocol and the printing sink.
interact
    Confirmation bridge for interactive mode.
patch
    Edit queue and single-pass patch engine.
session
    One run: files in, findings and rewritten files out.

Quick start
-----------
>>> from voidcaster import Session, VoidcasterConfig
>>> session = Session(VoidcasterConfig(files=["main.c"]))
>>> exit_code = session.run()
"""

from __future__ import annotations

import importlib
import logging
import sys
from typing import TYPE_CHECKING, List

# ---------------------------------------------------------------------------
# Package metadata
# ---------------------------------------------------------------------------

__version__ = "1.0.0"
__license__ = "MIT"
__all__: List[str] = ["__version__"]

_log = logging.getLogger(__name__)
_log.addHandler(logging.NullHandler())

# ---------------------------------------------------------------------------
# Re-exported names: (module_name, list_of_names_to_import)
# ---------------------------------------------------------------------------

_CORE_MODULES = {
    "model": [
        "ExitCode",
        "Location",
        "Extent",
        "DescentState",
        "Finding",
        "Insert",
        "Remove",
    ],
    "errors": [
        "VoidcasterError",
        "PatchError",
    ],
    "config": [
        "VoidcasterConfig",
    ],
    "tree": [
        "TreeProvider",
    ],
    "classifier": [
        "Classifier",
    ],
    "reporting": [
        "PrintingSink",
    ],
    "interact": [
        "ConfirmationBridge",
    ],
    "patch": [
        "EditQueue",
        "PatchEngine",
    ],
    "session": [
        "Session",
    ],
}


def _import_names(module_rel_name: str, names: List[str]) -> None:
    """Import *names* from a submodule and bind them in the package namespace."""
    fq_name = f"{__name__}.{module_rel_name}"
    try:
        mod = importlib.import_module(fq_name)
    except ImportError as exc:
        raise ImportError(
            f"voidcaster: required submodule '{module_rel_name}' "
            f"failed to import: {exc}"
        ) from exc

    current_module = sys.modules[__name__]
    for name in names:
        obj = getattr(mod, name, None)
        if obj is None:
            raise AttributeError(f"voidcaster.{module_rel_name} does not export '{name}'")
        setattr(current_module, name, obj)
        __all__.append(name)


for _mod, _names in _CORE_MODULES.items():
    _import_names(_mod, _names)

del _mod, _names


if TYPE_CHECKING:
    from .model import (
        ExitCode as ExitCode,
        Location as Location,
        Extent as Extent,
        DescentState as DescentState,
        Finding as Finding,
        Insert as Insert,
        Remove as Remove,
    )
    from .errors import VoidcasterError as VoidcasterError, PatchError as PatchError
    from .config import VoidcasterConfig as VoidcasterConfig
    from .tree import TreeProvider as TreeProvider
    from .classifier import Classifier as Classifier
    from .reporting import PrintingSink as PrintingSink
    from .interact import ConfirmationBridge as ConfirmationBridge
    from .patch import EditQueue as EditQueue, PatchEngine as PatchEngine
    from .session import Session as Session
