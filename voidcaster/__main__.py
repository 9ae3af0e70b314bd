#!/usr/bin/env python3
"""Entry point for ``python -m voidcaster``; see :mod:`voidcaster.main`."""

from voidcaster.main import main

if __name__ == "__main__":
    raise SystemExit(main())
