"""Punto de entrada: ``python -m reptile_care``."""

from __future__ import annotations

from reptile_care.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
