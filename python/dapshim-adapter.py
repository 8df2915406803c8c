#!/usr/bin/env python3
"""Entry point for the dapshim debug adapter when run from a checkout."""

from __future__ import annotations

import sys
from pathlib import Path

PYTHON_DIR = Path(__file__).resolve().parent
if str(PYTHON_DIR) not in sys.path:
    sys.path.insert(0, str(PYTHON_DIR))

from dapshim.adapter import main  # noqa: E402


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
