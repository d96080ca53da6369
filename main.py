#!/usr/bin/env python
"""
Main entry point for running laundry-ops from a source checkout.

Usage:
    python main.py serve
    python main.py seed
    python main.py capacity 48201 2026-03-02
"""

import sys
from pathlib import Path

# Add src to path - must be done before any local imports
_src_path = Path(__file__).parent / "src"
sys.path.insert(0, str(_src_path))

from laundry_ops.main import main

if __name__ == "__main__":
    sys.exit(main())
