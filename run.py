#!/usr/bin/env python3
"""
Command line launcher for midi2roll.

Ensures the `midi2roll` package is importable when run from a checkout and
hands over to the command line entry point.
"""
import os
import sys

# Ensure the local package is importable (run.py lives next to the package directory)
current_dir = os.path.dirname(os.path.abspath(__file__))
if current_dir not in sys.path:
    sys.path.insert(0, current_dir)

from midi2roll.main import main

if __name__ == "__main__":
    sys.exit(main())
