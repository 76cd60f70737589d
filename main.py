#!/usr/bin/env python3
# /vuit/main.py
"""
vuit launcher
=============

Runs vuit from a source checkout without installing it: puts ``src/`` on the
import path and hands over to `vuit.main.start`.
"""

import os
import sys

project_root = os.path.dirname(os.path.abspath(__file__))
src_dir = os.path.join(project_root, "src")
if src_dir not in sys.path:
    sys.path.insert(0, src_dir)

from vuit.main import start  # noqa: E402


if __name__ == "__main__":
    start()
