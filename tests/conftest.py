"""
Pytest configuration for tests under tests/.

These tests import `funnelgraph.*` and the `fixtures` helpers. When pytest is
invoked without the package installed, the repository root is not
automatically on sys.path, so `import funnelgraph` fails during collection.

This conftest puts the repository root and tests/ on sys.path regardless of
invocation cwd.
"""

from __future__ import annotations

import sys
from pathlib import Path


TESTS_DIR = Path(__file__).resolve().parent
REPO_ROOT = TESTS_DIR.parent

for path in (REPO_ROOT, TESTS_DIR):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))
