# conftest.py (package root)
#
# Ensures that the repository root (the directory containing this package) is
# on sys.path when pytest is invoked without an installed package, so that
# "from contagion_engine.cascade import ..." and the root-level runner
# wrapper both resolve.
#
# Usage:
#   pytest contagion_engine/tests/ -v
#   pytest contagion_engine/tests/test_cascade.py -v

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))
