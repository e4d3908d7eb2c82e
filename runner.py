"""Repository-level CLI entrypoint for the contagion engine.

This wrapper preserves the documented invocation style:

    python runner.py <scenario.json> [--output-dir results/]

It delegates execution to :mod:`contagion_engine.runner`.
"""

from __future__ import annotations

import sys
from pathlib import Path

from contagion_engine.runner import main


def _rewrite_scenario_path_arg(argv: list[str]) -> list[str]:
    """Rewrite the scenario argument to ``contagion_engine/<name>`` when needed.

    Example scenarios ship inside the package directory, so
    ``python runner.py scenario_two_city.json`` works from the repository root.
    """
    if len(argv) < 2:
        return argv

    candidate = Path(argv[1])
    if candidate.exists():
        return argv

    alt = Path("contagion_engine") / candidate
    if alt.exists():
        out = list(argv)
        out[1] = str(alt)
        return out

    return argv


if __name__ == "__main__":
    sys.argv = _rewrite_scenario_path_arg(sys.argv)
    main()
