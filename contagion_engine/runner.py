"""
Runner script for the contagion engine.

Loads a JSON scenario, builds the density provider, mobility graph and
simulation config, sweeps the parameter grid and derives regulatory
thresholds.

Usage
-----
    python runner.py scenario.json [--output-dir results/] [--max-workers 4]

Outputs (written to the output directory)
    response_surface.csv     one row per grid cell
    response_surface.json    cells with per-run metrics
    thresholds.json          derivation result (safe / thresholds / message)
    config_snapshot.json     scenario plus its SHA-256 hash
    experiment_metadata.json paths, hash and timestamp
"""

from __future__ import annotations

import argparse
import hashlib
import json
import math
import time
from pathlib import Path
from typing import Any

from .config import load_scenario
from .policy import PolicyEvaluation, evaluate_policy_plan, scenario_from_config
from .response_surface import surface_to_frame


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Contagion engine: response surface and regulatory thresholds."
    )
    parser.add_argument("scenario", help="Path to JSON scenario file.")
    parser.add_argument(
        "--output-dir",
        default="results",
        help="Directory for output files (default: results/).",
    )
    parser.add_argument(
        "--max-workers",
        type=int,
        default=None,
        help="Thread pool size for the sweep (default: serial).",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Wall-clock limit for the sweep in seconds.",
    )
    return parser.parse_args(argv)


# ---------------------------------------------------------------------------
# Filesystem helpers
# ---------------------------------------------------------------------------


def _ensure_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def _config_hash(cfg: dict) -> str:
    """Compute a SHA-256 hash of the JSON-serialised config for reproducibility."""
    serialised = json.dumps(cfg, sort_keys=True).encode("utf-8")
    return hashlib.sha256(serialised).hexdigest()


def _nan_to_none(v: Any) -> Any:
    """Recursively replace float NaN with None for valid JSON serialisation."""
    if isinstance(v, float) and math.isnan(v):
        return None
    if isinstance(v, dict):
        return {k: _nan_to_none(x) for k, x in v.items()}
    if isinstance(v, (list, tuple)):
        return [_nan_to_none(x) for x in v]
    return v


def _save_config_snapshot(output_dir: Path, cfg: dict) -> None:
    snapshot = {
        "config": cfg,
        "sha256": _config_hash(cfg),
    }
    (output_dir / "config_snapshot.json").write_text(json.dumps(snapshot, indent=2))


def write_outputs(evaluation: PolicyEvaluation, output_dir: Path) -> None:
    """Persist a policy evaluation as CSV + JSON."""
    surface_to_frame(evaluation.surface).to_csv(
        output_dir / "response_surface.csv", index=False
    )
    (output_dir / "response_surface.json").write_text(
        json.dumps(
            _nan_to_none([cell.to_dict(include_raw=True) for cell in evaluation.surface]),
            indent=2,
        )
    )
    (output_dir / "thresholds.json").write_text(
        json.dumps(evaluation.thresholds.to_dict(), indent=2)
    )


# ---------------------------------------------------------------------------
# Reporting
# ---------------------------------------------------------------------------


def _print_summary(evaluation: PolicyEvaluation, n_regions: int, elapsed: float) -> None:
    sep = "-" * 58
    surface = evaluation.surface
    print(sep)
    print("  Contagion Engine: Response Surface")
    print(sep)
    print(f"  Regions            : {n_regions}")
    print(f"  Grid cells         : {len(surface)}")
    if surface:
        print(f"  Runs / cell        : {surface[0].stats.n_runs}")
        worst = max(surface, key=lambda c: c.stats.probability_harmful)
        print(f"  Max P(harmful)     : {worst.stats.probability_harmful:.4f}"
              f"  (seed={worst.seed_fraction}, signal={worst.signal_strength},"
              f" focus={worst.spatial_focus_key})")
    print(f"  Elapsed            : {elapsed:.2f}s")
    print()
    derivation = evaluation.thresholds
    if not derivation.safe:
        print(f"  {derivation.message}")
    else:
        print("  Regulatory Thresholds (independent maxima per focus)")
        hdr = f"  {'Focus':<24}  {'MaxSeed':>8}  {'MaxSignal':>9}"
        print(hdr)
        for t in derivation.thresholds or []:
            print(f"  {t.spatial_focus_key:<24}  {t.max_safe_seed_fraction:>8.4f}"
                  f"  {t.max_safe_signal_strength:>9.4f}")
    print(sep)


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> None:
    args = _parse_args(argv)
    output_dir = Path(args.output_dir)
    _ensure_dir(output_dir)

    cfg = load_scenario(args.scenario)
    _save_config_snapshot(output_dir, cfg)

    # Log experiment metadata
    (output_dir / "experiment_metadata.json").write_text(
        json.dumps(
            {
                "scenario_file": str(Path(args.scenario).resolve()),
                "output_dir": str(output_dir.resolve()),
                "config_sha256": _config_hash(cfg),
                "timestamp": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
            },
            indent=2,
        )
    )

    scenario = scenario_from_config(cfg)
    n_regions = len(scenario.density_provider.list_regions())
    plan = scenario.plan
    print(
        f"[Surface] regions={n_regions} | cells={len(plan.param_grid)} | "
        f"runs/cell={plan.runs_per_point}"
    )

    t0 = time.perf_counter()
    evaluation = evaluate_policy_plan(
        scenario.density_provider,
        scenario.mobility_graph,
        plan,
        max_workers=args.max_workers,
        timeout=args.timeout,
    )
    elapsed = time.perf_counter() - t0

    write_outputs(evaluation, output_dir)
    _print_summary(evaluation, n_regions, elapsed)
    print(f"  Results saved to : {output_dir.resolve()}")


if __name__ == "__main__":
    main()
