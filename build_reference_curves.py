"""Build the overall / ORN positive / ORN negative reference curve artifacts.

The cohort table holds one row per patient with a follow-up time, an event
code (0 censored, 1 ORN, anything else a competing event) and a 0/1 group
column splitting the cohort into the positive and negative overlays.
"""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Dict, Optional, Sequence

import pandas as pd

from config import CAUSE, REFERENCE_CURVE_STEMS
from data_paths import artifact_path
from predictor import dense_time_grid
from reference_curves import ReferenceCurve, cohort_reference_curve


def build_reference_curves(
    cohort: pd.DataFrame,
    duration_col: str,
    event_col: str,
    group_col: str,
    times: Optional[Sequence[float]] = None,
    cause: int = CAUSE,
) -> Dict[str, ReferenceCurve]:
    missing = [c for c in (duration_col, event_col, group_col) if c not in cohort.columns]
    if missing:
        raise ValueError(f"Cohort table is missing columns: {missing}")
    cohort = cohort.dropna(subset=[duration_col, event_col, group_col])
    times = dense_time_grid() if times is None else list(times)
    group = pd.to_numeric(cohort[group_col], errors="coerce")

    subsets = {
        "overall": cohort,
        "pos": cohort.loc[group == 1],
        "neg": cohort.loc[group == 0],
    }
    curves = {}
    for name, subset in subsets.items():
        if subset.empty:
            raise ValueError(f"No patients in the {name!r} reference group.")
        curves[name] = cohort_reference_curve(
            name,
            durations=subset[duration_col].to_numpy(dtype=float),
            events=subset[event_col].to_numpy(dtype=int),
            times=times,
            cause=cause,
        )
        print(f"Reference curve {name!r}: {len(subset):,} patients")
    return curves


def write_reference_curves(
    curves: Dict[str, ReferenceCurve],
    artifacts_dir: Optional[str | Path] = None,
    data_suffix: Optional[str] = None,
) -> Dict[str, Path]:
    written = {}
    for name, curve in curves.items():
        path = artifact_path(
            REFERENCE_CURVE_STEMS[name], "csv", base=artifacts_dir, suffix=data_suffix
        )
        path.parent.mkdir(parents=True, exist_ok=True)
        curve.to_frame().to_csv(path, index=False)
        print(f"Wrote {path}")
        written[name] = path
    return written


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Write mean CIF reference curves from a cohort table."
    )
    parser.add_argument("cohort", help="CSV with one row per patient.")
    parser.add_argument("--duration-col", default="Time")
    parser.add_argument("--event-col", default="Event")
    parser.add_argument(
        "--group-col",
        default="ORN",
        help="0/1 column selecting the negative/positive overlay groups.",
    )
    parser.add_argument("--artifacts-dir", default=None)
    parser.add_argument(
        "--data-suffix",
        default="",
        help="Suffix appended to the written reference curve file names.",
    )
    args = parser.parse_args(argv)

    cohort = pd.read_csv(args.cohort)
    curves = build_reference_curves(
        cohort,
        duration_col=args.duration_col,
        event_col=args.event_col,
        group_col=args.group_col,
    )
    write_reference_curves(curves, args.artifacts_dir, args.data_suffix)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
