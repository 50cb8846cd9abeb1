"""Command-line entry point: one prediction + explanation per invocation."""

from __future__ import annotations

import argparse
import contextlib
import json
import os
import sys
from typing import Dict, List, Optional, Sequence

from tabulate import tabulate

from config import (
    DEFAULT_EXPLANATION_TIME,
    DEFAULT_REFERENCE_CURVES,
    EXPLANATION_TIME_TAGS,
    FEATURE_DEFAULTS,
    REFERENCE_CURVE_LABELS,
)
from data_paths import set_data_suffix
from errors import ArtifactLoadError, ValidationError
from service import PredictionRequest, PredictionResponse, handle_request, load_context


def build_arg_parser(add_help: bool = True) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        add_help=add_help,
        description="Predict a cumulative-incidence curve and explain it.",
    )
    parser.add_argument("--artifacts-dir", type=str, default=None)
    parser.add_argument(
        "--data-suffix",
        type=str,
        default=None,
        help="Suffix appended to artifact file stems (e.g., 'v2').",
    )
    parser.add_argument(
        "--feature",
        action="append",
        default=[],
        metavar="NAME=VALUE",
        help="Feature value; repeat for every feature.",
    )
    parser.add_argument(
        "--use-defaults",
        action="store_true",
        help="Fill features not given with --feature from the form defaults.",
    )
    parser.add_argument(
        "--explain-time",
        type=str,
        default=None,
        help=f"Explanation time point, one of {', '.join(EXPLANATION_TIME_TAGS)}.",
    )
    parser.add_argument(
        "--query-times",
        type=str,
        default=None,
        help="Comma-separated time points for the CIF table.",
    )
    parser.add_argument(
        "--reference",
        type=str,
        default=None,
        help="Comma list of reference curves to overlay (overall,pos,neg).",
    )
    parser.add_argument("--json", dest="as_json", action="store_true")
    return parser


def _parse_csv(text: str | None) -> list[str]:
    if not text:
        return []
    return [token.strip() for token in text.split(",") if token.strip()]


def _parse_feature_args(pairs: Sequence[str]) -> Dict[str, str]:
    values: Dict[str, str] = {}
    for pair in pairs:
        name, sep, value = pair.partition("=")
        if not sep or not name.strip():
            raise ValidationError("--feature", "expected NAME=VALUE", pair)
        values[name.strip()] = value.strip()
    return values


def resolve_args(args: argparse.Namespace) -> Dict[str, object]:
    values: Dict[str, object] = {}
    if args.use_defaults:
        values.update(FEATURE_DEFAULTS)
    values.update(_parse_feature_args(args.feature))

    references = _parse_csv(args.reference or os.getenv("REFERENCE_CURVES"))
    return {
        "artifacts_dir": args.artifacts_dir or os.getenv("ARTIFACTS_DIR"),
        "data_suffix": (args.data_suffix or os.getenv("DATA_SUFFIX") or "").strip(),
        "values": values,
        "explanation_time": args.explain_time
        or os.getenv("EXPLAIN_TIME")
        or DEFAULT_EXPLANATION_TIME,
        "query_times": args.query_times
        if args.query_times is not None
        else os.getenv("CIF_TIME_POINTS", "60"),
        "references": references or list(DEFAULT_REFERENCE_CURVES),
    }


def print_response(
    response: PredictionResponse, display_names: Optional[Dict[str, str]] = None
) -> None:
    exp = response.explanation
    print("CIF values at requested time points")
    table = response.table.copy()
    table["CIF"] = table["CIF"].map(lambda v: f"{v:.3f}")
    print(tabulate(table, headers="keys", tablefmt="github", showindex=False))
    print()
    for name in response.references:
        label = REFERENCE_CURVE_LABELS.get(name, name)
        print(f"Reference overlay: {label} ({len(response.references[name])} points)")
    print()
    print(f"Approximate attribution at time = {exp.time_tag}")
    print(
        tabulate(
            exp.to_frame(display_names),
            headers="keys",
            tablefmt="github",
            floatfmt="+.4f",
            showindex=False,
        )
    )
    print(
        f"baseline {exp.baseline:.4f} + contributions "
        f"{sum(exp.contributions.values()):+.4f} = prediction {exp.prediction:.4f}"
    )


def main(argv: Optional[List[str]] = None) -> int:
    args = build_arg_parser().parse_args(argv)
    try:
        resolved = resolve_args(args)
    except ValidationError as exc:
        print(f"Invalid request: {exc}", file=sys.stderr)
        return 2

    set_data_suffix(resolved["data_suffix"])
    # Keep stdout clean for JSON consumers.
    load_log = sys.stderr if args.as_json else sys.stdout
    try:
        with contextlib.redirect_stdout(load_log):
            context = load_context(resolved["artifacts_dir"])
    except ArtifactLoadError as exc:
        print(f"CRITICAL: failed to load artifacts: {exc}", file=sys.stderr)
        return 1

    request = PredictionRequest(
        values=resolved["values"],
        explanation_time=resolved["explanation_time"],
        query_times=resolved["query_times"],
        references=resolved["references"],
    )
    try:
        response = handle_request(context, request)
    except ValidationError as exc:
        print(f"Invalid request: {exc}", file=sys.stderr)
        return 2

    if args.as_json:
        print(json.dumps(response.to_dict(), indent=4, default=float))
    else:
        print_response(response, context.schema.display_names)
    return 0


if __name__ == "__main__":
    sys.exit(main())
