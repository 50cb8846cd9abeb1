"""Load-once artifacts and the request/response boundary of the explainer."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence

import joblib
import pandas as pd

from attribution_grid import AttributionGrid
from config import (
    BASELINE_CURVE,
    DEFAULT_EXPLANATION_TIME,
    DEFAULT_REFERENCE_CURVES,
    FEATURE_SCHEMA_STEM,
    GRID_STEM,
    MODEL_STEM,
    PREPROCESSOR_STEM,
    REFERENCE_CURVE_STEMS,
)
from data_paths import artifact_path, artifacts_root, find_artifact
from errors import ArtifactLoadError, ValidationError
from explain import Explanation, explain_case
from features import FeatureSchema, default_schema, encode_features, load_schema
from predictor import CurvePredictor, parse_time_points
from reference_curves import ReferenceCurveStore, load_reference_curves


@dataclass(frozen=True)
class ExplainerContext:
    """Process-wide, read-only state shared by all requests."""

    schema: FeatureSchema
    predictor: CurvePredictor
    grid: AttributionGrid
    curves: ReferenceCurveStore

    @property
    def explanation_tags(self) -> list[str]:
        return self.grid.tags


@dataclass(frozen=True)
class PredictionRequest:
    values: Mapping[str, Any]
    explanation_time: Any = DEFAULT_EXPLANATION_TIME
    query_times: str = "60"
    references: Sequence[str] = DEFAULT_REFERENCE_CURVES


@dataclass(frozen=True)
class PredictionResponse:
    curve: pd.DataFrame
    table: pd.DataFrame
    references: Dict[str, pd.DataFrame]
    explanation: Explanation

    def to_dict(self) -> Dict[str, Any]:
        exp = self.explanation
        return {
            "curve": self.curve.to_dict(orient="list"),
            "table": self.table.to_dict(orient="records"),
            "references": {
                name: frame.to_dict(orient="list")
                for name, frame in self.references.items()
            },
            "explanation": {
                "time": exp.time_tag,
                "baseline": exp.baseline,
                "prediction": exp.prediction,
                "contributions": dict(exp.contributions),
                "neighbors": [
                    {"index": idx, "distance": dist, "weight": float(w)}
                    for (idx, dist), w in zip(exp.neighbors.pairs(), exp.weights)
                ],
            },
        }


def _read_grid(path: Path) -> pd.DataFrame:
    if path.suffix in {".pkl", ".pickle"}:
        return pd.read_pickle(path)
    return pd.read_csv(path)


def load_context(
    artifacts_dir: Optional[str | Path] = None,
    data_suffix: Optional[str] = None,
) -> ExplainerContext:
    """Load schema, model, grid and reference curves.

    Any failure is an ArtifactLoadError; the caller must not serve requests.
    """
    root = artifacts_root(artifacts_dir)
    print(f"Loading artifacts from {root}")

    schema_path = artifact_path(FEATURE_SCHEMA_STEM, "json", base=root, suffix=data_suffix)
    if schema_path.exists():
        try:
            schema = load_schema(schema_path)
        except (ValueError, KeyError, TypeError) as exc:
            raise ArtifactLoadError(f"Invalid feature schema {schema_path}: {exc}") from exc
        print(f"Feature schema loaded from {schema_path}")
    else:
        schema = default_schema()
    print(f"Features ({len(schema)}): {', '.join(schema.names)}")

    model_path = artifact_path(MODEL_STEM, "joblib", base=root, suffix=data_suffix)
    if not model_path.exists():
        raise ArtifactLoadError(f"Fitted model not found at {model_path}.")
    try:
        model = joblib.load(model_path)
    except Exception as exc:
        raise ArtifactLoadError(f"Failed to load model {model_path}: {exc}") from exc
    preprocessor = None
    preprocessor_path = artifact_path(
        PREPROCESSOR_STEM, "joblib", base=root, suffix=data_suffix
    )
    if preprocessor_path.exists():
        try:
            preprocessor = joblib.load(preprocessor_path)
        except Exception as exc:
            raise ArtifactLoadError(
                f"Failed to load preprocessor {preprocessor_path}: {exc}"
            ) from exc
    try:
        predictor = CurvePredictor(model, preprocessor=preprocessor)
    except TypeError as exc:
        raise ArtifactLoadError(str(exc)) from exc
    print(f"Model loaded from {model_path} ({type(model).__name__})")

    grid_path = find_artifact(
        GRID_STEM, ("csv", "pkl"), base=root, suffix=data_suffix
    )
    if grid_path is None:
        raise ArtifactLoadError(f"Precomputed grid {GRID_STEM!r} not found in {root}.")
    try:
        grid_frame = _read_grid(grid_path)
    except Exception as exc:
        raise ArtifactLoadError(f"Failed to read grid {grid_path}: {exc}") from exc
    grid = AttributionGrid.from_frame(grid_frame, schema)
    print(
        f"Grid loaded from {grid_path}: {len(grid)} rows, "
        f"time points {', '.join(grid.tags)}"
    )

    curves = load_reference_curves(
        {
            name: artifact_path(stem, "csv", base=root, suffix=data_suffix)
            for name, stem in REFERENCE_CURVE_STEMS.items()
        }
    )
    if BASELINE_CURVE not in curves:
        raise ArtifactLoadError(f"Baseline curve {BASELINE_CURVE!r} is not loaded.")

    return ExplainerContext(schema=schema, predictor=predictor, grid=grid, curves=curves)


def handle_request(context: ExplainerContext, request: PredictionRequest) -> PredictionResponse:
    features = encode_features(request.values, context.schema)
    # Reject bad time points and overlays before any model call.
    context.grid.table(request.explanation_time)
    overlays = {name: context.curves.get(name) for name in request.references}

    curve = context.predictor.predict_curve(features)
    curve_df = curve.reset_index()

    query_times = parse_time_points(request.query_times)
    table = context.predictor.predict(features, query_times).reset_index()

    explanation = explain_case(
        features,
        request.explanation_time,
        grid=context.grid,
        curves=context.curves,
        predictor=context.predictor,
    )
    return PredictionResponse(
        curve=curve_df,
        table=table,
        references={name: c.to_frame() for name, c in overlays.items()},
        explanation=explanation,
    )


__all__ = [
    "ArtifactLoadError",
    "ExplainerContext",
    "PredictionRequest",
    "PredictionResponse",
    "ValidationError",
    "handle_request",
    "load_context",
]
