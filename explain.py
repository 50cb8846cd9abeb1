"""Approximate attributions for a single case, reconciled with the model."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

import numpy as np
import pandas as pd
import shap

from attribution_grid import AttributionGrid
from config import BASELINE_CURVE, K_NEIGHBORS, UNATTRIBUTED, WEIGHT_EPSILON
from features import FeatureVector
from neighbors import NeighborSet, inverse_distance_weights, select_neighbors
from predictor import CurvePredictor
from reference_curves import ReferenceCurveStore


@dataclass(frozen=True)
class Explanation:
    time_tag: str
    baseline: float
    contributions: Dict[str, float]
    prediction: float
    neighbors: NeighborSet
    weights: np.ndarray
    feature_values: Dict[str, Any]

    @property
    def time(self) -> float:
        return float(self.time_tag)

    @property
    def unattributed(self) -> float:
        return self.contributions[UNATTRIBUTED]

    def total(self) -> float:
        return self.baseline + sum(self.contributions.values())

    def to_frame(self, display_names: Optional[Mapping[str, str]] = None) -> pd.DataFrame:
        """Contributions ordered by magnitude, largest first.

        ``display_names`` relabels the feature column; the residual keeps its name.
        """
        display_names = display_names or {}
        rows = [
            {
                "feature": display_names.get(name, name),
                "value": self.feature_values.get(name),
                "contribution": value,
            }
            for name, value in self.contributions.items()
        ]
        frame = pd.DataFrame(rows, columns=["feature", "value", "contribution"])
        order = frame["contribution"].abs().sort_values(
            ascending=False, kind="mergesort"
        )
        return frame.loc[order.index].reset_index(drop=True)

    def to_shap(self) -> shap.Explanation:
        names = list(self.contributions)
        data = np.array(
            [self.feature_values.get(name, np.nan) for name in names], dtype=object
        )
        return shap.Explanation(
            values=np.array([self.contributions[n] for n in names], dtype=float),
            base_values=float(self.baseline),
            data=data,
            feature_names=names,
        )


def consistency_residual(
    baseline: float, attributions: Mapping[str, float], prediction: float
) -> float:
    """Amount that makes ``baseline + sum(attributions) + residual == prediction``."""
    return float(prediction) - (float(baseline) + float(sum(attributions.values())))


def assemble_explanation(
    tag: str,
    baseline: float,
    attributions: Mapping[str, float],
    residual: float,
    prediction: float,
    neighbors: NeighborSet,
    weights: np.ndarray,
    feature_values: Mapping[str, Any],
) -> Explanation:
    if UNATTRIBUTED in attributions:
        raise ValueError(f"{UNATTRIBUTED!r} is reserved for the residual term.")
    contributions = {name: float(v) for name, v in attributions.items()}
    contributions[UNATTRIBUTED] = float(residual)
    return Explanation(
        time_tag=tag,
        baseline=float(baseline),
        contributions=contributions,
        prediction=float(prediction),
        neighbors=neighbors,
        weights=weights,
        feature_values=dict(feature_values),
    )


def explain_case(
    features: FeatureVector,
    explanation_time: Any,
    grid: AttributionGrid,
    curves: ReferenceCurveStore,
    predictor: CurvePredictor,
    k: int = K_NEIGHBORS,
    eps: float = WEIGHT_EPSILON,
    baseline_curve: str = BASELINE_CURVE,
) -> Explanation:
    # Resolve the tag first: an unknown time point must not reach the model.
    table = grid.table(explanation_time)
    tag = table.tag

    distances = grid.distances(features)
    neighbors = select_neighbors(distances, k=k)
    weights = inverse_distance_weights(neighbors, eps=eps)
    attributions = grid.interpolate(neighbors, weights, tag)

    baseline = curves.baseline_at(baseline_curve, table.time)
    prediction = predictor.predict_at(features, table.time)
    residual = consistency_residual(baseline, attributions, prediction)

    return assemble_explanation(
        tag=tag,
        baseline=baseline,
        attributions=attributions,
        residual=residual,
        prediction=prediction,
        neighbors=neighbors,
        weights=weights,
        feature_values=features.labeled(),
    )
