from __future__ import annotations

import math
import warnings
from typing import Any, List, Optional, Sequence

import numpy as np
import pandas as pd

from config import CAUSE, CURVE_TIME_MAX, CURVE_TIME_STEP, DEFAULT_QUERY_TIME
from features import FeatureVector


def dense_time_grid(
    stop: float = CURVE_TIME_MAX, step: float = CURVE_TIME_STEP
) -> np.ndarray:
    """Uniform display grid 0..stop inclusive."""
    n_steps = int(math.floor(float(stop) / float(step) + 1e-9))
    return np.arange(n_steps + 1, dtype=float) * float(step)


def parse_time_points(
    text: Optional[str], default: float = DEFAULT_QUERY_TIME
) -> List[float]:
    """Parse a comma-separated list of time points.

    Tokens that are not finite, non-negative numbers are dropped; if nothing
    survives, ``[default]`` is returned.
    """
    times: List[float] = []
    for token in (text or "").split(","):
        token = token.strip()
        if not token:
            continue
        try:
            value = float(token)
        except ValueError:
            continue
        if math.isfinite(value) and value >= 0:
            times.append(value)
    if not times:
        warnings.warn(
            f"No valid time points in {text!r}; using {default}.",
            UserWarning,
            stacklevel=2,
        )
        return [float(default)]
    return times


def is_non_decreasing(values: Sequence[float], atol: float = 1e-12) -> bool:
    arr = np.asarray(values, dtype=float)
    return bool(np.all(np.diff(arr) >= -atol))


class CurvePredictor:
    """Cumulative-incidence predictions from a fitted model artifact.

    Models exposing ``predict_cumulative_incidence(X, times, cause)`` are used
    as competing-risks models. scikit-survival estimators are used as
    single-event models with ``CIF(t) = 1 - S(t)``.
    """

    def __init__(
        self,
        model: Any,
        preprocessor: Any = None,
        cause: int = CAUSE,
    ) -> None:
        if hasattr(model, "predict_cumulative_incidence"):
            self._kind = "competing_risks"
        elif hasattr(model, "predict_survival_function") and hasattr(
            model, "unique_times_"
        ):
            self._kind = "survival"
        else:
            raise TypeError(
                f"{type(model).__name__} exposes neither predict_cumulative_incidence "
                "nor a scikit-survival predict_survival_function."
            )
        self.model = model
        self.preprocessor = preprocessor
        self.cause = int(cause)

    def _design(self, features: FeatureVector) -> Any:
        frame = features.to_frame()
        if self.preprocessor is not None:
            return self.preprocessor.transform(frame)
        design = frame.copy()
        for name in features.schema.categorical_names:
            design[name] = pd.to_numeric(
                design[name].astype(str), errors="coerce"
            ).astype(float)
        if self._kind == "survival":
            return design.to_numpy(dtype=float)
        return design

    def _survival_cif(self, X: Any, times: np.ndarray, cause: int) -> np.ndarray:
        if cause != 1:
            raise ValueError(
                f"Single-event survival model has no cause {cause}; only cause 1."
            )
        surv = np.asarray(
            self.model.predict_survival_function(X, return_array=True), dtype=float
        )
        if surv.ndim == 1:
            surv = surv.reshape(1, -1)
        grid = np.asarray(self.model.unique_times_, dtype=float).ravel()
        pos = np.searchsorted(grid, times, side="right") - 1
        surv_at = np.where(pos >= 0, surv[0, np.clip(pos, 0, None)], 1.0)
        return 1.0 - surv_at

    def predict(
        self,
        features: FeatureVector,
        times: Sequence[float],
        cause: Optional[int] = None,
    ) -> pd.Series:
        times_arr = np.asarray(list(times), dtype=float).ravel()
        if times_arr.size == 0:
            raise ValueError("At least one time point is required.")
        if np.any(~np.isfinite(times_arr)) or np.any(times_arr < 0):
            raise ValueError("Prediction times must be finite and non-negative.")
        cause = self.cause if cause is None else int(cause)

        X = self._design(features)
        if self._kind == "survival":
            cif = self._survival_cif(X, times_arr, cause)
        else:
            cif = np.asarray(
                self.model.predict_cumulative_incidence(X, times_arr, cause),
                dtype=float,
            )
            cif = cif.reshape(-1) if cif.ndim == 1 else cif[0]
        if cif.shape[0] != times_arr.shape[0]:
            raise ValueError(
                f"Model returned {cif.shape[0]} values for {times_arr.shape[0]} times."
            )
        return pd.Series(cif, index=pd.Index(times_arr, name="Time"), name="CIF")

    def predict_at(
        self, features: FeatureVector, time: float, cause: Optional[int] = None
    ) -> float:
        return float(self.predict(features, [time], cause=cause).iloc[0])

    def predict_curve(
        self, features: FeatureVector, cause: Optional[int] = None
    ) -> pd.Series:
        curve = self.predict(features, dense_time_grid(), cause=cause)
        if not is_non_decreasing(curve.to_numpy()):
            warnings.warn(
                "Predicted cumulative incidence decreases over time.",
                UserWarning,
                stacklevel=2,
            )
        return curve
