"""Gower dissimilarity between one case and the rows of a reference table."""

from __future__ import annotations

from typing import Dict, List, Mapping, Optional

import numpy as np
import pandas as pd

from features import FeatureSchema, FeatureVector


def feature_ranges(reference: pd.DataFrame, schema: FeatureSchema) -> Dict[str, float]:
    """Observed max - min of every numeric schema feature present in ``reference``."""
    ranges: Dict[str, float] = {}
    for name in schema.numeric_names:
        if name not in reference.columns:
            continue
        col = pd.to_numeric(reference[name], errors="coerce").to_numpy(dtype=float)
        col = col[np.isfinite(col)]
        ranges[name] = float(col.max() - col.min()) if col.size else float("nan")
    return ranges


def shared_features(query: FeatureVector, reference: pd.DataFrame) -> List[str]:
    return [name for name in query.schema.names if name in reference.columns]


def gower_distances(
    query: FeatureVector,
    reference: pd.DataFrame,
    ranges: Optional[Mapping[str, float]] = None,
) -> np.ndarray:
    """Mean per-feature dissimilarity from ``query`` to each row of ``reference``.

    Numeric features contribute ``|x - y| / range`` (range taken over
    ``reference`` unless given), categorical features contribute 0/1.
    Numeric features with a zero or non-finite range contribute 0/1 by
    equality, like categoricals.
    """
    names = shared_features(query, reference)
    if ranges is None:
        ranges = feature_ranges(reference, query.schema)

    n_rows = len(reference)
    total = np.zeros(n_rows, dtype=float)
    used = 0
    for name in names:
        spec = query.schema.spec(name)
        if spec.is_numeric:
            rng = float(ranges.get(name, float("nan")))
            col = pd.to_numeric(reference[name], errors="coerce").to_numpy(dtype=float)
            if np.isfinite(rng) and rng > 0.0:
                total += np.abs(col - float(query[name])) / rng
            else:
                total += (col != float(query[name])).astype(float)
        else:
            col = reference[name].astype(str).to_numpy()
            total += (col != str(query[name])).astype(float)
        used += 1

    if used == 0:
        raise ValueError(
            "No comparable features between the query and the reference table."
        )
    return total / used
