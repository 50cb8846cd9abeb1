"""Precomputed attribution grid and nearest-neighbour interpolation."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Sequence

import numpy as np
import pandas as pd

from config import ATTRIBUTION_TAG_SEPARATOR
from errors import ArtifactLoadError, ValidationError
from features import FeatureSchema, FeatureVector, level_code
from gower import feature_ranges, gower_distances
from neighbors import NeighborSet


def time_tag(value: Any) -> str:
    """Textual tag of an explanation time point: 60, 60.0 and "60" -> "60"."""
    text = str(value).strip()
    try:
        number = float(text)
    except ValueError:
        raise ValidationError("explanation_time", "must be a number", value) from None
    if not math.isfinite(number) or number < 0:
        raise ValidationError(
            "explanation_time", "must be a non-negative finite number", value
        )
    if number.is_integer():
        return str(int(number))
    return repr(number)


@dataclass(frozen=True)
class AttributionTable:
    """Attributions of every grid row at one time tag."""

    tag: str
    feature_names: tuple[str, ...]
    values: np.ndarray  # (n_rows, n_features)

    @property
    def time(self) -> float:
        return float(self.tag)


@dataclass(frozen=True)
class GridRow:
    index: int
    features: Dict[str, Any]
    attributions: Dict[str, Dict[str, float]]


def _coerce_feature_columns(frame: pd.DataFrame, schema: FeatureSchema) -> pd.DataFrame:
    missing = [name for name in schema.names if name not in frame.columns]
    if missing:
        raise ArtifactLoadError(f"Grid is missing feature columns: {missing}")

    out = pd.DataFrame(index=pd.RangeIndex(len(frame)))
    for spec in schema.features:
        col = frame[spec.name].reset_index(drop=True)
        if col.isna().any():
            raise ArtifactLoadError(f"Grid column {spec.name!r} has missing values.")
        if spec.is_numeric:
            numeric = pd.to_numeric(col, errors="coerce")
            if numeric.isna().any():
                raise ArtifactLoadError(
                    f"Grid column {spec.name!r} has non-numeric values."
                )
            out[spec.name] = numeric.astype(np.float64)
        else:
            codes = col.map(level_code)
            unknown = sorted(set(codes) - set(spec.levels))
            if unknown:
                raise ArtifactLoadError(
                    f"Grid column {spec.name!r} has undeclared levels {unknown}; "
                    f"declared: {list(spec.levels)}"
                )
            out[spec.name] = codes.astype(str)
    return out


def _collect_attribution_tables(
    frame: pd.DataFrame, schema: FeatureSchema
) -> Dict[str, AttributionTable]:
    pattern = re.compile(
        r"^(?P<feature>"
        + "|".join(re.escape(n) for n in schema.names)
        + r")"
        + re.escape(ATTRIBUTION_TAG_SEPARATOR)
        + r"(?P<tag>\d+(?:\.\d+)?)$"
    )
    columns_by_tag: Dict[str, List[tuple[str, str]]] = {}
    for column in frame.columns:
        match = pattern.match(str(column))
        if match is None:
            continue
        tag = time_tag(match.group("tag"))
        columns_by_tag.setdefault(tag, []).append((match.group("feature"), column))

    tables: Dict[str, AttributionTable] = {}
    for tag, entries in columns_by_tag.items():
        # Keep schema order for the attributed features.
        entries.sort(key=lambda e: schema.names.index(e[0]))
        feature_names = [feature for feature, _ in entries]
        if len(set(feature_names)) != len(feature_names):
            raise ArtifactLoadError(f"Duplicate attribution columns for tag {tag}.")
        block = frame[[column for _, column in entries]].apply(
            pd.to_numeric, errors="coerce"
        )
        values = block.to_numpy(dtype=float)
        if not np.all(np.isfinite(values)):
            raise ArtifactLoadError(
                f"Attribution columns for tag {tag} have missing or non-numeric values."
            )
        values.setflags(write=False)
        tables[tag] = AttributionTable(
            tag=tag, feature_names=tuple(feature_names), values=values
        )
    return dict(sorted(tables.items(), key=lambda kv: float(kv[0])))


class AttributionGrid:
    """Reference cases with their precomputed per-time-point attributions.

    Built once at load; every array it exposes is read-only.
    """

    def __init__(
        self,
        schema: FeatureSchema,
        features: pd.DataFrame,
        tables: Mapping[str, AttributionTable],
    ) -> None:
        if len(features) == 0:
            raise ArtifactLoadError("Grid has no rows.")
        if not tables:
            raise ArtifactLoadError(
                "Grid has no attribution columns "
                f"('<feature>{ATTRIBUTION_TAG_SEPARATOR}<time>')."
            )
        for table in tables.values():
            if table.values.shape[0] != len(features):
                raise ArtifactLoadError(
                    f"Attribution table {table.tag} does not match the grid rows."
                )
        self.schema = schema
        self._features = features
        self._tables = dict(tables)
        self.ranges = feature_ranges(features, schema)

    @classmethod
    def from_frame(cls, frame: pd.DataFrame, schema: FeatureSchema) -> "AttributionGrid":
        frame = frame.reset_index(drop=True)
        features = _coerce_feature_columns(frame, schema)
        tables = _collect_attribution_tables(frame, schema)
        return cls(schema=schema, features=features, tables=tables)

    def __len__(self) -> int:
        return len(self._features)

    @property
    def features(self) -> pd.DataFrame:
        return self._features.copy()

    @property
    def tags(self) -> List[str]:
        return list(self._tables)

    def table(self, tag: Any) -> AttributionTable:
        key = time_tag(tag)
        try:
            return self._tables[key]
        except KeyError:
            raise ValidationError(
                "explanation_time",
                f"no precomputed attributions; available time points: {self.tags}",
                tag,
            ) from None

    def row(self, index: int) -> GridRow:
        record = self._features.iloc[int(index)]
        return GridRow(
            index=int(index),
            features={name: record[name] for name in self.schema.names},
            attributions={
                tag: dict(
                    zip(table.feature_names, map(float, table.values[int(index)]))
                )
                for tag, table in self._tables.items()
            },
        )

    def distances(self, query: FeatureVector) -> np.ndarray:
        if query.schema.names != self.schema.names:
            raise ValueError(
                "FeatureVector schema does not match the grid schema: "
                f"{query.schema.names} != {self.schema.names}"
            )
        return gower_distances(query, self._features, ranges=self.ranges)

    def interpolate(
        self, neighbors: NeighborSet, weights: Sequence[float], tag: Any
    ) -> Dict[str, float]:
        """Weighted sum of the neighbours' attributions at ``tag``."""
        table = self.table(tag)
        weights = np.asarray(weights, dtype=float)
        if weights.shape[0] != len(neighbors):
            raise ValueError("One weight per neighbour is required.")
        rows = table.values[np.asarray(neighbors.indices, dtype=int)]
        estimate = weights @ rows
        return {name: float(v) for name, v in zip(table.feature_names, estimate)}
