from __future__ import annotations

import json
import math
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

import pandas as pd

from config import (
    CATEGORICAL_FEATURES,
    FEATURE_COLS,
    FEATURE_DISPLAY_NAMES,
    NUMERIC_FEATURES,
)
from errors import ValidationError

NUMERIC = "numeric"
CATEGORICAL = "categorical"


@dataclass(frozen=True)
class FeatureSpec:
    name: str
    kind: str
    levels: tuple[str, ...] = ()
    labels: Dict[str, str] = field(default_factory=dict)
    bounds: Optional[tuple[float, float]] = None
    display_name: Optional[str] = None

    @property
    def title(self) -> str:
        return self.display_name or self.name

    @property
    def is_numeric(self) -> bool:
        return self.kind == NUMERIC

    def within_bounds(self, value: float) -> bool:
        if self.bounds is None:
            return True
        low, high = self.bounds
        return low <= value <= high

    def label_for(self, value: Any) -> Any:
        if self.is_numeric:
            return value
        return self.labels.get(value, value)


@dataclass(frozen=True)
class FeatureSchema:
    features: tuple[FeatureSpec, ...]

    def __post_init__(self) -> None:
        names = [f.name for f in self.features]
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate feature names in schema: {names}")

    @property
    def names(self) -> List[str]:
        return [f.name for f in self.features]

    @property
    def numeric_names(self) -> List[str]:
        return [f.name for f in self.features if f.is_numeric]

    @property
    def categorical_names(self) -> List[str]:
        return [f.name for f in self.features if not f.is_numeric]

    @property
    def display_names(self) -> Dict[str, str]:
        return {f.name: f.title for f in self.features}

    def __contains__(self, name: object) -> bool:
        return name in self.names

    def __len__(self) -> int:
        return len(self.features)

    def spec(self, name: str) -> FeatureSpec:
        for feature in self.features:
            if feature.name == name:
                return feature
        raise KeyError(name)


@dataclass(frozen=True)
class FeatureVector:
    """One case, with values keyed by feature name in schema order."""

    schema: FeatureSchema
    values: Dict[str, Any]

    def __post_init__(self) -> None:
        if list(self.values) != self.schema.names:
            raise ValueError(
                "FeatureVector values must follow the schema order "
                f"{self.schema.names}, got {list(self.values)}."
            )

    def __getitem__(self, name: str) -> Any:
        return self.values[name]

    def __contains__(self, name: object) -> bool:
        return name in self.values

    def to_frame(self) -> pd.DataFrame:
        """One-row model input; categoricals carry their declared levels."""
        data = {}
        for spec in self.schema.features:
            value = self.values[spec.name]
            if spec.is_numeric:
                data[spec.name] = [float(value)]
            else:
                data[spec.name] = pd.Categorical([value], categories=list(spec.levels))
        return pd.DataFrame(data, columns=self.schema.names)

    def labeled(self) -> Dict[str, Any]:
        return {
            spec.name: spec.label_for(self.values[spec.name])
            for spec in self.schema.features
        }


def level_code(value: Any) -> str:
    """Normalise a categorical value to its textual level code (2.0 -> "2")."""
    if isinstance(value, bool):
        return str(int(value))
    text = str(value).strip()
    try:
        number = float(text)
    except ValueError:
        return text
    if math.isfinite(number) and number.is_integer():
        return str(int(number))
    return text


def _encode_categorical(spec: FeatureSpec, raw: Any) -> str:
    code = level_code(raw)
    if code in spec.levels:
        return code
    for level, label in spec.labels.items():
        if str(raw).strip() == label:
            return level
    allowed = ", ".join(
        f"{lvl} ({spec.labels[lvl]})" if lvl in spec.labels else lvl
        for lvl in spec.levels
    )
    raise ValidationError(spec.name, f"must be one of the levels [{allowed}]", raw)


def _encode_numeric(spec: FeatureSpec, raw: Any) -> float:
    if isinstance(raw, bool):
        raise ValidationError(spec.name, "must be a number", raw)
    try:
        value = float(str(raw).strip()) if isinstance(raw, str) else float(raw)
    except (TypeError, ValueError):
        raise ValidationError(spec.name, "must be a number", raw) from None
    if not math.isfinite(value):
        raise ValidationError(spec.name, "must be a finite number", raw)
    if not spec.within_bounds(value):
        warnings.warn(
            f"{spec.name}={value:g} is outside the expected range {spec.bounds}",
            UserWarning,
            stacklevel=3,
        )
    return value


def encode_features(raw: Mapping[str, Any], schema: FeatureSchema) -> FeatureVector:
    """Coerce caller-supplied values into a FeatureVector.

    Values outside the declared numeric bounds are kept, with a warning.
    """
    unknown = [name for name in raw if name not in schema]
    if unknown:
        raise ValidationError(unknown[0], "unknown feature", raw[unknown[0]])

    values: Dict[str, Any] = {}
    for spec in schema.features:
        if spec.name not in raw or raw[spec.name] is None:
            raise ValidationError(spec.name, "required")
        raw_value = raw[spec.name]
        if isinstance(raw_value, str) and not raw_value.strip():
            raise ValidationError(spec.name, "required")
        if spec.is_numeric:
            values[spec.name] = _encode_numeric(spec, raw_value)
        else:
            values[spec.name] = _encode_categorical(spec, raw_value)
    return FeatureVector(schema=schema, values=values)


def default_schema() -> FeatureSchema:
    specs = []
    for name in FEATURE_COLS:
        display = FEATURE_DISPLAY_NAMES.get(name)
        if name in CATEGORICAL_FEATURES:
            labels = dict(CATEGORICAL_FEATURES[name])
            specs.append(
                FeatureSpec(
                    name=name,
                    kind=CATEGORICAL,
                    levels=tuple(labels),
                    labels=labels,
                    display_name=display,
                )
            )
        else:
            bounds = NUMERIC_FEATURES.get(name)
            specs.append(
                FeatureSpec(
                    name=name,
                    kind=NUMERIC,
                    bounds=tuple(bounds) if bounds else None,
                    display_name=display,
                )
            )
    return FeatureSchema(tuple(specs))


def schema_from_dict(payload: Mapping[str, Any]) -> FeatureSchema:
    """Build a schema from ``{"features": [{"name", "type", ...}, ...]}``."""
    if not isinstance(payload, Mapping):
        raise ValueError(
            f"Feature schema must be a JSON object, got {type(payload).__name__}."
        )
    entries: Sequence[Mapping[str, Any]] = payload.get("features") or []
    if not entries:
        raise ValueError("Feature schema declares no features.")
    specs = []
    for entry in entries:
        if not isinstance(entry, Mapping):
            raise ValueError(f"Feature schema entry must be an object, got {entry!r}.")
        name = str(entry["name"])
        kind = str(entry.get("type", NUMERIC)).lower()
        display = entry.get("display_name")
        if kind == CATEGORICAL:
            raw_levels = entry.get("levels")
            if isinstance(raw_levels, Mapping):
                labels = {level_code(k): str(v) for k, v in raw_levels.items()}
            elif raw_levels:
                labels = {level_code(k): level_code(k) for k in raw_levels}
            else:
                raise ValueError(f"Categorical feature {name!r} declares no levels.")
            specs.append(
                FeatureSpec(
                    name=name,
                    kind=CATEGORICAL,
                    levels=tuple(labels),
                    labels=labels,
                    display_name=display,
                )
            )
        elif kind == NUMERIC:
            bounds = entry.get("bounds")
            specs.append(
                FeatureSpec(
                    name=name,
                    kind=NUMERIC,
                    bounds=(float(bounds[0]), float(bounds[1])) if bounds else None,
                    display_name=display,
                )
            )
        else:
            raise ValueError(f"Unknown feature type {kind!r} for {name!r}.")
    return FeatureSchema(tuple(specs))


def load_schema(path: Path) -> FeatureSchema:
    with open(path, "r") as f:
        return schema_from_dict(json.load(f))
