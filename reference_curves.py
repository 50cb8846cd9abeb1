from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

import numpy as np
import pandas as pd
from lifelines import AalenJohansenFitter

from config import REFERENCE_TIME_COL, REFERENCE_VALUE_COL
from errors import ArtifactLoadError, ValidationError


@dataclass(frozen=True)
class ReferenceCurve:
    """Population-average cumulative incidence, immutable after load."""

    name: str
    times: np.ndarray
    values: np.ndarray

    def __post_init__(self) -> None:
        times = np.array(self.times, dtype=float).ravel()
        values = np.array(self.values, dtype=float).ravel()
        if times.size == 0 or times.shape != values.shape:
            raise ValueError(
                f"Reference curve {self.name!r} needs matching, non-empty "
                "time and value sequences."
            )
        if not (np.all(np.isfinite(times)) and np.all(np.isfinite(values))):
            raise ValueError(f"Reference curve {self.name!r} has non-finite entries.")
        if times[0] < 0 or np.any(np.diff(times) <= 0):
            raise ValueError(
                f"Reference curve {self.name!r} times must be non-negative "
                "and strictly increasing."
            )
        if np.any(values < 0) or np.any(values > 1):
            raise ValueError(f"Reference curve {self.name!r} values must be in [0, 1].")
        if np.any(np.diff(values) < 0):
            raise ValueError(
                f"Reference curve {self.name!r} must be non-decreasing "
                "(cumulative incidence)."
            )
        times.setflags(write=False)
        values.setflags(write=False)
        object.__setattr__(self, "times", times)
        object.__setattr__(self, "values", values)

    def value_at(self, time: float) -> float:
        """Linear interpolation; outside the curve the nearest endpoint is returned."""
        return float(
            np.interp(
                float(time),
                self.times,
                self.values,
                left=self.values[0],
                right=self.values[-1],
            )
        )

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            {REFERENCE_TIME_COL: self.times, REFERENCE_VALUE_COL: self.values}
        )

    @classmethod
    def from_frame(cls, name: str, frame: pd.DataFrame) -> "ReferenceCurve":
        missing = {REFERENCE_TIME_COL, REFERENCE_VALUE_COL} - set(frame.columns)
        if missing:
            raise ValueError(
                f"Reference curve {name!r} is missing columns {sorted(missing)}."
            )
        return cls(
            name=name,
            times=pd.to_numeric(frame[REFERENCE_TIME_COL], errors="coerce").to_numpy(),
            values=pd.to_numeric(frame[REFERENCE_VALUE_COL], errors="coerce").to_numpy(),
        )


class ReferenceCurveStore:
    """Read-only collection of named reference curves."""

    def __init__(self, curves: Iterable[ReferenceCurve]) -> None:
        self._curves: Dict[str, ReferenceCurve] = {}
        for curve in curves:
            if curve.name in self._curves:
                raise ValueError(f"Duplicate reference curve {curve.name!r}.")
            self._curves[curve.name] = curve

    @property
    def names(self) -> List[str]:
        return list(self._curves)

    def __contains__(self, name: object) -> bool:
        return name in self._curves

    def __len__(self) -> int:
        return len(self._curves)

    def get(self, name: str) -> ReferenceCurve:
        try:
            return self._curves[name]
        except KeyError:
            raise ValidationError(
                "reference", f"unknown reference curve; available: {self.names}", name
            ) from None

    def baseline_at(self, curve_name: str, time: float) -> float:
        return self.get(curve_name).value_at(time)


def load_reference_curve(name: str, path: Path) -> ReferenceCurve:
    if not Path(path).exists():
        raise ArtifactLoadError(f"Reference curve {name!r} not found at {path}.")
    try:
        frame = pd.read_csv(path)
        return ReferenceCurve.from_frame(name, frame)
    except (ValueError, pd.errors.ParserError) as exc:
        raise ArtifactLoadError(f"Failed to load reference curve {path}: {exc}") from exc


def load_reference_curves(paths: Mapping[str, Path]) -> ReferenceCurveStore:
    curves = []
    for name, path in paths.items():
        curve = load_reference_curve(name, path)
        print(f"Loaded reference curve {name!r} ({curve.times.size} points) from {path}")
        curves.append(curve)
    return ReferenceCurveStore(curves)


def cohort_reference_curve(
    name: str,
    durations: Sequence[float],
    events: Sequence[int],
    times: Sequence[float],
    cause: int = 1,
    seed: Optional[int] = 0,
) -> ReferenceCurve:
    """Aalen-Johansen cumulative incidence of ``cause`` evaluated at ``times``.

    ``events`` codes 0 as censored and any other integer as the observed cause.
    """
    durations = np.asarray(durations, dtype=float)
    events = np.asarray(events, dtype=int)
    if durations.size == 0:
        raise ValueError("durations must be non-empty.")
    times = np.asarray(times, dtype=float)

    ajf = AalenJohansenFitter(calculate_variance=False, seed=seed)
    ajf.fit(durations=durations, event_observed=events, event_of_interest=cause)
    cif = ajf.cumulative_density_.iloc[:, 0]
    timeline = cif.index.to_numpy(dtype=float)
    cif_values = cif.to_numpy(dtype=float)

    pos = np.searchsorted(timeline, times, side="right") - 1
    values = np.where(pos >= 0, cif_values[np.clip(pos, 0, None)], 0.0)
    values = np.clip(np.maximum.accumulate(values), 0.0, 1.0)
    return ReferenceCurve(name=name, times=times, values=values)
