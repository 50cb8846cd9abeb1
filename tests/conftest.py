"""Shared fixtures: a small schema, grid, reference curves and a stub model."""

import json
from pathlib import Path

import joblib
import numpy as np
import pandas as pd
import pytest

from attribution_grid import AttributionGrid
from features import CATEGORICAL, NUMERIC, FeatureSchema, FeatureSpec
from predictor import CurvePredictor
from reference_curves import ReferenceCurve, ReferenceCurveStore


class StubCIFModel:
    """Monotone competing-risks stub: CIF(t) = 1 - exp(-rate * t)."""

    def predict_cumulative_incidence(self, X, times, cause):
        node = float(np.asarray(X["Node"], dtype=float)[0])
        age = float(np.asarray(X["Age"], dtype=float)[0])
        rate = 0.005 * (1.0 + node + age / 100.0) * (1.0 if cause == 1 else 0.5)
        times = np.asarray(times, dtype=float)
        return (1.0 - np.exp(-rate * times)).reshape(1, -1)


@pytest.fixture()
def schema():
    return FeatureSchema(
        (
            FeatureSpec(
                name="Node",
                kind=CATEGORICAL,
                levels=("0", "1", "2", "3"),
                labels={"0": "N0", "1": "N1", "2": "N2", "3": "N3"},
            ),
            FeatureSpec(
                name="Site",
                kind=CATEGORICAL,
                levels=("0", "1", "2"),
                labels={"0": "Others", "1": "Oropharynx", "2": "Oral Cavity"},
            ),
            FeatureSpec(name="Age", kind=NUMERIC, bounds=(0.0, 120.0)),
            FeatureSpec(name="Dose", kind=NUMERIC, bounds=(0.0, 80.0)),
        )
    )


@pytest.fixture()
def grid_frame():
    # "Dose" is the structural feature without attributions.
    return pd.DataFrame(
        {
            "Node": [0, 1, 2, 3, 1, 2],
            "Site": [1, 1, 2, 0, 2, 0],
            "Age": [50.0, 60.0, 70.0, 40.0, 65.0, 55.0],
            "Dose": [60.0, 66.0, 70.0, 50.0, 68.0, 62.0],
            "Node_t36": [0.01, 0.02, 0.03, 0.04, 0.02, 0.03],
            "Site_t36": [0.00, -0.01, 0.01, 0.02, 0.01, 0.00],
            "Age_t36": [0.005, 0.010, 0.015, -0.005, 0.012, 0.007],
            "Node_t60": [0.02, 0.04, 0.06, 0.08, 0.04, 0.06],
            "Site_t60": [0.00, -0.02, 0.02, 0.04, 0.02, 0.00],
            "Age_t60": [0.010, 0.020, 0.030, -0.010, 0.024, 0.014],
            "CASE_ID": ["a", "b", "c", "d", "e", "f"],
        }
    )


@pytest.fixture()
def grid(grid_frame, schema):
    return AttributionGrid.from_frame(grid_frame, schema)


@pytest.fixture()
def overall_curve():
    return ReferenceCurve(
        name="overall",
        times=[0.0, 12.0, 36.0, 60.0, 114.0],
        values=[0.0, 0.02, 0.06, 0.10, 0.15],
    )


@pytest.fixture()
def curves(overall_curve):
    return ReferenceCurveStore(
        [
            overall_curve,
            ReferenceCurve(name="pos", times=[0.0, 60.0], values=[0.0, 0.5]),
            ReferenceCurve(name="neg", times=[0.0, 60.0], values=[0.0, 0.01]),
        ]
    )


@pytest.fixture()
def predictor():
    return CurvePredictor(StubCIFModel())


@pytest.fixture()
def raw_case():
    return {"Node": "1", "Site": "1", "Age": 60, "Dose": 66}


@pytest.fixture()
def artifacts_dir(tmp_path: Path, grid_frame, overall_curve) -> Path:
    """Artifact directory in the on-disk layout expected by load_context."""
    root = tmp_path / "artifacts"
    root.mkdir()
    schema_payload = {
        "features": [
            {
                "name": "Node",
                "type": "categorical",
                "display_name": "Node Status",
                "levels": {"0": "N0", "1": "N1", "2": "N2", "3": "N3"},
            },
            {
                "name": "Site",
                "type": "categorical",
                "levels": {"0": "Others", "1": "Oropharynx", "2": "Oral Cavity"},
            },
            {"name": "Age", "type": "numeric", "bounds": [0, 120]},
            {"name": "Dose", "type": "numeric", "bounds": [0, 80]},
        ]
    }
    (root / "feature_schema.json").write_text(json.dumps(schema_payload))
    joblib.dump(StubCIFModel(), root / "final_fg_model.joblib")
    grid_frame.to_csv(root / "precomputed_shap_grid.csv", index=False)
    overall_curve.to_frame().to_csv(root / "mean_cif_all.csv", index=False)
    pd.DataFrame({"Time": [0.0, 60.0], "MeanCIF": [0.0, 0.5]}).to_csv(
        root / "mean_cif_orn_positive.csv", index=False
    )
    pd.DataFrame({"Time": [0.0, 60.0], "MeanCIF": [0.0, 0.01]}).to_csv(
        root / "mean_cif_orn_negative.csv", index=False
    )
    return root
