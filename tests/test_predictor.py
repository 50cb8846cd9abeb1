import numpy as np
import pytest

from features import encode_features
from predictor import (
    CurvePredictor,
    dense_time_grid,
    is_non_decreasing,
    parse_time_points,
)


class FakeSurvivalEstimator:
    """Mimics the scikit-survival predict_survival_function interface."""

    unique_times_ = np.array([10.0, 20.0, 40.0])

    def __init__(self):
        self.seen = None

    def predict_survival_function(self, X, return_array=False):
        assert return_array
        self.seen = X
        return np.array([[0.9, 0.8, 0.5]])


class DecreasingModel:
    def predict_cumulative_incidence(self, X, times, cause):
        return np.linspace(0.5, 0.1, len(times))


def test_dense_grid():
    grid = dense_time_grid()
    assert grid[0] == 0.0 and grid[-1] == 114.0
    assert grid.size == 115
    assert np.all(np.diff(grid) == 1.0)


def test_parse_drops_invalid_tokens():
    assert parse_time_points("60, abc, 90") == [60.0, 90.0]


@pytest.mark.parametrize("text", ["", "   ", "abc, def", None, "-5, nan"])
def test_parse_falls_back_to_default(text):
    with pytest.warns(UserWarning):
        assert parse_time_points(text) == [60.0]


def test_parse_keeps_order_and_fractions():
    assert parse_time_points("90,12.5 , 36") == [90.0, 12.5, 36.0]


def test_curve_is_monotone_for_stub(predictor, schema, raw_case):
    curve = predictor.predict_curve(encode_features(raw_case, schema))
    assert curve.index.name == "Time"
    assert curve.name == "CIF"
    assert len(curve) == 115
    assert is_non_decreasing(curve.to_numpy())
    assert curve.iloc[0] == 0.0


def test_predict_is_deterministic_and_ordered(predictor, schema, raw_case):
    features = encode_features(raw_case, schema)
    first = predictor.predict(features, [90.0, 12.0, 60.0])
    second = predictor.predict(features, [90.0, 12.0, 60.0])
    assert first.index.tolist() == [90.0, 12.0, 60.0]
    np.testing.assert_array_equal(first.to_numpy(), second.to_numpy())
    assert first[12.0] < first[60.0] < first[90.0]


def test_predict_at_matches_curve(predictor, schema, raw_case):
    features = encode_features(raw_case, schema)
    curve = predictor.predict_curve(features)
    assert predictor.predict_at(features, 60) == pytest.approx(curve[60.0])


def test_negative_time_rejected(predictor, schema, raw_case):
    with pytest.raises(ValueError):
        predictor.predict(encode_features(raw_case, schema), [-1.0])


def test_survival_estimator_gives_step_cif(schema, raw_case):
    model = FakeSurvivalEstimator()
    predictor = CurvePredictor(model)
    cif = predictor.predict(encode_features(raw_case, schema), [0.0, 10.0, 25.0, 100.0])
    np.testing.assert_allclose(cif.to_numpy(), [0.0, 0.1, 0.2, 0.5])
    # Categorical codes are passed as numbers without a preprocessor.
    np.testing.assert_allclose(model.seen, [[1.0, 1.0, 60.0, 66.0]])


def test_survival_estimator_has_only_cause_one(schema, raw_case):
    predictor = CurvePredictor(FakeSurvivalEstimator())
    with pytest.raises(ValueError):
        predictor.predict(encode_features(raw_case, schema), [10.0], cause=2)


def test_preprocessor_is_applied(schema, raw_case):
    class Preprocessor:
        def transform(self, frame):
            return frame[["Age"]].to_numpy() * 0 + 1

    model = FakeSurvivalEstimator()
    CurvePredictor(model, preprocessor=Preprocessor()).predict(
        encode_features(raw_case, schema), [10.0]
    )
    np.testing.assert_array_equal(model.seen, [[1.0]])


def test_decreasing_model_curve_warns(schema, raw_case):
    predictor = CurvePredictor(DecreasingModel())
    with pytest.warns(UserWarning, match="decreases"):
        predictor.predict_curve(encode_features(raw_case, schema))


def test_unsupported_model_rejected():
    with pytest.raises(TypeError):
        CurvePredictor(object())
