import numpy as np
import pytest

from attribution_grid import AttributionGrid, time_tag
from errors import ArtifactLoadError, ValidationError
from neighbors import inverse_distance_weights, select_neighbors


def test_tags_are_collected_once_at_load(grid):
    assert grid.tags == ["36", "60"]
    table = grid.table("60")
    assert table.feature_names == ("Node", "Site", "Age")
    assert table.values.shape == (6, 3)
    assert not table.values.flags.writeable


def test_structural_feature_has_no_attributions(grid):
    for tag in grid.tags:
        assert "Dose" not in grid.table(tag).feature_names


def test_unrelated_columns_are_ignored(grid):
    assert "CASE_ID" not in grid.features.columns
    assert list(grid.features.columns) == ["Node", "Site", "Age", "Dose"]


@pytest.mark.parametrize("value", [60, 60.0, "60", " 60 "])
def test_time_tag_normalisation(value):
    assert time_tag(value) == "60"


def test_unknown_tag_is_validation_error(grid):
    with pytest.raises(ValidationError) as excinfo:
        grid.table(114)
    assert excinfo.value.field == "explanation_time"
    assert "36" in excinfo.value.constraint


def test_non_numeric_tag_is_validation_error(grid):
    with pytest.raises(ValidationError):
        grid.table("sixty")


def test_interpolate_is_weighted_sum(grid):
    neighbors = select_neighbors(np.array([0.1, 0.0, 0.5, 0.9, 0.2, 0.7]))
    weights = inverse_distance_weights(neighbors)
    assert neighbors.indices.tolist() == [1, 0, 4]
    result = grid.interpolate(neighbors, weights, 60)
    node = weights @ np.array([0.04, 0.02, 0.04])
    age = weights @ np.array([0.020, 0.010, 0.024])
    assert list(result) == ["Node", "Site", "Age"]
    assert result["Node"] == pytest.approx(node)
    assert result["Age"] == pytest.approx(age)


def test_row_exposes_attributions(grid):
    row = grid.row(2)
    assert row.features["Node"] == "2"
    assert row.attributions["36"]["Node"] == pytest.approx(0.03)
    assert set(row.attributions) == {"36", "60"}


def test_grid_levels_are_normalised(grid_frame, schema):
    grid_frame = grid_frame.assign(Node=grid_frame["Node"].astype(float))
    grid = AttributionGrid.from_frame(grid_frame, schema)
    assert grid.features["Node"].tolist() == ["0", "1", "2", "3", "1", "2"]


def test_missing_feature_column_is_fatal(grid_frame, schema):
    with pytest.raises(ArtifactLoadError, match="Age"):
        AttributionGrid.from_frame(grid_frame.drop(columns=["Age"]), schema)


def test_undeclared_level_is_fatal(grid_frame, schema):
    grid_frame.loc[0, "Site"] = 9
    with pytest.raises(ArtifactLoadError, match="Site"):
        AttributionGrid.from_frame(grid_frame, schema)


def test_grid_without_attributions_is_fatal(grid_frame, schema):
    plain = grid_frame[["Node", "Site", "Age", "Dose"]]
    with pytest.raises(ArtifactLoadError, match="attribution"):
        AttributionGrid.from_frame(plain, schema)


def test_empty_grid_is_fatal(grid_frame, schema):
    with pytest.raises(ArtifactLoadError):
        AttributionGrid.from_frame(grid_frame.iloc[0:0], schema)
