"""
Tests for temporal aggregation of raster stacks.
"""

import numpy as np
import pytest

from aquazone.errors import IncongruentStackError
from aquazone.grid import RasterStack
from aquazone.normalization.temporal import (
    AggregationMethod,
    TemporalAggregator,
    aggregate_grids,
)


class TestTemporalAggregator:
    """Tests for TemporalAggregator."""

    def test_mean_skips_missing_members(self, make_grid):
        """Test that each position averages only its valid members."""
        a = make_grid([[5.0, 10.0, -9999.0]], nodata=-9999.0, name="sst_2008")
        b = make_grid([[7.0, -9999.0, 8.0]], nodata=-9999.0, name="sst_2009")

        result = TemporalAggregator().aggregate(RasterStack(members=(a, b)))

        assert result.grid.data.tolist() == [[6.0, 10.0, 8.0]]
        assert result.valid_counts.tolist() == [[2, 1, 1]]
        assert result.missing_cells == 0
        assert result.grid.name == "sst_2008_mean"

    def test_all_missing_stays_nodata(self, make_grid):
        a = make_grid([[1.0, -9999.0]], nodata=-9999.0)
        b = make_grid([[3.0, -9999.0]], nodata=-9999.0)

        result = TemporalAggregator().aggregate(RasterStack(members=(a, b)))

        assert result.grid.data.tolist() == [[2.0, -9999.0]]
        assert result.grid.valid_mask().tolist() == [[True, False]]
        assert result.missing_cells == 1

    def test_all_missing_without_sentinel_is_nan(self, make_grid):
        a = make_grid([[1.0, np.nan]])
        b = make_grid([[3.0, np.nan]])

        grid = TemporalAggregator().aggregate(RasterStack(members=(a, b))).grid

        assert grid.nodata is None
        assert grid.data[0, 0] == 2.0
        assert np.isnan(grid.data[0, 1])

    def test_members_with_different_sentinels(self, make_grid):
        """Test that each member's own sentinel is honoured."""
        a = make_grid([[1.0, -1.0]], nodata=-1.0)
        b = make_grid([[3.0, 5.0]], nodata=0.0)

        grid = TemporalAggregator().aggregate(RasterStack(members=(a, b))).grid
        assert grid.data.tolist() == [[2.0, 5.0]]

    def test_identical_members(self, make_grid):
        stack = RasterStack(members=tuple(make_grid([[17.25, -3.5]]) for _ in range(4)))
        grid = TemporalAggregator().aggregate(stack).grid
        assert grid.data.tolist() == [[17.25, -3.5]]

    def test_mean_independent_of_member_order(self, make_grid):
        rng = np.random.default_rng(5)
        grids = [make_grid(rng.uniform(270, 300, size=(3, 3)), north=3.0) for _ in range(4)]

        forward = TemporalAggregator().aggregate(RasterStack(members=tuple(grids))).grid
        backward = TemporalAggregator().aggregate(RasterStack(members=tuple(reversed(grids)))).grid
        np.testing.assert_allclose(forward.data, backward.data)

    def test_single_member_is_identity(self, make_grid):
        a = make_grid([[1.5, 2.5, -9999.0]], nodata=-9999.0)
        grid = TemporalAggregator().aggregate(RasterStack(members=(a,))).grid

        assert grid.data.tolist() == a.data.tolist()
        assert grid.is_congruent(a)

    @pytest.mark.parametrize(
        "method,expected",
        [
            (AggregationMethod.MEAN, 4.0),
            (AggregationMethod.MEDIAN, 3.0),
            (AggregationMethod.MIN, 1.0),
            (AggregationMethod.MAX, 8.0),
        ],
    )
    def test_methods(self, make_grid, method, expected):
        stack = RasterStack(members=tuple(make_grid([[v]]) for v in (1.0, 3.0, 8.0)))
        result = TemporalAggregator().aggregate(stack, method)
        assert result.grid.data[0, 0] == pytest.approx(expected)

    def test_integer_members_promoted(self, make_grid):
        a = make_grid([[1, 2]], dtype=np.int16)
        b = make_grid([[2, 2]], dtype=np.int16)

        grid = TemporalAggregator().aggregate(RasterStack(members=(a, b))).grid

        assert grid.data.dtype == np.float64
        assert grid.data.tolist() == [[1.5, 2.0]]

    def test_inputs_unchanged(self, make_grid):
        a = make_grid([[5.0, -9999.0]], nodata=-9999.0)
        b = make_grid([[7.0, 8.0]], nodata=-9999.0)
        TemporalAggregator().aggregate(RasterStack(members=(a, b)))

        assert a.data.tolist() == [[5.0, -9999.0]]
        assert b.data.tolist() == [[7.0, 8.0]]

    def test_result_to_dict(self, make_grid):
        stack = RasterStack(members=(make_grid([[1.0]]), make_grid([[2.0]])), labels=("2008", "2009"))
        info = TemporalAggregator().aggregate(stack).to_dict()

        assert info["method"] == "mean"
        assert info["member_count"] == 2
        assert info["labels"] == ["2008", "2009"]


class TestAggregateGrids:
    """Tests for the aggregate_grids convenience function."""

    def test_mean(self, make_grid):
        grid = aggregate_grids([make_grid([[1.0]]), make_grid([[3.0]])], method="MEAN")
        assert grid.data[0, 0] == 2.0

    def test_incongruent_grids(self, make_grid):
        with pytest.raises(IncongruentStackError):
            aggregate_grids([make_grid([[1.0]], west=0.0), make_grid([[1.0]], west=2.0)])

    def test_unknown_method(self, make_grid):
        with pytest.raises(ValueError):
            aggregate_grids([make_grid([[1.0]])], method="mode")
