"""
Tests for raster unit conversion.
"""

import numpy as np
import pytest

from aquazone.analysis.units import (
    CELSIUS_TO_KELVIN,
    KELVIN_TO_CELSIUS,
    UnitConversion,
    apply_conversion,
    convert_units,
)


class TestConvertUnits:
    """Tests for affine value conversion."""

    def test_kelvin_to_celsius(self, make_grid):
        grid = make_grid([[273.15, 283.15, 300.0]])
        converted = convert_units(grid, offset=-273.15)

        np.testing.assert_allclose(converted.data, [[0.0, 10.0, 26.85]], atol=1e-9)

    def test_nodata_passes_through(self, make_grid):
        """Test that sentinel cells are not shifted into valid range."""
        grid = make_grid([[283.15, -9999.0]], nodata=-9999.0)
        converted = convert_units(grid, offset=-273.15)

        assert converted.data[0, 1] == -9999.0
        assert converted.nodata == -9999.0
        assert converted.valid_mask().tolist() == [[True, False]]

    def test_nan_passes_through(self, make_grid):
        converted = convert_units(make_grid([[1.0, np.nan]]), scale=2.0)
        assert converted.data[0, 0] == 2.0
        assert np.isnan(converted.data[0, 1])

    def test_scale_then_offset(self, make_grid):
        converted = convert_units(make_grid([[10.0]]), offset=1.0, scale=3.0)
        assert converted.data[0, 0] == 31.0

    def test_output_is_float64_and_congruent(self, make_grid):
        grid = make_grid([[1, 2]], dtype=np.int16, name="depth")
        converted = convert_units(grid, scale=-1.0)

        assert converted.data.dtype == np.float64
        assert converted.data.tolist() == [[-1.0, -2.0]]
        assert converted.is_congruent(grid)
        assert converted.name == "depth"
        assert grid.data.dtype == np.int16

    def test_round_trip(self, make_grid):
        grid = make_grid([[271.0, 283.15, 305.5]])
        there = apply_conversion(grid, KELVIN_TO_CELSIUS)
        back = apply_conversion(there, CELSIUS_TO_KELVIN)

        np.testing.assert_allclose(back.data, grid.data)

    def test_renames_output(self, make_grid):
        assert convert_units(make_grid([[1.0]]), name="sst_c").name == "sst_c"


class TestUnitConversion:
    """Tests for UnitConversion."""

    def test_inverse(self):
        conversion = UnitConversion(scale=2.0, offset=4.0, source_unit="a", target_unit="b")
        inverse = conversion.inverse()

        assert inverse.scale == 0.5
        assert inverse.offset == -2.0
        assert (inverse.source_unit, inverse.target_unit) == ("b", "a")

    def test_zero_scale_rejected(self):
        with pytest.raises(ValueError, match="scale"):
            UnitConversion(scale=0.0)

    def test_non_finite_offset_rejected(self):
        with pytest.raises(ValueError, match="offset"):
            UnitConversion(offset=float("nan"))

    def test_to_dict(self):
        info = KELVIN_TO_CELSIUS.to_dict()
        assert info["offset"] == -273.15
        assert info["target_unit"] == "degC"
