"""
Tests for analysis configuration.

Tests cover:
- Suitability ranges and species profiles
- AnalysisConfig validation and species selection
- YAML loading
- Depth sign convention checks
"""

import numpy as np
import pytest
import yaml

from aquazone.config import (
    DEFAULT_SPECIES,
    AnalysisConfig,
    DepthConvention,
    SpeciesProfile,
    SuitabilityRange,
    config_from_dict,
    load_config,
    verify_depth_convention,
)
from aquazone.errors import ConfigError


# ============================================================================
# Range and Profile Tests
# ============================================================================

class TestSuitabilityRange:
    """Tests for SuitabilityRange."""

    def test_contains_inclusive(self):
        rng = SuitabilityRange(11.0, 30.0)
        assert rng.contains([10.9, 11.0, 30.0, 30.1]).tolist() == [False, True, True, False]

    def test_unbounded(self):
        assert SuitabilityRange().contains([-1e9, 1e9]).all()

    def test_lo_above_hi(self):
        with pytest.raises(ConfigError, match="exceeds"):
            SuitabilityRange(30.0, 11.0)

    def test_non_finite_bound(self):
        with pytest.raises(ConfigError, match="finite"):
            SuitabilityRange(float("nan"), 1.0)

    def test_degenerate_range(self):
        assert SuitabilityRange(5.0, 5.0).contains([5.0]).tolist() == [True]

    @pytest.mark.parametrize(
        "value,expected",
        [
            ([11, 30], (11.0, 30.0)),
            ((0, None), (0.0, None)),
            ({"lo": 3, "hi": 19}, (3.0, 19.0)),
            ({"min": 0, "max": 70}, (0.0, 70.0)),
            ({"hi": 5}, (None, 5.0)),
        ],
    )
    def test_from_value(self, value, expected):
        rng = SuitabilityRange.from_value(value)
        assert (rng.lo, rng.hi) == expected

    @pytest.mark.parametrize("value", [[1], [1, 2, 3], "11-30", {"low": 1}, ["a", 2]])
    def test_from_invalid_value(self, value):
        with pytest.raises(ConfigError):
            SuitabilityRange.from_value(value)

    def test_str(self):
        assert str(SuitabilityRange(11.0, None)) == "[11, inf]"


class TestSpeciesProfile:
    """Tests for SpeciesProfile."""

    def test_ranges_normalised(self):
        profile = SpeciesProfile(name="kelp", ranges={"SST": [5, 15], "Depth": {"hi": 20}})

        assert profile.variables == ["depth", "sst"]
        assert isinstance(profile.ranges["sst"], SuitabilityRange)
        assert profile.to_dict() == {"depth": [None, 20.0], "sst": [5.0, 15.0]}

    def test_requires_ranges(self):
        with pytest.raises(ConfigError):
            SpeciesProfile(name="empty", ranges={})

    def test_requires_name(self):
        with pytest.raises(ConfigError):
            SpeciesProfile(name="", ranges={"sst": [1, 2]})

    def test_default_species(self):
        oyster = DEFAULT_SPECIES["oyster"]
        crab = DEFAULT_SPECIES["dungeness_crab"]

        assert oyster.ranges["sst"].to_list() == [11.0, 30.0]
        assert oyster.ranges["depth"].to_list() == [0.0, 70.0]
        assert crab.ranges["sst"].to_list() == [3.0, 19.0]
        assert crab.ranges["depth"].to_list() == [0.0, 360.0]


# ============================================================================
# AnalysisConfig Tests
# ============================================================================

class TestAnalysisConfig:
    """Tests for AnalysisConfig."""

    def test_defaults(self):
        config = AnalysisConfig()

        assert config.target_crs == "EPSG:4326"
        assert config.sst_offset == -273.15
        assert config.depth_convention == DepthConvention.ELEVATION
        assert sorted(config.species) == ["dungeness_crab", "oyster"]

    def test_depth_convention_from_string(self):
        assert AnalysisConfig(depth_convention="Depth").depth_convention == DepthConvention.DEPTH

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"depth_convention": "height"},
            {"area_unit": "acres"},
            {"reprojection_resampling": "lanczos"},
            {"max_workers": 0},
            {"sst_scale": 0.0},
            {"sst_offset": float("inf")},
            {"target_crs": ""},
            {"species": {}},
        ],
    )
    def test_invalid(self, kwargs):
        with pytest.raises(ConfigError):
            AnalysisConfig(**kwargs)

    def test_species_key_must_match_name(self):
        with pytest.raises(ConfigError, match="does not match"):
            AnalysisConfig(species={"oyster": SpeciesProfile("clam", {"sst": [1, 2]})})

    def test_unknown_species_variable(self):
        """Test that a variable with no matching layer is rejected up front."""
        kelp = SpeciesProfile("kelp", {"sst": [5, 15], "chlorophyll": [0, 1]})
        with pytest.raises(ConfigError, match=r"unknown variables \['chlorophyll'\]"):
            AnalysisConfig(species={"kelp": kelp})

    def test_select_all_species_sorted(self):
        names = [p.name for p in AnalysisConfig().select_species(None)]
        assert names == ["dungeness_crab", "oyster"]

    def test_select_named_species(self):
        assert [p.name for p in AnalysisConfig().select_species(["oyster"])] == ["oyster"]

    def test_select_unknown_species(self):
        with pytest.raises(ConfigError, match="Unknown species: geoduck"):
            AnalysisConfig().select_species(["oyster", "geoduck"])

    def test_to_dict_round_trip(self):
        config = AnalysisConfig(area_unit="ha", max_workers=4)
        rebuilt = config_from_dict(config.to_dict())

        assert rebuilt.area_unit == "ha"
        assert rebuilt.max_workers == 4
        assert rebuilt.species == config.species


class TestConfigFromDict:
    """Tests for config_from_dict and load_config."""

    def test_full_layout(self):
        config = config_from_dict({
            "target_crs": "EPSG:32610",
            "area_unit": "ha",
            "sst": {"scale": 0.01, "offset": 0.0},
            "depth": {"convention": "depth"},
            "boundaries": {"name_field": "NAME"},
            "reprojection": {"resampling": "Bilinear"},
            "execution": {"max_workers": 3, "fail_fast": True},
            "species": {"mussel": {"sst": [8, 22], "depth": [0, 40]}},
        })

        assert config.target_crs == "EPSG:32610"
        assert config.sst_scale == 0.01
        assert config.depth_convention == DepthConvention.DEPTH
        assert config.boundary_name_field == "NAME"
        assert config.reprojection_resampling == "bilinear"
        assert config.max_workers == 3
        assert config.fail_fast is True
        assert list(config.species) == ["mussel"]

    def test_empty_keeps_defaults(self):
        assert sorted(config_from_dict({}).species) == ["dungeness_crab", "oyster"]

    def test_unknown_top_level_key(self):
        with pytest.raises(ConfigError, match="Unknown configuration keys"):
            config_from_dict({"speices": {}})

    def test_unknown_section_key(self):
        with pytest.raises(ConfigError, match="Unknown keys in 'sst'"):
            config_from_dict({"sst": {"units": "K"}})

    def test_bad_number(self):
        with pytest.raises(ConfigError):
            config_from_dict({"execution": {"max_workers": "many"}})

    def test_species_must_be_mapping(self):
        with pytest.raises(ConfigError):
            config_from_dict({"species": ["oyster"]})

    def test_species_variable_typo(self):
        with pytest.raises(ConfigError, match="temp"):
            config_from_dict({"species": {"kelp": {"temp": [0, 1]}}})

    @pytest.mark.parametrize("value", ["no", "false", 0, 1, None])
    def test_fail_fast_must_be_bool(self, value):
        with pytest.raises(ConfigError, match="fail_fast"):
            config_from_dict({"execution": {"fail_fast": value}})

    def test_fail_fast_from_yaml(self, tmp_path):
        path = tmp_path / "aquazone.yaml"
        path.write_text("execution:\n  fail_fast: no\n")
        assert load_config(path).fail_fast is False

    def test_load_yaml(self, tmp_path):
        path = tmp_path / "aquazone.yaml"
        path.write_text(yaml.safe_dump({
            "area_unit": "km2",
            "species": {"oyster": {"sst": [11, 30], "depth": [0, 70]}},
        }))

        config = load_config(path)
        assert list(config.species) == ["oyster"]

    def test_load_empty_yaml(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert isinstance(load_config(path), AnalysisConfig)

    def test_load_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path / "missing.yaml")

    def test_load_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("species: [unclosed\n")
        with pytest.raises(ConfigError, match="Cannot parse"):
            load_config(path)


# ============================================================================
# Depth Convention Tests
# ============================================================================

class TestVerifyDepthConvention:
    """Tests for verify_depth_convention."""

    def test_elevation_ocean(self, make_grid):
        grid = make_grid([[-100.0, -20.0, -5.0, 3.0]])
        assert verify_depth_convention(grid, DepthConvention.ELEVATION) == 0.75

    def test_positive_depth(self, make_grid):
        grid = make_grid([[100.0, 20.0, -3.0]])
        assert verify_depth_convention(grid, "depth") == pytest.approx(2 / 3)

    def test_wrong_convention(self, make_grid):
        grid = make_grid([[100.0, 20.0, 5.0, -3.0]])
        with pytest.raises(ConfigError, match="is it 'depth'"):
            verify_depth_convention(grid, DepthConvention.ELEVATION)

    def test_even_split_rejected(self, make_grid):
        grid = make_grid([[-1.0, 1.0]])
        with pytest.raises(ConfigError):
            verify_depth_convention(grid, DepthConvention.ELEVATION)

    def test_nodata_ignored(self, make_grid):
        grid = make_grid([[-5.0, 9999.0, 9999.0, np.nan]], nodata=9999.0)
        assert verify_depth_convention(grid, DepthConvention.ELEVATION) == 1.0

    def test_no_valid_cells(self, make_grid):
        grid = make_grid([[-9999.0]], nodata=-9999.0)
        with pytest.raises(ConfigError, match="no valid cells"):
            verify_depth_convention(grid, DepthConvention.ELEVATION)

    def test_ocean_mask_limits_vote(self, make_grid):
        """Test that land cells outside the ocean mask do not vote."""
        grid = make_grid([[-10.0, -10.0, 50.0, 80.0, 120.0]])
        ocean = np.array([[True, True, False, False, False]])

        with pytest.raises(ConfigError, match="40%"):
            verify_depth_convention(grid, DepthConvention.ELEVATION)
        assert verify_depth_convention(grid, DepthConvention.ELEVATION, ocean_mask=ocean) == 1.0

    def test_ocean_mask_without_valid_depth(self, make_grid):
        grid = make_grid([[-9999.0, 5.0]], nodata=-9999.0)
        with pytest.raises(ConfigError, match="over ocean cells"):
            verify_depth_convention(grid, "elevation", ocean_mask=np.array([[True, False]]))

    def test_ocean_mask_shape_mismatch(self, make_grid):
        with pytest.raises(ValueError, match="shape"):
            verify_depth_convention(make_grid([[-1.0, -2.0]]), "elevation", ocean_mask=np.ones((2, 2), dtype=bool))
