"""
Configuration for the Suitability Pipeline.

Typed, validated configuration replacing ad-hoc threshold tables:
- SuitabilityRange: inclusive [lo, hi] interval for one variable
- SpeciesProfile: ranges for every variable a species depends on
- AnalysisConfig: CRS, unit conversion, depth convention, execution options

Configuration is validated once, when it is built or loaded from YAML.
Depth ranges are always written as positive metres below sea level; the
depth raster is normalised to that convention once, in the pipeline, after
verify_depth_convention() has checked the declared convention against the
data.
"""

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

import numpy as np
import yaml

from aquazone.errors import ConfigError

logger = logging.getLogger(__name__)

SST = "sst"
DEPTH = "depth"

# Layers the pipeline produces; species may only constrain these
LAYERS = (SST, DEPTH)

AREA_UNITS = ("m2", "ha", "km2")


class DepthConvention(Enum):
    """Sign conventions a bathymetry raster may use."""

    ELEVATION = "elevation"  # Negative below sea level (GEBCO style)
    DEPTH = "depth"  # Positive below sea level


@dataclass(frozen=True)
class SuitabilityRange:
    """
    Inclusive range of suitable values.

    Attributes:
        lo: Lowest suitable value, None for unbounded
        hi: Highest suitable value, None for unbounded
    """

    lo: Optional[float] = None
    hi: Optional[float] = None

    def __post_init__(self):
        for label, value in (("lo", self.lo), ("hi", self.hi)):
            if value is not None and (isinstance(value, bool) or not math.isfinite(value)):
                raise ConfigError(f"Range bound {label} must be a finite number, got {value!r}")
        if self.lo is not None and self.hi is not None and self.lo > self.hi:
            raise ConfigError(f"Range lower bound {self.lo} exceeds upper bound {self.hi}")

    @classmethod
    def from_value(cls, value: Any) -> "SuitabilityRange":
        """Build a range from [lo, hi], {lo:, hi:} or an existing range."""
        if isinstance(value, SuitabilityRange):
            return value
        if isinstance(value, dict):
            unknown = set(value) - {"lo", "hi", "min", "max"}
            if unknown:
                raise ConfigError(f"Unknown range keys: {sorted(unknown)}")
            lo = value.get("lo", value.get("min"))
            hi = value.get("hi", value.get("max"))
        elif isinstance(value, (list, tuple)) and len(value) == 2:
            lo, hi = value
        else:
            raise ConfigError(f"Range must be [lo, hi] or {{lo, hi}}, got {value!r}")

        try:
            lo = None if lo is None else float(lo)
            hi = None if hi is None else float(hi)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Range bounds must be numbers, got {value!r}") from e
        return cls(lo, hi)

    def contains(self, values: Any) -> Any:
        """Element-wise lo <= values <= hi."""
        values = np.asarray(values)
        inside = np.ones(values.shape, dtype=bool)
        if self.lo is not None:
            inside &= values >= self.lo
        if self.hi is not None:
            inside &= values <= self.hi
        return inside

    def to_list(self) -> List[Optional[float]]:
        return [self.lo, self.hi]

    def __str__(self) -> str:
        lo = "-inf" if self.lo is None else f"{self.lo:g}"
        hi = "inf" if self.hi is None else f"{self.hi:g}"
        return f"[{lo}, {hi}]"


@dataclass(frozen=True)
class SpeciesProfile:
    """
    Suitability ranges for one species.

    Attributes:
        name: Species identifier (e.g. "oyster")
        ranges: Variable name to suitable range
    """

    name: str
    ranges: Dict[str, SuitabilityRange]

    def __post_init__(self):
        if not self.name:
            raise ConfigError("Species profile needs a name")
        if not self.ranges:
            raise ConfigError(f"Species '{self.name}' has no suitability ranges")
        ranges = {
            str(variable).lower(): SuitabilityRange.from_value(value)
            for variable, value in self.ranges.items()
        }
        object.__setattr__(self, "ranges", ranges)

    @property
    def variables(self) -> List[str]:
        return sorted(self.ranges)

    def to_dict(self) -> Dict[str, Any]:
        return {variable: rng.to_list() for variable, rng in sorted(self.ranges.items())}


DEFAULT_SPECIES: Dict[str, SpeciesProfile] = {
    "oyster": SpeciesProfile(
        name="oyster",
        ranges={SST: SuitabilityRange(11.0, 30.0), DEPTH: SuitabilityRange(0.0, 70.0)},
    ),
    "dungeness_crab": SpeciesProfile(
        name="dungeness_crab",
        ranges={SST: SuitabilityRange(3.0, 19.0), DEPTH: SuitabilityRange(0.0, 360.0)},
    ),
}


@dataclass
class AnalysisConfig:
    """
    Configuration for a suitability run.

    Attributes:
        species: Species profiles keyed by name
        target_crs: CRS every input is harmonized to
        sst_scale: Multiplicative factor converting SST input units
        sst_offset: Additive offset converting SST input units (Kelvin -> Celsius)
        depth_convention: Sign convention of the depth raster
        reprojection_resampling: Resampling method used during harmonization
        area_unit: Unit of zonal areas ("m2", "ha" or "km2")
        boundary_name_field: Feature property holding the region name
        max_workers: Species pipelines run concurrently
        fail_fast: Abort the whole run on the first species failure
    """

    species: Dict[str, SpeciesProfile] = field(default_factory=lambda: dict(DEFAULT_SPECIES))
    target_crs: str = "EPSG:4326"
    sst_scale: float = 1.0
    sst_offset: float = -273.15
    depth_convention: DepthConvention = DepthConvention.ELEVATION
    reprojection_resampling: str = "nearest"
    area_unit: str = "km2"
    boundary_name_field: str = "rgn"
    max_workers: int = 2
    fail_fast: bool = False

    def __post_init__(self):
        """Validate configuration parameters."""
        if not self.species:
            raise ConfigError("At least one species profile is required")
        for key, profile in self.species.items():
            if key != profile.name:
                raise ConfigError(f"Species key '{key}' does not match profile name '{profile.name}'")
            unknown = [variable for variable in profile.variables if variable not in LAYERS]
            if unknown:
                raise ConfigError(
                    f"Species '{key}' uses unknown variables {unknown} "
                    f"(available: {', '.join(LAYERS)})"
                )
        if isinstance(self.depth_convention, str):
            try:
                self.depth_convention = DepthConvention(self.depth_convention.lower())
            except ValueError:
                raise ConfigError(
                    f"Unknown depth convention '{self.depth_convention}', "
                    f"expected one of {[c.value for c in DepthConvention]}"
                )
        if self.area_unit not in AREA_UNITS:
            raise ConfigError(f"area_unit must be one of {AREA_UNITS}, got {self.area_unit!r}")
        if self.reprojection_resampling not in ("nearest", "bilinear", "cubic", "average", "mode"):
            raise ConfigError(f"Unknown resampling method {self.reprojection_resampling!r}")
        if self.max_workers < 1:
            raise ConfigError(f"max_workers must be >= 1, got {self.max_workers}")
        if not math.isfinite(self.sst_scale) or self.sst_scale == 0:
            raise ConfigError(f"sst_scale must be finite and non-zero, got {self.sst_scale}")
        if not math.isfinite(self.sst_offset):
            raise ConfigError(f"sst_offset must be finite, got {self.sst_offset}")
        if not self.target_crs:
            raise ConfigError("target_crs is required")

    def select_species(self, names: Optional[Iterable[str]]) -> List[SpeciesProfile]:
        """
        Profiles for the requested species, all of them when names is empty.

        Raises:
            ConfigError: If a requested species is not configured
        """
        names = list(names or [])
        if not names:
            return [self.species[name] for name in sorted(self.species)]
        unknown = [name for name in names if name not in self.species]
        if unknown:
            raise ConfigError(
                f"Unknown species: {', '.join(unknown)} "
                f"(configured: {', '.join(sorted(self.species))})"
            )
        return [self.species[name] for name in names]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary (YAML layout)."""
        return {
            "target_crs": self.target_crs,
            "area_unit": self.area_unit,
            "sst": {"scale": self.sst_scale, "offset": self.sst_offset},
            "depth": {"convention": self.depth_convention.value},
            "boundaries": {"name_field": self.boundary_name_field},
            "reprojection": {"resampling": self.reprojection_resampling},
            "execution": {"max_workers": self.max_workers, "fail_fast": self.fail_fast},
            "species": {name: profile.to_dict() for name, profile in sorted(self.species.items())},
        }


_TOP_LEVEL_KEYS = {
    "target_crs", "area_unit", "sst", "depth", "boundaries",
    "reprojection", "execution", "species",
}


def _section(data: Dict[str, Any], key: str, allowed: Sequence[str]) -> Dict[str, Any]:
    section = data.get(key) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"'{key}' must be a mapping")
    unknown = set(section) - set(allowed)
    if unknown:
        raise ConfigError(f"Unknown keys in '{key}': {sorted(unknown)}")
    return section


def config_from_dict(data: Dict[str, Any]) -> AnalysisConfig:
    """
    Build an AnalysisConfig from its dictionary/YAML layout.

    Expected format:
        target_crs: EPSG:4326
        area_unit: km2
        sst: {scale: 1.0, offset: -273.15}
        depth: {convention: elevation}
        boundaries: {name_field: rgn}
        execution: {max_workers: 2, fail_fast: false}
        species:
          oyster: {sst: [11, 30], depth: [0, 70]}

    Omitted sections fall back to defaults; omitting species keeps the
    built-in profiles.
    """
    if not isinstance(data, dict):
        raise ConfigError("Configuration must be a mapping")
    unknown = set(data) - _TOP_LEVEL_KEYS
    if unknown:
        raise ConfigError(f"Unknown configuration keys: {sorted(unknown)}")

    sst = _section(data, "sst", ("scale", "offset"))
    depth = _section(data, "depth", ("convention",))
    boundaries = _section(data, "boundaries", ("name_field",))
    reprojection = _section(data, "reprojection", ("resampling",))
    execution = _section(data, "execution", ("max_workers", "fail_fast"))

    kwargs: Dict[str, Any] = {}
    if "species" in data:
        species_data = data["species"]
        if not isinstance(species_data, dict) or not species_data:
            raise ConfigError("'species' must be a non-empty mapping")
        species = {}
        for name, ranges in species_data.items():
            if not isinstance(ranges, dict):
                raise ConfigError(f"Species '{name}' must map variables to ranges")
            species[str(name)] = SpeciesProfile(name=str(name), ranges=ranges)
        kwargs["species"] = species

    try:
        if "target_crs" in data:
            kwargs["target_crs"] = str(data["target_crs"])
        if "area_unit" in data:
            kwargs["area_unit"] = str(data["area_unit"])
        if "scale" in sst:
            kwargs["sst_scale"] = float(sst["scale"])
        if "offset" in sst:
            kwargs["sst_offset"] = float(sst["offset"])
        if "max_workers" in execution:
            kwargs["max_workers"] = int(execution["max_workers"])
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid configuration value: {e}") from e

    if "convention" in depth:
        kwargs["depth_convention"] = str(depth["convention"])
    if "name_field" in boundaries:
        kwargs["boundary_name_field"] = str(boundaries["name_field"])
    if "resampling" in reprojection:
        kwargs["reprojection_resampling"] = str(reprojection["resampling"]).lower()
    if "fail_fast" in execution:
        if not isinstance(execution["fail_fast"], bool):
            raise ConfigError(f"fail_fast must be true or false, got {execution['fail_fast']!r}")
        kwargs["fail_fast"] = execution["fail_fast"]

    return AnalysisConfig(**kwargs)


def load_config(path: Union[str, Path]) -> AnalysisConfig:
    """
    Load and validate configuration from a YAML file.

    Raises:
        ConfigError: If the file is missing, unparseable or invalid
    """
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Cannot parse {path}: {e}") from e

    config = config_from_dict(data)
    logger.info(
        f"Loaded config from {path}: {len(config.species)} species, "
        f"target CRS {config.target_crs}"
    )
    return config


def verify_depth_convention(
    grid: Any,
    convention: Union[DepthConvention, str],
    min_agreement: float = 0.5,
    ocean_mask: Optional[np.ndarray] = None,
) -> float:
    """
    Check a depth raster against its declared sign convention.

    Under the elevation convention ocean cells are <= 0; under the depth
    convention they are >= 0. Land cells carry the opposite sign, so only
    a majority of agreeing cells is required. When an ocean mask is given
    (e.g. the cells where SST is valid) only those cells vote, and the
    land share of the extent no longer matters.

    Args:
        grid: Depth RasterGrid
        convention: Declared convention
        min_agreement: Minimum fraction of valid cells that must agree
        ocean_mask: Optional boolean array of the grid's shape marking ocean cells

    Returns:
        Fraction of voting cells agreeing with the convention

    Raises:
        ConfigError: If too few cells agree, or no valid cell is left to vote
    """
    convention = DepthConvention(convention) if isinstance(convention, str) else convention
    voting = grid.valid_mask()
    if ocean_mask is not None:
        ocean_mask = np.asarray(ocean_mask, dtype=bool)
        if ocean_mask.shape != grid.shape:
            raise ValueError(
                f"Ocean mask shape {ocean_mask.shape} does not match grid shape {grid.shape}"
            )
        voting &= ocean_mask
    values = grid.data[voting]
    if values.size == 0:
        where = " over ocean cells" if ocean_mask is not None else ""
        raise ConfigError(f"Depth raster '{grid.name}' has no valid cells{where}")

    if convention == DepthConvention.ELEVATION:
        agreement = float(np.mean(values <= 0))
    else:
        agreement = float(np.mean(values >= 0))

    if agreement <= min_agreement:
        other = [c.value for c in DepthConvention if c != convention][0]
        raise ConfigError(
            f"Depth raster '{grid.name}' does not look like '{convention.value}' "
            f"convention: only {agreement:.0%} of cells agree (expected > "
            f"{min_agreement:.0%}); is it '{other}'?"
        )

    logger.debug(f"Depth convention '{convention.value}' agrees with {agreement:.0%} of cells")
    return agreement
