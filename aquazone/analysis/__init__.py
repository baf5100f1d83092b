"""
Suitability Analysis.

Raster algebra applied after normalization:
- units: affine unit conversion (e.g. Kelvin to Celsius)
- suitability: threshold classification and mask combination
- zonal: suitable area per boundary region
"""

from aquazone.analysis.units import (
    CELSIUS_TO_KELVIN,
    KELVIN_TO_CELSIUS,
    UnitConversion,
    apply_conversion,
    convert_units,
)
from aquazone.analysis.suitability import (
    MaskStatistics,
    SuitabilityClassifier,
    combine_masks,
    mask_statistics,
    validate_mask,
)
from aquazone.analysis.zonal import (
    AREA_UNIT_FACTORS,
    ZonalAggregator,
    ZonalEntry,
    ZonalSummary,
    zonal_summary,
)

__all__ = [
    "CELSIUS_TO_KELVIN",
    "KELVIN_TO_CELSIUS",
    "UnitConversion",
    "apply_conversion",
    "convert_units",
    "MaskStatistics",
    "SuitabilityClassifier",
    "combine_masks",
    "mask_statistics",
    "validate_mask",
    "AREA_UNIT_FACTORS",
    "ZonalAggregator",
    "ZonalEntry",
    "ZonalSummary",
    "zonal_summary",
]
