"""
Affine unit conversion for raster values.

value' = value * scale + offset, applied to measured cells only; no-data
cells pass through unchanged.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import numpy as np

from aquazone.grid import RasterGrid

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UnitConversion:
    """
    Affine conversion between two units.

    Attributes:
        scale: Multiplicative factor
        offset: Additive offset, applied after scaling
        source_unit: Label of the input unit
        target_unit: Label of the output unit
    """

    scale: float = 1.0
    offset: float = 0.0
    source_unit: str = ""
    target_unit: str = ""

    def __post_init__(self):
        if not np.isfinite(self.scale) or self.scale == 0:
            raise ValueError(f"scale must be finite and non-zero, got {self.scale}")
        if not np.isfinite(self.offset):
            raise ValueError(f"offset must be finite, got {self.offset}")

    def inverse(self) -> "UnitConversion":
        """Conversion undoing this one."""
        return UnitConversion(
            scale=1.0 / self.scale,
            offset=-self.offset / self.scale,
            source_unit=self.target_unit,
            target_unit=self.source_unit,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "scale": self.scale,
            "offset": self.offset,
            "source_unit": self.source_unit,
            "target_unit": self.target_unit,
        }


KELVIN_TO_CELSIUS = UnitConversion(scale=1.0, offset=-273.15, source_unit="K", target_unit="degC")
CELSIUS_TO_KELVIN = KELVIN_TO_CELSIUS.inverse()


def convert_units(
    grid: RasterGrid,
    offset: float = 0.0,
    scale: float = 1.0,
    name: Optional[str] = None,
) -> RasterGrid:
    """
    Apply value * scale + offset to every measured cell.

    Args:
        grid: Input grid
        offset: Additive offset
        scale: Multiplicative factor
        name: Name of the output grid (defaults to the input's)

    Returns:
        New float64 grid with the same georeferencing and no-data sentinel
    """
    return apply_conversion(grid, UnitConversion(scale=scale, offset=offset), name=name)


def apply_conversion(
    grid: RasterGrid,
    conversion: UnitConversion,
    name: Optional[str] = None,
) -> RasterGrid:
    """Apply a UnitConversion to a grid."""
    valid = grid.valid_mask()
    values = grid.data.astype(np.float64)
    converted = np.where(valid, values * conversion.scale + conversion.offset, values)

    logger.debug(
        f"Converted {grid.name} {conversion.source_unit or '?'} -> "
        f"{conversion.target_unit or '?'} (x{conversion.scale} {conversion.offset:+})"
    )
    return grid.with_data(converted, name=name)
