"""
Resolution and Grid Alignment Tools.

Provides tools for forcing a raster onto another raster's grid, so that
layers captured at different resolution and extent can be compared cell
by cell.

Key Capabilities:
- Resolution representation and comparison
- Extent matching (clip or expand) against a reference grid
- Nearest-neighbour resampling onto the reference resolution
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple

import numpy as np

from aquazone.errors import AlignmentError
from aquazone.grid import RasterGrid
from aquazone.normalization.projection import CRSHandler, crs_equivalent

logger = logging.getLogger(__name__)


class ResolutionUnit(Enum):
    """Units for resolution specification."""

    METERS = "meters"
    DEGREES = "degrees"
    UNKNOWN = "unknown"


@dataclass
class Resolution:
    """
    Represents spatial resolution.

    Attributes:
        x: Resolution in x direction
        y: Resolution in y direction
        unit: Unit of measurement
        crs: Coordinate reference system
    """

    x: float
    y: float
    unit: ResolutionUnit = ResolutionUnit.METERS
    crs: Optional[str] = None

    def __post_init__(self):
        """Validate resolution values."""
        if self.x <= 0 or self.y <= 0:
            raise ValueError("Resolution must be positive")

    @classmethod
    def of_grid(cls, grid: RasterGrid) -> "Resolution":
        """Resolution of a grid, with units inferred from its CRS."""
        unit = ResolutionUnit.UNKNOWN
        if grid.crs is not None:
            info = CRSHandler().parse_crs(grid.crs)
            if info.is_geographic:
                unit = ResolutionUnit.DEGREES
            elif info.units and info.units.lower() in ("metre", "meter", "m"):
                unit = ResolutionUnit.METERS
        x, y = grid.resolution
        return cls(x, y, unit, grid.crs)

    def scale_factor_to(self, target: "Resolution") -> Tuple[float, float]:
        """
        Calculate scale factor needed to match target resolution.

        Args:
            target: Target resolution

        Returns:
            Scale factors (x, y); below 1 means the target is coarser

        Raises:
            ValueError: If resolutions have different units
        """
        if self.unit != target.unit:
            raise ValueError("Resolutions must have same units for comparison")

        return (self.x / target.x, self.y / target.y)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "x": self.x,
            "y": self.y,
            "unit": self.unit.value,
            "crs": self.crs,
        }


@dataclass
class AlignmentResult:
    """Result from aligning a grid onto a reference grid."""

    grid: RasterGrid
    source_resolution: Resolution
    target_resolution: Resolution
    scale_factors: Tuple[float, float]
    filled_cells: int  # Reference cells outside the source extent
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert result to dictionary."""
        return {
            "grid": self.grid.to_dict(),
            "source_resolution": self.source_resolution.to_dict(),
            "target_resolution": self.target_resolution.to_dict(),
            "scale_factors": self.scale_factors,
            "filled_cells": self.filled_cells,
            "metadata": self.metadata,
        }


class SpatialAligner:
    """
    Resamples a source grid onto a reference grid.

    Each reference cell takes the value of the source cell containing its
    centre, which is the nearest source cell centre on an axis-aligned grid.
    Nearest-neighbour never invents intermediate values, so it is used for
    depth and other categorical-leaning layers. Reference cells that fall
    outside the source extent become no-data.

    Example:
        aligner = SpatialAligner()
        result = aligner.align(reference=mean_sst, source=depth)
        depth_on_sst_grid = result.grid
    """

    def align(self, reference: RasterGrid, source: RasterGrid) -> AlignmentResult:
        """
        Align source onto the reference grid.

        Args:
            reference: Grid defining output extent and resolution
            source: Grid to resample, in the same CRS as reference

        Returns:
            AlignmentResult whose grid has the reference's transform and shape

        Raises:
            AlignmentError: If the two grids do not share a CRS
        """
        if not crs_equivalent(reference.crs, source.crs):
            raise AlignmentError(
                f"Cannot align '{source.name}' ({source.crs}) onto "
                f"'{reference.name}' ({reference.crs}); harmonize CRS first",
                expected=reference.crs,
                actual=source.crs,
            )

        logger.info(
            f"Aligning {source.name} {source.shape}@{source.resolution} onto "
            f"{reference.name} {reference.shape}@{reference.resolution}"
        )

        xs, ys = reference.cell_centers()
        st = source.transform
        cols = np.floor((xs - st.c) / st.a).astype(np.int64)
        rows = np.floor((ys - st.f) / st.e).astype(np.int64)
        inside = (cols >= 0) & (cols < source.width) & (rows >= 0) & (rows < source.height)

        if source.nodata is not None:
            fill = source.nodata
            out = np.full(reference.shape, fill, dtype=np.result_type(source.data.dtype, np.min_scalar_type(fill)))
        else:
            out = np.full(reference.shape, np.nan, dtype=np.float64)

        out[inside] = source.data[rows[inside], cols[inside]]

        filled = int(np.sum(~inside))
        if filled == out.size:
            logger.warning(f"{source.name} does not overlap {reference.name}; output is all no-data")
        elif filled:
            logger.debug(f"{filled} cells of {reference.name} lie outside {source.name}")

        grid = RasterGrid(
            data=out,
            transform=reference.transform,
            crs=reference.crs,
            nodata=source.nodata,
            name=source.name,
        )

        source_res = Resolution.of_grid(source)
        target_res = Resolution.of_grid(reference)
        return AlignmentResult(
            grid=grid,
            source_resolution=source_res,
            target_resolution=target_res,
            scale_factors=source_res.scale_factor_to(target_res),
            filled_cells=filled,
            metadata={"method": "nearest", "source_bounds": source.bounds},
        )


def align_to_reference(reference: RasterGrid, source: RasterGrid) -> RasterGrid:
    """
    Convenience function to align a grid onto a reference grid.

    Args:
        reference: Grid defining output extent and resolution
        source: Grid to resample

    Returns:
        Source values on the reference grid
    """
    return SpatialAligner().align(reference, source).grid
