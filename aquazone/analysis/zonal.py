"""
Zonal Aggregation of Suitability Masks

Summarises a suitability mask per boundary polygon (e.g. suitable area per
EEZ region) and ranks regions by suitable area.

A cell belongs to a region when its centre falls inside the polygon (the
rasterio/GDAL rasterisation rule). Regions are evaluated in ascending name
order and a cell already counted for one region is not counted again, so
regional areas always sum to at most the mask's total suitable area.

Cell areas are geodesic for geographic CRS (pyproj Geod on the CRS
ellipsoid) and planar for projected CRS.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional

import numpy as np
from pyproj import CRS
from rasterio.features import geometry_mask
from shapely.geometry import mapping

from aquazone.analysis.suitability import SUITABLE, validate_mask
from aquazone.errors import CRSError, CRSMismatchError
from aquazone.grid import BoundaryPolygonSet, RasterGrid
from aquazone.normalization.projection import CRSHandler, crs_equivalent

logger = logging.getLogger(__name__)

# Square metres per output unit
AREA_UNIT_FACTORS = {
    "m2": 1.0,
    "ha": 1.0e4,
    "km2": 1.0e6,
}


@dataclass
class ZonalEntry:
    """Suitable area of one region."""

    region: str
    rank: int
    suitable_cells: int
    region_cells: int
    suitable_area: float

    @property
    def suitable_fraction(self) -> float:
        """Share of the region's cells that are suitable."""
        if self.region_cells == 0:
            return 0.0
        return self.suitable_cells / self.region_cells

    def to_dict(self) -> Dict[str, Any]:
        return {
            "region": self.region,
            "rank": self.rank,
            "suitable_cells": self.suitable_cells,
            "region_cells": self.region_cells,
            "suitable_area": self.suitable_area,
            "suitable_fraction": self.suitable_fraction,
        }


@dataclass
class ZonalSummary:
    """
    Suitable area per region, ordered by descending area.

    Ties are broken by region name, ascending.

    Attributes:
        name: Mask the summary was computed from
        area_unit: Unit of every area value
        crs: CRS shared by mask and boundaries
        entries: One entry per region, in rank order
        total_suitable_area: Suitable area in the whole mask
        unassigned_area: Suitable area outside every region
    """

    name: str
    area_unit: str
    crs: str
    entries: List[ZonalEntry] = field(default_factory=list)
    total_suitable_area: float = 0.0
    unassigned_area: float = 0.0

    def __iter__(self) -> Iterator[ZonalEntry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def get(self, region: str) -> Optional[ZonalEntry]:
        for entry in self.entries:
            if entry.region == region:
                return entry
        return None

    def areas(self) -> Dict[str, float]:
        """Region name to suitable area."""
        return {entry.region: entry.suitable_area for entry in self.entries}

    @property
    def assigned_area(self) -> float:
        return float(sum(entry.suitable_area for entry in self.entries))

    def to_rows(self) -> List[Dict[str, Any]]:
        """Flat rows for tabular export."""
        rows = []
        for entry in self.entries:
            row = entry.to_dict()
            row["area_unit"] = self.area_unit
            rows.append(row)
        return rows

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "area_unit": self.area_unit,
            "crs": self.crs,
            "total_suitable_area": self.total_suitable_area,
            "unassigned_area": self.unassigned_area,
            "regions": [entry.to_dict() for entry in self.entries],
        }


class ZonalAggregator:
    """
    Computes suitable area per boundary polygon.

    Example:
        aggregator = ZonalAggregator(area_unit="km2")
        summary = aggregator.aggregate(oyster_mask, eez_regions)
        best = summary.entries[0].region
    """

    def __init__(self, area_unit: str = "km2", crs_handler: Optional[CRSHandler] = None):
        if area_unit not in AREA_UNIT_FACTORS:
            raise ValueError(
                f"area_unit must be one of {sorted(AREA_UNIT_FACTORS)}, got {area_unit!r}"
            )
        self.area_unit = area_unit
        self.crs_handler = crs_handler or CRSHandler()

    def aggregate(self, mask: RasterGrid, boundaries: BoundaryPolygonSet) -> ZonalSummary:
        """
        Summarise a suitability mask per region.

        Args:
            mask: Binary suitability mask
            boundaries: Regions in the mask's CRS

        Returns:
            ZonalSummary ranked by descending suitable area

        Raises:
            CRSMismatchError: If mask and boundaries do not share a CRS
            CRSError: If cell areas cannot be computed for the mask's CRS
        """
        if not crs_equivalent(mask.crs, boundaries.crs):
            raise CRSMismatchError(
                f"Mask '{mask.name}' ({mask.crs}) and boundaries "
                f"'{boundaries.name}' ({boundaries.crs}) do not share a CRS",
                expected=mask.crs,
                actual=boundaries.crs,
            )
        validate_mask(mask)

        factor = AREA_UNIT_FACTORS[self.area_unit]
        cell_areas = self.cell_areas(mask) / factor
        suitable = mask.data == SUITABLE
        claimed = np.zeros(mask.shape, dtype=bool)

        logger.info(f"Aggregating {mask.name} over {len(boundaries)} regions of {boundaries.name}")

        unranked = []
        for region, geom in sorted(boundaries, key=lambda item: item[0]):
            in_region = geometry_mask(
                [mapping(geom)],
                out_shape=mask.shape,
                transform=mask.transform,
                all_touched=False,
                invert=True,
            )
            counted = in_region & suitable & ~claimed
            claimed |= counted

            count = int(np.count_nonzero(counted))
            area = float(cell_areas[counted].sum()) if count else 0.0
            unranked.append((region, count, int(np.count_nonzero(in_region)), area))
            logger.debug(f"{region}: {count} suitable cells, {area:.3f} {self.area_unit}")

        unranked.sort(key=lambda item: (-item[3], item[0]))
        entries = [
            ZonalEntry(
                region=region,
                rank=rank,
                suitable_cells=count,
                region_cells=region_cells,
                suitable_area=area,
            )
            for rank, (region, count, region_cells, area) in enumerate(unranked, start=1)
        ]

        total = float(cell_areas[suitable].sum())
        unassigned = float(cell_areas[suitable & ~claimed].sum())

        return ZonalSummary(
            name=mask.name,
            area_unit=self.area_unit,
            crs=mask.crs,
            entries=entries,
            total_suitable_area=total,
            unassigned_area=unassigned,
        )

    def cell_areas(self, grid: RasterGrid) -> np.ndarray:
        """
        Area of every cell in square metres.

        Raises:
            CRSError: If the grid's CRS is neither geographic nor projected
        """
        info = self.crs_handler.parse_crs(grid.crs)
        t = grid.transform

        if info.is_projected:
            unit = info.unit_to_meters or 1.0
            area = abs(t.a * t.e) * unit * unit
            return np.full(grid.shape, area, dtype=np.float64)

        if info.is_geographic:
            geod = CRS.from_user_input(grid.crs).get_geod()
            x0 = t.c
            x1 = t.c + t.a
            row_areas = np.empty(grid.height, dtype=np.float64)
            for row in range(grid.height):
                y0 = t.f + row * t.e
                y1 = y0 + t.e
                area, _ = geod.polygon_area_perimeter([x0, x1, x1, x0], [y0, y0, y1, y1])
                row_areas[row] = abs(area)
            return np.repeat(row_areas[:, np.newaxis], grid.width, axis=1)

        raise CRSError(
            f"Cannot compute cell areas in {grid.crs} ({info.crs_type.value} CRS)",
            dataset=grid.name,
            crs=grid.crs,
        )


def zonal_summary(
    mask: RasterGrid,
    boundaries: BoundaryPolygonSet,
    area_unit: str = "km2",
) -> ZonalSummary:
    """Convenience function to summarise a mask per region."""
    return ZonalAggregator(area_unit=area_unit).aggregate(mask, boundaries)
