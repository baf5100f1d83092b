"""
Temporal Aggregation of Raster Stacks.

Collapses a stack of congruent grids of one variable (e.g. one sea-surface
temperature grid per year) into a single multi-year grid.

Key Capabilities:
- Cell-wise mean, median, min and max across stack members
- No-data cells excluded per position; all-missing positions stay no-data
- Per-cell count of contributing members for inspection
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence

import numpy as np

from aquazone.grid import RasterGrid, RasterStack

logger = logging.getLogger(__name__)


class AggregationMethod(Enum):
    """Methods for temporal aggregation."""

    MEAN = "mean"
    MEDIAN = "median"
    MIN = "min"
    MAX = "max"


@dataclass
class AggregationResult:
    """Result from aggregating a raster stack."""

    grid: RasterGrid
    method: AggregationMethod
    member_count: int
    valid_counts: np.ndarray  # Members contributing to each cell
    labels: List[str] = field(default_factory=list)

    @property
    def missing_cells(self) -> int:
        """Cells with no valid member at all."""
        return int(np.sum(self.valid_counts == 0))

    def to_dict(self) -> Dict[str, Any]:
        """Convert result to dictionary."""
        return {
            "grid": self.grid.to_dict(),
            "method": self.method.value,
            "member_count": self.member_count,
            "missing_cells": self.missing_cells,
            "labels": self.labels,
        }


class TemporalAggregator:
    """
    Aggregates a raster stack into one grid, cell by cell.

    Example:
        aggregator = TemporalAggregator()
        result = aggregator.aggregate(RasterStack(members=(sst_2008, sst_2009)))
        mean_sst = result.grid
    """

    def __init__(self):
        """Initialize aggregator."""
        self._aggregation_funcs: Dict[AggregationMethod, Callable] = {
            AggregationMethod.MEAN: np.nanmean,
            AggregationMethod.MEDIAN: np.nanmedian,
            AggregationMethod.MIN: np.nanmin,
            AggregationMethod.MAX: np.nanmax,
        }

    def aggregate(
        self,
        stack: RasterStack,
        method: AggregationMethod = AggregationMethod.MEAN,
        name: Optional[str] = None,
    ) -> AggregationResult:
        """
        Aggregate all stack members at each cell.

        Each member's own no-data sentinel is excluded at every position.
        The output uses the first member's sentinel, or NaN when it has none.

        Args:
            stack: Congruent grids of one variable
            method: Aggregation method
            name: Name of the output grid (defaults to "<first member>_<method>")

        Returns:
            AggregationResult holding the aggregated grid
        """
        reference = stack.reference
        logger.info(
            f"Aggregating {len(stack)} grids of {reference.name} ({method.value})"
        )

        values = np.stack([
            np.where(member.valid_mask(), member.data.astype(np.float64), np.nan)
            for member in stack
        ])
        valid_counts = np.sum(~np.isnan(values), axis=0)
        all_missing = valid_counts == 0

        # Fill all-missing positions before reducing to keep numpy quiet
        values[:, all_missing] = 0.0
        aggregated = self._aggregation_funcs[method](values, axis=0)

        nodata = reference.nodata
        aggregated[all_missing] = np.nan if nodata is None else nodata

        if np.any(all_missing):
            logger.debug(f"{int(np.sum(all_missing))} cells have no data in any member")

        grid = reference.with_data(
            aggregated,
            nodata=nodata,
            name=name or f"{reference.name}_{method.value}",
        )
        return AggregationResult(
            grid=grid,
            method=method,
            member_count=len(stack),
            valid_counts=valid_counts,
            labels=list(stack.labels),
        )


def aggregate_grids(
    grids: Sequence[RasterGrid],
    method: str = "mean",
    labels: Optional[Sequence[str]] = None,
) -> RasterGrid:
    """
    Convenience function to aggregate congruent grids.

    Args:
        grids: Grids of one variable at different time points
        method: Aggregation method name
        labels: Optional per-grid labels

    Returns:
        Aggregated grid

    Raises:
        IncongruentStackError: If the grids are not congruent
    """
    stack = RasterStack(members=tuple(grids), labels=tuple(labels or ()))
    return TemporalAggregator().aggregate(stack, AggregationMethod(method.lower())).grid
