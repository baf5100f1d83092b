"""
Threshold Suitability Classification and Mask Combination

Turns continuous environmental layers into binary suitability masks and
intersects the masks of every requirement a species has.

Masks are uint8 grids holding only 0 (unsuitable) and 1 (suitable). They
carry no no-data sentinel: a missing measurement is classified unsuitable,
so downstream combination can treat 0 uniformly.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence

import numpy as np

from aquazone.config import SuitabilityRange
from aquazone.errors import IncongruentMaskError
from aquazone.grid import RasterGrid

logger = logging.getLogger(__name__)

SUITABLE = 1
UNSUITABLE = 0


@dataclass
class MaskStatistics:
    """Summary of a suitability mask."""

    total_cells: int
    suitable_cells: int

    @property
    def suitable_percent(self) -> float:
        if self.total_cells == 0:
            return 0.0
        return 100.0 * self.suitable_cells / self.total_cells

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_cells": self.total_cells,
            "suitable_cells": self.suitable_cells,
            "suitable_percent": self.suitable_percent,
        }


class SuitabilityClassifier:
    """
    Reclassifies a continuous grid into a binary suitability mask.

    A cell is suitable when lo <= value <= hi; both bounds are inclusive.
    No-data cells are unsuitable.

    Example:
        classifier = SuitabilityClassifier()
        sst_mask = classifier.classify(mean_sst_c, SuitabilityRange(11, 30))
    """

    def classify(
        self,
        grid: RasterGrid,
        suitable_range: SuitabilityRange,
        name: Optional[str] = None,
    ) -> RasterGrid:
        """
        Classify every cell of a grid.

        Args:
            grid: Continuous input grid
            suitable_range: Inclusive range of suitable values
            name: Name of the output mask

        Returns:
            Congruent uint8 mask grid with values in {0, 1}
        """
        valid = grid.valid_mask()
        inside = np.zeros(grid.shape, dtype=bool)
        inside[valid] = suitable_range.contains(grid.data[valid])
        mask = inside.astype(np.uint8)

        stats = mask_statistics_from_array(mask)
        logger.info(
            f"Classified {grid.name} with {suitable_range}: "
            f"{stats.suitable_cells}/{stats.total_cells} cells suitable "
            f"({stats.suitable_percent:.1f}%)"
        )

        return grid.with_data(mask, nodata=None, name=name or f"{grid.name}_suitable")


def combine_masks(masks: Sequence[RasterGrid], name: Optional[str] = None) -> RasterGrid:
    """
    Intersect suitability masks (logical AND).

    A cell is suitable in the output only if it is suitable in every input.

    Args:
        masks: Two or more congruent binary masks
        name: Name of the output mask

    Returns:
        Combined uint8 mask

    Raises:
        ValueError: If fewer than two masks are given or a mask is not binary
        IncongruentMaskError: If masks differ in CRS, extent or resolution
    """
    masks = list(masks)
    if len(masks) < 2:
        raise ValueError(f"Combining needs at least two masks, got {len(masks)}")

    reference = masks[0]
    for mask in masks:
        problems = reference.congruency_problems(mask)
        if problems:
            raise IncongruentMaskError(
                f"Mask '{mask.name}' is not congruent with '{reference.name}': "
                f"{'; '.join(problems)}",
                expected=reference.to_dict(),
                actual=mask.to_dict(),
            )
        validate_mask(mask)

    combined = np.logical_and.reduce([mask.data.astype(bool) for mask in masks])
    result = reference.with_data(
        combined.astype(np.uint8),
        nodata=None,
        name=name or "_and_".join(mask.name for mask in masks),
    )

    logger.info(
        f"Combined {len(masks)} masks into {result.name}: "
        f"{int(combined.sum())} suitable cells"
    )
    return result


def mask_statistics(mask: RasterGrid) -> MaskStatistics:
    """Count suitable cells in a mask."""
    return mask_statistics_from_array(mask.data)


def mask_statistics_from_array(mask: np.ndarray) -> MaskStatistics:
    return MaskStatistics(
        total_cells=int(mask.size),
        suitable_cells=int(np.count_nonzero(mask == SUITABLE)),
    )


def validate_mask(mask: RasterGrid) -> None:
    """
    Check a mask holds only 0 and 1.

    Raises:
        ValueError: If any cell is NaN or another value
    """
    data = mask.data
    if np.issubdtype(data.dtype, np.floating) and np.isnan(data).any():
        raise ValueError(f"Mask '{mask.name}' contains NaN cells")
    if not np.isin(data, (UNSUITABLE, SUITABLE)).all():
        raise ValueError(f"Mask '{mask.name}' contains values other than 0 and 1")
