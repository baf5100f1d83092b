"""
Normalization Tools for the Suitability Pipeline.

Brings the environmental layers onto a common footing before analysis:
- Coordinate reference systems (projection)
- Time (temporal aggregation of yearly stacks)
- Grids (resolution and extent alignment)

Each module follows a consistent pattern:
- Config/Result dataclasses for operation options and details
- Handler class with the main methods
- Convenience functions for simple usage
"""

from aquazone.normalization.projection import (
    CRSHandler,
    CRSHarmonizer,
    CRSInfo,
    CRSType,
    HarmonizationResult,
    RasterReprojector,
    ReprojectionConfig,
    ResamplingMethod,
    VectorReprojector,
    crs_equivalent,
    get_crs_info,
    harmonize,
)

from aquazone.normalization.temporal import (
    AggregationMethod,
    AggregationResult,
    TemporalAggregator,
    aggregate_grids,
)

from aquazone.normalization.resolution import (
    AlignmentResult,
    Resolution,
    ResolutionUnit,
    SpatialAligner,
    align_to_reference,
)

__all__ = [
    # Projection
    "CRSHandler",
    "CRSHarmonizer",
    "CRSInfo",
    "CRSType",
    "HarmonizationResult",
    "RasterReprojector",
    "ReprojectionConfig",
    "ResamplingMethod",
    "VectorReprojector",
    "crs_equivalent",
    "get_crs_info",
    "harmonize",
    # Temporal
    "AggregationMethod",
    "AggregationResult",
    "TemporalAggregator",
    "aggregate_grids",
    # Resolution
    "AlignmentResult",
    "Resolution",
    "ResolutionUnit",
    "SpatialAligner",
    "align_to_reference",
]
