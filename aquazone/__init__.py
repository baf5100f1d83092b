"""
aquazone - aquaculture site suitability from gridded ocean data.

Combines multi-year sea-surface temperature and bathymetry rasters with
maritime boundary polygons to find, per species, where every environmental
requirement is met and how much suitable area each region holds.

Usage:
    from aquazone import AnalysisConfig, SuitabilityPipeline

    pipeline = SuitabilityPipeline(AnalysisConfig())
    inputs = pipeline.load(sst_paths, "depth.tif", "eez.geojson")
    report = pipeline.run(inputs, species=["oyster"])
"""

__version__ = "0.1.0"

from aquazone.config import (
    DEFAULT_SPECIES,
    AnalysisConfig,
    DepthConvention,
    SpeciesProfile,
    SuitabilityRange,
    load_config,
    verify_depth_convention,
)
from aquazone.errors import (
    AlignmentError,
    AquazoneError,
    BoundaryError,
    ConfigError,
    CRSError,
    CRSMismatchError,
    IncongruentMaskError,
    IncongruentStackError,
    PipelineStageError,
)
from aquazone.grid import BoundaryPolygonSet, RasterGrid, RasterStack
from aquazone.pipeline import (
    PipelineInputs,
    PipelineReport,
    PipelineStage,
    SpeciesResult,
    SuitabilityPipeline,
)

__all__ = [
    "__version__",
    "DEFAULT_SPECIES",
    "AnalysisConfig",
    "DepthConvention",
    "SpeciesProfile",
    "SuitabilityRange",
    "load_config",
    "verify_depth_convention",
    "AlignmentError",
    "AquazoneError",
    "BoundaryError",
    "ConfigError",
    "CRSError",
    "CRSMismatchError",
    "IncongruentMaskError",
    "IncongruentStackError",
    "PipelineStageError",
    "BoundaryPolygonSet",
    "RasterGrid",
    "RasterStack",
    "PipelineInputs",
    "PipelineReport",
    "PipelineStage",
    "SpeciesResult",
    "SuitabilityPipeline",
]
