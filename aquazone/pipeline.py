"""
Aquaculture Suitability Pipeline.

Runs the linear per-species pipeline:

    Load -> Harmonize -> Aggregate/Convert -> Align -> Normalize depth
         -> Classify (per variable) -> Combine -> Zonal aggregate

Load through depth normalization are shared by every species and run
once; a failure there aborts the run. Classify, Combine and Zonal run per
species in a thread pool. Each stage returns new immutable artifacts, so species
pipelines share only read-only inputs. A failing species is recorded in
the report without affecting the others, unless fail_fast is set.
"""

import logging
import time
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Union

from aquazone.analysis.suitability import SuitabilityClassifier, combine_masks, mask_statistics
from aquazone.analysis.units import UnitConversion, apply_conversion
from aquazone.analysis.zonal import ZonalAggregator, ZonalSummary
from aquazone.config import (
    DEPTH,
    SST,
    AnalysisConfig,
    DepthConvention,
    SpeciesProfile,
    verify_depth_convention,
)
from aquazone.errors import ConfigError, PipelineStageError
from aquazone.grid import BoundaryPolygonSet, RasterGrid, RasterStack
from aquazone.io.stores import RasterStore, VectorStore
from aquazone.normalization.projection import CRSHarmonizer, ResamplingMethod
from aquazone.normalization.resolution import SpatialAligner
from aquazone.normalization.temporal import AggregationMethod, TemporalAggregator

logger = logging.getLogger(__name__)

STATUS_SUCCEEDED = "succeeded"
STATUS_FAILED = "failed"

ELEVATION_TO_DEPTH = UnitConversion(scale=-1.0, offset=0.0, source_unit="m elevation", target_unit="m depth")


class PipelineStage(Enum):
    """Pipeline stages, in execution order."""

    LOAD = "load"
    HARMONIZE = "harmonize"
    AGGREGATE = "aggregate"
    CONVERT = "convert"
    ALIGN = "align"
    NORMALIZE_DEPTH = "normalize_depth"
    CLASSIFY = "classify"
    COMBINE = "combine"
    ZONAL = "zonal"


@dataclass
class PipelineInputs:
    """
    Raw pipeline inputs.

    Attributes:
        sst: Sea-surface temperature grids, one per time point
        depth: Bathymetry grid in the configured sign convention
        boundaries: Named regions to summarise over
        sst_labels: Optional labels (e.g. years) for the SST grids
    """

    sst: Sequence[RasterGrid]
    depth: RasterGrid
    boundaries: BoundaryPolygonSet
    sst_labels: Sequence[str] = ()

    def __post_init__(self):
        if isinstance(self.sst, RasterStack):
            self.sst_labels = self.sst_labels or self.sst.labels
            self.sst = list(self.sst.members)
        if not self.sst:
            raise ConfigError("At least one SST grid is required")


@dataclass
class PreparedLayers:
    """Harmonized, converted and aligned layers shared by all species."""

    crs: str
    layers: Dict[str, RasterGrid]
    boundaries: BoundaryPolygonSet
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class SpeciesResult:
    """Outcome of one species pipeline."""

    species: str
    status: str
    mask: Optional[RasterGrid] = None
    layer_masks: Dict[str, RasterGrid] = field(default_factory=dict)
    summary: Optional[ZonalSummary] = None
    failed_stage: Optional[str] = None
    error: Optional[str] = None
    duration_seconds: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.status == STATUS_SUCCEEDED

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary (without cell values)."""
        result = {
            "species": self.species,
            "status": self.status,
            "duration_seconds": self.duration_seconds,
        }
        if self.succeeded:
            result["mask"] = mask_statistics(self.mask).to_dict()
            result["layer_masks"] = {
                variable: mask_statistics(mask).to_dict()
                for variable, mask in sorted(self.layer_masks.items())
            }
            result["zonal_summary"] = self.summary.to_dict()
        else:
            result["failed_stage"] = self.failed_stage
            result["error"] = self.error
        return result


@dataclass
class PipelineReport:
    """Results of a run across species."""

    crs: str
    started_at: str
    results: Dict[str, SpeciesResult] = field(default_factory=dict)
    stage_timings: Dict[str, float] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def succeeded(self) -> List[str]:
        return sorted(name for name, r in self.results.items() if r.succeeded)

    @property
    def failed(self) -> List[str]:
        return sorted(name for name, r in self.results.items() if not r.succeeded)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "crs": self.crs,
            "started_at": self.started_at,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "stage_timings": self.stage_timings,
            "metadata": self.metadata,
            "species": {name: self.results[name].to_dict() for name in sorted(self.results)},
        }


@contextmanager
def _stage(stage: PipelineStage, species: Optional[str], timings: Dict[str, float]) -> Iterator[None]:
    start = time.perf_counter()
    try:
        yield
    except PipelineStageError:
        raise
    except Exception as e:
        raise PipelineStageError(stage.value, species, e) from e
    finally:
        timings[stage.value] = time.perf_counter() - start


class SuitabilityPipeline:
    """
    Aquaculture suitability pipeline.

    Example:
        pipeline = SuitabilityPipeline(AnalysisConfig())
        inputs = pipeline.load(sst_paths, "depth.tif", "eez.geojson")
        report = pipeline.run(inputs)
        for name in report.succeeded:
            print(report.results[name].summary.entries[0].region)
    """

    def __init__(
        self,
        config: Optional[AnalysisConfig] = None,
        raster_store: Optional[RasterStore] = None,
        vector_store: Optional[VectorStore] = None,
    ):
        self.config = config or AnalysisConfig()
        self.raster_store = raster_store or RasterStore()
        self.vector_store = vector_store or VectorStore()
        self.harmonizer = CRSHarmonizer(
            resampling=ResamplingMethod(self.config.reprojection_resampling)
        )
        self.aggregator = TemporalAggregator()
        self.aligner = SpatialAligner()
        self.classifier = SuitabilityClassifier()
        self.zonal = ZonalAggregator(area_unit=self.config.area_unit)

    def load(
        self,
        sst_paths: Sequence[Union[str, Path]],
        depth_path: Union[str, Path],
        boundaries_path: Union[str, Path],
        timings: Optional[Dict[str, float]] = None,
    ) -> PipelineInputs:
        """
        Read pipeline inputs from files.

        Raises:
            PipelineStageError: If any input cannot be read
        """
        timings = {} if timings is None else timings
        with _stage(PipelineStage.LOAD, None, timings):
            logger.info(f"Loading {len(sst_paths)} SST rasters, depth and boundaries")
            sst = self.raster_store.read_many(list(sst_paths))
            depth = self.raster_store.read(depth_path, name=DEPTH)
            boundaries = self.vector_store.read(
                boundaries_path, name_field=self.config.boundary_name_field
            )
            return PipelineInputs(
                sst=sst,
                depth=depth,
                boundaries=boundaries,
                sst_labels=[Path(p).stem for p in sst_paths],
            )

    def prepare(
        self,
        inputs: PipelineInputs,
        timings: Optional[Dict[str, float]] = None,
    ) -> PreparedLayers:
        """
        Run the shared stages: harmonize, aggregate, convert, align, normalize depth.

        Raises:
            PipelineStageError: Wrapping the failure of any shared stage
        """
        timings = {} if timings is None else timings
        config = self.config

        with _stage(PipelineStage.HARMONIZE, None, timings):
            harmonized = self.harmonizer.harmonize(
                [*inputs.sst, inputs.depth, inputs.boundaries], config.target_crs
            )
            *sst, depth, boundaries = harmonized.datasets

        with _stage(PipelineStage.AGGREGATE, None, timings):
            stack = RasterStack(members=tuple(sst), labels=tuple(inputs.sst_labels))
            mean_sst = self.aggregator.aggregate(stack, AggregationMethod.MEAN, name=SST).grid

        with _stage(PipelineStage.CONVERT, None, timings):
            conversion = UnitConversion(scale=config.sst_scale, offset=config.sst_offset)
            sst_converted = apply_conversion(mean_sst, conversion, name=SST)

        with _stage(PipelineStage.ALIGN, None, timings):
            aligned = self.aligner.align(reference=sst_converted, source=depth)

        with _stage(PipelineStage.NORMALIZE_DEPTH, None, timings):
            # SST has no data over land, so its valid cells are the ocean
            agreement = verify_depth_convention(
                aligned.grid, config.depth_convention, ocean_mask=sst_converted.valid_mask()
            )
            depth = aligned.grid
            if config.depth_convention == DepthConvention.ELEVATION:
                depth = apply_conversion(depth, ELEVATION_TO_DEPTH, name=DEPTH)

        return PreparedLayers(
            crs=harmonized.target_crs,
            layers={SST: sst_converted, DEPTH: depth},
            boundaries=boundaries,
            metadata={
                "harmonization": harmonized.to_dict(),
                "sst_members": len(stack),
                "sst_labels": list(stack.labels),
                "depth_convention": config.depth_convention.value,
                "depth_convention_agreement": agreement,
                "alignment": {
                    "scale_factors": list(aligned.scale_factors),
                    "filled_cells": aligned.filled_cells,
                },
                "grid": sst_converted.to_dict(),
            },
        )

    def run_species(self, prepared: PreparedLayers, profile: SpeciesProfile) -> SpeciesResult:
        """
        Classify, combine and summarise one species.

        Raises:
            PipelineStageError: Naming the failed stage and species
        """
        start = time.perf_counter()
        timings: Dict[str, float] = {}
        species = profile.name
        logger.info(f"Running suitability for {species}")

        with _stage(PipelineStage.CLASSIFY, species, timings):
            layer_masks = {}
            for variable in profile.variables:
                if variable not in prepared.layers:
                    raise ConfigError(
                        f"No '{variable}' layer available "
                        f"(have: {', '.join(sorted(prepared.layers))})"
                    )
                layer_masks[variable] = self.classifier.classify(
                    prepared.layers[variable],
                    profile.ranges[variable],
                    name=f"{species}_{variable}",
                )

        with _stage(PipelineStage.COMBINE, species, timings):
            masks = [layer_masks[variable] for variable in profile.variables]
            if len(masks) == 1:
                mask = masks[0].with_data(masks[0].data, name=species)
            else:
                mask = combine_masks(masks, name=species)

        with _stage(PipelineStage.ZONAL, species, timings):
            summary = self.zonal.aggregate(mask, prepared.boundaries)

        return SpeciesResult(
            species=species,
            status=STATUS_SUCCEEDED,
            mask=mask,
            layer_masks=layer_masks,
            summary=summary,
            duration_seconds=time.perf_counter() - start,
        )

    def run(
        self,
        inputs: PipelineInputs,
        species: Optional[Iterable[str]] = None,
    ) -> PipelineReport:
        """
        Run the full pipeline for the selected species.

        Args:
            inputs: Raw inputs
            species: Species names to run (all configured when None)

        Returns:
            PipelineReport with one result per species

        Raises:
            ConfigError: If an unknown species is requested
            PipelineStageError: If a shared stage fails, or a species fails
                with fail_fast enabled
        """
        profiles = self.config.select_species(species)
        report = PipelineReport(
            crs=self.config.target_crs,
            started_at=datetime.now(timezone.utc).isoformat(),
        )

        prepared = self.prepare(inputs, report.stage_timings)
        report.crs = prepared.crs
        report.metadata.update(prepared.metadata)

        workers = min(self.config.max_workers, len(profiles))
        logger.info(f"Running {len(profiles)} species with {workers} workers")

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="species") as pool:
            futures = {pool.submit(self.run_species, prepared, p): p.name for p in profiles}

            if self.config.fail_fast:
                done, pending = wait(futures, return_when=FIRST_EXCEPTION)
                for future in pending:
                    future.cancel()
            for future, name in futures.items():
                if future.cancelled():
                    continue
                try:
                    report.results[name] = future.result()
                except PipelineStageError as e:
                    logger.error(f"Species {name} failed at stage {e.stage}: {e.cause}")
                    if self.config.fail_fast:
                        raise
                    report.results[name] = SpeciesResult(
                        species=name,
                        status=STATUS_FAILED,
                        failed_stage=e.stage,
                        error=f"{type(e.cause).__name__}: {e.cause}",
                    )

        logger.info(
            f"Pipeline finished: {len(report.succeeded)} succeeded, "
            f"{len(report.failed)} failed"
        )
        return report
