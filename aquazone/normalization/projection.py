"""
Projection and CRS Handling for Data Harmonization.

Provides tools for coordinate reference system (CRS) parsing, comparison
and reprojection of raster grids and boundary polygons, plus the CRS
harmonizer that brings every pipeline input onto one reference CRS.

Key Capabilities:
- CRS parsing and validation from multiple formats (EPSG, WKT, PROJ)
- CRS equivalence checking
- In-memory raster reprojection with configurable resampling
- Polygon geometry transformation
- Harmonization of mixed raster/vector inputs to a target CRS
"""

import dataclasses
import logging
from dataclasses import dataclass, field
from enum import Enum
from functools import lru_cache
from typing import Any, Dict, List, Optional, Sequence, Union

import numpy as np
from pyproj import CRS, Transformer
from pyproj.exceptions import CRSError as PyprojCRSError

from aquazone.errors import CRSError
from aquazone.grid import BoundaryPolygonSet, RasterGrid, RasterStack

logger = logging.getLogger(__name__)

Dataset = Union[RasterGrid, RasterStack, BoundaryPolygonSet]


class ResamplingMethod(Enum):
    """Resampling methods for reprojection."""

    NEAREST = "nearest"
    BILINEAR = "bilinear"
    CUBIC = "cubic"
    AVERAGE = "average"
    MODE = "mode"


class CRSType(Enum):
    """Types of coordinate reference systems."""

    GEOGRAPHIC = "geographic"  # Lat/lon (e.g., EPSG:4326)
    PROJECTED = "projected"  # Planar (e.g., UTM)
    COMPOUND = "compound"  # Horizontal + vertical
    UNKNOWN = "unknown"


@dataclass
class CRSInfo:
    """
    Information about a coordinate reference system.

    Attributes:
        code: EPSG code or authority:code (e.g., "EPSG:4326")
        wkt: Well-Known Text representation
        crs_type: Type of CRS (geographic, projected, etc.)
        units: Linear units for projected CRS (metre, US survey foot, ...)
        unit_to_meters: Conversion factor from CRS linear units to metres
        is_geographic: True if geographic CRS (lat/lon)
        is_projected: True if projected CRS (planar)
    """

    code: str
    wkt: str
    crs_type: CRSType
    units: Optional[str]
    unit_to_meters: Optional[float]
    is_geographic: bool
    is_projected: bool

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "code": self.code,
            "crs_type": self.crs_type.value,
            "units": self.units,
            "unit_to_meters": self.unit_to_meters,
            "is_geographic": self.is_geographic,
            "is_projected": self.is_projected,
        }


@dataclass
class ReprojectionConfig:
    """
    Configuration for reprojection operations.

    Attributes:
        target_crs: Target coordinate reference system
        resampling: Resampling method for raster data
        num_threads: Number of threads for reprojection
    """

    target_crs: str
    resampling: ResamplingMethod = ResamplingMethod.NEAREST
    num_threads: int = 1

    def __post_init__(self):
        if self.num_threads < 1:
            raise ValueError(f"num_threads must be >= 1, got {self.num_threads}")


@dataclass
class HarmonizationResult:
    """Result from harmonizing a batch of datasets."""

    target_crs: str
    datasets: List[Dataset]
    reprojected: List[str] = field(default_factory=list)
    unchanged: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert result to dictionary."""
        return {
            "target_crs": self.target_crs,
            "reprojected": self.reprojected,
            "unchanged": self.unchanged,
        }


@lru_cache(maxsize=64)
def _load_crs(crs: str) -> CRS:
    return CRS.from_user_input(crs)


def crs_equivalent(crs1: Optional[str], crs2: Optional[str]) -> bool:
    """
    Check whether two CRS identifiers describe the same CRS.

    Undefined (None) CRS are never equivalent to anything.
    """
    if crs1 is None or crs2 is None:
        return False
    if crs1 == crs2:
        return True
    try:
        return _load_crs(str(crs1)).equals(_load_crs(str(crs2)))
    except (PyprojCRSError, TypeError, ValueError) as e:
        logger.debug(f"CRS equivalence check failed: {e}")
        return False


class CRSHandler:
    """
    Handler for CRS parsing and transformation.

    Example:
        handler = CRSHandler()
        info = handler.parse_crs("EPSG:4326")
        print(info.is_geographic)  # True
    """

    def parse_crs(self, crs: Union[str, int, Any]) -> CRSInfo:
        """
        Parse a CRS from various formats.

        Args:
            crs: CRS specification (EPSG code, WKT, PROJ4, or CRS object)

        Returns:
            CRSInfo with parsed CRS details

        Raises:
            CRSError: If CRS is missing or cannot be parsed
        """
        if crs is None:
            raise CRSError("No CRS defined", crs=crs)

        if isinstance(crs, int):
            crs_str = f"EPSG:{crs}"
        elif isinstance(crs, str):
            crs_str = crs
        else:
            # Assume it's already a CRS-like object
            crs_str = str(crs)

        try:
            pyproj_crs = _load_crs(crs_str)
        except (PyprojCRSError, TypeError, ValueError) as e:
            raise CRSError(f"Cannot parse CRS '{crs_str}': {e}", crs=crs_str) from e

        is_geographic = pyproj_crs.is_geographic
        is_projected = pyproj_crs.is_projected

        if is_geographic:
            crs_type = CRSType.GEOGRAPHIC
        elif is_projected:
            crs_type = CRSType.PROJECTED
        elif pyproj_crs.is_compound:
            crs_type = CRSType.COMPOUND
        else:
            crs_type = CRSType.UNKNOWN

        auth = pyproj_crs.to_authority()
        code = f"{auth[0]}:{auth[1]}" if auth else crs_str

        units = None
        unit_to_meters = None
        if is_projected and pyproj_crs.axis_info:
            units = pyproj_crs.axis_info[0].unit_name
            unit_to_meters = pyproj_crs.axis_info[0].unit_conversion_factor

        return CRSInfo(
            code=code,
            wkt=pyproj_crs.to_wkt(),
            crs_type=crs_type,
            units=units,
            unit_to_meters=unit_to_meters,
            is_geographic=is_geographic,
            is_projected=is_projected,
        )

    def transformer(self, source_crs: str, target_crs: str) -> Transformer:
        """Build an always-xy transformer between two CRS."""
        try:
            return Transformer.from_crs(
                _load_crs(source_crs), _load_crs(target_crs), always_xy=True
            )
        except (PyprojCRSError, TypeError, ValueError) as e:
            raise CRSError(
                f"No transformation from {source_crs} to {target_crs}: {e}",
                crs=target_crs,
            ) from e


class RasterReprojector:
    """
    Reprojects raster grids between coordinate systems in memory.

    Example:
        reprojector = RasterReprojector()
        utm = reprojector.reproject_grid(
            grid, ReprojectionConfig(target_crs="EPSG:32610")
        )
    """

    def __init__(self, crs_handler: Optional[CRSHandler] = None):
        self.crs_handler = crs_handler or CRSHandler()

    def reproject_grid(self, grid: RasterGrid, config: ReprojectionConfig) -> RasterGrid:
        """
        Reproject a grid to a new CRS.

        Cells are processed as float64; the grid's no-data sentinel (or NaN
        when it has none) marks both missing inputs and cells falling
        outside the source footprint.

        Args:
            grid: Source grid with a defined CRS
            config: Reprojection configuration

        Returns:
            New grid in config.target_crs

        Raises:
            CRSError: If the source has no CRS or the transformation is undefined
        """
        from rasterio.errors import CRSError as RasterioCRSError
        from rasterio.warp import Resampling, calculate_default_transform, reproject

        if grid.crs is None:
            raise CRSError(f"Raster '{grid.name}' has no CRS", dataset=grid.name)

        resampling = getattr(Resampling, config.resampling.value, Resampling.nearest)
        nodata = grid.nodata if grid.nodata is not None else np.nan
        source = grid.data.astype(np.float64)

        try:
            transform, width, height = calculate_default_transform(
                grid.crs,
                config.target_crs,
                grid.width,
                grid.height,
                *grid.bounds,
            )

            destination = np.full((height, width), nodata, dtype=np.float64)
            reproject(
                source=source,
                destination=destination,
                src_transform=grid.transform,
                src_crs=grid.crs,
                dst_transform=transform,
                dst_crs=config.target_crs,
                resampling=resampling,
                src_nodata=nodata,
                dst_nodata=nodata,
                num_threads=config.num_threads,
            )
        except RasterioCRSError as e:
            raise CRSError(
                f"Cannot reproject raster '{grid.name}' from {grid.crs} "
                f"to {config.target_crs}: {e}",
                dataset=grid.name,
                crs=config.target_crs,
            ) from e

        logger.debug(
            f"Reprojected {grid.name}: {grid.shape} {grid.crs} -> "
            f"{destination.shape} {config.target_crs}"
        )

        return RasterGrid(
            data=destination,
            transform=transform,
            crs=config.target_crs,
            nodata=grid.nodata,
            name=grid.name,
        )


class VectorReprojector:
    """
    Reprojects polygon geometries between coordinate systems.

    Geometries are transformed through their GeoJSON mapping; point, line
    and polygon types (single and multi) are supported.
    """

    def __init__(self, crs_handler: Optional[CRSHandler] = None):
        self.crs_handler = crs_handler or CRSHandler()

    def reproject_boundaries(
        self,
        boundaries: BoundaryPolygonSet,
        target_crs: str,
    ) -> BoundaryPolygonSet:
        """
        Reproject every polygon of a boundary set.

        Raises:
            CRSError: If the set has no CRS or a vertex cannot be transformed
        """
        from shapely.geometry import mapping, shape

        if boundaries.crs is None:
            raise CRSError(f"Boundary set '{boundaries.name}' has no CRS", dataset=boundaries.name)

        transformer = self.crs_handler.transformer(boundaries.crs, target_crs)
        geometries = []
        for region, geom in boundaries:
            geo = mapping(geom)
            coords = self._transform_coordinates(geo["coordinates"], transformer, geo["type"])
            if not np.all(np.isfinite(np.asarray(_flatten(coords), dtype=float))):
                raise CRSError(
                    f"Region '{region}' of '{boundaries.name}' cannot be "
                    f"transformed to {target_crs}",
                    dataset=boundaries.name,
                    crs=target_crs,
                )
            geometries.append(shape({"type": geo["type"], "coordinates": coords}))

        return boundaries.with_geometries(geometries, crs=target_crs)

    def _transform_coordinates(
        self,
        coords: Any,
        transformer: Any,
        geom_type: str,
    ) -> Any:
        """Recursively transform coordinates."""
        if geom_type == "Point":
            tx, ty = transformer.transform(coords[0], coords[1])
            if len(coords) > 2:
                return [tx, ty, coords[2]]
            return [tx, ty]

        elif geom_type in ["LineString", "MultiPoint", "LinearRing"]:
            return [
                self._transform_coordinates(coord, transformer, "Point")
                for coord in coords
            ]

        elif geom_type in ["Polygon", "MultiLineString"]:
            return [
                self._transform_coordinates(ring, transformer, "LineString")
                for ring in coords
            ]

        elif geom_type == "MultiPolygon":
            return [
                self._transform_coordinates(poly, transformer, "Polygon")
                for poly in coords
            ]

        raise ValueError(f"Unsupported geometry type: {geom_type}")


def _flatten(coords: Any) -> List[float]:
    if isinstance(coords, (int, float)):
        return [coords]
    flat = []
    for c in coords:
        flat.extend(_flatten(c))
    return flat


class CRSHarmonizer:
    """
    Brings rasters, raster stacks and boundary sets onto one CRS.

    Datasets already in the target CRS are passed through (relabelled with
    the canonical target identifier); everything else is reprojected.
    Inputs are never modified.

    Example:
        harmonizer = CRSHarmonizer()
        result = harmonizer.harmonize([sst_stack, depth, eez], "EPSG:4326")
        sst_stack, depth, eez = result.datasets
    """

    def __init__(
        self,
        crs_handler: Optional[CRSHandler] = None,
        resampling: ResamplingMethod = ResamplingMethod.NEAREST,
    ):
        self.crs_handler = crs_handler or CRSHandler()
        self.resampling = resampling
        self.raster_reprojector = RasterReprojector(self.crs_handler)
        self.vector_reprojector = VectorReprojector(self.crs_handler)

    def harmonize(self, datasets: Sequence[Dataset], target_crs: Union[str, int]) -> HarmonizationResult:
        """
        Reproject every dataset to the target CRS.

        Args:
            datasets: Rasters, stacks and/or boundary sets
            target_crs: Target CRS identifier

        Returns:
            HarmonizationResult whose datasets all report the same CRS identifier

        Raises:
            CRSError: If a dataset has no CRS or the target cannot be used
        """
        target = self.crs_handler.parse_crs(target_crs).code
        config = ReprojectionConfig(target_crs=target, resampling=self.resampling)

        logger.info(f"Harmonizing {len(datasets)} datasets to {target}")

        result = HarmonizationResult(target_crs=target, datasets=[])
        for dataset in datasets:
            if isinstance(dataset, RasterStack):
                members = [self._harmonize_grid(m, config, result) for m in dataset]
                result.datasets.append(RasterStack(members=tuple(members), labels=dataset.labels))
            elif isinstance(dataset, RasterGrid):
                result.datasets.append(self._harmonize_grid(dataset, config, result))
            elif isinstance(dataset, BoundaryPolygonSet):
                result.datasets.append(self._harmonize_boundaries(dataset, target, result))
            else:
                raise TypeError(f"Cannot harmonize {type(dataset).__name__}")

        return result

    def _harmonize_grid(
        self,
        grid: RasterGrid,
        config: ReprojectionConfig,
        result: HarmonizationResult,
    ) -> RasterGrid:
        self._require_crs(grid.crs, grid.name)
        if crs_equivalent(grid.crs, config.target_crs):
            result.unchanged.append(grid.name)
            return dataclasses.replace(grid, crs=config.target_crs)

        logger.info(f"Reprojecting raster {grid.name} from {grid.crs} to {config.target_crs}")
        result.reprojected.append(grid.name)
        return self.raster_reprojector.reproject_grid(grid, config)

    def _harmonize_boundaries(
        self,
        boundaries: BoundaryPolygonSet,
        target: str,
        result: HarmonizationResult,
    ) -> BoundaryPolygonSet:
        self._require_crs(boundaries.crs, boundaries.name)
        if crs_equivalent(boundaries.crs, target):
            result.unchanged.append(boundaries.name)
            return boundaries.with_geometries(boundaries.geometries, crs=target)

        logger.info(f"Reprojecting boundaries {boundaries.name} from {boundaries.crs} to {target}")
        result.reprojected.append(boundaries.name)
        return self.vector_reprojector.reproject_boundaries(boundaries, target)

    def _require_crs(self, crs: Optional[str], name: str) -> None:
        if crs is None:
            raise CRSError(f"Dataset '{name}' has no CRS", dataset=name)
        self.crs_handler.parse_crs(crs)


def harmonize(
    datasets: Sequence[Dataset],
    target_crs: Union[str, int],
    resampling: str = "nearest",
) -> List[Dataset]:
    """
    Convenience function to harmonize datasets to one CRS.

    Args:
        datasets: Rasters, stacks and/or boundary sets
        target_crs: Target CRS (e.g., "EPSG:4326")
        resampling: Resampling method name for rasters

    Returns:
        Harmonized datasets, in input order
    """
    harmonizer = CRSHarmonizer(resampling=ResamplingMethod(resampling.lower()))
    return harmonizer.harmonize(datasets, target_crs).datasets


def get_crs_info(crs: Union[str, int]) -> CRSInfo:
    """
    Get detailed information about a CRS.

    Args:
        crs: CRS specification (EPSG code or string)

    Returns:
        CRSInfo with CRS details
    """
    return CRSHandler().parse_crs(crs)
