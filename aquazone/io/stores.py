"""
Raster and Vector Stores.

Thin adapters over rasterio (rasters) and GeoJSON/shapely (boundaries)
producing the pipeline's data model. Format parsing is left to those
libraries; these classes only map files onto RasterGrid and
BoundaryPolygonSet and back.
"""

import json
import logging
from collections import OrderedDict
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import numpy as np
import rasterio
from shapely.geometry import shape
from shapely.ops import unary_union
from shapely.validation import make_valid

from aquazone.errors import BoundaryError
from aquazone.grid import BoundaryPolygonSet, RasterGrid

logger = logging.getLogger(__name__)

# RFC 7946: GeoJSON without a crs member is WGS84 lon/lat
GEOJSON_DEFAULT_CRS = "EPSG:4326"

_POLYGONAL = ("Polygon", "MultiPolygon")


class RasterStore:
    """
    Reads and writes single-band rasters.

    Example:
        store = RasterStore()
        depth = store.read("data/depth.tif")
        store.write(oyster_mask, "out/oyster_mask.tif")
    """

    def __init__(self, compress: str = "lzw"):
        self.compress = compress

    def read(
        self,
        path: Union[str, Path],
        name: Optional[str] = None,
        band: int = 1,
    ) -> RasterGrid:
        """
        Read one band of a raster file.

        Args:
            path: Raster file
            name: Dataset name (defaults to the file stem)
            band: 1-based band index

        Returns:
            RasterGrid with the file's CRS, transform and no-data value

        Raises:
            FileNotFoundError: If the file doesn't exist
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Raster not found: {path}")

        with rasterio.open(path) as src:
            if band < 1 or band > src.count:
                raise ValueError(f"{path} has {src.count} bands, cannot read band {band}")
            data = src.read(band)
            crs = src.crs.to_string() if src.crs else None
            grid = RasterGrid(
                data=data,
                transform=src.transform,
                crs=crs,
                nodata=src.nodata,
                name=name or path.stem,
            )

        if crs is None:
            logger.warning(f"Raster {path} has no CRS")
        logger.debug(f"Read {path}: {grid.shape} {grid.data.dtype} crs={crs} nodata={grid.nodata}")
        return grid

    def read_many(self, paths: List[Union[str, Path]]) -> List[RasterGrid]:
        """Read several rasters, in order."""
        return [self.read(path) for path in paths]

    def write(
        self,
        grid: RasterGrid,
        path: Union[str, Path],
        overwrite: bool = False,
    ) -> Path:
        """
        Write a grid as a single-band GeoTIFF.

        Raises:
            FileExistsError: If output exists and overwrite=False
        """
        path = Path(path)
        if path.exists() and not overwrite:
            raise FileExistsError(f"Output file exists: {path}")
        path.parent.mkdir(parents=True, exist_ok=True)

        profile = {
            "driver": "GTiff",
            "height": grid.height,
            "width": grid.width,
            "count": 1,
            "dtype": grid.data.dtype.name,
            "crs": grid.crs,
            "transform": grid.transform,
            "compress": self.compress,
        }
        if grid.nodata is not None:
            profile["nodata"] = grid.nodata

        with rasterio.open(path, "w", **profile) as dst:
            dst.write(np.asarray(grid.data), 1)

        logger.info(f"Wrote {grid.name} to {path}")
        return path


class VectorStore:
    """
    Reads named boundary polygons from GeoJSON.

    Features sharing a region name are dissolved into one geometry.
    """

    def __init__(self, fix_invalid: bool = False):
        """
        Args:
            fix_invalid: Repair invalid geometries instead of rejecting them
        """
        self.fix_invalid = fix_invalid

    def read(
        self,
        path: Union[str, Path],
        name_field: str = "rgn",
        crs: Optional[str] = None,
        name: Optional[str] = None,
    ) -> BoundaryPolygonSet:
        """
        Read a GeoJSON FeatureCollection of polygons.

        Args:
            path: GeoJSON file
            name_field: Feature property holding the region name
            crs: CRS override; otherwise the file's crs member or WGS84
            name: Dataset name (defaults to the file stem)

        Returns:
            BoundaryPolygonSet, regions in first-seen order

        Raises:
            FileNotFoundError: If the file doesn't exist
            BoundaryError: If features lack names or hold no polygons
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Boundary file not found: {path}")

        with open(path) as f:
            try:
                collection = json.load(f)
            except json.JSONDecodeError as e:
                raise BoundaryError(f"Cannot parse {path}: {e}") from e

        return self.from_geojson(collection, name_field=name_field, crs=crs, name=name or path.stem)

    def from_geojson(
        self,
        collection: Dict[str, Any],
        name_field: str = "rgn",
        crs: Optional[str] = None,
        name: str = "boundaries",
    ) -> BoundaryPolygonSet:
        """Build a boundary set from a GeoJSON FeatureCollection dict."""
        if collection.get("type") == "Feature":
            features = [collection]
        elif collection.get("type") == "FeatureCollection":
            features = collection.get("features", [])
        else:
            raise BoundaryError(f"'{name}' is not a GeoJSON Feature or FeatureCollection")

        parts: "OrderedDict[str, List[Any]]" = OrderedDict()
        for index, feature in enumerate(features):
            properties = feature.get("properties") or {}
            region = properties.get(name_field)
            if region is None or str(region).strip() == "":
                raise BoundaryError(
                    f"Feature {index} of '{name}' has no '{name_field}' property"
                )
            if not feature.get("geometry"):
                raise BoundaryError(f"Feature {index} ('{region}') of '{name}' has no geometry")

            geom = shape(feature["geometry"])
            if not geom.is_valid and self.fix_invalid:
                logger.warning(f"Repairing invalid geometry for region '{region}'")
                geom = _polygonal(make_valid(geom))
            parts.setdefault(str(region), []).append(geom)

        geometries = [
            geoms[0] if len(geoms) == 1 else unary_union(geoms)
            for geoms in parts.values()
        ]

        boundaries = BoundaryPolygonSet(
            names=tuple(parts.keys()),
            geometries=tuple(geometries),
            crs=crs or _geojson_crs(collection),
            name=name,
        )
        logger.debug(f"Read {len(boundaries)} regions from '{name}' ({boundaries.crs})")
        return boundaries


def _geojson_crs(collection: Dict[str, Any]) -> str:
    crs_member = collection.get("crs") or {}
    crs_name = (crs_member.get("properties") or {}).get("name")
    return crs_name or GEOJSON_DEFAULT_CRS


def _polygonal(geom: Any) -> Any:
    if geom.geom_type in _POLYGONAL:
        return geom
    polygons = [g for g in getattr(geom, "geoms", []) if g.geom_type in _POLYGONAL]
    return unary_union(polygons)
