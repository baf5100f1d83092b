"""
Shared fixtures for aquazone tests.

Grids are small and built in memory with rasterio's from_origin; the
"west coast" fixtures mimic the layout of the real inputs: multi-year SST
in Kelvin, bathymetry as elevation, and named EEZ regions.
"""

import json
from pathlib import Path

import numpy as np
import pytest
from rasterio.transform import from_origin
from shapely.geometry import box

from aquazone.grid import BoundaryPolygonSet, RasterGrid

KELVIN = 273.15

# 2 x 5 grid of 1 degree cells, north-west corner at (-125, 40)
WEST, NORTH, RES = -125.0, 40.0, 1.0

# Mean SST per column in degrees Celsius, same on both rows
MEAN_SST_C = [10.0, 12.0, 20.0, 29.0, 31.0]

# Elevation per column (negative below sea level)
ELEVATION = [-10.0, -10.0, -10.0, -100.0, -10.0]


def build_grid(values, crs="EPSG:4326", west=0.0, north=None, res=1.0, nodata=None, name="grid", dtype=None):
    """Build a RasterGrid from nested lists with a north-up transform."""
    data = np.asarray(values, dtype=dtype)
    if data.ndim == 1:
        data = data[np.newaxis, :]
    if north is None:
        north = data.shape[0] * res
    return RasterGrid(
        data=data,
        transform=from_origin(west, north, res, res),
        crs=crs,
        nodata=nodata,
        name=name,
    )


@pytest.fixture
def make_grid():
    """Factory for small RasterGrids."""
    return build_grid


@pytest.fixture
def sst_years():
    """Two years of SST in Kelvin whose mean is MEAN_SST_C on every row."""
    year_1 = [[c + KELVIN - 1.0 for c in MEAN_SST_C]] * 2
    year_2 = [[c + KELVIN + 1.0 for c in MEAN_SST_C]] * 2
    return [
        build_grid(year_1, west=WEST, north=NORTH, res=RES, name="sst_2008"),
        build_grid(year_2, west=WEST, north=NORTH, res=RES, name="sst_2009"),
    ]


@pytest.fixture
def elevation():
    """Bathymetry as elevation; both rows identical."""
    return build_grid(
        [ELEVATION, ELEVATION],
        west=WEST,
        north=NORTH,
        res=RES,
        nodata=-9999.0,
        name="depth",
    )


@pytest.fixture
def regions():
    """Two EEZ-like regions, one per grid row."""
    return BoundaryPolygonSet(
        names=("Northern", "Southern"),
        geometries=(
            box(WEST, NORTH - 1.0, WEST + 5.0, NORTH),
            box(WEST, NORTH - 2.0, WEST + 5.0, NORTH - 1.0),
        ),
        crs="EPSG:4326",
        name="eez",
    )


def regions_geojson(regions: BoundaryPolygonSet, name_field: str = "rgn") -> dict:
    """GeoJSON FeatureCollection for a boundary set."""
    from shapely.geometry import mapping

    return {
        "type": "FeatureCollection",
        "features": [
            {
                "type": "Feature",
                "properties": {name_field: region},
                "geometry": mapping(geom),
            }
            for region, geom in regions
        ],
    }


@pytest.fixture
def input_files(tmp_path: Path, sst_years, elevation, regions):
    """Pipeline inputs written to disk: SST GeoTIFFs, depth GeoTIFF, GeoJSON."""
    from aquazone.io.stores import RasterStore

    store = RasterStore()
    sst_paths = [store.write(grid, tmp_path / f"{grid.name}.tif") for grid in sst_years]
    depth_path = store.write(elevation, tmp_path / "depth.tif")

    boundaries_path = tmp_path / "eez.geojson"
    with open(boundaries_path, "w") as f:
        json.dump(regions_geojson(regions), f)

    return {
        "sst": sst_paths,
        "depth": depth_path,
        "boundaries": boundaries_path,
    }


@pytest.fixture
def kelp_classifier_error(monkeypatch):
    """Make classification fail for any species named kelp."""
    from aquazone.analysis.suitability import SuitabilityClassifier

    classify = SuitabilityClassifier.classify

    def failing_classify(self, grid, suitable_range, name=None):
        if name and name.startswith("kelp"):
            raise RuntimeError(f"cannot classify {name}")
        return classify(self, grid, suitable_range, name=name)

    monkeypatch.setattr(SuitabilityClassifier, "classify", failing_classify)
