"""
aquazone CLI Package

Command-line interface for the aquaculture suitability pipeline.

Usage:
    aquazone run --sst sst_2008.tif --sst sst_2009.tif --depth depth.tif \\
        --boundaries eez.geojson --output ./results/
    aquazone species
    aquazone check-depth --depth depth.tif
"""

from aquazone.cli.main import app

__all__ = ["app"]
