"""
Data access for the suitability pipeline.

- stores: reading rasters/boundaries into the data model, writing rasters
- exports: zonal summaries and run reports
"""

from aquazone.io.stores import GEOJSON_DEFAULT_CRS, RasterStore, VectorStore
from aquazone.io.exports import SUMMARY_COLUMNS, write_report_json, write_summary_csv

__all__ = [
    "GEOJSON_DEFAULT_CRS",
    "RasterStore",
    "VectorStore",
    "SUMMARY_COLUMNS",
    "write_report_json",
    "write_summary_csv",
]
