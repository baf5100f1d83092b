"""Tabular and JSON exports of pipeline outputs."""

import csv
import json
import logging
from pathlib import Path
from typing import Any, Union

from aquazone.analysis.zonal import ZonalSummary

logger = logging.getLogger(__name__)

SUMMARY_COLUMNS = [
    "rank",
    "region",
    "suitable_area",
    "area_unit",
    "suitable_cells",
    "region_cells",
    "suitable_fraction",
]


def write_summary_csv(summary: ZonalSummary, path: Union[str, Path]) -> Path:
    """Write a zonal summary as CSV, one row per region in rank order."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=SUMMARY_COLUMNS)
        writer.writeheader()
        for row in summary.to_rows():
            writer.writerow({column: row[column] for column in SUMMARY_COLUMNS})

    logger.info(f"Wrote zonal summary for {summary.name} to {path}")
    return path


def write_report_json(report: Any, path: Union[str, Path]) -> Path:
    """Write anything with a to_dict() method as indented JSON."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w") as f:
        json.dump(report.to_dict(), f, indent=2, default=str)

    logger.info(f"Wrote report to {path}")
    return path
