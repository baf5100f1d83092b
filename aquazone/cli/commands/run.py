"""
Run Command - Execute the suitability pipeline end to end.

Usage:
    aquazone run --sst sst_2008.tif --sst sst_2009.tif --depth depth.tif \\
        --boundaries eez.geojson --output ./results/
    aquazone run ... --species oyster --workers 4 --fail-fast
"""

import dataclasses
import logging
from pathlib import Path
from typing import Optional, Tuple

import click

from aquazone.errors import AquazoneError, PipelineStageError
from aquazone.io.exports import write_report_json, write_summary_csv
from aquazone.pipeline import PipelineReport, SuitabilityPipeline

logger = logging.getLogger("aquazone.run")


@click.command("run")
@click.option(
    "--sst",
    "sst_paths",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    multiple=True,
    required=True,
    help="Sea-surface temperature raster; repeat once per year.",
)
@click.option(
    "--depth",
    "depth_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    required=True,
    help="Bathymetry raster.",
)
@click.option(
    "--boundaries",
    "-b",
    "boundaries_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    required=True,
    help="GeoJSON file of named boundary polygons.",
)
@click.option(
    "--output",
    "-o",
    "output_path",
    type=click.Path(file_okay=False, path_type=Path),
    required=True,
    help="Output directory for masks, summaries and the run report.",
)
@click.option(
    "--species",
    "-s",
    "species_names",
    multiple=True,
    help="Species to run (default: every configured species).",
)
@click.option(
    "--workers",
    "-w",
    type=click.IntRange(min=1),
    default=None,
    help="Species pipelines run in parallel (default: from config).",
)
@click.option(
    "--fail-fast",
    is_flag=True,
    default=False,
    help="Abort the run on the first species failure.",
)
@click.option(
    "--overwrite",
    is_flag=True,
    default=False,
    help="Replace existing output files.",
)
@click.pass_obj
def run(
    ctx,
    sst_paths: Tuple[Path, ...],
    depth_path: Path,
    boundaries_path: Path,
    output_path: Path,
    species_names: Tuple[str, ...],
    workers: Optional[int],
    fail_fast: bool,
    overwrite: bool,
):
    """
    Compute per-species suitability masks and regional suitable areas.

    Averages the SST rasters, converts them to degrees Celsius, aligns the
    bathymetry to the SST grid, classifies each variable against the
    species' range, combines the layers and sums suitable area per region.

    \b
    Writes, per species:
        <species>_mask.tif    binary suitability mask
        <species>_zonal.csv   suitable area per region, ranked
    and report.json for the whole run.

    Exits with status 1 if any species failed.
    """
    config = ctx.config
    overrides = {}
    if workers is not None:
        overrides["max_workers"] = workers
    if fail_fast:
        overrides["fail_fast"] = True
    if overrides:
        config = dataclasses.replace(config, **overrides)

    click.echo("\n=== Aquaculture Suitability ===")
    click.echo(f"  SST rasters: {len(sst_paths)}")
    click.echo(f"  Depth:       {depth_path}")
    click.echo(f"  Boundaries:  {boundaries_path}")
    click.echo(f"  Target CRS:  {config.target_crs}")
    click.echo(f"  Output:      {output_path}")

    pipeline = SuitabilityPipeline(config)
    try:
        inputs = pipeline.load(list(sst_paths), depth_path, boundaries_path)
        report = pipeline.run(inputs, species=list(species_names) or None)
    except PipelineStageError as e:
        logger.error(str(e))
        click.echo(f"\nFailed: {e}", err=True)
        raise SystemExit(1)
    except AquazoneError as e:
        raise click.ClickException(str(e))

    try:
        written = write_outputs(report, output_path, pipeline, overwrite=overwrite)
    except FileExistsError as e:
        raise click.ClickException(f"{e} (use --overwrite to replace)")

    _print_summary(report)
    click.echo(f"\n  Wrote {len(written)} files to {output_path}")

    if report.failed:
        raise SystemExit(1)


def write_outputs(
    report: PipelineReport,
    output_path: Path,
    pipeline: SuitabilityPipeline,
    overwrite: bool = False,
) -> list:
    """
    Write masks and summaries of succeeded species, then the report.

    Every target is checked before anything is written, so a refused run
    leaves earlier outputs untouched.

    Raises:
        FileExistsError: If any target exists and overwrite is False
    """
    targets = [
        (name, output_path / f"{name}_mask.tif", output_path / f"{name}_zonal.csv")
        for name in report.succeeded
    ]
    report_path = output_path / "report.json"

    if not overwrite:
        existing = [
            path
            for _, mask_path, csv_path in targets
            for path in (mask_path, csv_path)
            if path.exists()
        ]
        if report_path.exists():
            existing.append(report_path)
        if existing:
            raise FileExistsError(f"Output files exist: {', '.join(str(p) for p in existing)}")

    output_path.mkdir(parents=True, exist_ok=True)
    written = []
    for name, mask_path, csv_path in targets:
        result = report.results[name]
        written.append(pipeline.raster_store.write(result.mask, mask_path, overwrite=True))
        written.append(write_summary_csv(result.summary, csv_path))
    written.append(write_report_json(report, report_path))
    return written


def _print_summary(report: PipelineReport) -> None:
    for name in sorted(report.results):
        result = report.results[name]
        if not result.succeeded:
            click.echo(f"\n  {name}: FAILED at {result.failed_stage}: {result.error}")
            continue

        summary = result.summary
        click.echo(
            f"\n  {name}: {summary.total_suitable_area:,.1f} {summary.area_unit} suitable"
        )
        for entry in summary.entries[:5]:
            click.echo(f"    {entry.rank}. {entry.region:<30} {entry.suitable_area:,.1f}")
