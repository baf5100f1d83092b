"""
Check-Depth Command - Verify the sign convention of a bathymetry raster.

Usage:
    aquazone check-depth --depth depth.tif
    aquazone check-depth --depth depth.tif --convention depth
"""

import logging
from pathlib import Path
from typing import Optional

import click
import numpy as np

from aquazone.config import DepthConvention, verify_depth_convention
from aquazone.errors import ConfigError
from aquazone.io.stores import RasterStore

logger = logging.getLogger("aquazone.check_depth")


@click.command("check-depth")
@click.option(
    "--depth",
    "depth_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    required=True,
    help="Bathymetry raster to check.",
)
@click.option(
    "--convention",
    type=click.Choice([c.value for c in DepthConvention], case_sensitive=False),
    default=None,
    help="Declared sign convention (default: from config).",
)
@click.pass_obj
def check_depth(ctx, depth_path: Path, convention: Optional[str]):
    """
    Check that a depth raster matches its declared sign convention.

    Under 'elevation' ocean cells are negative; under 'depth' they are
    positive. Exits with status 1 when most cells disagree.
    """
    declared = DepthConvention(convention.lower()) if convention else ctx.config.depth_convention
    grid = RasterStore().read(depth_path, name="depth")

    values = grid.data[grid.valid_mask()]
    click.echo(f"\n=== Depth Check: {depth_path.name} ===")
    click.echo(f"  Grid:        {grid.height} x {grid.width} ({grid.crs})")
    click.echo(f"  Valid cells: {values.size}")
    if values.size:
        click.echo(f"  Range:       {float(np.min(values)):g} to {float(np.max(values)):g}")
    click.echo(f"  Convention:  {declared.value}")

    try:
        agreement = verify_depth_convention(grid, declared)
    except ConfigError as e:
        logger.error(str(e))
        click.echo(f"\n  FAIL: {e}", err=True)
        raise SystemExit(1)

    click.echo(f"\n  OK: {agreement:.0%} of cells agree")
