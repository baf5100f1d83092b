"""
aquazone command-line entry point.

Usage:
    aquazone run --sst sst_2008.tif --sst sst_2009.tif --depth depth.tif \\
        --boundaries eez.geojson --output ./results/
    aquazone species --config aquazone.yaml
    aquazone check-depth --depth depth.tif --convention elevation
"""

import logging
from pathlib import Path
from typing import Optional

import click

from aquazone import __version__
from aquazone.cli.commands.check_depth import check_depth
from aquazone.cli.commands.run import run
from aquazone.cli.commands.species import species
from aquazone.config import AnalysisConfig, load_config
from aquazone.errors import ConfigError


class CLIContext:
    """State shared by all commands."""

    def __init__(self, config_path: Optional[Path] = None, verbose: bool = False):
        self.config_path = config_path
        self.verbose = verbose
        self._config: Optional[AnalysisConfig] = None

    @property
    def config(self) -> AnalysisConfig:
        """Analysis configuration, loaded on first use."""
        if self._config is None:
            try:
                self._config = load_config(self.config_path) if self.config_path else AnalysisConfig()
            except ConfigError as e:
                raise click.ClickException(str(e))
        return self._config


@click.group()
@click.version_option(__version__, prog_name="aquazone")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="YAML configuration file (default: built-in species ranges).",
)
@click.option("--verbose", "-v", is_flag=True, default=False, help="Enable debug logging.")
@click.pass_context
def app(ctx: click.Context, config_path: Optional[Path], verbose: bool):
    """Aquaculture site suitability from SST, bathymetry and EEZ boundaries."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = CLIContext(config_path=config_path, verbose=verbose)


app.add_command(run)
app.add_command(species)
app.add_command(check_depth)


def main():
    app(prog_name="aquazone")


if __name__ == "__main__":
    main()
