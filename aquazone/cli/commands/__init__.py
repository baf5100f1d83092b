"""aquazone CLI commands."""

from aquazone.cli.commands.check_depth import check_depth
from aquazone.cli.commands.run import run
from aquazone.cli.commands.species import species

__all__ = ["check_depth", "run", "species"]
