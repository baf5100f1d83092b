"""
Species Command - List configured species and their ranges.

Usage:
    aquazone species
    aquazone --config aquazone.yaml species --format json
"""

import json

import click


@click.command("species")
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice(["text", "json"], case_sensitive=False),
    default="text",
    help="Output format (default: text).",
)
@click.pass_obj
def species(ctx, output_format: str):
    """List species profiles and their suitable ranges."""
    config = ctx.config

    if output_format == "json":
        click.echo(json.dumps(
            {name: profile.to_dict() for name, profile in sorted(config.species.items())},
            indent=2,
        ))
        return

    for name in sorted(config.species):
        profile = config.species[name]
        click.echo(name)
        for variable in profile.variables:
            click.echo(f"  {variable:<8} {profile.ranges[variable]}")
