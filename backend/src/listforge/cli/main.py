"""listforge CLI entry point."""

import logging

import click


@click.group()
@click.option(
    "--log-level",
    default="WARNING",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Logging level.",
)
def cli(log_level: str):
    """listforge: per-list CRUD engine CLI."""
    logging.basicConfig(level=log_level.upper())


# Register subcommand groups
from listforge.cli.lists_cmd import lists  # noqa: E402
from listforge.cli.serve_cmd import serve  # noqa: E402

cli.add_command(lists)
cli.add_command(serve)
