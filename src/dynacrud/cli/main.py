"""
dynacrud CLI entry point.

Usage:
    dynacrud serve --port 8080
    dynacrud schema compile https://config.example.com/entities.json
    dynacrud schema compile ./entities.json --entity materials
    dynacrud models load
"""

import sys

import click
from loguru import logger


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
def cli(verbose: bool):
    """dynacrud - config-driven CRUD service CLI."""
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "INFO")


@cli.group()
def schema():
    """Compile entity configs without touching the database."""
    pass


@cli.group()
def models():
    """Load and inspect registered models."""
    pass


# Register commands
from .commands.models import register_commands as register_models_commands
from .commands.schema import register_commands as register_schema_commands
from .commands.serve import register_command as register_serve_command

register_schema_commands(schema)
register_models_commands(models)
register_serve_command(cli)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
