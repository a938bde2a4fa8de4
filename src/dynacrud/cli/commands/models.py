"""
Model loading commands.

Usage:
    dynacrud models load
    dynacrud models load --url https://config.example.com/entities.json --fail-fast
"""

import asyncio

import click
from loguru import logger

from ...services.config_loader import ConfigLoader


async def _load(url: str | None, fail_fast: bool) -> dict:
    loader = ConfigLoader(url=url, fail_fast=fail_fast)
    try:
        return await loader.load()
    finally:
        await loader.db.disconnect()


@click.command()
@click.option("--url", default=None, help="Remote config URL (overrides REMOTE_CONFIG__URL)")
@click.option("--fail-fast", is_flag=True, help="Stop at the first error instead of loading what is possible")
def load(url: str | None, fail_fast: bool):
    """
    Load models from the remote config and create their tables.

    Connects to POSTGRES__CONNECTION_STRING, registers every entity and
    creates missing tables and indexes.
    """
    try:
        models = asyncio.run(_load(url, fail_fast))
    except Exception as e:
        logger.exception("Model loading failed")
        click.echo(f"✗ Error: {e}", err=True)
        raise click.Abort()

    if not models:
        click.echo("✗ No models loaded", err=True)
        raise click.Abort()

    click.echo(f"✓ Loaded {len(models)} models:")
    for name, model in models.items():
        click.echo(f"  - {name} -> {model.table_name} ({len(model.schema)} fields)")


def register_commands(models_group):
    """Register all model commands."""
    models_group.add_command(load)
