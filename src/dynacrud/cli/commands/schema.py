"""
Schema compilation commands.

Usage:
    dynacrud schema compile ./entities.json
    dynacrud schema compile https://config.example.com/entities.json --entity materials
"""

import asyncio
import json
from pathlib import Path

import click
from loguru import logger

from ...schema.compiler import build_schema, describe_schema
from ...services.config_loader import fetch_remote_config, parse_entity_configs, unwrap_config


def read_config(source: str) -> dict:
    """Load a config document from an http(s) URL or a local JSON file."""
    if source.startswith(("http://", "https://")):
        return asyncio.run(fetch_remote_config(source))
    return unwrap_config(json.loads(Path(source).read_text(encoding="utf-8")))


@click.command("compile")
@click.argument("source")
@click.option("--entity", "-e", multiple=True, help="Only compile these entities (repeatable)")
def compile_command(source: str, entity: tuple[str, ...]):
    """
    Compile entity schemas from SOURCE and print the normalized descriptors.

    SOURCE is a URL or a path to a JSON file with the same shape as the
    remote config. Nothing is registered and no database is needed.

    Example:
        dynacrud schema compile ./entities.json -e materials
    """
    try:
        entities = parse_entity_configs(read_config(source))
        selected = {name: cfg for name, cfg in entities.items() if not entity or name in entity}
        missing = set(entity) - set(entities)
        if missing:
            raise click.BadParameter(f"Unknown entities: {', '.join(sorted(missing))}", param_hint="--entity")

        compiled = {
            name: {"schema": describe_schema(build_schema(cfg.schema)), "options": cfg.options}
            for name, cfg in selected.items()
        }
    except click.BadParameter:
        raise
    except Exception as e:
        logger.exception("Schema compilation failed")
        click.echo(f"✗ Error: {e}", err=True)
        raise click.Abort()

    click.echo(json.dumps(compiled, indent=2))
    click.echo(f"✓ Compiled {len(compiled)} entities", err=True)


def register_commands(schema_group):
    """Register all schema commands."""
    schema_group.add_command(compile_command)
