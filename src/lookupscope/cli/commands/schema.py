"""Schema inspection commands: entity metadata, lookups and relationships."""

import asyncio
from typing import Annotated

import typer

from lookupscope.cli.context import CLIContext
from lookupscope.cli.output import OutputFormatter
from lookupscope.core.query import fetch_records
from lookupscope.core.types import DiscoveredRelationship, EntityMetadata, LookupAttribute
from lookupscope.metadata.cache import MetadataCache
from lookupscope.metadata.discovery import RelationshipDiscoveryEngine


async def _entity(cli_ctx: CLIContext, entity_name: str) -> EntityMetadata:
    async with cli_ctx.create_client() as client:
        return await MetadataCache(client).get_entity_metadata(entity_name)


async def _lookups(cli_ctx: CLIContext, entity_name: str) -> list[LookupAttribute]:
    async with cli_ctx.create_client() as client:
        cache = MetadataCache(client)
        await cache.get_entity_metadata(entity_name)
        attributes = await cache.get_lookup_attributes(entity_name)
        if attributes is None:
            raise RuntimeError(f"Lookup attributes of '{entity_name}' could not be listed")
        return attributes


async def _relationships(
    cli_ctx: CLIContext, entity_name: str, top: int
) -> list[DiscoveredRelationship]:
    async with cli_ctx.create_client() as client:
        cache = MetadataCache(client)
        metadata = await cache.get_entity_metadata(entity_name)
        records = await fetch_records(client, metadata, top=top)
        engine = RelationshipDiscoveryEngine(cache)
        return await engine.discover_relationships(records, entity_name)


def entity_command(
    ctx: typer.Context,
    entity_name: Annotated[str, typer.Argument(help="Entity logical name (e.g., account)")],
) -> None:
    """Show an entity's primary id, primary name and collection."""
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        metadata = asyncio.run(_entity(cli_ctx, entity_name))
        formatter.print_entity_metadata(metadata)
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)


def lookups_command(
    ctx: typer.Context,
    entity_name: Annotated[str, typer.Argument(help="Entity logical name")],
) -> None:
    """List an entity's lookup attributes and their declared targets."""
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        attributes = asyncio.run(_lookups(cli_ctx, entity_name))
        formatter.print_lookups(entity_name, attributes)
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)


def relationships_command(
    ctx: typer.Context,
    entity_name: Annotated[str, typer.Argument(help="Entity logical name")],
    top: Annotated[
        int,
        typer.Option("--top", "-n", help="Number of sample records to analyze"),
    ] = 50,
) -> None:
    """Discover lookup relationships from a sample of live records."""
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        relationships = asyncio.run(_relationships(cli_ctx, entity_name, top))
        formatter.print_relationships(entity_name, relationships)
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
