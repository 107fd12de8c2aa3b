"""Record commands."""

import asyncio
from typing import Annotated

import typer

from lookupscope.cli.context import CLIContext
from lookupscope.cli.output import OutputFormatter
from lookupscope.core.query import fetch_records
from lookupscope.core.types import NormalizedRecord
from lookupscope.metadata.cache import MetadataCache
from lookupscope.records.normalizer import RecordNormalizer


async def _records(
    cli_ctx: CLIContext, entity_name: str, top: int, allow_placeholder: bool
) -> dict[str, NormalizedRecord]:
    async with cli_ctx.create_client() as client:
        cache = MetadataCache(client)
        metadata = await cache.get_entity_metadata(entity_name)
        raw = await fetch_records(client, metadata, top=top)
        return await RecordNormalizer(cache).normalize(raw, entity_name, allow_placeholder)


def records_command(
    ctx: typer.Context,
    entity_name: Annotated[str, typer.Argument(help="Entity logical name")],
    top: Annotated[
        int,
        typer.Option("--top", "-n", help="Maximum number of records"),
    ] = 10,
    allow_placeholder: Annotated[
        bool,
        typer.Option(
            "--allow-placeholder",
            help="Show 'Unnamed Record' instead of failing when a record has no name",
        ),
    ] = False,
) -> None:
    """Fetch records and show them in normalized form."""
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        records = asyncio.run(_records(cli_ctx, entity_name, top, allow_placeholder))
        if cli_ctx.json_output:
            formatter.print_json({rid: r.to_host_record() for rid, r in records.items()})
        else:
            formatter.print_table(
                f"{entity_name} records ({len(records)})",
                [
                    {
                        "ID": rid,
                        "Name": r.entity_reference.primary_name,
                        "Fields": len(r.fields),
                    }
                    for rid, r in records.items()
                ],
                ["ID", "Name", "Fields"],
            )
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
