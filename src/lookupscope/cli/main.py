"""LookupScope CLI - Main entry point."""

import logging
import sys
from typing import Annotated

import typer

import lookupscope
from lookupscope.cli.context import CLIContext
from lookupscope.core.config import ENV_TOKEN, ENV_URL

# Create main Typer app
app = typer.Typer(
    name="lookupscope",
    help="LookupScope CLI - Inspect entity metadata and lookup relationships",
    no_args_is_help=True,
)

# Store CLI context globally (will be set in callback)
state: dict[str, CLIContext] = {}


@app.callback()
def main_callback(
    ctx: typer.Context,
    url: Annotated[
        str | None,
        typer.Option(
            "--url",
            "-u",
            envvar=ENV_URL,
            help="Base URL of the service or dev-server proxy",
        ),
    ] = None,
    token: Annotated[
        str | None,
        typer.Option(
            "--token",
            envvar=ENV_TOKEN,
            help="Bearer token (omit when a proxy adds authentication)",
        ),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option(
            "--json",
            "-j",
            help="Output as JSON (machine-readable)",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Log requests and discovery decisions to stderr",
        ),
    ] = False,
) -> None:
    """Initialize CLI context with global options."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    cli_ctx = CLIContext(
        base_url=url,
        token=token,
        json_output=json_output,
        verbose=verbose,
    )

    # Store in Typer context for command access
    ctx.obj = cli_ctx
    state["cli_ctx"] = cli_ctx


@app.command()
def version() -> None:
    """Show version information."""
    typer.echo(f"LookupScope v{lookupscope.__version__}")


# Register commands
from lookupscope.cli.commands import data, schema

app.command(name="entity")(schema.entity_command)
app.command(name="lookups")(schema.lookups_command)
app.command(name="relationships")(schema.relationships_command)
app.command(name="records")(data.records_command)


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
