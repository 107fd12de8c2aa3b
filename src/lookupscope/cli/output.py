"""Output formatting for CLI commands."""

import json
from typing import Any

from pydantic import BaseModel
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from lookupscope.core.types import DiscoveredRelationship, EntityMetadata, LookupAttribute
from lookupscope.exceptions import LookupScopeError

console = Console()


def _dump(data: Any) -> Any:
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json")
    if isinstance(data, dict):
        return {k: _dump(v) for k, v in data.items()}
    if isinstance(data, list):
        return [_dump(v) for v in data]
    return data


class OutputFormatter:
    """Formats output for terminal or JSON mode."""

    def __init__(self, json_mode: bool = False) -> None:
        """Initialize formatter.

        Args:
            json_mode: If True, output JSON instead of Rich formatting
        """
        self.json_mode = json_mode

    def print_json(self, data: Any) -> None:
        """Print any models, dicts or lists as indented JSON."""
        print(json.dumps(_dump(data), default=str, indent=2))

    def print_table(
        self,
        title: str,
        data: list[dict[str, Any]],
        columns: list[str],
    ) -> None:
        """Print data as Rich table or JSON array.

        Args:
            title: Table title
            data: List of row dictionaries
            columns: Column names to display
        """
        if self.json_mode:
            self.print_json(data)
        else:
            table = Table(title=title, show_header=True, header_style="bold magenta")
            for col in columns:
                table.add_column(col)
            for row in data:
                table.add_row(*[str(row.get(col, "")) for col in columns])
            console.print(table)

    def print_entity_metadata(self, metadata: EntityMetadata) -> None:
        """Print an entity's schema descriptor."""
        if self.json_mode:
            self.print_json(metadata)
            return
        console.print(f"\n[bold]Entity:[/bold] {metadata.logical_name} ({metadata.display_name})")
        console.print(f"Collection: {metadata.collection_name}")
        console.print(f"Primary ID: {metadata.primary_id_attribute}")
        console.print(f"Primary Name: {metadata.primary_name_attribute}")

    def print_lookups(self, entity_name: str, attributes: list[LookupAttribute]) -> None:
        """Print lookup attributes and their targets."""
        self.print_table(
            f"Lookup attributes of {entity_name} ({len(attributes)})",
            [
                {
                    "Attribute": a.logical_name,
                    "Column": a.data_field_name,
                    "Targets": ", ".join(a.targets) or "(none declared)",
                    "Display Name": a.display_name,
                }
                for a in attributes
            ]
            if not self.json_mode
            else [a.model_dump(mode="json") for a in attributes],
            ["Attribute", "Column", "Targets", "Display Name"],
        )

    def print_relationships(
        self, entity_name: str, relationships: list[DiscoveredRelationship]
    ) -> None:
        """Print discovered relationships, flagging unresolved ones."""
        if self.json_mode:
            self.print_json(relationships)
            return
        table = Table(
            title=f"Relationships of {entity_name} ({len(relationships)})",
            show_header=True,
            header_style="bold cyan",
        )
        table.add_column("Lookup Column")
        table.add_column("Parent")
        table.add_column("Source")
        table.add_column("Confidence")
        for rel in relationships:
            parent = ", ".join(rel.targets) if rel.targets else "[yellow]unresolved[/yellow]"
            table.add_row(rel.lookup_column, parent, str(rel.source), str(rel.confidence))
        console.print(table)
        for rel in relationships:
            if rel.warning:
                console.print(f"⚠ {rel.lookup_column}: {rel.warning}", style="yellow")

    def print_error(self, error: Exception) -> None:
        """Print error message.

        Args:
            error: Exception to display
        """
        if self.json_mode:
            if isinstance(error, LookupScopeError):
                print(json.dumps(error.to_dict(), default=str, indent=2))
            else:
                print(json.dumps({"error": str(error)}, indent=2))
        else:
            error_text = str(error)
            if isinstance(error, LookupScopeError) and error.context:
                context_str = "\n".join(f"{k}: {v}" for k, v in error.context.items())
                error_text = f"{error_text}\n\n{context_str}"

            panel = Panel(
                error_text,
                title="[red]Error[/red]",
                border_style="red",
            )
            console.print(panel)
