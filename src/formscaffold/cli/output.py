"""Output formatting for CLI commands."""

import json
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.pretty import pprint
from rich.syntax import Syntax
from rich.table import Table

from formscaffold.core.types import EntityDescriptor, TableInfo
from formscaffold.exceptions import FormScaffoldError, ValidationError
from formscaffold.schema.descriptor import storage_type_for

console = Console()


class OutputFormatter:
    """Formats output for terminal or JSON mode."""

    def __init__(self, json_mode: bool = False) -> None:
        """Initialize formatter.

        Args:
            json_mode: If True, output JSON instead of Rich formatting
        """
        self.json_mode = json_mode

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
            print(json.dumps(data, default=str, indent=2))
        else:
            table = Table(title=title, show_header=True, header_style="bold magenta")
            for col in columns:
                table.add_column(col)
            for row in data:
                table.add_row(*["" if row.get(col) is None else str(row[col]) for col in columns])
            console.print(table)

    def print_descriptor(self, descriptor: EntityDescriptor) -> None:
        """Print an entity descriptor with its fields.

        Args:
            descriptor: Checked entity descriptor
        """
        if self.json_mode:
            print(json.dumps(descriptor.model_dump(mode="json"), default=str, indent=2))
            return

        console.print(f"\n[bold]Entity:[/bold] {descriptor.name}")
        if descriptor.title:
            console.print(f"Title: {descriptor.title}")
        if descriptor.description:
            console.print(f"Description: {descriptor.description}")

        fields_table = Table(show_header=True, header_style="bold cyan")
        fields_table.add_column("Name")
        fields_table.add_column("Kind")
        fields_table.add_column("Column")
        fields_table.add_column("Required")
        fields_table.add_column("Unique")
        fields_table.add_column("Indexed")
        for field in descriptor.fields:
            fields_table.add_row(
                field.name,
                field.kind.value,
                storage_type_for(field).value,
                "✓" if field.required else "",
                "✓" if field.storage.unique else "",
                "✓" if field.storage.index else "",
            )
        console.print(fields_table)

    def print_table_info(self, info: TableInfo) -> None:
        """Print live table structure.

        Args:
            info: Table information reported by the database
        """
        if self.json_mode:
            print(json.dumps(info.model_dump(mode="json"), indent=2))
            return

        console.print(f"\n[bold]Table:[/bold] {info.name}")
        console.print(f"Rows: {info.row_count:,}")
        columns_table = Table(show_header=True, header_style="bold cyan")
        columns_table.add_column("Column")
        columns_table.add_column("Type")
        columns_table.add_column("Nullable")
        columns_table.add_column("Default")
        for column in info.columns:
            columns_table.add_row(
                column.name,
                column.type,
                "✓" if column.nullable else "",
                column.default or "",
            )
        console.print(columns_table)
        if info.indexes:
            console.print(f"Indexes: {', '.join(info.indexes)}")

    def print_sql(self, sql: str) -> None:
        """Print SQL text, highlighted on a terminal."""
        if self.json_mode:
            print(json.dumps({"sql": sql}, indent=2))
        else:
            console.print(Syntax(sql, "sql", word_wrap=True))

    def print_success(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Print success message.

        Args:
            message: Success message
            details: Optional details to display
        """
        if self.json_mode:
            output = {"success": True, "message": message}
            if details:
                output.update(details)
            print(json.dumps(output, default=str, indent=2))
        else:
            console.print(f"✓ {message}", style="green")
            if details:
                for key, value in details.items():
                    console.print(f"  {key}: {value}", style="dim")

    def print_error(self, error: Exception) -> None:
        """Print error message.

        Args:
            error: Exception to display
        """
        if self.json_mode:
            if isinstance(error, FormScaffoldError):
                print(json.dumps(error.to_dict(), default=str, indent=2))
            else:
                print(json.dumps({"error": str(error)}, indent=2))
            return

        error_text = str(error)
        if isinstance(error, ValidationError):
            lines = [
                f"{name}: {'; '.join(reasons)}" for name, reasons in error.field_errors.items()
            ]
            error_text = f"{error_text}\n\n" + "\n".join(lines)
        elif isinstance(error, FormScaffoldError) and error.context:
            context_str = "\n".join(f"{k}: {v}" for k, v in error.context.items())
            error_text = f"{error_text}\n\n{context_str}"

        panel = Panel(
            error_text,
            title="[red]Error[/red]",
            border_style="red",
        )
        console.print(panel)

    def print_data(self, data: Any) -> None:
        """Print generic data (dict, list, etc.).

        Args:
            data: Data to print
        """
        if self.json_mode:
            print(json.dumps(data, default=str, indent=2))
        else:
            pprint(data, expand_all=True)
