"""Data CRUD commands."""

from typing import Annotated

import typer

from formscaffold.cli.context import CLIContext
from formscaffold.cli.output import OutputFormatter
from formscaffold.cli.parsing import (
    parse_filters,
    parse_json_object,
    read_descriptor,
    read_json_file,
)
from formscaffold.core.types import SortDirection

# Create data subcommand group
app = typer.Typer(help="Manage entity data (CRUD operations)")

DescriptorFile = Annotated[str, typer.Argument(help="Path to an entity descriptor (JSON)")]


@app.command("create")
def data_create(
    ctx: typer.Context,
    descriptor_file: DescriptorFile,
    data_json: Annotated[
        str | None,
        typer.Argument(help="Record data as JSON string"),
    ] = None,
    from_file: Annotated[
        str | None,
        typer.Option("--from-file", "-f", help="Load data from JSON file"),
    ] = None,
) -> None:
    """Validate and insert a record.

    Examples:

        # Inline JSON
        formscaffold data create books.json '{"title": "Dune", "isbn": "9780441013593"}'

        # From JSON file
        formscaffold data create books.json --from-file book.json
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        descriptor = read_descriptor(descriptor_file)
        if from_file:
            data = read_json_file(from_file)
            if not isinstance(data, dict):
                raise ValueError(f"Record file must contain a JSON object: {from_file}")
        elif data_json:
            data = parse_json_object(data_json)
        else:
            raise typer.BadParameter("Either provide data as JSON string or use --from-file")

        record = cli_ctx.get_store().entity(descriptor).create(data)
        formatter.print_success("Record created", {"id": record["id"]})
        if not cli_ctx.json_output:
            formatter.print_data(record)
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()


@app.command("list")
def data_list(
    ctx: typer.Context,
    descriptor_file: DescriptorFile,
    where: Annotated[
        list[str] | None,
        typer.Option("--where", "-w", help="Equality filter name=value. Can be repeated."),
    ] = None,
    limit: Annotated[int, typer.Option("--limit", "-n", help="Page size (1-100)")] = 50,
    offset: Annotated[int, typer.Option("--offset", help="Records to skip")] = 0,
    order_by: Annotated[str, typer.Option("--order-by", help="Column to sort on")] = "created_at",
    direction: Annotated[
        SortDirection,
        typer.Option("--direction", help="Sort direction", case_sensitive=False),
    ] = SortDirection.DESC,
) -> None:
    """List records, newest first by default.

    Examples:

        formscaffold data list books.json
        formscaffold data list books.json --where rating=5 --limit 10
        formscaffold data list books.json --order-by title --direction asc
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        descriptor = read_descriptor(descriptor_file)
        filters = parse_filters(where or [], descriptor)
        result = (
            cli_ctx.get_store()
            .entity(descriptor)
            .get(
                filters=filters,
                limit=limit,
                offset=offset,
                order_by=order_by,
                direction=direction,
            )
        )

        if cli_ctx.json_output:
            formatter.print_data(result.model_dump())
        else:
            shown = f"{offset + 1}-{offset + len(result.records)}" if result.records else "0"
            formatter.print_table(
                f"{descriptor.name} ({shown} of {result.total_count})",
                result.records,
                descriptor.column_names,
            )
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()


@app.command("get")
def data_get(
    ctx: typer.Context,
    descriptor_file: DescriptorFile,
    record_id: Annotated[str, typer.Argument(help="Record ID")],
) -> None:
    """Get a record by ID.

    Examples:

        formscaffold data get books.json 550e8400-e29b-41d4-a716-446655440000
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        descriptor = read_descriptor(descriptor_file)
        record = cli_ctx.get_store().entity(descriptor).get_by_id(record_id)
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()

    if record is None:
        formatter.print_error(LookupError(f"Record not found: {record_id}"))
        raise typer.Exit(code=1)
    formatter.print_data(record)


@app.command("update")
def data_update(
    ctx: typer.Context,
    descriptor_file: DescriptorFile,
    record_id: Annotated[str, typer.Argument(help="Record ID")],
    data_json: Annotated[str, typer.Argument(help="Fields to change as JSON string")],
) -> None:
    """Update some fields of a record.

    Examples:

        formscaffold data update books.json 550e8400 '{"rating": 4}'
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        descriptor = read_descriptor(descriptor_file)
        data = parse_json_object(data_json)
        record = cli_ctx.get_store().entity(descriptor).update(record_id, data)
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()

    if record is None:
        formatter.print_error(LookupError(f"Record not found: {record_id}"))
        raise typer.Exit(code=1)
    formatter.print_success("Record updated", {"id": record_id})
    if not cli_ctx.json_output:
        formatter.print_data(record)


@app.command("delete")
def data_delete(
    ctx: typer.Context,
    descriptor_file: DescriptorFile,
    record_id: Annotated[str, typer.Argument(help="Record ID")],
) -> None:
    """Delete a record.

    Examples:

        formscaffold data delete books.json 550e8400-e29b-41d4-a716-446655440000
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        descriptor = read_descriptor(descriptor_file)
        deleted = cli_ctx.get_store().entity(descriptor).delete(record_id)
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()

    if deleted:
        formatter.print_success(f"Record deleted: {record_id}", {"id": record_id, "deleted": True})
    else:
        formatter.print_success(
            f"No record to delete: {record_id}", {"id": record_id, "deleted": False}
        )
