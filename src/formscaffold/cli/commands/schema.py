"""Schema commands: check descriptors, render and apply DDL, inspect tables."""

from typing import Annotated

import typer

from formscaffold.cli.context import CLIContext
from formscaffold.cli.output import OutputFormatter
from formscaffold.cli.parsing import read_descriptor
from formscaffold.schema.compiler import compile_schema

# Create schema subcommand group
app = typer.Typer(help="Check descriptors and manage their tables")

DescriptorFile = Annotated[str, typer.Argument(help="Path to an entity descriptor (JSON)")]


@app.command("check")
def schema_check(ctx: typer.Context, descriptor_file: DescriptorFile) -> None:
    """Check a descriptor without touching the database.

    Examples:

        formscaffold schema check books.json
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        descriptor = read_descriptor(descriptor_file)
        compile_schema(descriptor)
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)

    if cli_ctx.json_output:
        formatter.print_success(
            f"Descriptor '{descriptor.name}' is valid",
            {"entity": descriptor.name, "fields": descriptor.field_names},
        )
    else:
        formatter.print_success(f"Descriptor '{descriptor.name}' is valid")
        formatter.print_descriptor(descriptor)


@app.command("ddl")
def schema_ddl(
    ctx: typer.Context,
    descriptor_file: DescriptorFile,
    dialect: Annotated[
        str | None,
        typer.Option(
            "--dialect",
            help="Render for 'postgresql' or 'sqlite' instead of the connected database",
        ),
    ] = None,
) -> None:
    """Print the DDL a descriptor compiles to.

    Examples:

        formscaffold schema ddl books.json --dialect postgresql
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        descriptor = read_descriptor(descriptor_file)
        target = dialect or cli_ctx.get_store().connection.dialect
        sql = compile_schema(descriptor).render(target)
        formatter.print_sql(sql)
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()


@app.command("sync")
def schema_sync(ctx: typer.Context, descriptor_file: DescriptorFile) -> None:
    """Create or refresh the table, indexes and trigger of a descriptor.

    Examples:

        formscaffold schema sync books.json
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        descriptor = read_descriptor(descriptor_file)
        compiled = cli_ctx.get_store().sync(descriptor)
        formatter.print_success(
            f"Table '{compiled.table_name}' synchronized",
            {
                "table": compiled.table_name,
                "indexes": [index.name for index in compiled.indexes],
                "trigger": compiled.trigger_name,
            },
        )
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()


@app.command("inspect")
def schema_inspect(
    ctx: typer.Context,
    table_name: Annotated[str, typer.Argument(help="Table name")],
) -> None:
    """Show the live structure and row count of a table.

    Examples:

        formscaffold schema inspect books
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        info = cli_ctx.get_store().inspect_table(table_name)
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()

    if info is None:
        formatter.print_error(LookupError(f"Table not found: {table_name}"))
        raise typer.Exit(code=1)
    formatter.print_table_info(info)
