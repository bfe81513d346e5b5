"""formscaffold CLI - Main entry point."""

import logging
from typing import Annotated

import typer

import formscaffold
from formscaffold.cli.context import CLIContext

# Create main Typer app
app = typer.Typer(
    name="formscaffold",
    help="formscaffold CLI - declarative entities, their tables and their data",
    no_args_is_help=True,
)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@app.callback()
def main_callback(
    ctx: typer.Context,
    database: Annotated[
        str | None,
        typer.Option(
            "--database",
            "-d",
            envvar="FORMSCAFFOLD_DATABASE_URL",
            help="Database URL (PostgreSQL or SQLite)",
        ),
    ] = None,
    echo: Annotated[
        bool,
        typer.Option(
            "--echo",
            "-e",
            help="Echo SQL statements to console",
        ),
    ] = False,
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
            help="Log schema synchronization and data operations to stderr",
        ),
    ] = False,
) -> None:
    """Initialize CLI context with global options."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format=LOG_FORMAT)
        # Keep SQLAlchemy's own loggers at their default unless --echo asks for SQL
        logging.getLogger("sqlalchemy").setLevel(logging.WARNING)

    # Store in Typer context for command access
    ctx.obj = CLIContext(
        database_url=database,
        echo=echo,
        json_output=json_output,
    )


@app.command()
def version() -> None:
    """Show version information."""
    typer.echo(f"formscaffold v{formscaffold.__version__}")


# Register command groups
from formscaffold.cli.commands import admin, data, schema  # noqa: E402

app.add_typer(schema.app, name="schema")
app.add_typer(data.app, name="data")
app.add_typer(admin.app, name="admin")


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
