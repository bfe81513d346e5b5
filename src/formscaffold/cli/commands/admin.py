"""Admin and utility commands."""

import typer

import formscaffold
from formscaffold.cli.context import CLIContext
from formscaffold.cli.output import OutputFormatter

# Create admin subcommand group
app = typer.Typer(help="Database administration and utilities")


@app.command("test")
def admin_test(ctx: typer.Context) -> None:
    """Check that the database answers and show what it is.

    Examples:

        formscaffold admin test
        formscaffold --database postgresql://localhost/forms admin test
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        store = cli_ctx.get_store()
        store.test_connection()
        info = store.server_info()
        formatter.print_success(
            "Database connection OK",
            {**info, "formscaffold": formscaffold.__version__},
        )
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()
