"""
tabquery CLI - run catalog queries from the command line

Usage:
    tabquery --help
    tabquery tables catalog.yaml
    tabquery run catalog.yaml recent_male_encounters
    tabquery run catalog.yaml recent_male_encounters --kind remote --dsn sqlite:///demo.db --copy
    tabquery translate catalog.yaml recent_male_encounters --dialect tsql
    tabquery sql catalog.yaml "SELECT gender, COUNT(*) AS n FROM patients GROUP BY gender"
"""

import json
import sys
from typing import Optional

import click
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from tabquery import __version__
from tabquery.catalog import build_registry, get_query, load_catalog
from tabquery.core.logging import configure_logging
from tabquery.domain.query.builder import SQLBuilder, SQLBuilderError, resolve
from tabquery.facade import QueryFacade
from tabquery.shared.exceptions import BackendExecutionError, TabularQueryError
from tabquery.shared.types import ResultSet

console = Console()


def handle_error(error: TabularQueryError):
    """Print a typed error with rich formatting and exit."""
    error.log("debug")
    console.print(f"\n[bold red]Error {error.code.value}[/bold red]")
    console.print(f"[red]{error.message}[/red]")

    if error.suggestion:
        console.print(f"\n[yellow]Suggestion:[/yellow] {error.suggestion}")

    if error.details:
        console.print("\n[dim]Details:[/dim]")
        console.print(Syntax(json.dumps(error.details, indent=2, default=str), "json"))

    sys.exit(1)


def print_result(result: ResultSet, output_format: str, title: str, output: Optional[str] = None):
    if output:
        result.to_csv(output)
        console.print(f"[green]Wrote {result.row_count} rows to {output}[/green]")
        return

    if output_format == "json":
        click.echo(json.dumps({"columns": result.columns, "rows": result.rows}, indent=2, default=str))
        return

    if output_format == "csv":
        click.echo(result.to_csv(), nl=False)
        return

    if not result.rows:
        console.print("[yellow]No results[/yellow]")
        return

    table = Table(title=title, show_header=True)
    for name in result.columns:
        table.add_column(name, style="cyan")
    for row in result.tuples():
        table.add_row(*["" if v is None else str(v) for v in row])

    console.print(table)
    console.print(f"\n[dim]{result.row_count} rows in {result.execution_time_ms:.1f}ms ({result.engine})[/dim]")


# =============================================================================
# MAIN CLI GROUP
# =============================================================================

@click.group()
@click.option("--log-level", envvar="TABQUERY_LOG_LEVEL", default=None, help="Logging level (default: WARNING)")
@click.version_option(version=__version__, prog_name="tabquery")
def cli(log_level):
    """
    tabquery - describe a query once, run it on DuckDB or a remote database.
    """
    if log_level:
        configure_logging(log_level)


@cli.command()
@click.argument("catalog", type=click.Path(exists=True, dir_okay=False))
def tables(catalog):
    """List the tables defined in a catalog."""
    try:
        registry = build_registry(load_catalog(catalog))
    except TabularQueryError as e:
        handle_error(e)

    table = Table(title="Tables", show_header=True)
    table.add_column("Name", style="cyan")
    table.add_column("Columns")
    table.add_column("Rows", justify="right", style="green")

    for t in registry:
        table.add_row(t.name, ", ".join(t.columns), str(0 if t.data is None else len(t.data)))

    console.print(table)


@cli.command()
@click.argument("catalog", type=click.Path(exists=True, dir_okay=False))
@click.argument("query_name")
@click.option("--kind", type=click.Choice(["embedded", "remote"]), default="embedded", help="Backend kind")
@click.option("--dsn", default=None, help="SQLAlchemy database URL (remote only)")
@click.option("--timeout", "timeout_seconds", type=int, default=None, help="Remote timeout in seconds")
@click.option("--copy", "copy_tables", is_flag=True, help="Copy catalog tables to the remote database first")
@click.option("--format", "output_format", type=click.Choice(["table", "json", "csv"]), default="table", help="Output format")
@click.option("--output", "-o", type=click.Path(dir_okay=False), default=None, help="Write result as CSV to this file")
def run(catalog, query_name, kind, dsn, timeout_seconds, copy_tables, output_format, output):
    """
    Run a named catalog query.

    \b
    Examples:
        tabquery run catalog.yaml recent_male_encounters
        tabquery run catalog.yaml recent_male_encounters --format csv
        tabquery run catalog.yaml recent_male_encounters --kind remote --dsn sqlite:///demo.db --copy
    """
    config = {"kind": kind}
    if dsn:
        config["dsn"] = dsn
    if timeout_seconds is not None:
        config["timeoutSeconds"] = timeout_seconds

    try:
        loaded = load_catalog(catalog)
        facade = QueryFacade(build_registry(loaded))
        descriptor = get_query(loaded, query_name)

        with facade.open(config) as conn:
            if copy_tables and kind == "remote":
                for name in facade.registry.names():
                    conn.copy_to(name)
            result = conn.run(descriptor)
    except TabularQueryError as e:
        handle_error(e)

    print_result(result, output_format, f"Query Results: {query_name}", output)


@cli.command()
@click.argument("catalog", type=click.Path(exists=True, dir_okay=False))
@click.argument("query_name")
@click.option("--dialect", default="duckdb", help="SQLGlot dialect to render (duckdb, tsql, postgres, ...)")
def translate(catalog, query_name, dialect):
    """Show the SQL a catalog query translates to, without running it."""
    try:
        loaded = load_catalog(catalog)
        registry = build_registry(loaded)
        resolved = resolve(get_query(loaded, query_name), registry)
        sql = SQLBuilder(dialect=dialect, typed_literals=dialect != "tsql").build_query(resolved)
    except SQLBuilderError as e:
        handle_error(BackendExecutionError(dialect, e.__cause__ or e))
    except TabularQueryError as e:
        handle_error(e)

    console.print(Syntax(sql, "sql", word_wrap=True))


@cli.command()
@click.argument("catalog", type=click.Path(exists=True, dir_okay=False))
@click.argument("sql")
@click.option("--format", "output_format", type=click.Choice(["table", "json", "csv"]), default="table", help="Output format")
def sql(catalog, sql, output_format):
    """
    Run raw SQL on the embedded engine with the catalog's tables loaded.

    \b
    Examples:
        tabquery sql catalog.yaml "SELECT * FROM patients WHERE gender = 'F'"
    """
    try:
        facade = QueryFacade(build_registry(load_catalog(catalog)))
        with facade.open({"kind": "embedded"}) as conn:
            result = conn.execute_sql(sql)
    except TabularQueryError as e:
        handle_error(e)

    print_result(result, output_format, "SQL Results")


# =============================================================================
# ENTRY POINT
# =============================================================================

def main():
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
