"""dbxray - Main entry point."""

import json
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table as RichTable

from .client import ddl_generator, new_client_with_config
from .config import DatabaseConfig, settings
from .database import Table, deserialize
from .errors import XrayError
from .logging import get_operation_log_service

app = typer.Typer(
    name="dbxray",
    help="Inspect schemas, list tables, run queries and generate DDL across database engines",
    add_completion=False,
)

console = Console()

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _setup_logging(verbose: bool) -> None:
    level = logging.INFO if verbose else getattr(logging, settings.log_level.upper(), logging.WARNING)
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger("dbxray").setLevel(level)


def _load_config(
    config_path: Optional[Path],
    db_type: Optional[str],
    host: Optional[str] = None,
    port: Optional[int] = None,
    user: Optional[str] = None,
    database: Optional[str] = None,
    schema: Optional[str] = None,
) -> DatabaseConfig:
    overrides = {
        "db_type": db_type,
        "host": host,
        "port": port,
        "username": user,
        "database": database,
        "schema_name": schema,
    }
    if config_path is not None:
        return DatabaseConfig.from_yaml(config_path, **overrides)
    return DatabaseConfig.from_mapping({}, **overrides)


def _fail(e: Exception) -> None:
    console.print(f"[red]Error: {escape(str(e))}[/red]")
    raise typer.Exit(1)


def _flag(value: Optional[bool]) -> str:
    if value is None:
        return "-"
    return "YES" if value else "NO"


# Shared options
TypeOption = typer.Option(None, "--type", "-t", help="Database type: mysql, postgres, snowflake, bigquery, redshift, mssql, mongodb, duckdb")
ConfigOption = typer.Option(None, "--config", "-c", help="YAML connection config file")
HostOption = typer.Option(None, "--host", "-h", help="Database host")
PortOption = typer.Option(None, "--port", "-p", help="Database port")
UserOption = typer.Option(None, "--user", "-u", help="Login user (password is read from DB_PASSWORD)")
DatabaseOption = typer.Option(None, "--database", "-d", help="Database, catalog or dataset")
SchemaOption = typer.Option(None, "--schema", "-s", help="Schema to introspect")
JsonOption = typer.Option(False, "--json", help="Print raw JSON instead of a table")
VerboseOption = typer.Option(False, "--verbose", "-v", help="Log each operation")


@app.command("tables")
def list_tables(
    database_name: str = typer.Argument(..., help="Database (or dataset) to list"),
    db_type: Optional[str] = TypeOption,
    config_path: Optional[Path] = ConfigOption,
    host: Optional[str] = HostOption,
    port: Optional[int] = PortOption,
    user: Optional[str] = UserOption,
    database: Optional[str] = DatabaseOption,
    schema: Optional[str] = SchemaOption,
    as_json: bool = JsonOption,
    verbose: bool = VerboseOption,
):
    """List the base tables in a database."""
    _setup_logging(verbose)
    try:
        config = _load_config(config_path, db_type, host, port, user, database or database_name, schema)
        with new_client_with_config(config) as client:
            names = client.tables(database_name)
    except XrayError as e:
        _fail(e)

    if as_json:
        console.print_json(json.dumps(names))
        return

    table = RichTable(title=f"Tables in {database_name}")
    table.add_column("Table", style="cyan")
    for name in names:
        table.add_row(name)
    console.print(table)
    console.print(f"\n[dim]{len(names)} table(s)[/dim]")


@app.command("schema")
def show_schema(
    table_name: str = typer.Argument(..., help="Table (or collection) to describe"),
    db_type: Optional[str] = TypeOption,
    config_path: Optional[Path] = ConfigOption,
    host: Optional[str] = HostOption,
    port: Optional[int] = PortOption,
    user: Optional[str] = UserOption,
    database: Optional[str] = DatabaseOption,
    schema: Optional[str] = SchemaOption,
    as_json: bool = JsonOption,
    verbose: bool = VerboseOption,
):
    """Describe the columns of a table."""
    _setup_logging(verbose)
    try:
        config = _load_config(config_path, db_type, host, port, user, database, schema)
        with new_client_with_config(config) as client:
            result = client.schema(table_name)
    except XrayError as e:
        _fail(e)

    if as_json:
        console.print_json(json.dumps(result.to_dict()))
        return

    table = RichTable(title=f"{result.qualified_name}")
    table.add_column("#", style="dim")
    table.add_column("Column", style="cyan")
    table.add_column("Type", style="green")
    table.add_column("Nullable")
    table.add_column("Key")
    table.add_column("Default")
    table.add_column("Tags", style="dim")
    for col in result.columns:
        key = "PK" if col.is_primary else ("UNIQUE" if col.is_unique else "")
        table.add_row(
            str(col.ordinal_position or ""),
            col.name,
            col.type,
            _flag(col.is_nullable),
            key,
            col.default_value if col.default_value is not None else "",
            ", ".join(col.metatags),
        )
    console.print(table)
    if result.description:
        console.print(f"[dim]{result.description}[/dim]")


@app.command("query")
def run_query(
    query: Optional[str] = typer.Argument(None, help="Query text (SQL, or a JSON command for MongoDB)"),
    query_file: Optional[Path] = typer.Option(None, "--file", "-f", help="Read the query from a file"),
    db_type: Optional[str] = TypeOption,
    config_path: Optional[Path] = ConfigOption,
    host: Optional[str] = HostOption,
    port: Optional[int] = PortOption,
    user: Optional[str] = UserOption,
    database: Optional[str] = DatabaseOption,
    schema: Optional[str] = SchemaOption,
    as_json: bool = JsonOption,
    verbose: bool = VerboseOption,
):
    """Run a query and print its rows."""
    _setup_logging(verbose)
    if query_file is not None:
        query = query_file.read_text(encoding="utf-8")
    if not query:
        console.print("[red]Error: provide a query or --file[/red]")
        raise typer.Exit(1)

    try:
        config = _load_config(config_path, db_type, host, port, user, database, schema)
        with new_client_with_config(config) as client:
            payload = client.execute(query)
        result = deserialize(payload)
    except XrayError as e:
        _fail(e)

    if as_json:
        console.print(payload.decode("utf-8"), soft_wrap=True, markup=False, highlight=False)
        return

    result = result.to_positional()
    table = RichTable()
    for name in result.columns:
        table.add_column(name)
    for row in result.rows:
        table.add_row(*["NULL" if v is None else escape(str(v)) for v in row])
    console.print(table)
    console.print(f"\n[dim]{result.row_count} row(s) in {result.time}ms[/dim]")


@app.command("ddl")
def generate_ddl(
    table_name: Optional[str] = typer.Argument(None, help="Table to introspect"),
    target: Optional[str] = typer.Option(None, "--target", help="Dialect to generate for (default: the source type)"),
    from_json: Optional[Path] = typer.Option(None, "--from-json", help="Read the table from a JSON file written by 'schema --json'"),
    db_type: Optional[str] = TypeOption,
    config_path: Optional[Path] = ConfigOption,
    host: Optional[str] = HostOption,
    port: Optional[int] = PortOption,
    user: Optional[str] = UserOption,
    database: Optional[str] = DatabaseOption,
    schema: Optional[str] = SchemaOption,
    verbose: bool = VerboseOption,
):
    """Print a CREATE TABLE statement for a table.

    The table is read from a live database, or from a JSON file when
    --from-json is given (no connection is made in that case).
    """
    _setup_logging(verbose)
    try:
        config = _load_config(config_path, db_type, host, port, user, database, schema)
        if from_json is not None:
            table = Table.from_dict(json.loads(from_json.read_text(encoding="utf-8")))
        elif table_name:
            with new_client_with_config(config) as client:
                table = client.schema(table_name)
        else:
            console.print("[red]Error: provide a table name or --from-json[/red]")
            raise typer.Exit(1)

        dialect = target or config.db_type
        if not dialect:
            console.print("[red]Error: provide --target or --type[/red]")
            raise typer.Exit(1)
        statement = ddl_generator(dialect, config).generate_create_table_query(table)
    except (XrayError, ValueError, KeyError) as e:
        _fail(e)

    console.print(statement, soft_wrap=True, markup=False, highlight=False)


@app.command("history")
def show_history(
    db_type: Optional[str] = TypeOption,
    operation: Optional[str] = typer.Option(None, "--operation", "-o", help="Filter by operation name"),
    status: Optional[str] = typer.Option(None, "--status", help="Filter by status (success, error)"),
    since_hours: int = typer.Option(24, "--since", help="Look back N hours"),
    limit: int = typer.Option(50, "--limit", "-n", help="Maximum entries to show"),
):
    """Show recent operations from the operation log."""
    service = get_operation_log_service()
    if not service.enabled:
        console.print("[yellow]Operation logging is disabled[/yellow]")
        return

    entries = service.query_operations(
        db_type=db_type,
        operation=operation,
        status=status,
        since_hours=since_hours,
        limit=limit,
    )

    table = RichTable(title="Recent Operations")
    table.add_column("Time", style="dim")
    table.add_column("Type", style="cyan")
    table.add_column("Operation", style="green")
    table.add_column("Target")
    table.add_column("Status")
    table.add_column("ms", justify="right")
    for entry in entries:
        status_text = entry["status"]
        if status_text == "error":
            status_text = f"[red]{status_text}[/red]"
        table.add_row(
            str(entry["timestamp"]),
            entry["db_type"],
            entry["operation"],
            (entry["target"] or "")[:60],
            status_text,
            str(entry["duration_ms"] if entry["duration_ms"] is not None else ""),
        )
    console.print(table)


@app.command()
def config(
    config_path: Optional[Path] = ConfigOption,
    db_type: Optional[str] = TypeOption,
):
    """Show current configuration."""
    console.print("[bold]Current Configuration[/bold]")
    console.print(f"  Log level: {settings.log_level}")
    console.print(f"  Observability: {'Enabled' if settings.observability_enabled else 'Disabled'}")
    console.print(f"  Operation log: {'Enabled' if settings.operation_logging_enabled else 'Disabled'}")
    console.print(f"  Operation log path: {settings.operation_logging_db_path or '~/.dbxray/operations.db'}")

    try:
        db_config = _load_config(config_path, db_type)
    except XrayError as e:
        _fail(e)

    console.print("\n[bold]Connection[/bold]")
    for key, value in db_config.redacted().items():
        if value not in (None, False, ""):
            console.print(f"  {key}: {value}")


@app.callback()
def main():
    """
    dbxray - one interface for schemas, tables, queries and DDL.

    Examples:

        dbxray tables shop -t mysql -h localhost -u root

        dbxray schema users -c postgres.yaml

        dbxray query "SELECT * FROM users LIMIT 5" -c snowflake.yaml

        dbxray ddl users -c postgres.yaml --target bigquery
    """
    pass


if __name__ == "__main__":
    app()
