"""
Database operations CLI for MySQL and PostgreSQL.

Connection settings come from the profile written by ``opskit db setup``.
"""

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from opskit.cli.common import audited, settings_from, show_help
from opskit.core.exceptions import require
from opskit.database.db_manager import DatabaseManager, QueryResult, database_from_backup, format_rows
from opskit.database.profile import DatabaseProfile, DbType, load_profile, save_profile

logger = logging.getLogger(__name__)
console = Console()

TOOL = "database"

app = typer.Typer(help="Database operations for MySQL and PostgreSQL")


@app.callback(invoke_without_command=True)
def db_callback(ctx: typer.Context):
    show_help(ctx)


def _manager(ctx: typer.Context, db_type: Optional[DbType] = None) -> DatabaseManager:
    settings = settings_from(ctx)
    profile = load_profile(settings.db_profile_file)
    if db_type is not None:
        profile = profile.with_type(db_type)
    return DatabaseManager(profile, settings.db_backup_dir)


def _print_result(result: QueryResult, title: Optional[str] = None) -> None:
    if not result.returns_rows:
        typer.echo(f"Rows affected: {result.rowcount}")
        return
    table = Table(title=title)
    for column in result.columns:
        table.add_column(column, style="cyan")
    for row in format_rows(result):
        table.add_row(*(escape(value) for value in row))
    console.print(table)


@app.command()
def setup(ctx: typer.Context):
    """Prompt for connection settings and save them (mode 0600)."""
    settings = settings_from(ctx)
    with audited(settings, TOOL, "Database setup") as trail:
        db_type = DbType(
            typer.prompt("Database type", default=DbType.POSTGRES.value, type=typer.Choice([t.value for t in DbType]))
        )
        host = typer.prompt("Host", default="localhost")
        port = typer.prompt("Port", default=db_type.default_port, type=int)
        user = typer.prompt("Username")
        password = typer.prompt("Password", hide_input=True, default="", show_default=False)

        profile = DatabaseProfile(db_type=db_type, host=host, port=port, user=user, password=password or None)
        path = settings.db_profile_file
        in_keyring = save_profile(profile, path)
        console.print(f"[green]Configuration saved to[/green] {escape(str(path))}", highlight=False)
        if in_keyring:
            typer.echo("Password stored in the system keyring")
        elif password:
            typer.echo(f"Password stored in {path} (no keyring backend available)")
        trail.success = f"Database configuration saved to {path}"


@app.command()
def connect(
    ctx: typer.Context,
    db_type: DbType = typer.Argument(..., help="Server type to test"),
):
    """Test the connection and print the server version."""
    settings = settings_from(ctx)
    with audited(settings, TOOL, f"{db_type.label} connection test") as trail:
        manager = _manager(ctx, db_type)
        version = manager.test_connection()
        console.print(f"[green]{db_type.label} connection successful[/green]")
        typer.echo(f"Server version: {version}")
        trail.success = f"{db_type.label} connection successful to {manager.profile.host}:{manager.profile.port}"


@app.command()
def backup(
    ctx: typer.Context,
    db_name: str = typer.Argument(..., help="Database to dump"),
):
    """Dump a database to a gzipped SQL file."""
    settings = settings_from(ctx)
    with audited(settings, TOOL, f"Backup of database {db_name}") as trail:
        require(db_name, "Database name")
        manager = _manager(ctx)
        typer.echo(f"Creating {manager.label} backup of {db_name}...")
        backup_file = manager.backup(db_name)
        size = backup_file.stat().st_size
        console.print(f"[green]Backup completed:[/green] {escape(str(backup_file))} ({size} bytes)", highlight=False)
        trail.success = f"{manager.label} backup completed: {backup_file}"


@app.command()
def restore(
    ctx: typer.Context,
    backup_file: Path = typer.Argument(..., help="Dump file (.sql or .sql.gz)"),
    database: Optional[str] = typer.Option(None, "--database", "-d", help="Target database (default: from file name)"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
):
    """Restore a database from a dump file."""
    settings = settings_from(ctx)
    with audited(settings, TOOL, f"Restore from {backup_file}") as trail:
        if database is not None:
            require(database, "Database name")
        manager = _manager(ctx)
        target = database or database_from_backup(backup_file)
        if not yes and not typer.confirm(
            f"This will restore {target} from {backup_file}. Existing data may be overwritten. Continue?"
        ):
            typer.echo("Restore cancelled")
            trail.success = f"Restore of {target} cancelled"
            return
        restored = manager.restore(backup_file, target)
        console.print(f"[green]Restore completed for database:[/green] {escape(restored)}", highlight=False)
        trail.success = f"{manager.label} restore completed: {restored}"


@app.command("list-dbs")
def list_dbs(ctx: typer.Context):
    """List databases on the server."""
    settings = settings_from(ctx)
    with audited(settings, TOOL, "List databases") as trail:
        manager = _manager(ctx)
        names = manager.list_databases()
        table = Table(title=f"{manager.label} databases")
        table.add_column("Database", style="cyan")
        for name in names:
            table.add_row(escape(name))
        console.print(table)
        trail.success = f"Listed {len(names)} databases"


@app.command("list-tables")
def list_tables(
    ctx: typer.Context,
    db_name: str = typer.Argument(..., help="Database to inspect"),
):
    """List tables in a database."""
    settings = settings_from(ctx)
    with audited(settings, TOOL, f"List tables in {db_name}") as trail:
        require(db_name, "Database name")
        manager = _manager(ctx)
        tables = manager.list_tables(db_name)
        table = Table(title=f"Tables in {escape(db_name)}")
        table.add_column("Table", style="cyan")
        for name in tables:
            table.add_row(escape(name))
        console.print(table)
        trail.success = f"Listed {len(tables)} tables in {db_name}"


@app.command()
def query(
    ctx: typer.Context,
    db_name: str = typer.Argument(..., help="Database to query"),
    sql: str = typer.Argument(..., help="SQL statement"),
):
    """Run one SQL statement and print the result."""
    settings = settings_from(ctx)
    with audited(settings, TOOL, f"Query on {db_name}") as trail:
        require(db_name, "Database name")
        require(sql, "SQL statement")
        result = _manager(ctx).run_query(db_name, sql)
        _print_result(result)
        trail.success = f"Query executed on {db_name}"


@app.command()
def monitor(
    ctx: typer.Context,
    db_name: str = typer.Argument(..., help="Database to inspect"),
):
    """Show server statistics and active connections."""
    settings = settings_from(ctx)
    with audited(settings, TOOL, f"Monitor {db_name}") as trail:
        require(db_name, "Database name")
        for title, result in _manager(ctx).monitor(db_name):
            _print_result(result, title=title)
        trail.success = f"Monitoring snapshot of {db_name} completed"
