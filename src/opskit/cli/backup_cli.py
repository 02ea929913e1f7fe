"""
CLI for directory backups: create, restore, list, rotate, incremental.
"""

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from opskit.backup.backup_manager import BackupManager
from opskit.cli.common import audited, settings_from, show_help
from opskit.core.utils import human_size

logger = logging.getLogger(__name__)
console = Console()

TOOL = "backup"

app = typer.Typer(help="Backup and restore directories with rotation")


@app.callback(invoke_without_command=True)
def backup_callback(ctx: typer.Context):
    show_help(ctx)


def _manager(settings, trail) -> BackupManager:
    return BackupManager(settings.backup_dir, max_backups=settings.max_backups, audit=trail.audit)


@app.command()
def backup(
    ctx: typer.Context,
    source: Path = typer.Argument(..., help="Directory to back up"),
    dest: Optional[Path] = typer.Argument(None, help="Destination directory (default: backup_dir)"),
):
    """Create a compressed backup, verify it, then rotate old backups."""
    settings = settings_from(ctx)
    with audited(settings, TOOL, f"Backup of '{source}'") as trail:
        manager = _manager(settings, trail)
        archive = manager.create_backup(source, dest)
        console.print(f"[green]Backup created:[/green] {escape(str(archive))}", highlight=False)
        removed = manager.rotate(dest)
        for path in removed:
            typer.echo(f"Removed old backup: {path.name}")
        trail.success = f"Backup completed successfully: {archive}"


@app.command()
def restore(
    ctx: typer.Context,
    archive: Path = typer.Argument(..., help="Backup archive (.tar.gz)"),
    dest: Path = typer.Argument(..., help="Directory to restore into"),
):
    """Verify an archive and extract it."""
    settings = settings_from(ctx)
    with audited(settings, TOOL, f"Restore from '{archive}'") as trail:
        restored = _manager(settings, trail).restore_backup(archive, dest)
        console.print(f"[green]Restore completed:[/green] {escape(str(restored))}", highlight=False)
        trail.success = f"Restore completed successfully to: {restored}"


@app.command("list")
def list_backups(
    ctx: typer.Context,
    directory: Optional[Path] = typer.Argument(None, help="Backup directory (default: backup_dir)"),
):
    """List backups with size and modification time."""
    settings = settings_from(ctx)
    with audited(settings, TOOL, "List backups") as trail:
        manager = _manager(settings, trail)
        backups = manager.list_backups(directory)
        location = directory or settings.backup_dir

        if not backups:
            typer.echo(f"No backups found in: {location}")
            trail.success = f"No backups found in {location}"
            return

        table = Table(title=f"Backups in {escape(str(location))}")
        table.add_column("Name", style="cyan")
        table.add_column("Size", style="green", justify="right")
        table.add_column("Modified")
        total = 0
        for info in reversed(backups):
            total += info.size
            table.add_row(escape(info.name), human_size(info.size), info.modified.strftime("%Y-%m-%d %H:%M"))
        console.print(table)
        typer.echo(f"Total: {len(backups)} backup(s), {human_size(total)}")
        trail.success = f"Listed {len(backups)} backups in {location}"


@app.command()
def cleanup(
    ctx: typer.Context,
    directory: Optional[Path] = typer.Argument(None, help="Backup directory (default: backup_dir)"),
):
    """Delete the oldest backups beyond the retention limit."""
    settings = settings_from(ctx)
    with audited(settings, TOOL, "Cleanup") as trail:
        removed = _manager(settings, trail).rotate(directory)
        for path in removed:
            typer.echo(f"Removed old backup: {path.name}")
        typer.echo(f"Cleanup completed: {len(removed)} backup(s) removed")
        trail.success = f"Cleanup completed: {len(removed)} removed"


@app.command()
def incremental(
    ctx: typer.Context,
    source: Path = typer.Argument(..., help="Directory to back up"),
    dest: Optional[Path] = typer.Argument(None, help="Destination directory (default: backup_dir)"),
):
    """Back up files changed since the last run (full backup the first time)."""
    settings = settings_from(ctx)
    with audited(settings, TOOL, f"Incremental backup of '{source}'") as trail:
        archive = _manager(settings, trail).incremental_backup(source, dest)
        console.print(f"[green]Backup created:[/green] {escape(str(archive))}", highlight=False)
        trail.success = f"Incremental backup completed: {archive}"
