"""
Helpers shared by the CLI sub-apps: settings lookup, audit trail handling,
error-to-exit conversion and section rendering.
"""

import contextlib
import logging
from typing import Iterator, NoReturn, Optional, Sequence

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from opskit.core.audit import get_audit_logger
from opskit.core.config import Settings, get_settings
from opskit.core.exceptions import OpsError
from opskit.core.report import Section

logger = logging.getLogger(__name__)
console = Console()


def settings_from(ctx: Optional[typer.Context]) -> Settings:
    """Settings loaded by the top-level callback, or a fresh load."""
    if ctx is not None and isinstance(ctx.obj, Settings):
        return ctx.obj
    return get_settings()


def show_help(ctx: typer.Context) -> None:
    """Sub-app callback body: print help and exit 1 when no command was given."""
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit(code=1)


def echo_raw(text: Optional[str]) -> None:
    """Print tool output verbatim (no rich markup parsing)."""
    if text and text.strip():
        typer.echo(text.rstrip("\n"))


def exit_with(error: OpsError) -> NoReturn:
    console.print(f"[bold red]Error:[/bold red] {escape(str(error))}", highlight=False, markup=True)
    echo_raw(error.output)
    raise typer.Exit(code=error.exit_code)


class AuditTrail:
    """Handle yielded by ``audited``; set ``success`` to change the final line."""

    def __init__(self, audit: logging.Logger, action: str):
        self.audit = audit
        self.action = action
        self.success: Optional[str] = None

    def info(self, message: str) -> None:
        self.audit.info(message)

    def warning(self, message: str) -> None:
        self.audit.warning(message)


@contextlib.contextmanager
def audited(settings: Settings, tool: str, action: str) -> Iterator[AuditTrail]:
    """
    Run a command body against the tool's audit log.

    The last line written is INFO ``success`` (default "<action> completed")
    or ERROR "<action> failed: <reason>". An OpsError becomes a printed
    message and ``typer.Exit`` with its exit code.
    """
    trail = AuditTrail(get_audit_logger(tool, settings.log_file(tool)), action)
    try:
        yield trail
    except OpsError as e:
        trail.audit.error(f"{action} failed: {e}")
        exit_with(e)
    except typer.Exit:
        raise
    except Exception as e:
        trail.audit.error(f"{action} failed: {e}")
        raise
    else:
        trail.audit.info(trail.success or f"{action} completed")


@contextlib.contextmanager
def handle_errors() -> Iterator[None]:
    """Error conversion for commands that keep no audit trail."""
    try:
        yield
    except OpsError as e:
        exit_with(e)


def print_sections(sections: Sequence[Section]) -> None:
    for section in sections:
        if section.rows:
            table = Table(title=escape(section.title), title_justify="left")
            table.add_column("Item", style="cyan")
            table.add_column("Value", style="green")
            for label, value in section.rows:
                table.add_row(escape(label), escape(value))
            console.print(table)
        else:
            console.print(f"[bold blue]{escape(section.title)}[/bold blue]")
        for line in section.lines:
            typer.echo(line)
        typer.echo("")
