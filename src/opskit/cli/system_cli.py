"""
System information CLI.
"""

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape

from opskit.cli.common import print_sections, settings_from, show_help
from opskit.core.report import write_report
from opskit.monitoring import sysinfo

logger = logging.getLogger(__name__)
console = Console()

app = typer.Typer(help="System information")


@app.callback(invoke_without_command=True)
def system_callback(ctx: typer.Context):
    show_help(ctx)


@app.command()
def info(
    ctx: typer.Context,
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the report to this file"),
):
    """Collect hardware, OS, disk, network, process and service information."""
    settings = settings_from(ctx)
    sections = sysinfo.collect(disk_threshold=settings.disk_alert_threshold)
    if output:
        write_report(output, "System Information", sections)
        console.print(f"[green]System information saved to:[/green] {escape(str(output))}", highlight=False)
    else:
        print_sections(sections)
