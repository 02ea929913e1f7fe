"""
Performance monitor CLI.
"""

import logging
import socket

import typer
from rich.console import Console
from rich.markup import escape

from opskit.cli.common import print_sections, settings_from, show_help
from opskit.core.report import write_report
from opskit.core.utils import file_timestamp
from opskit.monitoring import performance

logger = logging.getLogger(__name__)
console = Console()

app = typer.Typer(help="CPU, memory, disk and network performance")


@app.callback(invoke_without_command=True)
def perf_callback(ctx: typer.Context):
    show_help(ctx)


@app.command()
def cpu():
    """CPU usage, load and top CPU processes."""
    print_sections(performance.cpu_sections())


@app.command()
def memory():
    """Memory and swap usage with top memory processes."""
    print_sections(performance.memory_sections())


@app.command()
def disk():
    """Disk usage per mount and I/O counters."""
    print_sections(performance.disk_sections())


@app.command()
def network():
    """Interface traffic and listening sockets."""
    print_sections(performance.network_sections())


@app.command("all")
def all_metrics():
    """Every metric above."""
    print_sections(performance.all_sections())


@app.command()
def report(ctx: typer.Context):
    """Write performance_report_<timestamp>.txt."""
    settings = settings_from(ctx)
    path = settings.report_dir / f"performance_report_{file_timestamp()}.txt"
    typer.echo(f"Generating performance report: {path}")
    write_report(path, f"System Performance Report ({socket.gethostname()})", performance.all_sections())
    console.print(f"[green]Report saved:[/green] {escape(str(path))}", highlight=False)
