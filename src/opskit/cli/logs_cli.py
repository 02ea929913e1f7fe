"""
Log analysis CLI.
"""

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from opskit.cli.common import handle_errors, settings_from, show_help
from opskit.core.ticker import Ticker
from opskit.core.utils import display_timestamp, human_size
from opskit.logs import analyzer

logger = logging.getLogger(__name__)
console = Console()

app = typer.Typer(help="Analyze and follow log files")


@app.callback(invoke_without_command=True)
def logs_callback(ctx: typer.Context):
    show_help(ctx)


def _print_counts(title: str, rows, label: str) -> None:
    table = Table(title=title)
    table.add_column("Count", justify="right", style="green")
    table.add_column(label, style="cyan")
    for value, count in rows:
        table.add_row(str(count), escape(value))
    console.print(table)


def _print_stats(stats: analyzer.LogStats) -> None:
    typer.echo(f"Analyzing log file: {stats.path}")
    typer.echo(f"Search pattern: {stats.pattern}")
    typer.echo(f"File size: {human_size(stats.size)}")
    typer.echo(f"Total lines: {stats.total_lines}")
    typer.echo("")
    console.print("[bold]=== LOG STATISTICS ===[/bold]")
    typer.echo(f"First entry: {stats.first_entry[:50]}...")
    typer.echo(f"Last entry: {stats.last_entry[:50]}...")
    typer.echo("")
    console.print("[bold]=== PATTERN MATCHES ===[/bold]")
    typer.echo(f"Found {stats.match_count} matches for pattern: {stats.pattern}")
    if stats.recent_matches:
        typer.echo(f"Recent matches (last {len(stats.recent_matches)}):")
        for line in stats.recent_matches:
            typer.echo(line)
    typer.echo("")
    console.print("[bold]=== ERROR ANALYSIS ===[/bold]")
    typer.echo(f"Error count: {stats.error_count}")
    typer.echo(f"Warning count: {stats.warning_count}")
    typer.echo(f"Info count: {stats.info_count}")
    if stats.top_errors:
        _print_counts("Most common error patterns", stats.top_errors, "Message")
    typer.echo("")
    console.print("[bold]=== TIME-BASED ANALYSIS ===[/bold]")
    if stats.hourly:
        for hour, count in stats.hourly:
            typer.echo(f"{hour}:00 - {count} entries")
    else:
        typer.echo("No entries found for today's date")
    typer.echo("")
    console.print("[bold]=== IP ADDRESS ANALYSIS ===[/bold]")
    if stats.ip_count:
        typer.echo(f"Found {stats.ip_count} IP addresses")
        _print_counts("Top 5 IP addresses", stats.top_ips, "IP")
    else:
        typer.echo("No IP addresses found in log")


@app.command()
def analyze(
    ctx: typer.Context,
    log_file: Optional[Path] = typer.Argument(None, help="Log file (default: /var/log/syslog or an alternative)"),
    pattern: str = typer.Argument(analyzer.DEFAULT_PATTERN, help="Case-insensitive regex to search for"),
    report: bool = typer.Option(False, "--report", help="Write log_analysis_<timestamp>.txt"),
    follow: bool = typer.Option(False, "--follow", "-f", help="Keep printing new matching lines"),
    interval: float = typer.Option(1, "--interval", "-i", help="Seconds between follow polls"),
    count: Optional[int] = typer.Option(None, "--count", "-n", min=1, help="Stop following after this many polls"),
):
    """Statistics and pattern matches for a log file."""
    settings = settings_from(ctx)
    with handle_errors():
        path = analyzer.resolve_log_file(log_file)
        if log_file is None and path != analyzer.DEFAULT_LOG:
            typer.echo(f"Using alternative log file: {path}")
        stats = analyzer.analyze_file(path, pattern)
        _print_stats(stats)

        if report:
            report_file = analyzer.write_analysis_report(stats, settings.report_dir)
            console.print(f"[green]Report saved to:[/green] {escape(str(report_file))}", highlight=False)

        if follow:
            typer.echo("")
            console.print("[bold]=== REAL-TIME MONITORING ===[/bold]")
            typer.echo(f"Monitoring {path} for pattern: {pattern} (Press Ctrl+C to stop)")
            with Ticker(interval, max_ticks=count) as ticker:
                analyzer.follow(
                    path,
                    pattern,
                    ticker,
                    lambda line: typer.echo(f"[{display_timestamp()[-8:]}] MATCH: {line}"),
                )
            typer.echo("Monitoring stopped")
