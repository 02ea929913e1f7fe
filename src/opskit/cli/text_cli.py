"""
Text processing CLI.
"""

import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from opskit.cli.common import handle_errors, show_help
from opskit.core.exceptions import OpsError
from opskit.core.utils import human_size
from opskit.text import processing

logger = logging.getLogger(__name__)
console = Console()

app = typer.Typer(help="Parse, search, clean and measure text files")


@app.callback(invoke_without_command=True)
def text_callback(ctx: typer.Context):
    show_help(ctx)


@app.command("csv")
def csv_command(file: Path = typer.Argument(..., help="CSV file")):
    """Preview rows, count columns and rows, list first-column values."""
    with handle_errors():
        summary = processing.summarize_csv(file)
    typer.echo(f"CSV Analysis for: {file}")
    typer.echo(f"First {len(summary.preview)} rows:")
    for row in summary.preview:
        typer.echo(",".join(row))
    typer.echo("")
    typer.echo(f"Column count: {summary.column_count}")
    typer.echo(f"Row count: {summary.row_count}")
    typer.echo("")
    typer.echo(f"First column values (first {len(summary.first_column)}):")
    for value in summary.first_column:
        typer.echo(value)


@app.command("json")
def json_command(file: Path = typer.Argument(..., help="JSON file")):
    """Validate a JSON file and show it pretty-printed."""
    with handle_errors():
        summary = processing.summarize_json(file)
        typer.echo(f"JSON Analysis for: {file}")
        if not summary.valid:
            raise OpsError("Invalid JSON", output=summary.error)
        console.print("[green]✓ Valid JSON[/green]")
        typer.echo(f"Formatted JSON (first {processing.JSON_PREVIEW_LINES} lines):")
        for line in summary.preview:
            typer.echo(line)


@app.command()
def log(
    file: Path = typer.Argument(..., help="Log file"),
    pattern: str = typer.Argument(..., help="Regular expression"),
):
    """Matching lines (first 20) and the total count."""
    with handle_errors():
        lines, total = processing.grep_lines(file, pattern)
    typer.echo(f"File: {file}")
    typer.echo(f"Pattern: {pattern}")
    typer.echo("")
    for line in lines:
        typer.echo(line)
    typer.echo("")
    typer.echo(f"Pattern count: {total}")


@app.command()
def extract(
    file: Path = typer.Argument(..., help="Input file"),
    regex: str = typer.Argument(..., help="Regular expression; groups are tab-separated"),
):
    """Print every regex match in the file."""
    with handle_errors():
        matches = processing.extract(file, regex)
    for match in matches:
        typer.echo(match)
    typer.echo(f"Matches: {len(matches)}", err=True)


@app.command("format")
def format_command(
    file: Path = typer.Argument(..., help="Text file"),
    in_place: bool = typer.Option(False, "--in-place", "-i", help="Rewrite the file instead of printing"),
):
    """Strip trailing whitespace, expand tabs and collapse blank lines."""
    with handle_errors():
        formatted = processing.format_file(file, in_place=in_place)
    if in_place:
        console.print(f"[green]Formatted[/green] {escape(str(file))}", highlight=False)
    else:
        typer.echo(formatted, nl=False)


@app.command()
def stats(file: Path = typer.Argument(..., help="Text file")):
    """Line, word and byte counts plus the most common words."""
    with handle_errors():
        result = processing.text_stats(file)
    typer.echo(f"Text Statistics for: {file}")
    typer.echo(f"Lines: {result.lines}")
    typer.echo(f"Words: {result.words}")
    typer.echo(f"Characters: {result.characters}")
    typer.echo(f"File size: {human_size(result.size)}")
    table = Table(title=f"Most common words (top {processing.TOP_WORDS})")
    table.add_column("Count", justify="right", style="green")
    table.add_column("Word", style="cyan")
    for word, count in result.top_words:
        table.add_row(str(count), escape(word))
    console.print(table)
