"""
CLI for REST API testing: single requests, suites, monitoring, benchmarks
and schema validation.
"""

import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from opskit.apitest.client import ApiClient, parse_headers
from opskit.apitest.schemas import CaseOutcome, HttpMethod
from opskit.apitest.suite import load_suite, run_suite, write_sample_schema, write_sample_suite
from opskit.cli.common import audited, echo_raw, handle_errors, settings_from, show_help
from opskit.core.exceptions import OpsError, ToolError, require
from opskit.core.ticker import Ticker
from opskit.core.utils import display_timestamp

logger = logging.getLogger(__name__)
console = Console()

TOOL = "api_testing"

app = typer.Typer(help="REST API testing and monitoring")


@app.callback(invoke_without_command=True)
def api_callback(ctx: typer.Context):
    show_help(ctx)


def _send(ctx: typer.Context, method: HttpMethod, url: str, data: Optional[str], header: List[str]):
    settings = settings_from(ctx)
    with audited(settings, TOOL, f"{method.value} request to {url}") as trail:
        require(url, "URL")
        if method.sends_body:
            require(data, f"Data for {method.value} request")
        client = ApiClient(timeout=settings.http_timeout)
        console.print(f"Making {method.value} request to: {url}", markup=False)
        response = client.request(method, url, data, parse_headers(header))
        echo_raw(response.body)
        typer.echo("")
        typer.echo(f"HTTP Status: {response.status_code}")
        typer.echo(f"Time: {response.elapsed:.3f}s")
        typer.echo(f"Size: {response.size} bytes")
        trail.success = f"{method.value} request to {url} successful"


HEADER_OPTION = typer.Option(None, "--header", "-H", help="Extra header 'Name: value' (repeatable)")


@app.command()
def get(
    ctx: typer.Context,
    url: str = typer.Argument(..., help="URL to request"),
    header: List[str] = HEADER_OPTION,
):
    """Send a GET request."""
    _send(ctx, HttpMethod.GET, url, None, header)


@app.command()
def post(
    ctx: typer.Context,
    url: str = typer.Argument(..., help="URL to request"),
    data: str = typer.Argument(..., help="JSON request body"),
    header: List[str] = HEADER_OPTION,
):
    """Send a POST request with a JSON body."""
    _send(ctx, HttpMethod.POST, url, data, header)


@app.command()
def put(
    ctx: typer.Context,
    url: str = typer.Argument(..., help="URL to request"),
    data: str = typer.Argument(..., help="JSON request body"),
    header: List[str] = HEADER_OPTION,
):
    """Send a PUT request with a JSON body."""
    _send(ctx, HttpMethod.PUT, url, data, header)


@app.command()
def delete(
    ctx: typer.Context,
    url: str = typer.Argument(..., help="URL to request"),
    header: List[str] = HEADER_OPTION,
):
    """Send a DELETE request."""
    _send(ctx, HttpMethod.DELETE, url, None, header)


def _print_outcome(index: int, outcome: CaseOutcome) -> None:
    case = outcome.case
    typer.echo(f"Test {index}: {case.name}")
    typer.echo(f"  Method: {case.method}  URL: {case.url}")
    if outcome.passed:
        console.print(f"  [green]PASS[/green] (Status: {outcome.actual_status})")
    elif outcome.error:
        console.print("  [red]FAIL[/red] ", end="")
        typer.echo(outcome.error)
    else:
        console.print(
            f"  [red]FAIL[/red] (Expected: {case.expected_status}, Got: {outcome.actual_status})"
        )


@app.command()
def test(
    ctx: typer.Context,
    config_file: Path = typer.Argument(..., help="Suite file: name|method|url|expected_status|data"),
):
    """
    Run an API test suite.

    Exits 1 when any test fails.
    """
    settings = settings_from(ctx)
    with audited(settings, TOOL, f"Test suite {config_file}") as trail:
        cases = load_suite(config_file)
        console.print(f"[bold]Running API test suite from:[/bold] {escape(str(config_file))}", highlight=False)
        result = run_suite(ApiClient(timeout=settings.http_timeout), cases, on_outcome=_print_outcome)

        typer.echo("")
        typer.echo("Test Results:")
        typer.echo(f"Total tests: {result.total}")
        typer.echo(f"Passed: {result.passed}")
        typer.echo(f"Failed: {result.failed}")
        if result.success_rate is None:
            typer.echo("No tests run")
        else:
            typer.echo(f"Success rate: {result.success_rate}%")

        summary = f"Test suite completed: {result.passed}/{result.total} passed"
        if result.failed:
            raise OpsError(summary)
        trail.success = summary


@app.command()
def monitor(
    ctx: typer.Context,
    url: str = typer.Argument(..., help="URL to check"),
    interval: float = typer.Option(60, "--interval", "-i", help="Seconds between checks"),
    count: Optional[int] = typer.Option(None, "--count", "-n", min=1, help="Stop after this many checks"),
):
    """Check an endpoint at a fixed interval until interrupted."""
    settings = settings_from(ctx)
    with audited(settings, TOOL, f"Monitoring {url}") as trail:
        require(url, "URL")
        client = ApiClient(timeout=settings.http_timeout)
        typer.echo(f"Monitoring {url} every {interval:g} seconds (Ctrl+C to stop)")
        checks = failures = 0
        with Ticker(interval, max_ticks=count) as ticker:
            for _tick in ticker:
                checks += 1
                stamp = display_timestamp()
                try:
                    response = client.check(url)
                except ToolError as e:
                    failures += 1
                    typer.echo(f"[{stamp}] FAILED - {e}")
                    trail.warning(f"Endpoint {url} failed: {e}")
                    continue
                if response.status_code == 200:
                    typer.echo(f"[{stamp}] OK - Status: 200, Time: {response.elapsed:.3f}s")
                else:
                    failures += 1
                    typer.echo(
                        f"[{stamp}] ERROR - Status: {response.status_code}, Time: {response.elapsed:.3f}s"
                    )
                    trail.warning(f"Endpoint {url} returned status {response.status_code}")
        typer.echo(f"Monitoring stopped after {checks} check(s), {failures} failure(s)")
        trail.success = f"Monitoring {url} stopped: {checks} checks, {failures} failures"


@app.command()
def benchmark(
    ctx: typer.Context,
    url: str = typer.Argument(..., help="URL to benchmark"),
    count: int = typer.Option(10, "--count", "-n", min=1, help="Number of requests"),
):
    """Send sequential GET requests and report timing statistics."""
    settings = settings_from(ctx)
    with audited(settings, TOOL, f"Benchmark {url}") as trail:
        require(url, "URL")
        client = ApiClient(timeout=settings.http_timeout)
        typer.echo(f"Benchmarking {url} with {count} requests")

        def progress(index, response, error):
            if error is not None:
                typer.echo(f"Request {index}: failed ({error})")
            else:
                typer.echo(f"Request {index}: {response.status_code} ({response.elapsed:.3f}s)")

        result = client.benchmark(url, count, on_result=progress)
        table = Table(title="Benchmark Results")
        table.add_column("Metric", style="cyan")
        table.add_column("Value", style="green")
        table.add_row("Total requests", str(result.count))
        table.add_row("Successful", str(result.successful))
        table.add_row("Failed", str(result.failed))
        table.add_row("Success rate", f"{result.success_rate}%")
        if result.average is not None:
            table.add_row("Average time", f"{result.average:.3f}s")
            table.add_row("Min time", f"{result.minimum:.3f}s")
            table.add_row("Max time", f"{result.maximum:.3f}s")
        console.print(table)
        trail.success = (
            f"Benchmark {url}: {result.successful}/{result.count} successful"
            + (f", avg {result.average:.3f}s" if result.average is not None else "")
        )


@app.command()
def validate(
    ctx: typer.Context,
    url: str = typer.Argument(..., help="URL to fetch"),
    schema_file: Path = typer.Argument(..., help="JSON schema file"),
):
    """Check a response against the top-level type and required keys of a schema."""
    settings = settings_from(ctx)
    with audited(settings, TOOL, f"Validate {url}") as trail:
        check = ApiClient(timeout=settings.http_timeout).validate(url, schema_file)
        typer.echo(f"HTTP Status: {check.status_code}")
        typer.echo("Response preview:")
        for line in check.preview:
            typer.echo(line)
        typer.echo("")
        if not check.valid_json:
            raise OpsError("Response is not valid JSON")
        console.print("[green]Valid JSON response[/green]")
        if check.type_ok is False:
            raise OpsError("Response type does not match schema")
        if check.missing_keys:
            raise OpsError(f"Missing required keys: {', '.join(check.missing_keys)}")
        console.print("[green]All required keys present[/green]")
        trail.success = f"Response from {url} matches {schema_file}"


@app.command()
def setup(ctx: typer.Context):
    """Write a sample test suite to the API config path."""
    settings = settings_from(ctx)
    with handle_errors():
        path = write_sample_suite(settings.api_suite_file)
    console.print(f"[green]Sample configuration created:[/green] {escape(str(path))}", highlight=False)
    typer.echo(f"Edit the file, then run: opskit api test {path}")


@app.command("sample-schema")
def sample_schema(
    output: Path = typer.Option(Path("user_schema.json"), "--output", "-o", help="Where to write the schema"),
):
    """Write a sample JSON schema for ``api validate``."""
    with handle_errors():
        path = write_sample_schema(output)
    console.print(f"[green]Sample schema created:[/green] {escape(str(path))}", highlight=False)
