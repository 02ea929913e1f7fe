"""
Process monitor CLI: top consumers, lookup, kill, services, alerts, watch.
"""

import logging
from typing import List, Optional

import psutil
import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from opskit.cli.common import audited, echo_raw, handle_errors, settings_from, show_help
from opskit.core.exceptions import PreconditionError
from opskit.core.ticker import Ticker
from opskit.core.utils import display_timestamp, human_size
from opskit.monitoring import processes
from opskit.monitoring.alerts import evaluate_alerts, take_snapshot
from opskit.monitoring.performance import load_average

logger = logging.getLogger(__name__)
console = Console()

TOOL = "process_monitor"

app = typer.Typer(help="Monitor and manage processes")


@app.callback(invoke_without_command=True)
def process_callback(ctx: typer.Context):
    show_help(ctx)


def _process_table(title: str, rows: List[processes.ProcessInfo]) -> Table:
    table = Table(title=title)
    table.add_column("PID", justify="right")
    table.add_column("CPU%", justify="right")
    table.add_column("MEM%", justify="right")
    table.add_column("COMMAND", style="cyan")
    for p in rows:
        table.add_row(str(p.pid), f"{p.cpu_percent:.1f}", f"{p.memory_percent:.1f}", escape(p.name))
    return table


@app.command("top-cpu")
def top_cpu(count: int = typer.Argument(10, min=1, help="Number of processes")):
    """Top CPU consuming processes."""
    console.print(_process_table(f"Top {count} CPU consuming processes", processes.top_processes("cpu", count)))


@app.command("top-memory")
def top_memory(count: int = typer.Argument(10, min=1, help="Number of processes")):
    """Top memory consuming processes."""
    console.print(
        _process_table(f"Top {count} memory consuming processes", processes.top_processes("memory", count))
    )


@app.command()
def find(name: str = typer.Argument(..., help="Name or command-line fragment")):
    """Find processes by name."""
    matches = processes.find_processes(name)
    if not matches:
        typer.echo(f"No processes found matching '{name}'")
        return
    console.print(_process_table(f"Processes matching '{name}'", matches))


def _print_info(info: processes.ProcessInfo) -> None:
    typer.echo(f"Process Information for PID: {info.pid}")
    typer.echo(f"Command: {info.name}")
    typer.echo(f"Command Line: {info.cmdline or 'N/A'}")
    typer.echo(f"Status: {info.status}")
    typer.echo(f"User: {info.username or 'N/A'}")
    if info.started:
        typer.echo(f"Started: {info.started:%Y-%m-%d %H:%M:%S}")
    typer.echo(f"CPU Usage: {info.cpu_percent:.1f}%")
    typer.echo(f"Memory Usage: {info.memory_percent:.1f}%")
    typer.echo(f"RSS Memory: {human_size(info.rss)}")
    if info.children:
        typer.echo(f"Child processes: {' '.join(str(pid) for pid in info.children)}")


@app.command()
def info(pid: int = typer.Argument(..., help="Process ID")):
    """Details of one process."""
    with handle_errors():
        _print_info(processes.process_info(pid))


@app.command()
def kill(
    ctx: typer.Context,
    target: str = typer.Argument(..., help="PID or exact process name"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask before killing by name"),
):
    """Terminate a process by PID, or all processes with a name."""
    with audited(settings_from(ctx), TOOL, f"Kill {target}") as trail:
        if target.isdigit():
            pid = int(target)
            if not processes.is_running(pid):
                raise PreconditionError(f"Process PID {pid} not found")
            typer.echo(f"Killing process PID: {pid}")
            processes.kill_pid(pid)
            console.print("[green]Process killed successfully[/green]")
            trail.success = f"Successfully killed process PID: {pid}"
            return

        matches = processes.pids_by_name(target)
        if not matches:
            raise PreconditionError(f"No processes found matching '{target}'")
        typer.echo(f"Found processes matching '{target}':")
        for p in matches:
            typer.echo(f"  {p.pid} {p.name} {p.cmdline}")
        if not yes and not typer.confirm("Kill all these processes?"):
            typer.echo("Cancelled")
            trail.success = f"Kill of '{target}' cancelled"
            return
        for p in matches:
            processes.kill_pid(p.pid)
            trail.info(f"Killed process: {target} (PID: {p.pid})")
            typer.echo(f"Killed PID: {p.pid}")
        trail.success = f"Killed {len(matches)} process(es) named {target}"


@app.command()
def services():
    """Active and failed services."""
    with handle_errors():
        active, failed, daemons = processes.list_services()
    if active or failed:
        console.print("[bold]Active services:[/bold]")
        echo_raw(active or "(none)")
        typer.echo("")
        console.print("[bold]Failed services:[/bold]")
        echo_raw(failed or "(none)")
    else:
        typer.echo("systemctl not available. Showing process-based services:")
        console.print(_process_table("Service processes", daemons))


@app.command()
def alerts(ctx: typer.Context):
    """Check CPU, memory, disk and load against the alert thresholds."""
    settings = settings_from(ctx)
    with audited(settings, TOOL, "Resource alerts check") as trail:
        results = evaluate_alerts(
            take_snapshot(),
            cpu_threshold=settings.cpu_alert_threshold,
            memory_threshold=settings.memory_alert_threshold,
            disk_threshold=settings.disk_alert_threshold,
        )
        breached = 0
        for alert in results:
            if alert.breached:
                breached += 1
                trail.warning(alert.message)
                console.print(f"[bold red]ALERT:[/bold red] {escape(alert.message)}", highlight=False)
            else:
                console.print(f"[green]OK:[/green] {escape(alert.message)}", highlight=False)
        trail.success = f"Resource alerts check completed: {breached} alert(s)"


@app.command()
def watch(
    ctx: typer.Context,
    pid: int = typer.Argument(..., help="Process ID"),
    interval: float = typer.Option(2, "--interval", "-i", help="Seconds between samples"),
    count: Optional[int] = typer.Option(None, "--count", "-n", min=1, help="Stop after this many samples"),
):
    """Follow one process until it exits."""
    with audited(settings_from(ctx), TOOL, f"Watch PID {pid}") as trail:
        processes.process_info(pid)
        typer.echo(f"Watching process PID: {pid} (Press Ctrl+C to stop)")
        exited = False
        with Ticker(interval, max_ticks=count) as ticker:
            for _tick in ticker:
                if not processes.is_running(pid):
                    exited = True
                    break
                typer.echo(f"--- {display_timestamp()} ---")
                try:
                    _print_info(processes.process_info(pid))
                except PreconditionError:
                    exited = True
                    break
        if exited:
            typer.echo(f"Process {pid} has terminated")
            trail.success = f"Process {pid} terminated"
        else:
            typer.echo("Watch stopped")
            trail.success = f"Watch of PID {pid} stopped"


@app.command()
def monitor(
    interval: float = typer.Option(5, "--interval", "-i", help="Seconds between refreshes"),
    count: Optional[int] = typer.Option(None, "--count", "-n", min=1, help="Stop after this many refreshes"),
):
    """Refresh load, memory and top processes until interrupted."""
    typer.echo("System Process Monitor (Press Ctrl+C to stop)")
    with Ticker(interval, max_ticks=count) as ticker:
        for _tick in ticker:
            vm = psutil.virtual_memory()
            console.rule(f"System Process Monitor - {display_timestamp()}")
            typer.echo(f"System Load: {load_average()}")
            typer.echo(f"CPU Usage: {psutil.cpu_percent(interval=None)}%")
            typer.echo(f"Memory: {human_size(vm.used)}/{human_size(vm.total)}")
            snapshot = processes.list_processes()
            by_cpu = sorted(snapshot, key=lambda p: p.cpu_percent, reverse=True)[:5]
            by_mem = sorted(snapshot, key=lambda p: p.memory_percent, reverse=True)[:5]
            console.print(_process_table("Top 5 CPU", by_cpu))
            console.print(_process_table("Top 5 memory", by_mem))
    typer.echo("Monitoring stopped")
