"""
Network diagnostics CLI.
"""

import logging
import time
from typing import Optional

import psutil
import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from opskit.cli.common import audited, echo_raw, handle_errors, settings_from, show_help
from opskit.core.exceptions import ToolError
from opskit.core.ticker import Ticker
from opskit.core.utils import display_timestamp, human_size
from opskit.network import diagnostics

logger = logging.getLogger(__name__)
console = Console()

TOOL = "network_monitor"

app = typer.Typer(help="Network diagnostics and monitoring")


@app.callback(invoke_without_command=True)
def network_callback(ctx: typer.Context):
    show_help(ctx)


@app.command()
def info():
    """Interfaces, addresses, traffic counters and DNS configuration."""
    table = Table(title="Network interfaces")
    table.add_column("Interface", style="cyan")
    table.add_column("Up")
    table.add_column("Addresses")
    status = diagnostics.interface_status()
    for nic, addresses in diagnostics.interface_addresses().items():
        table.add_row(nic, "yes" if status.get(nic) else "no", "\n".join(addresses) or "-")
    console.print(table)

    counters = Table(title="Network statistics")
    counters.add_column("Interface", style="cyan")
    counters.add_column("RX", justify="right")
    counters.add_column("TX", justify="right")
    counters.add_column("Errors in/out", justify="right")
    for nic, c in sorted(psutil.net_io_counters(pernic=True).items()):
        counters.add_row(nic, human_size(c.bytes_recv), human_size(c.bytes_sent), f"{c.errin}/{c.errout}")
    console.print(counters)

    console.print("[bold]DNS Configuration:[/bold]")
    echo_raw(diagnostics.resolv_conf() or "DNS configuration not found")


@app.command()
def ping(ctx: typer.Context, host: str = typer.Argument(..., help="Host to ping")):
    """Ping a host and summarize latency and packet loss."""
    settings = settings_from(ctx)
    with audited(settings, TOOL, f"Ping to {host}") as trail:
        typer.echo(f"Pinging {host}...")
        result = diagnostics.ping(host, count=settings.ping_count, timeout=settings.ping_timeout)
        echo_raw(result.output)
        if not result.success:
            raise ToolError(f"Ping to {host} failed")
        typer.echo("")
        typer.echo("Summary:")
        avg = f"{result.avg_ms}ms" if result.avg_ms is not None else "N/A"
        typer.echo(f"Average response time: {avg}")
        typer.echo(f"Packet loss: {result.packet_loss or 'N/A'}")
        trail.success = f"Ping to {host} successful - Avg: {avg}, Loss: {result.packet_loss or 'N/A'}"


@app.command()
def scan(
    ctx: typer.Context,
    network: Optional[str] = typer.Argument(None, help="CIDR to sweep, e.g. 192.168.1.0/24 (default: auto-detect)"),
):
    """Ping-sweep a network for live hosts."""
    with audited(settings_from(ctx), TOOL, "Network scan") as trail:
        target = diagnostics.parse_network(network)
        if network is None:
            typer.echo(f"Auto-detected network: {target}")
        typer.echo(f"Scanning network: {target}")

        def found(ip, hostname):
            console.print(f"[green]✓[/green] {escape(str(ip))} is active", highlight=False)
            if hostname:
                typer.echo(f"  Hostname: {hostname}")

        live = diagnostics.scan_hosts(target, on_host=found)
        typer.echo(f"Scan completed. Found {len(live)} active hosts.")
        trail.success = f"Scan of {target} completed: {len(live)} active hosts"


@app.command()
def ports(ctx: typer.Context, host: str = typer.Argument(..., help="Host to scan")):
    """Check the common TCP ports on a host."""
    settings = settings_from(ctx)
    with audited(settings, TOOL, f"Port scan of {host}") as trail:
        typer.echo(f"Scanning common ports on {host}...")

        def report(status):
            if status.open:
                console.print(f"[green]✓[/green] Port {status.port} is open ({escape(status.service)})", highlight=False)
            else:
                console.print(f"[red]✗[/red] Port {status.port} is closed", highlight=False)

        results = diagnostics.scan_ports(host, timeout=settings.port_timeout, on_port=report)
        open_ports = [str(s.port) for s in results if s.open]
        trail.success = f"Port scan of {host}: open {', '.join(open_ports) or 'none'}"


@app.command()
def connections():
    """Connection counts, listening sockets and established peers."""
    with handle_errors():
        summary = diagnostics.connection_summary()
    typer.echo(f"TCP Established: {summary.established}")
    typer.echo(f"TCP Listening: {summary.listening}")
    typer.echo(f"UDP Sockets: {summary.udp}")
    typer.echo("")
    console.print("[bold]Listening Services:[/bold]")
    for line in summary.listeners or ["(none)"]:
        typer.echo(f"  {line}")
    console.print("[bold]Established Connections:[/bold]")
    for line in summary.remote or ["(none)"]:
        typer.echo(f"  {line}")


@app.command()
def bandwidth(
    interface: Optional[str] = typer.Argument(None, help="Interface (default: default route's)"),
    interval: float = typer.Option(1, "--interval", "-i", help="Seconds between samples"),
    count: Optional[int] = typer.Option(None, "--count", "-n", min=1, help="Stop after this many samples"),
):
    """Receive and transmit rates of one interface."""
    with handle_errors():
        nic, rx_old, tx_old = diagnostics.io_counters(interface)
        typer.echo(f"Monitoring bandwidth on interface: {nic} (Press Ctrl+C to stop)")
        last = time.monotonic()
        # tick 0 only takes the baseline reading
        with Ticker(interval, max_ticks=count + 1 if count is not None else None) as ticker:
            for tick in ticker:
                if tick == 0:
                    continue
                _, rx_new, tx_new = diagnostics.io_counters(nic)
                now = time.monotonic()
                elapsed = now - last
                typer.echo(
                    f"[{display_timestamp()}] RX: {diagnostics.rate_mb(rx_old, rx_new, elapsed):8.2f} MB/s  "
                    f"TX: {diagnostics.rate_mb(tx_old, tx_new, elapsed):8.2f} MB/s"
                )
                rx_old, tx_old, last = rx_new, tx_new, now
    typer.echo("Bandwidth monitoring stopped")


@app.command()
def dns(ctx: typer.Context, domain: str = typer.Argument(..., help="Domain to resolve")):
    """Resolve a domain and show MX/NS records."""
    with audited(settings_from(ctx), TOOL, f"DNS lookup {domain}") as trail:
        addresses, elapsed = diagnostics.resolve(domain)
        console.print("[bold]A/AAAA records:[/bold]")
        for address in addresses or ["No A record found"]:
            typer.echo(f"  {address}")
        for record_type, empty in (("MX", "No MX records found"), ("NS", "No NS records found")):
            console.print(f"[bold]{record_type} records:[/bold]")
            records = diagnostics.nslookup_records(domain, record_type)
            if records is None:
                typer.echo("  nslookup not installed")
                continue
            for line in records or [empty]:
                typer.echo(f"  {line}")
        typer.echo(f"DNS resolution time: {elapsed:.1f}ms")
        trail.success = f"DNS lookup {domain}: {len(addresses)} address(es) in {elapsed:.1f}ms"


@app.command()
def route():
    """Routing table, default gateway and ARP table."""
    with handle_errors():
        console.print("[bold]Routing table:[/bold]")
        echo_raw(diagnostics.routing_table())
        gateway, device = diagnostics.default_route()
        typer.echo(f"Default gateway: {gateway or 'none'}" + (f" via {device}" if device else ""))
        console.print("[bold]ARP table:[/bold]")
        entries = diagnostics.arp_table()
        if entries is None:
            typer.echo("ARP table not available")
            return
        for entry in entries[:10]:
            typer.echo(f"  {entry.ip:<16} {entry.mac:<18} {entry.device}")


@app.command()
def monitor(
    ctx: typer.Context,
    interval: float = typer.Option(5, "--interval", "-i", help="Seconds between checks"),
    count: Optional[int] = typer.Option(None, "--count", "-n", min=1, help="Stop after this many checks"),
):
    """Interface state, connection counts and connectivity until interrupted."""
    with audited(settings_from(ctx), TOOL, "Network monitor") as trail:
        typer.echo("Continuous Network Monitor (Press Ctrl+C to stop)")
        checks = 0
        with Ticker(interval, max_ticks=count) as ticker:
            for _tick in ticker:
                checks += 1
                console.rule(f"Network Monitor - {display_timestamp()}")
                for nic, up in diagnostics.interface_status().items():
                    typer.echo(f"{nic}: {'UP' if up else 'DOWN'}")
                summary = diagnostics.connection_summary(limit=0)
                typer.echo(f"TCP Established: {summary.established}")
                typer.echo(f"TCP Listening: {summary.listening}")
                typer.echo(f"UDP Sockets: {summary.udp}")

                if diagnostics.is_reachable(diagnostics.INTERNET_CHECK_HOST):
                    console.print("[green]✓ Internet connectivity: OK[/green]")
                else:
                    console.print("[red]✗ Internet connectivity: FAILED[/red]")
                    trail.warning("Internet connectivity failed")
                gateway, _device = diagnostics.default_route()
                if gateway and diagnostics.is_reachable(gateway):
                    console.print("[green]✓ Gateway connectivity: OK[/green]")
                else:
                    console.print("[red]✗ Gateway connectivity: FAILED[/red]")
                    trail.warning(f"Gateway {gateway or '(none)'} unreachable")
        typer.echo("Network monitoring stopped")
        trail.success = f"Network monitor stopped after {checks} check(s)"
