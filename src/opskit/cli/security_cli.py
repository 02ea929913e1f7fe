"""
Security scanner CLI.
"""

import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape

from opskit.cli.common import audited, print_sections, settings_from, show_help
from opskit.core.utils import human_size
from opskit.security.scanner import SecurityScanner, hardening_steps, require_root

logger = logging.getLogger(__name__)
console = Console()

TOOL = "security_scan"

app = typer.Typer(help="Security scanning and basic hardening")


@app.callback(invoke_without_command=True)
def security_callback(ctx: typer.Context):
    show_help(ctx)


def _single_check(ctx: typer.Context, name: str, label: str, **scanner_args) -> None:
    with audited(settings_from(ctx), TOOL, label) as trail:
        section = getattr(SecurityScanner(**scanner_args), name)()
        print_sections([section])
        trail.success = f"{label} completed"


@app.command()
def users(ctx: typer.Context):
    """UID 0 accounts, empty passwords, shell users and failed logins."""
    _single_check(ctx, "users", "User account scan")


@app.command()
def network(ctx: typer.Context):
    """Listening ports, interfaces and routes."""
    _single_check(ctx, "network", "Network security scan")


@app.command()
def files(
    ctx: typer.Context,
    root: Path = typer.Option(Path("/"), "--root", help="Directory tree to walk"),
    limit: int = typer.Option(10, "--limit", min=1, help="Paths reported per category"),
):
    """World-writable, SUID/SGID and ownerless files plus critical file modes."""
    _single_check(ctx, "files", "File permission scan", files_root=root, file_limit=limit)


@app.command()
def services(ctx: typer.Context):
    """Running services and cron jobs."""
    _single_check(ctx, "services", "Service audit")


@app.command()
def passwords(ctx: typer.Context):
    """Password aging, lockout and complexity settings."""
    _single_check(ctx, "passwords", "Password policy check")


@app.command()
def firewall(ctx: typer.Context):
    """Firewall status from iptables, ufw or firewalld."""
    _single_check(ctx, "firewall", "Firewall check")


@app.command()
def updates(ctx: typer.Context):
    """Pending package updates and kernel version."""
    _single_check(ctx, "updates", "Updates check")


@app.command()
def scan(ctx: typer.Context):
    """Run every check."""
    with audited(settings_from(ctx), TOOL, "Comprehensive security scan") as trail:
        print_sections(SecurityScanner().all_checks())
        trail.success = "Comprehensive security scan completed"


@app.command()
def report(ctx: typer.Context):
    """Run every check and write security_report_<timestamp>.txt."""
    settings = settings_from(ctx)
    with audited(settings, TOOL, "Security report") as trail:
        path, _sections = SecurityScanner().write_report(settings.report_dir)
        console.print(f"[green]Security report generated:[/green] {escape(str(path))}", highlight=False)
        typer.echo(f"Report size: {human_size(path.stat().st_size)}")
        trail.success = f"Security report generated: {path}"


@app.command()
def harden(
    ctx: typer.Context,
    yes: bool = typer.Option(False, "--yes", "-y", help="Apply without asking"),
):
    """Apply basic hardening (root only)."""
    with audited(settings_from(ctx), TOOL, "Hardening") as trail:
        require_root()
        steps = hardening_steps()
        if not steps:
            typer.echo("Nothing to apply")
            trail.success = "Hardening: nothing to apply"
            return
        typer.echo("The following changes will be applied:")
        for description, _action in steps:
            typer.echo(f"  - {description}")
        if not yes and not typer.confirm("Apply these changes?"):
            typer.echo("Hardening cancelled")
            trail.success = "Hardening cancelled"
            return
        for description, action in steps:
            typer.echo(f"{description}...")
            action()
            trail.info(f"Applied: {description}")
        console.print("[green]Hardening completed. Review changes and test system functionality.[/green]")
        trail.success = "Basic hardening applied"
