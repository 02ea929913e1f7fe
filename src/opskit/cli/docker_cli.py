"""
Docker container and image management CLI.
"""

import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.markup import escape

from opskit.cli.common import audited, echo_raw, handle_errors, settings_from, show_help
from opskit.core.exceptions import require
from opskit.docker.docker_manager import DockerManager

logger = logging.getLogger(__name__)
console = Console()

TOOL = "docker"

# Commands that only write local files and do not need the daemon
OFFLINE_COMMANDS = {"sample"}

app = typer.Typer(help="Manage Docker containers and images")


@app.callback(invoke_without_command=True)
def docker_callback(ctx: typer.Context):
    show_help(ctx)
    if ctx.invoked_subcommand not in OFFLINE_COMMANDS:
        with handle_errors():
            DockerManager().ensure_available()


@app.command("list")
def list_containers(ctx: typer.Context):
    """Show running and all containers."""
    with audited(settings_from(ctx), TOOL, "List containers"):
        running, every = DockerManager().list_containers()
        console.print("[bold]Running containers:[/bold]")
        echo_raw(running.stdout)
        typer.echo("")
        console.print("[bold]All containers:[/bold]")
        echo_raw(every.stdout)


@app.command()
def images(ctx: typer.Context):
    """List local images."""
    with audited(settings_from(ctx), TOOL, "List images"):
        echo_raw(DockerManager().list_images().stdout)


@app.command()
def run(
    ctx: typer.Context,
    image: str = typer.Argument(..., help="Image to run"),
    name: Optional[str] = typer.Argument(None, help="Container name"),
):
    """Start a detached container with image-based defaults."""
    with audited(settings_from(ctx), TOOL, f"Run {image}") as trail:
        require(image, "Image name")
        container_id = DockerManager().run_container(image, name)
        console.print(f"[green]Container started:[/green] {escape(container_id)}", highlight=False)
        trail.success = f"Started container {name or container_id} from {image}"


@app.command()
def stop(ctx: typer.Context, container: str = typer.Argument(..., help="Container name or ID")):
    """Stop a container."""
    with audited(settings_from(ctx), TOOL, f"Stop {container}") as trail:
        require(container, "Container name")
        DockerManager().stop_container(container)
        console.print(f"[green]Container stopped:[/green] {escape(container)}", highlight=False)
        trail.success = f"Stopped container {container}"


@app.command()
def start(ctx: typer.Context, container: str = typer.Argument(..., help="Container name or ID")):
    """Start a stopped container."""
    with audited(settings_from(ctx), TOOL, f"Start {container}") as trail:
        require(container, "Container name")
        DockerManager().start_container(container)
        console.print(f"[green]Container started:[/green] {escape(container)}", highlight=False)
        trail.success = f"Started container {container}"


@app.command()
def remove(ctx: typer.Context, container: str = typer.Argument(..., help="Container name or ID")):
    """Stop and remove a container."""
    with audited(settings_from(ctx), TOOL, f"Remove {container}") as trail:
        require(container, "Container name")
        DockerManager().remove_container(container)
        console.print(f"[green]Container removed:[/green] {escape(container)}", highlight=False)
        trail.success = f"Removed container {container}"


@app.command()
def logs(
    ctx: typer.Context,
    container: str = typer.Argument(..., help="Container name or ID"),
    tail: int = typer.Option(50, "--tail", "-t", help="Number of lines to show"),
    follow: bool = typer.Option(False, "--follow", "-f", help="Stream new log lines"),
):
    """Show container logs."""
    with handle_errors():
        require(container, "Container name")
        DockerManager().show_logs(container, tail=tail, follow=follow)


@app.command("exec")
def exec_command(
    ctx: typer.Context,
    container: str = typer.Argument(..., help="Container name or ID"),
    command: Optional[List[str]] = typer.Argument(None, help="Command to run (default: /bin/bash)"),
):
    """Run a command inside a container."""
    with audited(settings_from(ctx), TOOL, f"Exec in {container}"):
        require(container, "Container name")
        DockerManager().exec_command(container, command or [])


@app.command()
def stats(ctx: typer.Context):
    """One-shot resource usage of running containers."""
    with handle_errors():
        echo_raw(DockerManager().stats().stdout)


@app.command()
def cleanup(ctx: typer.Context):
    """Prune stopped containers and unused images, networks and volumes."""
    with audited(settings_from(ctx), TOOL, "Docker cleanup") as trail:
        for label, result in DockerManager().cleanup():
            console.print(f"[bold]{label.capitalize()}:[/bold]")
            echo_raw(result.stdout)
        trail.success = "Docker cleanup completed"


@app.command()
def build(
    ctx: typer.Context,
    directory: Path = typer.Argument(..., help="Directory containing a Dockerfile"),
):
    """Build an image tagged with the directory name."""
    with audited(settings_from(ctx), TOOL, f"Build {directory}") as trail:
        image = DockerManager().build_image(directory)
        console.print(f"[green]Image built:[/green] {escape(image)}", highlight=False)
        trail.success = f"Built image {image} from {directory}"


@app.command()
def sample(
    directory: Path = typer.Argument(Path("sample-app"), help="Where to write the sample project"),
):
    """Write a sample Dockerfile and index.html."""
    with handle_errors():
        target = DockerManager.write_sample(directory)
    console.print(f"[green]Sample Dockerfile created in[/green] {escape(str(target))}", highlight=False)
    typer.echo(f"Build it with: opskit docker build {target}")
