"""
Git repository management CLI. Commands run in the current directory.
"""

import logging
from typing import List, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from opskit.cli.common import audited, echo_raw, settings_from, show_help
from opskit.core.exceptions import require
from opskit.git.git_manager import GitManager

logger = logging.getLogger(__name__)
console = Console()

TOOL = "git"

app = typer.Typer(help="Git repository management")


@app.callback(invoke_without_command=True)
def git_callback(ctx: typer.Context):
    show_help(ctx)


@app.command()
def status(ctx: typer.Context):
    """Classified working tree status and repository summary."""
    with audited(settings_from(ctx), TOOL, "Status"):
        repo = GitManager().status()
        if repo.entries:
            table = Table(title="Working tree")
            table.add_column("Status", style="cyan")
            table.add_column("File")
            for entry in repo.entries:
                table.add_row(entry.label, escape(entry.path))
            console.print(table)
        else:
            console.print("[green]Working tree clean[/green]")

        typer.echo(f"Current branch: {repo.branch or '(detached)'}")
        if repo.remote_branches:
            typer.echo("Remote branches:")
            for branch in repo.remote_branches:
                typer.echo(f"  {branch}")
        typer.echo("Recent commits:")
        for line in repo.recent_commits or ["(none)"]:
            typer.echo(f"  {line}")
        typer.echo(f"Remote URL: {repo.remote_url or 'No remote configured'}")
        typer.echo(f"Total commits: {repo.commit_count}")
        typer.echo(f"Contributors: {repo.contributors}")


@app.command()
def init(ctx: typer.Context, name: str = typer.Argument(..., help="Name of the new repository directory")):
    """Create a repository with README, .gitignore and an initial commit."""
    with audited(settings_from(ctx), TOOL, f"Init {name}") as trail:
        require(name, "Repository name")
        path = GitManager().init_repo(name)
        console.print(f"[green]Repository created:[/green] {escape(str(path))}", highlight=False)
        trail.success = f"Initialized repository {path}"


@app.command()
def clone(
    ctx: typer.Context,
    url: str = typer.Argument(..., help="Repository URL"),
    directory: Optional[str] = typer.Argument(None, help="Target directory"),
):
    """Clone a repository."""
    with audited(settings_from(ctx), TOOL, f"Clone {url}") as trail:
        require(url, "Repository URL")
        path = GitManager().clone(url, directory)
        console.print(f"[green]Repository cloned to[/green] {escape(str(path))}", highlight=False)
        trail.success = f"Cloned {url} into {path}"


@app.command()
def add(
    ctx: typer.Context,
    files: Optional[List[str]] = typer.Argument(None, help="Files to stage (default: everything)"),
):
    """Stage files."""
    with audited(settings_from(ctx), TOOL, "Add") as trail:
        staged = GitManager().add(files or [])
        typer.echo("Staged files:")
        for name in staged:
            typer.echo(f"  {name}")
        trail.success = f"Staged {len(staged)} file(s)"


@app.command()
def commit(ctx: typer.Context, message: str = typer.Argument(..., help="Commit message")):
    """Commit staged changes."""
    with audited(settings_from(ctx), TOOL, "Commit") as trail:
        require(message, "Commit message")
        summary = GitManager().commit(message)
        console.print("[green]Commit created:[/green] ", end="")
        typer.echo(summary)
        trail.success = f"Committed: {summary}"


@app.command()
def push(
    ctx: typer.Context,
    remote: Optional[str] = typer.Argument(None, help="Remote (default: origin)"),
    branch: Optional[str] = typer.Argument(None, help="Branch (default: current)"),
):
    """Push a branch."""
    with audited(settings_from(ctx), TOOL, "Push") as trail:
        remote, branch = GitManager().push(remote, branch)
        console.print(f"[green]Pushed to {escape(remote)}/{escape(branch)}[/green]", highlight=False)
        trail.success = f"Pushed to {remote}/{branch}"


@app.command()
def pull(
    ctx: typer.Context,
    remote: Optional[str] = typer.Argument(None, help="Remote (default: origin)"),
    branch: Optional[str] = typer.Argument(None, help="Branch (default: current)"),
):
    """Pull a branch."""
    with audited(settings_from(ctx), TOOL, "Pull") as trail:
        remote, branch = GitManager().pull(remote, branch)
        console.print(f"[green]Pulled from {escape(remote)}/{escape(branch)}[/green]", highlight=False)
        trail.success = f"Pulled from {remote}/{branch}"


@app.command()
def branch(
    ctx: typer.Context,
    name: Optional[str] = typer.Argument(None, help="Branch to create and switch to"),
):
    """List branches, or create one."""
    with audited(settings_from(ctx), TOOL, "Branch") as trail:
        if name is not None:
            require(name, "Branch name")
        manager = GitManager()
        if name:
            manager.create_branch(name)
            console.print(f"[green]Created and switched to branch:[/green] {escape(name)}", highlight=False)
            trail.success = f"Created branch {name}"
        else:
            echo_raw(manager.branches())


@app.command()
def checkout(ctx: typer.Context, branch_name: str = typer.Argument(..., metavar="BRANCH", help="Branch to switch to")):
    """Switch branches."""
    with audited(settings_from(ctx), TOOL, f"Checkout {branch_name}") as trail:
        require(branch_name, "Branch name")
        GitManager().checkout(branch_name)
        console.print(f"[green]Switched to branch:[/green] {escape(branch_name)}", highlight=False)
        trail.success = f"Switched to branch {branch_name}"


@app.command()
def merge(ctx: typer.Context, branch_name: str = typer.Argument(..., metavar="BRANCH", help="Branch to merge")):
    """Merge a branch into the current branch."""
    with audited(settings_from(ctx), TOOL, f"Merge {branch_name}") as trail:
        require(branch_name, "Branch name")
        current = GitManager().merge(branch_name)
        console.print(f"[green]Merged {escape(branch_name)} into {escape(current)}[/green]", highlight=False)
        trail.success = f"Merged {branch_name} into {current}"


@app.command()
def log(ctx: typer.Context, count: int = typer.Argument(10, min=1, help="Number of commits")):
    """Commit graph and the latest commit's stats."""
    with audited(settings_from(ctx), TOOL, "Log"):
        graph, latest = GitManager().log(count)
        echo_raw(graph)
        typer.echo("")
        console.print("[bold]Latest commit:[/bold]")
        echo_raw(latest)


@app.command()
def diff(ctx: typer.Context, file: Optional[str] = typer.Argument(None, help="Limit to one file")):
    """Unstaged and staged differences."""
    with audited(settings_from(ctx), TOOL, "Diff"):
        for title, text in GitManager().diff(file).items():
            console.print(f"[bold]{escape(title)}:[/bold]", highlight=False)
            echo_raw(text or "(no differences)")


@app.command()
def backup(ctx: typer.Context):
    """Archive the work tree and bundle the full history next to the repository."""
    with audited(settings_from(ctx), TOOL, "Repository backup") as trail:
        archive, bundle = GitManager().backup()
        console.print(f"[green]Archive:[/green] {escape(str(archive))}", highlight=False)
        console.print(f"[green]Bundle:[/green] {escape(str(bundle))}", highlight=False)
        trail.success = f"Repository backup created: {archive}, {bundle}"


@app.command()
def cleanup(ctx: typer.Context):
    """Remove untracked files, garbage-collect and delete merged branches."""
    with audited(settings_from(ctx), TOOL, "Repository cleanup") as trail:
        deleted = GitManager().cleanup()
        for name in deleted:
            typer.echo(f"Deleted merged branch: {name}")
        console.print("[green]Repository cleanup completed[/green]")
        trail.success = f"Repository cleanup completed ({len(deleted)} branches deleted)"
