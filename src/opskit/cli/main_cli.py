"""
Top-level CLI that aggregates the tool sub-apps (api, backup, db, ...).
"""

import logging

import typer

from opskit.cli.api_cli import app as api_app
from opskit.cli.backup_cli import app as backup_app
from opskit.cli.common import show_help
from opskit.cli.db_cli import app as db_app
from opskit.cli.docker_cli import app as docker_app
from opskit.cli.git_cli import app as git_app
from opskit.cli.logs_cli import app as logs_app
from opskit.cli.network_cli import app as network_app
from opskit.cli.perf_cli import app as perf_app
from opskit.cli.process_cli import app as process_app
from opskit.cli.security_cli import app as security_app
from opskit.cli.system_cli import app as system_app
from opskit.cli.text_cli import app as text_app
from opskit.core.config import get_settings

logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s %(name)s - %(message)s"
)

main_app = typer.Typer(help="opskit: DevOps automation toolkit")


@main_app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    ctx.obj = get_settings()
    show_help(ctx)


main_app.add_typer(api_app, name="api")
main_app.add_typer(backup_app, name="backup")
main_app.add_typer(db_app, name="db")
main_app.add_typer(docker_app, name="docker")
main_app.add_typer(git_app, name="git")
main_app.add_typer(process_app, name="process")
main_app.add_typer(network_app, name="network")
main_app.add_typer(system_app, name="system")
main_app.add_typer(logs_app, name="logs")
main_app.add_typer(security_app, name="security")
main_app.add_typer(text_app, name="text")
main_app.add_typer(perf_app, name="perf")


def main():
    main_app()


if __name__ == "__main__":
    main()
