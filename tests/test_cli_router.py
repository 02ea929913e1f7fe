"""
Tests for the top-level command router and sub-app dispatch.
"""

from unittest.mock import patch

import pytest
from conftest import audit_lines

from opskit.cli.main_cli import main_app

TOOLS = ["api", "backup", "db", "docker", "git", "process", "network",
         "system", "logs", "security", "text", "perf"]


def test_bare_invocation_prints_help_and_exits_1(runner):
    result = runner.invoke(main_app, [])
    assert result.exit_code == 1
    assert "Usage" in result.output
    for tool in TOOLS:
        assert tool in result.output


def test_sub_app_without_command_exits_1(runner):
    for tool in ["backup", "git", "text", "security"]:
        result = runner.invoke(main_app, [tool])
        assert result.exit_code == 1, tool
        assert "Usage" in result.output


def test_unknown_tool_is_rejected(runner):
    result = runner.invoke(main_app, ["frobnicate"])
    assert result.exit_code == 2


def test_unknown_sub_command_is_rejected(runner):
    result = runner.invoke(main_app, ["backup", "explode"])
    assert result.exit_code == 2
    result = runner.invoke(main_app, ["docker", "explode"])
    assert result.exit_code == 2


def test_missing_argument_never_reaches_the_tool(runner):
    with patch("opskit.cli.git_cli.GitManager") as git_manager:
        result = runner.invoke(main_app, ["git", "commit"])
    assert result.exit_code == 2
    git_manager.assert_not_called()

    with patch("opskit.cli.backup_cli.BackupManager") as backup_manager:
        result = runner.invoke(main_app, ["backup", "restore"])
    assert result.exit_code == 2
    backup_manager.assert_not_called()


@pytest.mark.parametrize(
    "args, tool",
    [
        (["git", "init", ""], "git"),
        (["git", "clone", "  "], "git"),
        (["git", "commit", ""], "git"),
        (["git", "branch", ""], "git"),
        (["git", "checkout", ""], "git"),
        (["git", "merge", " "], "git"),
        (["docker", "run", ""], "docker"),
        (["docker", "stop", ""], "docker"),
        (["docker", "start", ""], "docker"),
        (["docker", "remove", ""], "docker"),
        (["docker", "logs", ""], None),
        (["docker", "exec", ""], "docker"),
        (["db", "backup", ""], "database"),
        (["db", "list-tables", ""], "database"),
        (["db", "query", "", "SELECT 1"], "database"),
        (["db", "monitor", " "], "database"),
        (["db", "restore", "dump.sql", "--database", ""], "database"),
    ],
)
def test_blank_argument_is_rejected_before_any_tool_runs(runner, settings_env, args, tool):
    with patch("opskit.git.git_manager.run_tool") as git_run, \
            patch("opskit.docker.docker_manager.run_tool") as docker_run, \
            patch("opskit.database.db_manager.run_tool") as db_run, \
            patch("opskit.cli.docker_cli.DockerManager.ensure_available"):
        result = runner.invoke(main_app, args)

    assert result.exit_code == 1, result.output
    assert "required" in result.output
    git_run.assert_not_called()
    docker_run.assert_not_called()
    db_run.assert_not_called()
    if tool:
        lines = audit_lines(settings_env["OPSKIT_LOG_DIR"], tool)
        assert "[ERROR]" in lines[-1]
        assert "required" in lines[-1]
