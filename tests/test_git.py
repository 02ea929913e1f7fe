"""
Tests for Git status parsing and GitManager against a scripted git.
"""

from unittest.mock import patch

import pytest

from opskit.cli.main_cli import main_app
from opskit.core.exceptions import PreconditionError, ToolError, UsageError
from opskit.core.runner import ToolResult
from opskit.git.git_manager import GitManager, merged_branches_to_delete, parse_porcelain


def scripted_git(responses):
    """
    A run_tool replacement. ``responses`` maps a git sub-command tuple
    (e.g. ("diff", "--cached", "--quiet")) to (returncode, stdout).
    Unlisted commands succeed with empty output. Calls are recorded.
    """
    calls = []

    def run_tool(args, cwd=None, check=False, **_kwargs):
        key = tuple(args[1:])
        calls.append(key)
        returncode, stdout = responses.get(key, (0, ""))
        result = ToolResult(args=list(args), returncode=returncode, stdout=stdout)
        if check and returncode != 0:
            raise ToolError("git failed", returncode=returncode)
        return result

    return run_tool, calls


@pytest.fixture
def git_manager(tmp_path):
    with patch("opskit.git.git_manager.require_tool", return_value="/usr/bin/git"):
        yield GitManager(tmp_path)


def test_parse_porcelain():
    entries = parse_porcelain(" M src/app.py\nA  new.txt\n?? scratch/\nD  old.txt\nUU conflict.py\n")
    assert [(e.label, e.path) for e in entries] == [
        ("Modified (unstaged)", "src/app.py"),
        ("Added", "new.txt"),
        ("Untracked", "scratch/"),
        ("Deleted", "old.txt"),
        ("UU", "conflict.py"),
    ]


def test_merged_branches_to_delete_protects_current_and_main():
    output = "  feature/login\n* develop\n  main\n  master\n+ worktree-branch\n  fix-typo\n"
    assert merged_branches_to_delete(output) == ["feature/login", "fix-typo"]


def test_outside_repository(git_manager):
    run_tool, _calls = scripted_git({("rev-parse", "--git-dir"): (128, "")})
    with patch("opskit.git.git_manager.run_tool", side_effect=run_tool):
        with pytest.raises(PreconditionError, match="Not in a Git repository"):
            git_manager.status()


def test_commit_requires_staged_changes(git_manager):
    run_tool, calls = scripted_git({("diff", "--cached", "--quiet"): (0, "")})
    with patch("opskit.git.git_manager.run_tool", side_effect=run_tool):
        with pytest.raises(PreconditionError, match="No staged changes"):
            git_manager.commit("work")
    assert ("commit", "-m", "work") not in calls


def test_commit_blank_message(git_manager):
    run_tool, calls = scripted_git({})
    with patch("opskit.git.git_manager.run_tool", side_effect=run_tool):
        with pytest.raises(UsageError):
            git_manager.commit("   ")
    assert calls == []


def test_commit_returns_summary(git_manager):
    run_tool, calls = scripted_git({
        ("diff", "--cached", "--quiet"): (1, ""),
        ("log", "--oneline", "-1"): (0, "abc1234 work\n"),
    })
    with patch("opskit.git.git_manager.run_tool", side_effect=run_tool):
        assert git_manager.commit("work") == "abc1234 work"
    assert ("commit", "-m", "work") in calls


def test_push_defaults_to_origin_and_current_branch(git_manager):
    run_tool, calls = scripted_git({("branch", "--show-current"): (0, "develop\n")})
    with patch("opskit.git.git_manager.run_tool", side_effect=run_tool):
        assert git_manager.push() == ("origin", "develop")
    assert ("push", "origin", "develop") in calls


def test_push_failure_carries_exit_code(git_manager):
    run_tool, _calls = scripted_git({
        ("branch", "--show-current"): (0, "main\n"),
        ("push", "origin", "main"): (128, ""),
    })
    with patch("opskit.git.git_manager.run_tool", side_effect=run_tool):
        with pytest.raises(ToolError) as excinfo:
            git_manager.push()
    assert excinfo.value.exit_code == 128


def test_cleanup_deletes_only_merged_feature_branches(git_manager):
    run_tool, calls = scripted_git({("branch", "--merged"): (0, "* main\n  old-feature\n  master\n")})
    with patch("opskit.git.git_manager.run_tool", side_effect=run_tool):
        assert git_manager.cleanup() == ["old-feature"]
    assert ("clean", "-fd") in calls
    assert ("branch", "-d", "old-feature") in calls
    assert ("branch", "-d", "master") not in calls


def test_init_repo_refuses_existing_directory(git_manager, tmp_path):
    (tmp_path / "existing").mkdir()
    with pytest.raises(PreconditionError, match="already exists"):
        git_manager.init_repo("existing")


def test_init_repo_writes_readme_and_gitignore(git_manager, tmp_path):
    run_tool, calls = scripted_git({})
    with patch("opskit.git.git_manager.run_tool", side_effect=run_tool):
        target = git_manager.init_repo("demo")
    assert (target / "README.md").read_text().startswith("# demo")
    assert "*.log" in (target / ".gitignore").read_text()
    assert calls[0] == ("init",)


def test_cli_status_outside_repo(runner):
    with patch("opskit.cli.git_cli.GitManager") as manager_cls:
        manager_cls.return_value.status.side_effect = PreconditionError("Not in a Git repository")
        result = runner.invoke(main_app, ["git", "status"])
    assert result.exit_code == 1
    assert "Not in a Git repository" in result.output


def test_cli_branch_names_are_printed_literally(runner):
    with patch("opskit.cli.git_cli.GitManager") as manager_cls:
        manager_cls.return_value.merge.return_value = "main"
        result = runner.invoke(main_app, ["git", "merge", "[bold]feature"])
    assert result.exit_code == 0, result.output
    assert "Merged [bold]feature into main" in result.output
