"""
Tests for the per-tool audit log and the error-to-exit conversion.
"""

import re
from pathlib import Path

import pytest
import typer

from opskit.cli.common import audited
from opskit.core.config import get_settings
from opskit.core.exceptions import PreconditionError, ToolError

from conftest import audit_lines

LINE_FORMAT = re.compile(r"^\[\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}\] \[(INFO|WARNING|ERROR)\] ")


def test_success_writes_one_info_line(settings_env):
    with audited(get_settings(), "unit", "Thing"):
        pass
    lines = audit_lines(settings_env["OPSKIT_LOG_DIR"], "unit")
    assert len(lines) == 1
    assert LINE_FORMAT.match(lines[0])
    assert lines[0].endswith("[INFO] Thing completed")


def test_custom_success_message(settings_env):
    with audited(get_settings(), "unit", "Thing") as trail:
        trail.warning("almost out of disk")
        trail.success = "Thing done: 3 items"
    lines = audit_lines(settings_env["OPSKIT_LOG_DIR"], "unit")
    assert "[WARNING] almost out of disk" in lines[0]
    assert lines[-1].endswith("[INFO] Thing done: 3 items")


def test_ops_error_writes_error_line_and_exits(settings_env):
    with pytest.raises(typer.Exit) as excinfo:
        with audited(get_settings(), "unit", "Thing"):
            raise PreconditionError("source missing")
    assert excinfo.value.exit_code == 1
    lines = audit_lines(settings_env["OPSKIT_LOG_DIR"], "unit")
    assert len(lines) == 1
    assert lines[0].endswith("[ERROR] Thing failed: source missing")


def test_tool_error_exit_code_propagates(settings_env):
    with pytest.raises(typer.Exit) as excinfo:
        with audited(get_settings(), "unit", "Thing"):
            raise ToolError("git push failed", returncode=128)
    assert excinfo.value.exit_code == 128


def test_unexpected_error_is_logged_and_reraised(settings_env):
    with pytest.raises(RuntimeError):
        with audited(get_settings(), "unit", "Thing"):
            raise RuntimeError("boom")
    lines = audit_lines(settings_env["OPSKIT_LOG_DIR"], "unit")
    assert lines[-1].endswith("[ERROR] Thing failed: boom")


def test_settings_follow_environment(settings_env):
    settings = get_settings()
    assert settings.log_dir == Path(settings_env["OPSKIT_LOG_DIR"])
    assert settings.log_file("backup") == Path(settings_env["OPSKIT_LOG_DIR"]) / "backup.log"
    assert settings.max_backups == 5
