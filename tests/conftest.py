"""
Shared fixtures: every test gets its own log, report and backup directories.
"""

import pytest
from typer.testing import CliRunner

from opskit.core.config import get_settings


@pytest.fixture(autouse=True)
def settings_env(tmp_path, monkeypatch):
    """Point every output location at ``tmp_path`` and reload settings."""
    dirs = {
        "OPSKIT_LOG_DIR": tmp_path / "logs",
        "OPSKIT_REPORT_DIR": tmp_path / "reports",
        "OPSKIT_BACKUP_DIR": tmp_path / "backups",
        "OPSKIT_DB_BACKUP_DIR": tmp_path / "db_backups",
        "OPSKIT_DB_CONFIG_PATH": tmp_path / "db_config",
        "OPSKIT_API_CONFIG_PATH": tmp_path / "api_config",
    }
    for name, path in dirs.items():
        monkeypatch.setenv(name, str(path))
    monkeypatch.delenv("DB_PASSWORD", raising=False)
    get_settings.cache_clear()
    yield dirs
    get_settings.cache_clear()


@pytest.fixture
def runner():
    return CliRunner()


def audit_lines(log_dir, tool):
    """Lines of ``<log_dir>/<tool>.log``."""
    path = log_dir / f"{tool}.log"
    return path.read_text(encoding="utf-8").splitlines()
