"""
Tests for the saved database profile and backup naming.
"""

import gzip
import stat
from unittest.mock import patch

import pytest
from keyring.errors import KeyringError

from opskit.core.exceptions import PreconditionError, ToolError
from opskit.core.runner import ToolResult
from opskit.database.db_manager import DatabaseManager, database_from_backup
from opskit.database.engine import build_url
from opskit.database.profile import DatabaseProfile, DbType, load_profile, parse_profile, save_profile


def profile(**overrides):
    values = dict(db_type=DbType.POSTGRES, host="db.local", port=5432, user="admin", password="s3cret")
    values.update(overrides)
    return DatabaseProfile(**values)


def test_save_profile_is_private(tmp_path):
    path = tmp_path / "db_config"
    stored = save_profile(profile(), path, use_keyring=False)
    assert stored is False
    assert stat.S_IMODE(path.stat().st_mode) == 0o600
    text = path.read_text()
    assert "DB_TYPE=postgres" in text
    assert "DB_PASSWORD=s3cret" in text


def test_save_profile_prefers_keyring(tmp_path):
    path = tmp_path / "db_config"
    with patch("opskit.database.profile.keyring.set_password") as set_password:
        stored = save_profile(profile(), path)
    assert stored is True
    set_password.assert_called_once()
    assert "DB_PASSWORD" not in path.read_text()


def test_save_profile_falls_back_to_file(tmp_path):
    path = tmp_path / "db_config"
    with patch("opskit.database.profile.keyring.set_password", side_effect=KeyringError("no backend")):
        stored = save_profile(profile(), path)
    assert stored is False
    assert "DB_PASSWORD=s3cret" in path.read_text()


def test_load_profile_missing(tmp_path):
    with pytest.raises(PreconditionError, match="db setup"):
        load_profile(tmp_path / "absent")


def test_load_profile_password_order(tmp_path, monkeypatch):
    path = tmp_path / "db_config"
    save_profile(profile(password="from-file"), path, use_keyring=False)

    with patch("opskit.database.profile.keyring.get_password", return_value=None):
        assert load_profile(path).password == "from-file"
    with patch("opskit.database.profile.keyring.get_password", return_value="from-keyring"):
        assert load_profile(path).password == "from-keyring"
        monkeypatch.setenv("DB_PASSWORD", "from-env")
        assert load_profile(path).password == "from-env"


def test_load_profile_rejects_unknown_type(tmp_path):
    path = tmp_path / "db_config"
    path.write_text("DB_TYPE=oracle\nDB_USER=x\n")
    with pytest.raises(PreconditionError, match="Unsupported database type"):
        load_profile(path)


def test_parse_profile_strips_quotes():
    values = parse_profile(["# saved", 'DB_HOST="db.local"', "DB_PORT=5433", "junk"])
    assert values == {"DB_HOST": "db.local", "DB_PORT": "5433"}


def test_with_type_switches_default_port():
    mysql = profile().with_type(DbType.MYSQL)
    assert mysql.port == 3306
    assert mysql.db_type.driver == "mysql+pymysql"
    custom = profile(port=6543).with_type(DbType.MYSQL)
    assert custom.port == 6543


def test_password_env():
    assert profile().password_env() == {"PGPASSWORD": "s3cret"}
    assert profile(db_type=DbType.MYSQL, port=3306).password_env() == {"MYSQL_PWD": "s3cret"}
    assert profile(password=None).password_env() == {}


def test_database_from_backup():
    assert database_from_backup("shop_orders_20240131_142501.sql.gz") == "shop_orders"
    assert database_from_backup("/tmp/db_backups/app_20240131_142501.sql") == "app"
    assert database_from_backup("legacy.sql") == "legacy"


def test_build_url_scopes_database():
    url = build_url(profile())
    assert url.drivername == "postgresql+psycopg2"
    assert url.database == "postgres"
    assert url.port == 5432
    assert build_url(profile(), "app").database == "app"
    assert build_url(profile(db_type=DbType.MYSQL, port=3306)).database is None


def test_restore_missing_file(tmp_path):
    manager = DatabaseManager(profile(), tmp_path)
    with pytest.raises(PreconditionError, match="Backup file not found"):
        manager.restore(tmp_path / "app_20240101_000000.sql.gz")


def dump_writer(payload, returncode=0, stderr=""):
    """A stream_tool replacement that writes ``payload`` into the destination."""
    def stream_tool(args, dest, env=None, **_kwargs):
        dest.write(payload)
        return ToolResult(args=list(args), returncode=returncode, stderr=stderr)
    return stream_tool


def test_backup_writes_gzipped_dump(tmp_path):
    payload = b"CREATE TABLE t (name text);\nINSERT INTO t VALUES ('caf\xe9');\n"
    manager = DatabaseManager(profile(), tmp_path)
    with patch("opskit.database.db_manager.require_tool"), \
            patch("opskit.database.db_manager.stream_tool", side_effect=dump_writer(payload)) as stream_tool:
        backup_file = manager.backup("app")
    assert backup_file.name.startswith("app_")
    assert database_from_backup(backup_file) == "app"
    with gzip.open(backup_file, "rb") as f:
        assert f.read() == payload
    assert stream_tool.call_args.args[0][0] == "pg_dump"
    assert stream_tool.call_args.kwargs["env"] == {"PGPASSWORD": "s3cret"}
    assert [p.name for p in tmp_path.iterdir()] == [backup_file.name]


def test_backup_failure_leaves_no_file(tmp_path):
    manager = DatabaseManager(profile(), tmp_path)
    failing = dump_writer(b"-- partial", returncode=1, stderr="pg_dump: connection refused\n")
    with patch("opskit.database.db_manager.require_tool"), \
            patch("opskit.database.db_manager.stream_tool", side_effect=failing):
        with pytest.raises(ToolError) as excinfo:
            manager.backup("app")
    assert "connection refused" in excinfo.value.output
    assert list(tmp_path.iterdir()) == []
