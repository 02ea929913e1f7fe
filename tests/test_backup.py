"""
Tests for backup creation, restore and rotation.
"""

import os
import tarfile
import time

import pytest

from opskit.backup.backup_manager import BackupManager
from opskit.cli.main_cli import main_app
from opskit.core.exceptions import PreconditionError, ToolError

from conftest import audit_lines


@pytest.fixture
def source(tmp_path):
    src = tmp_path / "project"
    (src / "sub").mkdir(parents=True)
    (src / "a.txt").write_text("alpha\n")
    (src / "sub" / "b.txt").write_text("beta\n")
    return src


def make_archives(directory, count, start=1_000_000):
    """Empty-but-valid archives with increasing modification times."""
    directory.mkdir(parents=True, exist_ok=True)
    paths = []
    for i in range(count):
        path = directory / f"backup_project_202401{i + 1:02d}_000000.tar.gz"
        with tarfile.open(path, "w:gz"):
            pass
        os.utime(path, (start + i * 60, start + i * 60))
        paths.append(path)
    return paths


def test_create_backup_archives_source(tmp_path, source):
    manager = BackupManager(tmp_path / "backups")
    archive = manager.create_backup(source)
    assert archive.name.startswith("backup_project_")
    assert archive.name.endswith(".tar.gz")
    assert manager.verify(archive)
    with tarfile.open(archive, "r:gz") as tar:
        names = tar.getnames()
    assert "project/a.txt" in names
    assert "project/sub/b.txt" in names


def test_create_backup_missing_source(tmp_path):
    with pytest.raises(PreconditionError):
        BackupManager(tmp_path / "backups").create_backup(tmp_path / "nope")


def test_restore_round_trip(tmp_path, source):
    manager = BackupManager(tmp_path / "backups")
    archive = manager.create_backup(source)
    restored = manager.restore_backup(archive, tmp_path / "restore")
    assert (restored / "project" / "sub" / "b.txt").read_text() == "beta\n"


def test_restore_rejects_corrupt_archive(tmp_path):
    bad = tmp_path / "backup_x_20240101_000000.tar.gz"
    bad.write_bytes(b"not a tarball")
    with pytest.raises(ToolError, match="corrupted"):
        BackupManager(tmp_path).restore_backup(bad, tmp_path / "restore")


def test_rotation_keeps_newest(tmp_path):
    directory = tmp_path / "backups"
    paths = make_archives(directory, 7)
    removed = BackupManager(directory, max_backups=5).rotate()
    assert removed == paths[:2]
    remaining = sorted(p.name for p in directory.glob("backup_*.tar.gz"))
    assert remaining == sorted(p.name for p in paths[2:])


def test_rotation_is_stable_at_limit(tmp_path):
    directory = tmp_path / "backups"
    make_archives(directory, 5)
    manager = BackupManager(directory, max_backups=5)
    assert manager.rotate() == []
    assert manager.rotate() == []
    assert len(list(directory.glob("backup_*.tar.gz"))) == 5


def test_rotation_ignores_other_files(tmp_path):
    directory = tmp_path / "backups"
    make_archives(directory, 6)
    (directory / "notes.txt").write_text("keep me")
    (directory / "incremental_project_20240101_000000.tar.gz").write_bytes(b"")
    BackupManager(directory, max_backups=5).rotate()
    assert (directory / "notes.txt").exists()
    assert (directory / "incremental_project_20240101_000000.tar.gz").exists()


def test_incremental_first_run_is_full(tmp_path, source):
    dest = tmp_path / "backups"
    manager = BackupManager(dest)
    first = manager.incremental_backup(source)
    assert first.name.startswith("backup_")
    assert (dest / ".last_backup").exists()

    later = time.time() + 5
    os.utime(source / "a.txt", (later, later))
    second = manager.incremental_backup(source)
    assert second.name.startswith("incremental_")
    with tarfile.open(second, "r:gz") as tar:
        assert tar.getnames() == ["project/a.txt"]


def test_incremental_skips_dangling_symlink(tmp_path, source):
    dest = tmp_path / "backups"
    manager = BackupManager(dest)
    manager.incremental_backup(source)

    (source / "sub" / "stale-link").symlink_to(source / "gone.txt")
    later = time.time() + 5
    os.utime(source / "sub" / "b.txt", (later, later))
    archive = manager.incremental_backup(source)
    with tarfile.open(archive, "r:gz") as tar:
        assert tar.getnames() == ["project/sub/b.txt"]


def test_cli_backup_rotates_and_audits(runner, tmp_path, source, settings_env):
    dest = tmp_path / "dest"
    paths = make_archives(dest, 5)
    result = runner.invoke(main_app, ["backup", "backup", str(source), str(dest)])
    assert result.exit_code == 0, result.output
    remaining = sorted(dest.glob("backup_*.tar.gz"))
    assert len(remaining) == 5
    assert not paths[0].exists()
    assert all(path.exists() for path in paths[1:])
    assert any(path.name.startswith("backup_project_") and path not in paths for path in remaining)
    assert f"Removed old backup: {paths[0].name}" in result.output
    lines = audit_lines(settings_env["OPSKIT_LOG_DIR"], "backup")
    assert "Backup completed successfully" in lines[-1]
    assert "[INFO]" in lines[-1]


def test_cli_backup_missing_source(runner, tmp_path, settings_env):
    result = runner.invoke(main_app, ["backup", "backup", str(tmp_path / "missing")])
    assert result.exit_code == 1
    lines = audit_lines(settings_env["OPSKIT_LOG_DIR"], "backup")
    assert "[ERROR]" in lines[-1]
