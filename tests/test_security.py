"""
Tests for the security scanner's parsers and file walk.
"""

import os
from unittest.mock import patch

import pytest

from opskit.core.exceptions import PreconditionError
from opskit.security import scanner

PASSWD = """\
root:x:0:0:root:/root:/bin/bash
daemon:x:1:1:daemon:/usr/sbin:/usr/sbin/nologin
toor:x:0:0::/root:/bin/sh
alice:x:1000:1000:Alice:/home/alice:/bin/zsh
"""

SHADOW = """\
root:$6$abc:19000:0:99999:7:::
guest::19000:0:99999:7:::
locked:!:19000:0:99999:7:::
"""

LOGIN_DEFS = """\
# Password aging controls
PASS_MAX_DAYS\t99999
PASS_MIN_DAYS\t0
PASS_WARN_AGE\t7
UMASK 022
"""


def test_root_users():
    assert scanner.root_users(PASSWD) == ["root", "toor"]


def test_shell_users():
    assert scanner.shell_users(PASSWD) == ["root", "toor", "alice"]


def test_empty_password_users():
    assert scanner.empty_password_users(SHADOW) == ["guest"]


def test_login_defs_settings():
    assert scanner.login_defs_settings(LOGIN_DEFS) == {
        "PASS_MAX_DAYS": "99999",
        "PASS_MIN_DAYS": "0",
        "PASS_WARN_AGE": "7",
    }


def test_find_risky_files(tmp_path):
    writable = tmp_path / "open.sh"
    writable.write_text("echo hi")
    os.chmod(writable, 0o777)
    setuid = tmp_path / "sub" / "tool"
    setuid.parent.mkdir()
    setuid.write_text("")
    os.chmod(setuid, 0o4755)
    (tmp_path / "plain.txt").write_text("")

    findings = scanner.find_risky_files(tmp_path)
    assert findings.world_writable == [str(writable)]
    assert findings.suid == [str(setuid)]
    assert findings.sgid == []


def test_find_risky_files_respects_limit(tmp_path):
    for i in range(5):
        path = tmp_path / f"f{i}"
        path.write_text("")
        os.chmod(path, 0o666)
    findings = scanner.find_risky_files(tmp_path, limit=2)
    assert len(findings.world_writable) == 2


def test_require_root():
    with patch("opskit.security.scanner.is_root", return_value=False):
        with pytest.raises(PreconditionError):
            scanner.require_root()
