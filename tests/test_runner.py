# tests/test_runner.py

import io
import subprocess
import sys
from unittest.mock import patch

import pytest

from opskit.core.exceptions import PreconditionError, ToolError
from opskit.core.runner import require_tool, run_tool, stream_tool


def completed(args, returncode=0, stdout="", stderr=""):
    return subprocess.CompletedProcess(args, returncode, stdout=stdout, stderr=stderr)


def test_run_tool_returns_output():
    with patch("opskit.core.runner.subprocess.run", return_value=completed(["echo"], 0, "hello\n")) as run:
        result = run_tool(["echo", "hello"])
    assert result.ok
    assert result.stdout == "hello\n"
    assert run.call_args.args[0] == ["echo", "hello"]
    assert "shell" not in run.call_args.kwargs


def test_run_tool_check_raises_with_exit_code():
    failed = completed(["git", "push"], 128, "", "fatal: no remote\n")
    with patch("opskit.core.runner.subprocess.run", return_value=failed):
        with pytest.raises(ToolError) as excinfo:
            run_tool(["git", "push"], check=True)
    assert excinfo.value.exit_code == 128
    assert "fatal: no remote" in excinfo.value.output


def test_run_tool_non_zero_without_check_is_returned():
    with patch("opskit.core.runner.subprocess.run", return_value=completed(["false"], 1)):
        result = run_tool(["false"])
    assert not result.ok
    assert result.returncode == 1


def test_run_tool_timeout_maps_to_124():
    with patch("opskit.core.runner.subprocess.run", side_effect=subprocess.TimeoutExpired(["sleep"], 1)):
        with pytest.raises(ToolError) as excinfo:
            run_tool(["sleep", "10"], timeout=1)
    assert excinfo.value.exit_code == 124


def test_run_tool_missing_binary():
    with patch("opskit.core.runner.subprocess.run", side_effect=FileNotFoundError()):
        with pytest.raises(PreconditionError):
            run_tool(["no-such-tool"])


def test_require_tool():
    with patch("opskit.core.runner.shutil.which", return_value="/usr/bin/git"):
        assert require_tool("git") == "/usr/bin/git"
    with patch("opskit.core.runner.shutil.which", return_value=None):
        with pytest.raises(PreconditionError, match="docker is not installed"):
            require_tool("docker")


def test_stream_tool_copies_raw_bytes():
    script = "import sys; sys.stdout.buffer.write(b'caf\\xe9\\n' * 3); sys.stderr.write('warning\\n')"
    dest = io.BytesIO()
    result = stream_tool([sys.executable, "-c", script], dest)
    assert result.ok
    assert dest.getvalue() == b"caf\xe9\n" * 3
    assert result.stdout == ""
    assert result.stderr == "warning\n"


def test_stream_tool_reports_exit_code():
    result = stream_tool([sys.executable, "-c", "import sys; sys.exit(3)"], io.BytesIO())
    assert result.returncode == 3


def test_stream_tool_missing_binary():
    with pytest.raises(PreconditionError):
        stream_tool(["no-such-tool-opskit"], io.BytesIO())
