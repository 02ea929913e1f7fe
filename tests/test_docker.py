"""
Tests for the Docker manager.
"""

from unittest.mock import patch

import pytest

from opskit.cli.main_cli import main_app
from opskit.core.exceptions import PreconditionError, ToolError
from opskit.core.runner import ToolResult
from opskit.docker.docker_manager import DockerManager, run_arguments


def result(returncode=0, stdout="", stderr=""):
    return ToolResult(args=["docker"], returncode=returncode, stdout=stdout, stderr=stderr)


def test_run_arguments_apply_image_defaults():
    assert run_arguments("nginx:latest", "web") == [
        "docker", "run", "-d", "--name", "web", "-p", "80:80", "nginx:latest",
    ]
    assert run_arguments("postgres:16") == [
        "docker", "run", "-d", "-e", "POSTGRES_PASSWORD=postgres", "postgres:16",
    ]
    assert run_arguments("alpine") == ["docker", "run", "-d", "alpine"]


def test_ensure_available_without_binary():
    with patch("opskit.docker.docker_manager.require_tool", side_effect=PreconditionError("docker is not installed")):
        with pytest.raises(PreconditionError):
            DockerManager().ensure_available()


def test_ensure_available_daemon_down():
    with patch("opskit.docker.docker_manager.require_tool", return_value="/usr/bin/docker"), \
            patch("opskit.docker.docker_manager.run_tool", return_value=result(1)):
        with pytest.raises(PreconditionError, match="daemon is not running"):
            DockerManager().ensure_available()


def test_run_container_returns_short_id():
    with patch("opskit.docker.docker_manager.run_tool", return_value=result(0, "0123456789abcdef0123\n")):
        assert DockerManager().run_container("alpine") == "0123456789ab"


def test_run_container_failure_surfaces_output():
    with patch("opskit.docker.docker_manager.run_tool", return_value=result(125, "", "Unable to find image")):
        with pytest.raises(ToolError) as excinfo:
            DockerManager().run_container("nope")
    assert excinfo.value.exit_code == 125
    assert "Unable to find image" in excinfo.value.output


def test_build_requires_dockerfile(tmp_path):
    with pytest.raises(PreconditionError, match="Dockerfile not found"):
        DockerManager().build_image(tmp_path)


def test_cli_sample_works_without_daemon(runner, tmp_path):
    target = tmp_path / "sample-app"
    with patch("opskit.cli.docker_cli.DockerManager.ensure_available") as ensure:
        result = runner.invoke(main_app, ["docker", "sample", str(target)])
    assert result.exit_code == 0, result.output
    ensure.assert_not_called()
    assert (target / "Dockerfile").exists()
    assert (target / "index.html").exists()


def test_cli_reports_missing_daemon(runner):
    with patch(
        "opskit.cli.docker_cli.DockerManager.ensure_available",
        side_effect=PreconditionError("Docker daemon is not running"),
    ):
        result = runner.invoke(main_app, ["docker", "list"])
    assert result.exit_code == 1
    assert "Docker daemon is not running" in result.output
