"""
Tests for the api request and monitor commands.
"""

from unittest.mock import patch

from conftest import audit_lines

from opskit.apitest.schemas import ApiResponse, HttpMethod
from opskit.cli.main_cli import main_app
from opskit.core.exceptions import ToolError

URL = "http://example.test/health"


def response(status=200, body='{"status": "ok"}', method=HttpMethod.GET):
    return ApiResponse(method=method, url=URL, status_code=status, elapsed=0.012, size=len(body), body=body)


def test_get_success_is_audited(runner, settings_env):
    with patch("opskit.cli.api_cli.ApiClient") as client_cls:
        client_cls.return_value.request.return_value = response()
        result = runner.invoke(main_app, ["api", "get", URL])
    assert result.exit_code == 0, result.output
    assert '{"status": "ok"}' in result.output
    assert "HTTP Status: 200" in result.output
    lines = audit_lines(settings_env["OPSKIT_LOG_DIR"], "api_testing")
    assert "[INFO]" in lines[-1]
    assert f"GET request to {URL} successful" in lines[-1]


def test_post_passes_body_and_headers(runner, settings_env):
    with patch("opskit.cli.api_cli.ApiClient") as client_cls:
        client_cls.return_value.request.return_value = response(201, "{}", HttpMethod.POST)
        result = runner.invoke(main_app, ["api", "post", URL, '{"a": 1}', "-H", "X-Token: abc"])
    assert result.exit_code == 0, result.output
    method, url, data, headers = client_cls.return_value.request.call_args.args
    assert method is HttpMethod.POST
    assert url == URL
    assert data == '{"a": 1}'
    assert headers == {"X-Token": "abc"}
    lines = audit_lines(settings_env["OPSKIT_LOG_DIR"], "api_testing")
    assert f"POST request to {URL} successful" in lines[-1]


def test_transport_failure_exits_1(runner, settings_env):
    with patch("opskit.cli.api_cli.ApiClient") as client_cls:
        client_cls.return_value.request.side_effect = ToolError("connection refused")
        result = runner.invoke(main_app, ["api", "get", URL])
    assert result.exit_code == 1
    assert "connection refused" in result.output
    lines = audit_lines(settings_env["OPSKIT_LOG_DIR"], "api_testing")
    assert "[ERROR]" in lines[-1]
    assert "connection refused" in lines[-1]


def test_monitor_stops_after_count(runner, settings_env):
    with patch("opskit.cli.api_cli.ApiClient") as client_cls:
        client_cls.return_value.check.side_effect = [response(), ToolError("connection refused")]
        result = runner.invoke(main_app, ["api", "monitor", URL, "--interval", "0", "--count", "2"])
    assert result.exit_code == 0, result.output
    assert client_cls.return_value.check.call_count == 2
    assert "OK - Status: 200" in result.output
    assert "FAILED - connection refused" in result.output
    assert "Monitoring stopped after 2 check(s), 1 failure(s)" in result.output
    lines = audit_lines(settings_env["OPSKIT_LOG_DIR"], "api_testing")
    assert "[WARNING]" in lines[-2]
    assert "[INFO]" in lines[-1]
    assert f"Monitoring {URL} stopped: 2 checks, 1 failures" in lines[-1]
