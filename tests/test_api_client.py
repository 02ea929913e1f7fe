"""
Tests for ApiClient request handling.
"""

import json
from unittest.mock import MagicMock

import pytest
import requests

from opskit.apitest.client import ApiClient, parse_headers
from opskit.core.exceptions import ToolError, UsageError


def fake_session(status=200, body="{}"):
    session = MagicMock()
    session.request.return_value = MagicMock(status_code=status, text=body, content=body.encode())
    return session


def test_post_sends_json_content_type():
    session = fake_session(201)
    client = ApiClient(timeout=5, session=session)
    result = client.request("post", "http://example.test/items", '{"a": 1}', {"X-Token": "abc"})
    assert result.status_code == 201
    _args, kwargs = session.request.call_args
    assert session.request.call_args.args[0] == "POST"
    assert kwargs["headers"]["Content-Type"] == "application/json"
    assert kwargs["headers"]["X-Token"] == "abc"
    assert kwargs["data"] == '{"a": 1}'
    assert kwargs["timeout"] == 5


def test_get_sends_no_body():
    session = fake_session()
    ApiClient(session=session).request("GET", "http://example.test/")
    kwargs = session.request.call_args.kwargs
    assert kwargs["data"] is None
    assert "Content-Type" not in kwargs["headers"]


def test_error_status_is_returned_not_raised():
    client = ApiClient(session=fake_session(503, "down"))
    assert client.request("GET", "http://example.test/").status_code == 503


def test_timeout_raises_tool_error():
    session = MagicMock()
    session.request.side_effect = requests.Timeout("slow")
    with pytest.raises(ToolError) as excinfo:
        ApiClient(timeout=1, session=session).request("GET", "http://example.test/")
    assert excinfo.value.exit_code == 124


def test_connection_error_raises_tool_error():
    session = MagicMock()
    session.request.side_effect = requests.ConnectionError("refused")
    with pytest.raises(ToolError):
        ApiClient(session=session).request("GET", "http://example.test/")


def test_unknown_method():
    with pytest.raises(UsageError):
        ApiClient(session=fake_session()).request("PATCH", "http://example.test/")


def test_parse_headers():
    assert parse_headers(["Accept: text/plain", "X-A:1"]) == {"Accept": "text/plain", "X-A": "1"}
    assert parse_headers(None) == {}
    with pytest.raises(UsageError):
        parse_headers(["no-colon"])


def test_benchmark_counts_only_200_as_success():
    session = MagicMock()
    session.request.side_effect = [
        MagicMock(status_code=200, text="", content=b""),
        MagicMock(status_code=500, text="", content=b""),
        requests.ConnectionError("refused"),
    ]
    result = ApiClient(session=session).benchmark("http://example.test/", count=3)
    assert result.successful == 1
    assert result.failed == 2
    assert result.success_rate == 33
    assert result.average is not None


def test_validate_checks_required_keys(tmp_path):
    schema = tmp_path / "schema.json"
    schema.write_text(json.dumps({"type": "object", "required": ["id", "name", "email"]}))
    client = ApiClient(session=fake_session(200, json.dumps({"id": 1, "name": "x"})))
    check = client.validate("http://example.test/users/1", schema)
    assert check.valid_json
    assert check.type_ok is True
    assert check.missing_keys == ["email"]
    assert not check.ok


def test_validate_non_json_body(tmp_path):
    schema = tmp_path / "schema.json"
    schema.write_text('{"type": "object"}')
    check = ApiClient(session=fake_session(200, "<html>")).validate("http://example.test/", schema)
    assert not check.valid_json
    assert check.preview == ["<html>"]
