"""
HTTP client used by every ``opskit api`` command.
"""

import json
import logging
import time
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

import requests

from opskit.apitest.schemas import ApiResponse, BenchmarkResult, HttpMethod, SchemaCheck
from opskit.core.exceptions import PreconditionError, ToolError, UsageError

logger = logging.getLogger(__name__)

PREVIEW_LINES = 10


def parse_headers(raw_headers: Optional[Sequence[str]]) -> Dict[str, str]:
    """Turn ``["Name: value", ...]`` into a header dict."""
    headers: Dict[str, str] = {}
    for raw in raw_headers or []:
        name, sep, value = raw.partition(":")
        if not sep or not name.strip():
            raise UsageError(f"Invalid header '{raw}', expected 'Name: value'")
        headers[name.strip()] = value.strip()
    return headers


class ApiClient:
    """
    Sends single requests with a bounded timeout.

    Transport failures (DNS, refused connection, timeout) are raised as
    ToolError; any HTTP status, including 4xx/5xx, is returned as an
    ApiResponse so callers decide what counts as success.
    """

    def __init__(self, timeout: float = 30.0, session: Optional[requests.Session] = None):
        self.timeout = timeout
        self.session = session or requests.Session()

    def request(
        self,
        method: Union[HttpMethod, str],
        url: str,
        data: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> ApiResponse:
        try:
            method = HttpMethod(str(method).upper())
        except ValueError:
            raise UsageError(f"Unsupported HTTP method: {method}")

        request_headers = dict(headers or {})
        body = None
        if method.sends_body:
            request_headers.setdefault("Content-Type", "application/json")
            body = data if data is not None else ""

        started = time.perf_counter()
        try:
            response = self.session.request(
                method.value,
                url,
                data=body,
                headers=request_headers,
                timeout=self.timeout,
            )
        except requests.Timeout as e:
            raise ToolError(
                f"{method.value} request to {url} timed out after {self.timeout}s",
                returncode=ToolError.TIMEOUT_EXIT_CODE,
            ) from e
        except requests.RequestException as e:
            raise ToolError(f"{method.value} request to {url} failed: {e}") from e
        elapsed = time.perf_counter() - started

        return ApiResponse(
            method=method,
            url=url,
            status_code=response.status_code,
            elapsed=elapsed,
            size=len(response.content),
            body=response.text,
        )

    def check(self, url: str) -> ApiResponse:
        """GET used by the monitor and benchmark loops."""
        return self.request(HttpMethod.GET, url)

    def benchmark(self, url: str, count: int = 10, on_result=None) -> BenchmarkResult:
        """
        Send ``count`` sequential GETs. Only status 200 counts as a success.

        ``on_result(index, response_or_none, error_or_none)`` is called after
        each request so the CLI can print progress.
        """
        result = BenchmarkResult(url=url, count=count)
        for index in range(1, count + 1):
            try:
                response = self.check(url)
            except ToolError as e:
                logger.debug("Benchmark request %d failed: %s", index, e)
                if on_result:
                    on_result(index, None, e)
                continue
            if response.status_code == 200:
                result.timings.append(response.elapsed)
            if on_result:
                on_result(index, response, None)
        return result

    def validate(self, url: str, schema_file: Path) -> SchemaCheck:
        """
        Fetch ``url`` and check the body against a JSON schema file.

        Only the top-level ``type`` and ``required`` keywords are checked.
        """
        schema_file = Path(schema_file)
        if not schema_file.is_file():
            raise PreconditionError(f"Schema file not found: {schema_file}")
        try:
            schema = json.loads(schema_file.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise PreconditionError(f"Schema file is not valid JSON: {e}")

        response = self.check(url)
        check = SchemaCheck(
            status_code=response.status_code,
            preview=response.body.splitlines()[:PREVIEW_LINES],
        )
        try:
            document = json.loads(response.body)
        except json.JSONDecodeError:
            return check
        check.valid_json = True

        expected_type = schema.get("type") if isinstance(schema, dict) else None
        if expected_type:
            check.type_ok = _json_type_matches(document, expected_type)
        required: List[str] = schema.get("required", []) if isinstance(schema, dict) else []
        if isinstance(document, dict):
            check.missing_keys = [key for key in required if key not in document]
        elif required:
            check.missing_keys = list(required)
        return check


_JSON_TYPES = {
    "object": dict,
    "array": list,
    "string": str,
    "boolean": bool,
    "null": type(None),
}


def _json_type_matches(value, expected: Union[str, List[str]]) -> bool:
    if isinstance(expected, list):
        return any(_json_type_matches(value, item) for item in expected)
    if expected == "integer":
        return isinstance(value, int) and not isinstance(value, bool)
    if expected == "number":
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    python_type = _JSON_TYPES.get(expected)
    if python_type is None:
        return True
    return isinstance(value, python_type)
