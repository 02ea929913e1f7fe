"""
API test suites: pipe-delimited files of requests and expected statuses.

Format, one test per line:

    name|method|url|expected_status|data

Blank lines and lines starting with ``#`` are ignored. ``data`` is optional
and may itself contain ``|``.
"""

import logging
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from opskit.apitest.client import ApiClient
from opskit.apitest.schemas import ApiTestCase, CaseOutcome, SuiteResult
from opskit.core.exceptions import OpsError, PreconditionError

logger = logging.getLogger(__name__)

SAMPLE_SUITE = """\
# API Test Configuration
# Format: test_name|method|url|expected_status|data
# Lines starting with # are comments

# Example tests
Health Check|GET|https://httpbin.org/status/200|200|
Get User|GET|https://jsonplaceholder.typicode.com/users/1|200|
Create Post|POST|https://jsonplaceholder.typicode.com/posts|201|{"title":"Test","body":"Test body","userId":1}
Update Post|PUT|https://jsonplaceholder.typicode.com/posts/1|200|{"id":1,"title":"Updated","body":"Updated body","userId":1}
Delete Post|DELETE|https://jsonplaceholder.typicode.com/posts/1|200|
"""

SAMPLE_SCHEMA = """\
{
  "type": "object",
  "properties": {
    "id": {"type": "integer"},
    "name": {"type": "string"},
    "email": {"type": "string", "format": "email"},
    "phone": {"type": "string"}
  },
  "required": ["id", "name", "email"]
}
"""


def parse_suite(lines: Iterable[str]) -> List[ApiTestCase]:
    """Parse suite lines into test cases, skipping comments and blanks."""
    cases: List[ApiTestCase] = []
    for line_number, raw in enumerate(lines, start=1):
        line = raw.rstrip("\r\n")
        if not line.strip() or line.lstrip().startswith("#"):
            continue
        fields = line.split("|", 4)
        fields += [""] * (5 - len(fields))
        name, method, url, expected, data = (f.strip() for f in fields)
        if not name:
            continue
        cases.append(
            ApiTestCase(
                name=name,
                method=method.upper(),
                url=url,
                expected_status=expected,
                data=data or None,
                line_number=line_number,
            )
        )
    return cases


def load_suite(config_file: Path) -> List[ApiTestCase]:
    config_file = Path(config_file)
    if not config_file.is_file():
        raise PreconditionError(f"Configuration file not found: {config_file}")
    with open(config_file, "r", encoding="utf-8") as f:
        return parse_suite(f)


def run_case(client: ApiClient, case: ApiTestCase) -> CaseOutcome:
    """Send one test request and compare the status code."""
    try:
        response = client.request(case.method, case.url, case.data)
    except OpsError as e:
        return CaseOutcome(case=case, passed=False, error=str(e))
    passed = str(response.status_code) == case.expected_status
    return CaseOutcome(case=case, passed=passed, actual_status=response.status_code)


def run_suite(
    client: ApiClient,
    cases: Iterable[ApiTestCase],
    on_outcome: Optional[Callable[[int, CaseOutcome], None]] = None,
) -> SuiteResult:
    """Run every case in order. A failing case never stops the suite."""
    result = SuiteResult()
    for index, case in enumerate(cases, start=1):
        outcome = run_case(client, case)
        result.outcomes.append(outcome)
        logger.debug("Test %d %s: %s", index, case.name, "passed" if outcome.passed else "failed")
        if on_outcome:
            on_outcome(index, outcome)
    return result


def write_sample_suite(path: Path) -> Path:
    path = Path(path).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(SAMPLE_SUITE, encoding="utf-8")
    return path


def write_sample_schema(path: Path) -> Path:
    path = Path(path)
    path.write_text(SAMPLE_SCHEMA, encoding="utf-8")
    return path
