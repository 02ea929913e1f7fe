"""
Schemas for HTTP requests, API test suites and benchmark results.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class HttpMethod(str, Enum):
    """Methods the API tester knows how to send."""
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"

    @property
    def sends_body(self) -> bool:
        return self in (HttpMethod.POST, HttpMethod.PUT)


class ApiResponse(BaseModel):
    """Result of one HTTP request."""
    method: HttpMethod
    url: str
    status_code: int
    elapsed: float  # seconds
    size: int  # bytes downloaded
    body: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 400


class ApiTestCase(BaseModel):
    """One row of a test suite file: ``name|method|url|expected_status|data``."""
    name: str
    method: str
    url: str
    expected_status: str
    data: Optional[str] = None
    line_number: int = 0


class CaseOutcome(BaseModel):
    """Result of running one ApiTestCase."""
    case: ApiTestCase
    passed: bool
    actual_status: Optional[int] = None
    error: Optional[str] = None


class SuiteResult(BaseModel):
    """Tally of a whole suite run."""
    outcomes: List[CaseOutcome] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def passed(self) -> int:
        return sum(1 for o in self.outcomes if o.passed)

    @property
    def failed(self) -> int:
        return self.total - self.passed

    @property
    def success_rate(self) -> Optional[int]:
        """Whole-number percentage of passed tests, or None for an empty suite."""
        if self.total == 0:
            return None
        return self.passed * 100 // self.total


class BenchmarkResult(BaseModel):
    """Timing summary over repeated GET requests."""
    url: str
    count: int
    timings: List[float] = Field(default_factory=list)  # successful requests only

    @property
    def successful(self) -> int:
        return len(self.timings)

    @property
    def failed(self) -> int:
        return self.count - self.successful

    @property
    def success_rate(self) -> Optional[int]:
        if self.count == 0:
            return None
        return self.successful * 100 // self.count

    @property
    def average(self) -> Optional[float]:
        if not self.timings:
            return None
        return sum(self.timings) / len(self.timings)

    @property
    def minimum(self) -> Optional[float]:
        return min(self.timings) if self.timings else None

    @property
    def maximum(self) -> Optional[float]:
        return max(self.timings) if self.timings else None


class SchemaCheck(BaseModel):
    """Outcome of validating a response body against a schema file."""
    status_code: int
    preview: List[str] = Field(default_factory=list)
    valid_json: bool = False
    type_ok: Optional[bool] = None
    missing_keys: List[str] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.valid_json and self.type_ok is not False and not self.missing_keys
