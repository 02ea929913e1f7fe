"""
Error types raised by opskit managers.

Managers raise these; the CLI layer turns them into a message and an exit code.
"""

from typing import Optional, Sequence


class OpsError(Exception):
    """Base class for every failure that ends a command."""

    exit_code = 1

    def __init__(self, message: str, *, output: Optional[str] = None):
        super().__init__(message)
        self.output = output


class UsageError(OpsError):
    """A required argument is missing or empty."""


class PreconditionError(OpsError):
    """A referenced file, directory, tool or saved profile is absent."""


class ToolError(OpsError):
    """An external tool exited non-zero or timed out."""

    TIMEOUT_EXIT_CODE = 124

    def __init__(
        self,
        message: str,
        *,
        returncode: int = 1,
        output: Optional[str] = None,
        args: Optional[Sequence[str]] = None,
    ):
        super().__init__(message, output=output)
        self.returncode = returncode
        self.tool_args = list(args or [])
        self.exit_code = returncode if returncode > 0 else 1


def require(value: Optional[str], what: str) -> str:
    """Return ``value`` or raise UsageError when it is missing or blank."""
    if value is None or not str(value).strip():
        raise UsageError(f"{what} required")
    return value
