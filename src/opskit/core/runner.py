"""
Thin wrapper around subprocess for the external tools opskit drives
(docker, git, ping, pg_dump, systemctl, ...).
"""

import logging
import os
import shutil
import subprocess
import tempfile
from typing import BinaryIO, Dict, List, Mapping, Optional, Sequence, Union

from pydantic import BaseModel

from opskit.core.exceptions import PreconditionError, ToolError

logger = logging.getLogger(__name__)


class ToolResult(BaseModel):
    """Outcome of one external process invocation."""
    args: List[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        """stdout and stderr joined, the way a terminal would show them."""
        return "\n".join(part for part in (self.stdout.rstrip(), self.stderr.rstrip()) if part)


def tool_exists(name: str) -> bool:
    return shutil.which(name) is not None


def require_tool(name: str, hint: Optional[str] = None) -> str:
    """Return the absolute path of ``name`` or raise PreconditionError."""
    path = shutil.which(name)
    if path is None:
        message = f"{name} is not installed or not in PATH"
        if hint:
            message = f"{message}. {hint}"
        raise PreconditionError(message)
    return path


def _merged_env(env: Optional[Mapping[str, str]]) -> Optional[Dict[str, str]]:
    if not env:
        return None
    full_env = dict(os.environ)
    full_env.update(env)
    return full_env


def run_tool(
    args: Sequence[str],
    *,
    timeout: Optional[float] = None,
    input: Optional[Union[str, bytes]] = None,
    env: Optional[Mapping[str, str]] = None,
    cwd: Optional[Union[str, os.PathLike]] = None,
    capture: bool = True,
    check: bool = False,
) -> ToolResult:
    """
    Run one external tool and wait for it.

    Args:
        args: Argument vector; never passed through a shell.
        timeout: Seconds before the process is killed (ToolError, exit 124).
        input: Data written to the process's stdin.
        env: Extra environment variables layered over ``os.environ``.
        cwd: Working directory for the process.
        capture: When False the tool inherits the terminal (interactive or
            streaming commands such as ``docker logs -f``).
        check: Raise ToolError when the tool exits non-zero.

    Returns:
        ToolResult with the exit code and, when captured, decoded output.
    """
    argv = [str(a) for a in args]
    full_env = _merged_env(env)

    logger.debug("Running: %s", " ".join(argv))
    text_mode = not isinstance(input, bytes)
    try:
        completed = subprocess.run(
            argv,
            input=input,
            env=full_env,
            cwd=cwd,
            timeout=timeout,
            capture_output=capture,
            text=text_mode,
        )
    except FileNotFoundError as e:
        raise PreconditionError(f"{argv[0]} is not installed or not in PATH") from e
    except subprocess.TimeoutExpired as e:
        raise ToolError(
            f"{argv[0]} timed out after {timeout}s",
            returncode=ToolError.TIMEOUT_EXIT_CODE,
            args=argv,
        ) from e

    stdout = completed.stdout or ""
    stderr = completed.stderr or ""
    if isinstance(stdout, bytes):
        stdout = stdout.decode("utf-8", errors="replace")
    if isinstance(stderr, bytes):
        stderr = stderr.decode("utf-8", errors="replace")

    result = ToolResult(args=argv, returncode=completed.returncode, stdout=stdout, stderr=stderr)
    if check and not result.ok:
        raise ToolError(
            f"{argv[0]} {argv[1] if len(argv) > 1 else ''}".rstrip()
            + f" failed (exit code: {result.returncode})",
            returncode=result.returncode,
            output=result.output,
            args=argv,
        )
    return result


def stream_tool(
    args: Sequence[str],
    dest: BinaryIO,
    *,
    env: Optional[Mapping[str, str]] = None,
    cwd: Optional[Union[str, os.PathLike]] = None,
) -> ToolResult:
    """
    Run one external tool with its stdout copied, undecoded, into ``dest``.

    Output is never held in memory as a whole; stderr is spooled to a
    temporary file and returned decoded in the result.
    """
    argv = [str(a) for a in args]
    logger.debug("Streaming: %s", " ".join(argv))
    try:
        with tempfile.TemporaryFile() as errors:
            with subprocess.Popen(
                argv, stdout=subprocess.PIPE, stderr=errors, env=_merged_env(env), cwd=cwd
            ) as process:
                shutil.copyfileobj(process.stdout, dest)
                returncode = process.wait()
            errors.seek(0)
            stderr = errors.read().decode("utf-8", errors="replace")
    except FileNotFoundError as e:
        raise PreconditionError(f"{argv[0]} is not installed or not in PATH") from e
    return ToolResult(args=argv, returncode=returncode, stderr=stderr)
