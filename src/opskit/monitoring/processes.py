"""
Process inspection and control through psutil.
"""

import logging
import re
import time
from datetime import datetime
from typing import List, Optional, Tuple

import psutil
from pydantic import BaseModel, Field

from opskit.core.exceptions import PreconditionError, ToolError
from opskit.core.runner import run_tool, tool_exists

logger = logging.getLogger(__name__)

PROCESS_ATTRS = ["pid", "name", "username", "memory_percent", "cmdline", "status"]
SERVICE_PROCESS_PATTERN = re.compile(r"sshd|httpd|nginx|mysql|postgres", re.IGNORECASE)


class ProcessInfo(BaseModel):
    pid: int
    name: str = ""
    username: Optional[str] = None
    cpu_percent: float = 0.0
    memory_percent: float = 0.0
    rss: int = 0
    status: str = ""
    cmdline: str = ""
    started: Optional[datetime] = None
    children: List[int] = Field(default_factory=list)


def _from_process(proc: psutil.Process, cpu_percent: float = 0.0) -> ProcessInfo:
    info = proc.info if hasattr(proc, "info") else {}
    return ProcessInfo(
        pid=proc.pid,
        name=info.get("name") or "",
        username=info.get("username"),
        cpu_percent=cpu_percent,
        memory_percent=round(info.get("memory_percent") or 0.0, 1),
        status=info.get("status") or "",
        cmdline=" ".join(info.get("cmdline") or []),
    )


def list_processes(sample: float = 0.5) -> List[ProcessInfo]:
    """
    Snapshot every visible process.

    CPU usage needs two readings, so every process is primed, then read
    again after ``sample`` seconds.
    """
    procs = []
    for proc in psutil.process_iter(PROCESS_ATTRS):
        try:
            proc.cpu_percent(None)
            procs.append(proc)
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            continue
    if sample:
        time.sleep(sample)

    result = []
    for proc in procs:
        try:
            result.append(_from_process(proc, round(proc.cpu_percent(None), 1)))
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            continue
    return result


def top_processes(by: str = "cpu", count: int = 10, sample: float = 0.5) -> List[ProcessInfo]:
    key = "memory_percent" if by == "memory" else "cpu_percent"
    processes = list_processes(sample)
    processes.sort(key=lambda p: getattr(p, key), reverse=True)
    return processes[:count]


def find_processes(name: str) -> List[ProcessInfo]:
    """Processes whose name or command line contains ``name`` (case-insensitive)."""
    needle = name.lower()
    return [
        p for p in list_processes(sample=0)
        if needle in p.name.lower() or needle in p.cmdline.lower()
    ]


def _get_process(pid: int) -> psutil.Process:
    try:
        return psutil.Process(pid)
    except psutil.NoSuchProcess:
        raise PreconditionError(f"Process {pid} not found")


def process_info(pid: int) -> ProcessInfo:
    proc = _get_process(pid)
    try:
        with proc.oneshot():
            return ProcessInfo(
                pid=pid,
                name=proc.name(),
                username=proc.username(),
                cpu_percent=proc.cpu_percent(interval=0.1),
                memory_percent=round(proc.memory_percent(), 1),
                rss=proc.memory_info().rss,
                status=proc.status(),
                cmdline=" ".join(proc.cmdline()),
                started=datetime.fromtimestamp(proc.create_time()),
                children=[child.pid for child in proc.children(recursive=True)],
            )
    except psutil.NoSuchProcess:
        raise PreconditionError(f"Process {pid} not found")
    except psutil.AccessDenied as e:
        raise PreconditionError(f"Access denied reading process {pid}") from e


def is_running(pid: int) -> bool:
    return psutil.pid_exists(pid)


def pids_by_name(name: str) -> List[ProcessInfo]:
    """Exact-name matches, like ``pgrep``."""
    matches = []
    for proc in psutil.process_iter(PROCESS_ATTRS):
        if proc.info.get("name") == name:
            matches.append(_from_process(proc))
    return matches


def kill_pid(pid: int) -> None:
    """Send SIGTERM to ``pid``."""
    proc = _get_process(pid)
    try:
        proc.terminate()
    except psutil.NoSuchProcess:
        raise PreconditionError(f"Process PID {pid} not found")
    except psutil.AccessDenied as e:
        raise ToolError(f"Failed to kill process {pid}. Try with sudo or kill -9") from e


def list_services() -> Tuple[str, str, List[ProcessInfo]]:
    """
    Active (first 10) and failed systemd services.

    Without systemctl the third element lists well-known daemon processes
    instead and the first two are empty.
    """
    if tool_exists("systemctl"):
        active = run_tool(
            ["systemctl", "list-units", "--type=service", "--state=active", "--no-legend"]
        )
        failed = run_tool(
            ["systemctl", "list-units", "--type=service", "--state=failed", "--no-legend"]
        )
        return "\n".join(active.stdout.splitlines()[:10]), failed.stdout, []

    daemons = [p for p in list_processes(sample=0) if SERVICE_PROCESS_PATTERN.search(p.name)]
    return "", "", daemons
