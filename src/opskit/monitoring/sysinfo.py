"""
System information collector behind ``opskit system info``.
"""

import logging
import platform
import socket
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import psutil

from opskit.core.report import Section
from opskit.core.runner import run_tool, tool_exists
from opskit.core.utils import human_size
from opskit.monitoring.performance import uptime_text, load_average
from opskit.monitoring.processes import top_processes

logger = logging.getLogger(__name__)

AUTH_LOGS = [Path("/var/log/auth.log"), Path("/var/log/secure")]


def os_name(os_release: Path = Path("/etc/os-release")) -> str:
    """PRETTY_NAME from os-release, falling back to platform data."""
    try:
        for line in os_release.read_text(encoding="utf-8").splitlines():
            if line.startswith("PRETTY_NAME="):
                return line.split("=", 1)[1].strip().strip('"')
    except OSError:
        pass
    return f"{platform.system()} {platform.release()}"


def failed_password_lines(limit: int = 5) -> Optional[List[str]]:
    """Last ``Failed password`` lines from the auth log; None when unreadable."""
    for log in AUTH_LOGS:
        try:
            with open(log, "r", encoding="utf-8", errors="replace") as f:
                lines = [line.rstrip() for line in f if "Failed password" in line]
            return lines[-limit:]
        except FileNotFoundError:
            continue
        except PermissionError:
            return None
    return None


def collect(disk_threshold: float = 80.0) -> List[Section]:
    sections = []

    basic = Section(title="BASIC SYSTEM INFO")
    basic.add("Hostname", socket.gethostname())
    basic.add("Date", datetime.now().strftime("%Y-%m-%d %H:%M:%S"))
    basic.add("Uptime", uptime_text())
    basic.add("Kernel", platform.release())
    basic.add("Architecture", platform.machine())
    basic.add("OS", os_name())
    sections.append(basic)

    cpu = Section(title="CPU INFORMATION")
    cpu.add("CPU Model", platform.processor() or platform.machine())
    cpu.add("CPU Cores", psutil.cpu_count())
    cpu.add("CPU Usage", f"{psutil.cpu_percent(interval=1)}%")
    sections.append(cpu)

    vm = psutil.virtual_memory()
    memory = Section(title="MEMORY INFORMATION")
    memory.add("Total", human_size(vm.total))
    memory.add("Available", human_size(vm.available))
    memory.add("Used", f"{vm.percent:.1f}% ({human_size(vm.total - vm.available)} / {human_size(vm.total)})")
    sections.append(memory)

    disks = Section(title="DISK INFORMATION")
    for part in psutil.disk_partitions(all=False):
        try:
            du = psutil.disk_usage(part.mountpoint)
        except (PermissionError, OSError):
            continue
        status = "WARNING" if du.percent > disk_threshold else "OK"
        disks.note(f"{status}: {part.mountpoint} is {du.percent:.0f}% full "
                   f"({human_size(du.used)} / {human_size(du.total)})")
    sections.append(disks)

    network = Section(title="NETWORK INFORMATION")
    for nic, addrs in sorted(psutil.net_if_addrs().items()):
        ips = [a.address for a in addrs if a.family in (socket.AF_INET, socket.AF_INET6)]
        network.add(nic, ", ".join(ips) or "-")
    sections.append(network)

    procs = Section(title="PROCESS INFORMATION")
    procs.note("Top 10 CPU consuming processes:")
    for p in top_processes("cpu", 10):
        procs.note(f"  {p.pid:<8} {p.cpu_percent:<6.1f} {p.memory_percent:<6.1f} {p.name}")
    procs.note("Top 10 Memory consuming processes:")
    for p in top_processes("memory", 10, sample=0):
        procs.note(f"  {p.pid:<8} {p.cpu_percent:<6.1f} {p.memory_percent:<6.1f} {p.name}")
    sections.append(procs)

    if tool_exists("systemctl"):
        services = Section(title="SERVICE STATUS")
        failed = run_tool(["systemctl", "--failed", "--no-legend"])
        services.note("Failed services:")
        services.lines.extend(failed.stdout.splitlines() or ["none"])
        sections.append(services)

    load = Section(title="SYSTEM LOAD")
    load.add("Load Average", load_average())
    load.add("CPU Count", psutil.cpu_count())
    try:
        load1 = psutil.getloadavg()[0]
        load.add("Load Percentage", f"{load1 / (psutil.cpu_count() or 1) * 100:.2f}%")
    except (AttributeError, OSError):
        load.add("Load Percentage", "N/A")
    sections.append(load)

    security = Section(title="SECURITY INFO")
    if tool_exists("last"):
        security.note("Last logins:")
        security.lines.extend(run_tool(["last", "-n", "5"]).stdout.splitlines())
    failures = failed_password_lines()
    security.note("Failed login attempts:")
    if failures is None:
        security.note("Auth log not accessible")
    else:
        security.lines.extend(failures or ["No recent failed attempts"])
    sections.append(security)

    if tool_exists("docker"):
        docker = Section(title="DOCKER INFORMATION")
        docker.add("Docker version", run_tool(["docker", "--version"]).stdout.strip())
        containers = run_tool(["docker", "ps", "--format", "table {{.Names}}\t{{.Status}}\t{{.Ports}}"])
        docker.lines.extend(containers.output.splitlines())
        sections.append(docker)

    return sections
