"""
Performance sections for ``opskit perf``: CPU, memory, disk and network.
"""

import os
import platform
import socket
from datetime import datetime
from typing import List

import psutil

from opskit.core.report import Section
from opskit.core.utils import human_size
from opskit.monitoring.processes import top_processes


def uptime_text() -> str:
    delta = datetime.now() - datetime.fromtimestamp(psutil.boot_time())
    hours, remainder = divmod(int(delta.total_seconds()), 3600)
    return f"{hours // 24}d {hours % 24}h {remainder // 60}m"


def load_average() -> str:
    try:
        return " ".join(f"{value:.2f}" for value in os.getloadavg())
    except (AttributeError, OSError):
        return "N/A"


def _top_section(title: str, by: str) -> Section:
    section = Section(title=title)
    for proc in top_processes(by=by, count=5):
        section.note(
            f"{proc.pid:<8} {proc.cpu_percent:<8.1f} {proc.memory_percent:<8.1f} {proc.name}"
        )
    return section


def cpu_sections() -> List[Section]:
    freq = psutil.cpu_freq()
    info = Section(title="CPU")
    info.add("Model", platform.processor() or platform.machine())
    info.add("Physical cores", psutil.cpu_count(logical=False))
    info.add("Logical CPUs", psutil.cpu_count())
    if freq:
        info.add("Frequency", f"{freq.current:.0f} MHz")
    info.add("CPU Usage", f"{psutil.cpu_percent(interval=1)}%")
    per_core = psutil.cpu_percent(interval=None, percpu=True)
    info.add("Per core", " ".join(f"{value:.0f}%" for value in per_core))
    info.add("Load average", load_average())
    stats = psutil.cpu_stats()
    info.add("Context switches", stats.ctx_switches)
    info.add("Interrupts", stats.interrupts)
    return [info, _top_section("Top CPU processes", "cpu")]


def memory_sections() -> List[Section]:
    vm = psutil.virtual_memory()
    swap = psutil.swap_memory()
    section = Section(title="Memory")
    section.add("Total", human_size(vm.total))
    section.add("Used", human_size(vm.used))
    section.add("Available", human_size(vm.available))
    section.add("Memory Usage", f"{vm.percent:.2f}%")
    section.add("Swap", f"{human_size(swap.used)} / {human_size(swap.total)} ({swap.percent}%)")
    return [section, _top_section("Top memory processes", "memory")]


def disk_sections() -> List[Section]:
    usage = Section(title="Disk usage")
    for part in psutil.disk_partitions(all=False):
        try:
            du = psutil.disk_usage(part.mountpoint)
        except (PermissionError, OSError):
            continue
        usage.add(
            part.mountpoint,
            f"{human_size(du.used)} / {human_size(du.total)} ({du.percent}%) {part.fstype}",
        )

    io = Section(title="Disk I/O")
    counters = psutil.disk_io_counters(perdisk=True) or {}
    if not counters:
        io.note("Disk I/O counters not available")
    for disk, c in sorted(counters.items()):
        io.add(
            disk,
            f"read {human_size(c.read_bytes)} ({c.read_count} ops), "
            f"written {human_size(c.write_bytes)} ({c.write_count} ops)",
        )
    return [usage, io]


def network_sections() -> List[Section]:
    traffic = Section(title="Network interfaces")
    for nic, c in sorted(psutil.net_io_counters(pernic=True).items()):
        traffic.add(
            nic,
            f"rx {human_size(c.bytes_recv)} ({c.packets_recv} pkts, {c.errin} err), "
            f"tx {human_size(c.bytes_sent)} ({c.packets_sent} pkts, {c.errout} err)",
        )

    listening = Section(title="Listening sockets")
    try:
        conns = psutil.net_connections(kind="inet")
    except psutil.AccessDenied:
        conns = []
        listening.note("Permission denied listing sockets")
    for conn in [c for c in conns if c.status == psutil.CONN_LISTEN][:10]:
        listening.note(f"{conn.laddr.ip}:{conn.laddr.port}")
    return [traffic, listening]


def all_sections() -> List[Section]:
    header = Section(title="Summary")
    header.add("Timestamp", datetime.now().strftime("%Y-%m-%d %H:%M:%S"))
    header.add("Hostname", socket.gethostname())
    header.add("Uptime", uptime_text())
    return [header] + cpu_sections() + memory_sections() + disk_sections() + network_sections()
