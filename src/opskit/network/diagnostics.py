"""
Network diagnostics: interfaces, ping, host and port scans, DNS and routes.
"""

import ipaddress
import logging
import re
import socket
import time
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import psutil
from pydantic import BaseModel, Field

from opskit.core.exceptions import PreconditionError, UsageError
from opskit.core.runner import require_tool, run_tool, tool_exists

logger = logging.getLogger(__name__)

COMMON_PORTS: Dict[int, str] = {
    22: "SSH",
    23: "Telnet",
    25: "SMTP",
    53: "DNS",
    80: "HTTP",
    110: "POP3",
    143: "IMAP",
    443: "HTTPS",
    993: "IMAPS",
    995: "POP3S",
    3389: "RDP",
    5432: "PostgreSQL",
    3306: "MySQL",
}

INTERNET_CHECK_HOST = "8.8.8.8"
RESOLV_CONF = Path("/etc/resolv.conf")
ARP_TABLE = Path("/proc/net/arp")

RTT_PATTERN = re.compile(r"=\s*([\d.]+)/([\d.]+)/([\d.]+)(?:/([\d.]+))?\s*ms")
LOSS_PATTERN = re.compile(r"([\d.]+)%\s+packet loss")
# Largest sweep allowed, one /24
MAX_SCAN_HOSTS = 254


class PingResult(BaseModel):
    host: str
    success: bool
    output: str = ""
    avg_ms: Optional[float] = None
    packet_loss: Optional[str] = None


class PortStatus(BaseModel):
    port: int
    service: str
    open: bool


class ArpEntry(BaseModel):
    ip: str
    mac: str
    device: str


class ConnectionSummary(BaseModel):
    established: int = 0
    listening: int = 0
    udp: int = 0
    listeners: List[str] = Field(default_factory=list)
    remote: List[str] = Field(default_factory=list)


def parse_ping(output: str) -> Tuple[Optional[float], Optional[str]]:
    """
    Average round-trip time (ms) and packet loss from ping's summary lines.

        4 packets transmitted, 4 received, 0% packet loss, time 3004ms
        rtt min/avg/max/mdev = 10.1/12.5/15.0/1.9 ms
    """
    rtt = RTT_PATTERN.search(output)
    loss = LOSS_PATTERN.search(output)
    return (
        float(rtt.group(2)) if rtt else None,
        f"{loss.group(1)}%" if loss else None,
    )


def ping(host: str, count: int = 4, timeout: int = 5) -> PingResult:
    if not host.strip():
        raise UsageError("Host required")
    require_tool("ping")
    result = run_tool(["ping", "-c", str(count), "-W", str(timeout), host])
    avg, loss = parse_ping(result.stdout)
    return PingResult(host=host, success=result.ok, output=result.output, avg_ms=avg, packet_loss=loss)


def is_reachable(host: str, timeout: int = 2) -> bool:
    return run_tool(["ping", "-c", "1", "-W", str(timeout), host]).ok


def interface_addresses() -> Dict[str, List[str]]:
    addresses = {}
    for nic, addrs in sorted(psutil.net_if_addrs().items()):
        addresses[nic] = [
            f"{a.address}/{a.netmask}" if a.netmask else a.address
            for a in addrs
            if a.family in (socket.AF_INET, socket.AF_INET6)
        ]
    return addresses


def interface_status() -> Dict[str, bool]:
    return {nic: stats.isup for nic, stats in sorted(psutil.net_if_stats().items())}


def resolv_conf() -> Optional[str]:
    try:
        return RESOLV_CONF.read_text(encoding="utf-8")
    except OSError:
        return None


def private_network(addrs) -> Optional[ipaddress.IPv4Network]:
    for a in addrs:
        if a.family != socket.AF_INET or not a.netmask:
            continue
        iface = ipaddress.IPv4Interface(f"{a.address}/{a.netmask}")
        if iface.ip.is_private and not iface.ip.is_loopback:
            return iface.network
    return None


def detect_local_network() -> Optional[ipaddress.IPv4Network]:
    """
    Network of the default-route interface, falling back to the first
    private, non-loopback IPv4 interface address.
    """
    interfaces = psutil.net_if_addrs()
    device = default_route()[1]
    if device in interfaces:
        network = private_network(interfaces[device])
        if network is not None:
            return network
    for _nic, addrs in sorted(interfaces.items()):
        network = private_network(addrs)
        if network is not None:
            return network
    return None


def parse_network(network: Optional[str]) -> ipaddress.IPv4Network:
    if not network:
        detected = detect_local_network()
        if detected is None:
            raise UsageError("Network required (e.g., 192.168.1.0/24)")
        return detected
    try:
        return ipaddress.IPv4Network(network, strict=False)
    except ValueError as e:
        raise UsageError(f"Invalid network: {network}") from e


def reverse_lookup(ip: str) -> Optional[str]:
    try:
        return socket.gethostbyaddr(ip)[0]
    except (socket.herror, socket.gaierror, OSError):
        return None


def scan_hosts(network: ipaddress.IPv4Network, on_host=None) -> List[Tuple[str, Optional[str]]]:
    """Ping every host address once; returns (ip, hostname) for live hosts."""
    hosts = max(network.num_addresses - 2, 1)
    if hosts > MAX_SCAN_HOSTS:
        raise UsageError(
            f"Network {network} has {hosts} hosts; scan at most {MAX_SCAN_HOSTS} (e.g., a /24)"
        )
    require_tool("ping")
    live = []
    for ip in network.hosts():
        address = str(ip)
        if is_reachable(address, timeout=1):
            entry = (address, reverse_lookup(address))
            live.append(entry)
            if on_host:
                on_host(*entry)
    return live


def check_port(host: str, port: int, timeout: float = 3.0) -> bool:
    try:
        with socket.create_connection((host, port), timeout=timeout):
            return True
    except OSError:
        return False


def scan_ports(host: str, timeout: float = 3.0, on_port=None) -> List[PortStatus]:
    if not host.strip():
        raise UsageError("Host required")
    results = []
    for port, service in COMMON_PORTS.items():
        status = PortStatus(port=port, service=service, open=check_port(host, port, timeout))
        results.append(status)
        if on_port:
            on_port(status)
    return results


def connection_summary(limit: int = 10) -> ConnectionSummary:
    try:
        conns = psutil.net_connections(kind="inet")
    except psutil.AccessDenied as e:
        raise PreconditionError("Permission denied listing connections. Try with sudo") from e

    summary = ConnectionSummary()
    for c in conns:
        if c.type == socket.SOCK_DGRAM:
            summary.udp += 1
        elif c.status == psutil.CONN_LISTEN:
            summary.listening += 1
            if len(summary.listeners) < limit:
                summary.listeners.append(f"{c.laddr.ip}:{c.laddr.port} (pid {c.pid or '-'})")
        elif c.status == psutil.CONN_ESTABLISHED:
            summary.established += 1
            if c.raddr and len(summary.remote) < limit:
                summary.remote.append(f"{c.laddr.ip}:{c.laddr.port} -> {c.raddr.ip}:{c.raddr.port}")
    return summary


def default_route() -> Tuple[Optional[str], Optional[str]]:
    """(gateway, interface) of the default route, from ``ip route``."""
    if not tool_exists("ip"):
        return None, None
    for line in run_tool(["ip", "route", "show", "default"]).stdout.splitlines():
        parts = line.split()
        gateway = parts[parts.index("via") + 1] if "via" in parts else None
        device = parts[parts.index("dev") + 1] if "dev" in parts else None
        return gateway, device
    return None, None


def io_counters(interface: Optional[str] = None) -> Tuple[str, int, int]:
    """(interface, bytes received, bytes sent); default interface when omitted."""
    interface = interface or default_route()[1]
    if not interface:
        raise UsageError("No network interface specified or detected")
    counters = psutil.net_io_counters(pernic=True)
    if interface not in counters:
        raise PreconditionError(f"Interface {interface} not found")
    c = counters[interface]
    return interface, c.bytes_recv, c.bytes_sent


def rate_mb(old: int, new: int, seconds: float) -> float:
    if seconds <= 0:
        return 0.0
    return max(new - old, 0) / seconds / 1024 / 1024


def resolve(domain: str) -> Tuple[List[str], float]:
    """A/AAAA addresses for ``domain`` and the resolution time in ms."""
    if not domain.strip():
        raise UsageError("Domain required")
    start = time.perf_counter()
    try:
        infos = socket.getaddrinfo(domain, None)
    except socket.gaierror:
        infos = []
    elapsed = (time.perf_counter() - start) * 1000
    addresses = sorted({info[4][0] for info in infos})
    return addresses, elapsed


def nslookup_records(domain: str, record_type: str) -> Optional[List[str]]:
    """MX/NS lines from nslookup; None when nslookup is not installed."""
    if not tool_exists("nslookup"):
        return None
    marker = "mail exchanger" if record_type == "MX" else "nameserver"
    result = run_tool(["nslookup", f"-type={record_type}", domain], timeout=10)
    return [line.strip() for line in result.stdout.splitlines() if marker in line]


def routing_table() -> str:
    if tool_exists("ip"):
        return run_tool(["ip", "route", "show"]).stdout
    if tool_exists("route"):
        return run_tool(["route", "-n"]).stdout
    raise PreconditionError("Neither ip nor route is available")


def parse_arp(text: str) -> List[ArpEntry]:
    """Entries of ``/proc/net/arp`` (header line skipped)."""
    entries = []
    for line in text.splitlines()[1:]:
        parts = line.split()
        if len(parts) >= 6:
            entries.append(ArpEntry(ip=parts[0], mac=parts[3], device=parts[5]))
    return entries


def arp_table(path: Path = ARP_TABLE) -> Optional[List[ArpEntry]]:
    try:
        return parse_arp(path.read_text(encoding="utf-8"))
    except OSError:
        return None
