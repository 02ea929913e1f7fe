"""
Security checks and basic hardening.

Each check returns a Section so the same data feeds the terminal view,
``security scan`` and the ``security report`` file.
"""

import glob
import grp
import logging
import os
import pwd
import re
import socket
import stat
from functools import partial
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

import psutil
from pydantic import BaseModel, Field

from opskit.core.exceptions import PreconditionError
from opskit.core.report import Section, write_report
from opskit.core.runner import run_tool, tool_exists
from opskit.core.utils import file_timestamp
from opskit.monitoring.processes import list_services
from opskit.monitoring.sysinfo import failed_password_lines, os_name

logger = logging.getLogger(__name__)

PASSWD = Path("/etc/passwd")
SHADOW = Path("/etc/shadow")
LOGIN_DEFS = Path("/etc/login.defs")
PAM_AUTH = Path("/etc/pam.d/common-auth")
PAM_PASSWORD = Path("/etc/pam.d/common-password")
CRITICAL_FILES = [Path("/etc/passwd"), Path("/etc/shadow"), Path("/etc/group")]
SECURE_MODES = {Path("/etc/passwd"): 0o644, Path("/etc/shadow"): 0o600, Path("/etc/group"): 0o644}
LOGIN_SHELL = re.compile(r"/bin/(bash|sh|zsh|fish)$")
PASSWORD_AGING_KEYS = ("PASS_MAX_DAYS", "PASS_MIN_DAYS", "PASS_WARN_AGE")
INSECURE_SERVICES = ["telnet", "rsh", "rlogin"]
# Virtual filesystems the permission walk never descends into
SKIP_DIRS = {"/proc", "/sys", "/dev", "/run"}


class FileFindings(BaseModel):
    world_writable: List[str] = Field(default_factory=list)
    suid: List[str] = Field(default_factory=list)
    sgid: List[str] = Field(default_factory=list)
    no_user: List[str] = Field(default_factory=list)
    no_group: List[str] = Field(default_factory=list)


def _read(path: Path) -> Optional[str]:
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return None


def root_users(passwd_text: str) -> List[str]:
    """Accounts with UID 0."""
    users = []
    for line in passwd_text.splitlines():
        fields = line.split(":")
        if len(fields) >= 3 and fields[2] == "0":
            users.append(fields[0])
    return users


def shell_users(passwd_text: str) -> List[str]:
    users = []
    for line in passwd_text.splitlines():
        fields = line.split(":")
        if len(fields) >= 7 and LOGIN_SHELL.search(fields[6]):
            users.append(fields[0])
    return users


def empty_password_users(shadow_text: str) -> List[str]:
    users = []
    for line in shadow_text.splitlines():
        fields = line.split(":")
        if len(fields) >= 2 and fields[0] and fields[1] == "":
            users.append(fields[0])
    return users


def login_defs_settings(text: str) -> Dict[str, str]:
    settings = {}
    for line in text.splitlines():
        parts = line.split()
        if len(parts) >= 2 and parts[0] in PASSWORD_AGING_KEYS:
            settings[parts[0]] = parts[1]
    return settings


def find_risky_files(root: Path, limit: int = 10) -> FileFindings:
    """
    Walk ``root`` collecting up to ``limit`` paths per category:
    world-writable, SUID, SGID, and files without a known owner or group.
    """
    known_uids = {entry.pw_uid for entry in pwd.getpwall()}
    known_gids = {entry.gr_gid for entry in grp.getgrall()}
    findings = FileFindings()

    def full(bucket: List[str]) -> bool:
        return len(bucket) >= limit

    buckets = [findings.world_writable, findings.suid, findings.sgid, findings.no_user, findings.no_group]
    for dirpath, dirnames, filenames in os.walk(root, onerror=lambda e: None):
        dirnames[:] = [d for d in dirnames if os.path.join(dirpath, d) not in SKIP_DIRS]
        for name in filenames:
            path = os.path.join(dirpath, name)
            try:
                st = os.lstat(path)
            except OSError:
                continue
            if not stat.S_ISREG(st.st_mode):
                continue
            if st.st_mode & stat.S_IWOTH and not full(findings.world_writable):
                findings.world_writable.append(path)
            if st.st_mode & stat.S_ISUID and not full(findings.suid):
                findings.suid.append(path)
            if st.st_mode & stat.S_ISGID and not full(findings.sgid):
                findings.sgid.append(path)
            if st.st_uid not in known_uids and not full(findings.no_user):
                findings.no_user.append(path)
            if st.st_gid not in known_gids and not full(findings.no_group):
                findings.no_group.append(path)
        if all(full(bucket) for bucket in buckets):
            break
    return findings


def file_mode_line(path: Path) -> str:
    try:
        st = path.stat()
    except OSError:
        return f"{path}: not accessible"
    return f"{stat.filemode(st.st_mode)} {path}"


def is_root() -> bool:
    return hasattr(os, "geteuid") and os.geteuid() == 0


def _tool_lines(args: List[str], limit: Optional[int] = None, fallback: str = "") -> List[str]:
    result = run_tool(args)
    lines = result.output.splitlines()
    if not result.ok and not lines:
        return [fallback] if fallback else []
    return lines[:limit] if limit else lines


class SecurityScanner:
    """Runs the individual checks; ``files_root`` and ``file_limit`` bound the walk."""

    def __init__(self, files_root: Path = Path("/"), file_limit: int = 10):
        self.files_root = Path(files_root)
        self.file_limit = file_limit

    def users(self) -> Section:
        section = Section(title="User Account Security")
        passwd = _read(PASSWD) or ""
        section.add("Users with UID 0", ", ".join(root_users(passwd)) or "none")
        shadow = _read(SHADOW)
        if shadow is None:
            section.add("Users with empty passwords", "Cannot access /etc/shadow (need root)")
        else:
            section.add("Users with empty passwords", ", ".join(empty_password_users(shadow)) or "none")
        section.add("Users with shell access", ", ".join(shell_users(passwd)) or "none")
        if tool_exists("last"):
            section.note("Recently logged in users:")
            section.lines.extend(_tool_lines(["last", "-n", "10"], limit=10))
        failures = failed_password_lines()
        section.note("Failed login attempts:")
        if failures is None:
            section.note("Auth log not accessible")
        else:
            section.lines.extend(failures or ["No recent failed attempts"])
        return section

    def network(self) -> Section:
        section = Section(title="Network Security")
        section.note("Open network ports:")
        try:
            listening = [
                c for c in psutil.net_connections(kind="inet") if c.status == psutil.CONN_LISTEN
            ]
            for c in listening:
                section.note(f"  {c.laddr.ip}:{c.laddr.port} (pid {c.pid or '-'})")
        except psutil.AccessDenied:
            section.note("  Permission denied listing sockets (need root)")
        for nic, addrs in sorted(psutil.net_if_addrs().items()):
            section.add(nic, ", ".join(a.address for a in addrs if a.family in (socket.AF_INET, socket.AF_INET6)))
        if tool_exists("ip"):
            section.note("Routing table:")
            section.lines.extend(_tool_lines(["ip", "route", "show"]))
        return section

    def files(self) -> Section:
        section = Section(title="File Permission Security")
        findings = find_risky_files(self.files_root, self.file_limit)
        labels = [
            ("World-writable files", findings.world_writable),
            ("SUID files", findings.suid),
            ("SGID files", findings.sgid),
            ("Files without owner", findings.no_user),
            ("Files without group", findings.no_group),
        ]
        for label, paths in labels:
            section.note(f"{label} (first {self.file_limit}):")
            section.lines.extend(f"  {p}" for p in paths or ["none"])
        section.note("Critical file permissions:")
        section.lines.extend(f"  {file_mode_line(p)}" for p in CRITICAL_FILES)
        return section

    def services(self) -> Section:
        section = Section(title="Service Security Audit")
        section.note("Running services:")
        if tool_exists("systemctl"):
            section.lines.extend(
                _tool_lines(["systemctl", "list-units", "--type=service", "--state=active", "--no-legend"], limit=15)
            )
        else:
            _active, _failed, daemons = list_services()
            section.lines.extend(f"  {p.pid} {p.name}" for p in daemons)
        section.note("System cron:")
        cron_entries = sorted(glob.glob("/etc/cron*"))[:10]
        section.lines.extend(f"  {entry}" for entry in cron_entries or ["none"])
        section.note("User cron jobs:")
        if tool_exists("crontab"):
            section.lines.extend(_tool_lines(["crontab", "-l"], fallback="No user cron jobs"))
        else:
            section.note("No user cron jobs")
        return section

    def passwords(self) -> Section:
        section = Section(title="Password Policy")
        defs = _read(LOGIN_DEFS)
        if defs is None:
            section.note("Cannot access login.defs")
        else:
            for key, value in login_defs_settings(defs).items():
                section.add(key, value)
        auth = _read(PAM_AUTH)
        if auth is not None:
            lockout = [line for line in auth.splitlines() if "pam_tally" in line or "pam_faillock" in line]
            section.add("Account lockout", "; ".join(lockout) or "No account lockout configured")
        pw = _read(PAM_PASSWORD)
        if pw is not None:
            rules = [line for line in pw.splitlines() if "pam_pwquality" in line or "pam_cracklib" in line]
            section.add("Password complexity", "; ".join(rules) or "No password complexity rules found")
        return section

    def firewall(self) -> Section:
        section = Section(title="Firewall")
        checks = [
            ("iptables", ["iptables", "-L", "-n"], "Cannot access iptables (need root)"),
            ("ufw", ["ufw", "status"], "Cannot access UFW status"),
            ("firewall-cmd", ["firewall-cmd", "--state"], "firewalld not running"),
        ]
        found = False
        for tool, args, fallback in checks:
            if tool_exists(tool):
                found = True
                section.note(f"{tool}:")
                section.lines.extend(_tool_lines(args, fallback=fallback))
        if not found:
            section.note("No firewall tool found (iptables, ufw, firewall-cmd)")
        return section

    def updates(self) -> Section:
        section = Section(title="Security Updates")
        managers = [
            ("apt", "Debian/Ubuntu updates", ["apt", "list", "--upgradable"]),
            ("dnf", "Fedora updates", ["dnf", "check-update"]),
            ("yum", "RedHat/CentOS updates", ["yum", "check-update"]),
        ]
        for tool, label, args in managers:
            if tool_exists(tool):
                section.note(f"{label}:")
                section.lines.extend(_tool_lines(args, limit=10, fallback="Cannot check updates (need root)"))
                break
        else:
            section.note("Package manager not recognized")
        section.add("Kernel version", os.uname().release)
        return section

    def all_checks(self) -> List[Section]:
        return [
            self.users(),
            self.network(),
            self.files(),
            self.services(),
            self.passwords(),
            self.firewall(),
            self.updates(),
        ]

    def write_report(self, report_dir: Path) -> Tuple[Path, List[Section]]:
        header = Section(title="Host")
        header.add("Hostname", socket.gethostname())
        header.add("OS", os_name())
        sections = [header] + self.all_checks()
        path = Path(report_dir) / f"security_report_{file_timestamp()}.txt"
        return write_report(path, "Security Scan Report", sections), sections


def _run_all(*commands: List[str]) -> None:
    for args in commands:
        run_tool(args, check=True)


def hardening_steps() -> List[Tuple[str, Callable[[], None]]]:
    """(description, action) pairs applied by ``security harden``."""
    steps: List[Tuple[str, Callable[[], None]]] = []

    if tool_exists("systemctl"):
        for service in INSECURE_SERVICES:
            if run_tool(["systemctl", "is-enabled", service]).stdout.strip() == "enabled":
                steps.append((f"Disable {service}", partial(_run_all, ["systemctl", "disable", service])))

    for path, mode in SECURE_MODES.items():
        if path.exists():
            steps.append((f"chmod {mode:o} {path}", partial(os.chmod, path, mode)))

    if tool_exists("apt"):
        steps.append((
            "Install unattended-upgrades",
            partial(
                _run_all,
                ["apt", "update"],
                ["apt", "install", "-y", "unattended-upgrades"],
                ["dpkg-reconfigure", "-plow", "unattended-upgrades"],
            ),
        ))

    if tool_exists("ufw"):
        steps.append((
            "Enable ufw (deny incoming, allow outgoing and ssh)",
            partial(
                _run_all,
                ["ufw", "--force", "enable"],
                ["ufw", "default", "deny", "incoming"],
                ["ufw", "default", "allow", "outgoing"],
                ["ufw", "allow", "ssh"],
            ),
        ))
    return steps


def require_root() -> None:
    if not is_root():
        raise PreconditionError("Root privileges required for hardening. Run with sudo")
