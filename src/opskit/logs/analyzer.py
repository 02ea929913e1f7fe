"""
Log file analysis: pattern matches, severity counts, hourly and IP breakdowns.
"""

import logging
import re
from collections import Counter, deque
from datetime import date
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Pattern, Tuple

from pydantic import BaseModel, Field

from opskit.core.exceptions import PreconditionError, UsageError
from opskit.core.report import Section, write_report
from opskit.core.ticker import Ticker
from opskit.core.utils import file_timestamp, human_size

logger = logging.getLogger(__name__)

DEFAULT_LOG = Path("/var/log/syslog")
ALTERNATIVE_LOGS = [Path("/var/log/messages"), Path("/var/log/system.log"), Path("/var/log/auth.log")]
DEFAULT_PATTERN = "error|warning|fail"

IP_PATTERN = re.compile(r"\b\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3}\b")
RECENT_MATCHES = 10
REPORT_MATCHES = 20


class LogStats(BaseModel):
    path: Path
    pattern: str
    size: int = 0
    total_lines: int = 0
    first_entry: str = ""
    last_entry: str = ""
    match_count: int = 0
    recent_matches: List[str] = Field(default_factory=list)
    report_matches: List[str] = Field(default_factory=list)
    error_count: int = 0
    warning_count: int = 0
    info_count: int = 0
    top_errors: List[Tuple[str, int]] = Field(default_factory=list)
    hourly: List[Tuple[str, int]] = Field(default_factory=list)
    ip_count: int = 0
    top_ips: List[Tuple[str, int]] = Field(default_factory=list)


def resolve_log_file(log_file: Optional[Path] = None) -> Path:
    """
    The log to analyze. Without an explicit path the default syslog is
    used, then the first readable alternative.
    """
    if log_file is not None:
        log_file = Path(log_file)
        if not log_file.is_file():
            raise PreconditionError(f"Log file '{log_file}' not found")
        return log_file
    for candidate in [DEFAULT_LOG] + ALTERNATIVE_LOGS:
        if candidate.is_file():
            try:
                with open(candidate, "rb"):
                    return candidate
            except PermissionError:
                continue
    raise PreconditionError("No accessible log files found. Pass a LOG_FILE")


def compile_pattern(pattern: str) -> Pattern:
    try:
        return re.compile(pattern, re.IGNORECASE)
    except re.error as e:
        raise UsageError(f"Invalid pattern '{pattern}': {e}") from e


def analyze_lines(lines: Iterable[str], pattern: str, today: Optional[date] = None) -> LogStats:
    """Compute every statistic in one pass over ``lines``."""
    regex = compile_pattern(pattern)
    hour_prefix = (today or date.today()).strftime("%Y-%m-%d") + " "
    error_re = re.compile("error", re.IGNORECASE)
    warning_re = re.compile("warning", re.IGNORECASE)
    info_re = re.compile("info", re.IGNORECASE)

    stats = LogStats(path=Path("-"), pattern=pattern)
    matches: deque = deque(maxlen=max(RECENT_MATCHES, REPORT_MATCHES))
    errors: Counter = Counter()
    hours: Counter = Counter()
    ips: Counter = Counter()

    for raw in lines:
        line = raw.rstrip("\n")
        if stats.total_lines == 0:
            stats.first_entry = line
        stats.last_entry = line
        stats.total_lines += 1

        if regex.search(line):
            stats.match_count += 1
            matches.append(line)
        if error_re.search(line):
            stats.error_count += 1
            # Fields from the 4th on drop the usual "Mon DD HH:MM:SS" prefix
            errors[" ".join(line.split()[3:])] += 1
        if warning_re.search(line):
            stats.warning_count += 1
        if info_re.search(line):
            stats.info_count += 1

        position = line.find(hour_prefix)
        if position != -1:
            hour = line[position + len(hour_prefix):position + len(hour_prefix) + 3]
            if len(hour) == 3 and hour[:2].isdigit() and hour[2] == ":":
                hours[hour[:2]] += 1
        for ip in IP_PATTERN.findall(line):
            ips[ip] += 1

    stats.recent_matches = list(matches)[-RECENT_MATCHES:]
    stats.report_matches = list(matches)[-REPORT_MATCHES:]
    stats.top_errors = errors.most_common(5)
    stats.hourly = sorted(hours.items())
    stats.ip_count = sum(ips.values())
    stats.top_ips = ips.most_common(5)
    return stats


def analyze_file(path: Path, pattern: str = DEFAULT_PATTERN) -> LogStats:
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8", errors="replace") as f:
            stats = analyze_lines(f, pattern)
    except PermissionError as e:
        raise PreconditionError(f"Cannot read log file '{path}'") from e
    stats.path = path
    stats.size = path.stat().st_size
    return stats


def report_sections(stats: LogStats) -> List[Section]:
    summary = Section(title="SUMMARY")
    summary.add("Log file", stats.path)
    summary.add("Search pattern", stats.pattern)
    summary.add("File size", human_size(stats.size))
    summary.add("Total lines", stats.total_lines)
    summary.add("Errors", stats.error_count)
    summary.add("Warnings", stats.warning_count)
    summary.add("Pattern matches", stats.match_count)
    recent = Section(title="RECENT MATCHES", lines=list(stats.report_matches))
    return [summary, recent]


def write_analysis_report(stats: LogStats, report_dir: Path) -> Path:
    path = Path(report_dir) / f"log_analysis_{file_timestamp()}.txt"
    return write_report(path, "Log Analysis Report", report_sections(stats))


def follow(path: Path, pattern: str, ticker: Ticker, on_match: Callable[[str], None]) -> int:
    """
    Print lines appended to ``path`` that match ``pattern`` until the
    ticker stops. Starts at the current end of file; returns the match count.
    """
    regex = compile_pattern(pattern)
    count = 0
    with open(path, "r", encoding="utf-8", errors="replace") as f:
        f.seek(0, 2)
        pending = ""
        for _tick in ticker:
            chunk = f.read()
            if not chunk:
                continue
            pending += chunk
            *complete, pending = pending.split("\n")
            for line in complete:
                if regex.search(line):
                    count += 1
                    on_match(line)
    return count
