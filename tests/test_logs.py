"""
Tests for log analysis and following.
"""

from datetime import date

import pytest

from opskit.cli.main_cli import main_app
from opskit.core.exceptions import PreconditionError, UsageError
from opskit.logs import analyzer

LINES = [
    "Jan 10 10:00:01 host sshd[1]: Failed password for root from 10.0.0.5 port 22",
    "Jan 10 10:00:02 host app[2]: ERROR database timeout",
    "Jan 10 10:00:03 host app[2]: INFO started worker",
    "Jan 10 10:00:04 host app[2]: WARNING disk at 85%",
    "Jan 10 10:00:05 host app[2]: ERROR database timeout",
    "2024-01-10 11:15:00 app heartbeat from 10.0.0.5",
    "2024-01-10 11:45:00 app heartbeat from 10.0.0.9",
]


def test_analyze_lines_counts():
    stats = analyzer.analyze_lines(LINES, analyzer.DEFAULT_PATTERN, today=date(2024, 1, 10))
    assert stats.total_lines == 7
    assert stats.first_entry == LINES[0]
    assert stats.last_entry == LINES[-1]
    assert stats.match_count == 4
    assert stats.error_count == 2
    assert stats.warning_count == 1
    assert stats.info_count == 1
    assert stats.top_errors == [("host app[2]: ERROR database timeout", 2)]
    assert stats.hourly == [("11", 2)]
    assert stats.ip_count == 3
    assert stats.top_ips[0] == ("10.0.0.5", 2)


def test_pattern_is_case_insensitive():
    stats = analyzer.analyze_lines(LINES, "failed password")
    assert stats.match_count == 1


def test_recent_matches_are_bounded():
    lines = [f"line {i} error" for i in range(30)]
    stats = analyzer.analyze_lines(lines, "error")
    assert stats.match_count == 30
    assert len(stats.recent_matches) == analyzer.RECENT_MATCHES
    assert stats.recent_matches[-1] == "line 29 error"


def test_matches_are_kept_in_a_bounded_window():
    lines = (f"line {i} error" for i in range(50_000))
    stats = analyzer.analyze_lines(lines, "error")
    assert stats.match_count == 50_000
    assert stats.report_matches == [f"line {i} error" for i in range(49_980, 50_000)]
    assert stats.recent_matches == stats.report_matches[-analyzer.RECENT_MATCHES:]


def test_invalid_pattern():
    with pytest.raises(UsageError):
        analyzer.compile_pattern("([unclosed")


def test_resolve_explicit_missing_file(tmp_path):
    with pytest.raises(PreconditionError):
        analyzer.resolve_log_file(tmp_path / "missing.log")


def test_follow_reports_only_new_complete_lines(tmp_path):
    log = tmp_path / "app.log"
    log.write_text("old error line\n")

    def ticks():
        yield 0
        with open(log, "a") as f:
            f.write("new ERROR one\nquiet line\npartial")
        yield 1
        with open(log, "a") as f:
            f.write(" error tail\n")
        yield 2

    seen = []
    count = analyzer.follow(log, "error", ticks(), seen.append)
    assert seen == ["new ERROR one", "partial error tail"]
    assert count == 2


def test_write_analysis_report(tmp_path):
    stats = analyzer.analyze_lines(LINES, "error")
    path = analyzer.write_analysis_report(stats, tmp_path)
    assert path.name.startswith("log_analysis_")
    text = path.read_text()
    assert "Log Analysis Report" in text
    assert "RECENT MATCHES" in text


def test_cli_analyze_with_report(runner, tmp_path, settings_env):
    log = tmp_path / "app.log"
    log.write_text("\n".join(LINES) + "\n")
    result = runner.invoke(main_app, ["logs", "analyze", str(log), "timeout", "--report"])
    assert result.exit_code == 0, result.output
    assert "Found 2 matches" in result.output
    reports = list((settings_env["OPSKIT_REPORT_DIR"]).glob("log_analysis_*.txt"))
    assert len(reports) == 1


def test_cli_analyze_missing_file(runner, tmp_path):
    result = runner.invoke(main_app, ["logs", "analyze", str(tmp_path / "missing.log")])
    assert result.exit_code == 1
