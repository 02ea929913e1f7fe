"""
Tests for report sections and the shared formatting helpers.
"""

from datetime import datetime

from opskit.core.report import Section, render_text, write_report
from opskit.core.utils import file_timestamp, human_size, percent
from opskit.monitoring.sysinfo import os_name


def test_render_text_aligns_rows():
    section = Section(title="DISK").add("Mount", "/").add("Used percent", 42).note("OK: / at 42%")
    assert render_text([section]).splitlines() == [
        "==================== DISK ====================",
        "Mount:        /",
        "Used percent: 42",
        "OK: / at 42%",
        "",
    ]


def test_write_report_creates_parent(tmp_path):
    path = write_report(tmp_path / "nested" / "r.txt", "System Information", [Section(title="A")])
    lines = path.read_text().splitlines()
    assert lines[0] == "System Information"
    assert lines[1] == "=" * len("System Information")
    assert lines[2].startswith("Generated: ")


def test_human_size():
    assert human_size(512) == "512B"
    assert human_size(4096) == "4.0K"
    assert human_size(3 * 1024 ** 3) == "3.0G"


def test_file_timestamp():
    assert file_timestamp(datetime(2024, 1, 31, 14, 25, 1)) == "20240131_142501"


def test_percent():
    assert percent(1, 4) == 25.0
    assert percent(1, 0) is None


def test_os_name(tmp_path):
    release = tmp_path / "os-release"
    release.write_text('NAME="Debian GNU/Linux"\nPRETTY_NAME="Debian GNU/Linux 12 (bookworm)"\n')
    assert os_name(release) == "Debian GNU/Linux 12 (bookworm)"
