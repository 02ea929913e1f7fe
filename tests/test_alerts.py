"""
Tests for resource alert evaluation.
"""

from unittest.mock import patch

from opskit.cli.main_cli import main_app
from opskit.monitoring.alerts import ResourceSnapshot, evaluate_alerts


def snapshot(**overrides):
    values = dict(cpu_percent=12.0, memory_percent=40.0, disks=[("/", 50.0)], load1=0.5, cpu_count=4)
    values.update(overrides)
    return ResourceSnapshot(**values)


def test_quiet_system_has_no_breaches():
    alerts = evaluate_alerts(snapshot())
    assert [a.resource for a in alerts] == ["cpu", "memory", "disk:/", "load"]
    assert not any(a.breached for a in alerts)
    assert alerts[0].message == "CPU usage normal: 12.0%"


def test_breaches_are_reported():
    alerts = evaluate_alerts(snapshot(cpu_percent=95.5, disks=[("/", 91.0), ("/data", 10.0)], load1=5.0))
    breached = {a.resource: a.message for a in alerts if a.breached}
    assert breached == {
        "cpu": "High CPU usage: 95.5%",
        "disk:/": "/ is 91% full",
        "load": "High load average: 5.00 (threshold: 3.20)",
    }


def test_threshold_is_exclusive():
    alerts = evaluate_alerts(snapshot(memory_percent=80.0))
    assert not alerts[1].breached
    assert alerts[1].message == "Memory usage normal: 80.0%"


def test_custom_thresholds():
    alerts = evaluate_alerts(snapshot(memory_percent=60.0), memory_threshold=50)
    assert alerts[1].breached
    assert alerts[1].message == "High memory usage: 60.0%"


def test_no_load_average():
    resources = [a.resource for a in evaluate_alerts(snapshot(load1=None))]
    assert "load" not in resources


def test_cli_alerts_logs_warnings(runner, settings_env):
    with patch("opskit.cli.process_cli.take_snapshot", return_value=snapshot(cpu_percent=99.0)):
        result = runner.invoke(main_app, ["process", "alerts"])
    assert result.exit_code == 0, result.output
    assert "High CPU usage: 99.0%" in result.output
    log = (settings_env["OPSKIT_LOG_DIR"] / "process_monitor.log").read_text().splitlines()
    assert any("[WARNING] High CPU usage: 99.0%" in line for line in log)
    assert log[-1].endswith("[INFO] Resource alerts check completed: 1 alert(s)")
