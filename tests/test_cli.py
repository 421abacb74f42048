"""
Tests for the seatmonitor command line paths that need no radio.
"""

import os

from SeatMonitor.__main__ import build_driver, main
from SeatMonitor.bluetooth_driver import AuthorizationStatus, Capability
from SeatMonitor.config import SeatMonitorConfig


def test_help(capsys):
    assert main(["help"]) == 0
    assert "init-config" in capsys.readouterr().out


def test_init_config(tmp_path, capsys):
    path = tmp_path / "config"

    assert main(["init-config", str(path)]) == 0

    assert os.path.isfile(path)
    assert str(path) in capsys.readouterr().out


def test_invalid_config(tmp_path, capsys):
    path = tmp_path / "config"
    path.write_text("scan_window_ms = -5\n")

    assert main(["run", str(path)]) == 2
    assert "invalid configuration" in capsys.readouterr().out


def test_unknown_command(tmp_path, capsys):
    assert main(["dance", str(tmp_path / "missing")]) == 1
    assert "Unknown command: dance" in capsys.readouterr().out


def test_driver_follows_config_permissions(sample_configuration):
    driver = build_driver(SeatMonitorConfig(sample_configuration))

    assert driver.connection_timeout == 15.0
    assert driver.authorization_status(Capability.SCAN) == AuthorizationStatus.GRANTED
    assert driver.authorization_status(Capability.CONNECT) == AuthorizationStatus.DENIED
