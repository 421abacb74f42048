"""
pytest configuration for seat monitor tests.

This file is automatically loaded by pytest before test collection begins.
It puts src/ on the path so the tests run from a plain checkout as well as
from an installed package.
"""

import sys
import os

# Calculate paths relative to this file's location
tests_dir = os.path.dirname(os.path.abspath(__file__))
project_root = os.path.dirname(tests_dir)
src_dir = os.path.join(project_root, 'src')

if src_dir not in sys.path:
    sys.path.insert(0, src_dir)
if tests_dir not in sys.path:
    sys.path.insert(0, tests_dir)

import asyncio
import pytest
from unittest.mock import AsyncMock

from SeatMonitor.AdvertisementFilter import AdvertisementFilter
from SeatMonitor.ConnectionManager import ConnectionManager
from SeatMonitor.NotificationRelay import NotificationRelay
from SeatMonitor.ScanController import ScanController
from SeatMonitor.bluetooth_driver import PeripheralHandle
from SeatMonitor.config import SeatMonitorConfig
from SeatMonitor.errors import UploadFailed
from SeatMonitor.models import UploadOutcome

from mock_ble_driver import MockBLEDriver


SEAT_ADDRESS = "C0:FF:EE:00:00:01"
OTHER_ADDRESS = "AA:BB:CC:DD:EE:02"


# ============================================================================
# Fake collaborators
# ============================================================================

class FakeUploader:
    """
    Stand-in for SeatStateUploader.

    Records every state it is asked to send. Setting fail_with makes every
    upload raise it; setting delay makes uploads take that long.
    """

    def __init__(self):
        self.sent = []
        self.fail_with = None
        self.delay = 0.0
        self.in_flight = 0
        self.max_in_flight = 0

    async def send_seat_state(self, state):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            self.sent.append({"state": state.value})
            if self.fail_with is not None:
                raise self.fail_with
            return UploadOutcome(success=True, message=f"Seat state '{state.value}' recorded")
        finally:
            self.in_flight -= 1


class StatusRecorder:
    """Collects status lines pushed to the presentation surface."""

    def __init__(self):
        self.lines = []

    def __call__(self, text):
        self.lines.append(text)

    @property
    def last(self):
        return self.lines[-1] if self.lines else None


# ============================================================================
# Mock BLE Components
# ============================================================================

@pytest.fixture
def mock_driver():
    """Create a mock BLE driver with every capability granted."""
    return MockBLEDriver()


@pytest.fixture
def seat_handle():
    """Handle of the seat sensor as produced by a scan match."""
    return PeripheralHandle(address=SEAT_ADDRESS, name="SeatMonitor")


@pytest.fixture
def other_handle():
    return PeripheralHandle(address=OTHER_ADDRESS, name="Headphones")


@pytest.fixture
def scan_controller(mock_driver):
    controller = ScanController(mock_driver, AdvertisementFilter())
    mock_driver.on_scan_event = controller.handle_event
    return controller


@pytest.fixture
def connection_manager(mock_driver):
    manager = ConnectionManager(mock_driver)
    mock_driver.on_connection_event = manager.handle_event
    return manager


# ============================================================================
# Relay & Upload
# ============================================================================

@pytest.fixture
def fake_uploader():
    return FakeUploader()


@pytest.fixture
def failing_uploader():
    uploader = FakeUploader()
    uploader.fail_with = UploadFailed("HTTP 503: Service Unavailable", status=503)
    return uploader


@pytest.fixture
def status_recorder():
    return StatusRecorder()


@pytest.fixture
def relay(fake_uploader, status_recorder):
    return NotificationRelay(fake_uploader, on_status=status_recorder)


@pytest.fixture
def mock_uploader():
    """AsyncMock uploader for tests that only check calls."""
    uploader = AsyncMock()
    uploader.send_seat_state = AsyncMock(return_value=UploadOutcome(success=True, message="ok"))
    return uploader


# ============================================================================
# Common Test Data
# ============================================================================

@pytest.fixture
def sample_configuration():
    """Sample seat monitor configuration for testing."""
    return {
        'device_name': 'SeatMonitor',
        'scan_window_ms': '30000',
        'connection_timeout': '15.0',
        'backend_url': 'http://127.0.0.1:8000/',
        'upload_timeout': '5',
        'max_inflight_uploads': '2',
        'allow_scan': 'yes',
        'allow_connect': 'no',
        'loglevel': 'debug',
    }


@pytest.fixture
def default_config():
    return SeatMonitorConfig()
