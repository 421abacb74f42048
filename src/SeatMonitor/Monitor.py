# MIT License
#
# Copyright (c) 2025 SeatMonitor Contributors
#
# Permission is hereby granted, free of charge, to any person obtaining a copy
# of this software and associated documentation files (the "Software"), to deal
# in the Software without restriction, including without limitation the rights
# to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
# copies of the Software, and to permit persons to whom the Software is
# furnished to do so, subject to the following conditions:
#
# The above copyright notice and this permission notice shall be included in
# all copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
# IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
# FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
# AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
# LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
# OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
# SOFTWARE.

"""
SeatMonitor - wires the scan, connection and relay components together.

    driver --DeviceDiscovered--> ScanController --handle--> ConnectionManager
    driver --connection events-----------------------------> ConnectionManager
    ConnectionManager --notification--> NotificationRelay --> status / uploader

The presentation surface sees two things only:
- on_status(text): every status line ("Seat State: Normal", progress and
  error messages). SeatMonitor.status holds the latest one.
- start_scan(): the "scan now" trigger.

Adapter and permission errors surface as status lines and are never
retried. Nothing here is process-fatal; after a failure the next
start_scan() begins a fresh attempt.
"""

import logging
from typing import Callable, Optional

from SeatMonitor.AdvertisementFilter import AdvertisementFilter
from SeatMonitor.ConnectionManager import ConnectionManager, ConnectionState
from SeatMonitor.NotificationRelay import NotificationRelay
from SeatMonitor.ScanController import ScanController, ScanState
from SeatMonitor.bluetooth_driver import BLEDriverInterface
from SeatMonitor.config import SeatMonitorConfig
from SeatMonitor.errors import (
    AdapterUnavailable,
    AlreadyConnected,
    AlreadyScanning,
    PermissionDenied,
)

logger = logging.getLogger(__name__)


class SeatMonitor:

    STATUS_IDLE = "Press scan to find the seat sensor"

    def __init__(self, driver: BLEDriverInterface, uploader, config: SeatMonitorConfig = None,
                 on_status: Optional[Callable[[str], None]] = None):
        """
        Args:
            driver: Bluetooth driver, already constructed
            uploader: Collector client, opened by the caller
            config: Settings (defaults if omitted)
            on_status: Status channel of the presentation surface
        """
        self.config = config or SeatMonitorConfig()
        self.driver = driver
        self.uploader = uploader
        self.on_status = on_status
        self.status = SeatMonitor.STATUS_IDLE

        self.filter = AdvertisementFilter(
            device_name=self.config.device_name,
            service_uuid=self.config.service_uuid,
        )
        self.scanner = ScanController(driver, self.filter, scan_window=self.config.scan_window)
        self.connections = ConnectionManager(
            driver,
            service_uuid=self.config.service_uuid,
            characteristic_uuid=self.config.characteristic_uuid,
            descriptor_uuid=self.config.descriptor_uuid,
        )
        self.relay = NotificationRelay(
            uploader,
            on_status=self._publish_status,
            characteristic_uuid=self.config.characteristic_uuid,
            max_inflight_uploads=self.config.max_inflight_uploads,
        )

        # Driver events
        self.driver.on_scan_event = self.scanner.handle_event
        self.driver.on_connection_event = self.connections.handle_event
        self.driver.on_error = self._error_callback

        # Component callbacks
        self.scanner.on_device_found = self._device_found_callback
        self.scanner.on_scan_finished = self._scan_finished_callback
        self.connections.on_state_changed = self._connection_state_callback
        self.connections.on_notification = self.relay.on_notification

    async def start_scan(self) -> bool:
        """
        Trigger a scan for the seat sensor.

        Returns:
            bool: True if a scan session was started
        """
        if self.connections.state == ConnectionState.SUBSCRIBED:
            logger.info(f"{self} already receiving seat state, scan request ignored")
            return False

        try:
            await self.scanner.start_scan()
        except AlreadyScanning:
            logger.info(f"{self} scan already in progress")
            return False
        except AdapterUnavailable as e:
            logger.error(f"{self} Bluetooth adapter unavailable: {e}")
            self._publish_status("Bluetooth is unavailable")
            return False
        except PermissionDenied as e:
            logger.error(f"{self} {e}")
            self._publish_status(f"Bluetooth {e.capability.value} permission denied")
            return False

        self._publish_status(f"Scanning for {self.config.device_name}...")
        return True

    async def stop(self):
        """Stop scanning, drop the connection and wait for pending uploads."""
        logger.info(f"{self} stopping")
        self.scanner.stop_scan()
        self.connections.teardown()
        await self.relay.drain()
        await self.driver.stop()

    def _device_found_callback(self, handle):
        try:
            self.connections.connect(handle)
        except PermissionDenied as e:
            logger.error(f"{self} cannot connect to {handle}: {e}")
            self._publish_status(f"Bluetooth {e.capability.value} permission denied")
        except AlreadyConnected as e:
            logger.warning(f"{self} {e}")

    def _scan_finished_callback(self, session):
        if session.status == ScanState.TIMED_OUT:
            self._publish_status(f"{self.config.device_name} not found")
        elif session.status == ScanState.STOPPED and self.connections.connection is None:
            self._publish_status("Scan stopped")

    def _connection_state_callback(self, connection):
        state = connection.state
        name = connection.peripheral.name or connection.address
        if state == ConnectionState.CONNECTING:
            self._publish_status(f"Connecting to {name}...")
        elif state == ConnectionState.SERVICES_DISCOVERING:
            self._publish_status(f"Connected to {name}")
        elif state == ConnectionState.SUBSCRIBED:
            self._publish_status("Waiting for seat state...")
        elif state == ConnectionState.FAILED:
            self._publish_status(f"Connection failed: {connection.error}")
        elif state == ConnectionState.DISCONNECTED:
            self._publish_status(f"Disconnected from {name}")

    def _error_callback(self, severity: str, message: str, exc: Exception = None):
        log_level = logging.ERROR if severity == "error" else logging.WARNING
        if exc is not None:
            logger.log(log_level, f"{self} driver {severity}: {message} - {type(exc).__name__}: {exc}")
        else:
            logger.log(log_level, f"{self} driver {severity}: {message}")

    def _publish_status(self, text):
        self.status = text
        logger.debug(f"{self} status: {text}")
        if self.on_status:
            self.on_status(text)

    def __str__(self):
        return f"SeatMonitor[{self.config.device_name}]"
