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
ScanController - bounded discovery window for the seat sensor.

A scan session lives from start_scan() until the first of:
- an advertisement matches the AdvertisementFilter (MATCHED)
- the scan window elapses (TIMED_OUT)
- stop_scan() is called or the radio reports a scan failure (STOPPED)

All three are terminal. The device-found callback fires at most once per
session: the session leaves SCANNING before the radio is told to stop, so
advertisements still queued in the stack are ignored.

The window is enforced with loop.call_later(); expiry is fed back through
handle_event() as a ScanTimedOut event like any other input.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from SeatMonitor.AdvertisementFilter import AdvertisementFilter
from SeatMonitor.bluetooth_driver import (
    AuthorizationStatus,
    BLEDriverInterface,
    Capability,
    DeviceDiscovered,
    PeripheralHandle,
    ScanFailed,
)
from SeatMonitor.errors import AlreadyScanning, PermissionDenied

logger = logging.getLogger(__name__)


class ScanState(Enum):
    IDLE = "idle"
    SCANNING = "scanning"
    MATCHED = "matched"
    TIMED_OUT = "timed_out"
    STOPPED = "stopped"


TERMINAL_SCAN_STATES = (ScanState.MATCHED, ScanState.TIMED_OUT, ScanState.STOPPED)


@dataclass
class ScanSession:
    status: ScanState = ScanState.IDLE
    deadline: float = 0.0
    match: Optional[PeripheralHandle] = None

    @property
    def live(self):
        return self.status not in TERMINAL_SCAN_STATES


@dataclass(frozen=True)
class ScanTimedOut:
    """Timer expiry for a specific session."""
    session: ScanSession


class ScanController:
    """
    Owns the single scan session of the process.

    Callbacks (assigned by consumer):
        on_device_found(handle): a matching peripheral was found
        on_scan_finished(session): the session reached a terminal state
    """

    SCAN_WINDOW = 30.0  # seconds

    def __init__(self, driver: BLEDriverInterface, advertisement_filter: AdvertisementFilter = None,
                 scan_window: float = SCAN_WINDOW):
        self.driver = driver
        self.filter = advertisement_filter or AdvertisementFilter()
        self.scan_window = float(scan_window)

        self.on_device_found: Optional[Callable[[PeripheralHandle], None]] = None
        self.on_scan_finished: Optional[Callable[[ScanSession], None]] = None

        self._session: Optional[ScanSession] = None
        self._timer: Optional[asyncio.TimerHandle] = None

    @property
    def session(self) -> Optional[ScanSession]:
        """The live session, or the last finished one."""
        return self._session

    @property
    def scanning(self) -> bool:
        return self._session is not None and self._session.live

    async def start_scan(self, timeout: float = None) -> ScanSession:
        """
        Open a new scan session.

        Args:
            timeout: Scan window in seconds (defaults to scan_window)

        Raises:
            AlreadyScanning: a session is still live
            PermissionDenied: scan capability not granted
            AdapterUnavailable: the radio could not start scanning
        """
        if self.scanning:
            raise AlreadyScanning(f"{self} scan already in progress")

        if self.driver.authorization_status(Capability.SCAN) != AuthorizationStatus.GRANTED:
            raise PermissionDenied(Capability.SCAN)

        window = self.scan_window if timeout is None else float(timeout)
        loop = asyncio.get_running_loop()

        previous = self._session
        session = ScanSession(status=ScanState.SCANNING)
        self._session = session
        try:
            await self.driver.start_scanning()
        except BaseException:
            # A session that never started is discarded, not finished
            if session.status == ScanState.SCANNING:
                session.status = ScanState.STOPPED
                self._session = previous
            raise

        if session.status != ScanState.SCANNING:
            # stop_scan() raced with the radio start-up
            self.driver.stop_scanning()
            return session

        session.deadline = loop.time() + window
        self._timer = loop.call_later(window, self.handle_event, ScanTimedOut(session))
        logger.info(f"{self} scanning for up to {window:.1f}s")
        return session

    def stop_scan(self):
        """Stop the live session. A no-op when nothing is scanning."""
        if not self.scanning:
            return
        self._finish(ScanState.STOPPED)

    def handle_event(self, event):
        """Single intake for scan events and timer expiry."""
        if isinstance(event, DeviceDiscovered):
            self._device_discovered(event.device)
        elif isinstance(event, ScanTimedOut):
            self._timed_out(event.session)
        elif isinstance(event, ScanFailed):
            if self.scanning:
                logger.error(f"{self} scan failed: {event.reason}")
                self._finish(ScanState.STOPPED)
        else:
            logger.debug(f"{self} ignoring unexpected event {event!r}")

    def _device_discovered(self, device):
        session = self._session
        if session is None or session.status != ScanState.SCANNING:
            logger.debug(f"{self} discovery of {device.address} outside scan window, ignored")
            return

        logger.debug(f"{self} discovered {device.name or 'Unknown'} ({device.address}) "
                     f"RSSI={device.rssi} services={device.service_uuids}")

        if not self.filter.matches(device.name, device.service_uuids):
            return

        handle = PeripheralHandle.from_device(device)
        session.match = handle
        logger.info(f"{self} found {handle}")
        self._finish(ScanState.MATCHED)

        if self.on_device_found:
            self.on_device_found(handle)

    def _timed_out(self, session):
        if session is not self._session or session.status != ScanState.SCANNING:
            return
        self._timer = None
        logger.info(f"{self} scan window elapsed without a match")
        self._finish(ScanState.TIMED_OUT)

    def _finish(self, status):
        session = self._session
        session.status = status

        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

        try:
            self.driver.stop_scanning()
        except Exception as e:
            logger.warning(f"{self} error stopping scan: {e}")

        if self.on_scan_finished:
            self.on_scan_finished(session)

    def __str__(self):
        return f"ScanController[{self.filter.device_name}]"
