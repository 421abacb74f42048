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
BleakDriver - BLEDriverInterface implemented on bleak.

bleak is coroutine based while the core consumes events, so every command
that talks to the peripheral is spawned as a task on the running loop and
reports its outcome through on_connection_event(). bleak invokes its own
callbacks (detection, disconnect, notify) on the loop thread, which keeps
event delivery single-threaded.

Notes on the bleak mapping:
- Services are resolved by BleakClient.connect(); discover_services() only
  reports the collection bleak already holds.
- BleakClient.start_notify() writes the client characteristic configuration
  descriptor itself; its success or failure is reported as the
  DescriptorWriteResult.
- A failed connect() is reported as Disconnected, like a dropped link.
- stop_scanning() returns before the scanner has stopped. Connecting and
  restarting a scan wait for that pending stop first.
"""

import asyncio
import logging
from functools import partial
from typing import Dict, Iterable, Optional, Set

from bleak import BleakClient, BleakScanner
from bleak.exc import BleakError

from SeatMonitor.bluetooth_driver import (
    AuthorizationStatus,
    BLEDevice,
    BLEDriverInterface,
    Capability,
    Connected,
    DescriptorWriteResult,
    DeviceDiscovered,
    Disconnected,
    DriverState,
    NotificationReceived,
    PeripheralHandle,
    ServicesDiscovered,
    normalize_uuid,
)
from SeatMonitor.errors import AdapterUnavailable

logger = logging.getLogger(__name__)

# Exceptions bleak and the platform backends raise for radio-level failures
RADIO_ERRORS = (BleakError, OSError, asyncio.TimeoutError)


class BleakDriver(BLEDriverInterface):

    CONNECTION_TIMEOUT = 20.0  # seconds

    def __init__(self, connection_timeout=CONNECTION_TIMEOUT,
                 granted_capabilities: Iterable[Capability] = (Capability.SCAN, Capability.CONNECT)):
        """
        Args:
            connection_timeout: Seconds bleak waits for a connection
            granted_capabilities: Capabilities reported as GRANTED. Desktop
                stacks have no runtime permission model, so this comes from
                configuration.
        """
        self.connection_timeout = float(connection_timeout)
        self.granted_capabilities = frozenset(granted_capabilities)

        self.on_scan_event = None
        self.on_connection_event = None
        self.on_error = None

        self._state = DriverState.IDLE
        self._scanner: Optional[BleakScanner] = None
        self._scan_stop_task: Optional[asyncio.Task] = None
        self._clients: Dict[str, BleakClient] = {}
        self._tasks: Set[asyncio.Task] = set()

    # --- State & Authorization ---

    @property
    def state(self) -> DriverState:
        return self._state

    def authorization_status(self, capability: Capability) -> AuthorizationStatus:
        if capability in self.granted_capabilities:
            return AuthorizationStatus.GRANTED
        return AuthorizationStatus.DENIED

    # --- Scanning ---

    async def start_scanning(self):
        if self._scanner is not None:
            return
        await self._wait_scan_stopped()

        scanner = BleakScanner(detection_callback=self._detection_callback, scanning_mode="active")
        try:
            await scanner.start()
        except RADIO_ERRORS as e:
            raise AdapterUnavailable(f"cannot start scanning: {e}") from e

        self._scanner = scanner
        self._state = DriverState.SCANNING
        logger.debug(f"{self} scanning started")

    def stop_scanning(self):
        scanner = self._scanner
        if scanner is None:
            return
        self._scanner = None
        self._state = DriverState.IDLE
        self._scan_stop_task = self._spawn(self._stop_scanner(scanner), "stop scanning")

    async def _stop_scanner(self, scanner):
        try:
            await scanner.stop()
            logger.debug(f"{self} scanning stopped")
        except RADIO_ERRORS as e:
            self._report_error("warning", "failed to stop scanner", e)

    async def _wait_scan_stopped(self):
        # BlueZ rejects a connect or a new discovery while a stop is in progress
        task = self._scan_stop_task
        if task is not None and not task.done():
            logger.debug(f"{self} waiting for scanner to stop")
            await asyncio.wait({task})
        if self._scan_stop_task is task:
            self._scan_stop_task = None

    def _detection_callback(self, device, advertisement_data):
        if self._scanner is None:
            return

        discovered = BLEDevice(
            address=device.address,
            name=advertisement_data.local_name or device.name,
            rssi=advertisement_data.rssi,
            service_uuids=[normalize_uuid(u) for u in advertisement_data.service_uuids],
            manufacturer_data=dict(advertisement_data.manufacturer_data),
            platform_device=device,
        )
        self._emit_scan(DeviceDiscovered(discovered))

    # --- Connection ---

    def connect(self, peripheral: PeripheralHandle):
        address = peripheral.address
        if address in self._clients:
            logger.debug(f"{self} already connected or connecting to {address}")
            return

        client = BleakClient(
            peripheral.platform_device or address,
            disconnected_callback=partial(self._disconnected_callback, address),
            timeout=self.connection_timeout,
        )
        self._clients[address] = client
        self._spawn(self._connect(address, client), f"connect {address}")

    async def _connect(self, address, client):
        await self._wait_scan_stopped()
        try:
            await client.connect()
        except RADIO_ERRORS as e:
            if self._clients.get(address) is client:
                del self._clients[address]
                self._emit_connection(Disconnected(address, reason=f"{type(e).__name__}: {e}"))
            return

        if self._clients.get(address) is not client:
            # disconnect() was requested while connecting
            await self._disconnect_client(address, client)
            return

        self._emit_connection(Connected(address))

    def discover_services(self, address: str):
        client = self._clients.get(address)
        if client is None:
            logger.warning(f"{self} service discovery requested for unknown peer {address}")
            return
        self._spawn(self._discover_services(address, client), f"discover services {address}")

    async def _discover_services(self, address, client):
        try:
            services = {
                normalize_uuid(service.uuid): frozenset(normalize_uuid(c.uuid) for c in service.characteristics)
                for service in client.services
            }
        except BleakError as e:
            self._report_error("error", f"service discovery failed for {address}", e)
            services = {}

        logger.debug(f"{self} {address} exposes {len(services)} service(s)")
        self._emit_connection(ServicesDiscovered(address, services))

    def enable_notifications(self, address: str, characteristic_uuid: str,
                             descriptor_uuid: str, value: bytes):
        client = self._clients.get(address)
        if client is None:
            logger.warning(f"{self} notification request for unknown peer {address}")
            return
        self._spawn(self._enable_notifications(address, client, characteristic_uuid, descriptor_uuid),
                    f"enable notifications {address}")

    async def _enable_notifications(self, address, client, characteristic_uuid, descriptor_uuid):
        logger.debug(f"{self} writing {descriptor_uuid} of {characteristic_uuid} on {address}")
        try:
            await client.start_notify(characteristic_uuid, partial(self._notification_callback, address))
        except RADIO_ERRORS as e:
            self._emit_connection(DescriptorWriteResult(
                address, normalize_uuid(characteristic_uuid), success=False, status=f"{type(e).__name__}: {e}"))
            return

        self._emit_connection(DescriptorWriteResult(address, normalize_uuid(characteristic_uuid), success=True))

    def _notification_callback(self, address, characteristic, data):
        self._emit_connection(NotificationReceived(
            address, normalize_uuid(characteristic.uuid), bytes(data)))

    def _disconnected_callback(self, address, client):
        if self._clients.get(address) is not client:
            # Local disconnect() already released it
            return
        del self._clients[address]
        self._emit_connection(Disconnected(address, reason="peripheral disconnected"))

    def disconnect(self, address: str):
        client = self._clients.pop(address, None)
        if client is None:
            return
        self._spawn(self._disconnect_client(address, client), f"disconnect {address}")

    async def _disconnect_client(self, address, client):
        try:
            await client.disconnect()
            logger.debug(f"{self} disconnected from {address}")
        except RADIO_ERRORS as e:
            self._report_error("warning", f"disconnect from {address} failed", e)

    # --- Lifecycle ---

    async def stop(self):
        self.stop_scanning()
        for address in list(self._clients):
            self.disconnect(address)
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # --- Internals ---

    def _spawn(self, coro, description):
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(partial(self._task_done, description))
        return task

    def _task_done(self, description, task):
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self._report_error("error", f"{description} failed", exc)

    def _emit_scan(self, event):
        if self.on_scan_event:
            self.on_scan_event(event)

    def _emit_connection(self, event):
        if self.on_connection_event:
            self.on_connection_event(event)

    def _report_error(self, severity, message, exc=None):
        if self.on_error:
            self.on_error(severity, message, exc)
        else:
            logger.warning(f"{self} {severity}: {message}: {exc}")

    def __str__(self):
        return "BleakDriver"
