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
ConnectionManager - lifecycle of the single connection to the seat sensor.

STATE MACHINE:

    DISCONNECTED -> CONNECTING -> CONNECTED -> SERVICES_DISCOVERING
        -> SERVICES_DISCOVERED -> NOTIFICATIONS_ENABLING -> SUBSCRIBED

    FAILED is reachable from every handshake state. DISCONNECTED is
    re-entered on teardown() or when the peripheral drops the link.

Every driver event goes through handle_event(). Events that do not name the
live connection's address, or that do not fit the current state, are logged
and ignored. This covers the disconnect event that trails an optimistic
teardown(): the connection is already released when it arrives.

A FAILED connection keeps its link (a failed descriptor write is reported,
not fatal). The next connect() tears it down before opening a new one.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from SeatMonitor.bluetooth_driver import (
    CLIENT_CHARACTERISTIC_CONFIG_UUID,
    SEAT_CHARACTERISTIC_UUID,
    SEAT_SERVICE_UUID,
    AuthorizationStatus,
    BLEDriverInterface,
    Capability,
    Connected,
    DescriptorWriteResult,
    Disconnected,
    NotificationReceived,
    PeripheralHandle,
    ServicesDiscovered,
    normalize_uuid,
)
from SeatMonitor.errors import (
    AlreadyConnected,
    CharacteristicNotFound,
    PermissionDenied,
    SeatMonitorError,
    ServiceNotFound,
    SubscriptionFailed,
)

logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    SERVICES_DISCOVERING = "services_discovering"
    SERVICES_DISCOVERED = "services_discovered"
    NOTIFICATIONS_ENABLING = "notifications_enabling"
    SUBSCRIBED = "subscribed"
    FAILED = "failed"


@dataclass
class Connection:
    peripheral: PeripheralHandle
    service_uuid: str
    characteristic_uuid: str
    descriptor_uuid: str
    state: ConnectionState = ConnectionState.DISCONNECTED
    resolved_service: Optional[str] = None
    resolved_characteristic: Optional[str] = None
    error: Optional[SeatMonitorError] = None

    @property
    def address(self):
        return self.peripheral.address


class ConnectionManager:
    """
    Drives the GATT handshake for one peripheral at a time.

    Callbacks (assigned by consumer):
        on_state_changed(connection): after every state transition
        on_notification(characteristic_uuid, payload): while SUBSCRIBED
    """

    SERVICE_UUID = SEAT_SERVICE_UUID
    CHARACTERISTIC_UUID = SEAT_CHARACTERISTIC_UUID
    CLIENT_CHARACTERISTIC_CONFIG_UUID = CLIENT_CHARACTERISTIC_CONFIG_UUID
    ENABLE_NOTIFICATION_VALUE = b"\x01\x00"

    def __init__(self, driver: BLEDriverInterface, service_uuid=SERVICE_UUID,
                 characteristic_uuid=CHARACTERISTIC_UUID,
                 descriptor_uuid=CLIENT_CHARACTERISTIC_CONFIG_UUID):
        self.driver = driver
        self.service_uuid = normalize_uuid(service_uuid)
        self.characteristic_uuid = normalize_uuid(characteristic_uuid)
        self.descriptor_uuid = normalize_uuid(descriptor_uuid)

        self.on_state_changed: Optional[Callable[[Connection], None]] = None
        self.on_notification: Optional[Callable[[str, bytes], None]] = None

        self._connection: Optional[Connection] = None
        self._handlers = {
            Connected: self._on_connected,
            ServicesDiscovered: self._on_services_discovered,
            DescriptorWriteResult: self._on_descriptor_write,
            NotificationReceived: self._on_notification,
            Disconnected: self._on_disconnected,
        }

    @property
    def connection(self) -> Optional[Connection]:
        return self._connection

    @property
    def state(self) -> ConnectionState:
        if self._connection is None:
            return ConnectionState.DISCONNECTED
        return self._connection.state

    def connect(self, peripheral: PeripheralHandle) -> Connection:
        """
        Open a connection to a peripheral.

        Returns the live connection unchanged if it already targets the same
        peripheral, so a physical attempt is never duplicated.

        Raises:
            PermissionDenied: connect capability not granted
            AlreadyConnected: a connection to another peripheral is live
        """
        if self.driver.authorization_status(Capability.CONNECT) != AuthorizationStatus.GRANTED:
            raise PermissionDenied(Capability.CONNECT)

        current = self._connection
        if current is not None:
            if current.state == ConnectionState.FAILED:
                logger.info(f"{self} discarding failed connection to {current.peripheral}")
                self.teardown()
            elif current.peripheral == peripheral:
                logger.debug(f"{self} connection to {peripheral} already {current.state.value}")
                return current
            else:
                raise AlreadyConnected(
                    f"{self} already {current.state.value} to {current.peripheral}, "
                    f"refusing {peripheral}")

        connection = Connection(
            peripheral=peripheral,
            service_uuid=self.service_uuid,
            characteristic_uuid=self.characteristic_uuid,
            descriptor_uuid=self.descriptor_uuid,
        )
        self._connection = connection
        logger.info(f"{self} connecting to {peripheral}")
        self._transition(connection, ConnectionState.CONNECTING)
        self.driver.connect(peripheral)
        return connection

    def teardown(self):
        """
        Release the connection and request a disconnect.

        The state becomes DISCONNECTED immediately; the physical disconnect
        is not awaited.
        """
        connection = self._connection
        if connection is None:
            return

        self._connection = None
        logger.info(f"{self} tearing down connection to {connection.peripheral}")
        try:
            self.driver.disconnect(connection.address)
        except Exception as e:
            logger.warning(f"{self} error requesting disconnect from {connection.address}: {e}")
        self._transition(connection, ConnectionState.DISCONNECTED)

    def handle_event(self, event):
        """Single intake for connection events from the driver."""
        connection = self._connection
        if connection is None or getattr(event, "address", None) != connection.address:
            logger.debug(f"{self} no live connection for {event!r}, ignored")
            return

        handler = self._handlers.get(type(event))
        if handler is None:
            logger.debug(f"{self} ignoring unexpected event {event!r}")
            return
        handler(connection, event)

    def _on_connected(self, connection, event):
        if connection.state != ConnectionState.CONNECTING:
            logger.debug(f"{self} connected event in state {connection.state.value}, ignored")
            return

        logger.info(f"{self} connected to {connection.peripheral}, discovering services")
        self._transition(connection, ConnectionState.CONNECTED)
        self._transition(connection, ConnectionState.SERVICES_DISCOVERING)
        self.driver.discover_services(connection.address)

    def _on_services_discovered(self, connection, event):
        if connection.state != ConnectionState.SERVICES_DISCOVERING:
            logger.debug(f"{self} services event in state {connection.state.value}, ignored")
            return

        services = {normalize_uuid(s): {normalize_uuid(c) for c in chars}
                    for s, chars in event.services.items()}

        if connection.service_uuid not in services:
            self._fail(connection, ServiceNotFound(f"service {connection.service_uuid} not found"))
            return
        if connection.characteristic_uuid not in services[connection.service_uuid]:
            self._fail(connection, CharacteristicNotFound(
                f"characteristic {connection.characteristic_uuid} not found"))
            return

        connection.resolved_service = connection.service_uuid
        connection.resolved_characteristic = connection.characteristic_uuid
        self._transition(connection, ConnectionState.SERVICES_DISCOVERED)

        logger.debug(f"{self} enabling notifications on {connection.characteristic_uuid}")
        self._transition(connection, ConnectionState.NOTIFICATIONS_ENABLING)
        self.driver.enable_notifications(
            connection.address,
            connection.characteristic_uuid,
            connection.descriptor_uuid,
            ConnectionManager.ENABLE_NOTIFICATION_VALUE,
        )

    def _on_descriptor_write(self, connection, event):
        if connection.state != ConnectionState.NOTIFICATIONS_ENABLING:
            logger.debug(f"{self} descriptor write in state {connection.state.value}, ignored")
            return

        if event.success:
            logger.info(f"{self} subscribed to seat state notifications")
            self._transition(connection, ConnectionState.SUBSCRIBED)
        else:
            self._fail(connection, SubscriptionFailed(
                f"descriptor write failed: {event.status or 'unknown status'}"))

    def _on_notification(self, connection, event):
        if connection.state != ConnectionState.SUBSCRIBED:
            logger.debug(f"{self} notification in state {connection.state.value}, dropped")
            return
        if self.on_notification:
            self.on_notification(event.characteristic_uuid, event.payload)

    def _on_disconnected(self, connection, event):
        self._connection = None
        if connection.state == ConnectionState.CONNECTING:
            logger.warning(f"{self} connection attempt to {connection.peripheral} failed: "
                           f"{event.reason or 'no reason given'}")
        else:
            logger.info(f"{self} {connection.peripheral} disconnected"
                        f"{': ' + event.reason if event.reason else ''}")
        self._transition(connection, ConnectionState.DISCONNECTED)

    def _fail(self, connection, error):
        connection.error = error
        logger.error(f"{self} {connection.peripheral}: {error}")
        self._transition(connection, ConnectionState.FAILED)

    def _transition(self, connection, state):
        previous = connection.state
        connection.state = state
        logger.debug(f"{self} {previous.value} -> {state.value}")
        if self.on_state_changed:
            self.on_state_changed(connection)

    def __str__(self):
        return "ConnectionManager"
