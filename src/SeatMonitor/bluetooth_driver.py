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
Bluetooth driver abstraction for the seat monitor.

The core never talks to a Bluetooth stack directly. It issues commands to a
BLEDriverInterface implementation and receives typed events back through
two intake callbacks:

- on_scan_event(event):       DeviceDiscovered, ScanFailed
- on_connection_event(event): Connected, Disconnected, ServicesDiscovered,
                              DescriptorWriteResult, NotificationReceived

Commands that involve a round trip with the peripheral (connect, service
discovery, notification enablement) return immediately; their outcome is
delivered later as an event. Only start_scanning() is a coroutine, because
an unavailable adapter must fail the scan request itself.

Drivers must deliver events on the asyncio event loop thread, one at a time.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, List, Mapping, Optional

# GATT identifiers of the seat sensor
SEAT_SERVICE_UUID = "19b10010-e8f2-537e-4f6c-d104768a1214"
SEAT_CHARACTERISTIC_UUID = "19b10012-e8f2-537e-4f6c-d104768a1214"
CLIENT_CHARACTERISTIC_CONFIG_UUID = "00002902-0000-1000-8000-00805f9b34fb"


def normalize_uuid(uuid) -> str:
    """Return the canonical lower-case string form of a 128-bit UUID."""
    return str(uuid).strip().lower()


class DriverState(Enum):
    IDLE = "idle"
    SCANNING = "scanning"


class Capability(Enum):
    """Platform capabilities the core needs authorization for."""
    SCAN = "scan"
    CONNECT = "connect"


class AuthorizationStatus(Enum):
    GRANTED = "granted"
    DENIED = "denied"


@dataclass
class BLEDevice:
    """A single advertisement as seen by the driver during a scan."""
    address: str
    name: Optional[str]
    rssi: Optional[int] = None
    service_uuids: List[str] = field(default_factory=list)
    manufacturer_data: Dict[int, bytes] = field(default_factory=dict)
    # Backend object (e.g. bleak's BLEDevice), handed back on connect()
    platform_device: Any = field(default=None, repr=False, compare=False)


@dataclass(frozen=True)
class PeripheralHandle:
    """Immutable reference to a discovered peripheral."""
    address: str
    name: Optional[str] = None
    platform_device: Any = field(default=None, repr=False, compare=False)

    @classmethod
    def from_device(cls, device: BLEDevice) -> "PeripheralHandle":
        return cls(address=device.address, name=device.name, platform_device=device.platform_device)

    def __str__(self):
        return f"{self.name or 'Unknown'} ({self.address})"


# --- Scan events ---

@dataclass(frozen=True)
class DeviceDiscovered:
    device: BLEDevice


@dataclass(frozen=True)
class ScanFailed:
    reason: str


# --- Connection events ---

@dataclass(frozen=True)
class Connected:
    address: str


@dataclass(frozen=True)
class Disconnected:
    address: str
    reason: Optional[str] = None


@dataclass(frozen=True)
class ServicesDiscovered:
    address: str
    # service UUID -> characteristic UUIDs, all normalized
    services: Mapping[str, FrozenSet[str]]


@dataclass(frozen=True)
class DescriptorWriteResult:
    address: str
    characteristic_uuid: str
    success: bool
    status: Optional[str] = None


@dataclass(frozen=True)
class NotificationReceived:
    address: str
    characteristic_uuid: str
    payload: bytes


class BLEDriverInterface(ABC):
    """
    Platform-neutral contract between the seat monitor core and a BLE stack.

    Consumers assign the callback attributes before issuing any command.
    """

    on_scan_event: Optional[Callable[[Any], None]] = None
    on_connection_event: Optional[Callable[[Any], None]] = None
    on_error: Optional[Callable[[str, str, Optional[Exception]], None]] = None

    # --- State & Authorization ---

    @property
    @abstractmethod
    def state(self) -> DriverState:
        """Current scanning state of the driver."""

    @abstractmethod
    def authorization_status(self, capability: Capability) -> AuthorizationStatus:
        """
        Report whether the platform granted a capability.

        The driver only reports; it never prompts for authorization.
        """

    # --- Scanning ---

    @abstractmethod
    async def start_scanning(self):
        """
        Start an unfiltered, low-latency scan.

        Raises:
            AdapterUnavailable: if the radio is absent or disabled
        """

    @abstractmethod
    def stop_scanning(self):
        """Stop scanning. Safe to call when not scanning."""

    # --- Connection ---

    @abstractmethod
    def connect(self, peripheral: PeripheralHandle):
        """Request a connection. Completion arrives as Connected or Disconnected."""

    @abstractmethod
    def discover_services(self, address: str):
        """Request service discovery. Completion arrives as ServicesDiscovered."""

    @abstractmethod
    def enable_notifications(self, address: str, characteristic_uuid: str,
                             descriptor_uuid: str, value: bytes):
        """
        Write the notification configuration descriptor of a characteristic.

        Completion arrives as DescriptorWriteResult; afterwards notifications
        arrive as NotificationReceived.
        """

    @abstractmethod
    def disconnect(self, address: str):
        """Request a disconnect without waiting for it to complete."""

    # --- Lifecycle ---

    @abstractmethod
    async def stop(self):
        """Stop scanning, drop all connections and finish pending work."""
