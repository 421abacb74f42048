"""
Tests for BleakDriver with bleak's scanner and client patched out.

Only the mapping from bleak calls and callbacks to driver events is
exercised here; no radio is touched.
"""

import asyncio
import pytest
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock, patch

from bleak.exc import BleakError

from SeatMonitor.bleak_driver import BleakDriver
from SeatMonitor.bluetooth_driver import (
    AuthorizationStatus,
    Capability,
    Connected,
    DescriptorWriteResult,
    DeviceDiscovered,
    Disconnected,
    DriverState,
    NotificationReceived,
    PeripheralHandle,
    ServicesDiscovered,
)
from SeatMonitor.errors import AdapterUnavailable

SEAT_ADDRESS = "C0:FF:EE:00:00:01"
SEAT_SERVICE = "19b10010-e8f2-537e-4f6c-d104768a1214"
SEAT_CHARACTERISTIC = "19b10012-e8f2-537e-4f6c-d104768a1214"
CCCD = "00002902-0000-1000-8000-00805f9b34fb"


@pytest.fixture
def events():
    return []


@pytest.fixture
def driver(events):
    driver = BleakDriver(connection_timeout=5.0)
    driver.on_scan_event = events.append
    driver.on_connection_event = events.append
    driver.on_error = Mock()
    return driver


@pytest.fixture
def scanner_cls():
    with patch("SeatMonitor.bleak_driver.BleakScanner") as cls:
        cls.return_value.start = AsyncMock()
        cls.return_value.stop = AsyncMock()
        yield cls


@pytest.fixture
def client_cls():
    with patch("SeatMonitor.bleak_driver.BleakClient") as cls:
        client = cls.return_value
        client.connect = AsyncMock()
        client.disconnect = AsyncMock()
        client.start_notify = AsyncMock()
        client.services = [
            SimpleNamespace(uuid=SEAT_SERVICE.upper(),
                            characteristics=[SimpleNamespace(uuid=SEAT_CHARACTERISTIC.upper())]),
        ]
        yield cls


def advertisement(local_name="SeatMonitor", service_uuids=(), rssi=-55):
    return SimpleNamespace(local_name=local_name, service_uuids=list(service_uuids),
                           rssi=rssi, manufacturer_data={})


async def settle(driver):
    while driver._tasks:
        await asyncio.gather(*list(driver._tasks), return_exceptions=True)


async def connect(driver, events):
    driver.connect(PeripheralHandle(SEAT_ADDRESS, "SeatMonitor"))
    await settle(driver)
    events.clear()


class TestAuthorization:

    def test_all_granted_by_default(self):
        driver = BleakDriver()

        assert driver.authorization_status(Capability.SCAN) == AuthorizationStatus.GRANTED
        assert driver.authorization_status(Capability.CONNECT) == AuthorizationStatus.GRANTED

    def test_withheld_capability(self):
        driver = BleakDriver(granted_capabilities=[Capability.SCAN])

        assert driver.authorization_status(Capability.CONNECT) == AuthorizationStatus.DENIED


class TestScanning:

    async def test_start_and_stop(self, driver, scanner_cls):
        await driver.start_scanning()
        assert driver.state == DriverState.SCANNING

        driver.stop_scanning()
        await settle(driver)

        assert driver.state == DriverState.IDLE
        scanner_cls.return_value.stop.assert_awaited_once()

    async def test_start_failure_is_adapter_unavailable(self, driver, scanner_cls):
        scanner_cls.return_value.start.side_effect = BleakError("Bluetooth device is turned off")

        with pytest.raises(AdapterUnavailable):
            await driver.start_scanning()

        assert driver.state == DriverState.IDLE

    async def test_detection_emits_device(self, driver, scanner_cls, events):
        await driver.start_scanning()
        device = SimpleNamespace(address=SEAT_ADDRESS, name=None)

        driver._detection_callback(device, advertisement(service_uuids=[SEAT_SERVICE.upper()]))

        assert len(events) == 1
        assert isinstance(events[0], DeviceDiscovered)
        discovered = events[0].device
        assert discovered.address == SEAT_ADDRESS
        assert discovered.name == "SeatMonitor"
        assert discovered.service_uuids == [SEAT_SERVICE]
        assert discovered.platform_device is device

    async def test_detection_after_stop_ignored(self, driver, scanner_cls, events):
        await driver.start_scanning()
        driver.stop_scanning()

        driver._detection_callback(SimpleNamespace(address=SEAT_ADDRESS, name=None), advertisement())

        assert events == []
        await settle(driver)


class TestConnection:

    async def test_connect_success(self, driver, client_cls, events):
        driver.connect(PeripheralHandle(SEAT_ADDRESS, "SeatMonitor"))
        await settle(driver)

        assert events == [Connected(SEAT_ADDRESS)]
        assert client_cls.call_args.kwargs["timeout"] == 5.0

    async def test_connect_failure_is_disconnected(self, driver, client_cls, events):
        client_cls.return_value.connect.side_effect = asyncio.TimeoutError()

        driver.connect(PeripheralHandle(SEAT_ADDRESS, "SeatMonitor"))
        await settle(driver)

        assert len(events) == 1
        assert isinstance(events[0], Disconnected)
        assert events[0].address == SEAT_ADDRESS

    async def test_duplicate_connect_ignored(self, driver, client_cls):
        handle = PeripheralHandle(SEAT_ADDRESS, "SeatMonitor")

        driver.connect(handle)
        driver.connect(handle)
        await settle(driver)

        assert client_cls.call_count == 1

    async def test_services_map(self, driver, client_cls, events):
        await connect(driver, events)

        driver.discover_services(SEAT_ADDRESS)
        await settle(driver)

        assert events == [ServicesDiscovered(SEAT_ADDRESS, {SEAT_SERVICE: frozenset({SEAT_CHARACTERISTIC})})]

    async def test_enable_notifications_success(self, driver, client_cls, events):
        await connect(driver, events)

        driver.enable_notifications(SEAT_ADDRESS, SEAT_CHARACTERISTIC, CCCD, b"\x01\x00")
        await settle(driver)

        assert events == [DescriptorWriteResult(SEAT_ADDRESS, SEAT_CHARACTERISTIC, success=True)]
        assert client_cls.return_value.start_notify.await_args.args[0] == SEAT_CHARACTERISTIC

    async def test_enable_notifications_failure(self, driver, client_cls, events):
        await connect(driver, events)
        client_cls.return_value.start_notify.side_effect = BleakError("Write not permitted")

        driver.enable_notifications(SEAT_ADDRESS, SEAT_CHARACTERISTIC, CCCD, b"\x01\x00")
        await settle(driver)

        assert len(events) == 1
        assert events[0].success is False
        assert "Write not permitted" in events[0].status

    async def test_notification_callback(self, driver, client_cls, events):
        await connect(driver, events)
        driver.enable_notifications(SEAT_ADDRESS, SEAT_CHARACTERISTIC, CCCD, b"\x01\x00")
        await settle(driver)
        events.clear()
        callback = client_cls.return_value.start_notify.await_args.args[1]

        callback(SimpleNamespace(uuid=SEAT_CHARACTERISTIC.upper()), bytearray(b"\x01"))

        assert events == [NotificationReceived(SEAT_ADDRESS, SEAT_CHARACTERISTIC, b"\x01")]

    async def test_peripheral_disconnect(self, driver, client_cls, events):
        await connect(driver, events)
        disconnected_callback = client_cls.call_args.kwargs["disconnected_callback"]

        disconnected_callback(client_cls.return_value)

        assert len(events) == 1
        assert events[0] == Disconnected(SEAT_ADDRESS, reason="peripheral disconnected")

    async def test_local_disconnect_is_silent(self, driver, client_cls, events):
        await connect(driver, events)
        disconnected_callback = client_cls.call_args.kwargs["disconnected_callback"]

        driver.disconnect(SEAT_ADDRESS)
        disconnected_callback(client_cls.return_value)
        await settle(driver)

        assert events == []
        client_cls.return_value.disconnect.assert_awaited_once()

    async def test_commands_for_unknown_peer_ignored(self, driver, client_cls, events):
        driver.discover_services(SEAT_ADDRESS)
        driver.enable_notifications(SEAT_ADDRESS, SEAT_CHARACTERISTIC, CCCD, b"\x01\x00")
        driver.disconnect(SEAT_ADDRESS)
        await settle(driver)

        assert events == []


class TestLifecycle:

    async def test_stop_releases_everything(self, driver, scanner_cls, client_cls, events):
        await driver.start_scanning()
        await connect(driver, events)

        await driver.stop()

        assert driver.state == DriverState.IDLE
        scanner_cls.return_value.stop.assert_awaited_once()
        client_cls.return_value.disconnect.assert_awaited_once()

    async def test_disconnect_error_reported(self, driver, client_cls, events):
        await connect(driver, events)
        client_cls.return_value.disconnect.side_effect = BleakError("not connected")

        driver.disconnect(SEAT_ADDRESS)
        await settle(driver)

        severity, message, exc = driver.on_error.call_args.args
        assert severity == "warning"
        assert SEAT_ADDRESS in message
        assert isinstance(exc, BleakError)


class TestScannerCoordination:
    """
    BlueZ answers org.bluez.Error.InProgress when a connect or a new
    discovery starts while the scanner is still stopping.
    """

    @pytest.fixture
    def order(self):
        return []

    @pytest.fixture
    def slow_stop(self, scanner_cls, order):
        async def stop():
            order.append("scan-stop-begin")
            await asyncio.sleep(0.05)
            order.append("scan-stop-end")

        scanner_cls.return_value.stop.side_effect = stop
        return scanner_cls

    async def test_connect_waits_for_scanner_stop(self, driver, slow_stop, client_cls, order, events):
        client_cls.return_value.connect.side_effect = lambda: order.append("client-connect")
        await driver.start_scanning()

        driver.stop_scanning()
        driver.connect(PeripheralHandle(SEAT_ADDRESS, "SeatMonitor"))
        await settle(driver)

        assert order == ["scan-stop-begin", "scan-stop-end", "client-connect"]
        assert events == [Connected(SEAT_ADDRESS)]

    async def test_rescan_waits_for_scanner_stop(self, driver, slow_stop, order):
        slow_stop.return_value.start.side_effect = lambda: order.append("scan-start")
        await driver.start_scanning()
        order.clear()

        driver.stop_scanning()
        await driver.start_scanning()

        assert order == ["scan-stop-begin", "scan-stop-end", "scan-start"]
        assert driver.state == DriverState.SCANNING
        driver.stop_scanning()
        await settle(driver)

    async def test_connect_without_pending_stop(self, driver, client_cls, events):
        driver.connect(PeripheralHandle(SEAT_ADDRESS, "SeatMonitor"))
        await settle(driver)

        assert events == [Connected(SEAT_ADDRESS)]
