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
Seat monitor command line

Usage:
    seatmonitor [command] [config_path]

Commands:
    run          - Find the seat sensor and relay its state (default)
    scan         - List nearby BLE devices and flag the seat sensor
    history      - Show the seat states recorded by the collector
    init-config  - Write a default config file
    help         - Show this help message
"""

import asyncio
import logging
import sys
from datetime import datetime

from configobj import ConfigObjError

from SeatMonitor import __version__
from SeatMonitor.AdvertisementFilter import AdvertisementFilter
from SeatMonitor.Monitor import SeatMonitor
from SeatMonitor.Uploader import SeatStateUploader
from SeatMonitor.bleak_driver import BleakDriver
from SeatMonitor.bluetooth_driver import Capability
from SeatMonitor.config import SeatMonitorConfig, default_config_path, write_default_config
from SeatMonitor.errors import BackendError

logger = logging.getLogger("SeatMonitor")

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def setup_logging(level):
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOG_FORMAT)


def build_driver(config):
    granted = []
    if config.allow_scan:
        granted.append(Capability.SCAN)
    if config.allow_connect:
        granted.append(Capability.CONNECT)
    return BleakDriver(connection_timeout=config.connection_timeout, granted_capabilities=granted)


def print_status(text):
    print(f"[{datetime.now().strftime('%H:%M:%S')}] {text}", flush=True)


async def run_monitor(config):
    """Run the monitor until interrupted. Enter re-triggers a scan, 'q' quits."""
    loop = asyncio.get_running_loop()
    done = asyncio.Event()
    triggers = set()

    async with SeatStateUploader(config.backend_url, timeout=config.upload_timeout) as uploader:
        monitor = SeatMonitor(build_driver(config), uploader, config, on_status=print_status)

        def on_stdin():
            line = sys.stdin.readline()
            if not line or line.strip().lower() == "q":
                done.set()
                return
            task = loop.create_task(monitor.start_scan())
            triggers.add(task)
            task.add_done_callback(triggers.discard)

        try:
            loop.add_reader(sys.stdin.fileno(), on_stdin)
            stdin_trigger = True
        except (NotImplementedError, ValueError, OSError):
            # Proactor loops and detached stdin have no reader support
            logger.debug("stdin trigger unavailable, single scan only")
            stdin_trigger = False

        print("=" * 60)
        print(f"Seat Monitor {__version__}")
        print("=" * 60)
        if stdin_trigger:
            print("Press Enter to scan again, 'q' + Enter or Ctrl-C to quit")
        print()

        try:
            await monitor.start_scan()
            await done.wait()
        finally:
            if stdin_trigger:
                loop.remove_reader(sys.stdin.fileno())
            await monitor.stop()


async def scan_ble_devices(config):
    """Scan for nearby BLE devices and flag the seat sensor."""
    from bleak import BleakScanner

    advertisement_filter = AdvertisementFilter(config.device_name, config.service_uuid)

    print("=" * 60)
    print("BLE Device Scanner")
    print("=" * 60)
    print(f"Scanning for {config.scan_window:.0f} seconds...")
    print()

    discovered = await BleakScanner.discover(timeout=config.scan_window, return_adv=True)
    if not discovered:
        print("No BLE devices found.")
        return

    print(f"Found {len(discovered)} device(s):\n")
    for i, (device, adv) in enumerate(discovered.values(), 1):
        name = adv.local_name or device.name
        marker = "  <-- seat sensor" if advertisement_filter.matches(name, adv.service_uuids) else ""
        print(f"{i}. {name or 'Unknown'}{marker}")
        print(f"   Address: {device.address}")
        print(f"   RSSI: {adv.rssi} dBm")
        for uuid in adv.service_uuids[:3]:
            print(f"     - {uuid}")
        print()

    print("=" * 60)


async def show_history(config):
    """Print the seat states recorded by the collector."""
    async with SeatStateUploader(config.backend_url, timeout=config.upload_timeout) as uploader:
        try:
            states = await uploader.get_seat_states()
        except BackendError as e:
            print(f"ERROR: could not fetch seat states: {e}")
            return 1

    if not states:
        print("No seat states recorded.")
        return 0

    for i, state in enumerate(states, 1):
        print(f"{i:4d}. {state.value}")
    return 0


def show_help():
    """Show usage information"""
    print(__doc__)


def main(argv=None):
    """Main entry point"""
    argv = sys.argv[1:] if argv is None else argv
    command = argv[0].lower() if argv else "run"
    config_path = argv[1] if len(argv) > 1 else default_config_path()

    if command in ("help", "-h", "--help"):
        show_help()
        return 0

    if command == "init-config":
        path = write_default_config(config_path)
        print(f"Wrote default config to {path}")
        return 0

    try:
        config = SeatMonitorConfig(config_path)
    except (ValueError, OSError, ConfigObjError) as e:
        print(f"ERROR: invalid configuration {config_path}: {e}")
        return 2

    setup_logging(config.loglevel)

    try:
        if command == "run":
            asyncio.run(run_monitor(config))
        elif command == "scan":
            asyncio.run(scan_ble_devices(config))
        elif command == "history":
            return asyncio.run(show_history(config))
        else:
            print(f"Unknown command: {command}")
            show_help()
            return 1
    except KeyboardInterrupt:
        print("\nInterrupted by user.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
