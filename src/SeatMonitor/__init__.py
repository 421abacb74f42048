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
SeatMonitor - relays a BLE seat sensor's state to a remote collector.

The sensor advertises as "SeatMonitor" with a custom GATT service and
notifies a single byte whenever the seat changes between normal and
reclined. This package finds it, subscribes, and posts every change to the
collector's HTTP API while keeping a one-line status for a UI.
"""

__version__ = "0.1.0"

from SeatMonitor.errors import (
    AdapterUnavailable,
    AlreadyConnected,
    AlreadyScanning,
    BackendError,
    CharacteristicNotFound,
    DecodeError,
    PermissionDenied,
    SeatMonitorError,
    ServiceNotFound,
    SubscriptionFailed,
    UploadFailed,
)
from SeatMonitor.models import SeatReading, SeatState, UploadOutcome
from SeatMonitor.AdvertisementFilter import AdvertisementFilter
from SeatMonitor.ScanController import ScanController, ScanSession, ScanState
from SeatMonitor.ConnectionManager import Connection, ConnectionManager, ConnectionState
from SeatMonitor.NotificationRelay import NotificationRelay, decode_seat_reading
from SeatMonitor.config import SeatMonitorConfig
from SeatMonitor.Monitor import SeatMonitor
