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
Exception taxonomy for the seat monitor core.

Adapter and permission errors abort the requested operation. GATT errors
leave the connection in the FAILED state. Decode and upload errors are
logged and counted by the relay and never propagate further.
"""


class SeatMonitorError(Exception):
    """Base class for all seat monitor errors."""


class AdapterUnavailable(SeatMonitorError):
    """The Bluetooth adapter is absent, powered off or unreachable."""


class PermissionDenied(SeatMonitorError):
    """A required platform capability (scan or connect) is not granted."""

    def __init__(self, capability, message=None):
        self.capability = capability
        super().__init__(message or f"{capability.value} permission not granted")


class AlreadyScanning(SeatMonitorError):
    """A scan session is already live."""


class AlreadyConnected(SeatMonitorError):
    """A connection to another peripheral is already live."""


class ServiceNotFound(SeatMonitorError):
    """The peripheral does not expose the seat monitor service."""


class CharacteristicNotFound(SeatMonitorError):
    """The seat monitor service lacks the seat state characteristic."""


class SubscriptionFailed(SeatMonitorError):
    """Writing the notification configuration descriptor failed."""


class DecodeError(SeatMonitorError):
    """A notification payload could not be decoded into a seat reading."""


class BackendError(SeatMonitorError):
    """The collector backend could not be reached or answered with an error."""

    def __init__(self, message, status=None):
        self.status = status
        super().__init__(message)


class UploadFailed(BackendError):
    """A seat state upload was not accepted by the collector."""
