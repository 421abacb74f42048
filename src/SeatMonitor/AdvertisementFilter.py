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
AdvertisementFilter - decides whether an advertisement is the seat sensor.

The sensor is recognized either by its advertised local name or by the seat
monitor service UUID in its advertised service list. Some stacks drop the
name from scan responses and others drop the UUID list, so either one is
enough.
"""

from typing import Iterable, Optional

from SeatMonitor.bluetooth_driver import SEAT_SERVICE_UUID, normalize_uuid


class AdvertisementFilter:

    DEVICE_NAME = "SeatMonitor"
    SERVICE_UUID = SEAT_SERVICE_UUID

    def __init__(self, device_name=DEVICE_NAME, service_uuid=SERVICE_UUID):
        self.device_name = device_name
        self.service_uuid = normalize_uuid(service_uuid)

    def matches(self, name: Optional[str], service_uuids: Iterable[str]) -> bool:
        """
        Return True if the advertisement belongs to the seat sensor.

        Args:
            name: Advertised local name, or None if the device sent none
            service_uuids: Advertised service UUIDs (any case)
        """
        if name is not None and name == self.device_name:
            return True
        return any(normalize_uuid(uuid) == self.service_uuid for uuid in service_uuids or ())

    def __str__(self):
        return f"AdvertisementFilter[{self.device_name}]"
