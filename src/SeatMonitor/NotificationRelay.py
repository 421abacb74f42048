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
NotificationRelay - turns seat state notifications into readings.

Each valid notification produces exactly one SeatReading which is:
1. published synchronously on the status channel, in arrival order
2. uploaded by its own background task (fire-and-forget)

Uploads never block the relay. At most max_inflight_uploads requests are
on the wire at once; further readings wait for a free slot rather than
being dropped. Completion order of uploads is not guaranteed.
"""

import asyncio
import logging
from typing import Callable, Optional, Set

from SeatMonitor.bluetooth_driver import SEAT_CHARACTERISTIC_UUID, normalize_uuid
from SeatMonitor.errors import BackendError, DecodeError
from SeatMonitor.models import SeatReading, SeatState, UploadOutcome

logger = logging.getLogger(__name__)

STATE_NORMAL_BYTE = 0x01


def decode_seat_reading(payload: bytes) -> SeatReading:
    """
    Decode a raw notification payload.

    Only the first byte is significant: 0x01 is NORMAL, every other value
    is RECLINED.

    Raises:
        DecodeError: if the payload is empty
    """
    if not payload:
        raise DecodeError("empty seat state payload")
    if payload[0] == STATE_NORMAL_BYTE:
        return SeatReading(SeatState.NORMAL)
    return SeatReading(SeatState.RECLINED)


class NotificationRelay:
    """
    Fans readings out to the status channel and the uploader.

    Args:
        uploader: Object with ``async send_seat_state(state) -> UploadOutcome``
        on_status: Status channel, called with "Seat State: <state>"
        characteristic_uuid: The only characteristic whose payloads are relayed
        max_inflight_uploads: Concurrent upload cap
    """

    CHARACTERISTIC_UUID = SEAT_CHARACTERISTIC_UUID
    MAX_INFLIGHT_UPLOADS = 4

    def __init__(self, uploader, on_status: Optional[Callable[[str], None]] = None,
                 characteristic_uuid=CHARACTERISTIC_UUID,
                 max_inflight_uploads=MAX_INFLIGHT_UPLOADS):
        self.uploader = uploader
        self.on_status = on_status
        self.characteristic_uuid = normalize_uuid(characteristic_uuid)
        self.max_inflight_uploads = max(1, int(max_inflight_uploads))

        self.last_reading: Optional[SeatReading] = None
        self.last_upload_outcome: Optional[UploadOutcome] = None
        self.decode_errors = 0
        self.uploads_succeeded = 0
        self.uploads_failed = 0

        self._upload_slots: Optional[asyncio.Semaphore] = None
        self._upload_tasks: Set[asyncio.Task] = set()

    @property
    def pending_uploads(self) -> int:
        return len(self._upload_tasks)

    def on_notification(self, characteristic_uuid, payload) -> Optional[SeatReading]:
        """
        Relay one notification.

        Returns the reading, or None if the payload was ignored or dropped.
        """
        if normalize_uuid(characteristic_uuid) != self.characteristic_uuid:
            logger.debug(f"{self} ignoring notification from {characteristic_uuid}")
            return None

        try:
            reading = decode_seat_reading(payload)
        except DecodeError as e:
            self.decode_errors += 1
            logger.warning(f"{self} dropped notification: {e}")
            return None

        logger.info(f"{self} received seat state: {reading.state.value}")
        self.last_reading = reading

        if self.on_status:
            self.on_status(reading.status_text)

        self._spawn_upload(reading)
        return reading

    async def drain(self):
        """Wait for every upload already spawned to finish."""
        while self._upload_tasks:
            await asyncio.gather(*list(self._upload_tasks), return_exceptions=True)

    def _spawn_upload(self, reading):
        if self._upload_slots is None:
            self._upload_slots = asyncio.Semaphore(self.max_inflight_uploads)

        task = asyncio.get_running_loop().create_task(self._upload(reading))
        self._upload_tasks.add(task)
        task.add_done_callback(self._upload_tasks.discard)

    async def _upload(self, reading):
        async with self._upload_slots:
            try:
                outcome = await self.uploader.send_seat_state(reading.state)
            except BackendError as e:
                self._upload_failed(reading, str(e))
                return
            except Exception as e:
                self._upload_failed(reading, f"{type(e).__name__}: {e}")
                return

        self.uploads_succeeded += 1
        self.last_upload_outcome = outcome
        logger.info(f"{self} seat state '{reading.state.value}' uploaded: {outcome.message}")

    def _upload_failed(self, reading, message):
        self.uploads_failed += 1
        self.last_upload_outcome = UploadOutcome(success=False, message=message)
        logger.error(f"{self} failed to upload seat state '{reading.state.value}': {message}")

    def __str__(self):
        return "NotificationRelay"
