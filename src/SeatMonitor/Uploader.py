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
SeatStateUploader - HTTP client for the seat state collector.

API:
    POST /api/seat-state    {"state": "Normal"|"Reclined"} -> {"message": str}
    GET  /api/seat-states   -> [{"state": ...}, ...]

One aiohttp ClientSession is opened at start-up and shared by every upload
until close(). The uploader is handed to the NotificationRelay, so tests can
substitute any object with the same send_seat_state() coroutine.
"""

import asyncio
import logging
from typing import List, Optional

import aiohttp

from SeatMonitor.errors import BackendError, UploadFailed
from SeatMonitor.models import SeatState, UploadOutcome

logger = logging.getLogger(__name__)


class SeatStateUploader:

    BASE_URL = "https://seat-monitor-backend.onrender.com/"
    SEAT_STATE_PATH = "api/seat-state"
    SEAT_STATES_PATH = "api/seat-states"
    REQUEST_TIMEOUT = 10.0  # seconds

    def __init__(self, base_url=BASE_URL, timeout=REQUEST_TIMEOUT,
                 session: Optional[aiohttp.ClientSession] = None):
        self.base_url = str(base_url).rstrip("/") + "/"
        self.timeout = float(timeout)
        self._session = session
        self._owns_session = session is None

    async def open(self):
        """Create the shared HTTP session. Calling it twice is a no-op."""
        if self._session is None:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout))
            logger.debug(f"{self} session opened")

    async def close(self):
        if self._session is not None and self._owns_session:
            await self._session.close()
            logger.debug(f"{self} session closed")
        self._session = None

    async def __aenter__(self):
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def send_seat_state(self, state: SeatState) -> UploadOutcome:
        """
        Record a seat state with the collector.

        Raises:
            UploadFailed: non-2xx response, network error or timeout
        """
        url = self.base_url + self.SEAT_STATE_PATH
        try:
            async with self._require_session().post(url, json={"state": state.value}) as response:
                if not 200 <= response.status < 300:
                    body = await response.text(errors="replace")
                    raise UploadFailed(f"HTTP {response.status}: {body.strip() or response.reason}",
                                       status=response.status)
                try:
                    payload = await response.json(content_type=None)
                except ValueError:
                    payload = None
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise UploadFailed(f"{type(e).__name__}: {e}") from e

        message = payload.get("message") if isinstance(payload, dict) else None
        return UploadOutcome(success=True, message=message)

    async def get_seat_states(self) -> List[SeatState]:
        """
        Fetch the recorded seat states, oldest first.

        Raises:
            BackendError: non-2xx response, malformed body or network error
        """
        url = self.base_url + self.SEAT_STATES_PATH
        try:
            async with self._require_session().get(url) as response:
                if not 200 <= response.status < 300:
                    body = await response.text(errors="replace")
                    raise BackendError(f"HTTP {response.status}: {body.strip() or response.reason}",
                                       status=response.status)
                payload = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise BackendError(f"{type(e).__name__}: {e}") from e
        except ValueError as e:
            raise BackendError(f"malformed seat state list: {e}") from e

        if not isinstance(payload, list):
            raise BackendError(f"expected a list of seat states, got {type(payload).__name__}")

        states = []
        for entry in payload:
            try:
                states.append(SeatState(entry["state"]))
            except (KeyError, TypeError, ValueError):
                logger.warning(f"{self} skipping malformed seat state entry: {entry!r}")
        return states

    def _require_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            raise RuntimeError(f"{self} is not open")
        return self._session

    def __str__(self):
        return f"SeatStateUploader[{self.base_url}]"
