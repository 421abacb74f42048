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

"""Value types passed between the relay, the uploader and the presentation surface."""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class SeatState(Enum):
    NORMAL = "Normal"
    RECLINED = "Reclined"


@dataclass(frozen=True)
class SeatReading:
    """One decoded notification. Never mutated, never stored."""
    state: SeatState
    received_at: float = field(default_factory=time.time, compare=False)

    @property
    def status_text(self):
        return f"Seat State: {self.state.value}"


@dataclass(frozen=True)
class UploadOutcome:
    success: bool
    message: Optional[str] = None
