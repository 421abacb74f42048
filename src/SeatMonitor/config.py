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
Configuration for the seat monitor.

Settings come from a plain dict or a ConfigObj file. Boolean options accept
"yes"/"no", "true"/"false" and "1"/"0", as written in config files.

Config file location, in order:
1. the path given on the command line
2. $SEATMONITOR_CONFIG
3. ~/.seatmonitor/config

A missing file means all defaults.
"""

import logging
import os

from configobj import ConfigObj

from SeatMonitor.AdvertisementFilter import AdvertisementFilter
from SeatMonitor.ConnectionManager import ConnectionManager
from SeatMonitor.NotificationRelay import NotificationRelay
from SeatMonitor.Uploader import SeatStateUploader

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "SEATMONITOR_CONFIG"
DEFAULT_CONFIG_DIR = os.path.join("~", ".seatmonitor")

LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")

DEFAULT_CONFIG_LINES = [
    "# Seat monitor configuration",
    "",
    "# Advertised name and GATT layout of the seat sensor",
    "device_name = SeatMonitor",
    f"service_uuid = {AdvertisementFilter.SERVICE_UUID}",
    f"characteristic_uuid = {ConnectionManager.CHARACTERISTIC_UUID}",
    "",
    "# Scan window in milliseconds",
    "scan_window_ms = 30000",
    "connection_timeout = 20.0",
    "",
    "# Collector backend",
    f"backend_url = {SeatStateUploader.BASE_URL}",
    "upload_timeout = 10.0",
    "max_inflight_uploads = 4",
    "",
    "# Platform authorization for scanning and connecting",
    "allow_scan = yes",
    "allow_connect = yes",
    "",
    "# CRITICAL, ERROR, WARNING, INFO or DEBUG",
    "loglevel = INFO",
]


def _as_bool(value):
    if isinstance(value, str):
        return value.strip().lower() in ["yes", "true", "1", "on"]
    return bool(value)


def default_config_path():
    """Resolve the config file path from the environment or the default directory."""
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return os.path.expanduser(env_path)
    return os.path.join(os.path.expanduser(DEFAULT_CONFIG_DIR), "config")


def get_config_obj(configuration):
    """Return a mapping for a dict, a ConfigObj, a file path or None."""
    if configuration is None:
        return {}
    if isinstance(configuration, (str, os.PathLike)):
        path = os.fspath(configuration)
        if not os.path.isfile(path):
            logger.info(f"no config file at {path}, using defaults")
            return {}
        return ConfigObj(path)
    return configuration


def write_default_config(path):
    """Write an annotated default config file, creating its directory."""
    path = os.path.expanduser(os.fspath(path))
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)

    config = ConfigObj(DEFAULT_CONFIG_LINES)
    config.filename = path
    config.write()
    return path


class SeatMonitorConfig:
    """Validated seat monitor settings."""

    def __init__(self, configuration=None):
        c = get_config_obj(configuration)

        self.device_name = c.get("device_name", AdvertisementFilter.DEVICE_NAME)
        self.service_uuid = c.get("service_uuid", AdvertisementFilter.SERVICE_UUID).lower()
        self.characteristic_uuid = c.get("characteristic_uuid", ConnectionManager.CHARACTERISTIC_UUID).lower()
        self.descriptor_uuid = c.get("descriptor_uuid", ConnectionManager.CLIENT_CHARACTERISTIC_CONFIG_UUID).lower()

        self.scan_window_ms = int(c.get("scan_window_ms", 30000))
        if self.scan_window_ms <= 0:
            raise ValueError(f"scan_window_ms must be positive, got {self.scan_window_ms}")
        self.connection_timeout = float(c.get("connection_timeout", 20.0))

        self.backend_url = c.get("backend_url", SeatStateUploader.BASE_URL)
        self.upload_timeout = float(c.get("upload_timeout", SeatStateUploader.REQUEST_TIMEOUT))
        self.max_inflight_uploads = int(c.get("max_inflight_uploads", NotificationRelay.MAX_INFLIGHT_UPLOADS))
        if self.max_inflight_uploads < 1:
            logger.warning(f"max_inflight_uploads {self.max_inflight_uploads} too low, using 1")
            self.max_inflight_uploads = 1

        self.allow_scan = _as_bool(c.get("allow_scan", True))
        self.allow_connect = _as_bool(c.get("allow_connect", True))

        self.loglevel = str(c.get("loglevel", "INFO")).upper()
        if self.loglevel not in LOG_LEVELS:
            logger.warning(f"invalid loglevel '{self.loglevel}', using INFO")
            self.loglevel = "INFO"

    @property
    def scan_window(self):
        """Scan window in seconds."""
        return self.scan_window_ms / 1000.0

    def __repr__(self):
        return (f"SeatMonitorConfig(device_name={self.device_name!r}, "
                f"scan_window_ms={self.scan_window_ms}, backend_url={self.backend_url!r})")
