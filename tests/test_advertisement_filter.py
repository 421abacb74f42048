"""
Tests for AdvertisementFilter.

The filter accepts an advertisement when the name matches OR the advertised
service list contains the seat service, so all four combinations of
(name match, UUID match) are covered.
"""

import pytest

from SeatMonitor.AdvertisementFilter import AdvertisementFilter

SEAT_SERVICE = "19b10010-e8f2-537e-4f6c-d104768a1214"
HEART_RATE_SERVICE = "0000180d-0000-1000-8000-00805f9b34fb"


@pytest.fixture
def advertisement_filter():
    return AdvertisementFilter()


class TestTruthTable:

    @pytest.mark.parametrize("name, uuids, expected", [
        ("SeatMonitor", [SEAT_SERVICE], True),
        ("SeatMonitor", [HEART_RATE_SERVICE], True),
        ("Polar H10", [SEAT_SERVICE], True),
        ("Polar H10", [HEART_RATE_SERVICE], False),
    ])
    def test_name_or_service_match(self, advertisement_filter, name, uuids, expected):
        assert advertisement_filter.matches(name, uuids) is expected


class TestEdgeCases:

    def test_missing_name_with_service(self, advertisement_filter):
        """Devices often advertise without a local name."""
        assert advertisement_filter.matches(None, [SEAT_SERVICE]) is True

    def test_missing_name_without_services(self, advertisement_filter):
        assert advertisement_filter.matches(None, []) is False

    def test_service_uuid_case_insensitive(self, advertisement_filter):
        assert advertisement_filter.matches(None, [SEAT_SERVICE.upper()]) is True

    def test_name_match_is_exact(self, advertisement_filter):
        assert advertisement_filter.matches("seatmonitor", []) is False
        assert advertisement_filter.matches("SeatMonitor-2", []) is False

    def test_accepts_any_iterable(self, advertisement_filter):
        assert advertisement_filter.matches("Other", {HEART_RATE_SERVICE, SEAT_SERVICE}) is True
        assert advertisement_filter.matches("Other", None) is False

    def test_custom_identity(self):
        custom = AdvertisementFilter(device_name="Bench", service_uuid=HEART_RATE_SERVICE.upper())
        assert custom.matches("Bench", []) is True
        assert custom.matches(None, [HEART_RATE_SERVICE]) is True
        assert custom.matches("SeatMonitor", [SEAT_SERVICE]) is False
