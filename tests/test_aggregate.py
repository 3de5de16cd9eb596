import pytest

from conftest import BASE_LAT, BASE_LON, at, reading, wifi
from scanview.analysis.aggregate import aggregate_group


class TestAggregateGroup:

    def test_empty_group(self):
        g = aggregate_group("empty", [])
        assert g.device_count == 0
        assert g.network_count == 0
        assert g.average_rssi == 0
        assert g.average_wifi_rssi == 0
        assert g.first_seen is None
        assert g.duration_s == 0

    def test_devices_networks_and_averages(self):
        g = aggregate_group(
            "Library",
            [reading("A", -60), reading("B", -70), reading("A", -80)],
            [wifi("11:11", -40), wifi("22:22", -50)],
        )
        assert g.device_ids == {"A", "B"}
        assert g.network_bssids == {"11:11", "22:22"}
        assert g.average_rssi == pytest.approx(-70)
        assert g.average_wifi_rssi == pytest.approx(-45)

    def test_skips_empty_ids_and_missing_rssi(self):
        g = aggregate_group(
            "s1",
            [reading("", -60), reading(None, -60), reading("A", None), reading("A", 0), reading("B", -50)],
            [wifi("", -30), wifi("11:11", None)],
        )
        assert g.device_ids == {"A", "B"}
        assert g.network_bssids == {"11:11"}
        # rows without a device id still carry a signal
        assert g.average_rssi == pytest.approx(-170 / 3)
        assert g.average_wifi_rssi == pytest.approx(-30)

    def test_same_input_same_result(self):
        rs = [reading("A", -60, t=0), reading("B", -70, t=5)]
        assert aggregate_group("x", rs) == aggregate_group("x", rs)

    def test_coordinates_passed_in_win(self):
        rs = [reading(latitude=1.0, longitude=2.0)]
        g = aggregate_group("x", rs, latitude=3.0, longitude=4.0, accuracy=10.0)
        assert (g.latitude, g.longitude, g.accuracy) == (3.0, 4.0, 10.0)

    def test_coordinates_from_first_located_reading(self):
        rs = [
            reading("A", latitude=None, longitude=None),
            reading("B", latitude=0.0, longitude=BASE_LON),
            reading("C", latitude=BASE_LAT, longitude=BASE_LON, accuracy=7.0),
        ]
        g = aggregate_group("x", rs)
        assert (g.latitude, g.longitude, g.accuracy) == (BASE_LAT, BASE_LON, 7.0)

    def test_zero_coordinate_kept_when_allowed(self):
        rs = [reading("B", latitude=0.0, longitude=BASE_LON)]
        g = aggregate_group("x", rs, zero_is_missing=False)
        assert g.latitude == 0.0

    def test_time_span_covers_ble_and_wifi(self):
        g = aggregate_group("x", [reading(t=10), reading(t=40)], [wifi(t=5)], notes="corner")
        assert g.first_seen == at(5)
        assert g.last_seen == at(40)
        assert g.duration_s == 35
        assert g.notes == "corner"
