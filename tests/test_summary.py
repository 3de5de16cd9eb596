import pytest

from conftest import at, reading
from scanview.analysis.summary import filter_readings, location_stats, rssi_histogram, top_devices


class TestRssiHistogram:

    def test_bins(self):
        bins = rssi_histogram([])
        assert list(bins) == list(range(-100, -34, 5))
        assert len(bins) == 14
        assert sum(bins.values()) == 0

    def test_bin_floor(self):
        assert rssi_histogram([-67])[-70] == 1
        assert rssi_histogram([-65])[-65] == 1

    def test_clamped_to_edges(self):
        bins = rssi_histogram([-120, -30, -20])
        assert bins[-100] == 1
        assert bins[-35] == 2


class TestFilterReadings:

    READINGS = [
        reading("A", -40, t=0, location_id=1, device_name="Pixel"),
        reading("B", -80, t=-3 * 86400, location_id=2),
        reading("C", None, t=-20 * 86400, location_id=1),
    ]

    def test_no_filters(self):
        assert filter_readings(self.READINGS) == self.READINGS

    def test_rssi_range_inclusive(self):
        out = filter_readings(self.READINGS, rssi_range=(-80, -40))
        assert [r.device_id for r in out] == ["A", "B"]
        out = filter_readings(self.READINGS, rssi_range=(-79, -41))
        assert out == []

    @pytest.mark.parametrize("frame, expected", [
        ("day", ["A"]),
        ("week", ["A", "B"]),
        ("month", ["A", "B", "C"]),
        ("all", ["A", "B", "C"]),
    ])
    def test_time_frame(self, frame, expected):
        out = filter_readings(self.READINGS, time_frame=frame, now=at(60))
        assert [r.device_id for r in out] == expected

    def test_unknown_time_frame(self):
        with pytest.raises(ValueError):
            filter_readings(self.READINGS, time_frame="year")

    def test_location_and_search(self):
        assert [r.device_id for r in filter_readings(self.READINGS, location_id=1)] == ["A", "C"]
        assert [r.device_id for r in filter_readings(self.READINGS, search="pix")] == ["A"]
        assert [r.device_id for r in filter_readings(self.READINGS, search="b")] == ["B"]


class TestTopDevices:

    def test_strongest_reading_per_device(self):
        rs = [reading("A", -70), reading("A", -50), reading("B", -60), reading("C", None)]
        top = top_devices(rs)
        assert [(r.device_id, r.rssi) for r in top] == [("A", -50), ("B", -60)]

    def test_limit(self):
        rs = [reading(str(i), -50 - i) for i in range(10)]
        assert [r.device_id for r in top_devices(rs, n=3)] == ["0", "1", "2"]


class TestLocationStats:

    def test_per_location(self):
        rs = [
            reading("A", -60, location_id=1),
            reading("A", -71, location_id=1),
            reading("B", -50, location_id=None),
        ]
        stats = location_stats(rs)
        assert set(stats) == {0, 1}
        s = stats[1]
        assert s.reading_count == 2
        assert s.unique_devices == 1
        assert s.average_rssi == -66
        assert (s.min_rssi, s.max_rssi) == (-71, -60)
        assert stats[0].reading_count == 1
