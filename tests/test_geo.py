import pytest

from scanview.utils.geo import distance, haversine, is_missing


class TestHaversine:

    def test_one_degree_of_latitude_on_the_equator(self):
        assert haversine((0.0, 0.0), (1.0, 0.0)) == pytest.approx(111_195, rel=0.01)

    def test_symmetric(self):
        a, b = (52.52, 13.405), (48.8566, 2.3522)
        assert haversine(a, b) == pytest.approx(haversine(b, a))

    def test_same_point_is_zero(self):
        assert haversine((37.7749, -122.4194), (37.7749, -122.4194)) == 0

    def test_antipodes(self):
        assert haversine((10.0, 20.0), (-10.0, -160.0)) == pytest.approx(3.14159265 * 6371000.0, rel=1e-6)


class TestDistance:

    def test_matches_haversine(self):
        assert distance(10.0, 20.0, 10.5, 20.0) == pytest.approx(haversine((10.0, 20.0), (10.5, 20.0)))

    def test_symmetric(self):
        assert distance(1.0, 2.0, 3.0, 4.0) == pytest.approx(distance(3.0, 4.0, 1.0, 2.0))

    def test_same_point(self):
        assert distance(45.0, 7.0, 45.0, 7.0) == 0

    def test_meridian_degree_away_from_zero(self):
        assert distance(-0.5, 10.0, 0.5, 10.0, zero_is_missing=False) == pytest.approx(111_195, rel=0.01)

    @pytest.mark.parametrize("coords", [
        (None, 1.0, 2.0, 3.0),
        (1.0, None, 2.0, 3.0),
        (1.0, 1.0, None, 3.0),
        (1.0, 1.0, 2.0, None),
    ])
    def test_missing_coordinate(self, coords):
        assert distance(*coords) is None

    def test_zero_counts_as_missing_by_default(self):
        assert distance(0.0, 0.0, 1.0, 0.0) is None

    def test_zero_allowed_when_requested(self):
        assert distance(0.0, 0.0, 1.0, 0.0, zero_is_missing=False) == pytest.approx(111_195, rel=0.01)


class TestIsMissing:

    def test_none(self):
        assert is_missing(None)
        assert is_missing(None, zero_is_missing=False)

    def test_zero(self):
        assert is_missing(0.0)
        assert not is_missing(0.0, zero_is_missing=False)

    def test_value(self):
        assert not is_missing(-33.9)
