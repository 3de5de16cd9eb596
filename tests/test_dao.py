import pytest

from conftest import at
from scanview.storage.source import Filter, Order, QueryError


class TestQuery:

    def test_eq_and_order(self, seeded):
        rows = seeded.query(
            "scanned_device", [Filter("session_id", "eq", "s2")], Order("rssi", ascending=False)
        )
        assert [r["device_id"] for r in rows] == ["C", "B", "D"]

    def test_timestamp_range(self, seeded):
        rows = seeded.query(
            "scanned_device",
            [Filter("scan_time", "gte", at(1)), Filter("scan_time", "lt", at(3))],
            Order("scan_time"),
        )
        assert [r["device_id"] for r in rows] == ["B", "B"]

    def test_like_is_substring(self, seeded):
        rows = seeded.query("location", [Filter("name", "like", "cafe")])
        assert [r["name"] for r in rows] == ["Main Cafe"]

    def test_like_escapes_wildcards(self, seeded):
        assert seeded.query("location", [Filter("name", "like", "%")]) == []

    def test_in(self, seeded):
        rows = seeded.query("rssi_timeseries", [Filter("device_id", "in", ["A", "C"])], Order("sequence_number"))
        assert [r["device_id"] for r in rows] == ["C", "A"]
        assert seeded.query("rssi_timeseries", [Filter("device_id", "in", [])]) == []

    def test_not_null_and_limit(self, seeded):
        rows = seeded.query("scanned_device", [Filter("device_latitude", "not_null")], limit=2)
        assert len(rows) == 2
        assert all(r["device_latitude"] is not None for r in rows)

    def test_unknown_table(self, dao):
        with pytest.raises(QueryError) as exc:
            dao.query("nope")
        assert exc.value.table == "nope"

    def test_unknown_column(self, dao):
        with pytest.raises(QueryError):
            dao.query("location", [Filter("name; DROP TABLE location", "eq", "x")])

    def test_unknown_op(self, dao):
        with pytest.raises(ValueError):
            dao.query("location", [Filter("name", "regex", "x")])


class TestInsert:

    def test_returns_count_and_stores_utc_text(self, dao):
        n = dao.insert("rssi_timeseries", [
            {"device_id": "A", "rssi": -60, "timestamp": at(0)},
            {"device_id": "B", "rssi": -70, "timestamp": at(1.5), "sequence_number": 4},
        ])
        assert n == 2
        rows = dao.query("rssi_timeseries", order=Order("timestamp"))
        assert rows[0]["timestamp"] == "2024-05-01T12:00:00.000000+00:00"
        assert rows[0]["sequence_number"] == 0
        assert rows[1]["sequence_number"] == 4

    def test_empty(self, dao):
        assert dao.insert("location", []) == 0

    def test_constraint_violation(self, dao):
        with pytest.raises(QueryError):
            dao.insert("rssi_timeseries", [{"device_id": "A", "timestamp": at(0)}])


class TestImports:

    def test_import_bookkeeping(self, dao):
        assert not dao.import_exists("abc")
        dao.add_import("abc", "location", "location.json", 3)
        assert dao.import_exists("abc")

    def test_time_range(self, seeded):
        lo, hi = seeded.get_time_range()
        assert lo.startswith("2024-05-01T12:00:00")
        assert hi.startswith("2024-05-01T12:00:04")
