import pytest
from fastapi.testclient import TestClient

from scanview.server import create_app


@pytest.fixture
def client(seeded, db_path):
    return TestClient(create_app(db_path))


class TestServer:

    def test_status(self, client):
        assert client.get("/api/status").json() == {"status": "ok"}

    def test_time_range(self, client):
        body = client.get("/api/time-range").json()
        assert body["min_ts"].startswith("2024-05-01T12:00:00")

    def test_groups(self, client):
        body = client.get("/api/groups", params={"by": "session"}).json()
        assert {g["name"] for g in body} == {"s1", "s2"}
        assert client.get("/api/groups", params={"by": "device"}).status_code == 422

    def test_locations(self, client):
        body = client.get("/api/locations").json()
        library = next(c for c in body if c["name"] == "Library")
        assert library["session_ids"] == ["s1"]
        assert library["reading_count"] == 2

    def test_map(self, client):
        resp = client.post("/api/map", json={"rssi_range": [-75, -55]})
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "ok"
        assert body["reading_count"] == 2
        assert len(body["rssi_histogram"]) == 14

    def test_compare(self, client):
        resp = client.post("/api/compare", json={"names": ["Library", "Main Cafe"], "mode": "unique"})
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "ok"
        assert body["common"] == ["B"]
        assert body["display"] == ["A", "C", "D"]
        assert body["comparisons"][0]["shared_percentage"] == pytest.approx(62.5)
        library = next(g for g in body["groups"] if g["name"] == "Library")
        assert library["unique_device_ids"] == ["A"]

    def test_compare_rejects_one_group(self, client):
        assert client.post("/api/compare", json={"names": ["Library"]}).status_code == 422

    def test_crowd(self, client):
        resp = client.post("/api/crowd", json={"scan_id": 7})
        assert resp.status_code == 200
        body = resp.json()
        assert body["location_name"] == "Main Cafe"
        assert [s["device_ids"] for s in body["snapshots"]] == [["B", "C"], ["C"]]
        assert body["snapshots"][1]["departed_device_ids"] == ["B"]
        assert {d["device_id"] for d in body["devices"]} == {"B", "C"}

    def test_crowd_by_session(self, client):
        body = client.post("/api/crowd", json={"session_id": "s2", "location": "Main Cafe"}).json()
        assert {d["device_id"] for d in body["devices"]} == {"B", "C"}

    def test_crowd_no_data(self, client):
        body = client.post("/api/crowd", json={"location": "Atlantis"}).json()
        assert body["status"] == "no_data"
