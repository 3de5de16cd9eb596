"""Shared fixtures for the scanview tests."""

from datetime import datetime, timedelta, timezone

import pytest

from scanview.analysis.types import Reading, WifiReading
from scanview.storage.dao import DAO

T0 = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)

# degrees of latitude per metre along a meridian (haversine, R = 6371 km)
DEG_PER_M = 1 / 111194.92664455873

BASE_LAT = 10.0
BASE_LON = 20.0


def at(seconds: float) -> datetime:
    return T0 + timedelta(seconds=seconds)


def north(metres: float) -> float:
    """Latitude `metres` north of BASE_LAT."""
    return BASE_LAT + metres * DEG_PER_M


def reading(device_id="d1", rssi=-60, t=0.0, **kw) -> Reading:
    return Reading(device_id=device_id, rssi=rssi, ts=at(t), **kw)


def wifi(bssid="aa:bb", signal=-50, t=0.0, **kw) -> WifiReading:
    return WifiReading(ssid=kw.pop("ssid", "net"), bssid=bssid, signal_strength=signal, ts=at(t), **kw)


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "sv_test.sqlite")


@pytest.fixture
def dao(db_path):
    d = DAO(db_path)
    yield d
    d.close()


@pytest.fixture
def seeded(dao):
    """
    Two locations ("Library", "Main Cafe") with overlapping devices,
    WiFi networks, predefined locations and an RSSI time series.
    """
    dao.insert("location", [
        {"id": 1, "name": "Library", "latitude": BASE_LAT, "longitude": BASE_LON, "accuracy": 50.0},
        {"id": 2, "name": "Main Cafe", "latitude": north(500), "longitude": BASE_LON, "accuracy": None},
        {"id": 3, "name": "Gym", "latitude": north(5000), "longitude": BASE_LON, "accuracy": 30.0},
    ])
    dao.insert("location_scanned", [
        {"id": 7, "location_name": "Main Cafe", "latitude": north(500), "longitude": BASE_LON,
         "scan_start_time": at(0), "scan_duration_seconds": 60},
    ])
    dao.insert("scanned_device", [
        {"session_id": "s1", "location_id": 1, "location_name": "Library", "device_id": "A",
         "device_name": "Phone A", "rssi": -60, "scan_time": at(0),
         "device_latitude": BASE_LAT, "device_longitude": BASE_LON,
         "location_latitude": BASE_LAT, "location_longitude": BASE_LON, "notes": "quiet floor"},
        {"session_id": "s1", "location_id": 1, "location_name": "Library", "device_id": "B",
         "rssi": -70, "scan_time": at(1),
         "device_latitude": north(5), "device_longitude": BASE_LON,
         "location_latitude": BASE_LAT, "location_longitude": BASE_LON},
        {"session_id": "s2", "location_id": 7, "location_name": "Main Cafe", "device_id": "B",
         "rssi": -80, "scan_time": at(2),
         "device_latitude": north(500), "device_longitude": BASE_LON,
         "location_latitude": north(500), "location_longitude": BASE_LON},
        {"session_id": "s2", "location_id": 7, "location_name": "Main Cafe", "device_id": "C",
         "rssi": -50, "scan_time": at(3),
         "device_latitude": north(505), "device_longitude": BASE_LON,
         "location_latitude": north(500), "location_longitude": BASE_LON},
        {"session_id": "s2", "location_id": 7, "location_name": "Main Cafe", "device_id": "D",
         "rssi": -95, "scan_time": at(4),
         "location_latitude": north(500), "location_longitude": BASE_LON},
    ])
    dao.insert("wifi_scan", [
        {"session_id": "s1", "location_name": "Library", "ssid": "lib", "bssid": "11:11",
         "signal_strength": -40, "scan_time": at(0)},
        {"session_id": "s2", "location_name": "Main Cafe", "ssid": "lib", "bssid": "11:11",
         "signal_strength": -60, "scan_time": at(2)},
    ])
    dao.insert("rssi_timeseries", [
        {"device_id": "B", "session_id": "s2", "rssi": -78, "timestamp": at(2.5), "sequence_number": 1},
        {"device_id": "C", "session_id": "s2", "rssi": -52, "timestamp": at(2.5), "sequence_number": 2},
        {"device_id": "A", "session_id": "s1", "rssi": -61, "timestamp": at(2.5), "sequence_number": 3},
    ])
    return dao
