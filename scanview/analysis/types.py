# scanview/analysis/types.py

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from scanview.utils.validate import RssiSampleRow, ScannedDeviceRow, WifiScanRow


class Status(str, Enum):
    OK = "ok"
    NO_DATA = "no_data"
    ERROR = "error"


@dataclass(frozen=True)
class Reading:
    """
    One observed BLE signal sample.

    Parameters
    ----------
    device_id : str or None
        Advertised device identifier; None or "" for anonymous rows.
    rssi : int or None
        Received signal strength in dBm.
    ts : datetime
        Observation time (UTC).
    sequence_number : int
        Per-session sample counter ordering sub-second samples; 0 for scan rows.
    session_id : str or None
        Scan run the sample belongs to.
    latitude, longitude, accuracy : float or None
        Where the sample was taken, if known.
    """
    device_id: Optional[str]
    rssi: Optional[int]
    ts: datetime
    sequence_number: int = 0
    session_id: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    accuracy: Optional[float] = None
    location_id: Optional[int] = None
    location_name: Optional[str] = None
    device_name: Optional[str] = None

    @classmethod
    def from_scan(cls, row: ScannedDeviceRow) -> Reading:
        return cls(
            device_id=row.device_id,
            rssi=row.rssi,
            ts=row.scan_time,
            session_id=row.session_id,
            latitude=row.device_latitude,
            longitude=row.device_longitude,
            accuracy=row.device_accuracy,
            location_id=row.location_id,
            location_name=row.location_name,
            device_name=row.device_name,
        )

    @classmethod
    def from_sample(cls, row: RssiSampleRow, location_name: Optional[str] = None) -> Reading:
        return cls(
            device_id=row.device_id,
            rssi=row.rssi,
            ts=row.timestamp,
            sequence_number=row.sequence_number,
            session_id=row.session_id,
            latitude=row.latitude,
            longitude=row.longitude,
            accuracy=row.accuracy,
            location_name=location_name,
        )


@dataclass(frozen=True)
class WifiReading:
    """
    One observed WiFi network, keyed by (ssid, bssid).
    """
    ssid: Optional[str]
    bssid: Optional[str]
    signal_strength: Optional[int]
    ts: datetime
    session_id: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    accuracy: Optional[float] = None
    location_id: Optional[int] = None
    location_name: Optional[str] = None

    @classmethod
    def from_scan(cls, row: WifiScanRow) -> WifiReading:
        return cls(
            ssid=row.ssid,
            bssid=row.bssid,
            signal_strength=row.signal_strength,
            ts=row.scan_time,
            session_id=row.session_id,
            latitude=row.latitude,
            longitude=row.longitude,
            accuracy=row.accuracy,
            location_id=row.location_id,
            location_name=row.location_name,
        )


@dataclass
class LocationCluster:
    """
    A physical place that scan sessions are attributed to.

    Parameters
    ----------
    id : int
        Predefined location id, or a 1-based index for automatic clusters.
    name : str
        Display name.
    latitude, longitude : float
        Centroid in decimal degrees.
    accuracy_m : float
        Match radius in metres.
    session_ids : set of str
        Sessions attributed to this place.
    reading_count : int
        Number of readings that matched or formed the place.
    """
    id: int
    name: str
    latitude: float
    longitude: float
    accuracy_m: float
    session_ids: set[str] = field(default_factory=set)
    reading_count: int = 0


@dataclass(frozen=True)
class AggregatedGroup:
    """
    Per-session or per-location roll-up used by the comparison engine.
    """
    name: str
    device_ids: frozenset[str]
    network_bssids: frozenset[str]
    readings: tuple[Reading, ...]
    wifi_readings: tuple[WifiReading, ...]
    average_rssi: float
    average_wifi_rssi: float
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    accuracy: Optional[float] = None
    notes: Optional[str] = None
    first_seen: Optional[datetime] = None
    last_seen: Optional[datetime] = None
    duration_s: float = 0.0

    @property
    def device_count(self) -> int:
        return len(self.device_ids)

    @property
    def network_count(self) -> int:
        return len(self.network_bssids)


@dataclass(frozen=True)
class PairwiseComparison:
    group_a: str
    group_b: str
    distance_m: float
    shared_devices: int
    shared_networks: int
    shared_percentage: float
    rssi_difference: float
    wifi_rssi_difference: float


@dataclass(frozen=True)
class PresenceSnapshot:
    """
    One presence bucket.

    Parameters
    ----------
    ts : datetime
        Bucket start.
    device_ids : frozenset of str
        Devices seen in the bucket.
    new_device_ids : frozenset of str
        Devices seen for the first time in the run.
    departed_device_ids : frozenset of str
        Devices present in the previous bucket but not in this one.
    average_rssi : float
        Mean RSSI over the bucket's readings, 0 if none.
    reading_count : int
        Raw readings in the bucket.
    """
    ts: datetime
    device_ids: frozenset[str]
    new_device_ids: frozenset[str]
    departed_device_ids: frozenset[str]
    average_rssi: float
    reading_count: int

    @property
    def total_devices(self) -> int:
        return len(self.device_ids)

    @property
    def new_devices(self) -> int:
        return len(self.new_device_ids)

    @property
    def departed_devices(self) -> int:
        return len(self.departed_device_ids)


@dataclass(frozen=True)
class DevicePresenceSummary:
    device_id: str
    device_name: Optional[str]
    first_seen: datetime
    last_seen: datetime
    appearance_count: int
    rssi_min: int
    rssi_max: int
    rssi_avg: float
    signal_stability: float

    @property
    def duration_s(self) -> float:
        return (self.last_seen - self.first_seen).total_seconds()


@dataclass(frozen=True)
class LocationCrowdSummary:
    location_name: str
    device_count: int
    average_rssi: float
    peak_time: str
    peak_device_count: int
    total_measurements: int


@dataclass(frozen=True)
class LocationStats:
    location_id: int
    reading_count: int
    unique_devices: int
    average_rssi: int
    min_rssi: int
    max_rssi: int


@dataclass
class ComparisonReport:
    status: Status
    groups: dict[str, AggregatedGroup] = field(default_factory=dict)
    comparisons: list[PairwiseComparison] = field(default_factory=list)
    common: frozenset[str] = frozenset()
    unique_by_group: dict[str, frozenset[str]] = field(default_factory=dict)
    display: list[str] = field(default_factory=list)


@dataclass
class CrowdReport:
    status: Status
    location_name: Optional[str] = None
    snapshots: list[PresenceSnapshot] = field(default_factory=list)
    devices: list[DevicePresenceSummary] = field(default_factory=list)
    locations: list[LocationCrowdSummary] = field(default_factory=list)
    rssi_histogram: dict[int, int] = field(default_factory=dict)


@dataclass(frozen=True)
class GroupOption:
    """
    A selectable comparison group with its headline numbers.
    """
    name: str
    device_count: int
    average_rssi: int


@dataclass
class MapReport:
    status: Status
    clusters: list[LocationCluster] = field(default_factory=list)
    stats: dict[int, LocationStats] = field(default_factory=dict)
    top_devices: list[Reading] = field(default_factory=list)
    rssi_histogram: dict[int, int] = field(default_factory=dict)
    reading_count: int = 0
