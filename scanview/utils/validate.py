"""
Pydantic schemas for stored rows and API payloads.

Rows coming out of a RowSource are decoded here once; anything that does not
match the table schema is rejected with RowShapeError instead of being
guessed at further down.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Literal, Optional, Sequence, Type, TypeVar

from pydantic import AfterValidator, BaseModel, Field, TypeAdapter, ValidationError

from scanview.storage.source import Row, ScanviewError

class RowShapeError(ScanviewError):
    """
    A stored row does not match the expected table schema.
    """
    def __init__(self, table: str, index: int, error: ValidationError) -> None:
        super().__init__(
            f"{table}[{index}]: {error.error_count()} invalid field(s): "
            + "; ".join(f"{'.'.join(map(str, e['loc']))}: {e['msg']}" for e in error.errors())
        )
        self.table = table
        self.index = index
        self.error = error

def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


UtcDatetime = Annotated[datetime, AfterValidator(_as_utc)]

_TIMESTAMP = TypeAdapter(UtcDatetime)


def parse_timestamp(value: str) -> datetime:
    """
    Parse an ISO 8601 timestamp (a trailing `Z` included); naive means UTC.
    """
    return _TIMESTAMP.validate_python(value)


class ScannedDeviceRow(BaseModel):
    """
    One BLE scan record from `scanned_device`.
    """
    id: Optional[int] = None
    session_id: Optional[str] = None
    location_id: Optional[int] = None
    location_name: Optional[str] = None
    device_id: Optional[str] = None
    device_name: Optional[str] = None
    rssi: Optional[int] = None
    scan_time: UtcDatetime
    device_latitude: Optional[float] = None
    device_longitude: Optional[float] = None
    device_accuracy: Optional[float] = None
    location_latitude: Optional[float] = None
    location_longitude: Optional[float] = None
    notes: Optional[str] = None

class WifiScanRow(BaseModel):
    """
    One WiFi network sighting from `wifi_scan`.
    """
    id: Optional[int] = None
    session_id: Optional[str] = None
    location_id: Optional[int] = None
    location_name: Optional[str] = None
    ssid: Optional[str] = None
    bssid: Optional[str] = None
    signal_strength: Optional[int] = None
    frequency: Optional[int] = None
    scan_time: UtcDatetime
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    accuracy: Optional[float] = None

class RssiSampleRow(BaseModel):
    """
    One high-frequency sample from `rssi_timeseries`.
    """
    id: Optional[int] = None
    device_id: str
    session_id: Optional[str] = None
    rssi: int
    timestamp: UtcDatetime
    sequence_number: int = 0
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    accuracy: Optional[float] = None

class LocationRow(BaseModel):
    """
    Predefined physical location from `location`.
    """
    id: int
    name: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    accuracy: Optional[float] = None
    notes: Optional[str] = None
    created_at: Optional[UtcDatetime] = None

class LocationScannedRow(BaseModel):
    """
    Scan-run metadata from `location_scanned`.
    """
    id: int
    location_name: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    scan_start_time: UtcDatetime
    scan_duration_seconds: int = 0
    notes: Optional[str] = None
    created_at: Optional[UtcDatetime] = None

TABLE_MODELS: dict[str, Type[BaseModel]] = {
    "scanned_device":   ScannedDeviceRow,
    "wifi_scan":        WifiScanRow,
    "rssi_timeseries":  RssiSampleRow,
    "location":         LocationRow,
    "location_scanned": LocationScannedRow,
}

M = TypeVar("M", bound=BaseModel)

def decode_rows(model: Type[M], rows: Sequence[Row], table: str) -> list[M]:
    """
    Validate raw rows against `model`, failing on the first bad row.
    """
    decoded: list[M] = []
    for i, row in enumerate(rows):
        try:
            decoded.append(model.model_validate(row))
        except ValidationError as exc:
            raise RowShapeError(table, i, exc) from exc
    return decoded

class DisplayMode(str, Enum):
    ALL = "all"
    COMMON = "common"
    UNIQUE = "unique"

class CompareRequest(BaseModel):
    names: list[str] = Field(min_length=2, max_length=3)
    by: Literal["location", "session"] = "location"
    mode: DisplayMode = DisplayMode.ALL

class CrowdRequest(BaseModel):
    location: Optional[str] = None
    scan_id: Optional[int] = None
    session_id: Optional[str] = None
    start: Optional[UtcDatetime] = None
    end: Optional[UtcDatetime] = None
    bucket_ms: Optional[int] = Field(default=None, gt=0)
    rssi_threshold: Optional[int] = None

class MapFilter(BaseModel):
    rssi_range: Optional[tuple[int, int]] = None
    time_frame: Literal["all", "day", "week", "month"] = "all"
    location_id: Optional[int] = None
    search: Optional[str] = None
