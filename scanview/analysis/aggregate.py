"""
Roll raw BLE and WiFi readings for one session or location into an AggregatedGroup.
"""

from __future__ import annotations

from typing import Optional, Sequence

from scanview.analysis.types import AggregatedGroup, Reading, WifiReading
from scanview.utils.geo import is_missing


def _mean(values: list[int]) -> float:
    return sum(values) / len(values) if values else 0.0


def aggregate_group(
    name: str,
    readings: Sequence[Reading],
    wifi_readings: Sequence[WifiReading] = (),
    latitude: Optional[float] = None,
    longitude: Optional[float] = None,
    accuracy: Optional[float] = None,
    notes: Optional[str] = None,
    zero_is_missing: bool = True,
) -> AggregatedGroup:
    """
    Build the roll-up for one group key.

    Empty device ids and missing (or 0) RSSI values are skipped. Averages are
    0 when nothing contributes. When no coordinates are passed in, the first
    reading carrying both coordinates supplies them.
    """
    device_ids = frozenset(r.device_id for r in readings if r.device_id)
    bssids = frozenset(w.bssid for w in wifi_readings if w.bssid)

    avg_rssi = _mean([r.rssi for r in readings if r.rssi])
    avg_wifi = _mean([w.signal_strength for w in wifi_readings if w.signal_strength])

    if latitude is None and longitude is None:
        for r in (*readings, *wifi_readings):
            if not is_missing(r.latitude, zero_is_missing) and not is_missing(r.longitude, zero_is_missing):
                latitude, longitude, accuracy = r.latitude, r.longitude, r.accuracy
                break

    stamps = [r.ts for r in readings] + [w.ts for w in wifi_readings]
    first_seen = min(stamps) if stamps else None
    last_seen = max(stamps) if stamps else None
    duration = (last_seen - first_seen).total_seconds() if stamps else 0.0

    return AggregatedGroup(
        name=name,
        device_ids=device_ids,
        network_bssids=bssids,
        readings=tuple(readings),
        wifi_readings=tuple(wifi_readings),
        average_rssi=avg_rssi,
        average_wifi_rssi=avg_wifi,
        latitude=latitude,
        longitude=longitude,
        accuracy=accuracy,
        notes=notes,
        first_seen=first_seen,
        last_seen=last_seen,
        duration_s=duration,
    )
