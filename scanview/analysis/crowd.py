"""
Presence ("crowd") analysis over a time-ordered reading stream.

- bucket readings into fixed windows (floor of epoch ms)
- new devices: not seen in any earlier bucket
- departed devices: present in the previous bucket, absent from this one
- per-device presence summaries and per-location peaks
"""

from __future__ import annotations

import math
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Iterable, Sequence

from scanview.analysis.types import (
    DevicePresenceSummary,
    LocationCrowdSummary,
    PresenceSnapshot,
    Reading,
)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_MS = timedelta(milliseconds=1)


def bucket_start(ts: datetime, bucket_ms: int) -> int:
    """
    Epoch milliseconds of the bucket containing `ts`.
    """
    epoch_ms = (ts - EPOCH) // _MS
    return (epoch_ms // bucket_ms) * bucket_ms


def sort_readings(readings: Iterable[Reading]) -> list[Reading]:
    """
    Stable sort by timestamp, then sequence number.
    """
    return sorted(readings, key=lambda r: (r.ts, r.sequence_number))


def _mean_rssi(readings: Sequence[Reading]) -> float:
    values = [r.rssi for r in readings if r.rssi is not None]
    return sum(values) / len(values) if values else 0.0


def presence_snapshots(readings: Iterable[Reading], bucket_ms: int = 1000) -> list[PresenceSnapshot]:
    """
    Bucket readings and derive arrivals and departures per bucket.
    """
    buckets: dict[int, list[Reading]] = defaultdict(list)
    for r in sort_readings(readings):
        buckets[bucket_start(r.ts, bucket_ms)].append(r)

    keys = sorted(buckets)
    present = {k: frozenset(r.device_id for r in buckets[k] if r.device_id) for k in keys}

    ever_seen: set[str] = set()
    new: dict[int, frozenset[str]] = {}
    for k in keys:
        arrivals = present[k] - ever_seen
        ever_seen |= arrivals
        new[k] = arrivals

    snapshots: list[PresenceSnapshot] = []
    for i, k in enumerate(keys):
        departed = present[keys[i - 1]] - present[k] if i > 0 else frozenset()
        snapshots.append(
            PresenceSnapshot(
                ts=EPOCH + timedelta(milliseconds=k),
                device_ids=present[k],
                new_device_ids=new[k],
                departed_device_ids=departed,
                average_rssi=_mean_rssi(buckets[k]),
                reading_count=len(buckets[k]),
            )
        )
    return snapshots


def device_presence(readings: Iterable[Reading]) -> list[DevicePresenceSummary]:
    """
    Per-device first/last seen and RSSI statistics, longest presence first.

    Signal stability is the population standard deviation of the device's
    RSSI; lower is steadier.
    """
    by_device: dict[str, list[Reading]] = defaultdict(list)
    for r in sort_readings(readings):
        if r.device_id:
            by_device[r.device_id].append(r)

    summaries: list[DevicePresenceSummary] = []
    for device_id, recs in by_device.items():
        rssi = [r.rssi for r in recs if r.rssi is not None]
        avg = sum(rssi) / len(rssi) if rssi else 0.0
        variance = sum((v - avg) ** 2 for v in rssi) / len(rssi) if rssi else 0.0
        summaries.append(
            DevicePresenceSummary(
                device_id=device_id,
                device_name=next((r.device_name for r in recs if r.device_name), None),
                first_seen=recs[0].ts,
                last_seen=recs[-1].ts,
                appearance_count=len(recs),
                rssi_min=min(rssi) if rssi else 0,
                rssi_max=max(rssi) if rssi else 0,
                rssi_avg=avg,
                signal_stability=math.sqrt(variance),
            )
        )
    summaries.sort(key=lambda s: s.duration_s, reverse=True)
    return summaries


def location_crowds(readings: Iterable[Reading]) -> list[LocationCrowdSummary]:
    """
    Per-location device counts and the busiest hour of day (UTC).
    """
    by_location: dict[str, list[Reading]] = defaultdict(list)
    for r in readings:
        by_location[r.location_name or "Unknown"].append(r)

    out: list[LocationCrowdSummary] = []
    for name, recs in by_location.items():
        hours: dict[str, set[str]] = defaultdict(set)
        for r in recs:
            if r.device_id:
                hours[f"{r.ts.hour}:00"].add(r.device_id)
        peak_time, peak_count = "N/A", 0
        for hour, devices in hours.items():
            if len(devices) > peak_count:
                peak_time, peak_count = hour, len(devices)
        out.append(
            LocationCrowdSummary(
                location_name=name,
                device_count=len({r.device_id for r in recs if r.device_id}),
                average_rssi=_mean_rssi(recs),
                peak_time=peak_time,
                peak_device_count=peak_count,
                total_measurements=len(recs),
            )
        )
    return out
