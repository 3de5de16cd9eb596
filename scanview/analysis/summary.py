"""
Map-page summaries: per-location stats, reading filters, RSSI histogram.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional, Sequence

from scanview.analysis.types import LocationStats, Reading

TIME_FRAMES = {
    "day":   timedelta(days=1),
    "week":  timedelta(days=7),
    "month": timedelta(days=30),
}


def location_stats(readings: Iterable[Reading]) -> dict[int, LocationStats]:
    """
    Reading count, unique devices and RSSI spread per location id.

    Readings without a location id are grouped under 0. Average RSSI is
    rounded to whole dBm.
    """
    by_location: dict[int, list[Reading]] = defaultdict(list)
    for r in readings:
        by_location[r.location_id or 0].append(r)

    stats: dict[int, LocationStats] = {}
    for loc_id, recs in by_location.items():
        rssi = [r.rssi for r in recs if r.rssi is not None]
        stats[loc_id] = LocationStats(
            location_id=loc_id,
            reading_count=len(recs),
            unique_devices=len({r.device_id or r.device_name for r in recs}),
            average_rssi=round(sum(rssi) / len(rssi)) if rssi else 0,
            min_rssi=min(rssi) if rssi else 0,
            max_rssi=max(rssi) if rssi else 0,
        )
    return stats


def filter_readings(
    readings: Iterable[Reading],
    rssi_range: Optional[tuple[int, int]] = None,
    time_frame: str = "all",
    location_id: Optional[int] = None,
    search: Optional[str] = None,
    now: Optional[datetime] = None,
) -> list[Reading]:
    """
    Apply the map page filters.

    `rssi_range` is inclusive on both ends; readings without RSSI fail it.
    `time_frame` is one of all/day/week/month, relative to `now`.
    `search` matches device id or name, case-insensitive.
    """
    out = list(readings)
    if rssi_range is not None:
        lo, hi = rssi_range
        out = [r for r in out if r.rssi is not None and lo <= r.rssi <= hi]
    if time_frame in TIME_FRAMES:
        cutoff = (now or datetime.now(timezone.utc)) - TIME_FRAMES[time_frame]
        out = [r for r in out if r.ts >= cutoff]
    elif time_frame != "all":
        raise ValueError(f"unknown time frame {time_frame!r}")
    if location_id is not None:
        out = [r for r in out if r.location_id == location_id]
    if search:
        q = search.lower()
        out = [
            r for r in out
            if q in (r.device_id or "").lower() or q in (r.device_name or "").lower()
        ]
    return out


def top_devices(readings: Iterable[Reading], n: int = 5) -> list[Reading]:
    """
    Strongest reading per device, strongest first.
    """
    best: dict[str, Reading] = {}
    for r in readings:
        key = r.device_id or r.device_name
        if not key or r.rssi is None:
            continue
        if key not in best or best[key].rssi < r.rssi:
            best[key] = r
    return sorted(best.values(), key=lambda r: r.rssi, reverse=True)[:n]


def rssi_histogram(
    values: Sequence[int],
    step: int = 5,
    low: int = -100,
    high: int = -35,
) -> dict[int, int]:
    """
    Count RSSI values in `step` dBm bins keyed by the bin floor.

    Values outside [low, high] land in the edge bins. Every bin is present.
    """
    bins = {b: 0 for b in range(low, high + 1, step)}
    for v in values:
        key = max(low, min(high, (v // step) * step))
        bins[key] += 1
    return bins
