"""
Query-to-report pipelines behind the CLI commands and HTTP endpoints.

Every run queries the row source afresh and builds its derived structures
from scratch. A failed query (or a row that does not decode) is logged and
turns into an empty report with status `error`; nothing is retried. When a
Generation token is passed and a newer run starts before this one finishes,
the run returns None instead of a report.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta
from typing import Iterable, Optional, Sequence, Type, TypeVar

from pydantic import BaseModel

from scanview.analysis.aggregate import aggregate_group
from scanview.analysis.clustering import cluster_locations
from scanview.analysis.compare import common_devices, compare_groups, display_devices, unique_by_group
from scanview.analysis.config import AnalysisConfig
from scanview.analysis.crowd import device_presence, location_crowds, presence_snapshots, sort_readings
from scanview.analysis.summary import filter_readings, location_stats, rssi_histogram, top_devices
from scanview.analysis.types import (
    ComparisonReport,
    CrowdReport,
    GroupOption,
    LocationCluster,
    MapReport,
    Reading,
    Status,
    WifiReading,
)
from scanview.storage.source import Filter, Order, QueryError, RowSource, ScanviewError
from scanview.utils.generation import Generation
from scanview.utils.log import get_logger
from scanview.utils.validate import (
    DisplayMode,
    LocationRow,
    LocationScannedRow,
    MapFilter,
    RowShapeError,
    RssiSampleRow,
    ScannedDeviceRow,
    WifiScanRow,
    decode_rows,
)

logger = get_logger(__name__)

M = TypeVar("M", bound=BaseModel)

GROUP_COLUMNS = {"location": "location_name", "session": "session_id"}


class Superseded(ScanviewError):
    """
    A newer run of the same view started while this one was in flight.
    """


class _Pipeline:
    def __init__(self, source: RowSource, cfg: AnalysisConfig | None = None) -> None:
        self.source = source
        self.cfg = cfg or AnalysisConfig.default()
        self.token: Optional[Generation] = None

    def _fetch(
        self,
        table: str,
        model: Type[M],
        filters: Sequence[Filter] = (),
        order: Optional[Order] = None,
        limit: Optional[int] = None,
    ) -> list[M]:
        rows = self.source.query(table, filters, order, limit)
        if self.token is not None and not self.token.is_current:
            raise Superseded(table)
        return decode_rows(model, rows, table)


class LocationPipeline(_Pipeline):
    """
    Builds location clusters and map summaries.
    """

    def _load(self) -> tuple[list[LocationRow], list[Reading]]:
        locations = self._fetch("location", LocationRow, order=Order("id"))
        scans = self._fetch(
            "scanned_device",
            ScannedDeviceRow,
            [Filter("device_latitude", "not_null"), Filter("device_longitude", "not_null")],
            Order("id"),
        )
        by_name = {loc.name: loc.id for loc in locations}
        readings = []
        for row in scans:
            r = Reading.from_scan(row)
            if not r.location_id and r.location_name in by_name:
                r = replace(r, location_id=by_name[r.location_name])
            readings.append(r)
        return locations, readings

    def run(self, token: Optional[Generation] = None) -> Optional[list[LocationCluster]]:
        self.token = token
        try:
            locations, readings = self._load()
        except Superseded:
            return None
        except (QueryError, RowShapeError) as exc:
            logger.error("Location clustering aborted: %s", exc)
            return []
        clusters = cluster_locations(readings, locations, self.cfg)
        logger.info("Built %d location clusters from %d readings", len(clusters), len(readings))
        return clusters

    def map_summary(
        self,
        flt: Optional[MapFilter] = None,
        now: Optional[datetime] = None,
        token: Optional[Generation] = None,
    ) -> Optional[MapReport]:
        self.token = token
        flt = flt or MapFilter()
        try:
            locations, readings = self._load()
        except Superseded:
            return None
        except (QueryError, RowShapeError) as exc:
            logger.error("Map summary aborted: %s", exc)
            return MapReport(Status.ERROR)

        clusters = cluster_locations(readings, locations, self.cfg)
        shown = filter_readings(
            readings,
            rssi_range=flt.rssi_range,
            time_frame=flt.time_frame,
            location_id=flt.location_id,
            search=flt.search,
            now=now,
        )
        if flt.location_id is not None:
            clusters = [c for c in clusters if c.id == flt.location_id]
        return MapReport(
            status=Status.OK if readings else Status.NO_DATA,
            clusters=clusters,
            stats=location_stats(shown),
            top_devices=top_devices(shown),
            rssi_histogram=rssi_histogram([r.rssi for r in shown if r.rssi is not None]),
            reading_count=len(shown),
        )


class ComparePipeline(_Pipeline):
    """
    Aggregates 2-3 sessions or locations and compares them.
    """

    def list_groups(self, by: str = "location") -> list[GroupOption]:
        """
        Selectable groups with unique-device count and rounded mean RSSI.
        """
        column = GROUP_COLUMNS[by]
        try:
            rows = self._fetch("scanned_device", ScannedDeviceRow, [Filter(column, "not_null")])
        except (QueryError, RowShapeError) as exc:
            logger.error("Listing %s groups failed: %s", by, exc)
            return []
        devices: dict[str, set[str]] = {}
        rssi: dict[str, list[int]] = {}
        for row in rows:
            key = getattr(row, column)
            devices.setdefault(key, set())
            rssi.setdefault(key, [])
            if row.device_id:
                devices[key].add(row.device_id)
            if row.rssi:
                rssi[key].append(row.rssi)
        return [
            GroupOption(
                name=key,
                device_count=len(ids),
                average_rssi=round(sum(rssi[key]) / len(rssi[key])) if rssi[key] else 0,
            )
            for key, ids in devices.items()
        ]

    def _group(self, name: str, column: str):
        ble = self._fetch(
            "scanned_device", ScannedDeviceRow,
            [Filter(column, "eq", name)], Order("scan_time", ascending=False),
        )
        wifi = self._fetch(
            "wifi_scan", WifiScanRow,
            [Filter(column, "eq", name)], Order("scan_time", ascending=False),
        )
        lat = lon = None
        if column == "location_name":
            for row in ble:
                if row.location_latitude and row.location_longitude:
                    lat, lon = row.location_latitude, row.location_longitude
                    break
        notes = next((row.notes for row in ble if row.notes), None)
        return aggregate_group(
            name,
            [Reading.from_scan(r) for r in ble],
            [WifiReading.from_scan(w) for w in wifi],
            latitude=lat,
            longitude=lon,
            notes=notes,
            zero_is_missing=self.cfg.zero_coordinate_is_missing,
        )

    def run(
        self,
        names: Sequence[str],
        by: str = "location",
        mode: DisplayMode = DisplayMode.ALL,
        token: Optional[Generation] = None,
    ) -> Optional[ComparisonReport]:
        self.token = token
        column = GROUP_COLUMNS[by]
        logger.info("Comparing %s groups: %s", by, ", ".join(names))
        try:
            groups = {name: self._group(name, column) for name in names}
        except Superseded:
            return None
        except (QueryError, RowShapeError) as exc:
            logger.error("Comparison aborted: %s", exc)
            return ComparisonReport(Status.ERROR)

        device_sets = {name: g.device_ids for name, g in groups.items()}
        has_data = any(g.readings or g.wifi_readings for g in groups.values())
        return ComparisonReport(
            status=Status.OK if has_data else Status.NO_DATA,
            groups=groups,
            comparisons=compare_groups(groups, self.cfg.zero_coordinate_is_missing),
            common=common_devices(list(names), device_sets),
            unique_by_group=unique_by_group(device_sets),
            display=display_devices(mode, list(names), device_sets),
        )


def _merge_rows(batches: Iterable[list[ScannedDeviceRow]]) -> list[ScannedDeviceRow]:
    """
    Union of row batches, de-duplicated by row id, ordered by scan time.
    """
    seen: set[int] = set()
    merged: list[ScannedDeviceRow] = []
    for batch in batches:
        for row in batch:
            if row.id is not None:
                if row.id in seen:
                    continue
                seen.add(row.id)
            merged.append(row)
    merged.sort(key=lambda r: r.scan_time)
    return merged


class CrowdPipeline(_Pipeline):
    """
    Presence analysis for one location over a time range.
    """

    def _scan_rows(
        self,
        location: Optional[str],
        location_id: Optional[int],
        session_id: Optional[str],
        window: list[Filter],
    ) -> list[ScannedDeviceRow]:
        order = Order("scan_time")
        filters = list(window)
        if session_id:
            filters.append(Filter("session_id", "eq", session_id))
        # a scan run matches rows tagged with its id or with its location name
        keys = []
        if location_id is not None:
            keys.append(Filter("location_id", "eq", location_id))
        if location:
            keys.append(Filter("location_name", "eq", location))
        if keys:
            rows = _merge_rows(
                self._fetch("scanned_device", ScannedDeviceRow, [key] + filters, order) for key in keys
            )
        else:
            rows = self._fetch("scanned_device", ScannedDeviceRow, filters, order)
        if rows or not location:
            return rows
        logger.info("No rows for %r, retrying with a name substring match", location)
        return self._fetch(
            "scanned_device", ScannedDeviceRow,
            [Filter("location_name", "like", location)] + filters, order,
        )

    def run(
        self,
        location: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        scan_id: Optional[int] = None,
        session_id: Optional[str] = None,
        bucket_ms: Optional[int] = None,
        rssi_threshold: Optional[int] = None,
        token: Optional[Generation] = None,
    ) -> Optional[CrowdReport]:
        """
        Run presence analysis.

        With `scan_id`, the location name and time window come from the
        `location_scanned` record and scan rows are matched by its id first.
        Scan rows are merged with `rssi_timeseries` samples of the same
        devices inside the window.
        """
        self.token = token
        bucket_ms = bucket_ms or self.cfg.bucket_ms
        threshold = rssi_threshold if rssi_threshold is not None else self.cfg.rssi_threshold
        location_id = None
        try:
            if scan_id is not None:
                scans = self._fetch("location_scanned", LocationScannedRow, [Filter("id", "eq", scan_id)])
                if not scans:
                    logger.warning("No location_scanned record %s", scan_id)
                    return CrowdReport(Status.NO_DATA)
                location, location_id = scans[0].location_name, scans[0].id
                start = scans[0].scan_start_time
                end = start + timedelta(seconds=scans[0].scan_duration_seconds)

            def window(ts_column: str) -> list[Filter]:
                filters = []
                if start is not None:
                    filters.append(Filter(ts_column, "gte", start))
                if end is not None:
                    filters.append(Filter(ts_column, "lt", end))
                if threshold is not None:
                    filters.append(Filter("rssi", "gte", threshold))
                return filters

            scans_rows = self._scan_rows(location, location_id, session_id, window("scan_time"))
            if not scans_rows:
                logger.info("No device data for %r", location)
                return CrowdReport(Status.NO_DATA, location_name=location)

            device_ids = sorted({r.device_id for r in scans_rows if r.device_id})
            samples = self._fetch(
                "rssi_timeseries", RssiSampleRow,
                [Filter("device_id", "in", device_ids)] + window("timestamp"),
                Order("timestamp"),
            )
        except Superseded:
            return None
        except (QueryError, RowShapeError) as exc:
            logger.error("Crowd analysis aborted: %s", exc)
            return CrowdReport(Status.ERROR, location_name=location)

        names = {r.device_id: r.location_name for r in scans_rows}
        readings = sort_readings(
            [Reading.from_scan(r) for r in scans_rows]
            + [Reading.from_sample(s, names.get(s.device_id)) for s in samples]
        )
        logger.info(
            "Crowd analysis over %d scan rows and %d samples (%d ms buckets)",
            len(scans_rows), len(samples), bucket_ms,
        )
        return CrowdReport(
            status=Status.OK,
            location_name=location,
            snapshots=presence_snapshots(readings, bucket_ms),
            devices=device_presence(readings),
            locations=location_crowds(readings),
            rssi_histogram=rssi_histogram([r.rssi for r in readings if r.rssi is not None]),
        )
