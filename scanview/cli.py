#!/usr/bin/env python3
"""
CLI entry point for the scanview BLE/WiFi scan analytics toolkit.

Defines the following commands:
  scanview import NAME <src_dir>
  scanview locations NAME
  scanview compare NAME G1 G2 [G3] [--by location|session] [--mode all|common|unique]
  scanview crowd NAME [LOCATION] [--scan-id ID] [--session ID] [--from ISO8601] [--to ISO8601] [--bucket-ms N]
  scanview collect NAME SESSION [--interval S] [--duration S]
  scanview serve NAME [--port 8000]
  scanview version
"""

import asyncio
import sys
import hashlib
from argparse import ArgumentParser, Namespace
from datetime import datetime
from importlib.metadata import PackageNotFoundError, version as _get_version

import uvicorn
from rich.console import Console
from rich.table import Table

from scanview.utils.log import get_logger
from scanview.utils.validate import DisplayMode, RowShapeError, parse_timestamp
from scanview.storage.dao import DAO
from scanview.storage.source import QueryError
from scanview.server import create_app
from scanview.parsers import rows
from scanview.collector import RssiCollector
from scanview.analysis.config import AnalysisConfig
from scanview.analysis.pipelines import ComparePipeline, CrowdPipeline, LocationPipeline

logger = get_logger(__name__)
console = Console()


def db_path_for(name: str) -> str:
    return f"sv_{name}.sqlite"


def _compute_sha256(file_path: str, chunk_size: int = 8192) -> str:
    h = hashlib.sha256()
    with open(file_path, "rb") as f:
        for chunk in iter(lambda: f.read(chunk_size), b""):
            h.update(chunk)
    return h.hexdigest()


def import_exports(name: str, src_dir: str) -> int:
    """
    Import JSON/CSV table exports into the dataset DB.

    Parameters
    ----------
    name
        Dataset name, which dictates the SQLite database file name.
    src_dir
        Directory searched recursively for `<table>*.json|csv` files.

    Returns
    -------
    int
        Number of rows imported.
    """
    logger.info("Import: dataset=%s, src_dir=%s", name, src_dir)
    dao = DAO(db_path_for(name))
    total = 0
    for path in rows.iter_exports(src_dir):
        sha256 = _compute_sha256(str(path))
        if dao.import_exists(sha256):
            logger.info("Skipping already imported file: %s", path)
            continue
        try:
            table, records = rows.parse_export(path)
        except (ValueError, RowShapeError) as exc:
            logger.error("Skipping %s: %s", path, exc)
            continue
        n = dao.insert(table, (r.model_dump() for r in records))
        dao.add_import(sha256, table, str(path), n)
        logger.info("Imported %d rows into %s from %s", n, table, path)
        total += n
    return total


def locations(name: str) -> None:
    """
    Print location clusters for the dataset.
    """
    dao = DAO(db_path_for(name))
    clusters = LocationPipeline(dao, AnalysisConfig.default()).run() or []
    table = Table(title=f"Locations ({name})")
    for col in ("id", "name", "lat", "lon", "radius m", "sessions", "readings"):
        table.add_column(col)
    for c in clusters:
        table.add_row(
            str(c.id), c.name, f"{c.latitude:.6f}", f"{c.longitude:.6f}",
            f"{c.accuracy_m:.0f}", str(len(c.session_ids)), str(c.reading_count),
        )
    console.print(table)


def compare(name: str, groups: list[str], by: str, mode: str) -> None:
    """
    Compare 2-3 locations or sessions and print the pairwise results.
    """
    dao = DAO(db_path_for(name))
    report = ComparePipeline(dao, AnalysisConfig.default()).run(groups, by=by, mode=DisplayMode(mode))
    logger.info("Comparison status: %s", report.status.value)

    summary = Table(title="Groups")
    for col in ("group", "devices", "networks", "avg rssi", "avg wifi rssi", "duration s", "unique"):
        summary.add_column(col)
    for g in report.groups.values():
        summary.add_row(
            g.name, str(g.device_count), str(g.network_count),
            f"{g.average_rssi:.1f}", f"{g.average_wifi_rssi:.1f}", f"{g.duration_s:.0f}",
            str(len(report.unique_by_group.get(g.name, ()))),
        )
    console.print(summary)

    pairs = Table(title="Pairs")
    for col in ("a", "b", "distance m", "shared devices", "shared networks", "shared %", "Δ rssi", "Δ wifi rssi"):
        pairs.add_column(col)
    for p in report.comparisons:
        pairs.add_row(
            p.group_a, p.group_b, f"{p.distance_m:.1f}", str(p.shared_devices),
            str(p.shared_networks), f"{p.shared_percentage:.1f}",
            f"{p.rssi_difference:.1f}", f"{p.wifi_rssi_difference:.1f}",
        )
    console.print(pairs)
    console.print(f"{mode} devices ({len(report.display)}): " + ", ".join(report.display))


def crowd(
    name: str,
    location: str | None,
    scan_id: int | None,
    session: str | None,
    from_ts: datetime | None,
    to_ts: datetime | None,
    bucket_ms: int | None,
) -> None:
    """
    Print presence snapshots and the longest-present devices for a location.
    """
    dao = DAO(db_path_for(name))
    report = CrowdPipeline(dao, AnalysisConfig.default()).run(
        location=location,
        start=from_ts,
        end=to_ts,
        scan_id=scan_id,
        session_id=session,
        bucket_ms=bucket_ms,
    )
    logger.info("Crowd status: %s", report.status.value)

    timeline = Table(title=f"Presence ({report.location_name or 'all locations'})")
    for col in ("bucket", "devices", "new", "departed", "avg rssi"):
        timeline.add_column(col)
    for s in report.snapshots:
        timeline.add_row(
            s.ts.isoformat(), str(s.total_devices), str(s.new_devices),
            str(s.departed_devices), f"{s.average_rssi:.1f}",
        )
    console.print(timeline)

    devices = Table(title="Devices")
    for col in ("device", "first seen", "last seen", "duration s", "seen", "avg rssi", "stability"):
        devices.add_column(col)
    for d in report.devices[:20]:
        devices.add_row(
            d.device_name or d.device_id, d.first_seen.isoformat(), d.last_seen.isoformat(),
            f"{d.duration_s:.0f}", str(d.appearance_count), f"{d.rssi_avg:.1f}",
            f"{d.signal_stability:.1f}",
        )
    console.print(devices)


def collect(name: str, session: str, interval: float, duration: float | None) -> None:
    """
    Sample a session's devices into rssi_timeseries until interrupted
    or `duration` seconds elapse.
    """
    dao = DAO(db_path_for(name))

    async def _collect() -> int:
        async with RssiCollector(dao, session, interval_s=interval) as collector:
            if duration is None:
                await asyncio.Event().wait()
            else:
                await asyncio.sleep(duration)
        return collector.sequence_number

    try:
        n = asyncio.run(_collect())
        logger.info("Collected %d samples", n)
    except KeyboardInterrupt:
        logger.info("Collection interrupted")


def serve(name: str, port: int) -> None:
    """
    Spin up FastAPI+Uvicorn to serve the analytics API.

    Parameters
    ----------
    name
        Dataset name, which dictates the SQLite database file name.
    port
        Port on which to serve HTTP.
    """
    logger.info("Serve: dataset=%s, port=%d", name, port)
    app = create_app(db_path_for(name))
    uvicorn.run(app, host="127.0.0.1", port=port)


def version() -> None:
    """
    Print the installed scanview package version.
    """
    try:
        ver = _get_version("scanview")
    except PackageNotFoundError:
        ver = "unknown"
    logger.info("scanview version %s", ver)


def parse_args(argv: list[str] | None = None) -> Namespace:
    """
    Parse command-line arguments and return the populated namespace.
    """
    parser = ArgumentParser(prog="scanview")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # scanview import
    p = subparsers.add_parser("import", help="Import table exports.")
    p.add_argument("name", type=str, help="Dataset name.")
    p.add_argument("src_dir", type=str, help="Directory of JSON/CSV table exports.")

    # scanview locations
    p = subparsers.add_parser("locations", help="List location clusters.")
    p.add_argument("name", type=str, help="Dataset name.")

    # scanview compare
    p = subparsers.add_parser("compare", help="Compare 2-3 locations or sessions.")
    p.add_argument("name", type=str, help="Dataset name.")
    p.add_argument("groups", nargs="+", help="Location names or session ids.")
    p.add_argument("--by", choices=("location", "session"), default="location")
    p.add_argument("--mode", choices=[m.value for m in DisplayMode], default="all")

    # scanview crowd
    p = subparsers.add_parser("crowd", help="Presence analysis for a location.")
    p.add_argument("name", type=str, help="Dataset name.")
    p.add_argument("location", nargs="?", default=None, help="Location name.")
    p.add_argument("--scan-id", type=int, help="location_scanned id.")
    p.add_argument("--session", type=str, help="Only rows from this session.")
    p.add_argument("--from", dest="from_ts", type=parse_timestamp, help="ISO8601 start time filter.")
    p.add_argument("--to", dest="to_ts", type=parse_timestamp, help="ISO8601 end time filter.")
    p.add_argument("--bucket-ms", type=int, help="Bucket width in milliseconds.")

    # scanview collect
    p = subparsers.add_parser("collect", help="Live RSSI sampling for a session.")
    p.add_argument("name", type=str, help="Dataset name.")
    p.add_argument("session", type=str, help="Session id.")
    p.add_argument("--interval", type=float, default=AnalysisConfig.poll_interval_s)
    p.add_argument("--duration", type=float, help="Stop after this many seconds.")

    # scanview serve
    p = subparsers.add_parser("serve", help="Serve via FastAPI + Uvicorn.")
    p.add_argument("name", type=str, help="Dataset name.")
    p.add_argument(
        "--port", type=int, default=8000, help="Port number to serve on."
    )

    # scanview version
    subparsers.add_parser("version", help="Show scanview version and exit.")

    args = parser.parse_args(argv)
    if args.command == "compare" and not 2 <= len(args.groups) <= 3:
        parser.error("compare takes 2 or 3 groups")
    return args


def main(argv: list[str] | None = None) -> None:
    """
    Entry point: dispatch to the selected subcommand.
    """
    args = parse_args(argv)
    try:
        match args.command:
            case "import":
                import_exports(args.name, args.src_dir)
            case "locations":
                locations(args.name)
            case "compare":
                compare(args.name, args.groups, args.by, args.mode)
            case "crowd":
                crowd(
                    args.name, args.location, args.scan_id, args.session,
                    args.from_ts, args.to_ts, args.bucket_ms,
                )
            case "collect":
                collect(args.name, args.session, args.interval, args.duration)
            case "serve":
                serve(args.name, args.port)
            case "version":
                version()
            case _:
                sys.exit(1)
    except QueryError as exc:
        logger.error("%s", exc)
        sys.exit(1)


if __name__ == "__main__":
    main()
