# scanview/server.py
"""
FastAPI server for the scanview CLI.
"""

from typing import Any, Iterator

from fastapi import Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from starlette.responses import JSONResponse

from scanview.analysis.config import AnalysisConfig
from scanview.analysis.pipelines import ComparePipeline, CrowdPipeline, LocationPipeline
from scanview.analysis.types import AggregatedGroup, ComparisonReport, CrowdReport, MapReport
from scanview.storage.dao import DAO
from scanview.utils.generation import GenerationGuard
from scanview.utils.log import get_logger
from scanview.utils.validate import CompareRequest, CrowdRequest, MapFilter

logger = get_logger(__name__)

VIEWS = ("locations", "map", "compare", "crowd")


def _group_json(g: AggregatedGroup, unique: frozenset[str]) -> dict[str, Any]:
    return {
        "name": g.name,
        "device_count": g.device_count,
        "network_count": g.network_count,
        "reading_count": len(g.readings),
        "wifi_reading_count": len(g.wifi_readings),
        "device_ids": sorted(g.device_ids),
        "unique_device_ids": sorted(unique),
        "average_rssi": g.average_rssi,
        "average_wifi_rssi": g.average_wifi_rssi,
        "latitude": g.latitude,
        "longitude": g.longitude,
        "accuracy": g.accuracy,
        "notes": g.notes,
        "first_seen": g.first_seen,
        "last_seen": g.last_seen,
        "duration_s": g.duration_s,
    }


def compare_json(report: ComparisonReport) -> dict[str, Any]:
    return jsonable_encoder({
        "status": report.status,
        "groups": [
            _group_json(g, report.unique_by_group.get(name, frozenset()))
            for name, g in report.groups.items()
        ],
        "comparisons": report.comparisons,
        "common": sorted(report.common),
        "display": report.display,
    })


def crowd_json(report: CrowdReport) -> dict[str, Any]:
    return jsonable_encoder({
        "status": report.status,
        "location_name": report.location_name,
        "snapshots": [
            {
                "ts": s.ts,
                "total_devices": s.total_devices,
                "new_devices": s.new_devices,
                "departed_devices": s.departed_devices,
                "average_rssi": s.average_rssi,
                "reading_count": s.reading_count,
                "device_ids": sorted(s.device_ids),
                "new_device_ids": sorted(s.new_device_ids),
                "departed_device_ids": sorted(s.departed_device_ids),
            }
            for s in report.snapshots
        ],
        "devices": [{**jsonable_encoder(d), "duration_s": d.duration_s} for d in report.devices],
        "locations": report.locations,
        "rssi_histogram": report.rssi_histogram,
    })


def map_json(report: MapReport) -> dict[str, Any]:
    return jsonable_encoder({
        "status": report.status,
        "clusters": [
            {**jsonable_encoder(c), "session_ids": sorted(c.session_ids)} for c in report.clusters
        ],
        "stats": list(report.stats.values()),
        "top_devices": report.top_devices,
        "rssi_histogram": report.rssi_histogram,
        "reading_count": report.reading_count,
    })


def _superseded(view: str) -> JSONResponse:
    return JSONResponse(status_code=409, content={"status": "superseded", "view": view})


def create_app(db_path: str, cfg: AnalysisConfig | None = None) -> FastAPI:
    """
    Build a FastAPI instance bound to a specific dataset DB.
    """
    app = FastAPI()
    app.state.db_path = db_path
    app.state.cfg = cfg or AnalysisConfig.default()
    app.state.guards = {view: GenerationGuard(view) for view in VIEWS}

    def get_dao(request: Request) -> Iterator[DAO]:
        dao = DAO(request.app.state.db_path)
        try:
            yield dao
        finally:
            dao.close()

    @app.get("/api/status", response_class=JSONResponse)
    def status() -> JSONResponse:
        return JSONResponse(status_code=200, content={"status": "ok"})

    @app.get("/api/time-range", response_class=JSONResponse)
    def get_time_range(dao: DAO = Depends(get_dao)) -> JSONResponse:
        """
        return min and max scan times across BLE scan rows.
        """
        min_ts, max_ts = dao.get_time_range()
        return JSONResponse(status_code=200, content={"min_ts": min_ts, "max_ts": max_ts})

    @app.get("/api/groups", response_class=JSONResponse)
    def get_groups(request: Request, by: str = "location", dao: DAO = Depends(get_dao)) -> JSONResponse:
        if by not in ("location", "session"):
            return JSONResponse(status_code=422, content={"detail": f"unknown grouping {by!r}"})
        options = ComparePipeline(dao, request.app.state.cfg).list_groups(by)
        return JSONResponse(status_code=200, content=jsonable_encoder(options))

    @app.get("/api/locations", response_class=JSONResponse)
    def get_locations(request: Request, dao: DAO = Depends(get_dao)) -> JSONResponse:
        guard = request.app.state.guards["locations"]
        token = guard.begin()
        clusters = LocationPipeline(dao, request.app.state.cfg).run(token=token)
        if clusters is None or not guard.publish(token, clusters):
            return _superseded("locations")
        return JSONResponse(
            status_code=200,
            content=[
                {**jsonable_encoder(c), "session_ids": sorted(c.session_ids)} for c in clusters
            ],
        )

    @app.post("/api/map", response_class=JSONResponse)
    def get_map(request: Request, body: MapFilter, dao: DAO = Depends(get_dao)) -> JSONResponse:
        guard = request.app.state.guards["map"]
        token = guard.begin()
        report = LocationPipeline(dao, request.app.state.cfg).map_summary(body, token=token)
        if report is None or not guard.publish(token, report):
            return _superseded("map")
        return JSONResponse(status_code=200, content=map_json(report))

    @app.post("/api/compare", response_class=JSONResponse)
    def post_compare(request: Request, body: CompareRequest, dao: DAO = Depends(get_dao)) -> JSONResponse:
        guard = request.app.state.guards["compare"]
        token = guard.begin()
        report = ComparePipeline(dao, request.app.state.cfg).run(
            body.names, by=body.by, mode=body.mode, token=token
        )
        if report is None or not guard.publish(token, report):
            return _superseded("compare")
        return JSONResponse(status_code=200, content=compare_json(report))

    @app.post("/api/crowd", response_class=JSONResponse)
    def post_crowd(request: Request, body: CrowdRequest, dao: DAO = Depends(get_dao)) -> JSONResponse:
        guard = request.app.state.guards["crowd"]
        token = guard.begin()
        report = CrowdPipeline(dao, request.app.state.cfg).run(
            location=body.location,
            start=body.start,
            end=body.end,
            scan_id=body.scan_id,
            session_id=body.session_id,
            bucket_ms=body.bucket_ms,
            rssi_threshold=body.rssi_threshold,
            token=token,
        )
        if report is None or not guard.publish(token, report):
            return _superseded("crowd")
        return JSONResponse(status_code=200, content=crowd_json(report))

    return app
