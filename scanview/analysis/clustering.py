"""
Attribute geotagged scan sessions to physical locations.

Two strategies:
- predefined matching: each reading goes to the first predefined location
  whose accuracy radius contains it (first fit, not nearest fit)
- automatic clustering: greedy single pass over the readings in input order,
  followed by an independent pass that associates sessions with clusters

Automatic clustering is order dependent. Shuffling the same readings can
produce different clusters; callers that need repeatable output must feed
readings in a repeatable order.
"""

from __future__ import annotations

from typing import Optional, Sequence

from scanview.analysis.config import AnalysisConfig
from scanview.analysis.types import LocationCluster, Reading
from scanview.utils.geo import distance, is_missing
from scanview.utils.log import get_logger
from scanview.utils.validate import LocationRow

logger = get_logger(__name__)


def _first_within(
    reading: Reading,
    clusters: Sequence[LocationCluster],
    cfg: AnalysisConfig,
    radius_m: Optional[float] = None,
) -> Optional[LocationCluster]:
    """
    Return the first cluster whose radius (or `radius_m`) contains the reading.
    """
    for c in clusters:
        d = distance(
            reading.latitude, reading.longitude, c.latitude, c.longitude,
            zero_is_missing=cfg.zero_coordinate_is_missing,
        )
        limit = radius_m if radius_m is not None else c.accuracy_m
        if d is not None and d < limit:
            return c
    return None


def _assign(cluster: LocationCluster, reading: Reading, assigned: dict[str, int]) -> None:
    # a session belongs to the first cluster any of its readings lands in
    sid = reading.session_id
    if sid and sid not in assigned:
        assigned[sid] = cluster.id
        cluster.session_ids.add(sid)


def match_predefined(
    readings: Sequence[Reading],
    locations: Sequence[LocationRow],
    cfg: AnalysisConfig,
) -> list[LocationCluster]:
    """
    Attribute readings to predefined locations, in location order.

    Locations without usable coordinates are skipped. A location without an
    accuracy uses `cfg.default_location_accuracy_m`.
    """
    clusters: list[LocationCluster] = []
    for loc in locations:
        if is_missing(loc.latitude, cfg.zero_coordinate_is_missing) or is_missing(
            loc.longitude, cfg.zero_coordinate_is_missing
        ):
            logger.debug("Skipping location %s without coordinates", loc.id)
            continue
        clusters.append(
            LocationCluster(
                id=loc.id,
                name=loc.name,
                latitude=loc.latitude,
                longitude=loc.longitude,
                accuracy_m=loc.accuracy or cfg.default_location_accuracy_m,
            )
        )

    assigned: dict[str, int] = {}
    for r in readings:
        hit = _first_within(r, clusters, cfg)
        if hit is None:
            continue
        hit.reading_count += 1
        _assign(hit, r, assigned)
    return clusters


def auto_cluster(readings: Sequence[Reading], cfg: AnalysisConfig) -> list[LocationCluster]:
    """
    Greedy single-pass clustering at `cfg.cluster_threshold_m`.

    Pass 1 walks the readings in the given order. A reading within the
    threshold of an existing cluster's centroid joins the first such cluster
    and moves its centroid to the running mean; otherwise it starts a new
    cluster. Pass 2 walks the readings again and attributes each session to
    the first cluster within the threshold of the final centroids, which
    need not be the cluster its readings formed in pass 1.
    """
    threshold = cfg.cluster_threshold_m
    clusters: list[LocationCluster] = []

    for r in readings:
        if is_missing(r.latitude, cfg.zero_coordinate_is_missing) or is_missing(
            r.longitude, cfg.zero_coordinate_is_missing
        ):
            continue
        hit = _first_within(r, clusters, cfg, radius_m=threshold)
        if hit is None:
            n = len(clusters) + 1
            clusters.append(
                LocationCluster(
                    id=n,
                    name=f"Location {n}",
                    latitude=r.latitude,
                    longitude=r.longitude,
                    accuracy_m=threshold,
                    reading_count=1,
                )
            )
            continue
        n = hit.reading_count
        hit.latitude = (hit.latitude * n + r.latitude) / (n + 1)
        hit.longitude = (hit.longitude * n + r.longitude) / (n + 1)
        hit.reading_count = n + 1

    assigned: dict[str, int] = {}
    for r in readings:
        hit = _first_within(r, clusters, cfg, radius_m=threshold)
        if hit is not None:
            _assign(hit, r, assigned)
    return clusters


def cluster_locations(
    readings: Sequence[Reading],
    locations: Sequence[LocationRow],
    cfg: AnalysisConfig,
) -> list[LocationCluster]:
    """
    Pick predefined matching when enough predefined locations exist,
    automatic clustering otherwise.
    """
    if len(locations) >= cfg.min_predefined_locations:
        logger.info("Matching readings against %d predefined locations", len(locations))
        return match_predefined(readings, locations, cfg)
    logger.info(
        "Only %d predefined locations, clustering %d readings automatically",
        len(locations), len(readings),
    )
    return auto_cluster(readings, cfg)
