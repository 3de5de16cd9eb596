# scanview/utils/geo.py

"""
Geospatial utility functions.
"""

import math
from typing import Optional, Tuple

EARTH_RADIUS_M = 6371000.0


def haversine(a: Tuple[float, float], b: Tuple[float, float]) -> float:
    """
    Compute the great-circle distance between two points on the Earth.

    Parameters
    ----------
    a
        (latitude, longitude) of point A, in decimal degrees.
    b
        (latitude, longitude) of point B, in decimal degrees.

    Returns
    -------
    float
        Distance between A and B in metres.
    """
    lat1, lon1 = a
    lat2, lon2 = b
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = phi2 - phi1
    d_lam = math.radians(lon2 - lon1)
    h = math.sin(d_phi/2)**2 + math.cos(phi1)*math.cos(phi2)*math.sin(d_lam/2)**2
    # clamp float noise so asin never sees h > 1 for antipodal points
    return 2 * EARTH_RADIUS_M * math.asin(math.sqrt(min(h, 1.0)))


def is_missing(value: Optional[float], zero_is_missing: bool = True) -> bool:
    """
    True when a coordinate should be treated as absent.

    With ``zero_is_missing`` (the default) an exact 0.0 is also absent, so
    points on the equator or the prime meridian are skipped.
    """
    if value is None:
        return True
    return zero_is_missing and value == 0


def distance(
    lat1: Optional[float],
    lon1: Optional[float],
    lat2: Optional[float],
    lon2: Optional[float],
    zero_is_missing: bool = True,
) -> Optional[float]:
    """
    Haversine distance in metres, or None if any coordinate is missing.
    """
    if any(is_missing(v, zero_is_missing) for v in (lat1, lon1, lat2, lon2)):
        return None
    return haversine((lat1, lon1), (lat2, lon2))
