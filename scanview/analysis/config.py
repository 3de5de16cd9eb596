# scanview/analysis/config.py

from dataclasses import dataclass

@dataclass
class AnalysisConfig:
    """
    Tunables for the clustering, comparison and presence engines.

    Attributes
    ----------
    cluster_threshold_m
        Radius (m) within which a reading joins an automatic cluster.
    default_location_accuracy_m
        Match radius (m) for predefined locations without an accuracy.
    min_predefined_locations
        Below this many predefined locations, cluster automatically.
    bucket_ms
        Width (ms) of a presence snapshot bucket.
    rssi_threshold
        Weakest RSSI (dBm) kept by the crowd pipeline, None keeps all.
    zero_coordinate_is_missing
        Treat a 0.0 latitude/longitude as absent.
    poll_interval_s
        Live RSSI collector tick interval (s).
    """
    cluster_threshold_m:         float = 20.0
    default_location_accuracy_m: float = 50.0
    min_predefined_locations:    int   = 3
    bucket_ms:                   int   = 1000
    rssi_threshold:              int | None = -90
    zero_coordinate_is_missing:  bool  = True
    poll_interval_s:             float = 0.5

    @classmethod
    def default(cls):
        """Preset with one-second presence buckets."""
        return cls()

    @classmethod
    def crowd(cls):
        """Preset for crowd overviews (30 s buckets, weak signals kept)."""
        return cls(bucket_ms=30_000, rssi_threshold=None)
