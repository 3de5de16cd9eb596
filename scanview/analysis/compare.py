"""
Pairwise comparison of aggregated groups and device-set operations over them.
"""

from __future__ import annotations

from typing import Mapping, Sequence

from scanview.analysis.types import AggregatedGroup, PairwiseComparison
from scanview.utils.geo import distance
from scanview.utils.validate import DisplayMode


def _overlap_pct(a: frozenset[str], b: frozenset[str]) -> float | None:
    union = a | b
    if not union:
        return None
    return len(a & b) / len(union) * 100


def shared_percentage(a: AggregatedGroup, b: AggregatedGroup) -> float:
    """
    Mean of the device and network overlap percentages, using whichever is
    defined when only one kind was observed, 0 when neither was.
    """
    pcts = [
        p for p in (
            _overlap_pct(a.device_ids, b.device_ids),
            _overlap_pct(a.network_bssids, b.network_bssids),
        )
        if p is not None
    ]
    return sum(pcts) / len(pcts) if pcts else 0.0


def compare_pair(a: AggregatedGroup, b: AggregatedGroup, zero_is_missing: bool = True) -> PairwiseComparison:
    d = distance(a.latitude, a.longitude, b.latitude, b.longitude, zero_is_missing=zero_is_missing)
    return PairwiseComparison(
        group_a=a.name,
        group_b=b.name,
        # unknown distance is reported as 0
        distance_m=d or 0.0,
        shared_devices=len(a.device_ids & b.device_ids),
        shared_networks=len(a.network_bssids & b.network_bssids),
        shared_percentage=shared_percentage(a, b),
        rssi_difference=abs((a.average_rssi or 0) - (b.average_rssi or 0)),
        wifi_rssi_difference=abs((a.average_wifi_rssi or 0) - (b.average_wifi_rssi or 0)),
    )


def compare_groups(groups: Mapping[str, AggregatedGroup], zero_is_missing: bool = True) -> list[PairwiseComparison]:
    """
    One comparison per unordered pair (i < j), in mapping order.
    """
    items = list(groups.values())
    return [
        compare_pair(items[i], items[j], zero_is_missing)
        for i in range(len(items))
        for j in range(i + 1, len(items))
    ]


def common_devices(selected: Sequence[str], device_sets: Mapping[str, frozenset[str]]) -> frozenset[str]:
    """
    Devices present in every selected group.

    Fewer than two selected groups gives an empty set. Selected names
    missing from `device_sets` are skipped, except the first one, which
    yields an empty set.
    """
    if len(selected) < 2 or selected[0] not in device_sets:
        return frozenset()
    common = set(device_sets[selected[0]])
    for name in selected[1:]:
        if name not in device_sets:
            continue
        others = device_sets[name]
        common = {d for d in common if d in others}
    return frozenset(common)


def unique_by_group(device_sets: Mapping[str, frozenset[str]]) -> dict[str, frozenset[str]]:
    """
    For each group, the devices absent from every other group.
    """
    unique: dict[str, frozenset[str]] = {}
    for name, ids in device_sets.items():
        others = [other for other_name, other in device_sets.items() if other_name != name]
        unique[name] = frozenset(d for d in ids if all(d not in o for o in others))
    return unique


def display_devices(
    mode: DisplayMode,
    selected: Sequence[str],
    device_sets: Mapping[str, frozenset[str]],
) -> list[str]:
    """
    Device ids shown for a display mode, sorted.
    """
    if mode is DisplayMode.ALL:
        ids: set[str] = set().union(*device_sets.values())
    elif mode is DisplayMode.COMMON:
        ids = set(common_devices(selected, device_sets))
    else:
        ids = set().union(*unique_by_group(device_sets).values())
    return sorted(ids)
