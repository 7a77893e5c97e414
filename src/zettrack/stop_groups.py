"""Grouping of same-named nearby stops (platforms) into stations."""

import logging
import math
from typing import Iterable, List, Optional, Tuple

from .config import STOP_GROUP_THRESHOLD_M
from .models import Stop, StopGroup

logger = logging.getLogger(__name__)

EARTH_RADIUS_M = 6371000.0


def haversine_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points in meters."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def cluster_stops(stops: Iterable[Stop], threshold_m: float = STOP_GROUP_THRESHOLD_M) -> List[StopGroup]:
    """
    Collapse platforms of the same station into StopGroups.

    Single greedy pass in input order: a stop joins the first earlier group
    with the same name whose running centroid lies within ``threshold_m``,
    otherwise it seeds a new group. The result depends on input order.
    Stops without coordinates are left out.
    """
    groups: List[StopGroup] = []

    for stop in stops:
        if not stop.has_coordinates:
            continue

        chosen = None
        for group in groups:
            if group.name != stop.name:
                continue
            if haversine_meters(group.latitude, group.longitude, stop.latitude, stop.longitude) <= threshold_m:
                chosen = group
                break

        if chosen is None:
            groups.append(
                StopGroup(
                    group_id=stop.stop_id,
                    name=stop.name,
                    latitude=stop.latitude,
                    longitude=stop.longitude,
                    stop_ids=[stop.stop_id],
                )
            )
            continue

        chosen.stop_ids.append(stop.stop_id)
        n = len(chosen.stop_ids)
        chosen.latitude = (chosen.latitude * (n - 1) + stop.latitude) / n
        chosen.longitude = (chosen.longitude * (n - 1) + stop.longitude) / n

    logger.debug(f"Clustered stops into {len(groups)} groups")
    return groups


def find_nearest_group(
    groups: Iterable[StopGroup], latitude: float, longitude: float
) -> Optional[Tuple[StopGroup, float]]:
    """Return the group closest to a point and its distance in meters, or None."""
    best: Optional[StopGroup] = None
    best_distance = math.inf

    for group in groups:
        distance = haversine_meters(latitude, longitude, group.latitude, group.longitude)
        if distance < best_distance:
            best = group
            best_distance = distance

    if best is None:
        return None
    return best, best_distance
