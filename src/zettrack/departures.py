"""Upcoming scheduled departures for a stop."""

import logging
import math
from datetime import datetime
from typing import List, Optional

from .exceptions import NotFound
from .models import Departure, StopDepartures, seconds_to_clock
from .schedule import ScheduleIndex
from .service_calendar import is_service_active, service_date, weekday_index

logger = logging.getLogger(__name__)

# Departures returned per stop
MAX_DEPARTURES = 5


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def upcoming_departures(
    index: ScheduleIndex,
    stop_id: str,
    now: Optional[datetime] = None,
) -> StopDepartures:
    """
    Get the next scheduled departures from a stop.

    Only today's services are considered: a trip is kept when its service
    runs on today's date and its arrival at the stop is not earlier than the
    current time of day. Trips from yesterday's service that run past
    midnight are not included.

    Args:
        index: Loaded schedule.
        stop_id: stop_id from stops.txt.
        now: Reference local time. Defaults to datetime.now().

    Returns:
        StopDepartures with at most MAX_DEPARTURES entries sorted by arrival.

    Raises:
        NotFound: If the stop is unknown (including when nothing is loaded).
    """
    stop = index.stops_by_id.get(stop_id)
    if stop is None:
        raise NotFound(f"Unknown stop {stop_id}")

    if now is None:
        now = datetime.now()
    today = service_date(now)
    weekday = weekday_index(now)
    now_sec = now.hour * 3600 + now.minute * 60 + now.second

    candidates = sorted(index.stop_times_for_stop(stop_id), key=lambda st: st.arrival_seconds)

    departures: List[Departure] = []
    for row in candidates:
        arrival_sec = row.arrival_seconds
        if arrival_sec < now_sec:
            continue
        trip = index.trips_by_id.get(row.trip_id)
        if trip is None or not trip.service_id:
            continue
        if not is_service_active(index, trip.service_id, today, weekday):
            continue

        departures.append(
            Departure(
                route_id=trip.route_id,
                trip_id=trip.trip_id,
                headsign=trip.headsign or "",
                time=seconds_to_clock(arrival_sec),
                eta_minutes=_round_half_up((arrival_sec - now_sec) / 60),
            )
        )
        if len(departures) == MAX_DEPARTURES:
            break

    return StopDepartures(stop_id=stop_id, stop_name=stop.name, departures=departures)
