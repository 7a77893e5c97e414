"""Trip timetables and the stop path drawn for them."""

import logging
from typing import List

from .exceptions import NotFound, ServiceUnavailable
from .models import Timetable, TimetableStop
from .schedule import ScheduleIndex

logger = logging.getLogger(__name__)


def build_timetable(index: ScheduleIndex, trip_id: str) -> Timetable:
    """
    Build the ordered timetable for a trip.

    Args:
        index: Loaded schedule.
        trip_id: trip_id from trips.txt / the realtime feed.

    Returns:
        Timetable with stops in stop_sequence order and the [lat, lon] path
        through the stops that have coordinates.

    Raises:
        ServiceUnavailable: If no schedule has been loaded.
        NotFound: If the trip has no stop times.
    """
    if not index.loaded:
        raise ServiceUnavailable("GTFS static data is not loaded")

    rows = sorted(index.stop_times_for_trip(trip_id), key=lambda st: st.stop_sequence)
    if not rows:
        raise NotFound(f"No timetable found for trip {trip_id}")

    stops: List[TimetableStop] = []
    path: List[List[float]] = []
    for row in rows:
        stop = index.stops_by_id.get(row.stop_id)
        stops.append(
            TimetableStop(
                stop_id=row.stop_id,
                stop_name=stop.name if stop is not None and stop.name else row.stop_id,
                arrival=row.arrival,
                departure=row.departure,
            )
        )
        if stop is not None and stop.has_coordinates:
            path.append([stop.latitude, stop.longitude])

    logger.debug(f"Timetable for {trip_id}: {len(stops)} stops, {len(path)} path points")
    return Timetable(trip_id=trip_id, stops=stops, path=path)

