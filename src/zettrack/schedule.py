"""Immutable schedule indices and the store that swaps them."""

import logging
import threading
import zipfile
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Callable, Dict, List, Mapping, Optional, Tuple

import requests

from .exceptions import ConfigMissing
from .models import ServiceCalendar, ServiceException, Stop, StopTime, Trip

logger = logging.getLogger(__name__)

_EMPTY: Mapping = MappingProxyType({})


@dataclass(frozen=True)
class ScheduleIndex:
    """One load generation of the static schedule.

    Built once by GTFSLoader and never mutated afterwards. Per-trip stop
    times are ordered by stop_sequence (ties keep row order); per-stop stop
    times are ordered by arrival second and only hold rows with a
    parseable arrival.
    """

    stops_by_id: Mapping[str, Stop] = field(default_factory=lambda: _EMPTY)
    trips_by_id: Mapping[str, Trip] = field(default_factory=lambda: _EMPTY)
    calendar_by_service: Mapping[str, ServiceCalendar] = field(default_factory=lambda: _EMPTY)
    exceptions_by_service: Mapping[str, Tuple[ServiceException, ...]] = field(default_factory=lambda: _EMPTY)
    stop_times_by_trip: Mapping[str, Tuple[StopTime, ...]] = field(default_factory=lambda: _EMPTY)
    stop_times_by_stop: Mapping[str, Tuple[StopTime, ...]] = field(default_factory=lambda: _EMPTY)
    loaded: bool = True
    stop_time_source: Optional[object] = None  # Streams stop_times.txt when set

    @classmethod
    def empty(cls) -> "ScheduleIndex":
        """The degraded state used before any schedule has loaded."""
        return cls(loaded=False)

    @classmethod
    def build(
        cls,
        stops: Dict[str, Stop],
        trips: Dict[str, Trip],
        calendars: Dict[str, ServiceCalendar],
        exceptions: Dict[str, List[ServiceException]],
        stop_times: Optional[List[StopTime]] = None,
        stop_time_source: Optional[object] = None,
    ) -> "ScheduleIndex":
        """Freeze loaded tables into an index, sorting stop times as queries expect."""
        by_trip: Dict[str, List[StopTime]] = {}
        by_stop: Dict[str, List[StopTime]] = {}
        for stop_time in stop_times or ():
            by_trip.setdefault(stop_time.trip_id, []).append(stop_time)
            if stop_time.arrival_seconds is not None:
                by_stop.setdefault(stop_time.stop_id, []).append(stop_time)

        return cls(
            stops_by_id=MappingProxyType(dict(stops)),
            trips_by_id=MappingProxyType(dict(trips)),
            calendar_by_service=MappingProxyType(dict(calendars)),
            exceptions_by_service=MappingProxyType({k: tuple(v) for k, v in exceptions.items()}),
            stop_times_by_trip=MappingProxyType(
                {k: tuple(sorted(v, key=lambda st: st.stop_sequence)) for k, v in by_trip.items()}
            ),
            stop_times_by_stop=MappingProxyType(
                {k: tuple(sorted(v, key=lambda st: st.arrival_seconds)) for k, v in by_stop.items()}
            ),
            stop_time_source=stop_time_source,
        )

    def stop_times_for_trip(self, trip_id: str) -> Tuple[StopTime, ...]:
        if self.stop_time_source is not None:
            return self.stop_time_source.stop_times_for_trip(trip_id)
        return self.stop_times_by_trip.get(trip_id, ())

    def stop_times_for_stop(self, stop_id: str) -> Tuple[StopTime, ...]:
        if self.stop_time_source is not None:
            return self.stop_time_source.stop_times_for_stop(stop_id)
        return self.stop_times_by_stop.get(stop_id, ())


class ScheduleStore:
    """Holds the current ScheduleIndex behind a single swappable reference.

    Readers grab ``store.current`` once per query and keep using that
    generation even if a reload swaps in a new one meanwhile.
    """

    def __init__(self, index: Optional[ScheduleIndex] = None):
        self._index = index if index is not None else ScheduleIndex.empty()
        self._reload_lock = threading.Lock()

    @property
    def current(self) -> ScheduleIndex:
        return self._index

    @property
    def loaded(self) -> bool:
        return self._index.loaded

    def swap(self, index: ScheduleIndex) -> None:
        self._index = index

    def reload(self, build: Callable[[], ScheduleIndex]) -> bool:
        """Build a new index off to the side and swap it in.

        On failure the previous index stays in place and False is returned.
        """
        with self._reload_lock:
            try:
                index = build()
            except ConfigMissing as e:
                logger.error(f"GTFS load aborted: {e}")
                return False
            except (OSError, ValueError, zipfile.BadZipFile, requests.RequestException) as e:
                logger.error(f"Failed to load GTFS data: {e}", exc_info=True)
                return False

            self._index = index
            logger.info(
                f"Schedule swapped in: {len(index.stops_by_id)} stops, "
                f"{len(index.trips_by_id)} trips, {len(index.calendar_by_service)} services"
            )
            return True
