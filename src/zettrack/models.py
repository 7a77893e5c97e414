"""Data models for the ZET transit tracker."""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import List, Optional, Tuple


def time_to_seconds(value: Optional[str]) -> Optional[int]:
    """Convert a GTFS "HH:MM[:SS]" clock string to seconds of day.

    Hours may exceed 23 for trips running past midnight. Returns None when
    the value is missing or malformed.
    """
    if not value:
        return None
    parts = value.strip().split(":")
    if len(parts) < 2:
        return None
    try:
        numbers = [int(p) for p in parts]
    except ValueError:
        return None
    hours, minutes = numbers[0], numbers[1]
    seconds = numbers[2] if len(numbers) > 2 else 0
    return hours * 3600 + minutes * 60 + seconds


def seconds_to_clock(seconds: int) -> str:
    """Format seconds of day as HH:MM, wrapping the hour past midnight."""
    hours = (seconds // 3600) % 24
    minutes = (seconds % 3600) // 60
    return f"{hours:02d}:{minutes:02d}"


@dataclass(frozen=True)
class Stop:
    """Represents a single stop or platform from stops.txt."""
    stop_id: str
    name: str
    latitude: Optional[float]
    longitude: Optional[float]

    @property
    def has_coordinates(self) -> bool:
        return bool(self.latitude) and bool(self.longitude)

    def to_dict(self) -> dict:
        return {
            "id": self.stop_id,
            "name": self.name,
            "lat": self.latitude,
            "lon": self.longitude,
        }


@dataclass(frozen=True)
class Trip:
    """Represents a scheduled trip from trips.txt."""
    trip_id: str
    route_id: Optional[str]
    service_id: Optional[str]
    headsign: str = ""


@dataclass(frozen=True)
class StopTime:
    """One row of stop_times.txt.

    Either time may be missing in the source. Use ``arrival`` and
    ``departure`` rather than the raw fields: arrival falls back to the
    departure time and departure falls back to the arrival time.
    """
    trip_id: str
    stop_id: str
    stop_sequence: int
    arrival_time: Optional[str] = None
    departure_time: Optional[str] = None

    @property
    def arrival(self) -> Optional[str]:
        return self.arrival_time or self.departure_time

    @property
    def departure(self) -> Optional[str]:
        return self.departure_time or self.arrival_time

    @property
    def arrival_seconds(self) -> Optional[int]:
        return time_to_seconds(self.arrival)


@dataclass(frozen=True)
class ServiceCalendar:
    """Weekly service pattern from calendar.txt."""
    service_id: str
    weekdays: Tuple[bool, ...]  # Monday .. Sunday
    start_date: int  # YYYYMMDD, inclusive
    end_date: int  # YYYYMMDD, inclusive


class ExceptionType(IntEnum):
    ADDED = 1
    REMOVED = 2


@dataclass(frozen=True)
class ServiceException:
    """A dated override from calendar_dates.txt."""
    service_id: str
    date: int  # YYYYMMDD
    exception_type: ExceptionType


@dataclass(frozen=True)
class VehiclePosition:
    """Represents a live vehicle position from the realtime feed."""
    vehicle_id: Optional[str]
    label: Optional[str]
    route_id: Optional[str]
    trip_id: Optional[str]
    latitude: float
    longitude: float
    bearing: Optional[float] = None
    speed: Optional[float] = None
    timestamp: Optional[int] = None  # Unix timestamp
    category: Optional[str] = None  # "tram" or "bus"

    def to_dict(self) -> dict:
        return {
            "id": self.vehicle_id,
            "label": self.label,
            "routeId": self.route_id,
            "tripId": self.trip_id,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "bearing": self.bearing,
            "speed": self.speed,
            "timestamp": self.timestamp,
            "type": self.category,
        }


@dataclass(frozen=True)
class VehicleSnapshot:
    """All vehicle positions from one successful feed poll."""
    updated_at: Optional[int]  # Feed header timestamp
    vehicles: Tuple[VehiclePosition, ...] = ()

    def to_dict(self) -> dict:
        return {
            "updated": self.updated_at,
            "vehicles": [v.to_dict() for v in self.vehicles],
        }


@dataclass
class StopGroup:
    """Stops sharing a name and lying close together, shown as one station."""
    group_id: str  # Id of the stop that seeded the group
    name: str
    latitude: float  # Running centroid
    longitude: float
    stop_ids: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "id": self.group_id,
            "name": self.name,
            "lat": self.latitude,
            "lon": self.longitude,
            "stopIds": list(self.stop_ids),
        }


@dataclass(frozen=True)
class TimetableStop:
    stop_id: str
    stop_name: str
    arrival: Optional[str]
    departure: Optional[str]

    def to_dict(self) -> dict:
        return {
            "stopId": self.stop_id,
            "stopName": self.stop_name,
            "arrival": self.arrival,
            "departure": self.departure,
        }


@dataclass(frozen=True)
class Timetable:
    """Ordered stops of a trip and the path drawn through them."""
    trip_id: str
    stops: List[TimetableStop]
    path: List[List[float]]  # [[lat, lon], ...]

    def to_dict(self) -> dict:
        return {
            "tripId": self.trip_id,
            "stops": [s.to_dict() for s in self.stops],
            "path": [list(p) for p in self.path],
        }


@dataclass(frozen=True)
class Departure:
    """Represents a scheduled departure from a stop."""
    route_id: Optional[str]
    trip_id: str
    headsign: str
    time: str  # HH:MM
    eta_minutes: int

    def to_dict(self) -> dict:
        return {
            "routeId": self.route_id,
            "tripId": self.trip_id,
            "headsign": self.headsign,
            "time": self.time,
            "etaMinutes": self.eta_minutes,
        }


@dataclass(frozen=True)
class StopDepartures:
    """Upcoming departures for one stop."""
    stop_id: str
    stop_name: str
    departures: List[Departure]

    def to_dict(self) -> dict:
        return {
            "stopId": self.stop_id,
            "stopName": self.stop_name,
            "departures": [d.to_dict() for d in self.departures],
        }
