"""ZetTrack - Schedule and live vehicle tracker for the ZET transit network."""

__version__ = "0.1.0"

from .models import (
    Stop,
    Trip,
    StopTime,
    VehiclePosition,
    VehicleSnapshot,
    StopGroup,
    Timetable,
    Departure,
    StopDepartures,
)
from .exceptions import (
    ZetTrackError,
    ConfigMissing,
    NotFound,
    ServiceUnavailable,
    UpstreamFetchFailure,
    MalformedRecord,
)
from .config import TrackerConfig
from .transit_tracker import TransitTracker
from .gtfs_loader import GTFSLoader
from .realtime_client import RealtimeClient

__all__ = [
    "TransitTracker",
    "TrackerConfig",
    "GTFSLoader",
    "RealtimeClient",
    "Stop",
    "Trip",
    "StopTime",
    "VehiclePosition",
    "VehicleSnapshot",
    "StopGroup",
    "Timetable",
    "Departure",
    "StopDepartures",
    "ZetTrackError",
    "ConfigMissing",
    "NotFound",
    "ServiceUnavailable",
    "UpstreamFetchFailure",
    "MalformedRecord",
]
