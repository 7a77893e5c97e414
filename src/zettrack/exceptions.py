"""Errors raised by the ZET transit tracker."""


class ZetTrackError(Exception):
    """Base class for tracker errors."""


class ConfigMissing(ZetTrackError):
    """Mandatory schedule tables are absent from a GTFS bundle."""

    def __init__(self, missing):
        self.missing = list(missing)
        super().__init__(f"GTFS bundle is missing required tables: {', '.join(self.missing)}")


class NotFound(ZetTrackError, ValueError):
    """Unknown trip or stop id."""


class ServiceUnavailable(ZetTrackError):
    """No static schedule is loaded."""


class UpstreamFetchFailure(ZetTrackError):
    """The realtime feed could not be fetched or decoded."""


class MalformedRecord(ZetTrackError):
    """A single realtime entity lacks required fields."""
