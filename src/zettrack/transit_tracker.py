"""Main ZET transit tracker class."""

import logging
from dataclasses import replace
from datetime import datetime
from typing import List, Optional, Tuple

from .broadcaster import Broadcaster, Subscription
from .config import TrackerConfig
from .departures import upcoming_departures
from .feed_poller import VehicleFeedPoller
from .gtfs_loader import GTFSLoader
from .models import Stop, StopDepartures, StopGroup, Timetable, VehicleSnapshot
from .realtime_client import RealtimeClient
from .schedule import ScheduleIndex, ScheduleStore
from .stop_groups import cluster_stops, find_nearest_group
from .timetable import build_timetable

logger = logging.getLogger(__name__)


class TransitTracker:
    """
    Answers transit queries for the ZET network.

    This class provides methods to:
    - Load (and reload) the GTFS static schedule
    - List stops and stop groups
    - Get trip timetables and upcoming departures for a stop
    - Serve live vehicle positions by pull or push
    """

    def __init__(
        self,
        config: Optional[TrackerConfig] = None,
        load_gtfs: bool = True,
        realtime_client: Optional[RealtimeClient] = None,
    ):
        """
        Initialize the tracker.

        Args:
            config: Settings; defaults to TrackerConfig().
            load_gtfs: If True, load the schedule from config.gtfs_url or
                config.gtfs_path on init. A failed load leaves the tracker
                running in degraded mode.
            realtime_client: Client used by the vehicle poller.
        """
        self.config = config or TrackerConfig()
        self.store = ScheduleStore()
        self._groups_cache: Tuple[Optional[ScheduleIndex], List[StopGroup]] = (None, [])

        client = realtime_client or RealtimeClient(
            feed_url=self.config.realtime_url, timeout=self.config.request_timeout_seconds
        )
        self.broadcaster = Broadcaster()
        self.poller = VehicleFeedPoller(client, self.broadcaster, interval=self.config.poll_interval_seconds)

        if load_gtfs:
            self.reload_schedule()

    def reload_schedule(self) -> bool:
        """
        Load the schedule named by the config and swap it in.

        Returns:
            True if a new schedule is live. On failure the previous one stays.
        """
        if self.config.gtfs_url:
            url = self.config.gtfs_url
            return self._reload(lambda loader: loader.load_from_url(url, self._index_stop_times))
        return self.load_schedule(self.config.gtfs_path)

    def load_schedule(self, path: str) -> bool:
        """
        Load GTFS static data from a local ZIP archive or directory.

        Args:
            path: Path to the GTFS ZIP archive or an extracted directory.

        Returns:
            True if a new schedule is live. On failure the previous one stays.
        """
        return self._reload(lambda loader: loader.load_from_path(path, self._index_stop_times))

    @property
    def _index_stop_times(self) -> bool:
        return not self.config.stream_stop_times

    def _reload(self, build) -> bool:
        loader = GTFSLoader(timeout=self.config.request_timeout_seconds)
        return self.store.reload(lambda: build(loader))

    @property
    def schedule_loaded(self) -> bool:
        return self.store.loaded

    def get_stops(self) -> List[Stop]:
        """All stops of the loaded schedule (empty when nothing is loaded)."""
        return list(self.store.current.stops_by_id.values())

    def get_stop_groups(self) -> List[StopGroup]:
        """Stops clustered into stations, recomputed when the schedule changes.

        Returns copies, so callers may modify them without touching the cache.
        """
        index = self.store.current
        cached_for, groups = self._groups_cache
        if cached_for is not index:
            groups = cluster_stops(index.stops_by_id.values(), self.config.stop_group_threshold_m)
            self._groups_cache = (index, groups)
        return [replace(group, stop_ids=list(group.stop_ids)) for group in groups]

    def find_nearest_group(self, latitude: float, longitude: float) -> Optional[Tuple[StopGroup, float]]:
        """
        Find the stop group closest to a location.

        Returns:
            (group, distance in meters), or None if there are no groups.
        """
        return find_nearest_group(self.get_stop_groups(), latitude, longitude)

    def get_timetable(self, trip_id: str) -> Timetable:
        """
        Get the ordered stops and path of a trip.

        Raises:
            ServiceUnavailable: If no schedule is loaded.
            NotFound: If the trip has no stop times.
        """
        return build_timetable(self.store.current, trip_id)

    def get_departures(self, stop_id: str, now: Optional[datetime] = None) -> StopDepartures:
        """
        Get the next scheduled departures from a stop.

        Raises:
            NotFound: If the stop is unknown.
        """
        return upcoming_departures(self.store.current, stop_id, now=now)

    def get_departures_for_group(self, group: StopGroup, now: Optional[datetime] = None) -> StopDepartures:
        """Departures of a stop group, looked up through its seed platform."""
        return self.get_departures(group.stop_ids[0], now=now)

    def get_vehicles(self) -> VehicleSnapshot:
        """
        Get the latest vehicle positions.

        Raises:
            UpstreamFetchFailure: If no snapshot exists yet and fetching one fails.
        """
        return self.poller.current_snapshot()

    def subscribe(self) -> Subscription:
        """Subscribe to vehicle snapshots; the latest one is delivered at once."""
        return self.broadcaster.subscribe()

    def start(self) -> None:
        """Start polling the realtime feed."""
        self.poller.start()

    def stop(self) -> None:
        """Stop polling and release the HTTP session."""
        self.poller.stop()
        self.poller.client.close()
        logger.info("Stopped tracker")
