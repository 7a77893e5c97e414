"""ZET GTFS-Realtime vehicle position fetcher and parser."""

import logging
import re
from typing import List, Optional

import requests
from google.protobuf.message import DecodeError
from google.transit import gtfs_realtime_pb2

from .config import REQUEST_TIMEOUT_SECONDS, ZET_RT_URL
from .exceptions import MalformedRecord, UpstreamFetchFailure
from .models import VehiclePosition, VehicleSnapshot

logger = logging.getLogger(__name__)

# ZET numbers tram lines 1-35; everything above is a bus
MAX_TRAM_ROUTE = 35

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def vehicle_category(route_id: Optional[str]) -> Optional[str]:
    """
    Classify a vehicle as "tram" or "bus" from its route id.

    Uses the leading integer of the route id, so "12" and "12A" are both
    trams. Non-numeric route ids are buses; a missing route id gives None.
    """
    if not route_id:
        return None
    match = _LEADING_INT.match(str(route_id))
    if match and int(match.group(1)) <= MAX_TRAM_ROUTE:
        return "tram"
    return "bus"


def parse_vehicle_entity(entity) -> VehiclePosition:
    """
    Convert one FeedEntity into a VehiclePosition.

    Raises:
        MalformedRecord: If the entity carries no vehicle position.
    """
    if not entity.HasField("vehicle") or not entity.vehicle.HasField("position"):
        raise MalformedRecord(f"Entity {entity.id!r} has no vehicle position")

    vehicle = entity.vehicle
    position = vehicle.position
    descriptor = vehicle.vehicle
    route_id = vehicle.trip.route_id or None

    return VehiclePosition(
        vehicle_id=descriptor.id or entity.id or None,
        label=descriptor.label or None,
        route_id=route_id,
        trip_id=vehicle.trip.trip_id or None,
        latitude=position.latitude,
        longitude=position.longitude,
        bearing=position.bearing or None,
        speed=position.speed or None,
        timestamp=int(vehicle.timestamp) if vehicle.timestamp else None,
        category=vehicle_category(route_id),
    )


def parse_feed(feed_data: bytes) -> VehicleSnapshot:
    """
    Decode a GTFS-Realtime FeedMessage into a VehicleSnapshot.

    Entities without a position are skipped; the rest of the batch is kept.

    Raises:
        UpstreamFetchFailure: If the body is not a valid FeedMessage.
    """
    feed = gtfs_realtime_pb2.FeedMessage()
    try:
        feed.ParseFromString(feed_data)
    except DecodeError as e:
        raise UpstreamFetchFailure(f"Undecodable GTFS-Realtime body: {e}") from e

    vehicles: List[VehiclePosition] = []
    skipped = 0
    for entity in feed.entity:
        try:
            vehicles.append(parse_vehicle_entity(entity))
        except MalformedRecord as e:
            skipped += 1
            logger.debug(f"Skipping entity: {e}")

    if skipped:
        logger.debug(f"Skipped {skipped} entities without a vehicle position")

    updated_at = int(feed.header.timestamp) if feed.header.timestamp else None
    return VehicleSnapshot(updated_at=updated_at, vehicles=tuple(vehicles))


class RealtimeClient:
    """Fetches and parses the ZET GTFS-Realtime vehicle feed."""

    def __init__(self, feed_url: str = ZET_RT_URL, timeout: float = REQUEST_TIMEOUT_SECONDS):
        """Initialize the realtime client."""
        self.feed_url = feed_url
        self.timeout = timeout
        self._session = requests.Session()
        self._session.headers.update({"Cache-Control": "no-cache"})

    def _fetch_feed(self) -> bytes:
        """
        Fetch the raw feed.

        Returns:
            Raw protobuf bytes.

        Raises:
            UpstreamFetchFailure: On transport errors or a non-success status.
        """
        logger.debug(f"Fetching {self.feed_url}")
        try:
            response = self._session.get(self.feed_url, timeout=self.timeout)
        except requests.RequestException as e:
            raise UpstreamFetchFailure(f"Failed to fetch {self.feed_url}: {e}") from e

        if not response.ok:
            raise UpstreamFetchFailure(f"Failed to fetch {self.feed_url}: HTTP {response.status_code}")
        return response.content

    def fetch_snapshot(self) -> VehicleSnapshot:
        """Fetch the feed and return the current vehicle positions."""
        snapshot = parse_feed(self._fetch_feed())
        logger.debug(f"Fetched {len(snapshot.vehicles)} vehicles (feed time {snapshot.updated_at})")
        return snapshot

    def close(self) -> None:
        """Release the HTTP session."""
        self._session.close()
