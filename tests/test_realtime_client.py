"""Tests for the realtime vehicle feed client."""

import sys
import unittest
from pathlib import Path
from unittest.mock import MagicMock, patch

import requests
from google.transit import gtfs_realtime_pb2

# Add src to path so we can import zettrack
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from zettrack.exceptions import MalformedRecord, UpstreamFetchFailure
from zettrack.realtime_client import RealtimeClient, parse_feed, parse_vehicle_entity, vehicle_category


def make_feed(header_timestamp=1718700000) -> bytes:
    """Build a small GTFS-Realtime feed with one tram, one bus and two unusable entities."""
    feed = gtfs_realtime_pb2.FeedMessage()
    feed.header.gtfs_realtime_version = "2.0"
    if header_timestamp:
        feed.header.timestamp = header_timestamp

    tram = feed.entity.add()
    tram.id = "e1"
    tram.vehicle.vehicle.id = "V1"
    tram.vehicle.vehicle.label = "2201"
    tram.vehicle.trip.trip_id = "T1"
    tram.vehicle.trip.route_id = "6"
    tram.vehicle.position.latitude = 45.8
    tram.vehicle.position.longitude = 15.97
    tram.vehicle.position.bearing = 90.0
    tram.vehicle.timestamp = 1718699990

    bus = feed.entity.add()
    bus.id = "e2"
    bus.vehicle.trip.trip_id = "T2"
    bus.vehicle.trip.route_id = "109"
    bus.vehicle.position.latitude = 45.81
    bus.vehicle.position.longitude = 15.99

    no_position = feed.entity.add()
    no_position.id = "e3"
    no_position.vehicle.trip.trip_id = "T3"

    trip_update = feed.entity.add()
    trip_update.id = "e4"
    trip_update.trip_update.trip.trip_id = "T4"

    return feed.SerializeToString()


class TestVehicleCategory(unittest.TestCase):
    """Test tram/bus classification from route ids."""

    def test_tram_routes(self):
        self.assertEqual(vehicle_category("1"), "tram")
        self.assertEqual(vehicle_category("35"), "tram")
        self.assertEqual(vehicle_category("12A"), "tram")

    def test_bus_routes(self):
        self.assertEqual(vehicle_category("36"), "bus")
        self.assertEqual(vehicle_category("109"), "bus")
        self.assertEqual(vehicle_category("N1"), "bus")

    def test_missing_route(self):
        self.assertIsNone(vehicle_category(None))
        self.assertIsNone(vehicle_category(""))


class TestParseFeed(unittest.TestCase):
    """Test decoding and normalization of vehicle positions."""

    def test_parses_vehicles_and_skips_unusable_entities(self):
        snapshot = parse_feed(make_feed())

        self.assertEqual(snapshot.updated_at, 1718700000)
        self.assertEqual(len(snapshot.vehicles), 2)

        tram, bus = snapshot.vehicles
        self.assertEqual(tram.vehicle_id, "V1")
        self.assertEqual(tram.label, "2201")
        self.assertEqual(tram.route_id, "6")
        self.assertEqual(tram.category, "tram")
        self.assertAlmostEqual(tram.latitude, 45.8, places=4)
        self.assertAlmostEqual(tram.bearing, 90.0)
        self.assertIsNone(tram.speed)
        self.assertEqual(tram.timestamp, 1718699990)

        self.assertEqual(bus.vehicle_id, "e2")
        self.assertIsNone(bus.label)
        self.assertEqual(bus.category, "bus")
        self.assertIsNone(bus.bearing)
        self.assertIsNone(bus.timestamp)

    def test_missing_header_timestamp(self):
        snapshot = parse_feed(make_feed(header_timestamp=0))
        self.assertIsNone(snapshot.updated_at)

    def test_entity_without_position_is_malformed(self):
        feed = gtfs_realtime_pb2.FeedMessage()
        entity = feed.entity.add()
        entity.id = "x"
        entity.vehicle.trip.trip_id = "T1"

        with self.assertRaises(MalformedRecord):
            parse_vehicle_entity(entity)

    def test_undecodable_body(self):
        with self.assertRaises(UpstreamFetchFailure):
            parse_feed(b"\xff\xff\xff\xff")

    def test_to_dict(self):
        payload = parse_feed(make_feed()).to_dict()

        self.assertEqual(payload["updated"], 1718700000)
        self.assertEqual(
            sorted(payload["vehicles"][0].keys()),
            sorted(["id", "label", "routeId", "tripId", "latitude", "longitude", "bearing", "speed", "timestamp", "type"]),
        )
        self.assertEqual(payload["vehicles"][0]["type"], "tram")


class TestRealtimeClient(unittest.TestCase):
    """Test HTTP fetching with mocked responses."""

    def setUp(self):
        self.client = RealtimeClient(feed_url="http://feed.test/rt", timeout=3)

    def tearDown(self):
        self.client.close()

    def test_fetch_snapshot(self):
        response = MagicMock(ok=True, status_code=200, content=make_feed())
        with patch.object(self.client._session, "get", return_value=response) as mock_get:
            snapshot = self.client.fetch_snapshot()

        mock_get.assert_called_once_with("http://feed.test/rt", timeout=3)
        self.assertEqual(len(snapshot.vehicles), 2)

    def test_non_success_status(self):
        response = MagicMock(ok=False, status_code=503, content=b"")
        with patch.object(self.client._session, "get", return_value=response):
            with self.assertRaises(UpstreamFetchFailure):
                self.client.fetch_snapshot()

    def test_transport_error(self):
        with patch.object(self.client._session, "get", side_effect=requests.ConnectionError("refused")):
            with self.assertRaises(UpstreamFetchFailure):
                self.client.fetch_snapshot()

    def test_sends_no_cache_header(self):
        self.assertEqual(self.client._session.headers["Cache-Control"], "no-cache")


if __name__ == "__main__":
    unittest.main()
