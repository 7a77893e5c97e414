"""Tests for snapshot fan-out and feed polling."""

import sys
import threading
import unittest
from pathlib import Path
from unittest.mock import MagicMock

# Add src to path so we can import zettrack
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from zettrack.broadcaster import Broadcaster
from zettrack.exceptions import UpstreamFetchFailure
from zettrack.feed_poller import VehicleFeedPoller
from zettrack.models import VehiclePosition, VehicleSnapshot


def make_snapshot(updated_at, route_id="6"):
    vehicle = VehiclePosition(
        vehicle_id="V1", label=None, route_id=route_id, trip_id="T1",
        latitude=45.8, longitude=15.97, category="tram",
    )
    return VehicleSnapshot(updated_at=updated_at, vehicles=(vehicle,))


class TestBroadcaster(unittest.TestCase):
    """Test push delivery to subscribers."""

    def test_publish_reaches_all_subscribers(self):
        broadcaster = Broadcaster()
        first = broadcaster.subscribe()
        second = broadcaster.subscribe()

        snapshot = make_snapshot(1)
        broadcaster.publish(snapshot)

        self.assertIs(first.get(timeout=1), snapshot)
        self.assertIs(second.get(timeout=1), snapshot)

    def test_new_subscriber_gets_latest_immediately(self):
        broadcaster = Broadcaster()
        snapshot = make_snapshot(1)
        broadcaster.publish(snapshot)

        subscription = broadcaster.subscribe()

        self.assertIs(subscription.get(timeout=0), snapshot)

    def test_no_replay_before_first_snapshot(self):
        subscription = Broadcaster().subscribe()
        self.assertIsNone(subscription.get(timeout=0.01))

    def test_slow_subscriber_only_keeps_newest(self):
        broadcaster = Broadcaster()
        slow = broadcaster.subscribe()
        fast = broadcaster.subscribe()

        for i in range(1, 4):
            broadcaster.publish(make_snapshot(i))
            self.assertEqual(fast.get(timeout=1).updated_at, i)

        self.assertEqual(slow.get(timeout=1).updated_at, 3)
        self.assertIsNone(slow.get(timeout=0.01))

    def test_close_unsubscribes_and_ends_iteration(self):
        broadcaster = Broadcaster()
        subscription = broadcaster.subscribe()
        received = []

        consumer = threading.Thread(target=lambda: received.extend(subscription))
        consumer.start()
        broadcaster.publish(make_snapshot(1))
        subscription.close()
        consumer.join(timeout=2)

        self.assertFalse(consumer.is_alive())
        self.assertEqual(broadcaster.subscriber_count, 0)
        broadcaster.publish(make_snapshot(2))
        self.assertTrue(all(s.updated_at == 1 for s in received))


class TestVehicleFeedPoller(unittest.TestCase):
    """Test the polling loop against a mocked client."""

    def setUp(self):
        self.client = MagicMock()
        self.client.feed_url = "http://feed.test/rt"
        self.broadcaster = Broadcaster()
        self.poller = VehicleFeedPoller(self.client, self.broadcaster, interval=0.01)

    def tearDown(self):
        self.poller.stop(timeout=2)

    def test_successful_poll_replaces_snapshot(self):
        first, second = make_snapshot(1), make_snapshot(2)
        self.client.fetch_snapshot.side_effect = [first, second]

        self.assertTrue(self.poller.poll_once())
        self.assertTrue(self.poller.poll_once())

        self.assertIs(self.poller.snapshot, second)
        self.assertIs(self.broadcaster.latest, second)

    def test_failures_keep_last_snapshot(self):
        good = make_snapshot(1)
        self.client.fetch_snapshot.side_effect = [
            good,
            UpstreamFetchFailure("HTTP 503"),
            UpstreamFetchFailure("timeout"),
        ]

        self.poller.poll_once()
        with self.assertLogs("zettrack.feed_poller", level="ERROR"):
            self.assertFalse(self.poller.poll_once())
            self.assertFalse(self.poller.poll_once())

        self.assertIs(self.poller.current_snapshot(), good)
        subscription = self.broadcaster.subscribe()
        self.assertIs(subscription.get(timeout=0), good)

    def test_current_snapshot_fetches_only_when_missing(self):
        snapshot = make_snapshot(1)
        self.client.fetch_snapshot.return_value = snapshot

        self.assertIs(self.poller.current_snapshot(), snapshot)
        self.assertIs(self.poller.current_snapshot(), snapshot)

        self.client.fetch_snapshot.assert_called_once()

    def test_current_snapshot_propagates_first_failure(self):
        self.client.fetch_snapshot.side_effect = UpstreamFetchFailure("down")

        with self.assertRaises(UpstreamFetchFailure):
            self.poller.current_snapshot()

    def test_background_loop_keeps_polling_after_errors(self):
        calls = []

        def fetch():
            calls.append(1)
            if len(calls) % 2:
                raise UpstreamFetchFailure("flaky")
            return make_snapshot(len(calls))

        self.client.fetch_snapshot.side_effect = fetch
        subscription = self.broadcaster.subscribe()

        self.poller.start()
        received = subscription.get(timeout=2)
        self.poller.stop(timeout=2)

        self.assertIsNotNone(received)
        self.assertGreaterEqual(len(calls), 2)
        self.assertFalse(self.poller.running)


if __name__ == "__main__":
    unittest.main()
