"""Tests for upcoming departures."""

import sys
import unittest
from datetime import datetime
from pathlib import Path

# Add src to path so we can import zettrack
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from zettrack.departures import MAX_DEPARTURES, upcoming_departures
from zettrack.exceptions import NotFound
from zettrack.gtfs_loader import GTFSLoader
from zettrack.models import ExceptionType, ServiceCalendar, ServiceException, Stop, StopTime, Trip, seconds_to_clock
from zettrack.schedule import ScheduleIndex

WEEKDAYS_ONLY = (True, True, True, True, True, False, False)

# Tuesday
NOW = datetime(2024, 6, 18, 7, 59, 0)


def make_index(stop_times, trips=None, exceptions=None):
    trips = trips or {
        "T1": Trip("T1", "1", "WK", "Borongaj"),
        "T2": Trip("T2", "101", "WK", "Dubrava"),
        "T3": Trip("T3", "2", "WE", "Črnomerec"),
    }
    calendars = {
        "WK": ServiceCalendar("WK", WEEKDAYS_ONLY, 20240101, 20241231),
        "WE": ServiceCalendar("WE", (False,) * 5 + (True, True), 20240101, 20241231),
    }
    return ScheduleIndex.build(
        stops={"A": Stop("A", "Trg", 45.0, 16.0), "B": Stop("B", "Savska", 45.01, 16.01)},
        trips=trips,
        calendars=calendars,
        exceptions=exceptions or {},
        stop_times=stop_times,
    )


class TestDepartures(unittest.TestCase):
    """Test filtering, ordering and formatting of departures."""

    def test_active_services_only(self):
        index = make_index([
            StopTime("T2", "A", 1, "08:20:00"),
            StopTime("T1", "A", 1, "08:00:00"),
            StopTime("T3", "A", 1, "08:10:00"),
        ])

        result = upcoming_departures(index, "A", now=NOW)

        self.assertEqual(result.stop_name, "Trg")
        self.assertEqual([d.trip_id for d in result.departures], ["T1", "T2"])
        self.assertEqual(result.departures[0].eta_minutes, 1)
        self.assertEqual(result.departures[0].time, "08:00")
        self.assertEqual(result.departures[1].headsign, "Dubrava")
        self.assertEqual(result.departures[1].route_id, "101")

    def test_past_departures_excluded(self):
        index = make_index([
            StopTime("T1", "A", 1, "07:58:59"),
            StopTime("T2", "A", 1, "07:59:00"),
        ])

        result = upcoming_departures(index, "A", now=NOW)

        self.assertEqual([d.trip_id for d in result.departures], ["T2"])
        self.assertEqual(result.departures[0].eta_minutes, 0)

    def test_capped_and_sorted(self):
        trips = {f"T{i}": Trip(f"T{i}", str(i), "WK", "") for i in range(10)}
        stop_times = [StopTime(f"T{i}", "A", 1, f"{9 + (9 - i) % 10:02d}:00:00") for i in range(10)]
        index = make_index(stop_times, trips=trips)

        departures = upcoming_departures(index, "A", now=NOW).departures

        self.assertEqual(len(departures), MAX_DEPARTURES)
        etas = [d.eta_minutes for d in departures]
        self.assertEqual(etas, sorted(etas))
        self.assertTrue(all(eta >= 0 for eta in etas))

    def test_removed_date_has_no_departures(self):
        index = make_index(
            [StopTime("T1", "A", 1, "08:00:00")],
            exceptions={"WK": [ServiceException("WK", 20240618, ExceptionType.REMOVED)]},
        )

        self.assertEqual(upcoming_departures(index, "A", now=NOW).departures, [])

    def test_trip_without_service_skipped(self):
        index = make_index(
            [StopTime("TX", "A", 1, "08:00:00"), StopTime("T9", "A", 1, "08:01:00")],
            trips={"TX": Trip("TX", "5", None, "")},
        )

        self.assertEqual(upcoming_departures(index, "A", now=NOW).departures, [])

    def test_post_midnight_time_wraps(self):
        index = make_index([StopTime("T1", "B", 2, "25:10:00")])

        departure = upcoming_departures(index, "B", now=NOW).departures[0]

        self.assertEqual(departure.time, "01:10")
        self.assertEqual(departure.eta_minutes, (25 * 60 + 10) - (7 * 60 + 59))

    def test_eta_rounds_half_up(self):
        index = make_index([StopTime("T1", "A", 1, "08:01:30")])

        departure = upcoming_departures(index, "A", now=datetime(2024, 6, 18, 8, 0, 0)).departures[0]

        self.assertEqual(departure.eta_minutes, 2)

    def test_row_without_stop_sequence_still_departs(self):
        loader = GTFSLoader()
        with self.assertLogs("zettrack.gtfs_loader", level="WARNING"):
            loader._load_stop_times(
                "trip_id,arrival_time,departure_time,stop_id,stop_sequence\n"
                "T1,08:00:00,08:00:00,A,\n"
            )
        index = make_index(loader.stop_times)

        departures = upcoming_departures(index, "A", now=datetime(2024, 6, 18, 7, 0, 0)).departures

        self.assertEqual([d.trip_id for d in departures], ["T1"])
        self.assertEqual(departures[0].eta_minutes, 60)

    def test_unknown_stop(self):
        with self.assertRaises(NotFound):
            upcoming_departures(make_index([]), "nope", now=NOW)

    def test_not_loaded(self):
        with self.assertRaises(NotFound):
            upcoming_departures(ScheduleIndex.empty(), "A", now=NOW)

    def test_to_dict(self):
        index = make_index([StopTime("T1", "A", 1, "08:00:00")])

        payload = upcoming_departures(index, "A", now=NOW).to_dict()

        self.assertEqual(payload, {
            "stopId": "A",
            "stopName": "Trg",
            "departures": [
                {"routeId": "1", "tripId": "T1", "headsign": "Borongaj", "time": "08:00", "etaMinutes": 1}
            ],
        })

    def test_seconds_to_clock(self):
        self.assertEqual(seconds_to_clock(0), "00:00")
        self.assertEqual(seconds_to_clock(8 * 3600 + 5 * 60 + 59), "08:05")
        self.assertEqual(seconds_to_clock(24 * 3600), "00:00")


if __name__ == "__main__":
    unittest.main()
