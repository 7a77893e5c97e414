"""Example usage of TransitTracker."""

import logging
import sys
from pathlib import Path

# Add src to path so we can import zettrack
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from zettrack.config import TrackerConfig
from zettrack.exceptions import NotFound, UpstreamFetchFailure
from zettrack.transit_tracker import TransitTracker

# Set up logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


def print_departures(tracker: TransitTracker, stop_id: str):
    """
    Display the next departures from a stop.

    Args:
        stop_id: GTFS stop id (e.g. "100_1")
    """
    result = tracker.get_departures(stop_id)

    print(f"\n{'='*70}")
    print(f"Departures from {result.stop_name} ({result.stop_id})")
    print(f"{'='*70}\n")

    if not result.departures:
        print("  No more departures today")
    for departure in result.departures:
        print(f"  Line {departure.route_id or '?':>4}: {departure.time}  {departure.eta_minutes:3d} min → {departure.headsign}")
    print()


def print_vehicles(tracker: TransitTracker):
    """Display a count of live trams and buses."""
    try:
        snapshot = tracker.get_vehicles()
    except UpstreamFetchFailure as e:
        print(f"Live positions unavailable: {e}")
        return

    trams = sum(1 for v in snapshot.vehicles if v.category == "tram")
    buses = sum(1 for v in snapshot.vehicles if v.category == "bus")
    print(f"Live vehicles: {trams} trams, {buses} buses (feed time {snapshot.updated_at})")


def interactive_mode(tracker: TransitTracker):
    """
    Query departures by stop id, or by coordinates as "lat,lon".
    """
    print("ZET Transit Tracker - Interactive Mode")
    print("Enter a stop id, or 'lat,lon' for the nearest station")
    print("(Type 'quit' to exit)\n")

    while True:
        try:
            user_input = input("Stop (or 'quit'): ").strip()

            if user_input.lower() in ["quit", "q", "exit"]:
                print("Goodbye!")
                break

            if not user_input:
                continue

            if "," in user_input:
                lat, lon = (float(part) for part in user_input.split(",", 1))
                nearest = tracker.find_nearest_group(lat, lon)
                if nearest is None:
                    print("No stations loaded")
                    continue
                group, distance = nearest
                print(f"Nearest station: {group.name} ({distance:.0f} m, platforms {', '.join(group.stop_ids)})")
                user_input = group.stop_ids[0]

            try:
                print_departures(tracker, user_input)
            except NotFound as e:
                print(f"Stop not found: {e}")

        except KeyboardInterrupt:
            print("\n\nGoodbye!")
            break
        except ValueError as e:
            print(f"Error: {e}")


if __name__ == "__main__":
    tracker = TransitTracker(TrackerConfig.from_env())
    if not tracker.schedule_loaded:
        print("Schedule not loaded; set ZETTRACK_GTFS_PATH or ZETTRACK_GTFS_URL")
        sys.exit(1)

    print_vehicles(tracker)
    try:
        if len(sys.argv) > 1:
            print_departures(tracker, sys.argv[1])
        else:
            interactive_mode(tracker)
    finally:
        tracker.stop()
