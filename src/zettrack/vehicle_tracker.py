"""Consumer-side tracking of vehicles across snapshots."""

import logging
from dataclasses import dataclass, field
from typing import Collection, Dict, Iterable, List, Optional, Set, Tuple

from .models import VehiclePosition, VehicleSnapshot

logger = logging.getLogger(__name__)


def filter_vehicles(
    vehicles: Iterable[VehiclePosition],
    categories: Optional[Collection[str]] = None,
    lines: Optional[Collection[str]] = None,
) -> List[VehiclePosition]:
    """
    Keep vehicles matching the selected categories and lines.

    An empty or None filter lets everything through. Vehicles without a
    category pass the category filter; with a line filter, vehicles without
    a route id are dropped.
    """
    result = []
    for vehicle in vehicles:
        if categories and vehicle.category is not None and vehicle.category not in categories:
            continue
        if lines and (vehicle.route_id is None or str(vehicle.route_id) not in lines):
            continue
        result.append(vehicle)
    return result


class GenerationCounter:
    """
    Monotonic per-entity generation numbers.

    Every update of an entity advances its generation. Work started for an
    older generation (e.g. an animated move toward a stale position) checks
    ``is_current`` and stops once a newer update has arrived.
    """

    def __init__(self):
        self._generations: Dict[str, int] = {}

    def advance(self, entity_id: str) -> int:
        generation = self._generations.get(entity_id, 0) + 1
        self._generations[entity_id] = generation
        return generation

    def current(self, entity_id: str) -> Optional[int]:
        return self._generations.get(entity_id)

    def is_current(self, entity_id: str, generation: int) -> bool:
        return self._generations.get(entity_id) == generation

    def discard(self, entity_id: str) -> None:
        self._generations.pop(entity_id, None)


@dataclass(frozen=True)
class VehicleTransition:
    """A vehicle moving from its previous position to a new one."""
    vehicle: VehiclePosition
    previous: Optional[Tuple[float, float]]  # None for a newly seen vehicle
    generation: int


@dataclass
class TrackerUpdate:
    transitions: List[VehicleTransition] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)


class VehicleTracker:
    """Diffs consecutive snapshots for a consumer that draws vehicles."""

    def __init__(self):
        self.generations = GenerationCounter()
        self.positions: Dict[str, Tuple[float, float]] = {}
        self.known_lines: Set[str] = set()

    @staticmethod
    def _key(vehicle: VehiclePosition) -> Optional[str]:
        return vehicle.vehicle_id or vehicle.trip_id

    def apply(
        self,
        snapshot: VehicleSnapshot,
        categories: Optional[Collection[str]] = None,
        lines: Optional[Collection[str]] = None,
    ) -> TrackerUpdate:
        """
        Apply a snapshot.

        Returns the shown vehicles with their previous position and new
        generation, and the ids of vehicles no longer shown. Every line seen
        in the snapshot is added to ``known_lines`` before filtering by line.
        """
        update = TrackerUpdate()
        seen: Set[str] = set()

        candidates = [
            v for v in filter_vehicles(snapshot.vehicles, categories=categories)
            if v.latitude and v.longitude and self._key(v)
        ]
        for vehicle in candidates:
            if vehicle.route_id:
                self.known_lines.add(str(vehicle.route_id))

        for vehicle in filter_vehicles(candidates, lines=lines):
            key = self._key(vehicle)
            seen.add(key)
            update.transitions.append(
                VehicleTransition(
                    vehicle=vehicle,
                    previous=self.positions.get(key),
                    generation=self.generations.advance(key),
                )
            )
            self.positions[key] = (vehicle.latitude, vehicle.longitude)

        for key in list(self.positions):
            if key not in seen:
                del self.positions[key]
                self.generations.discard(key)
                update.removed.append(key)

        return update
