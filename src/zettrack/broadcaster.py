"""Fan-out of vehicle snapshots to push subscribers."""

import logging
import queue
import threading
from typing import Iterator, Optional, Set

from .models import VehicleSnapshot

logger = logging.getLogger(__name__)


class Subscription:
    """
    A single push consumer (e.g. one websocket connection).

    Holds at most one undelivered snapshot. Offering a new snapshot to a
    subscriber that has not consumed the previous one replaces it, so a slow
    consumer only ever sees the newest state and never holds up others.
    """

    def __init__(self, broadcaster: "Broadcaster"):
        self._broadcaster = broadcaster
        self._mailbox: "queue.Queue[Optional[VehicleSnapshot]]" = queue.Queue(maxsize=1)
        self.closed = False

    def offer(self, snapshot: VehicleSnapshot) -> None:
        """Deliver without blocking, dropping any snapshot still waiting."""
        if self.closed:
            return
        while True:
            try:
                self._mailbox.put_nowait(snapshot)
                return
            except queue.Full:
                try:
                    self._mailbox.get_nowait()
                except queue.Empty:
                    pass

    def get(self, timeout: Optional[float] = None) -> Optional[VehicleSnapshot]:
        """Wait for the next snapshot. Returns None on timeout or after close()."""
        if self.closed and self._mailbox.empty():
            return None
        try:
            return self._mailbox.get(timeout=timeout)
        except queue.Empty:
            return None

    def __iter__(self) -> Iterator[VehicleSnapshot]:
        while True:
            snapshot = self.get()
            if snapshot is None:
                return
            yield snapshot

    def close(self) -> None:
        """Detach from the broadcaster and wake up a blocked get()."""
        if self.closed:
            return
        self._broadcaster.unsubscribe(self)
        self.closed = True
        try:
            self._mailbox.put_nowait(None)
        except queue.Full:
            pass


class Broadcaster:
    """Pushes each new vehicle snapshot to every current subscriber."""

    def __init__(self):
        self._subscribers: Set[Subscription] = set()
        self._lock = threading.Lock()
        self._latest: Optional[VehicleSnapshot] = None

    @property
    def latest(self) -> Optional[VehicleSnapshot]:
        return self._latest

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def subscribe(self) -> Subscription:
        """Attach a subscriber; it immediately receives the latest snapshot, if any."""
        subscription = Subscription(self)
        with self._lock:
            self._subscribers.add(subscription)
            latest = self._latest
        if latest is not None:
            subscription.offer(latest)
        logger.info(f"Subscriber attached ({self.subscriber_count} active)")
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            self._subscribers.discard(subscription)

    def publish(self, snapshot: VehicleSnapshot) -> None:
        """Record the snapshot as latest and offer it to all subscribers."""
        with self._lock:
            self._latest = snapshot
            subscribers = list(self._subscribers)
        for subscription in subscribers:
            subscription.offer(snapshot)
        logger.debug(f"Published {len(snapshot.vehicles)} vehicles to {len(subscribers)} subscribers")
