"""Fixed-cadence polling of the realtime feed."""

import logging
import threading
from typing import Optional

from .broadcaster import Broadcaster
from .config import POLL_INTERVAL_SECONDS
from .exceptions import UpstreamFetchFailure
from .models import VehicleSnapshot
from .realtime_client import RealtimeClient

logger = logging.getLogger(__name__)


class VehicleFeedPoller:
    """
    Polls the realtime feed on its own thread and hands snapshots to a Broadcaster.

    The next poll is scheduled ``interval`` seconds after the previous one
    finishes, whatever its outcome. A failed poll keeps the last good
    snapshot.
    """

    def __init__(
        self,
        client: RealtimeClient,
        broadcaster: Optional[Broadcaster] = None,
        interval: float = POLL_INTERVAL_SECONDS,
    ):
        self.client = client
        self.broadcaster = broadcaster if broadcaster is not None else Broadcaster()
        self.interval = interval
        self._snapshot: Optional[VehicleSnapshot] = None
        self._fetch_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def snapshot(self) -> Optional[VehicleSnapshot]:
        return self._snapshot

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def poll_once(self) -> bool:
        """
        Fetch the feed once.

        Returns:
            True if a new snapshot was stored and published.
        """
        try:
            snapshot = self.client.fetch_snapshot()
        except UpstreamFetchFailure as e:
            logger.error(f"Vehicle update failed, keeping last snapshot: {e}")
            return False

        self._snapshot = snapshot
        self.broadcaster.publish(snapshot)
        return True

    def current_snapshot(self) -> VehicleSnapshot:
        """
        Return the last snapshot, fetching one now only if none exists yet.

        Raises:
            UpstreamFetchFailure: If there is no snapshot and fetching fails.
        """
        if self._snapshot is not None:
            return self._snapshot
        with self._fetch_lock:
            if self._snapshot is None:
                snapshot = self.client.fetch_snapshot()
                self._snapshot = snapshot
                self.broadcaster.publish(snapshot)
        return self._snapshot

    def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.poll_once()
            except Exception:
                logger.exception("Unexpected error in vehicle update loop")
            self._stop_event.wait(self.interval)

    def start(self) -> None:
        """Start polling on a daemon thread."""
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="vehicle-feed-poller", daemon=True)
        self._thread.start()
        logger.info(f"Polling {self.client.feed_url} every {self.interval:g}s")

    def stop(self, timeout: Optional[float] = None) -> None:
        """Stop polling and wait for the current tick to finish."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info("Vehicle polling stopped")
