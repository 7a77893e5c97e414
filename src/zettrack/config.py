"""Configuration for the ZET transit tracker."""

import os
from dataclasses import dataclass
from typing import Optional

# ZET GTFS-Realtime vehicle positions
ZET_RT_URL = "https://www.zet.hr/gtfs-rt-protobuf"

# Local copy of the ZET GTFS static archive
GTFS_ZIP_PATH = os.path.join("data", "zet-gtfs.zip")

POLL_INTERVAL_SECONDS = 10.0
REQUEST_TIMEOUT_SECONDS = 10.0
STOP_GROUP_THRESHOLD_M = 40.0


def _env_float(name: str, default: float) -> float:
    value = os.environ.get(name)
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {value!r}")


@dataclass
class TrackerConfig:
    """Settings for a TransitTracker."""

    gtfs_path: str = GTFS_ZIP_PATH  # ZIP archive or directory
    gtfs_url: Optional[str] = None  # Download the archive from here instead of gtfs_path
    realtime_url: str = ZET_RT_URL
    poll_interval_seconds: float = POLL_INTERVAL_SECONDS
    request_timeout_seconds: float = REQUEST_TIMEOUT_SECONDS
    stop_group_threshold_m: float = STOP_GROUP_THRESHOLD_M
    stream_stop_times: bool = False  # Scan stop_times.txt per query instead of indexing it

    @classmethod
    def from_env(cls) -> "TrackerConfig":
        """Build a config from ZETTRACK_* environment variables."""
        return cls(
            gtfs_path=os.environ.get("ZETTRACK_GTFS_PATH", GTFS_ZIP_PATH),
            gtfs_url=os.environ.get("ZETTRACK_GTFS_URL") or None,
            realtime_url=os.environ.get("ZETTRACK_RT_URL", ZET_RT_URL),
            poll_interval_seconds=_env_float("ZETTRACK_POLL_INTERVAL", POLL_INTERVAL_SECONDS),
            request_timeout_seconds=_env_float("ZETTRACK_REQUEST_TIMEOUT", REQUEST_TIMEOUT_SECONDS),
            stop_group_threshold_m=_env_float("ZETTRACK_STOP_GROUP_THRESHOLD", STOP_GROUP_THRESHOLD_M),
            stream_stop_times=os.environ.get("ZETTRACK_STREAM_STOP_TIMES", "").lower() in ("1", "true", "yes"),
        )
