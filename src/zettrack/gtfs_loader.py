"""GTFS static data loader for ZET schedule data."""

import io
import logging
import os
import zipfile
from typing import IO, Dict, Iterator, List, Optional, Tuple, Union

import pandas as pd
import requests

from .config import REQUEST_TIMEOUT_SECONDS
from .exceptions import ConfigMissing
from .models import ExceptionType, ServiceCalendar, ServiceException, Stop, StopTime, Trip
from .schedule import ScheduleIndex

logger = logging.getLogger(__name__)

REQUIRED_TABLES = ("stops.txt", "trips.txt", "calendar.txt", "stop_times.txt")

WEEKDAY_COLUMNS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

STOP_TIMES_CHUNK_SIZE = 100_000

TableSource = Union[str, bytes, IO[bytes]]


def _clean_header(name: str) -> str:
    return str(name).replace("\ufeff", "").strip()


def read_table(source: TableSource, **kwargs):
    """Read a GTFS table with pandas, keeping every cell as a string.

    Columns are addressed by header name, so reordered columns and a stray
    byte-order mark in the header are tolerated. With ``chunksize`` the
    pandas chunk reader is returned instead of a DataFrame.
    """
    if isinstance(source, str):
        source = io.StringIO(source)
    elif isinstance(source, bytes):
        source = io.BytesIO(source)

    try:
        result = pd.read_csv(
            source,
            dtype=str,
            keep_default_na=False,
            encoding="utf-8-sig",
            skipinitialspace=True,
            **kwargs,
        )
    except pd.errors.EmptyDataError:
        return iter(()) if "chunksize" in kwargs else pd.DataFrame()

    if "chunksize" in kwargs:
        return _cleaned_chunks(result)
    result.columns = [_clean_header(c) for c in result.columns]
    return result


def _cleaned_chunks(reader) -> Iterator[pd.DataFrame]:
    with reader:
        for chunk in reader:
            chunk.columns = [_clean_header(c) for c in chunk.columns]
            yield chunk


def _column(frame: pd.DataFrame, name: str) -> List[str]:
    """Stripped values of a column, or empty strings when it is absent."""
    if name in frame.columns:
        return [str(v).strip() for v in frame[name].tolist()]
    return [""] * len(frame)


def _to_float(value: str) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _to_int(value: str) -> Optional[int]:
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return None


def stop_times_from_frame(frame: pd.DataFrame) -> Tuple[List[StopTime], int, int]:
    """Convert a stop_times frame to StopTime rows.

    Rows without a trip_id, or with neither an arrival nor a departure time,
    are dropped. A blank or non-numeric stop_sequence is read as 0 and the
    row is kept. Returns the rows, the number dropped and the number whose
    sequence was defaulted.
    """
    rows: List[StopTime] = []
    skipped = 0
    defaulted = 0
    columns = zip(
        _column(frame, "trip_id"),
        _column(frame, "stop_id"),
        _column(frame, "stop_sequence"),
        _column(frame, "arrival_time"),
        _column(frame, "departure_time"),
    )
    for trip_id, stop_id, sequence, arrival, departure in columns:
        if not trip_id or not (arrival or departure):
            skipped += 1
            continue
        stop_sequence = _to_int(sequence)
        if stop_sequence is None:
            stop_sequence = 0
            defaulted += 1
        rows.append(
            StopTime(
                trip_id=trip_id,
                stop_id=stop_id,
                stop_sequence=stop_sequence,
                arrival_time=arrival or None,
                departure_time=departure or None,
            )
        )
    return rows, skipped, defaulted


class GTFSBundle:
    """Read access to the tables of a GTFS ZIP archive or directory."""

    def __init__(self, path: Union[str, os.PathLike, None] = None, data: Optional[bytes] = None):
        if path is None and data is None:
            raise ValueError("GTFSBundle needs a path or archive bytes")
        self.path = os.fspath(path) if path is not None else None
        self._data = data

    @property
    def is_directory(self) -> bool:
        return self.path is not None and os.path.isdir(self.path)

    def _zip(self) -> zipfile.ZipFile:
        if self._data is not None:
            return zipfile.ZipFile(io.BytesIO(self._data))
        return zipfile.ZipFile(self.path)

    def table_names(self) -> List[str]:
        if self.is_directory:
            return sorted(os.listdir(self.path))
        with self._zip() as archive:
            return archive.namelist()

    def missing(self, names=REQUIRED_TABLES) -> List[str]:
        present = set(self.table_names())
        return [name for name in names if name not in present]

    def read(self, name: str) -> Optional[bytes]:
        """Return the raw bytes of a table, or None when it is absent."""
        if self.is_directory:
            file_path = os.path.join(self.path, name)
            if not os.path.isfile(file_path):
                return None
            with open(file_path, "rb") as f:
                return f.read()
        with self._zip() as archive:
            try:
                return archive.read(name)
            except KeyError:
                return None

    def iter_chunks(self, name: str, chunksize: int = STOP_TIMES_CHUNK_SIZE) -> Iterator[pd.DataFrame]:
        """Stream a table in chunks through a reader opened for this call only."""
        if self.is_directory:
            with open(os.path.join(self.path, name), "rb") as f:
                yield from read_table(f, chunksize=chunksize)
            return
        with self._zip() as archive:
            with archive.open(name) as f:
                yield from read_table(f, chunksize=chunksize)


class GTFSLoader:
    """Loads GTFS static data into an immutable ScheduleIndex."""

    def __init__(self, timeout: float = REQUEST_TIMEOUT_SECONDS):
        """Initialize the GTFS loader."""
        self.timeout = timeout
        self.stops: Dict[str, Stop] = {}
        self.trips: Dict[str, Trip] = {}
        self.calendars: Dict[str, ServiceCalendar] = {}
        self.exceptions: Dict[str, List[ServiceException]] = {}  # service_id -> in source order
        self.stop_times: List[StopTime] = []

    def load_from_url(self, url: str, index_stop_times: bool = True) -> ScheduleIndex:
        """Download a GTFS ZIP archive and load it."""
        logger.info(f"Downloading GTFS data from {url}")
        try:
            response = requests.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"Failed to download GTFS data: {e}")
            raise
        return self.load_bundle(GTFSBundle(data=response.content), index_stop_times)

    def load_from_path(self, path: Union[str, os.PathLike], index_stop_times: bool = True) -> ScheduleIndex:
        """Load GTFS data from a local ZIP archive or directory."""
        logger.info(f"Loading GTFS data from {os.fspath(path)}")
        return self.load_bundle(GTFSBundle(path), index_stop_times)

    def load_bundle(self, bundle: GTFSBundle, index_stop_times: bool = True) -> ScheduleIndex:
        """Load every table of a bundle.

        Raises ConfigMissing before parsing anything if a required table is
        absent. With ``index_stop_times`` False the stop_times table is not
        held in memory; the index streams it per query instead.
        """
        missing = bundle.missing()
        if missing:
            logger.warning(f"GTFS bundle is missing {', '.join(missing)}")
            raise ConfigMissing(missing)

        self.clear()
        self._load_stops(bundle.read("stops.txt"))
        self._load_trips(bundle.read("trips.txt"))
        self._load_calendar(bundle.read("calendar.txt"))
        calendar_dates = bundle.read("calendar_dates.txt")
        if calendar_dates is not None:
            self._load_calendar_dates(calendar_dates)
        if index_stop_times:
            self._load_stop_times(bundle.read("stop_times.txt"))

        index = self.build(None if index_stop_times else StreamingStopTimes(bundle))
        logger.info(
            f"Loaded {len(self.stops)} stops, {len(self.trips)} trips, {len(self.stop_times)} stop times "
            f"and {len(self.calendars)} services"
        )
        return index

    def _load_stops(self, content: TableSource) -> None:
        """Parse stops.txt into Stop objects."""
        frame = read_table(content)
        rows = zip(
            _column(frame, "stop_id"),
            _column(frame, "stop_name"),
            _column(frame, "stop_lat"),
            _column(frame, "stop_lon"),
        )
        for stop_id, name, lat, lon in rows:
            if not stop_id:
                continue
            self.stops[stop_id] = Stop(
                stop_id=stop_id,
                name=name,
                latitude=_to_float(lat),
                longitude=_to_float(lon),
            )

    def _load_trips(self, content: TableSource) -> None:
        """Parse trips.txt."""
        frame = read_table(content)
        rows = zip(
            _column(frame, "trip_id"),
            _column(frame, "route_id"),
            _column(frame, "service_id"),
            _column(frame, "trip_headsign"),
        )
        for trip_id, route_id, service_id, headsign in rows:
            if not trip_id:
                continue
            self.trips[trip_id] = Trip(
                trip_id=trip_id,
                route_id=route_id or None,
                service_id=service_id or None,
                headsign=headsign,
            )

    def _load_calendar(self, content: TableSource) -> None:
        """Parse calendar.txt into weekly service patterns."""
        frame = read_table(content)
        service_ids = _column(frame, "service_id")
        days = [_column(frame, day) for day in WEEKDAY_COLUMNS]
        starts = _column(frame, "start_date")
        ends = _column(frame, "end_date")

        for i, service_id in enumerate(service_ids):
            start_date = _to_int(starts[i])
            end_date = _to_int(ends[i])
            if not service_id or start_date is None or end_date is None:
                logger.warning(f"Skipping calendar row {i + 1} with incomplete service data")
                continue
            self.calendars[service_id] = ServiceCalendar(
                service_id=service_id,
                weekdays=tuple(column[i] == "1" for column in days),
                start_date=start_date,
                end_date=end_date,
            )

    def _load_calendar_dates(self, content: TableSource) -> None:
        """Parse calendar_dates.txt, keeping exceptions in source order."""
        frame = read_table(content)
        rows = zip(
            _column(frame, "service_id"),
            _column(frame, "date"),
            _column(frame, "exception_type"),
        )
        for service_id, date, exception_type in rows:
            date_int = _to_int(date)
            try:
                kind = ExceptionType(_to_int(exception_type))
            except ValueError:
                logger.debug(f"Ignoring calendar_dates row for {service_id} with type {exception_type!r}")
                continue
            if not service_id or date_int is None:
                continue
            self.exceptions.setdefault(service_id, []).append(
                ServiceException(service_id=service_id, date=date_int, exception_type=kind)
            )

    def _load_stop_times(self, content: TableSource) -> None:
        """Parse stop_times.txt."""
        rows, skipped, defaulted = stop_times_from_frame(read_table(content))
        self.stop_times.extend(rows)
        if skipped:
            logger.warning(f"Skipped {skipped} stop_times rows without a trip_id or any time")
        if defaulted:
            logger.warning(f"Read {defaulted} stop_times rows with a missing stop_sequence as 0")

    def build(self, stop_time_source=None) -> ScheduleIndex:
        """Freeze what has been loaded so far into a ScheduleIndex."""
        return ScheduleIndex.build(
            stops=self.stops,
            trips=self.trips,
            calendars=self.calendars,
            exceptions=self.exceptions,
            stop_times=self.stop_times,
            stop_time_source=stop_time_source,
        )

    def clear(self) -> None:
        """Drop all parsed tables to free memory."""
        self.stops = {}
        self.trips = {}
        self.calendars = {}
        self.exceptions = {}
        self.stop_times = []


class StreamingStopTimes:
    """Stop-time lookups that scan stop_times.txt on every query.

    Each call opens its own reader over the bundle, so concurrent queries
    never share cursor state. Trades latency for not holding the table in
    memory.
    """

    def __init__(self, bundle: GTFSBundle, chunksize: int = STOP_TIMES_CHUNK_SIZE):
        self.bundle = bundle
        self.chunksize = chunksize

    def _scan(self, column: str, value: str) -> List[StopTime]:
        matches: List[StopTime] = []
        for chunk in self.bundle.iter_chunks("stop_times.txt", self.chunksize):
            if column not in chunk.columns:
                break
            selected = chunk[chunk[column].str.strip() == value]
            if len(selected):
                rows, _, _ = stop_times_from_frame(selected)
                matches.extend(rows)
        return matches

    def stop_times_for_trip(self, trip_id: str) -> Tuple[StopTime, ...]:
        rows = self._scan("trip_id", trip_id)
        return tuple(sorted(rows, key=lambda st: st.stop_sequence))

    def stop_times_for_stop(self, stop_id: str) -> Tuple[StopTime, ...]:
        rows = [st for st in self._scan("stop_id", stop_id) if st.arrival_seconds is not None]
        return tuple(sorted(rows, key=lambda st: st.arrival_seconds))
