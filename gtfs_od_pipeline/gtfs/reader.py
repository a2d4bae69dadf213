"""GTFS table reader for directories and zip archives."""

import csv
import io
import logging
import zipfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import TextIO

from gtfs_od_pipeline.gtfs.models import (
    Agency,
    Feed,
    Route,
    Service,
    ServiceException,
    ShapePoint,
    Stop,
    StopTime,
    Trip,
)

logger = logging.getLogger(__name__)


class GTFSReader:
    """Read a GTFS feed from a directory or a zip archive.

    Absent tables are treated as empty; only rows that cannot be parsed
    at all raise.
    """

    def __init__(self, gtfs_path: str) -> None:
        """Initialize reader with GTFS directory or archive path."""
        self.gtfs_path = Path(gtfs_path)
        if self.gtfs_path.is_dir():
            self._archive: zipfile.ZipFile | None = None
        elif self.gtfs_path.is_file() and zipfile.is_zipfile(self.gtfs_path):
            self._archive = zipfile.ZipFile(self.gtfs_path)
        else:
            raise ValueError(f"GTFS path not found or not a directory/zip archive: {gtfs_path}")

        self.feed = Feed()

    def close(self) -> None:
        """Release the archive handle, if any."""
        if self._archive is not None:
            self._archive.close()
            self._archive = None

    def __enter__(self) -> "GTFSReader":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def read_all(self) -> Feed:
        """Read all GTFS tables."""
        logger.info(f"Reading GTFS data from {self.gtfs_path}")
        self.read_agencies()
        self.read_stops()
        self.read_routes()
        self.read_calendar()
        self.read_calendar_dates()
        self.read_trips()
        self.read_stop_times()
        self.read_shapes()
        stats = self.feed.stats()
        logger.info(
            f"Loaded {stats['stops']} stops, {stats['routes']} routes, "
            f"{stats['trips']} trips, {stats['stop_times']} stop_times, "
            f"{stats['shape_points']} shape points, {stats['services']} calendar entries"
        )
        return self.feed

    def table_names(self) -> list[str]:
        """Names of the .txt tables present in the source."""
        if self._archive is not None:
            names = [
                Path(name).name
                for name in self._archive.namelist()
                if name.lower().endswith(".txt") and not name.endswith("/")
            ]
        else:
            names = [p.name for p in self.gtfs_path.iterdir() if p.suffix.lower() == ".txt"]
        return sorted(names)

    @contextmanager
    def _open_table(self, filename: str) -> Iterator[TextIO | None]:
        """Open a table by file name, yielding None when it is absent."""
        if self._archive is not None:
            member = self._find_member(filename)
            if member is None:
                yield None
                return
            with self._archive.open(member) as raw:
                yield io.TextIOWrapper(raw, encoding="utf-8-sig", newline="")
            return

        file_path = self.gtfs_path / filename
        if not file_path.exists():
            yield None
            return
        with open(file_path, encoding="utf-8-sig", newline="") as f:
            yield f

    def _find_member(self, filename: str) -> str | None:
        # Archives are sometimes built with a top-level folder
        assert self._archive is not None
        for name in self._archive.namelist():
            if Path(name).name.lower() == filename.lower():
                return name
        return None

    def _rows(self, filename: str) -> Iterator[tuple[int, dict[str, str]]]:
        """Yield (line number, row) pairs, skipping rows with no header field set."""
        with self._open_table(filename) as f:
            if f is None:
                logger.info(f"{filename} not found, treating as empty")
                return
            reader = csv.DictReader(f)
            for row in reader:
                # Surplus fields land under the None key as a list
                fields = {key.strip(): (value or "").strip() for key, value in row.items() if key}
                if not any(fields.values()):
                    continue
                yield reader.line_num, fields

    def read_agencies(self) -> None:
        """Read agency.txt."""
        for _, row in self._rows("agency.txt"):
            self.feed.agencies.append(
                Agency(
                    agency_id=row.get("agency_id", ""),
                    agency_name=row.get("agency_name", ""),
                    agency_url=row.get("agency_url", ""),
                    agency_timezone=row.get("agency_timezone", ""),
                )
            )

    def read_stops(self) -> None:
        """Read stops.txt."""
        for _, row in self._rows("stops.txt"):
            self.feed.stops.append(
                Stop(
                    stop_id=row.get("stop_id", ""),
                    name=row.get("stop_name", ""),
                    lat=_parse_float(row.get("stop_lat", "")),
                    lon=_parse_float(row.get("stop_lon", "")),
                )
            )

    def read_routes(self) -> None:
        """Read routes.txt."""
        for line, row in self._rows("routes.txt"):
            self.feed.routes.append(
                Route(
                    route_id=row.get("route_id", ""),
                    route_short_name=row.get("route_short_name", ""),
                    route_long_name=row.get("route_long_name", ""),
                    route_type=_parse_int(row.get("route_type", ""), "routes.txt", line, default=3),
                    agency_id=row.get("agency_id", ""),
                )
            )

    def read_calendar(self) -> None:
        """Read calendar.txt."""
        for _, row in self._rows("calendar.txt"):
            self.feed.services.append(
                Service(
                    service_id=row.get("service_id", ""),
                    monday=row.get("monday") == "1",
                    tuesday=row.get("tuesday") == "1",
                    wednesday=row.get("wednesday") == "1",
                    thursday=row.get("thursday") == "1",
                    friday=row.get("friday") == "1",
                    saturday=row.get("saturday") == "1",
                    sunday=row.get("sunday") == "1",
                    start_date=row.get("start_date", ""),
                    end_date=row.get("end_date", ""),
                )
            )

    def read_calendar_dates(self) -> None:
        """Read calendar_dates.txt."""
        for line, row in self._rows("calendar_dates.txt"):
            self.feed.service_exceptions.append(
                ServiceException(
                    service_id=row.get("service_id", ""),
                    date=row.get("date", ""),
                    exception_type=_parse_int(
                        row.get("exception_type", ""), "calendar_dates.txt", line, default=1
                    ),
                )
            )

    def read_trips(self) -> None:
        """Read trips.txt."""
        for line, row in self._rows("trips.txt"):
            direction = row.get("direction_id", "")
            self.feed.trips.append(
                Trip(
                    route_id=row.get("route_id", ""),
                    service_id=row.get("service_id", ""),
                    trip_id=row.get("trip_id", ""),
                    headsign=row.get("trip_headsign", ""),
                    shape_id=row.get("shape_id", ""),
                    direction_id=_parse_int(direction, "trips.txt", line) if direction else None,
                )
            )

    def read_stop_times(self) -> None:
        """Read stop_times.txt, keeping source row order and raw time strings."""
        for line, row in self._rows("stop_times.txt"):
            self.feed.stop_times.append(
                StopTime(
                    trip_id=row.get("trip_id", ""),
                    stop_id=row.get("stop_id", ""),
                    stop_sequence=_parse_int(row.get("stop_sequence", ""), "stop_times.txt", line),
                    arrival_time=row.get("arrival_time", ""),
                    departure_time=row.get("departure_time", ""),
                    pickup_type=_parse_flag(row.get("pickup_type", "")),
                    drop_off_type=_parse_flag(row.get("drop_off_type", "")),
                )
            )

    def read_shapes(self) -> None:
        """Read shapes.txt."""
        for line, row in self._rows("shapes.txt"):
            lat = _parse_float(row.get("shape_pt_lat", ""))
            lon = _parse_float(row.get("shape_pt_lon", ""))
            if lat is None or lon is None:
                raise ValueError(f"shapes.txt line {line}: missing shape point coordinates")
            self.feed.shape_points.append(
                ShapePoint(
                    shape_id=row.get("shape_id", ""),
                    lat=lat,
                    lon=lon,
                    sequence=_parse_int(row.get("shape_pt_sequence", ""), "shapes.txt", line),
                )
            )


def read_feed(gtfs_path: str) -> Feed:
    """Read every supported table of a feed directory or archive."""
    with GTFSReader(gtfs_path) as reader:
        return reader.read_all()


def _parse_float(value: str) -> float | None:
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def _parse_int(value: str, table: str, line: int, default: int | None = None) -> int:
    if not value and default is not None:
        return default
    try:
        # Some producers write integers as "3.0"
        return int(float(value)) if "." in value else int(value)
    except ValueError:
        raise ValueError(f"{table} line {line}: invalid integer value {value!r}") from None


def _parse_flag(value: str) -> int:
    return 1 if value == "1" else 0
