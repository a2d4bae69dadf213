"""CSV serialization of GTFS tables."""

import csv
import io
from collections.abc import Callable, Iterable, Sequence
from typing import Any

from gtfs_od_pipeline.gtfs.models import (
    Agency,
    Route,
    Service,
    ServiceException,
    ShapePoint,
    Stop,
    StopTime,
    Trip,
)

AGENCY_COLUMNS = ["agency_id", "agency_name", "agency_url", "agency_timezone"]
STOP_COLUMNS = ["stop_id", "stop_name", "stop_lat", "stop_lon"]
ROUTE_COLUMNS = ["route_id", "route_short_name", "route_long_name", "route_type", "agency_id"]
CALENDAR_COLUMNS = [
    "service_id",
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
    "start_date",
    "end_date",
]
CALENDAR_DATE_COLUMNS = ["service_id", "date", "exception_type"]
TRIP_COLUMNS = ["route_id", "service_id", "trip_id", "trip_headsign", "shape_id", "direction_id"]
STOP_TIME_COLUMNS = [
    "trip_id",
    "arrival_time",
    "departure_time",
    "stop_id",
    "stop_sequence",
    "pickup_type",
    "drop_off_type",
]
SHAPE_COLUMNS = ["shape_id", "shape_pt_lat", "shape_pt_lon", "shape_pt_sequence"]


def csvify(rows: Iterable[Sequence[Any]], header: Sequence[str]) -> str:
    """Render rows as CSV text, header always included."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(header)
    for row in rows:
        writer.writerow(["" if value is None else value for value in row])
    return buffer.getvalue()


def _flag(value: bool) -> str:
    return "1" if value else "0"


def agency_row(a: Agency) -> list[Any]:
    return [a.agency_id, a.agency_name, a.agency_url, a.agency_timezone]


def stop_row(s: Stop) -> list[Any]:
    return [s.stop_id, s.name, s.lat, s.lon]


def route_row(r: Route) -> list[Any]:
    return [r.route_id, r.route_short_name, r.route_long_name, r.route_type, r.agency_id]


def service_row(s: Service) -> list[Any]:
    days = [s.monday, s.tuesday, s.wednesday, s.thursday, s.friday, s.saturday, s.sunday]
    return [s.service_id, *(_flag(d) for d in days), s.start_date, s.end_date]


def service_exception_row(e: ServiceException) -> list[Any]:
    return [e.service_id, e.date, e.exception_type]


def trip_row(t: Trip) -> list[Any]:
    return [t.route_id, t.service_id, t.trip_id, t.headsign, t.shape_id, t.direction_id]


def stop_time_row(st: StopTime) -> list[Any]:
    return [
        st.trip_id,
        st.arrival_time,
        st.departure_time,
        st.stop_id,
        st.stop_sequence,
        st.pickup_type,
        st.drop_off_type,
    ]


def shape_row(p: ShapePoint) -> list[Any]:
    return [p.shape_id, p.lat, p.lon, p.sequence]


# filename -> (Feed attribute, header, row function)
TABLES: dict[str, tuple[str, list[str], Callable[[Any], list[Any]]]] = {
    "agency.txt": ("agencies", AGENCY_COLUMNS, agency_row),
    "stops.txt": ("stops", STOP_COLUMNS, stop_row),
    "routes.txt": ("routes", ROUTE_COLUMNS, route_row),
    "calendar.txt": ("services", CALENDAR_COLUMNS, service_row),
    "calendar_dates.txt": ("service_exceptions", CALENDAR_DATE_COLUMNS, service_exception_row),
    "trips.txt": ("trips", TRIP_COLUMNS, trip_row),
    "stop_times.txt": ("stop_times", STOP_TIME_COLUMNS, stop_time_row),
    "shapes.txt": ("shape_points", SHAPE_COLUMNS, shape_row),
}
