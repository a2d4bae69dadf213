"""Data models for GTFS feeds and pipeline configuration."""

import os
from dataclasses import dataclass, field


@dataclass(frozen=True)
class Stop:
    """GTFS stop with coordinates."""

    stop_id: str
    name: str
    lat: float | None
    lon: float | None


@dataclass(frozen=True)
class Route:
    """GTFS route."""

    route_id: str
    route_short_name: str
    route_long_name: str
    route_type: int
    agency_id: str = ""


@dataclass(frozen=True)
class Agency:
    """GTFS agency."""

    agency_id: str
    agency_name: str
    agency_url: str
    agency_timezone: str


@dataclass(frozen=True)
class Service:
    """GTFS calendar entry."""

    service_id: str
    monday: bool
    tuesday: bool
    wednesday: bool
    thursday: bool
    friday: bool
    saturday: bool
    sunday: bool
    start_date: str
    end_date: str


@dataclass(frozen=True)
class ServiceException:
    """GTFS calendar_dates entry."""

    service_id: str
    date: str
    exception_type: int


@dataclass(frozen=True)
class ShapePoint:
    """One point of a GTFS shape."""

    shape_id: str
    lat: float
    lon: float
    sequence: int


@dataclass(frozen=True)
class Trip:
    """GTFS trip."""

    route_id: str
    service_id: str
    trip_id: str
    headsign: str = ""
    shape_id: str = ""
    direction_id: int | None = None


@dataclass(frozen=True)
class StopTime:
    """GTFS stop time (one scheduled stop visit of a trip).

    Times are kept as the wall-clock strings found in the feed; an empty
    string means the time is undetermined.
    """

    trip_id: str
    stop_id: str
    stop_sequence: int
    arrival_time: str
    departure_time: str
    pickup_type: int = 0
    drop_off_type: int = 0


@dataclass
class Feed:
    """In-memory view of the tables the pipeline reads and writes."""

    agencies: list[Agency] = field(default_factory=list)
    stops: list[Stop] = field(default_factory=list)
    routes: list[Route] = field(default_factory=list)
    services: list[Service] = field(default_factory=list)
    service_exceptions: list[ServiceException] = field(default_factory=list)
    trips: list[Trip] = field(default_factory=list)
    stop_times: list[StopTime] = field(default_factory=list)
    shape_points: list[ShapePoint] = field(default_factory=list)

    def stats(self) -> dict[str, int]:
        """Row counts per table."""
        return {
            "agencies": len(self.agencies),
            "stops": len(self.stops),
            "routes": len(self.routes),
            "services": len(self.services),
            "service_exceptions": len(self.service_exceptions),
            "trips": len(self.trips),
            "stop_times": len(self.stop_times),
            "shape_points": len(self.shape_points),
        }


@dataclass
class ValidationReport:
    """Report from validation process."""

    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    stats: dict[str, int] = field(default_factory=dict)


@dataclass
class ExportOptions:
    """Optional post-passes applied by the feed exporter."""

    only_routes: set[str] | None = None
    prune_unused: bool = False
    round_coords: bool = False
    decimate_shapes: bool = False
    max_shape_points: int = 2000
    default_timezone: str = "UTC"


@dataclass
class RebuildConfig:
    """Configuration for a rebuild run."""

    feed_source: str
    feed_slug: str = "feed"
    output_dir: str = "site"
    output_zip: str = ""
    report_name: str = "report.json"
    overrides_path: str = "automation/overrides.json"
    overrides_url: str = ""
    step_summary_path: str = ""
    timeout: float = 60.0
    strict: bool = False
    export: ExportOptions = field(default_factory=ExportOptions)

    def __post_init__(self) -> None:
        if not self.output_zip:
            self.output_zip = f"{self.feed_slug}_compiled.zip"

    @property
    def overrides_source(self) -> str:
        """Where the rules document is taken from (URL preferred)."""
        return self.overrides_url or self.overrides_path

    @classmethod
    def from_env(cls, **overrides: object) -> "RebuildConfig":
        """Build a config from environment variables, then apply keyword overrides."""
        values: dict[str, object] = {
            "feed_source": os.environ.get("FEED_URL", ""),
            "feed_slug": os.environ.get("FEED_SLUG", "feed"),
            "output_dir": os.environ.get("OUT_DIR", "site"),
            "output_zip": os.environ.get("OUT_ZIP", ""),
            "report_name": os.environ.get("OUT_REPORT", "report.json"),
            "overrides_path": os.environ.get("OVERRIDES", "automation/overrides.json"),
            "overrides_url": os.environ.get("OVERRIDES_URL", ""),
            "step_summary_path": os.environ.get("GITHUB_STEP_SUMMARY", ""),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)  # type: ignore[arg-type]
