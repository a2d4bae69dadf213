"""Minimal GTFS feed checks: required fields, unique identities, references."""

import logging
from collections import defaultdict

from gtfs_od_pipeline.gtfs.models import Feed, StopTime, ValidationReport

logger = logging.getLogger(__name__)


class GTFSValidator:
    """Validate a feed for the fields and references the compiler relies on."""

    def __init__(self, feed: Feed) -> None:
        """Initialize validator with a loaded feed."""
        self.feed = feed
        self.errors: list[str] = []
        self.warnings: list[str] = []

    def validate(self) -> ValidationReport:
        """Run all validation checks."""
        logger.info("Validating GTFS data")

        self._validate_required()
        self._validate_unique()
        self._validate_trips()
        self._validate_stop_times()

        valid = len(self.errors) == 0

        report = ValidationReport(
            valid=valid,
            errors=self.errors.copy(),
            warnings=self.warnings.copy(),
            stats=self.feed.stats(),
        )

        if not valid:
            logger.error(f"Validation failed with {len(self.errors)} errors")
        elif self.warnings:
            logger.warning(f"Validation passed with {len(self.warnings)} warnings")
        else:
            logger.info("Validation passed")

        return report

    def _require(self, rows: list, attr: str, filename: str) -> None:
        for line, row in enumerate(rows, start=2):
            if not getattr(row, attr):
                self.errors.append(f"{filename} line {line}: missing {attr}")

    def _unique(self, rows: list, attr: str, filename: str) -> None:
        seen: set[str] = set()
        for line, row in enumerate(rows, start=2):
            value = getattr(row, attr)
            if value in seen:
                self.errors.append(f"{filename} line {line}: duplicate {attr}: {value}")
            seen.add(value)

    def _validate_required(self) -> None:
        """Every table row carries its identity."""
        self._require(self.feed.agencies, "agency_id", "agency.txt")
        self._require(self.feed.stops, "stop_id", "stops.txt")
        self._require(self.feed.routes, "route_id", "routes.txt")
        self._require(self.feed.services, "service_id", "calendar.txt")
        self._require(self.feed.trips, "trip_id", "trips.txt")
        self._require(self.feed.stop_times, "trip_id", "stop_times.txt")
        self._require(self.feed.stop_times, "stop_id", "stop_times.txt")

    def _validate_unique(self) -> None:
        """Identities are unique within their table."""
        self._unique(self.feed.stops, "stop_id", "stops.txt")
        self._unique(self.feed.routes, "route_id", "routes.txt")
        self._unique(self.feed.trips, "trip_id", "trips.txt")
        self._unique(self.feed.services, "service_id", "calendar.txt")

    def _validate_trips(self) -> None:
        """Validate trips reference known routes."""
        if not self.feed.routes:
            return
        route_ids = {route.route_id for route in self.feed.routes}
        for trip in self.feed.trips:
            if trip.route_id not in route_ids:
                self.warnings.append(
                    f"Trip {trip.trip_id} references non-existent route {trip.route_id}"
                )

    def _validate_stop_times(self) -> None:
        """Validate stop_times reference trips and have unique, positive sequences."""
        trip_ids = {trip.trip_id for trip in self.feed.trips}
        stop_ids = {stop.stop_id for stop in self.feed.stops}

        by_trip: dict[str, list[StopTime]] = defaultdict(list)
        for st in self.feed.stop_times:
            by_trip[st.trip_id].append(st)

        for trip_id, stop_times in by_trip.items():
            if trip_id not in trip_ids:
                self.errors.append(f"Stop times reference non-existent trip {trip_id}")
                continue

            sequences = [st.stop_sequence for st in stop_times]
            if len(set(sequences)) != len(sequences):
                self.errors.append(f"Trip {trip_id} has duplicate stop_sequence values: {sequences}")
            if any(seq < 0 for seq in sequences):
                self.errors.append(f"Trip {trip_id} has negative stop_sequence values")

            if stop_ids:
                for st in stop_times:
                    if st.stop_id not in stop_ids:
                        self.warnings.append(
                            f"Stop time for trip {trip_id} references non-existent stop {st.stop_id}"
                        )

        for trip_id in sorted(trip_ids - by_trip.keys()):
            self.warnings.append(f"Trip {trip_id} has no stop times")
