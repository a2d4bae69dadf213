"""Counters and warnings collected while compiling a feed."""

from dataclasses import dataclass, field

from gtfs_od_pipeline.overrides.rules import RuleStore


@dataclass
class CompileMetrics:
    """Caller-owned accumulator for one compile pass.

    Give each run its own instance; nothing here is shared globally.
    """

    overrides_total: int = 0
    overrides_by_mode: dict[str, int] = field(default_factory=dict)
    trips_touched: set[str] = field(default_factory=set)
    segments_created: int = 0
    stops_touched: set[str] = field(default_factory=set)
    stop_times_modified: int = 0
    stop_times_added: int = 0
    stop_times_deleted: int = 0
    missing_pairs: int = 0
    warnings: list[str] = field(default_factory=list)

    def count_overrides(self, rules: RuleStore) -> None:
        """Record rule totals per mode."""
        self.overrides_total = len(rules)
        self.overrides_by_mode = rules.counts_by_mode()

    def touch(self, trip_id: str, stop_id: str) -> None:
        self.trips_touched.add(trip_id)
        self.stops_touched.add(stop_id)

    def warn(self, message: str) -> None:
        self.warnings.append(message)

    def to_dict(self) -> dict[str, object]:
        """Plain-data form used in the run report."""
        return {
            "overrides": {
                "total": self.overrides_total,
                "by_mode": dict(self.overrides_by_mode),
            },
            "trips": {
                "touched_count": len(self.trips_touched),
                "created_segments": self.segments_created,
            },
            "stops": {"touched_count": len(self.stops_touched)},
            "stop_times": {
                "modified": self.stop_times_modified,
                "added": self.stop_times_added,
                "deleted": self.stop_times_deleted,
            },
            "missing": {"trip_stop_pairs": self.missing_pairs},
            "warnings": list(self.warnings),
        }
