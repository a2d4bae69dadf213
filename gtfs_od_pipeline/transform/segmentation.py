"""Trip segmentation: apply boarding/alighting rules to trips.

Trips without custom rules keep their identity and only get their
pickup/drop-off flags set. A trip with at least one custom rule is
replaced by two segments:

* segment A runs from the first stop to the last custom stop; custom
  stops there allow alighting only,
* segment B runs from the first custom stop to the last stop; custom
  stops there allow boarding only.

With a single custom stop both segments contain it. Rows whose arrival
and departure are both empty are dropped, and every output trip is
renumbered 1..k.
"""

import dataclasses
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from gtfs_od_pipeline.gtfs.models import Feed, StopTime, Trip
from gtfs_od_pipeline.overrides.rules import (
    CustomRule,
    DropoffOnly,
    NormalRule,
    PickupOnly,
    Restriction,
    RuleStore,
)
from gtfs_od_pipeline.transform.metrics import CompileMetrics
from gtfs_od_pipeline.transform.times import to_canonical

logger = logging.getLogger(__name__)

SEGMENT_A_SUFFIX = "_A"
SEGMENT_B_SUFFIX = "_B"

# Which side of a split a row is emitted for
WHOLE, UP, DOWN = "whole", "up", "down"


@dataclass
class CompiledTrips:
    """Compiler output: trips and their renumbered stop times."""

    trips: list[Trip]
    stop_times: list[StopTime]


def group_by_trip(stop_times: Iterable[StopTime]) -> dict[str, list[StopTime]]:
    """Group stop times per trip, each list ordered by stop_sequence."""
    by_trip: dict[str, list[StopTime]] = {}
    for st in stop_times:
        if st.trip_id not in by_trip:
            by_trip[st.trip_id] = []
        by_trip[st.trip_id].append(st)
    for visits in by_trip.values():
        visits.sort(key=lambda st: st.stop_sequence)
    return by_trip


def trip_stop_sequences(stop_times: Iterable[StopTime]) -> dict[str, list[str]]:
    """Ordered stop ids per trip."""
    return {
        trip_id: [st.stop_id for st in visits]
        for trip_id, visits in group_by_trip(stop_times).items()
    }


def segment_ids(trip_id: str) -> tuple[str, str]:
    """Identities of the two segments a split trip becomes."""
    return f"{trip_id}{SEGMENT_A_SUFFIX}", f"{trip_id}{SEGMENT_B_SUFFIX}"


def boarding_flags(rule: Restriction | None, side: str) -> tuple[int, int]:
    """(pickup_type, drop_off_type) for a row with this rule on this side of a split."""
    if isinstance(rule, PickupOnly):
        return 0, 1
    if isinstance(rule, DropoffOnly):
        return 1, 0
    if isinstance(rule, CustomRule):
        if side == UP:
            return 1, 0
        if side == DOWN:
            return 0, 1
    return 0, 0


def compile_trips(
    trips: Sequence[Trip],
    stop_times: Iterable[StopTime],
    rules: RuleStore,
    metrics: CompileMetrics | None = None,
) -> CompiledTrips:
    """Compile trips and stop times against a rule store.

    Pure with respect to its inputs: the rule store, trips and stop times
    are not modified. Counters go to the metrics object given.
    """
    metrics = metrics if metrics is not None else CompileMetrics()
    logger.info(f"Compiling {len(trips)} trips against {len(rules)} rules")

    visits_by_trip = group_by_trip(stop_times)
    source_ids = {trip.trip_id for trip in trips}

    out_trips: list[Trip] = []
    out_rows: list[StopTime] = []

    for trip in trips:
        visits = visits_by_trip.get(trip.trip_id, [])
        if not visits:
            logger.debug(f"Trip {trip.trip_id} has no stop times, skipping")
            continue

        # Only exact (trip, stop) keys apply here, never per-stop defaults
        rule_at = [rules.get(trip.trip_id, st.stop_id) for st in visits]
        custom_indices = [i for i, rule in enumerate(rule_at) if isinstance(rule, CustomRule)]

        if not custom_indices:
            out_trips.append(trip)
            out_rows.extend(
                _emit(trip.trip_id, trip.trip_id, visits, rule_at, range(len(visits)), WHOLE, metrics)
            )
            continue

        # The span is only computed once at least one custom index is known
        first_custom = min(custom_indices)
        last_custom = max(custom_indices)
        up_id, down_id = segment_ids(trip.trip_id)
        for derived in (up_id, down_id):
            if derived in source_ids:
                metrics.warn(f"Derived trip id collides with existing trip: {derived}")

        out_trips.append(dataclasses.replace(trip, trip_id=up_id))
        out_rows.extend(
            _emit(up_id, trip.trip_id, visits, rule_at, range(0, last_custom + 1), UP, metrics)
        )
        out_trips.append(dataclasses.replace(trip, trip_id=down_id))
        out_rows.extend(
            _emit(down_id, trip.trip_id, visits, rule_at, range(first_custom, len(visits)), DOWN, metrics)
        )
        metrics.segments_created += 2
        logger.debug(
            f"Trip {trip.trip_id} split at indices {first_custom}..{last_custom} "
            f"into {up_id} and {down_id}"
        )

    stop_times_out = resequence(out_rows)
    logger.info(f"Compiled {len(out_trips)} trips with {len(stop_times_out)} stop_times")
    return CompiledTrips(trips=out_trips, stop_times=stop_times_out)


def compile_feed(
    feed: Feed,
    rules: RuleStore,
    metrics: CompileMetrics | None = None,
) -> Feed:
    """Return a copy of the feed with compiled trips and stop times."""
    compiled = compile_trips(feed.trips, feed.stop_times, rules, metrics)
    return dataclasses.replace(feed, trips=compiled.trips, stop_times=compiled.stop_times)


def resequence(rows: Iterable[StopTime]) -> list[StopTime]:
    """Group rows by trip in first-seen order and number each group 1..k."""
    grouped: dict[str, list[StopTime]] = {}
    for st in rows:
        if st.trip_id not in grouped:
            grouped[st.trip_id] = []
        grouped[st.trip_id].append(st)

    result: list[StopTime] = []
    for group in grouped.values():
        result.extend(
            dataclasses.replace(st, stop_sequence=seq) for seq, st in enumerate(group, start=1)
        )
    return result


def _emit(
    out_trip_id: str,
    source_trip_id: str,
    visits: Sequence[StopTime],
    rule_at: Sequence[Restriction | None],
    indices: Iterable[int],
    side: str,
    metrics: CompileMetrics,
) -> list[StopTime]:
    rows: list[StopTime] = []
    for i in indices:
        st = visits[i]
        rule = rule_at[i]
        arrival = to_canonical(st.arrival_time)
        departure = to_canonical(st.departure_time)
        if not arrival and not departure:
            metrics.stop_times_deleted += 1
            continue

        pickup, drop_off = boarding_flags(rule, side)
        restricted = rule is not None and not isinstance(rule, NormalRule)
        if restricted:
            metrics.stop_times_modified += 1
        if side != WHOLE:
            metrics.stop_times_added += 1
        if restricted or side != WHOLE:
            metrics.touch(source_trip_id, st.stop_id)

        rows.append(
            StopTime(
                trip_id=out_trip_id,
                stop_id=st.stop_id,
                stop_sequence=st.stop_sequence,
                arrival_time=arrival,
                departure_time=departure,
                pickup_type=pickup,
                drop_off_type=drop_off,
            )
        )
    return rows
