"""Report rule keys that do not match any stop visit in the feed."""

import logging
from collections.abc import Iterable

from gtfs_od_pipeline.gtfs.models import StopTime
from gtfs_od_pipeline.overrides.rules import RuleKey, RuleStore
from gtfs_od_pipeline.transform.metrics import CompileMetrics

logger = logging.getLogger(__name__)


def present_pairs(stop_times: Iterable[StopTime]) -> set[RuleKey]:
    """Every (trip, stop) pair that occurs in the stop times."""
    return {RuleKey(st.trip_id, st.stop_id) for st in stop_times}


def check_rule_keys(
    rules: RuleStore,
    stop_times: Iterable[StopTime],
    metrics: CompileMetrics,
) -> list[RuleKey]:
    """Count and warn about rules whose key is absent from the feed.

    Diagnostic only: compiling ignores unmatched keys on its own.
    """
    present = present_pairs(stop_times)
    missing = [key for key in rules if key not in present]
    for key in missing:
        metrics.missing_pairs += 1
        metrics.warn(f"Rule key not found in feed: {key}")

    if missing:
        logger.warning(f"{len(missing)} of {len(rules)} rule keys not found in feed")
    else:
        logger.info(f"All {len(rules)} rule keys match the feed")
    return missing
