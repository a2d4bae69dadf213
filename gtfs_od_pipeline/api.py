"""Public API for gtfs-od-pipeline."""

import logging
import tempfile
from datetime import UTC, datetime
from pathlib import Path

from gtfs_od_pipeline.gtfs.fetch import download_feed, is_remote
from gtfs_od_pipeline.gtfs.models import Feed, RebuildConfig, ValidationReport
from gtfs_od_pipeline.gtfs.reader import read_feed
from gtfs_od_pipeline.gtfs.validator import GTFSValidator
from gtfs_od_pipeline.overrides.checker import check_rule_keys
from gtfs_od_pipeline.overrides.document import load_document
from gtfs_od_pipeline.overrides.rules import RuleStore
from gtfs_od_pipeline.output.archive import write_feed_archive
from gtfs_od_pipeline.output.report import RunReport, append_step_summary, write_report
from gtfs_od_pipeline.transform.metrics import CompileMetrics
from gtfs_od_pipeline.transform.segmentation import compile_feed, trip_stop_sequences

logger = logging.getLogger(__name__)


def acquire_feed(source: str, timeout: float = 60.0) -> Feed:
    """Read a feed from a directory, a zip archive or an http(s) URL."""
    if not is_remote(source):
        return read_feed(source)
    with tempfile.TemporaryDirectory(prefix="gtfs-od-") as tmp:
        archive = download_feed(source, Path(tmp), timeout=timeout)
        return read_feed(str(archive))


def compile_with_rules(
    feed: Feed,
    rules: RuleStore,
    metrics: CompileMetrics | None = None,
) -> tuple[Feed, CompileMetrics]:
    """Check rule keys against the feed, then compile it.

    Returns the compiled feed and the metrics of this pass.
    """
    metrics = metrics if metrics is not None else CompileMetrics()
    metrics.count_overrides(rules)
    check_rule_keys(rules, feed.stop_times, metrics)
    compiled = compile_feed(feed, rules, metrics)
    return compiled, metrics


def rebuild(config: RebuildConfig) -> RunReport:
    """
    Rebuild a feed with its boarding/alighting rules applied.

    Args:
        config: Run configuration

    Returns:
        RunReport with metrics and artifact paths
    """
    if not config.feed_source:
        raise ValueError("No feed source configured (set FEED_URL or pass --input)")

    logger.info(f"Starting rebuild ({config.feed_slug}): {config.feed_source}")
    start_time = datetime.now(UTC)

    # Acquire everything before writing anything
    feed = acquire_feed(config.feed_source, timeout=config.timeout)

    validation = GTFSValidator(feed).validate()
    if config.strict and not validation.valid:
        raise ValueError(f"GTFS validation failed with {len(validation.errors)} errors")

    document = load_document(
        path=config.overrides_path,
        url=config.overrides_url,
        slug=config.feed_slug,
        trip_stops=trip_stop_sequences(feed.stop_times),
        timeout=config.timeout,
    )

    compiled, metrics = compile_with_rules(feed, document.rules)

    output_dir = Path(config.output_dir)
    archive = write_feed_archive(output_dir / config.output_zip, compiled, config.export)

    report_path = output_dir / config.report_name
    report = RunReport(
        feed=config.feed_slug,
        source=config.feed_source,
        overrides_source=config.overrides_source,
        generated_at=start_time.isoformat(),
        metrics=metrics,
        stats=archive.rows,
        validation_errors=validation.errors,
        validation_warnings=validation.warnings,
        artifacts={
            "zip": str(archive.path),
            "zip_sha256": archive.sha256,
            "report": str(report_path),
        },
    )

    try:
        write_report(report_path, report)
        if config.step_summary_path:
            append_step_summary(config.step_summary_path, report)
    except Exception:
        # A failed run leaves no artifacts behind
        logger.error(f"Removing {archive.path} and {report_path} after a failed write")
        archive.path.unlink(missing_ok=True)
        report_path.unlink(missing_ok=True)
        raise

    elapsed = (datetime.now(UTC) - start_time).total_seconds()
    logger.info(f"Rebuild completed in {elapsed:.2f}s")

    return report


def validate_feed(
    input_path: str,
    overrides_path: str = "",
    slug: str = "",
    timeout: float = 60.0,
) -> ValidationReport:
    """
    Validate a feed and, optionally, a rules document against it.

    Args:
        input_path: Feed directory, zip archive or URL
        overrides_path: Optional rules document to check for unmatched keys
        slug: Feed slug used to pick a body from multi-feed documents

    Returns:
        ValidationReport; unmatched rule keys are warnings
    """
    feed = acquire_feed(input_path, timeout=timeout)
    report = GTFSValidator(feed).validate()

    if overrides_path:
        document = load_document(path=overrides_path, slug=slug, timeout=timeout)
        metrics = CompileMetrics()
        check_rule_keys(document.rules, feed.stop_times, metrics)
        report.warnings.extend(metrics.warnings)
        report.stats["rules"] = len(document.rules)
        report.stats["missing_rule_keys"] = metrics.missing_pairs

    return report
