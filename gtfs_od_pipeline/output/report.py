"""Run report: JSON document and human-readable summaries."""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from gtfs_od_pipeline.transform.metrics import CompileMetrics
from gtfs_od_pipeline.version import REPORT_SCHEMA_VERSION, VERSION

logger = logging.getLogger(__name__)


@dataclass
class RunReport:
    """Outcome of one rebuild run."""

    feed: str
    source: str
    overrides_source: str
    generated_at: str
    metrics: CompileMetrics
    stats: dict[str, int] = field(default_factory=dict)
    validation_errors: list[str] = field(default_factory=list)
    validation_warnings: list[str] = field(default_factory=list)
    artifacts: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "schema_version": REPORT_SCHEMA_VERSION,
            "tool_version": VERSION,
            "feed": self.feed,
            "generated_at": self.generated_at,
            "source": self.source,
            "overrides_source": self.overrides_source,
        }
        data.update(self.metrics.to_dict())
        data["stats"] = dict(self.stats)
        data["validation"] = {
            "errors": list(self.validation_errors),
            "warnings": list(self.validation_warnings),
        }
        data["artifacts"] = dict(self.artifacts)
        return data


def write_report(path: Path, report: RunReport) -> Path:
    """Write the machine-readable report."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(report.to_dict(), f, indent=2, sort_keys=True)
    logger.info(f"Report: {path}")
    return path


def _summary_lines(report: RunReport) -> list[str]:
    m = report.metrics
    by_mode = m.overrides_by_mode
    return [
        f"Overrides: total={m.overrides_total}  (pickup={by_mode.get('pickup', 0)}, "
        f"dropoff={by_mode.get('dropoff', 0)}, custom={by_mode.get('custom', 0)})",
        f"Trips: touched={len(m.trips_touched)}, createdSegments={m.segments_created}",
        f"Stops: touched={len(m.stops_touched)}",
        f"StopTimes: modified={m.stop_times_modified}, added={m.stop_times_added}, "
        f"deleted={m.stop_times_deleted}",
        f"Missing pairs ignored: {m.missing_pairs}",
    ]


def format_summary(report: RunReport) -> str:
    """Plain-text summary for the console."""
    lines = [f"=== GTFS Rebuild - {report.feed} ===", *_summary_lines(report)]
    if report.metrics.warnings:
        lines.append("Warnings:")
        lines.extend(f"- {warning}" for warning in report.metrics.warnings)
    return "\n".join(lines)


def format_markdown(report: RunReport) -> str:
    """Markdown summary for CI step summaries."""
    lines = [f"# GTFS Rebuild - {report.feed}", f"**Generated**: {report.generated_at}", ""]
    for line in _summary_lines(report):
        label, value = line.split(":", 1)
        lines.append(f"- **{label}**:{value}")
    if report.metrics.warnings:
        lines.append("")
        lines.append("<details><summary>Warnings</summary>")
        lines.append("")
        lines.extend(f"- {warning}" for warning in report.metrics.warnings)
        lines.append("")
        lines.append("</details>")
    if report.artifacts:
        lines.append("")
        lines.append("  ·  ".join(f"{name}: `{path}`" for name, path in sorted(report.artifacts.items())))
    return "\n".join(lines) + "\n"


def append_step_summary(path: str, report: RunReport) -> None:
    """Append the Markdown summary to a CI step summary file."""
    with open(path, "a", encoding="utf-8") as f:
        f.write(format_markdown(report))
    logger.info(f"Appended step summary to {path}")
