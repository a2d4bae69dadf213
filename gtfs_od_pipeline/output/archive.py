"""Feed exporter: post-passes and zip archive output."""

import dataclasses
import hashlib
import logging
import os
import tempfile
import zipfile
from dataclasses import dataclass, field
from pathlib import Path

from gtfs_od_pipeline.gtfs.models import Agency, ExportOptions, Feed
from gtfs_od_pipeline.optimization.pruning import prune_to_routes
from gtfs_od_pipeline.optimization.shapes import decimate_shapes, round_coordinates
from gtfs_od_pipeline.output.tables import TABLES, csvify
from gtfs_od_pipeline.transform.times import is_blank_visit

logger = logging.getLogger(__name__)

# Written even when empty
REQUIRED_TABLES = {"agency.txt", "stops.txt", "routes.txt", "trips.txt", "stop_times.txt"}


@dataclass
class ExportResult:
    """What the exporter wrote."""

    path: Path
    sha256: str
    rows: dict[str, int] = field(default_factory=dict)
    blank_rows_stripped: int = 0


def prepare_export(feed: Feed, options: ExportOptions | None = None) -> tuple[Feed, int]:
    """Apply the optional post-passes and strip blank stop-time rows.

    Returns the feed to write and the number of blank rows removed.
    """
    options = options or ExportOptions()

    if options.prune_unused or options.only_routes is not None:
        feed = prune_to_routes(feed, options.only_routes)

    shape_points = feed.shape_points
    if options.round_coords:
        shape_points = round_coordinates(shape_points)
    if options.decimate_shapes:
        shape_points = decimate_shapes(shape_points, options.max_shape_points)

    stop_times = [
        st for st in feed.stop_times if not is_blank_visit(st.arrival_time, st.departure_time)
    ]
    stripped = len(feed.stop_times) - len(stop_times)
    if stripped:
        logger.info(f"Stripped {stripped} stop_times rows without arrival or departure")

    agencies = feed.agencies or [
        Agency(
            agency_id="agency_1",
            agency_name="Agency",
            agency_url="https://example.com",
            agency_timezone=options.default_timezone,
        )
    ]

    prepared = dataclasses.replace(
        feed, agencies=agencies, shape_points=shape_points, stop_times=stop_times
    )
    return prepared, stripped


def render_tables(feed: Feed) -> dict[str, str]:
    """CSV text per table file name; optional empty tables are left out."""
    files: dict[str, str] = {}
    for filename, (attr, header, to_row) in TABLES.items():
        rows = getattr(feed, attr)
        if not rows and filename not in REQUIRED_TABLES:
            continue
        files[filename] = csvify((to_row(row) for row in rows), header)
    return files


def write_feed_archive(
    output_path: Path,
    feed: Feed,
    options: ExportOptions | None = None,
) -> ExportResult:
    """Write the feed as a deflated GTFS zip.

    The archive is built next to its destination and moved into place, so
    a failure never leaves a partial file behind.
    """
    prepared, stripped = prepare_export(feed, options)
    files = render_tables(prepared)

    output_path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(suffix=".zip.tmp", dir=output_path.parent)
    os.close(fd)
    try:
        with zipfile.ZipFile(tmp_name, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=9) as zf:
            for filename, text in files.items():
                zf.writestr(filename, text)
        os.replace(tmp_name, output_path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise

    with open(output_path, "rb") as f:
        digest = hashlib.sha256(f.read()).hexdigest()

    rows = {filename: len(getattr(prepared, TABLES[filename][0])) for filename in files}
    logger.info(f"Wrote {output_path} ({', '.join(f'{k}={v}' for k, v in rows.items())})")
    return ExportResult(path=output_path, sha256=digest, rows=rows, blank_rows_stripped=stripped)

