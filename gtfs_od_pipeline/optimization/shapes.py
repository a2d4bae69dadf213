"""Shape point size reduction: coordinate rounding and decimation."""

import dataclasses
import logging
import math
from collections.abc import Sequence

from gtfs_od_pipeline.gtfs.models import ShapePoint

logger = logging.getLogger(__name__)

COORD_PRECISION = 5  # ~1.1 m


def round_coordinates(points: Sequence[ShapePoint], ndigits: int = COORD_PRECISION) -> list[ShapePoint]:
    """Round shape point coordinates."""
    return [
        dataclasses.replace(p, lat=round(p.lat, ndigits), lon=round(p.lon, ndigits))
        for p in points
    ]


def decimate_shapes(points: Sequence[ShapePoint], max_points: int) -> list[ShapePoint]:
    """Bound each shape to about max_points by keeping every n-th point.

    Points are ordered by sequence per shape. The last point of a shape is
    always kept, so a decimated shape may hold max_points + 1 points.
    """
    if max_points < 1:
        raise ValueError(f"max_points must be positive, got {max_points}")

    by_shape: dict[str, list[ShapePoint]] = {}
    for p in points:
        if p.shape_id not in by_shape:
            by_shape[p.shape_id] = []
        by_shape[p.shape_id].append(p)

    result: list[ShapePoint] = []
    decimated = 0
    for shape_points in by_shape.values():
        ordered = sorted(shape_points, key=lambda p: p.sequence)
        if len(ordered) <= max_points:
            result.extend(ordered)
            continue

        step = math.ceil(len(ordered) / max_points)
        kept = ordered[::step]
        if kept[-1] is not ordered[-1]:
            kept.append(ordered[-1])
        result.extend(kept)
        decimated += 1

    logger.info(f"Decimated {decimated} of {len(by_shape)} shapes to at most ~{max_points} points")
    return result
