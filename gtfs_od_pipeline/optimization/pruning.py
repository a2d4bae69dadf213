"""Reachability pruning of a feed to a subset of routes."""

import dataclasses
import logging
from collections.abc import Iterable

from gtfs_od_pipeline.gtfs.models import Feed
from gtfs_od_pipeline.transform.times import is_blank_visit

logger = logging.getLogger(__name__)


def prune_to_routes(feed: Feed, route_ids: Iterable[str] | None = None) -> Feed:
    """Keep only rows reachable from the selected routes.

    Reachability follows route -> trip, trip -> service, trip -> shape and
    stop time -> stop. Stops only count as reachable through stop times
    that carry at least one time. With route_ids None every route is
    selected and only unreferenced rows are dropped. Agencies are kept.
    """
    if route_ids is None:
        keep_routes = {route.route_id for route in feed.routes}
    else:
        keep_routes = set(route_ids)

    routes = [route for route in feed.routes if route.route_id in keep_routes]
    trips = [trip for trip in feed.trips if trip.route_id in keep_routes]

    keep_trips = {trip.trip_id for trip in trips}
    keep_services = {trip.service_id for trip in trips if trip.service_id}
    keep_shapes = {trip.shape_id for trip in trips if trip.shape_id}

    stop_times = [st for st in feed.stop_times if st.trip_id in keep_trips]
    keep_stops = {
        st.stop_id
        for st in stop_times
        if not is_blank_visit(st.arrival_time, st.departure_time)
    }

    pruned = dataclasses.replace(
        feed,
        routes=routes,
        trips=trips,
        stop_times=stop_times,
        stops=[stop for stop in feed.stops if stop.stop_id in keep_stops],
        services=[s for s in feed.services if s.service_id in keep_services],
        service_exceptions=[s for s in feed.service_exceptions if s.service_id in keep_services],
        shape_points=[p for p in feed.shape_points if p.shape_id in keep_shapes],
    )

    before, after = feed.stats(), pruned.stats()
    changes = ", ".join(f"{name} {before[name]}->{after[name]}" for name in before)
    logger.info(f"Pruned feed to {len(routes)} routes: {changes}")
    return pruned
