"""
Passenger Insertion Evaluator
=============================

Finds the cheapest way to splice a passenger's pickup and dropoff into a
driver's ordered route.

1. **Base metrics**      -- distance / duration of the untouched route.
2. **Deviation filter**  -- optional: reject at once if pickup or dropoff
   is farther than ``max_deviation_meters`` from every route segment.
3. **Exhaustive search** -- for every pickup slot, try every dropoff slot
   *after* the pickup, and keep the insertion with the smallest added
   minutes (ties within 1e-3 min broken by added distance).  A later slot
   must undercut the best by more than 1e-3 min to replace it outright.
4. **Early exit**        -- an insertion costing <= 1e-3 min cannot be
   beaten, so the search stops there.

Complexity
----------
Let n = route length.  O(n^2) candidate routes, each rebuilt and measured
in O(n): **O(n^3)** overall.  Routes are simplified to tens of points
before they are stored.

Infeasibility (no slot within ``max_additional_minutes``) is reported as
``None`` and is not an error.
"""

from __future__ import annotations

from typing import Optional, Sequence

from .distance import min_distance_to_route_m
from .entities import (
    AssignmentCandidate,
    AssignmentSummary,
    Coordinate,
    InsertionOptions,
    InvalidRouteError,
    PassengerStops,
    Route,
)
from .routes import estimate_route_metrics

TIE_EPSILON_MINUTES = 1e-3


def _insert(route: Sequence[Coordinate], index: int, point: Coordinate) -> Route:
    return (*route[:index], point, *route[index:])


def _is_better(
    minutes: float, distance: float, best: Optional[AssignmentCandidate]
) -> bool:
    if best is None:
        return True
    if minutes < best.additional_minutes - TIE_EPSILON_MINUTES:
        return True
    return (
        abs(minutes - best.additional_minutes) <= TIE_EPSILON_MINUTES
        and distance < best.additional_distance_km
    )


def evaluate_passenger_insertion(
    route: Sequence[Coordinate],
    stops: PassengerStops,
    options: InsertionOptions,
) -> Optional[AssignmentCandidate]:
    """Return the cheapest feasible insertion of *stops* into *route*, or ``None``."""
    if len(route) < 2:
        raise InvalidRouteError(
            "At least two points are required to evaluate the driver's route"
        )

    route = tuple(route)
    speed = options.average_speed_kmh
    base_metrics = estimate_route_metrics(route, speed)

    if options.max_deviation_meters is not None:
        limit = options.max_deviation_meters
        if min_distance_to_route_m(route, stops.pickup) > limit:
            return None
        if min_distance_to_route_m(route, stops.dropoff) > limit:
            return None

    best: Optional[AssignmentCandidate] = None

    for pickup_index in range(len(route) - 1):
        pickup_at = pickup_index + 1
        with_pickup = _insert(route, pickup_at, stops.pickup)

        # Dropoff slots start right after the pickup just inserted.
        for drop_index in range(pickup_at, len(with_pickup) - 1):
            dropoff_at = drop_index + 1
            updated_route = _insert(with_pickup, dropoff_at, stops.dropoff)
            updated_metrics = estimate_route_metrics(updated_route, speed)

            additional_minutes = max(
                0.0,
                updated_metrics.total_duration_minutes
                - base_metrics.total_duration_minutes,
            )
            if additional_minutes > options.max_additional_minutes:
                continue

            additional_distance = max(
                0.0,
                updated_metrics.total_distance_km - base_metrics.total_distance_km,
            )
            if not _is_better(additional_minutes, additional_distance, best):
                continue

            best = AssignmentCandidate(
                pickup_insert_index=pickup_at,
                dropoff_insert_index=dropoff_at,
                additional_minutes=additional_minutes,
                additional_distance_km=additional_distance,
                updated_route=updated_route,
                updated_metrics=updated_metrics,
                base_metrics=base_metrics,
            )
            if additional_minutes <= TIE_EPSILON_MINUTES:
                return best

    return best


def summarize_assignment_candidate(
    candidate: AssignmentCandidate,
) -> AssignmentSummary:
    """Flatten *candidate* with percentage increases (0 % on a zero base)."""
    base = candidate.base_metrics
    time_pct = (
        0.0
        if base.total_duration_minutes == 0
        else candidate.additional_minutes / base.total_duration_minutes * 100
    )
    distance_pct = (
        0.0
        if base.total_distance_km == 0
        else candidate.additional_distance_km / base.total_distance_km * 100
    )
    return AssignmentSummary(
        pickup_insert_index=candidate.pickup_insert_index,
        dropoff_insert_index=candidate.dropoff_insert_index,
        additional_minutes=candidate.additional_minutes,
        additional_distance_km=candidate.additional_distance_km,
        new_total_minutes=candidate.updated_metrics.total_duration_minutes,
        new_total_distance_km=candidate.updated_metrics.total_distance_km,
        time_increase_percent=time_pct,
        distance_increase_percent=distance_pct,
    )
