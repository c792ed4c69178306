"""
Trip Matching Service
=====================

Ranks a driver's planned trips for a passenger request.

Pipeline per search
-------------------
1. Resolve tuning parameters (request values, else ``settings`` defaults).
2. Fetch up to ``max_results x candidate_overfetch_factor`` CONFIRMED
   trips with free seats, not driven by the passenger, starting inside
   ``pickup_datetime +/- time_window_minutes`` (or strictly in the future).
3. Evaluate every candidate independently and concurrently: rebuild the
   route, run the insertion evaluator.  A failing candidate is logged and
   dropped; it never aborts the search.
4. Sort by added minutes, then added km, then price; truncate.

Storage errors propagate unchanged so callers can tell "search failed"
from "no matches" (an empty, successful result).
"""

from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol, Sequence

from src.config import Settings, settings as default_settings
from src.domain.entities import (
    AssignmentCandidate,
    AssignmentEvaluation,
    AssignmentRejectedError,
    Coordinate,
    InsertionOptions,
    MatchingConfig,
    MatchSearchResult,
    PassengerStops,
    TravelMatchResult,
    Trip,
    TripNotFoundError,
    StaleTripError,
    TripSnapshot,
)
from src.domain.enums import TripStatus
from src.domain.insertion import (
    evaluate_passenger_insertion,
    summarize_assignment_candidate,
)
from src.domain.routes import (
    build_trip_route,
    estimate_route_metrics,
    simplify_route_waypoints,
    validate_coordinate,
)
from src.infrastructure.notifications import LoggingNotifier, PassengerNotifier
from src.infrastructure.waypoints import decode_polyline

logger = logging.getLogger(__name__)

INFEASIBLE_MESSAGE = (
    "Passenger cannot be inserted without exceeding the extra-minutes "
    "limit or the maximum route deviation"
)

# Re-reads allowed when another acceptance rewrites the route first.
ACCEPT_MAX_ATTEMPTS = 3


class TripStore(Protocol):
    """Storage collaborator; ``TripRepository`` is the SQL implementation."""

    async def get_snapshot(self, trip_id: int) -> Optional[TripSnapshot]: ...

    async def find_candidates(
        self,
        *,
        exclude_driver_id: Optional[int],
        window_start: Optional[datetime],
        window_end: Optional[datetime],
        starts_after: Optional[datetime],
        limit: int,
    ) -> list[TripSnapshot]: ...

    async def create_trip(self, **fields) -> TripSnapshot: ...

    async def apply_assignment(
        self,
        trip_id: int,
        passenger_id: int,
        stops: PassengerStops,
        candidate: AssignmentCandidate,
        expected_route: Optional[Sequence[Coordinate]],
    ) -> None: ...

    async def update_status(
        self, trip_id: int, current: TripStatus, status: TripStatus
    ) -> None: ...


@dataclass(frozen=True)
class AssignmentConfig:
    average_speed_kmh: float
    max_additional_minutes: float
    max_deviation_meters: Optional[float] = None


# ── Pure helpers ──────────────────────────────────────────────────────


def validate_stops(stops: PassengerStops) -> PassengerStops:
    """Re-check passenger coordinates; raises ``InvalidCoordinateError``."""
    return PassengerStops(
        pickup=validate_coordinate(
            stops.pickup.latitude, stops.pickup.longitude, "pickup"
        ),
        dropoff=validate_coordinate(
            stops.dropoff.latitude, stops.dropoff.longitude, "dropoff"
        ),
    )


def finite_or_none(value: Optional[float]) -> Optional[float]:
    return value if value is not None and math.isfinite(value) else None


def evaluate_trip_assignment(
    trip: TripSnapshot,
    stops: PassengerStops,
    config: AssignmentConfig,
    route_waypoints: Optional[Sequence[Coordinate]] = None,
) -> AssignmentEvaluation:
    """
    Evaluate one passenger against one trip.

    *route_waypoints* overrides the trip's stored route.  Either way the
    route is anchored to the trip's canonical start / end.
    """
    stops = validate_stops(stops)
    waypoints = route_waypoints if route_waypoints is not None else trip.route_waypoints
    original_route = build_trip_route(trip.start, trip.end, waypoints)

    candidate = evaluate_passenger_insertion(
        original_route,
        stops,
        InsertionOptions(
            max_additional_minutes=config.max_additional_minutes,
            average_speed_kmh=config.average_speed_kmh,
            max_deviation_meters=finite_or_none(config.max_deviation_meters),
        ),
    )
    if candidate is None:
        return AssignmentEvaluation(
            success=False,
            base_metrics=estimate_route_metrics(
                original_route, config.average_speed_kmh
            ),
            original_route=original_route,
            message=INFEASIBLE_MESSAGE,
        )

    return AssignmentEvaluation(
        success=True,
        base_metrics=candidate.base_metrics,
        original_route=original_route,
        summary=summarize_assignment_candidate(candidate),
        candidate=candidate,
    )


def build_match_result(
    trip: TripSnapshot, evaluation: AssignmentEvaluation
) -> TravelMatchResult:
    if evaluation.summary is None or evaluation.candidate is None:
        raise ValueError(f"Trip {trip.id} has no feasible insertion to report")
    return TravelMatchResult(
        trip_id=trip.id,
        price=trip.price,
        start_time=trip.start_time,
        seats_available=trip.seats_available,
        driver=trip.driver,
        vehicle=trip.vehicle,
        summary=evaluation.summary,
        candidate=evaluation.candidate,
        base_metrics=evaluation.base_metrics,
        original_route=evaluation.original_route,
        updated_route=evaluation.candidate.updated_route,
    )


def rank_matches(matches: Sequence[TravelMatchResult]) -> list[TravelMatchResult]:
    """Order by added minutes, then added km, then price (all ascending)."""
    return sorted(
        matches,
        key=lambda m: (
            m.summary.additional_minutes,
            m.summary.additional_distance_km,
            m.price,
        ),
    )


def _lifecycle(snapshot: TripSnapshot) -> Trip:
    return Trip(
        id=snapshot.id,
        status=snapshot.status,
        seats_available=snapshot.seats_available,
    )


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


# ── Service ───────────────────────────────────────────────────────────


class TripMatchingService:
    """High-level API used by the HTTP layer."""

    def __init__(
        self,
        store: TripStore,
        notifier: Optional[PassengerNotifier] = None,
        config: Settings = default_settings,
    ):
        self.store = store
        self.notifier = notifier or LoggingNotifier()
        self.config = config

    def _assignment_config(
        self,
        average_speed_kmh: Optional[float],
        max_additional_minutes: Optional[float],
        max_deviation_meters: Optional[float],
    ) -> AssignmentConfig:
        return AssignmentConfig(
            average_speed_kmh=(
                average_speed_kmh
                if average_speed_kmh is not None
                else self.config.average_speed_kmh
            ),
            max_additional_minutes=(
                max_additional_minutes
                if max_additional_minutes is not None
                else self.config.max_additional_minutes
            ),
            max_deviation_meters=finite_or_none(max_deviation_meters),
        )

    async def get_trip(self, trip_id: int) -> TripSnapshot:
        trip = await self.store.get_snapshot(trip_id)
        if trip is None:
            raise TripNotFoundError(f"Trip {trip_id} not found")
        return trip

    # ── Single trip ───────────────────────────────────────────────────

    async def evaluate_passenger_assignment(
        self,
        trip_id: int,
        stops: PassengerStops,
        *,
        average_speed_kmh: Optional[float] = None,
        max_additional_minutes: Optional[float] = None,
        max_deviation_meters: Optional[float] = None,
        route_waypoints: Optional[Sequence[Coordinate]] = None,
    ) -> AssignmentEvaluation:
        trip = await self.get_trip(trip_id)
        config = self._assignment_config(
            average_speed_kmh, max_additional_minutes, max_deviation_meters
        )
        return evaluate_trip_assignment(trip, stops, config, route_waypoints)

    # ── Ranking pipeline ──────────────────────────────────────────────

    def _evaluate_candidate(
        self, trip: TripSnapshot, stops: PassengerStops, config: AssignmentConfig
    ) -> Optional[TravelMatchResult]:
        try:
            evaluation = evaluate_trip_assignment(trip, stops, config)
        except Exception:
            logger.exception("Error evaluating passenger assignment for trip %s", trip.id)
            return None
        if not evaluation.success:
            return None
        return build_match_result(trip, evaluation)

    async def find_matching_trips_for_passenger(
        self,
        passenger_id: Optional[int],
        stops: PassengerStops,
        *,
        average_speed_kmh: Optional[float] = None,
        max_additional_minutes: Optional[float] = None,
        max_deviation_meters: Optional[float] = None,
        time_window_minutes: Optional[float] = None,
        max_results: Optional[int] = None,
        pickup_datetime: Optional[datetime] = None,
    ) -> MatchSearchResult:
        stops = validate_stops(stops)
        assignment = self._assignment_config(
            average_speed_kmh, max_additional_minutes, max_deviation_meters
        )
        window_minutes = (
            time_window_minutes
            if time_window_minutes is not None
            else self.config.time_window_minutes
        )
        limit = max(
            max_results if max_results is not None else self.config.max_results, 1
        )
        pickup_datetime = _as_utc(pickup_datetime)

        applied = MatchingConfig(
            average_speed_kmh=assignment.average_speed_kmh,
            max_additional_minutes=assignment.max_additional_minutes,
            max_deviation_meters=assignment.max_deviation_meters,
            time_window_minutes=window_minutes,
            max_results=limit,
            pickup_datetime=pickup_datetime,
        )

        if pickup_datetime is not None:
            window = timedelta(minutes=window_minutes)
            window_start, window_end = pickup_datetime - window, pickup_datetime + window
            starts_after = None
        else:
            window_start = window_end = None
            starts_after = datetime.now(timezone.utc)

        candidates = await self.store.find_candidates(
            exclude_driver_id=passenger_id,
            window_start=window_start,
            window_end=window_end,
            starts_after=starts_after,
            limit=limit * max(self.config.candidate_overfetch_factor, 1),
        )

        evaluated = await asyncio.gather(
            *(
                asyncio.to_thread(self._evaluate_candidate, trip, stops, assignment)
                for trip in candidates
            )
        )
        valid = rank_matches([m for m in evaluated if m is not None])

        logger.info(
            "Match search for passenger %s: %d candidates, %d feasible",
            passenger_id,
            len(candidates),
            len(valid),
        )
        return MatchSearchResult(
            matches=valid[:limit],
            total_candidates=len(valid),
            applied_config=applied,
        )

    # ── Writes ────────────────────────────────────────────────────────

    async def register_trip(
        self,
        *,
        driver_id: int,
        vehicle_id: Optional[int],
        start: Coordinate,
        end: Coordinate,
        start_time: datetime,
        price: float,
        capacity: int,
        waypoints: Optional[Sequence[Coordinate]] = None,
        encoded_polyline: Optional[str] = None,
        start_location_name: Optional[str] = None,
        end_location_name: Optional[str] = None,
    ) -> TripSnapshot:
        """Register a trip, storing a simplified route anchored at start / end."""
        start = validate_coordinate(start.latitude, start.longitude, "start")
        end = validate_coordinate(end.latitude, end.longitude, "end")

        if waypoints:
            submitted = [
                validate_coordinate(p.latitude, p.longitude, f"waypoint {i}")
                for i, p in enumerate(waypoints)
            ]
        elif encoded_polyline:
            submitted = [
                validate_coordinate(p.latitude, p.longitude, f"polyline point {i}")
                for i, p in enumerate(decode_polyline(encoded_polyline))
            ]
        else:
            submitted = None

        route = simplify_route_waypoints(
            build_trip_route(start, end, submitted),
            self.config.route_simplification_tolerance_m,
            self.config.route_min_points,
        )
        trip = await self.store.create_trip(
            driver_id=driver_id,
            vehicle_id=vehicle_id,
            start=start,
            end=end,
            route=route,
            start_time=_as_utc(start_time),
            price=price,
            capacity=capacity,
            start_location_name=start_location_name,
            end_location_name=end_location_name,
        )
        logger.info("Trip %d registered with %d waypoints", trip.id, len(route))
        return trip

    async def accept_passenger(
        self, trip_id: int, passenger_id: int, stops: PassengerStops
    ) -> AssignmentEvaluation:
        """
        Splice the passenger into the trip's stored route and persist it.

        Raises ``AssignmentRejectedError`` when the trip is not matchable
        or the insertion exceeds ``accept_max_additional_minutes``.

        The insertion is computed from the route as read; the store refuses
        the write if that route changed meanwhile, and the trip is re-read
        and re-evaluated (up to ``ACCEPT_MAX_ATTEMPTS`` times).
        """
        stops = validate_stops(stops)
        for attempt in range(1, ACCEPT_MAX_ATTEMPTS + 1):
            trip = await self.get_trip(trip_id)
            evaluation = self._evaluate_acceptance(trip, passenger_id, stops)
            candidate = evaluation.candidate
            try:
                await self.store.apply_assignment(
                    trip_id, passenger_id, stops, candidate, trip.route_waypoints
                )
                break
            except StaleTripError:
                if attempt == ACCEPT_MAX_ATTEMPTS:
                    raise
                logger.warning(
                    "Trip %d changed during acceptance of passenger %d, retrying (%d/%d)",
                    trip_id,
                    passenger_id,
                    attempt,
                    ACCEPT_MAX_ATTEMPTS,
                )

        logger.info(
            "Trip %d route updated for passenger %d: %d waypoints (pickup@%d, dropoff@%d)",
            trip_id,
            passenger_id,
            len(candidate.updated_route),
            candidate.pickup_insert_index,
            candidate.dropoff_insert_index,
        )
        await self.notifier.passenger_accepted(
            passenger_id, trip_id, candidate.additional_minutes
        )
        return evaluation

    def _evaluate_acceptance(
        self, trip: TripSnapshot, passenger_id: int, stops: PassengerStops
    ) -> AssignmentEvaluation:
        if not _lifecycle(trip).is_matchable:
            raise AssignmentRejectedError(f"Trip {trip.id} is not accepting passengers")
        if trip.driver.id == passenger_id:
            raise AssignmentRejectedError("A driver cannot join their own trip")

        evaluation = evaluate_trip_assignment(
            trip,
            stops,
            AssignmentConfig(
                average_speed_kmh=self.config.average_speed_kmh,
                max_additional_minutes=self.config.accept_max_additional_minutes,
            ),
        )
        if not evaluation.success or evaluation.candidate is None:
            raise AssignmentRejectedError(evaluation.message or INFEASIBLE_MESSAGE)
        return evaluation

    async def change_trip_status(self, trip_id: int, new_status: TripStatus) -> Trip:
        """Apply a lifecycle transition; raises ``InvalidStateTransition`` if illegal."""
        snapshot = await self.get_trip(trip_id)
        trip = _lifecycle(snapshot)
        trip.transition_to(new_status)
        await self.store.update_status(trip_id, snapshot.status, trip.status)
        logger.info("Trip %d moved from %s to %s", trip_id, snapshot.status, trip.status)
        return trip
