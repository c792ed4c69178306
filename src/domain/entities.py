"""
Domain entities and value objects for route-insertion matching.

Value objects are immutable: an evaluation takes a route + stops +
options and returns a *new* result, never mutating its inputs.

Index convention
----------------
``AssignmentCandidate.pickup_insert_index`` and ``dropoff_insert_index``
are positions in the **final** ``updated_route``.  The dropoff index is
therefore expressed after the pickup has already been spliced in, so
``updated_route[pickup_insert_index] == pickup`` and
``updated_route[dropoff_insert_index] == dropoff``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from .enums import TRIP_TRANSITIONS, TripStatus


class InvalidRouteError(ValueError):
    """Raised when a route has fewer than two usable points."""


class InvalidCoordinateError(ValueError):
    """Raised when a latitude / longitude is out of range or not finite."""


class TripNotFoundError(LookupError):
    """Raised when a trip id does not exist in storage."""


class InvalidStateTransition(Exception):
    """Raised when a trip status change violates the state machine."""


class AssignmentRejectedError(Exception):
    """Raised when a passenger cannot be added to a trip."""


class StaleTripError(AssignmentRejectedError):
    """Raised when a trip changed in storage after it was read."""


# ── Value Objects ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class Coordinate:
    latitude: float
    longitude: float


Route = tuple[Coordinate, ...]


@dataclass(frozen=True)
class PassengerStops:
    pickup: Coordinate
    dropoff: Coordinate


@dataclass(frozen=True)
class RouteMetrics:
    total_distance_km: float = 0.0
    total_duration_minutes: float = 0.0


@dataclass(frozen=True)
class BoundingBox:
    min_latitude: float
    max_latitude: float
    min_longitude: float
    max_longitude: float


@dataclass(frozen=True)
class InsertionOptions:
    max_additional_minutes: float
    average_speed_kmh: float = 30.0
    max_deviation_meters: Optional[float] = None


@dataclass(frozen=True)
class AssignmentCandidate:
    pickup_insert_index: int
    dropoff_insert_index: int
    additional_minutes: float
    additional_distance_km: float
    updated_route: Route
    updated_metrics: RouteMetrics
    base_metrics: RouteMetrics


@dataclass(frozen=True)
class AssignmentSummary:
    pickup_insert_index: int
    dropoff_insert_index: int
    additional_minutes: float
    additional_distance_km: float
    new_total_minutes: float
    new_total_distance_km: float
    time_increase_percent: float
    distance_increase_percent: float


@dataclass(frozen=True)
class AssignmentEvaluation:
    """Outcome of evaluating one passenger against one trip.

    ``success=False`` means *infeasible*, which is an expected result and
    not an error; ``message`` explains why.
    """

    success: bool
    base_metrics: RouteMetrics
    original_route: Route
    summary: Optional[AssignmentSummary] = None
    candidate: Optional[AssignmentCandidate] = None
    message: Optional[str] = None

    @property
    def updated_route(self) -> Optional[Route]:
        return self.candidate.updated_route if self.candidate else None


# ── Trip snapshots (read side of the storage boundary) ───────────────


@dataclass(frozen=True)
class DriverSummary:
    id: int
    name: str
    email: Optional[str] = None
    phone_number: Optional[str] = None
    profile_picture: Optional[str] = None
    rating: Optional[float] = None


@dataclass(frozen=True)
class VehicleSummary:
    id: int
    brand: str
    model: str
    year: int
    licence_plate: str


@dataclass(frozen=True)
class TripSnapshot:
    id: int
    start: Coordinate
    end: Coordinate
    start_time: datetime
    price: float
    seats_available: int
    driver: DriverSummary
    vehicle: Optional[VehicleSummary] = None
    status: TripStatus = TripStatus.CONFIRMED
    # ``None`` when nothing usable is stored; the route is then [start, end].
    route_waypoints: Optional[Route] = None
    review_stars: tuple[int, ...] = ()


@dataclass(frozen=True)
class TravelMatchResult:
    trip_id: int
    price: float
    start_time: datetime
    seats_available: int
    driver: DriverSummary
    vehicle: Optional[VehicleSummary]
    summary: AssignmentSummary
    candidate: AssignmentCandidate
    base_metrics: RouteMetrics
    original_route: Route
    updated_route: Route


@dataclass(frozen=True)
class MatchingConfig:
    average_speed_kmh: float
    max_additional_minutes: float
    max_deviation_meters: Optional[float]
    time_window_minutes: float
    max_results: int
    pickup_datetime: Optional[datetime]


@dataclass(frozen=True)
class MatchSearchResult:
    matches: list[TravelMatchResult] = field(default_factory=list)
    total_candidates: int = 0
    applied_config: Optional[MatchingConfig] = None

    @property
    def count(self) -> int:
        return len(self.matches)


# ── Entities ──────────────────────────────────────────────────────────


@dataclass
class Trip:
    """Mutable lifecycle holder used when changing a trip's status."""

    id: Optional[int] = None
    status: TripStatus = TripStatus.OPEN
    seats_available: int = 0

    def transition_to(self, new_status: TripStatus) -> None:
        """Move to *new_status* if the transition is legal, else raise."""
        allowed = TRIP_TRANSITIONS.get(self.status, set())
        if new_status not in allowed:
            raise InvalidStateTransition(
                f"Cannot transition from {self.status} to {new_status}"
            )
        self.status = new_status

    @property
    def is_matchable(self) -> bool:
        return self.status == TripStatus.CONFIRMED and self.seats_available > 0
