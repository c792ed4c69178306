"""
Shared test fixtures.

``FakeTripStore`` keeps trips in a dict so service and API tests run
without Docker / PostgreSQL / PostGIS.  It applies the same candidate
filter as ``TripRepository.find_candidates``.
"""

import asyncio
import dataclasses
from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.exc import SQLAlchemyError

from src.domain.entities import (
    AssignmentCandidate,
    AssignmentRejectedError,
    Coordinate,
    DriverSummary,
    InvalidStateTransition,
    PassengerStops,
    StaleTripError,
    TripNotFoundError,
    TripSnapshot,
)
from src.domain.enums import TripStatus
from src.services.matching import TripMatchingService


def make_trip(
    trip_id: int,
    start: tuple[float, float],
    end: tuple[float, float],
    *,
    waypoints: Optional[list[tuple[float, float]]] = None,
    driver_id: int = 100,
    hours_ahead: float = 1.0,
    price: float = 10.0,
    seats: int = 3,
    status: TripStatus = TripStatus.CONFIRMED,
) -> TripSnapshot:
    return TripSnapshot(
        id=trip_id,
        start=Coordinate(*start),
        end=Coordinate(*end),
        start_time=datetime.now(timezone.utc) + timedelta(hours=hours_ahead),
        price=price,
        seats_available=seats,
        driver=DriverSummary(id=driver_id, name=f"Driver {driver_id}"),
        status=status,
        route_waypoints=(
            tuple(Coordinate(*p) for p in waypoints) if waypoints else None
        ),
    )


class FakeTripStore:
    """In-memory ``TripStore``."""

    def __init__(self, trips=()):
        self.trips: dict[int, TripSnapshot] = {t.id: t for t in trips}
        self.assignments: list[tuple[int, int, PassengerStops, AssignmentCandidate]] = []
        self.fail_on_search = False

    def add(self, trip: TripSnapshot) -> TripSnapshot:
        self.trips[trip.id] = trip
        return trip

    async def get_snapshot(self, trip_id: int) -> Optional[TripSnapshot]:
        return self.trips.get(trip_id)

    async def find_candidates(
        self,
        *,
        exclude_driver_id,
        window_start,
        window_end,
        starts_after,
        limit,
    ) -> list[TripSnapshot]:
        if self.fail_on_search:
            raise SQLAlchemyError("database unavailable")
        found = [
            t
            for t in self.trips.values()
            if t.status == TripStatus.CONFIRMED
            and t.seats_available > 0
            and (exclude_driver_id is None or t.driver.id != exclude_driver_id)
            and (window_start is None or t.start_time >= window_start)
            and (window_end is None or t.start_time <= window_end)
            and (starts_after is None or t.start_time > starts_after)
        ]
        found.sort(key=lambda t: t.start_time)
        return found[:limit]

    async def create_trip(self, **fields) -> TripSnapshot:
        trip_id = max(self.trips, default=0) + 1
        return self.add(
            TripSnapshot(
                id=trip_id,
                start=fields["start"],
                end=fields["end"],
                start_time=fields["start_time"],
                price=fields["price"],
                seats_available=fields["capacity"],
                driver=DriverSummary(
                    id=fields["driver_id"], name=f"Driver {fields['driver_id']}"
                ),
                status=fields.get("status", TripStatus.CONFIRMED),
                route_waypoints=tuple(fields["route"]),
            )
        )

    async def apply_assignment(
        self, trip_id, passenger_id, stops, candidate, expected_route
    ) -> None:
        trip = self.trips.get(trip_id)
        if trip is None:
            raise TripNotFoundError(f"Trip {trip_id} not found")
        if trip.seats_available <= 0:
            raise AssignmentRejectedError(f"Trip {trip_id} has no seats available")
        expected = tuple(expected_route) if expected_route is not None else None
        if trip.route_waypoints != expected:
            raise StaleTripError(f"Trip {trip_id} route changed while evaluating")
        self.trips[trip_id] = dataclasses.replace(
            trip,
            route_waypoints=candidate.updated_route,
            seats_available=trip.seats_available - 1,
        )
        self.assignments.append((trip_id, passenger_id, stops, candidate))

    async def update_status(
        self, trip_id: int, current: TripStatus, status: TripStatus
    ) -> None:
        trip = self.trips[trip_id]
        if trip.status != current:
            raise InvalidStateTransition(
                f"Trip {trip_id} is no longer {current}; cannot move to {status}"
            )
        self.trips[trip_id] = dataclasses.replace(trip, status=status)


class SlowTripStore(FakeTripStore):
    """Yields to the event loop on every read and write, like a real DB."""

    async def get_snapshot(self, trip_id: int) -> Optional[TripSnapshot]:
        await asyncio.sleep(0)
        return await super().get_snapshot(trip_id)

    async def apply_assignment(self, *args) -> None:
        await asyncio.sleep(0)
        await super().apply_assignment(*args)

    async def update_status(self, *args) -> None:
        await asyncio.sleep(0)
        await super().update_status(*args)


class RecordingNotifier:
    def __init__(self):
        self.events: list[tuple[int, int, float]] = []

    async def passenger_accepted(self, passenger_id, trip_id, additional_minutes):
        self.events.append((passenger_id, trip_id, additional_minutes))


# ── Fixtures ──────────────────────────────────────────────────────────


@pytest.fixture
def store() -> FakeTripStore:
    return FakeTripStore()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def service(store, notifier) -> TripMatchingService:
    return TripMatchingService(store, notifier=notifier)


@pytest_asyncio.fixture
async def client(store):
    """AsyncClient whose routes read and write ``store``."""
    from src.api.app import create_app
    from src.api.dependencies import get_trip_store

    app = create_app()
    app.dependency_overrides[get_trip_store] = lambda: store

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
