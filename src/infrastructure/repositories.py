"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and hands
back immutable ``TripSnapshot`` records, never ORM objects; stored
waypoints are normalised on the way out (see ``waypoints.py``).
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from .models import TripModel, TripPassengerModel
from .waypoints import parse_stored_waypoints, serialize_waypoints
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
    VehicleSummary,
)
from src.domain.enums import TripStatus


def average_rating(stars: Sequence[int]) -> Optional[float]:
    return sum(stars) / len(stars) if stars else None


def to_snapshot(trip: TripModel) -> TripSnapshot:
    """Convert a fully loaded ``TripModel`` into a domain snapshot."""
    stars = tuple(int(r.stars) for r in trip.reviews)
    driver = trip.driver
    vehicle = trip.vehicle
    return TripSnapshot(
        id=trip.id,
        start=Coordinate(float(trip.start_lat), float(trip.start_lng)),
        end=Coordinate(float(trip.end_lat), float(trip.end_lng)),
        start_time=trip.start_time,
        price=float(trip.price),
        seats_available=trip.seats_available,
        status=TripStatus(trip.status),
        driver=DriverSummary(
            id=driver.id,
            name=driver.name,
            email=driver.email,
            phone_number=driver.phone_number,
            profile_picture=driver.profile_picture,
            rating=average_rating(stars),
        ),
        vehicle=(
            VehicleSummary(
                id=vehicle.id,
                brand=vehicle.brand,
                model=vehicle.model,
                year=vehicle.year,
                licence_plate=vehicle.licence_plate,
            )
            if vehicle
            else None
        ),
        route_waypoints=parse_stored_waypoints(trip.route_waypoints),
        review_stars=stars,
    )


class TripRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    @staticmethod
    def _with_relations(query):
        return query.options(
            selectinload(TripModel.driver),
            selectinload(TripModel.vehicle),
            selectinload(TripModel.reviews),
        )

    async def create_trip(
        self,
        *,
        driver_id: int,
        vehicle_id: Optional[int],
        start: Coordinate,
        end: Coordinate,
        route: Sequence[Coordinate],
        start_time: datetime,
        price: float,
        capacity: int,
        start_location_name: Optional[str] = None,
        end_location_name: Optional[str] = None,
        status: TripStatus = TripStatus.CONFIRMED,
    ) -> TripSnapshot:
        """Create a trip with proper PostGIS geometry columns."""
        from geoalchemy2.functions import ST_MakePoint

        trip = TripModel(
            driver_id=driver_id,
            vehicle_id=vehicle_id,
            start_location_name=start_location_name,
            end_location_name=end_location_name,
            start_lat=start.latitude,
            start_lng=start.longitude,
            end_lat=end.latitude,
            end_lng=end.longitude,
            start_point=ST_MakePoint(start.longitude, start.latitude),
            end_point=ST_MakePoint(end.longitude, end.latitude),
            route_waypoints=serialize_waypoints(route),
            start_time=start_time,
            price=price,
            capacity=capacity,
            seats_available=capacity,
            status=status,
        )
        self.session.add(trip)
        await self.session.flush()
        snapshot = await self.get_snapshot(trip.id)
        assert snapshot is not None
        return snapshot

    async def get_snapshot(self, trip_id: int) -> Optional[TripSnapshot]:
        result = await self.session.execute(
            self._with_relations(select(TripModel).where(TripModel.id == trip_id))
            .execution_options(populate_existing=True)
        )
        trip = result.scalar_one_or_none()
        return to_snapshot(trip) if trip else None

    async def find_candidates(
        self,
        *,
        exclude_driver_id: Optional[int],
        window_start: Optional[datetime],
        window_end: Optional[datetime],
        starts_after: Optional[datetime],
        limit: int,
    ) -> list[TripSnapshot]:
        """Matchable trips: CONFIRMED, seats left, inside the time filter."""
        query = (
            select(TripModel)
            .where(TripModel.status == TripStatus.CONFIRMED)
            .where(TripModel.seats_available > 0)
        )
        if exclude_driver_id is not None:
            query = query.where(TripModel.driver_id != exclude_driver_id)
        if window_start is not None:
            query = query.where(TripModel.start_time >= window_start)
        if window_end is not None:
            query = query.where(TripModel.start_time <= window_end)
        if starts_after is not None:
            query = query.where(TripModel.start_time > starts_after)

        query = self._with_relations(query).order_by(TripModel.start_time).limit(limit)
        result = await self.session.execute(query)
        return [to_snapshot(t) for t in result.scalars().all()]

    async def apply_assignment(
        self,
        trip_id: int,
        passenger_id: int,
        stops: PassengerStops,
        candidate: AssignmentCandidate,
        expected_route: Optional[Sequence[Coordinate]],
    ) -> None:
        """
        Persist an accepted insertion.

        The row is locked with SELECT ... FOR UPDATE; the write only goes
        through if the stored route still equals *expected_route*, the
        route the candidate was computed from.  Otherwise ``StaleTripError``.
        """
        result = await self.session.execute(
            select(TripModel)
            .where(TripModel.id == trip_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        trip = result.scalar_one_or_none()
        if trip is None:
            raise TripNotFoundError(f"Trip {trip_id} not found")
        if trip.seats_available <= 0:
            raise AssignmentRejectedError(f"Trip {trip_id} has no seats available")
        stored = parse_stored_waypoints(trip.route_waypoints)
        expected = tuple(expected_route) if expected_route is not None else None
        if stored != expected:
            raise StaleTripError(f"Trip {trip_id} route changed while evaluating")

        trip.route_waypoints = serialize_waypoints(candidate.updated_route)
        trip.seats_available -= 1
        self.session.add(
            TripPassengerModel(
                trip_id=trip_id,
                passenger_id=passenger_id,
                pickup_lat=stops.pickup.latitude,
                pickup_lng=stops.pickup.longitude,
                dropoff_lat=stops.dropoff.latitude,
                dropoff_lng=stops.dropoff.longitude,
                pickup_index=candidate.pickup_insert_index,
                dropoff_index=candidate.dropoff_insert_index,
                additional_minutes=candidate.additional_minutes,
            )
        )
        await self.session.flush()

    async def update_status(
        self, trip_id: int, current: TripStatus, status: TripStatus
    ) -> None:
        """Compare-and-set: only moves the trip if it is still in *current*."""
        result = await self.session.execute(
            update(TripModel)
            .where(TripModel.id == trip_id)
            .where(TripModel.status == current)
            .values(status=status)
        )
        if result.rowcount == 0:
            raise InvalidStateTransition(
                f"Trip {trip_id} is no longer {current}; cannot move to {status}"
            )
