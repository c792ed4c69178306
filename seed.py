"""
Seed script -- populates the database with sample data for reviewers.

Run after migrations:
    python seed.py

Creates:
  - 6 sample users (3 drivers, 3 passengers)
  - 3 sample vehicles
  - 5 sample trips around Lisbon with stored route waypoints
  - a handful of reviews so drivers carry a rating
"""

import asyncio
from datetime import datetime, timedelta, timezone

from sqlalchemy import text
from geoalchemy2.functions import ST_MakePoint

from src.config import settings
from src.domain.entities import Coordinate
from src.domain.enums import TripStatus
from src.domain.routes import build_trip_route, simplify_route_waypoints
from src.infrastructure.database import async_session_factory, engine
from src.infrastructure.models import (
    ReviewModel,
    TripModel,
    UserModel,
    VehicleModel,
)
from src.infrastructure.waypoints import serialize_waypoints


USERS = [
    {"name": "Ines Duarte", "email": "ines@example.com", "phone_number": "+351910000001"},
    {"name": "Tiago Ramos", "email": "tiago@example.com", "phone_number": "+351910000002"},
    {"name": "Marta Lopes", "email": "marta@example.com", "phone_number": "+351910000003"},
    {"name": "Rui Costa", "email": "rui@example.com", "phone_number": None},
    {"name": "Beatriz Silva", "email": "beatriz@example.com", "phone_number": None},
    {"name": "Joao Pereira", "email": "joao@example.com", "phone_number": None},
]

VEHICLES = [
    {"owner": 0, "brand": "Renault", "model": "Clio", "year": 2019, "licence_plate": "AA-11-BB"},
    {"owner": 1, "brand": "Toyota", "model": "Corolla", "year": 2021, "licence_plate": "CC-22-DD"},
    {"owner": 2, "brand": "Peugeot", "model": "308", "year": 2018, "licence_plate": "EE-33-FF"},
]

# (driver, start, end, waypoints, hours from now, price, capacity, status)
TRIPS = [
    (
        0,
        (38.7223, -9.1393),  # Baixa
        (38.7369, -9.1427),  # Saldanha
        [(38.7223, -9.1393), (38.7262, -9.1400), (38.7300, -9.1410), (38.7369, -9.1427)],
        2, 4.50, 3, TripStatus.CONFIRMED,
    ),
    (
        1,
        (38.7071, -9.1355),  # Cais do Sodre
        (38.7677, -9.0986),  # Oriente
        [(38.7071, -9.1355), (38.7110, -9.1230), (38.7300, -9.1100), (38.7500, -9.1020), (38.7677, -9.0986)],
        3, 6.00, 4, TripStatus.CONFIRMED,
    ),
    (
        2,
        (38.7139, -9.1334),  # Rossio
        (38.7436, -9.1602),  # Sete Rios
        None,
        5, 3.75, 2, TripStatus.CONFIRMED,
    ),
    (
        0,
        (38.6979, -9.2064),  # Belem
        (38.7223, -9.1393),  # Baixa
        [(38.6979, -9.2064), (38.7010, -9.1800), (38.7060, -9.1550), (38.7223, -9.1393)],
        -4, 5.20, 3, TripStatus.COMPLETED,
    ),
    (
        1,
        (38.7369, -9.1427),
        (38.7813, -9.1359),  # Airport
        None,
        1, 7.80, 4, TripStatus.OPEN,
    ),
]

REVIEWS = [
    # (trip index, reviewer, stars)
    (3, 3, 5),
    (3, 4, 4),
]


async def seed():
    async with async_session_factory() as session:
        # Check if already seeded
        result = await session.execute(text("SELECT count(*) FROM users"))
        if result.scalar() > 0:
            print("Database already seeded. Skipping.")
            return

        # ── Users ─────────────────────────────────────────────────────
        user_models = []
        for u in USERS:
            m = UserModel(name=u["name"], email=u["email"], phone_number=u["phone_number"])
            session.add(m)
            user_models.append(m)
        await session.flush()
        print(f"  Created {len(user_models)} users")

        # ── Vehicles ──────────────────────────────────────────────────
        vehicle_models = []
        for v in VEHICLES:
            m = VehicleModel(
                owner_id=user_models[v["owner"]].id,
                brand=v["brand"],
                model=v["model"],
                year=v["year"],
                licence_plate=v["licence_plate"],
            )
            session.add(m)
            vehicle_models.append(m)
        await session.flush()
        print(f"  Created {len(vehicle_models)} vehicles")

        # ── Trips ─────────────────────────────────────────────────────
        now = datetime.now(timezone.utc)
        trip_models = []
        for driver, start, end, waypoints, hours, price, capacity, status in TRIPS:
            start_c, end_c = Coordinate(*start), Coordinate(*end)
            route = simplify_route_waypoints(
                build_trip_route(
                    start_c,
                    end_c,
                    [Coordinate(*p) for p in waypoints] if waypoints else None,
                ),
                settings.route_simplification_tolerance_m,
                settings.route_min_points,
            )
            trip = TripModel(
                driver_id=user_models[driver].id,
                vehicle_id=vehicle_models[driver].id,
                start_lat=start_c.latitude,
                start_lng=start_c.longitude,
                end_lat=end_c.latitude,
                end_lng=end_c.longitude,
                start_point=ST_MakePoint(start_c.longitude, start_c.latitude),
                end_point=ST_MakePoint(end_c.longitude, end_c.latitude),
                route_waypoints=serialize_waypoints(route),
                start_time=now + timedelta(hours=hours),
                price=price,
                capacity=capacity,
                seats_available=capacity,
                status=status,
            )
            session.add(trip)
            trip_models.append(trip)
        await session.flush()
        print(f"  Created {len(trip_models)} trips")

        # ── Reviews ───────────────────────────────────────────────────
        for trip_index, reviewer, stars in REVIEWS:
            session.add(
                ReviewModel(
                    trip_id=trip_models[trip_index].id,
                    reviewer_id=user_models[reviewer].id,
                    stars=stars,
                )
            )
        await session.flush()
        print(f"  Created {len(REVIEWS)} reviews")

        await session.commit()
        print("\nSeed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
