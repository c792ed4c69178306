"""
SQLAlchemy ORM models  (maps to PostgreSQL + PostGIS).

Tables
------
* ``users``            -- drivers and passengers
* ``vehicles``         -- cars owned by drivers
* ``trips``            -- a driver's planned trip with its route waypoints
* ``trip_passengers``  -- passengers accepted onto a trip
* ``reviews``          -- star ratings left on a trip (driver rating source)

Indexes
-------
* **GIST** on the trip start / end geometry columns for spatial queries.
* **B-Tree** on ``status``, ``start_time`` and ``driver_id`` for the
  candidate query used by the matching service.
"""

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    func,
)
from sqlalchemy.orm import relationship
from geoalchemy2 import Geometry

from .database import Base
from src.domain.enums import TripStatus


class UserModel(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(120), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    phone_number = Column(String(32), nullable=True)
    profile_picture = Column(String(512), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class VehicleModel(Base):
    __tablename__ = "vehicles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    brand = Column(String(60), nullable=False)
    model = Column(String(60), nullable=False)
    year = Column(Integer, nullable=False)
    licence_plate = Column(String(16), unique=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (Index("idx_vehicles_owner", "owner_id"),)


class TripModel(Base):
    __tablename__ = "trips"

    id = Column(Integer, primary_key=True, autoincrement=True)
    driver_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    vehicle_id = Column(Integer, ForeignKey("vehicles.id"), nullable=True)

    start_location_name = Column(String(255), nullable=True)
    end_location_name = Column(String(255), nullable=True)

    # Stored as PostGIS geometry for spatial indexing
    start_point = Column(Geometry("POINT", srid=4326), nullable=False)
    end_point = Column(Geometry("POINT", srid=4326), nullable=False)

    # Also stored as plain floats for fast reads (avoids ST_X / ST_Y)
    start_lat = Column(Float, nullable=False)
    start_lng = Column(Float, nullable=False)
    end_lat = Column(Float, nullable=False)
    end_lng = Column(Float, nullable=False)

    # [{"latitude": .., "longitude": ..}, ...]; older rows may use lat/lng
    route_waypoints = Column(JSON, nullable=True)

    start_time = Column(DateTime(timezone=True), nullable=False)
    price = Column(Float, nullable=False)
    capacity = Column(Integer, nullable=False)
    seats_available = Column(Integer, nullable=False)
    status = Column(Enum(TripStatus), default=TripStatus.CONFIRMED, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    driver = relationship("UserModel", lazy="raise")
    vehicle = relationship("VehicleModel", lazy="raise")
    reviews = relationship("ReviewModel", lazy="raise")

    __table_args__ = (
        Index("idx_trips_start", "start_point", postgresql_using="gist"),
        Index("idx_trips_end", "end_point", postgresql_using="gist"),
        Index("idx_trips_status", "status"),
        Index("idx_trips_start_time", "start_time"),
        Index("idx_trips_driver", "driver_id"),
    )


class TripPassengerModel(Base):
    __tablename__ = "trip_passengers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    trip_id = Column(Integer, ForeignKey("trips.id"), nullable=False)
    passenger_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    pickup_lat = Column(Float, nullable=False)
    pickup_lng = Column(Float, nullable=False)
    dropoff_lat = Column(Float, nullable=False)
    dropoff_lng = Column(Float, nullable=False)
    pickup_index = Column(Integer, nullable=False)
    dropoff_index = Column(Integer, nullable=False)
    additional_minutes = Column(Float, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("idx_trip_passengers_trip", "trip_id"),
        Index("idx_trip_passengers_passenger", "passenger_id"),
    )


class ReviewModel(Base):
    __tablename__ = "reviews"

    id = Column(Integer, primary_key=True, autoincrement=True)
    trip_id = Column(Integer, ForeignKey("trips.id"), nullable=False)
    reviewer_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    stars = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (Index("idx_reviews_trip", "trip_id"),)
