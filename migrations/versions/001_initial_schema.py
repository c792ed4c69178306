"""Initial schema with PostGIS extension, users, vehicles and trips.

Revision ID: 001
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa
from geoalchemy2 import Geometry


revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Enable PostGIS extension
    op.execute("CREATE EXTENSION IF NOT EXISTS postgis")

    # ── users ─────────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("email", sa.String(255), unique=True, nullable=False),
        sa.Column("phone_number", sa.String(32), nullable=True),
        sa.Column("profile_picture", sa.String(512), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )

    # ── vehicles ──────────────────────────────────────────────────────
    op.create_table(
        "vehicles",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "owner_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False
        ),
        sa.Column("brand", sa.String(60), nullable=False),
        sa.Column("model", sa.String(60), nullable=False),
        sa.Column("year", sa.Integer, nullable=False),
        sa.Column("licence_plate", sa.String(16), unique=True, nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index("idx_vehicles_owner", "vehicles", ["owner_id"])

    # ── trips ─────────────────────────────────────────────────────────
    op.create_table(
        "trips",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "driver_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False
        ),
        sa.Column(
            "vehicle_id", sa.Integer, sa.ForeignKey("vehicles.id"), nullable=True
        ),
        sa.Column("start_location_name", sa.String(255), nullable=True),
        sa.Column("end_location_name", sa.String(255), nullable=True),
        sa.Column("start_point", Geometry("POINT", srid=4326), nullable=False),
        sa.Column("end_point", Geometry("POINT", srid=4326), nullable=False),
        sa.Column("start_lat", sa.Float, nullable=False),
        sa.Column("start_lng", sa.Float, nullable=False),
        sa.Column("end_lat", sa.Float, nullable=False),
        sa.Column("end_lng", sa.Float, nullable=False),
        sa.Column("route_waypoints", sa.JSON, nullable=True),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("price", sa.Float, nullable=False),
        sa.Column("capacity", sa.Integer, nullable=False),
        sa.Column("seats_available", sa.Integer, nullable=False),
        sa.Column(
            "status",
            sa.Enum(
                "OPEN",
                "CONFIRMED",
                "IN_PROGRESS",
                "COMPLETED",
                "CANCELLED",
                name="tripstatus",
            ),
            default="CONFIRMED",
            nullable=False,
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index(
        "idx_trips_start", "trips", ["start_point"], postgresql_using="gist"
    )
    op.create_index(
        "idx_trips_end", "trips", ["end_point"], postgresql_using="gist"
    )
    op.create_index("idx_trips_status", "trips", ["status"])
    op.create_index("idx_trips_start_time", "trips", ["start_time"])
    op.create_index("idx_trips_driver", "trips", ["driver_id"])

    # ── trip_passengers ───────────────────────────────────────────────
    op.create_table(
        "trip_passengers",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "trip_id", sa.Integer, sa.ForeignKey("trips.id"), nullable=False
        ),
        sa.Column(
            "passenger_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False
        ),
        sa.Column("pickup_lat", sa.Float, nullable=False),
        sa.Column("pickup_lng", sa.Float, nullable=False),
        sa.Column("dropoff_lat", sa.Float, nullable=False),
        sa.Column("dropoff_lng", sa.Float, nullable=False),
        sa.Column("pickup_index", sa.Integer, nullable=False),
        sa.Column("dropoff_index", sa.Integer, nullable=False),
        sa.Column("additional_minutes", sa.Float, nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index("idx_trip_passengers_trip", "trip_passengers", ["trip_id"])
    op.create_index(
        "idx_trip_passengers_passenger", "trip_passengers", ["passenger_id"]
    )

    # ── reviews ───────────────────────────────────────────────────────
    op.create_table(
        "reviews",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "trip_id", sa.Integer, sa.ForeignKey("trips.id"), nullable=False
        ),
        sa.Column(
            "reviewer_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False
        ),
        sa.Column("stars", sa.Integer, nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index("idx_reviews_trip", "reviews", ["trip_id"])


def downgrade() -> None:
    op.drop_table("reviews")
    op.drop_table("trip_passengers")
    op.drop_table("trips")
    op.drop_table("vehicles")
    op.drop_table("users")
    op.execute("DROP TYPE IF EXISTS tripstatus")
