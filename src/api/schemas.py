"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from src.domain.entities import Coordinate, PassengerStops
from src.domain.enums import TripStatus


# ── Shared ────────────────────────────────────────────────────────────


class CoordinateSchema(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)

    model_config = {"from_attributes": True}

    def to_domain(self) -> Coordinate:
        return Coordinate(self.latitude, self.longitude)


class PassengerStopsSchema(BaseModel):
    pickup_lat: float = Field(..., ge=-90, le=90)
    pickup_lng: float = Field(..., ge=-180, le=180)
    dropoff_lat: float = Field(..., ge=-90, le=90)
    dropoff_lng: float = Field(..., ge=-180, le=180)

    def to_domain(self) -> PassengerStops:
        return PassengerStops(
            pickup=Coordinate(self.pickup_lat, self.pickup_lng),
            dropoff=Coordinate(self.dropoff_lat, self.dropoff_lng),
        )


# ── Requests ──────────────────────────────────────────────────────────


class TripCreateRequest(BaseModel):
    driver_id: int
    vehicle_id: Optional[int] = None
    start_lat: float = Field(..., ge=-90, le=90)
    start_lng: float = Field(..., ge=-180, le=180)
    end_lat: float = Field(..., ge=-90, le=90)
    end_lng: float = Field(..., ge=-180, le=180)
    start_location_name: Optional[str] = Field(None, max_length=255)
    end_location_name: Optional[str] = Field(None, max_length=255)
    start_time: datetime
    price: float = Field(..., ge=0)
    capacity: int = Field(..., ge=1, le=8)
    route_waypoints: Optional[list[CoordinateSchema]] = None
    encoded_polyline: Optional[str] = Field(
        None,
        description="Google encoded polyline; used when route_waypoints is absent.",
    )


class AssignmentRequest(PassengerStopsSchema):
    average_speed_kmh: Optional[float] = Field(None, gt=0, le=200)
    max_additional_minutes: Optional[float] = Field(None, ge=0)
    max_deviation_meters: Optional[float] = Field(None, ge=0)
    route_waypoints: Optional[list[CoordinateSchema]] = None


class AcceptPassengerRequest(PassengerStopsSchema):
    passenger_id: int


class TripStatusRequest(BaseModel):
    status: TripStatus


class MatchSearchRequest(PassengerStopsSchema):
    passenger_id: Optional[int] = None
    average_speed_kmh: Optional[float] = Field(None, gt=0, le=200)
    max_additional_minutes: Optional[float] = Field(None, ge=0)
    max_deviation_meters: Optional[float] = Field(None, ge=0)
    time_window_minutes: Optional[float] = Field(None, ge=0)
    max_results: Optional[int] = Field(None, le=100)
    pickup_datetime: Optional[datetime] = None


# ── Responses ─────────────────────────────────────────────────────────


class RouteMetricsResponse(BaseModel):
    total_distance_km: float
    total_duration_minutes: float

    model_config = {"from_attributes": True}


class BoundingBoxResponse(BaseModel):
    min_latitude: float
    max_latitude: float
    min_longitude: float
    max_longitude: float

    model_config = {"from_attributes": True}


class AssignmentSummaryResponse(BaseModel):
    pickup_insert_index: int
    dropoff_insert_index: int
    additional_minutes: float
    additional_distance_km: float
    new_total_minutes: float
    new_total_distance_km: float
    time_increase_percent: float
    distance_increase_percent: float

    model_config = {"from_attributes": True}


class AssignmentResponse(BaseModel):
    success: bool
    message: Optional[str] = None
    summary: Optional[AssignmentSummaryResponse] = None
    base_metrics: RouteMetricsResponse
    updated_metrics: Optional[RouteMetricsResponse] = None
    original_route: list[CoordinateSchema]
    updated_route: Optional[list[CoordinateSchema]] = None


class DriverResponse(BaseModel):
    id: int
    name: str
    email: Optional[str] = None
    phone_number: Optional[str] = None
    profile_picture: Optional[str] = None
    rating: Optional[float] = None

    model_config = {"from_attributes": True}


class VehicleResponse(BaseModel):
    id: int
    brand: str
    model: str
    year: int
    licence_plate: str

    model_config = {"from_attributes": True}


class TripResponse(BaseModel):
    id: int
    start: CoordinateSchema
    end: CoordinateSchema
    start_time: datetime
    price: float
    seats_available: int
    status: str
    driver: DriverResponse
    vehicle: Optional[VehicleResponse] = None
    route: list[CoordinateSchema]
    route_metrics: RouteMetricsResponse
    bounding_box: Optional[BoundingBoxResponse] = None


class TravelMatchResponse(BaseModel):
    trip_id: int
    price: float
    start_time: datetime
    seats_available: int
    driver: DriverResponse
    vehicle: Optional[VehicleResponse] = None
    summary: AssignmentSummaryResponse
    base_metrics: RouteMetricsResponse
    original_route: list[CoordinateSchema]
    updated_route: list[CoordinateSchema]

    model_config = {"from_attributes": True}


class AppliedConfigResponse(BaseModel):
    average_speed_kmh: float
    max_additional_minutes: float
    max_deviation_meters: Optional[float] = None
    time_window_minutes: float
    max_results: int
    pickup_datetime: Optional[datetime] = None

    model_config = {"from_attributes": True}


class MatchSearchResponse(BaseModel):
    success: bool = True
    matches: list[TravelMatchResponse]
    count: int
    total_candidates: int
    applied_config: AppliedConfigResponse


class TripStatusResponse(BaseModel):
    id: int
    status: TripStatus
    seats_available: int

    model_config = {"from_attributes": True}


class HealthResponse(BaseModel):
    status: str = "ok"


class ErrorResponse(BaseModel):
    detail: str
