"""
Trip endpoints
==============

POST /api/v1/trips                        -- register a driver's trip
GET  /api/v1/trips/{trip_id}              -- trip, route, metrics, bounding box
POST /api/v1/trips/{trip_id}/assignment   -- preview inserting a passenger
POST /api/v1/trips/{trip_id}/passengers   -- accept a passenger (route updated)
PATCH /api/v1/trips/{trip_id}/status      -- lifecycle transition
"""

from fastapi import APIRouter, Depends, Request

from src.api.dependencies import get_matching_service
from src.api.middleware import limiter
from src.api.schemas import (
    AcceptPassengerRequest,
    AssignmentRequest,
    AssignmentResponse,
    AssignmentSummaryResponse,
    BoundingBoxResponse,
    CoordinateSchema,
    DriverResponse,
    RouteMetricsResponse,
    TripCreateRequest,
    TripResponse,
    TripStatusRequest,
    TripStatusResponse,
    VehicleResponse,
)
from src.config import settings
from src.domain.distance import compute_route_bounding_box
from src.domain.entities import AssignmentEvaluation, Coordinate, TripSnapshot
from src.domain.routes import build_trip_route, estimate_route_metrics
from src.services.matching import TripMatchingService

router = APIRouter(prefix="/trips", tags=["trips"])


def _route_dto(route) -> list[CoordinateSchema]:
    return [CoordinateSchema.model_validate(p) for p in route]


def _trip_dto(trip: TripSnapshot) -> TripResponse:
    route = build_trip_route(trip.start, trip.end, trip.route_waypoints)
    box = compute_route_bounding_box(route)
    return TripResponse(
        id=trip.id,
        start=CoordinateSchema.model_validate(trip.start),
        end=CoordinateSchema.model_validate(trip.end),
        start_time=trip.start_time,
        price=trip.price,
        seats_available=trip.seats_available,
        status=trip.status.value,
        driver=DriverResponse.model_validate(trip.driver),
        vehicle=VehicleResponse.model_validate(trip.vehicle) if trip.vehicle else None,
        route=_route_dto(route),
        route_metrics=RouteMetricsResponse.model_validate(
            estimate_route_metrics(route, settings.average_speed_kmh)
        ),
        bounding_box=BoundingBoxResponse.model_validate(box) if box else None,
    )


def _assignment_dto(evaluation: AssignmentEvaluation) -> AssignmentResponse:
    candidate = evaluation.candidate
    return AssignmentResponse(
        success=evaluation.success,
        message=evaluation.message,
        summary=(
            AssignmentSummaryResponse.model_validate(evaluation.summary)
            if evaluation.summary
            else None
        ),
        base_metrics=RouteMetricsResponse.model_validate(evaluation.base_metrics),
        updated_metrics=(
            RouteMetricsResponse.model_validate(candidate.updated_metrics)
            if candidate
            else None
        ),
        original_route=_route_dto(evaluation.original_route),
        updated_route=_route_dto(candidate.updated_route) if candidate else None,
    )


@router.post(
    "",
    status_code=201,
    response_model=TripResponse,
    summary="Register a trip",
)
@limiter.limit(settings.rate_limit)
async def create_trip(
    request: Request,
    body: TripCreateRequest,
    service: TripMatchingService = Depends(get_matching_service),
):
    trip = await service.register_trip(
        driver_id=body.driver_id,
        vehicle_id=body.vehicle_id,
        start=Coordinate(body.start_lat, body.start_lng),
        end=Coordinate(body.end_lat, body.end_lng),
        start_time=body.start_time,
        price=body.price,
        capacity=body.capacity,
        waypoints=(
            [p.to_domain() for p in body.route_waypoints]
            if body.route_waypoints
            else None
        ),
        encoded_polyline=body.encoded_polyline,
        start_location_name=body.start_location_name,
        end_location_name=body.end_location_name,
    )
    return _trip_dto(trip)


@router.get(
    "/{trip_id}",
    response_model=TripResponse,
    summary="Get a trip with its current route",
)
@limiter.limit(settings.rate_limit)
async def get_trip(
    request: Request,
    trip_id: int,
    service: TripMatchingService = Depends(get_matching_service),
):
    trip = await service.get_trip(trip_id)
    return _trip_dto(trip)


@router.post(
    "/{trip_id}/assignment",
    response_model=AssignmentResponse,
    summary="Evaluate inserting a passenger into this trip",
    description=(
        "Returns success=false with a message when the passenger cannot be "
        "inserted within the configured limits; that is not an error."
    ),
)
@limiter.limit(settings.rate_limit)
async def preview_assignment(
    request: Request,
    trip_id: int,
    body: AssignmentRequest,
    service: TripMatchingService = Depends(get_matching_service),
):
    evaluation = await service.evaluate_passenger_assignment(
        trip_id,
        body.to_domain(),
        average_speed_kmh=body.average_speed_kmh,
        max_additional_minutes=body.max_additional_minutes,
        max_deviation_meters=body.max_deviation_meters,
        route_waypoints=(
            [p.to_domain() for p in body.route_waypoints]
            if body.route_waypoints and len(body.route_waypoints) >= 2
            else None
        ),
    )
    return _assignment_dto(evaluation)


@router.post(
    "/{trip_id}/passengers",
    response_model=AssignmentResponse,
    summary="Accept a passenger and persist the updated route",
)
@limiter.limit(settings.rate_limit)
async def accept_passenger(
    request: Request,
    trip_id: int,
    body: AcceptPassengerRequest,
    service: TripMatchingService = Depends(get_matching_service),
):
    evaluation = await service.accept_passenger(
        trip_id, body.passenger_id, body.to_domain()
    )
    return _assignment_dto(evaluation)


@router.patch(
    "/{trip_id}/status",
    response_model=TripStatusResponse,
    summary="Change a trip's lifecycle status",
    description="Only CONFIRMED trips with free seats are offered to passengers.",
)
@limiter.limit(settings.rate_limit)
async def change_status(
    request: Request,
    trip_id: int,
    body: TripStatusRequest,
    service: TripMatchingService = Depends(get_matching_service),
):
    trip = await service.change_trip_status(trip_id, body.status)
    return TripStatusResponse.model_validate(trip)
