"""
Match search endpoint
=====================

POST /api/v1/matches/search -- rank trips a passenger could join

Zero feasible trips is a successful, empty response (count=0); a storage
failure surfaces as 503 instead.
"""

from fastapi import APIRouter, Depends, Request

from src.api.dependencies import get_matching_service
from src.api.middleware import limiter
from src.api.schemas import (
    AppliedConfigResponse,
    MatchSearchRequest,
    MatchSearchResponse,
    TravelMatchResponse,
)
from src.config import settings
from src.services.matching import TripMatchingService

router = APIRouter(prefix="/matches", tags=["matches"])


@router.post(
    "/search",
    response_model=MatchSearchResponse,
    summary="Find trips a passenger can be inserted into",
)
@limiter.limit(settings.rate_limit)
async def search_matches(
    request: Request,
    body: MatchSearchRequest,
    service: TripMatchingService = Depends(get_matching_service),
):
    result = await service.find_matching_trips_for_passenger(
        body.passenger_id,
        body.to_domain(),
        average_speed_kmh=body.average_speed_kmh,
        max_additional_minutes=body.max_additional_minutes,
        max_deviation_meters=body.max_deviation_meters,
        time_window_minutes=body.time_window_minutes,
        max_results=body.max_results,
        pickup_datetime=body.pickup_datetime,
    )
    return MatchSearchResponse(
        matches=[TravelMatchResponse.model_validate(m) for m in result.matches],
        count=result.count,
        total_candidates=result.total_candidates,
        applied_config=AppliedConfigResponse.model_validate(result.applied_config),
    )
