"""
FastAPI application factory.

* Registers routes for trips, match search and admin.
* Maps domain exceptions to HTTP status codes.
* Applies rate-limiting middleware.
* Swagger / OpenAPI UI available at ``/docs``.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import SQLAlchemyError

from src.api.middleware import limiter
from src.api.routes import admin, matches, trips
from src.domain.entities import (
    AssignmentRejectedError,
    InvalidCoordinateError,
    InvalidRouteError,
    InvalidStateTransition,
    TripNotFoundError,
)

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


async def _validation_error(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=422, content={"detail": str(exc)})


async def _not_found(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc)})


async def _conflict(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=409, content={"detail": str(exc)})


async def _storage_unavailable(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Storage failure on %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=503, content={"detail": "Trip storage unavailable; request failed"}
    )


def create_app() -> FastAPI:
    app = FastAPI(
        title="Route Insertion Matching API",
        description=(
            "Matches passengers to drivers' planned trips by finding the "
            "cheapest way to splice a pickup and dropoff into each route, "
            "then ranking trips by added travel time."
        ),
        version="1.0.0",
    )

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Domain errors
    app.add_exception_handler(InvalidCoordinateError, _validation_error)
    app.add_exception_handler(InvalidRouteError, _validation_error)
    app.add_exception_handler(TripNotFoundError, _not_found)
    app.add_exception_handler(InvalidStateTransition, _conflict)
    app.add_exception_handler(AssignmentRejectedError, _conflict)
    app.add_exception_handler(SQLAlchemyError, _storage_unavailable)

    # Routers
    app.include_router(trips.router, prefix="/api/v1")
    app.include_router(matches.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")

    return app
