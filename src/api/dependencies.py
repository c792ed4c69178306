"""FastAPI dependency injection helpers."""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from src.infrastructure.database import async_session_factory
from src.infrastructure.notifications import LoggingNotifier
from src.infrastructure.repositories import TripRepository
from src.services.matching import TripMatchingService, TripStore


async def get_db() -> AsyncSession:  # type: ignore[misc]
    """Yield an async DB session; commit on success, rollback on error."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_trip_store(db: AsyncSession = Depends(get_db)) -> TripStore:
    return TripRepository(db)


def get_matching_service(
    store: TripStore = Depends(get_trip_store),
) -> TripMatchingService:
    return TripMatchingService(store, notifier=LoggingNotifier())
