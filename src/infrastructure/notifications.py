"""
Passenger notifications.

Push delivery is owned by another service; the matching service only
needs somewhere to announce an accepted passenger.  The notifier is
passed into ``TripMatchingService`` explicitly rather than living as a
module-level client.
"""

from __future__ import annotations

import logging
from typing import Protocol

logger = logging.getLogger(__name__)


class PassengerNotifier(Protocol):
    async def passenger_accepted(
        self, passenger_id: int, trip_id: int, additional_minutes: float
    ) -> None: ...


class LoggingNotifier:
    """Default notifier: records the event in the application log."""

    async def passenger_accepted(
        self, passenger_id: int, trip_id: int, additional_minutes: float
    ) -> None:
        logger.info(
            "Passenger %d accepted on trip %d (+%.1f min)",
            passenger_id,
            trip_id,
            additional_minutes,
        )
