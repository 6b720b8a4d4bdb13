# sitterbook/services/notifications.py
from datetime import datetime
from typing import Optional, Protocol
from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
import logging

from ..schemas.booking import Booking
from ..utils import to_storage, utcnow

logger = logging.getLogger(__name__)

# Eventos que emite el ciclo de vida
BOOKING_APPLICATION = "booking_application"
BOOKING_ACCEPTED = "booking_accepted"
BOOKING_REJECTED = "booking_rejected"
BOOKING_CANCELLED = "booking_cancelled"
BOOKING_STARTED = "booking_started"
BOOKING_COMPLETED = "booking_completed"
BOOKING_REMINDER = "booking_reminder"


class Notifier(Protocol):
    async def notify(self, event: str, booking: Booking, recipient_id: str) -> None: ...

    async def schedule(self, event: str, booking: Booking, recipient_id: str, at: datetime) -> None: ...


class OutboxNotifier:
    """
    Deja las notificaciones en la colección `notifications`.
    La entrega (push, email, websocket) la hace otro proceso.
    """

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db

    async def notify(self, event: str, booking: Booking, recipient_id: str) -> None:
        await self._insert(event, booking, recipient_id, None)

    async def schedule(self, event: str, booking: Booking, recipient_id: str, at: datetime) -> None:
        await self._insert(event, booking, recipient_id, at)

    async def _insert(self, event: str, booking: Booking, recipient_id: str, at: Optional[datetime]) -> None:
        await self.db.notifications.insert_one({
            "_id": ObjectId(),
            "event": event,
            "booking_id": booking.id,
            "request_id": booking.request_id,
            "recipient_id": recipient_id,
            "scheduled_for": to_storage(at) if at else None,
            "created_at": to_storage(utcnow()),
            "read": False,
        })


async def dispatch(
    notifier: Notifier,
    event: str,
    booking: Booking,
    recipient_id: str,
    at: Optional[datetime] = None,
) -> None:
    """Fire-and-forget: un fallo al notificar se registra y no tumba el comando."""
    try:
        if at is None:
            await notifier.notify(event, booking, recipient_id)
        else:
            await notifier.schedule(event, booking, recipient_id, at)
    except Exception as e:
        logger.error(f"Error notificando {event} de la reserva {booking.id} a {recipient_id}: {e}", exc_info=True)
