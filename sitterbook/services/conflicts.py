# sitterbook/services/conflicts.py
from datetime import datetime
from typing import Optional

from ..schemas.booking import Booking


def ranges_overlap(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    # Semiabierto: una reserva que termina el día N no choca con otra que empieza el día N
    return (a_start < b_end) and (a_end > b_start)


class ConflictDetector:
    """
    Detecta solapes con reservas activas (confirmadas o en curso) de un cuidador.
    Las pendientes no ocupan agenda: varios cuidadores pueden optar a la misma solicitud.
    """

    def __init__(self, store):
        self.store = store

    async def get_conflicting_bookings(
        self,
        sitter_id: str,
        start: datetime,
        end: datetime,
        exclude_booking_id: Optional[str] = None,
    ) -> list[Booking]:
        return await self.store.find_active_bookings(
            sitter_id, start, end, exclude_booking_id=exclude_booking_id
        )

    async def has_conflict(
        self,
        sitter_id: str,
        start: datetime,
        end: datetime,
        exclude_booking_id: Optional[str] = None,
    ) -> bool:
        conflicting = await self.get_conflicting_bookings(sitter_id, start, end, exclude_booking_id)
        return len(conflicting) > 0

    async def is_available(self, sitter_id: str, start: datetime, end: datetime) -> bool:
        return not await self.has_conflict(sitter_id, start, end)
