# sitterbook/services/availability.py
from datetime import date, timedelta
from typing import Optional

from ..schemas.booking import ACTIVE_STATUSES, Booking, BookingStatus
from ..utils import day_start, days_between_inclusive
from .conflicts import ConflictDetector


class AvailabilityCalculator:
    """
    Agenda diaria de un cuidador a partir de sus reservas activas.

    Se cuenta por día (no ocupación global) para poder admitir más de una
    reserva por día cambiando solo max_per_day.
    """

    def __init__(self, store, detector: ConflictDetector, max_per_day: int = 1):
        self.store = store
        self.detector = detector
        self.max_per_day = max_per_day

    async def booking_counts_by_date(self, sitter_id: str, start: date, end: date) -> dict[date, int]:
        days = days_between_inclusive(start, end)
        if not days:
            return {}
        bookings = await self.store.find_active_bookings(
            sitter_id,
            day_start(start),
            day_start(end + timedelta(days=1)),
            inclusive=True,
        )
        counts: dict[date, int] = {}
        for day in days:
            counts[day] = sum(1 for b in bookings if _covers(b, day))
        return counts

    async def available_dates(
        self, sitter_id: str, start: date, end: date, max_per_day: Optional[int] = None
    ) -> list[date]:
        limit = self.max_per_day if max_per_day is None else max_per_day
        counts = await self.booking_counts_by_date(sitter_id, start, end)
        return [day for day, count in counts.items() if count < limit]

    async def can_accept_booking(self, sitter_id: str, booking_id: str) -> bool:
        booking = await self.store.get_booking(booking_id)
        if booking is None or booking.sitter_id != sitter_id or booking.status != BookingStatus.pending:
            return False
        return not await self.detector.has_conflict(
            sitter_id, booking.start_date, booking.end_date, exclude_booking_id=booking_id
        )

    async def upcoming_bookings(self, user_id: str, today: date) -> list[Booking]:
        """Reservas activas del usuario (como cuidador o dueño) que empiezan hoy o después."""
        since = day_start(today)
        bookings = await _user_active_bookings(self.store, user_id)
        return sorted((b for b in bookings if b.start_date >= since), key=lambda b: b.start_date)

    async def bookings_for_date(self, user_id: str, day: date) -> list[Booking]:
        bookings = await _user_active_bookings(self.store, user_id)
        return sorted((b for b in bookings if _covers(b, day)), key=lambda b: b.start_date)


def _covers(booking: Booking, day: date) -> bool:
    return booking.start_date.date() <= day <= booking.end_date.date()

async def _user_active_bookings(store, user_id: str) -> list[Booking]:
    as_sitter = await store.find_bookings(sitter_id=user_id, statuses=ACTIVE_STATUSES)
    as_owner = await store.find_bookings(owner_id=user_id, statuses=ACTIVE_STATUSES)
    seen: dict[str, Booking] = {b.id: b for b in as_sitter}
    for b in as_owner:
        seen.setdefault(b.id, b)
    return list(seen.values())
