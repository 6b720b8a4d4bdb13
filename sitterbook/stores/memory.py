import asyncio
from datetime import datetime
from typing import Iterable, Optional

from ..schemas.booking import ACTIVE_STATUSES, Booking, BookingStatus
from ..schemas.care_request import CareRequest, RequestStatus
from ..services.conflicts import ranges_overlap
from .base import in_window


class InMemoryBookingStore:
    """
    Almacén en memoria para tests y ejecuciones locales.
    Devuelve copias: lo leído no cambia hasta que se guarda.
    """

    def __init__(self) -> None:
        self._requests: dict[str, CareRequest] = {}
        self._bookings: dict[str, Booking] = {}
        # sitter_id -> {booking_id: (start, end)}
        self._calendars: dict[str, dict[str, tuple[datetime, datetime]]] = {}
        self._lock = asyncio.Lock()

    async def get_request(self, request_id: str) -> Optional[CareRequest]:
        req = self._requests.get(request_id)
        return req.model_copy(deep=True) if req else None

    async def insert_request(self, request: CareRequest) -> CareRequest:
        self._requests[request.id] = request.model_copy(deep=True)
        return request

    async def update_request_status(
        self, request_id: str, expected: RequestStatus, new: RequestStatus, now: datetime
    ) -> bool:
        req = self._requests.get(request_id)
        if req is None or req.status != expected:
            return False
        req.status = new
        req.updated_at = now
        return True

    async def get_booking(self, booking_id: str) -> Optional[Booking]:
        b = self._bookings.get(booking_id)
        return b.model_copy(deep=True) if b else None

    async def insert_booking(self, booking: Booking) -> Booking:
        self._bookings[booking.id] = booking.model_copy(deep=True)
        return booking

    async def update_booking(self, booking: Booking, expected_status: BookingStatus) -> bool:
        stored = self._bookings.get(booking.id)
        if stored is None or stored.status != expected_status:
            return False
        self._bookings[booking.id] = booking.model_copy(deep=True)
        return True

    async def find_bookings(
        self,
        *,
        sitter_id: Optional[str] = None,
        owner_id: Optional[str] = None,
        request_id: Optional[str] = None,
        statuses: Optional[Iterable[BookingStatus]] = None,
    ) -> list[Booking]:
        wanted = set(statuses) if statuses is not None else None
        out = []
        for b in self._bookings.values():
            if sitter_id is not None and b.sitter_id != sitter_id:
                continue
            if owner_id is not None and b.owner_id != owner_id:
                continue
            if request_id is not None and b.request_id != request_id:
                continue
            if wanted is not None and b.status not in wanted:
                continue
            out.append(b.model_copy(deep=True))
        out.sort(key=lambda b: b.created_at, reverse=True)
        return out

    async def find_active_bookings(
        self,
        sitter_id: str,
        start: datetime,
        end: datetime,
        exclude_booking_id: Optional[str] = None,
        inclusive: bool = False,
    ) -> list[Booking]:
        bookings = await self.find_bookings(sitter_id=sitter_id, statuses=ACTIVE_STATUSES)
        out = [
            b for b in bookings
            if b.id != exclude_booking_id and in_window(b, start, end, inclusive)
        ]
        out.sort(key=lambda b: b.start_date)
        return out

    async def claim_slot(self, sitter_id: str, booking_id: str, start: datetime, end: datetime) -> bool:
        async with self._lock:
            slots = self._calendars.setdefault(sitter_id, {})
            if booking_id in slots:
                return True
            for s, e in slots.values():
                if ranges_overlap(s, e, start, end):
                    return False
            slots[booking_id] = (start, end)
            return True

    async def release_slot(self, sitter_id: str, booking_id: str) -> None:
        async with self._lock:
            self._calendars.get(sitter_id, {}).pop(booking_id, None)

