from datetime import datetime
from typing import Iterable, Optional, Protocol

from ..schemas.booking import Booking, BookingStatus
from ..schemas.care_request import CareRequest, RequestStatus


class BookingStore(Protocol):
    """Lo que el núcleo de reservas necesita de la persistencia."""

    async def get_request(self, request_id: str) -> Optional[CareRequest]: ...

    async def insert_request(self, request: CareRequest) -> CareRequest: ...

    async def update_request_status(
        self, request_id: str, expected: RequestStatus, new: RequestStatus, now: datetime
    ) -> bool: ...

    async def get_booking(self, booking_id: str) -> Optional[Booking]: ...

    async def insert_booking(self, booking: Booking) -> Booking: ...

    async def update_booking(self, booking: Booking, expected_status: BookingStatus) -> bool: ...

    async def find_bookings(
        self,
        *,
        sitter_id: Optional[str] = None,
        owner_id: Optional[str] = None,
        request_id: Optional[str] = None,
        statuses: Optional[Iterable[BookingStatus]] = None,
    ) -> list[Booking]: ...

    async def find_active_bookings(
        self,
        sitter_id: str,
        start: datetime,
        end: datetime,
        exclude_booking_id: Optional[str] = None,
        inclusive: bool = False,
    ) -> list[Booking]: ...

    async def claim_slot(self, sitter_id: str, booking_id: str, start: datetime, end: datetime) -> bool: ...

    async def release_slot(self, sitter_id: str, booking_id: str) -> None: ...


def in_window(booking: Booking, start: datetime, end: datetime, inclusive: bool) -> bool:
    """
    Filtro de rango común a los almacenes.
    Estricto: solape semiabierto. Inclusivo: también cuenta tocar los extremos.
    """
    if inclusive:
        return booking.start_date <= end and booking.end_date >= start
    return booking.start_date < end and booking.end_date > start
