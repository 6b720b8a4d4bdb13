# sitterbook/routers/bookings.py
from fastapi import APIRouter, Depends, HTTPException, Path
from typing import List, Optional

from ..deps import get_booking_service
from ..errors import raise_for_error, unwrap
from ..schemas.booking import AcceptBody, AcceptOut, Booking, ReasonBody
from ..security import get_current_user_id
from ..services.bookings import BookingService
from ..services.workflows import accept_application

router = APIRouter()

ID_PATTERN = r"^[0-9a-fA-F]{24}$"

# ---------- Listados ----------

@router.get("/mine", response_model=List[Booking])
async def list_my_bookings(
    service: BookingService = Depends(get_booking_service),
    user_id: str = Depends(get_current_user_id),
):
    as_sitter = await service.bookings_for_sitter(user_id)
    as_owner = await service.bookings_for_owner(user_id)
    return sorted(as_sitter + as_owner, key=lambda b: b.start_date)

@router.get("/active", response_model=List[Booking])
async def list_active_bookings(
    service: BookingService = Depends(get_booking_service),
    user_id: str = Depends(get_current_user_id),
):
    return await service.active_bookings(user_id)

@router.get("/upcoming", response_model=List[Booking])
async def list_upcoming_bookings(
    service: BookingService = Depends(get_booking_service),
    user_id: str = Depends(get_current_user_id),
):
    return await service.upcoming_bookings(user_id)

@router.get("/history", response_model=List[Booking])
async def list_booking_history(
    service: BookingService = Depends(get_booking_service),
    user_id: str = Depends(get_current_user_id),
):
    return await service.booking_history(user_id)

@router.get("/{booking_id}", response_model=Booking)
async def get_booking(
    booking_id: str = Path(..., pattern=ID_PATTERN),
    service: BookingService = Depends(get_booking_service),
    user_id: str = Depends(get_current_user_id),
):
    b = await service.get_booking(booking_id)
    if not b:
        raise HTTPException(404, "Reserva no encontrada")
    if user_id not in (b.owner_id, b.sitter_id):
        raise HTTPException(403, "Sin acceso a esta reserva")
    return b

# ---------- Transiciones ----------

@router.post("/{booking_id}/accept", response_model=AcceptOut)
async def accept_booking(
    body: Optional[AcceptBody] = None,
    booking_id: str = Path(..., pattern=ID_PATTERN),
    service: BookingService = Depends(get_booking_service),
    user_id: str = Depends(get_current_user_id),
):
    body = body or AcceptBody()
    outcome = await accept_application(service, booking_id, user_id, body.reject_others, body.reason)
    if not outcome.result.ok:
        raise_for_error(outcome.result.error)
    return {
        "booking": outcome.result.booking,
        "rejected": outcome.rejections.rejected,
        "failed": [e.as_dict() for e in outcome.rejections.failed],
    }

@router.post("/{booking_id}/reject", response_model=Booking)
async def reject_booking(
    body: Optional[ReasonBody] = None,
    booking_id: str = Path(..., pattern=ID_PATTERN),
    service: BookingService = Depends(get_booking_service),
    user_id: str = Depends(get_current_user_id),
):
    return unwrap(await service.reject(booking_id, user_id, body.reason if body else None))

@router.post("/{booking_id}/cancel", response_model=Booking)
async def cancel_booking(
    body: Optional[ReasonBody] = None,
    booking_id: str = Path(..., pattern=ID_PATTERN),
    service: BookingService = Depends(get_booking_service),
    user_id: str = Depends(get_current_user_id),
):
    return unwrap(await service.cancel(booking_id, user_id, body.reason if body else None))

@router.post("/{booking_id}/start", response_model=Booking)
async def start_booking(
    booking_id: str = Path(..., pattern=ID_PATTERN),
    service: BookingService = Depends(get_booking_service),
    user_id: str = Depends(get_current_user_id),
):
    return unwrap(await service.start(booking_id, user_id))

@router.post("/{booking_id}/complete", response_model=Booking)
async def complete_booking(
    booking_id: str = Path(..., pattern=ID_PATTERN),
    service: BookingService = Depends(get_booking_service),
    user_id: str = Depends(get_current_user_id),
):
    return unwrap(await service.complete(booking_id, user_id))
