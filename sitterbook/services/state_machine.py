# sitterbook/services/state_machine.py
"""
Máquina de estados de una reserva.

    pending ──accept──▶ confirmed ──start──▶ in_progress ──complete──▶ completed
       │                   │
       ├──reject──▶ rejected
       └──cancel──▶ cancelled ◀──cancel──┘

Nunca se vuelve a pending. completed, cancelled y rejected son finales.
"""
from datetime import datetime
from typing import Optional

from ..errors import Command, InvalidTransition
from ..schemas.booking import Booking, BookingStatus
from ..schemas.care_request import CareRequest


def next_status(command: Command, current: BookingStatus) -> Optional[BookingStatus]:
    """Estado destino de aplicar command sobre current, o None si no es legal."""
    match (command, current):
        case (Command.accept, BookingStatus.pending):
            return BookingStatus.confirmed
        case (Command.reject, BookingStatus.pending):
            return BookingStatus.rejected
        case (Command.cancel, BookingStatus.pending | BookingStatus.confirmed):
            return BookingStatus.cancelled
        case (Command.start, BookingStatus.confirmed):
            return BookingStatus.in_progress
        case (Command.complete, BookingStatus.in_progress):
            return BookingStatus.completed
        case _:
            return None


def check_transition(
    booking: Booking, command: Command, request: CareRequest, now: datetime
) -> Optional[InvalidTransition]:
    """
    Valida el estado y las condiciones de tiempo del comando.
    La comprobación de agenda de accept la hace el servicio (necesita la base de datos).
    """
    if next_status(command, booking.status) is None:
        return InvalidTransition(booking.id, booking.status, command)
    if command == Command.start and now < request.start_date:
        return InvalidTransition(booking.id, booking.status, command, detail="el servicio aún no ha empezado")
    if command == Command.complete and now < request.end_date:
        return InvalidTransition(booking.id, booking.status, command, detail="el servicio aún no ha terminado")
    return None


def apply_transition(booking: Booking, command: Command, now: datetime, reason: Optional[str] = None) -> Booking:
    """Devuelve una copia de la reserva con el nuevo estado y sus marcas de tiempo."""
    new_status = next_status(command, booking.status)
    if new_status is None:
        raise ValueError(f"{command.value} no es legal desde {booking.status.value}")
    updated = booking.model_copy(update={"status": new_status, "updated_at": now})
    match new_status:
        case BookingStatus.confirmed:
            updated.accepted_at = now
        case BookingStatus.in_progress:
            updated.started_at = now
        case BookingStatus.completed:
            updated.completed_at = now
        case BookingStatus.cancelled | BookingStatus.rejected:
            updated.cancelled_at = now
            updated.cancellation_reason = reason
    return updated
