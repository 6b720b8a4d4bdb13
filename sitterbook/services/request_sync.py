# sitterbook/services/request_sync.py
from typing import Optional

from ..errors import Command
from ..schemas.booking import BookingStatus
from ..schemas.care_request import RequestStatus


def synced_request_status(command: Command, previous: BookingStatus) -> Optional[RequestStatus]:
    """
    Estado que debe tomar la solicitud tras un comando sobre su reserva.
    None = la solicitud no cambia (p.ej. rechazar deja la solicitud abierta a otros).
    """
    match (command, previous):
        case (Command.accept, _):
            return RequestStatus.in_progress
        case (Command.cancel, BookingStatus.confirmed):
            return RequestStatus.open
        case (Command.complete, _):
            return RequestStatus.completed
        case _:
            return None


def expected_request_status(command: Command) -> RequestStatus:
    """Estado en el que debe estar la solicitud para aplicar la sincronización."""
    if command == Command.accept:
        return RequestStatus.open
    return RequestStatus.in_progress
