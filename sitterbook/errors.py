"""
Errores del ciclo de vida de reservas.

Los comandos de reserva nunca lanzan estos errores: los devuelven dentro de un
BookingResult para que el llamador los traduzca (HTTP, mensaje al usuario...).
Solo PersistenceFailure es una excepción de verdad y sube hasta el llamador.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from fastapi import HTTPException

from .schemas.booking import Booking, BookingStatus


class Command(str, Enum):
    apply    = "apply"
    accept   = "accept"
    reject   = "reject"
    cancel   = "cancel"
    start    = "start"
    complete = "complete"


@dataclass
class BookingError:
    booking_id: Optional[str]

    @property
    def message(self) -> str:
        return "Operación rechazada"

    def as_dict(self) -> dict:
        return {"booking_id": self.booking_id, "error": type(self).__name__, "detail": self.message}


@dataclass
class InvalidTransition(BookingError):
    current: Optional[BookingStatus]
    command: Command
    detail: Optional[str] = None

    @property
    def message(self) -> str:
        state = self.current.value if self.current else "-"
        msg = f"Transición no permitida: {self.command.value} desde {state}"
        return f"{msg} ({self.detail})" if self.detail else msg


@dataclass
class SchedulingConflict(BookingError):
    sitter_id: str
    conflicting_ids: list[str] = field(default_factory=list)

    @property
    def message(self) -> str:
        return "Otra reserva ya cubre estas fechas"


@dataclass
class NotFound(BookingError):
    kind: str
    entity_id: str

    @property
    def message(self) -> str:
        return f"{self.kind} no encontrada: {self.entity_id}"


@dataclass
class NotPermitted(BookingError):
    actor_id: str
    command: Command

    @property
    def message(self) -> str:
        return f"El usuario no puede ejecutar '{self.command.value}' sobre esta reserva"


class PersistenceFailure(Exception):
    """Fallo de lectura/escritura en la capa de almacenamiento."""


@dataclass
class BookingResult:
    booking: Optional[Booking] = None
    error: Optional[BookingError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, booking: Booking) -> "BookingResult":
        return cls(booking=booking)

    @classmethod
    def failure(cls, error: BookingError) -> "BookingResult":
        return cls(error=error)


_STATUS_BY_ERROR = {
    NotFound: 404,
    NotPermitted: 403,
    SchedulingConflict: 409,
    InvalidTransition: 400,
}

def raise_for_error(error: BookingError) -> None:
    """Traduce un error tipado a la HTTPException que devuelve la API."""
    raise HTTPException(status_code=_STATUS_BY_ERROR.get(type(error), 400), detail=error.message)

def unwrap(result: BookingResult) -> Booking:
    if not result.ok:
        raise_for_error(result.error)
    return result.booking
