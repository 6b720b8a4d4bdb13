from pydantic import BaseModel, Field
from enum import Enum
from datetime import datetime
from typing import Optional

class BookingStatus(str, Enum):
    pending     = "pending"       # solicitud enviada por el cuidador
    confirmed   = "confirmed"     # aceptada por el dueño, aún no empieza
    in_progress = "in_progress"
    completed   = "completed"
    cancelled   = "cancelled"
    rejected    = "rejected"

    @property
    def is_active(self) -> bool:
        # Solo estas ocupan la agenda del cuidador
        return self in ACTIVE_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self in (BookingStatus.completed, BookingStatus.cancelled, BookingStatus.rejected)

    @property
    def can_be_cancelled(self) -> bool:
        return self in (BookingStatus.pending, BookingStatus.confirmed)

ACTIVE_STATUSES = frozenset({BookingStatus.confirmed, BookingStatus.in_progress})

class Booking(BaseModel):
    id: str
    request_id: str
    sitter_id: str
    owner_id: str
    start_date: datetime
    end_date: datetime
    status: BookingStatus = BookingStatus.pending
    notes: Optional[str] = None

    # Pagos: solo datos, no hay liquidación
    total_amount: float = 0
    platform_fee: Optional[float] = None
    sitter_amount: Optional[float] = None

    created_at: datetime
    updated_at: datetime
    accepted_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None

class BookingApply(BaseModel):
    notes: Optional[str] = Field(default=None, max_length=500)

class ReasonBody(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=500)

class AcceptBody(BaseModel):
    reject_others: bool = True
    reason: Optional[str] = Field(default=None, max_length=500)

class AcceptOut(BaseModel):
    booking: Booking
    rejected: list[Booking] = []
    failed: list[dict] = []

class BulkRejectOut(BaseModel):
    rejected: list[Booking] = []
    failed: list[dict] = []
