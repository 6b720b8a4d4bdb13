from pydantic import BaseModel, Field, field_validator, model_validator
from enum import Enum
from datetime import datetime
from typing import Optional

from ..utils import as_utc

class RequestStatus(str, Enum):
    open        = "open"
    in_progress = "in_progress"
    completed   = "completed"
    cancelled   = "cancelled"
    expired     = "expired"

    @property
    def is_terminal(self) -> bool:
        return self in (RequestStatus.completed, RequestStatus.cancelled, RequestStatus.expired)

class CareType(str, Enum):
    pet_sitting  = "pet_sitting"   # en casa del dueño
    pet_boarding = "pet_boarding"  # en casa del cuidador
    dog_walking  = "dog_walking"
    daycare      = "daycare"
    overnight    = "overnight"

class CareRequestCreate(BaseModel):
    pet_id: str
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    care_type: CareType = CareType.pet_sitting
    start_date: datetime
    end_date: datetime
    budget: float = Field(default=0, ge=0)
    location: Optional[str] = Field(default=None, max_length=200)
    special_instructions: Optional[str] = Field(default=None, max_length=500)

    @field_validator("start_date", "end_date")
    @classmethod
    def _to_utc(cls, value: datetime) -> datetime:
        # Sin zona se asume UTC; con offset se pasa a UTC para que .date() sea el día UTC
        return as_utc(value)

    @model_validator(mode="after")
    def _check_window(self):
        if self.end_date <= self.start_date:
            raise ValueError("end_date debe ser posterior a start_date")
        return self

class CareRequest(BaseModel):
    id: str
    owner_id: str
    pet_id: str
    title: str
    description: Optional[str] = None
    care_type: CareType = CareType.pet_sitting
    start_date: datetime
    end_date: datetime
    budget: float = 0
    location: Optional[str] = None
    special_instructions: Optional[str] = None
    status: RequestStatus = RequestStatus.open
    created_at: datetime
    updated_at: datetime

    @property
    def duration_in_days(self) -> int:
        return (self.end_date.date() - self.start_date.date()).days + 1
