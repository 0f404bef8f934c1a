"""Pydantic schemas for the remote queue service.

Field names are snake_case in Python and camelCase on the wire.  Unknown
wire fields are ignored so the service can grow without breaking the client.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from .models import BookingStatus


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class Booking(WireModel):
    booking_id: str
    patient_name: str
    status: BookingStatus
    position: Optional[int] = Field(default=None, ge=1)
    booking_time: datetime

    @model_validator(mode="after")
    def position_only_while_waiting(self) -> "Booking":
        if self.status.is_terminal:
            self.position = None
        elif self.position is None:
            raise ValueError("a waiting booking must carry its queue position")
        return self


class QueueSnapshot(WireModel):
    total_waiting: int = Field(default=0, ge=0)
    current_patient: Optional[str] = None
    next_patient: Optional[str] = None

    @classmethod
    def empty(cls) -> "QueueSnapshot":
        return cls()


class AdminQueueEntry(WireModel):
    internal_id: str = Field(alias="_id")
    patient_name: str
    booking_time: datetime
    booking_id: str


class BookingCreated(WireModel):
    booking_id: str
    message: str = ""
    patient_name: Optional[str] = None


class MessageResponse(WireModel):
    message: str = ""


class AuthStatus(WireModel):
    is_authenticated: bool = False


class BookingRequest(WireModel):
    patient_name: str


class LoginRequest(BaseModel):
    username: str
    password: str


AdminQueueListing = List[AdminQueueEntry]
