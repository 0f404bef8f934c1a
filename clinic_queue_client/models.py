"""Enumerations and the locally persisted recovery slot.

Bookings themselves live on the remote service; the only row this client
stores is the last booking id a patient created, kept in a one-table SQLite
database through SQLModel.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from sqlmodel import Field, SQLModel


class BookingStatus(str, Enum):
    """Possible statuses for a booking.  Only ``waiting`` is non-terminal."""

    waiting = "Waiting"
    done = "Done"
    cancelled = "Cancelled"

    @property
    def is_terminal(self) -> bool:
        return self is not BookingStatus.waiting


class AuthState(str, Enum):
    unknown = "unknown"
    authenticated = "authenticated"
    unauthenticated = "unauthenticated"


class Gate(str, Enum):
    """What a protected view should do for the current session."""

    checking = "checking"
    allow = "allow"
    login_required = "login_required"


class PollMode(str, Enum):
    patient = "patient"
    admin = "admin"


class RecoverySlot(SQLModel, table=True):
    __tablename__ = "recovery_slot"

    name: str = Field(primary_key=True)
    booking_id: str
    saved_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
