"""Client for the walk-in clinic queue service."""

from .admin import AdminQueueController
from .api import ClinicQueueAPI
from .app import ClinicQueueApp
from .booking import BookingController
from .config import Settings, settings
from .errors import (
    AuthFailed,
    ClinicQueueError,
    InvalidOperation,
    MutationInProgress,
    NotFound,
    PollerError,
    ServiceError,
    TransportError,
    Unauthorized,
    ValidationError,
)
from .models import AuthState, BookingStatus, Gate, PollMode
from .poller import QueuePoller
from .recovery import (
    MemoryRecoveryStore,
    RecoveryStore,
    RedisRecoveryStore,
    SQLiteRecoveryStore,
    make_recovery_store,
)
from .schemas import AdminQueueEntry, Booking, QueueSnapshot
from .session import Session, SessionManager

__version__ = "1.0.0"
