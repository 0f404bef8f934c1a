"""Patient-side booking lifecycle: book a slot, check its status, cancel it.

Lookups are sequenced.  A response is only shown if it answers the most
recent lookup, so a slow reply for an id the patient has since replaced never
overwrites the newer result.

Cancellation is optimistic: on success the displayed booking becomes
Cancelled at once.  The cancelled id is tagged with the lookup sequence at
that moment; any lookup issued before the cancel still shows Cancelled, and
the first lookup issued after it is authoritative and clears the tag.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional

from .api import ClinicQueueAPI
from .config import Settings
from .controller import Confirm, Controller, ask
from .errors import ClinicQueueError, InvalidOperation, TransportError, ValidationError
from .models import BookingStatus
from .recovery import RecoveryStore
from .schemas import Booking

logger = logging.getLogger(__name__)

_CANCELLED = {"status": BookingStatus.cancelled, "position": None}


class BookingController(Controller):
    def __init__(
        self,
        api: ClinicQueueAPI,
        store: RecoveryStore,
        confirm: Confirm,
        config: Optional[Settings] = None,
    ):
        super().__init__(confirm, config)
        self.api = api
        self.store = store

        self.patient_name_input = ""
        # Pre-filled from the last booking; the patient still has to ask for a check
        self.booking_id_input = store.load() or ""
        self.created_id: Optional[str] = None
        self.detail: Optional[Booking] = None
        self.checked_id = ""

        self.is_booking = False
        self.is_loading = False
        self.is_cancelling = False

        self._lookup_seq = 0
        self._cancelled: Dict[str, int] = {}

    @property
    def can_cancel(self) -> bool:
        return (
            self.detail is not None
            and self.detail.booking_id == self.checked_id
            and self.detail.status is BookingStatus.waiting
            and not self.is_cancelling
        )

    async def create(self, patient_name: Optional[str] = None) -> Optional[str]:
        """Book a slot.  Returns the new booking id, or None on failure."""
        if patient_name is not None:
            self.patient_name_input = patient_name
        name = self.patient_name_input.strip()
        self._reset_alerts()
        if not name:
            self._fail(ValidationError("Please enter your name."))
            return None

        self.is_booking = True
        try:
            result = await self.api.book_slot(name)
        except ClinicQueueError as e:
            self._fail(e)
            return None
        finally:
            self.is_booking = False

        booking_id = result.booking_id
        self.created_id = booking_id
        self.patient_name_input = ""
        self.store.save(booking_id)
        self.message = (
            f"Booking successful! Your Booking ID is: {booking_id}. "
            "Keep this ID safe to check your status or cancel."
        )
        logger.info(f"Booked slot {booking_id}")
        return booking_id

    async def lookup(self, booking_id: Optional[str] = None) -> Optional[Booking]:
        """Fetch the authoritative record and display it if still wanted."""
        if booking_id is not None:
            self.booking_id_input = booking_id
        requested = self.booking_id_input.strip()
        self._lookup_seq += 1
        seq = self._lookup_seq
        self._reset_alerts()
        self.detail = None

        if not requested:
            self.checked_id = ""
            self.is_loading = False
            self._fail(ValidationError("Please enter your Booking ID."))
            return None

        self.checked_id = requested
        self.is_loading = True
        try:
            booking = await self.api.get_booking_details(requested)
        except ClinicQueueError as e:
            if seq == self._lookup_seq:
                self.is_loading = False
                self._fail(e)
            return None

        if seq != self._lookup_seq:
            logger.debug(f"Discarding stale lookup for {requested}")
            return None
        self.is_loading = False
        if booking.booking_id != requested:
            logger.warning(f"Lookup for {requested} answered with booking {booking.booking_id}")
            self._fail(TransportError("Failed to fetch booking details."))
            return None

        tag = self._cancelled.get(booking.booking_id)
        if tag is not None:
            if seq <= tag and booking.status is BookingStatus.waiting:
                booking = booking.model_copy(update=_CANCELLED)
            elif seq > tag:
                del self._cancelled[booking.booking_id]

        self.detail = booking
        if booking.status.is_terminal:
            self.store.clear_if(booking.booking_id)
        return booking

    async def cancel(self, booking_id: Optional[str] = None) -> bool:
        """Cancel the displayed waiting booking after the patient confirms."""
        target = (booking_id if booking_id is not None else self.checked_id).strip()
        detail = self.detail
        if self.is_cancelling:
            raise InvalidOperation("A cancellation is already in progress.")
        if detail is None or target != self.checked_id or detail.booking_id != target:
            raise InvalidOperation(f"Booking {target or '(none)'} is not the one being displayed.")
        if detail.status is not BookingStatus.waiting:
            raise InvalidOperation(f"Booking {target} is {detail.status.value} and cannot be cancelled.")

        prompt = f"Are you sure you want to cancel the booking for {detail.patient_name} (ID: {target})?"
        if not await ask(self.confirm, prompt):
            return False

        self._reset_alerts()
        self.is_cancelling = True
        try:
            result = await self.api.cancel_booking(target)
        except ClinicQueueError as e:
            self._fail(e)
            return False
        finally:
            self.is_cancelling = False

        self._cancelled[target] = self._lookup_seq
        if self.detail is not None and self.detail.booking_id == target:
            self.detail = self.detail.model_copy(update=_CANCELLED)
        self.store.clear_if(target)
        self._flash(result.message or "Booking cancelled.", self.config.cancel_message_seconds)
        logger.info(f"Cancelled booking {target}")
        return True
