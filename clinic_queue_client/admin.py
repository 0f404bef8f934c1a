"""Operator view of the active queue.

The listing is refreshed by a :class:`QueuePoller` on the admin cadence.  Only
one "mark done" call may be outstanding at a time; the internal id being
processed is held in ``processing_id`` until the call returns, and the
presentation layer disables every Mark Done button while it is set.

A record marked done is dropped from the local listing immediately.  Listing
requests issued before the removal keep it hidden whenever they answer;
listings requested afterwards are authoritative.  The tag is dropped once no
listing issued before the removal is still outstanding.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Set

from .api import ClinicQueueAPI
from .config import Settings
from .controller import Confirm, Controller, ask
from .errors import ClinicQueueError, MutationInProgress, Unauthorized
from .models import PollMode
from .poller import QueuePoller
from .schemas import AdminQueueEntry
from .session import SessionManager

logger = logging.getLogger(__name__)


class AdminQueueController(Controller):
    def __init__(
        self,
        api: ClinicQueueAPI,
        sessions: SessionManager,
        confirm: Confirm,
        config: Optional[Settings] = None,
    ):
        super().__init__(confirm, config)
        self.api = api
        self.sessions = sessions
        self.poller: QueuePoller[List[AdminQueueEntry]] = QueuePoller(
            self._fetch_listing,
            list,
            mode=PollMode.admin,
            config=self.config,
            on_error=self._on_poll_error,
        )
        self.processing_id: Optional[str] = None
        self._issued = 0
        # internal id -> number of listing requests issued when it was removed
        self._removed: Dict[str, int] = {}
        # issue numbers of listing requests still awaiting a response
        self._in_flight: Set[int] = set()

    @property
    def queue(self) -> List[AdminQueueEntry]:
        return self.poller.data

    @property
    def current(self) -> Optional[AdminQueueEntry]:
        """The patient being served: index 0 of the listing."""
        return self.queue[0] if self.queue else None

    @property
    def is_loading(self) -> bool:
        return self.poller.is_loading

    @property
    def listing_error(self) -> str:
        return self.poller.error

    def can_mark_done(self, internal_id: str) -> bool:
        return self.processing_id is None

    # ---- lifecycle ----

    def start(self) -> None:
        self.poller.start()

    async def aclose(self) -> None:
        await self.poller.aclose()
        self.close()

    async def __aenter__(self) -> "AdminQueueController":
        self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def refresh(self) -> bool:
        return await self.poller.refresh(foreground=True)

    async def logout(self) -> None:
        self.poller.stop()
        await self.sessions.logout()

    # ---- polling ----

    async def _fetch_listing(self) -> List[AdminQueueEntry]:
        self._issued += 1
        issued = self._issued
        self._in_flight.add(issued)
        try:
            entries = await self.api.get_admin_queue()
        finally:
            self._in_flight.discard(issued)
        hidden = {i for i, removed_at in self._removed.items() if issued <= removed_at}
        # A tag is needed while any listing issued before its removal may still answer
        oldest = min(self._in_flight, default=self._issued + 1)
        for internal_id, removed_at in list(self._removed.items()):
            if oldest > removed_at:
                del self._removed[internal_id]
        return [e for e in entries if e.internal_id not in hidden]

    def _on_poll_error(self, e: ClinicQueueError) -> None:
        if isinstance(e, Unauthorized):
            self._session_expired("admin queue refused")

    def _session_expired(self, reason: str) -> None:
        logger.warning(f"Admin session no longer valid ({reason}); stopping admin poller")
        self.sessions.force_logout(reason)
        self.poller.stop()

    # ---- mutations ----

    def _check_lock(self) -> None:
        if self.processing_id is not None:
            raise MutationInProgress(
                f"Still processing booking {self.processing_id}; please wait.",
                self.processing_id,
            )

    async def mark_done(self, internal_id: str, patient_name: str) -> bool:
        """Mark one waiting patient done after the operator confirms."""
        self._check_lock()
        if not await ask(self.confirm, f'Mark patient "{patient_name}" as done?'):
            return False
        self._check_lock()

        self._reset_alerts()
        self.processing_id = internal_id
        try:
            result = await self.api.mark_patient_done(internal_id)
        except ClinicQueueError as e:
            self._fail(e)
            if isinstance(e, Unauthorized):
                self._session_expired("mark done refused")
            return False
        finally:
            self.processing_id = None

        self._removed[internal_id] = self._issued
        self.poller.data = [e for e in self.poller.data if e.internal_id != internal_id]
        self._flash(result.message or f"{patient_name} marked as done.", self.config.admin_message_seconds)
        logger.info(f"Marked {internal_id} done")
        return True
