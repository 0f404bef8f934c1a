"""Composition root.

``ClinicQueueApp`` owns the process-wide pieces: the session (created
``unknown``), the HTTP client, the session manager and the recovery store.
Views ask it for the controller or poller they need.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

import httpx

from .admin import AdminQueueController
from .api import ClinicQueueAPI
from .booking import BookingController
from .config import Settings, settings as default_settings
from .controller import Confirm
from .models import PollMode
from .poller import QueuePoller
from .recovery import RecoveryStore, make_recovery_store
from .schemas import QueueSnapshot
from .session import Session, SessionManager

logger = logging.getLogger(__name__)


class ClinicQueueApp:
    def __init__(
        self,
        config: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        store: Optional[RecoveryStore] = None,
    ):
        self.config = config or default_settings
        self.session = Session()
        self.api = ClinicQueueAPI(self.session, self.config, transport)
        self.sessions = SessionManager(self.api, self.session)
        if store is None:
            store = make_recovery_store(self.config.recovery_store_url, self.config.recovery_slot)
        self.store = store
        logger.info(f"Clinic queue client using {self.config.api_url}")

    def queue_board(self, on_update: Optional[Callable[[QueueSnapshot], None]] = None) -> QueuePoller[QueueSnapshot]:
        """Poller for the public snapshot on the patient cadence."""
        return QueuePoller(
            self.api.get_queue_status,
            QueueSnapshot.empty,
            mode=PollMode.patient,
            config=self.config,
            on_update=on_update,
        )

    def booking(self, confirm: Confirm) -> BookingController:
        return BookingController(self.api, self.store, confirm, self.config)

    def admin(self, confirm: Confirm) -> AdminQueueController:
        return AdminQueueController(self.api, self.sessions, confirm, self.config)

    async def aclose(self) -> None:
        await self.api.aclose()
        self.store.close()

    async def __aenter__(self) -> "ClinicQueueApp":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
