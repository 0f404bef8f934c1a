"""Runtime configuration for the clinic queue client.

Every value can be overridden through the environment.  Components take a
``Settings`` instance so tests and embedding applications can pass their own.
"""

from __future__ import annotations

import os

from pydantic import BaseModel

DEFAULT_RECOVERY_DB = os.path.join(os.path.expanduser("~"), ".clinic_queue_recovery.db")


class Settings(BaseModel):
    api_url: str = os.getenv("CLINIC_API_URL", "http://localhost:5000/api")
    api_timeout: float = float(os.getenv("CLINIC_API_TIMEOUT", "10"))

    # Poll cadence in seconds for the patient board and the admin listing
    patient_poll_seconds: float = float(os.getenv("PATIENT_POLL_SECONDS", "15"))
    admin_poll_seconds: float = float(os.getenv("ADMIN_POLL_SECONDS", "20"))

    # How long transient success messages stay visible; 0 keeps them
    cancel_message_seconds: float = float(os.getenv("CANCEL_MESSAGE_SECONDS", "4"))
    admin_message_seconds: float = float(os.getenv("ADMIN_MESSAGE_SECONDS", "3"))

    recovery_store_url: str = os.getenv("RECOVERY_STORE_URL", f"sqlite:///{DEFAULT_RECOVERY_DB}")
    recovery_slot: str = os.getenv("RECOVERY_SLOT", "lastBookingId")

    log_level: str = os.getenv("LOG_LEVEL", "INFO")


settings = Settings()
