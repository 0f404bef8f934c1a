"""Async wrappers around the remote clinic queue service.

One ``httpx.AsyncClient`` is kept for the lifetime of the API object so the
session cookie set by ``/auth/login`` is replayed on every later call.  All
failures leave this module as :class:`~clinic_queue_client.errors.ClinicQueueError`
subclasses; callers never see httpx or pydantic exceptions.
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Type, TypeVar
from urllib.parse import quote

import httpx
from pydantic import BaseModel, TypeAdapter
from pydantic import ValidationError as SchemaError

from .config import Settings, settings as default_settings
from .errors import (
    AuthFailed,
    NotFound,
    ServiceError,
    TransportError,
    Unauthorized,
    ValidationError,
)
from .schemas import (
    AdminQueueEntry,
    AuthStatus,
    Booking,
    BookingCreated,
    BookingRequest,
    LoginRequest,
    MessageResponse,
    QueueSnapshot,
)
from .session import Session

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

_admin_listing = TypeAdapter(List[AdminQueueEntry])


def _error_message(response: httpx.Response) -> Optional[str]:
    """Pull the human readable message out of an error body, if there is one."""
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        for key in ("message", "detail"):
            value = body.get(key)
            if isinstance(value, str) and value.strip():
                return value
    return None


class ClinicQueueAPI:
    """Typed client for the booking, queue, admin and auth endpoints."""

    def __init__(
        self,
        session: Optional[Session] = None,
        config: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config or default_settings
        self.session = session
        self._client = httpx.AsyncClient(
            base_url=self.config.api_url.rstrip("/") + "/",
            timeout=self.config.api_timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "ClinicQueueAPI":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        operation: str,
        fallback: str,
        authenticated: bool = False,
        json: Any = None,
    ) -> Any:
        try:
            response = await self._client.request(method, path, json=json)
        except httpx.HTTPError as e:
            logger.warning(f"API error ({operation}): {e!r}")
            raise TransportError(fallback) from e

        if response.is_success:
            try:
                return response.json()
            except ValueError as e:
                logger.warning(f"API error ({operation}): response body is not JSON")
                raise TransportError(fallback) from e

        message = _error_message(response)
        logger.warning(f"API error ({operation}): HTTP {response.status_code} {message or ''}".rstrip())
        if response.status_code in (401, 403):
            if authenticated and self.session is not None:
                self.session.force_logout(f"{operation} was refused")
            raise Unauthorized(message or "Unauthorized: please log in again.")
        if response.status_code == 404:
            raise NotFound(message or fallback)
        if message:
            raise ServiceError(message, response.status_code)
        raise TransportError(fallback)

    @staticmethod
    def _parse(model: Type[M], data: Any, operation: str, fallback: str) -> M:
        try:
            return model.model_validate(data)
        except SchemaError as e:
            logger.warning(f"API error ({operation}): unexpected response shape: {e}")
            raise TransportError(fallback) from e

    # ---- patient-facing ----

    async def book_slot(self, patient_name: str) -> BookingCreated:
        body = BookingRequest(patient_name=patient_name).model_dump(by_alias=True)
        data = await self._request("POST", "bookings", "bookSlot", "Failed to book slot.", json=body)
        return self._parse(BookingCreated, data, "bookSlot", "Failed to book slot.")

    async def get_queue_status(self) -> QueueSnapshot:
        fallback = "Failed to fetch queue status."
        data = await self._request("GET", "queue", "getQueueStatus", fallback)
        return self._parse(QueueSnapshot, data, "getQueueStatus", fallback)

    async def get_booking_details(self, booking_id: str) -> Booking:
        if not booking_id:
            raise ValidationError("Booking ID is required.")
        fallback = "Failed to fetch booking details."
        data = await self._request("GET", f"bookings/{quote(booking_id, safe='')}", "getBookingDetails", fallback)
        if isinstance(data, dict):
            data.setdefault("bookingId", booking_id)
        return self._parse(Booking, data, "getBookingDetails", fallback)

    async def cancel_booking(self, booking_id: str) -> MessageResponse:
        if not booking_id:
            raise ValidationError("Booking ID is required.")
        fallback = "Failed to cancel booking."
        data = await self._request("DELETE", f"bookings/{quote(booking_id, safe='')}", "cancelBooking", fallback)
        return self._parse(MessageResponse, data, "cancelBooking", fallback)

    # ---- admin ----

    async def get_admin_queue(self) -> List[AdminQueueEntry]:
        fallback = "Failed to fetch admin queue."
        data = await self._request("GET", "admin/queue", "getAdminQueue", fallback, authenticated=True)
        try:
            return _admin_listing.validate_python(data)
        except SchemaError as e:
            logger.warning(f"API error (getAdminQueue): unexpected response shape: {e}")
            raise TransportError(fallback) from e

    async def mark_patient_done(self, internal_id: str) -> MessageResponse:
        # Uses the service-internal id, not the patient-facing booking id
        if not internal_id:
            raise ValidationError("Internal Booking ID is required.")
        fallback = "Failed to mark patient as done."
        data = await self._request(
            "PATCH",
            f"admin/bookings/{quote(internal_id, safe='')}/done",
            "markPatientDone",
            fallback,
            authenticated=True,
        )
        return self._parse(MessageResponse, data, "markPatientDone", fallback)

    # ---- auth ----

    async def login_admin(self, username: str, password: str) -> MessageResponse:
        fallback = "Login failed."
        body = LoginRequest(username=username, password=password).model_dump()
        try:
            data = await self._request("POST", "auth/login", "loginAdmin", fallback, json=body)
        except (Unauthorized, ServiceError, NotFound) as e:
            raise AuthFailed(e.message) from e
        return self._parse(MessageResponse, data, "loginAdmin", fallback)

    async def logout_admin(self) -> MessageResponse:
        data = await self._request("POST", "auth/logout", "logoutAdmin", "Logout failed.")
        return self._parse(MessageResponse, data, "logoutAdmin", "Logout failed.")

    async def check_auth_status(self) -> AuthStatus:
        fallback = "Failed to check login status."
        data = await self._request("GET", "auth/status", "checkAuthStatus", fallback)
        return self._parse(AuthStatus, data, "checkAuthStatus", fallback)


