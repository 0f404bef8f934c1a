"""In-memory FastAPI implementation of the remote queue service.

Tests drive it in-process through ``httpx.ASGITransport``.  ``gate()`` holds a
chosen request open until the test releases it, which is how ordering and
in-flight behaviour is exercised.  ``calls`` records every request that
reached the service.
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

USERNAME = "admin"
PASSWORD = "password123"
COOKIE = "clinic_session"


@dataclass
class Record:
    internal_id: str
    booking_id: str
    patient_name: str
    booking_time: datetime
    status: str = "Waiting"


@dataclass
class FakeClinicService:
    records: List[Record] = field(default_factory=list)
    sessions: set = field(default_factory=set)
    calls: List[Tuple[str, str]] = field(default_factory=list)
    gates: Dict[Tuple[str, str], asyncio.Event] = field(default_factory=dict)
    # operation name -> (status code, message or None) returned once
    failures: Dict[str, Tuple[int, Optional[str]]] = field(default_factory=dict)
    _clock: datetime = field(default_factory=lambda: datetime(2024, 5, 1, 9, 0, 0))

    def add(self, patient_name: str) -> Record:
        self._clock += timedelta(minutes=1)
        record = Record(
            internal_id=uuid.uuid4().hex,
            booking_id=uuid.uuid4().hex[:8],
            patient_name=patient_name,
            booking_time=self._clock,
        )
        self.records.append(record)
        return record

    def gate(self, operation: str, key: str = "") -> asyncio.Event:
        event = asyncio.Event()
        self.gates[(operation, key)] = event
        return event

    def fail_next(self, operation: str, status_code: int, message: Optional[str] = None) -> None:
        self.failures[operation] = (status_code, message)

    def count(self, operation: str) -> int:
        return sum(1 for op, _ in self.calls if op == operation)

    def waiting(self) -> List[Record]:
        return sorted((r for r in self.records if r.status == "Waiting"), key=lambda r: r.booking_time)

    def position(self, record: Record) -> Optional[int]:
        if record.status != "Waiting":
            return None
        return self.waiting().index(record) + 1

    def by_booking_id(self, booking_id: str) -> Optional[Record]:
        return next((r for r in self.records if r.booking_id == booking_id), None)

    def by_internal_id(self, internal_id: str) -> Optional[Record]:
        return next((r for r in self.records if r.internal_id == internal_id), None)

    async def enter(self, operation: str, key: str = "") -> Optional[JSONResponse]:
        self.calls.append((operation, key))
        event = self.gates.get((operation, key))
        if event is not None:
            await event.wait()
        if operation in self.failures:
            status_code, message = self.failures.pop(operation)
            content = {"message": message} if message else {}
            return JSONResponse(status_code=status_code, content=content)
        return None


def message(status_code: int, text: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"message": text})


def build_app(service: FakeClinicService) -> FastAPI:
    app = FastAPI(title="Fake clinic queue service")

    def authenticated(request: Request) -> bool:
        return request.cookies.get(COOKIE) in service.sessions

    @app.post("/api/bookings", status_code=201)
    async def create_booking(request: Request):
        body = await request.json()
        name = (body.get("patientName") or "").strip()
        if (failure := await service.enter("create", name)) is not None:
            return failure
        if not name:
            return message(400, "Patient name is required.")
        record = service.add(name)
        return {"message": "Booking created successfully", "bookingId": record.booking_id, "patientName": name}

    @app.get("/api/queue")
    async def queue_status():
        if (failure := await service.enter("queue")) is not None:
            return failure
        waiting = service.waiting()
        return {
            "queue": [{"position": i} for i, _ in enumerate(waiting, start=1)],
            "totalWaiting": len(waiting),
            "currentPatient": waiting[0].patient_name if waiting else None,
            "nextPatient": waiting[1].patient_name if len(waiting) > 1 else None,
        }

    @app.get("/api/bookings/{booking_id}")
    async def booking_details(booking_id: str):
        if (failure := await service.enter("lookup", booking_id)) is not None:
            return failure
        record = service.by_booking_id(booking_id)
        if record is None:
            return message(404, "Booking not found.")
        return {
            "bookingId": record.booking_id,
            "patientName": record.patient_name,
            "status": record.status,
            "position": service.position(record),
            "bookingTime": record.booking_time.isoformat(),
        }

    @app.delete("/api/bookings/{booking_id}")
    async def cancel_booking(booking_id: str):
        if (failure := await service.enter("cancel", booking_id)) is not None:
            return failure
        record = service.by_booking_id(booking_id)
        if record is None:
            return message(404, "Booking not found.")
        if record.status != "Waiting":
            return message(400, f"Cannot cancel a booking that is {record.status}.")
        record.status = "Cancelled"
        return {"message": "Booking cancelled successfully."}

    @app.get("/api/admin/queue")
    async def admin_queue(request: Request):
        if not authenticated(request):
            service.calls.append(("admin_queue", "denied"))
            return message(401, "Unauthorized: Please log in.")
        # Snapshot before waiting so a held request returns stale data
        listing = [
            {
                "_id": r.internal_id,
                "patientName": r.patient_name,
                "bookingTime": r.booking_time.isoformat(),
                "bookingId": r.booking_id,
            }
            for r in service.waiting()
        ]
        if (failure := await service.enter("admin_queue")) is not None:
            return failure
        return listing

    @app.patch("/api/admin/bookings/{internal_id}/done")
    async def mark_done(internal_id: str, request: Request):
        if not authenticated(request):
            service.calls.append(("done", internal_id))
            return message(401, "Unauthorized: Please log in.")
        if (failure := await service.enter("done", internal_id)) is not None:
            return failure
        record = service.by_internal_id(internal_id)
        if record is None:
            return message(404, "Booking not found.")
        record.status = "Done"
        return {"message": f"Patient {record.patient_name} marked as done."}

    @app.post("/api/auth/login")
    async def login(request: Request):
        body = await request.json()
        if (failure := await service.enter("login")) is not None:
            return failure
        if body.get("username") != USERNAME or body.get("password") != PASSWORD:
            return message(401, "Invalid credentials")
        token = uuid.uuid4().hex
        service.sessions.add(token)
        response = JSONResponse(content={"message": "Login successful"})
        response.set_cookie(COOKIE, token, httponly=True)
        return response

    @app.post("/api/auth/logout")
    async def logout(request: Request):
        if (failure := await service.enter("logout")) is not None:
            return failure
        service.sessions.discard(request.cookies.get(COOKIE))
        response = JSONResponse(content={"message": "Logged out successfully"})
        response.delete_cookie(COOKIE)
        return response

    @app.get("/api/auth/status")
    async def auth_status(request: Request):
        if (failure := await service.enter("status")) is not None:
            return failure
        return {"isAuthenticated": authenticated(request)}

    return app
