"""Remember the last booking a patient created.

Only one booking id is remembered per slot; saving a new one overwrites the
old.  The slot is cleared once that booking is seen Done or Cancelled so the
patient is not offered a finished booking the next time they open the app.

Backends are chosen by URL:

* ``memory://``         kept in the process only
* ``sqlite:///path.db`` a single-row table, survives restarts (default);
                        database errors are logged and treated as an empty slot
* ``redis://host/0``    shared between processes; failures are logged and
                        treated as an empty slot
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

import redis
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session as DBSession
from sqlmodel import SQLModel, create_engine

from .models import RecoverySlot

logger = logging.getLogger(__name__)


class RecoveryStore:
    def __init__(self, slot: str = "lastBookingId"):
        self.slot = slot

    def save(self, booking_id: str) -> None:
        raise NotImplementedError

    def load(self) -> Optional[str]:
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError

    def clear_if(self, booking_id: str) -> bool:
        """Clear the slot only when it still holds ``booking_id``."""
        if booking_id and self.load() == booking_id:
            self.clear()
            logger.info(f"Forgot last booking {booking_id}")
            return True
        return False

    def close(self) -> None:
        pass


class MemoryRecoveryStore(RecoveryStore):
    def __init__(self, slot: str = "lastBookingId"):
        super().__init__(slot)
        self._value: Optional[str] = None

    def save(self, booking_id: str) -> None:
        self._value = booking_id

    def load(self) -> Optional[str]:
        return self._value

    def clear(self) -> None:
        self._value = None


class SQLiteRecoveryStore(RecoveryStore):
    def __init__(self, url: str, slot: str = "lastBookingId", engine=None):
        super().__init__(slot)
        self.engine = engine or create_engine(url, connect_args={"check_same_thread": False})
        SQLModel.metadata.create_all(self.engine, tables=[RecoverySlot.__table__])

    def save(self, booking_id: str) -> None:
        try:
            with DBSession(self.engine) as db:
                row = db.get(RecoverySlot, self.slot)
                if row is None:
                    row = RecoverySlot(name=self.slot, booking_id=booking_id)
                else:
                    row.booking_id = booking_id
                    row.saved_at = datetime.now(timezone.utc)
                db.add(row)
                db.commit()
        except SQLAlchemyError as e:
            logger.warning(f"SQLite save error: {e}")

    def load(self) -> Optional[str]:
        try:
            with DBSession(self.engine) as db:
                row = db.get(RecoverySlot, self.slot)
                return row.booking_id if row else None
        except SQLAlchemyError as e:
            logger.warning(f"SQLite get error: {e}")
            return None

    def clear(self) -> None:
        try:
            with DBSession(self.engine) as db:
                row = db.get(RecoverySlot, self.slot)
                if row is not None:
                    db.delete(row)
                    db.commit()
        except SQLAlchemyError as e:
            logger.warning(f"SQLite delete error: {e}")

    def close(self) -> None:
        self.engine.dispose()


class RedisRecoveryStore(RecoveryStore):
    def __init__(self, url: Optional[str] = None, slot: str = "lastBookingId", client: Optional[redis.Redis] = None):
        super().__init__(slot)
        self.client = client if client is not None else redis.from_url(url, decode_responses=True)
        self.key = f"clinic:{slot}"

    def save(self, booking_id: str) -> None:
        try:
            self.client.set(self.key, booking_id)
        except redis.RedisError as e:
            logger.warning(f"Redis save error: {e}")

    def load(self) -> Optional[str]:
        try:
            value = self.client.get(self.key)
        except redis.RedisError as e:
            logger.warning(f"Redis get error: {e}")
            return None
        if isinstance(value, bytes):
            value = value.decode()
        return value or None

    def clear(self) -> None:
        try:
            self.client.delete(self.key)
        except redis.RedisError as e:
            logger.warning(f"Redis delete error: {e}")

    def close(self) -> None:
        self.client.close()


def make_recovery_store(url: str, slot: str = "lastBookingId") -> RecoveryStore:
    if url.startswith("memory:"):
        return MemoryRecoveryStore(slot)
    if url.startswith("sqlite:"):
        return SQLiteRecoveryStore(url, slot)
    if url.startswith(("redis:", "rediss:", "unix:")):
        return RedisRecoveryStore(url, slot)
    raise ValueError(f"Unsupported recovery store URL: {url}")
