"""
Refresh-token session store.

deactivate_if_active is the only concurrency primitive: a conditional update that reports whether
this caller flipped the row. Rotation and revocation correctness rest on it, not on in-process locks.
"""

from __future__ import annotations

import itertools
import logging
import threading
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Protocol

from sqlalchemy import and_, delete, or_, select, update
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from authcore.core.errors import StorageUnavailable
from authcore.core.tokens import Clock, utcnow
from authcore.models.refresh_token import RefreshToken
from authcore.schemas.session import NewRefreshToken, RefreshTokenRecord, RevokedReason

logger = logging.getLogger(__name__)

# Driver/connection failures that mean "store unreachable" rather than a bug in the query
_UNAVAILABLE_ERRORS = (OperationalError, InterfaceError, OSError, TimeoutError)


class SessionStore(Protocol):
    async def create(self, record: NewRefreshToken) -> int:
        """Insert a new active record and return its id."""

    async def find_active(self, token_hash: str) -> RefreshTokenRecord | None:
        """Return the record only if it is active and not expired."""

    async def find_by_hash(self, token_hash: str) -> RefreshTokenRecord | None:
        """Return the newest record with this hash in any state."""

    async def deactivate_if_active(self, record_id: int, reason: RevokedReason) -> bool:
        """Flip is_active true -> false. True only for the caller whose update affected the row."""

    async def deactivate_session(self, user_id: str, record_id: int, reason: RevokedReason) -> bool:
        """Same as deactivate_if_active, restricted to records owned by user_id."""

    async def deactivate_all_for_user(self, user_id: str, reason: RevokedReason) -> int:
        """Deactivate every active record of the user and return how many flipped."""

    async def list_active(self, user_id: str) -> list[RefreshTokenRecord]:
        """Active, unexpired records of the user, newest first."""

    async def purge_expired(self, retention_window: timedelta) -> int:
        """Delete records expired or deactivated more than retention_window ago."""


def _check_new_record(record: NewRefreshToken) -> None:
    if record.expires_at <= record.created_at:
        raise ValueError("expires_at must be after created_at")


class SqlSessionStore:
    """SessionStore over SQLAlchemy async. One short transaction per call."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession], clock: Clock = utcnow) -> None:
        self._session_maker = session_maker
        self._clock = clock

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_maker() as session:
                yield session
        except _UNAVAILABLE_ERRORS as e:
            logger.error("Session store unavailable: %s", e)
            raise StorageUnavailable() from e

    async def create(self, record: NewRefreshToken) -> int:
        _check_new_record(record)
        row = RefreshToken(
            user_id=record.user_id,
            role=record.role,
            token_hash=record.token_hash,
            expires_at=record.expires_at,
            is_active=True,
            device_info=record.device_info.model_dump() if record.device_info else None,
            created_at=record.created_at,
            updated_at=record.created_at,
        )
        async with self._session() as session:
            session.add(row)
            await session.commit()
            return row.id

    async def find_active(self, token_hash: str) -> RefreshTokenRecord | None:
        async with self._session() as session:
            r = await session.execute(
                select(RefreshToken).where(
                    RefreshToken.token_hash == token_hash,
                    RefreshToken.is_active.is_(True),
                    RefreshToken.expires_at > self._clock(),
                )
            )
            row = r.scalars().first()
            return RefreshTokenRecord.model_validate(row) if row else None

    async def find_by_hash(self, token_hash: str) -> RefreshTokenRecord | None:
        async with self._session() as session:
            r = await session.execute(
                select(RefreshToken)
                .where(RefreshToken.token_hash == token_hash)
                .order_by(RefreshToken.id.desc())
                .limit(1)
            )
            row = r.scalars().first()
            return RefreshTokenRecord.model_validate(row) if row else None

    async def _deactivate(self, *conditions, reason: RevokedReason) -> int:
        stmt = (
            update(RefreshToken)
            .where(RefreshToken.is_active.is_(True), *conditions)
            .values(is_active=False, revoked_reason=reason.value, updated_at=self._clock())
            .execution_options(synchronize_session=False)
        )
        async with self._session() as session:
            result = await session.execute(stmt)
            await session.commit()
            return result.rowcount

    async def deactivate_if_active(self, record_id: int, reason: RevokedReason) -> bool:
        return await self._deactivate(RefreshToken.id == record_id, reason=reason) == 1

    async def deactivate_session(self, user_id: str, record_id: int, reason: RevokedReason) -> bool:
        affected = await self._deactivate(
            RefreshToken.id == record_id,
            RefreshToken.user_id == user_id,
            reason=reason,
        )
        return affected == 1

    async def deactivate_all_for_user(self, user_id: str, reason: RevokedReason) -> int:
        return await self._deactivate(RefreshToken.user_id == user_id, reason=reason)

    async def list_active(self, user_id: str) -> list[RefreshTokenRecord]:
        async with self._session() as session:
            r = await session.execute(
                select(RefreshToken)
                .where(
                    RefreshToken.user_id == user_id,
                    RefreshToken.is_active.is_(True),
                    RefreshToken.expires_at > self._clock(),
                )
                .order_by(RefreshToken.created_at.desc(), RefreshToken.id.desc())
            )
            return [RefreshTokenRecord.model_validate(row) for row in r.scalars().all()]

    async def purge_expired(self, retention_window: timedelta) -> int:
        cutoff = self._clock() - retention_window
        stmt = delete(RefreshToken).where(
            or_(
                RefreshToken.expires_at < cutoff,
                and_(RefreshToken.is_active.is_(False), RefreshToken.updated_at < cutoff),
            )
        )
        async with self._session() as session:
            result = await session.execute(stmt)
            await session.commit()
            return result.rowcount


class InMemorySessionStore:
    """Single-process SessionStore for tests and local runs. A lock makes each mutation atomic."""

    def __init__(self, clock: Clock = utcnow) -> None:
        self._clock = clock
        self._records: dict[int, RefreshTokenRecord] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    async def create(self, record: NewRefreshToken) -> int:
        _check_new_record(record)
        with self._lock:
            if any(r.is_active and r.token_hash == record.token_hash for r in self._records.values()):
                raise ValueError("token_hash already present on an active record")
            record_id = next(self._ids)
            self._records[record_id] = RefreshTokenRecord(
                id=record_id,
                user_id=record.user_id,
                role=record.role,
                token_hash=record.token_hash,
                expires_at=record.expires_at,
                is_active=True,
                device_info=record.device_info,
                created_at=record.created_at,
                updated_at=record.created_at,
            )
            return record_id

    async def find_active(self, token_hash: str) -> RefreshTokenRecord | None:
        now = self._clock()
        with self._lock:
            for r in self._records.values():
                if r.token_hash == token_hash and r.is_active and r.expires_at > now:
                    return r
        return None

    async def find_by_hash(self, token_hash: str) -> RefreshTokenRecord | None:
        with self._lock:
            matches = [r for r in self._records.values() if r.token_hash == token_hash]
        return max(matches, key=lambda r: r.id) if matches else None

    def _flip(self, record_id: int, reason: RevokedReason) -> None:
        # caller holds the lock
        self._records[record_id] = self._records[record_id].model_copy(
            update={"is_active": False, "revoked_reason": reason, "updated_at": self._clock()}
        )

    async def deactivate_if_active(self, record_id: int, reason: RevokedReason) -> bool:
        with self._lock:
            r = self._records.get(record_id)
            if r is None or not r.is_active:
                return False
            self._flip(record_id, reason)
            return True

    async def deactivate_session(self, user_id: str, record_id: int, reason: RevokedReason) -> bool:
        with self._lock:
            r = self._records.get(record_id)
            if r is None or not r.is_active or r.user_id != user_id:
                return False
            self._flip(record_id, reason)
            return True

    async def deactivate_all_for_user(self, user_id: str, reason: RevokedReason) -> int:
        with self._lock:
            ids = [r.id for r in self._records.values() if r.user_id == user_id and r.is_active]
            for record_id in ids:
                self._flip(record_id, reason)
            return len(ids)

    async def list_active(self, user_id: str) -> list[RefreshTokenRecord]:
        now = self._clock()
        with self._lock:
            active = [
                r for r in self._records.values()
                if r.user_id == user_id and r.is_active and r.expires_at > now
            ]
        return sorted(active, key=lambda r: (r.created_at, r.id), reverse=True)

    async def purge_expired(self, retention_window: timedelta) -> int:
        cutoff = self._clock() - retention_window
        with self._lock:
            doomed = [
                r.id for r in self._records.values()
                if r.expires_at < cutoff or (not r.is_active and r.updated_at < cutoff)
            ]
            for record_id in doomed:
                del self._records[record_id]
            return len(doomed)
