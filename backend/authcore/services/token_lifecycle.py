"""
Token lifecycle: issue, verify, rotate and revoke access/refresh token pairs.

Each refresh-token record moves ACTIVE -> ROTATED | REVOKED, or expires in place. None of these
states is left again. A refresh only issues a new pair after the store's conditional update
reports that this caller deactivated the old record, so one raw refresh token yields at most
one new pair no matter how many instances race on it.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any

from authcore.config import Settings
from authcore.core.errors import NoToken, RefreshInvalid, UserInactive, UserNotFound
from authcore.core.tokens import Clock, TokenCodec, utcnow
from authcore.schemas.session import (
    AccessTokenClaims,
    DeviceInfo,
    NewRefreshToken,
    RefreshTokenRecord,
    RevokedReason,
    SessionView,
    TokenPair,
)
from authcore.services import metrics
from authcore.services.session_store import SessionStore
from authcore.services.user_directory import UserDirectory

logger = logging.getLogger(__name__)


def _coerce_device_info(device_info: DeviceInfo | dict[str, Any] | None) -> DeviceInfo | None:
    if device_info is None:
        return None
    if isinstance(device_info, dict):
        device_info = DeviceInfo.model_validate(device_info)
    return None if device_info.is_empty() else device_info


def _require_token(token: str | None) -> str:
    token = (token or "").strip()
    if not token:
        raise NoToken()
    return token


class TokenLifecycleManager:
    """Stateless service; build once at startup and share. All state lives in the store."""

    def __init__(
        self,
        codec: TokenCodec,
        store: SessionStore,
        *,
        access_token_ttl: timedelta,
        refresh_token_ttl: timedelta,
        retention_window: timedelta,
        enforce_device_binding: bool = False,
        revoke_all_on_replay: bool = False,
        user_directory: UserDirectory | None = None,
    ) -> None:
        if refresh_token_ttl <= timedelta(0) or access_token_ttl <= timedelta(0):
            raise ValueError("Token TTLs must be positive")
        self._codec = codec
        self._store = store
        self._access_ttl = access_token_ttl
        self._refresh_ttl = refresh_token_ttl
        self._retention_window = retention_window
        self._enforce_device_binding = enforce_device_binding
        self._revoke_all_on_replay = revoke_all_on_replay
        self._user_directory = user_directory

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        store: SessionStore,
        *,
        user_directory: UserDirectory | None = None,
        clock: Clock = utcnow,
    ) -> "TokenLifecycleManager":
        return cls(
            TokenCodec.from_settings(settings, clock=clock),
            store,
            access_token_ttl=settings.access_token_ttl,
            refresh_token_ttl=settings.refresh_token_ttl,
            retention_window=settings.session_retention_window,
            enforce_device_binding=settings.enforce_device_binding,
            revoke_all_on_replay=settings.revoke_all_on_replay,
            user_directory=user_directory,
        )

    def expiration_times(self) -> tuple[int, int]:
        """(access, refresh) lifetimes in seconds."""
        return int(self._access_ttl.total_seconds()), int(self._refresh_ttl.total_seconds())

    async def issue(
        self,
        user_id: str,
        role: str,
        device_info: DeviceInfo | dict[str, Any] | None = None,
    ) -> TokenPair:
        """Sign an access token and persist a new ACTIVE refresh-token record bound to device_info."""
        if not user_id or not role:
            raise ValueError("user_id and role are required")
        user_id = str(user_id)
        now = self._codec.now()
        access_token = self._codec.sign_access(user_id, role, self._access_ttl)
        refresh_token = self._codec.new_refresh_secret()
        expires_at = now + self._refresh_ttl
        record_id = await self._store.create(
            NewRefreshToken(
                user_id=user_id,
                role=role,
                token_hash=self._codec.hash(refresh_token),
                expires_at=expires_at,
                created_at=now,
                device_info=_coerce_device_info(device_info),
            )
        )
        metrics.TOKENS_ISSUED.inc()
        logger.info("Issued session_id=%s for user_id=%s", record_id, user_id)
        return TokenPair(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=self.expiration_times()[0],
            refresh_expires_at=expires_at,
        )

    def verify_access(self, access_token: str | None) -> AccessTokenClaims:
        """
        Pure check, no store access.
        AccessTokenExpired means a refresh is worth trying; InvalidAccessToken means reject.
        """
        return self._codec.verify_access(_require_token(access_token))

    async def refresh(
        self,
        raw_refresh_token: str | None,
        device_info: DeviceInfo | dict[str, Any] | None = None,
    ) -> TokenPair:
        """Exchange a refresh token for a new pair. The presented token is single-use."""
        token_hash = self._codec.hash(_require_token(raw_refresh_token))
        device_info = _coerce_device_info(device_info)

        record = await self._store.find_active(token_hash)
        if record is None:
            metrics.REFRESH_ATTEMPTS.labels(outcome="invalid").inc()
            await self._check_replay(token_hash)
            raise RefreshInvalid()

        role = record.role
        if self._user_directory is not None:
            principal = await self._user_directory.get_principal(record.user_id)
            if principal is None:
                raise UserNotFound()
            if not principal.is_active:
                raise UserInactive()
            role = principal.role

        self._check_device(record, device_info)

        if not await self._store.deactivate_if_active(record.id, RevokedReason.ROTATED):
            # Another caller rotated or revoked this record between our lookup and update
            metrics.REFRESH_ATTEMPTS.labels(outcome="lost_race").inc()
            logger.warning("Refresh lost race on session_id=%s user_id=%s", record.id, record.user_id)
            raise RefreshInvalid()

        pair = await self.issue(record.user_id, role, device_info)
        metrics.REFRESH_ATTEMPTS.labels(outcome="rotated").inc()
        logger.info("Rotated session_id=%s for user_id=%s", record.id, record.user_id)
        return pair

    async def _check_replay(self, token_hash: str) -> None:
        previous = await self._store.find_by_hash(token_hash)
        if previous is None or previous.revoked_reason is not RevokedReason.ROTATED:
            return
        if previous.expires_at <= self._codec.now():
            return
        metrics.REPLAYS_DETECTED.inc()
        logger.warning(
            "Replay of rotated refresh token: session_id=%s user_id=%s",
            previous.id,
            previous.user_id,
        )
        if self._revoke_all_on_replay:
            await self.revoke_all_sessions(previous.user_id)

    def _check_device(self, record: RefreshTokenRecord, device_info: DeviceInfo | None) -> None:
        stored = record.device_info.device_id if record.device_info else None
        presented = device_info.device_id if device_info else None
        if stored is None or stored == presented:
            return
        if self._enforce_device_binding:
            metrics.REFRESH_ATTEMPTS.labels(outcome="device_mismatch").inc()
            logger.warning(
                "Refresh rejected: device mismatch on session_id=%s user_id=%s",
                record.id,
                record.user_id,
            )
            raise RefreshInvalid()
        logger.info("Device changed on refresh of session_id=%s user_id=%s", record.id, record.user_id)

    async def revoke(self, raw_refresh_token: str | None) -> bool:
        """Logout one session. Unknown or already inactive tokens are a no-op (returns False)."""
        record = await self._store.find_active(self._codec.hash(_require_token(raw_refresh_token)))
        if record is None:
            return False
        revoked = await self._store.deactivate_if_active(record.id, RevokedReason.REVOKED)
        if revoked:
            metrics.SESSIONS_REVOKED.labels(scope="session").inc()
            logger.info("Revoked session_id=%s for user_id=%s", record.id, record.user_id)
        return revoked

    async def revoke_session(self, user_id: str, session_id: int) -> bool:
        """Revoke one of the user's own sessions by id (from list_sessions)."""
        revoked = await self._store.deactivate_session(str(user_id), session_id, RevokedReason.REVOKED)
        if revoked:
            metrics.SESSIONS_REVOKED.labels(scope="session").inc()
            logger.info("Revoked session_id=%s for user_id=%s", session_id, user_id)
        return revoked

    async def revoke_all_sessions(self, user_id: str) -> int:
        """Logout everywhere. Returns the number of sessions deactivated."""
        count = await self._store.deactivate_all_for_user(str(user_id), RevokedReason.REVOKED_ALL)
        metrics.SESSIONS_REVOKED.labels(scope="user").inc(count)
        logger.info("Revoked %s session(s) for user_id=%s", count, user_id)
        return count

    async def list_sessions(self, user_id: str) -> list[SessionView]:
        records = await self._store.list_active(str(user_id))
        return [
            SessionView(
                id=r.id,
                device_info=r.device_info,
                created_at=r.created_at,
                expires_at=r.expires_at,
            )
            for r in records
        ]

    async def cleanup(self) -> int:
        """One retention sweep. Scheduled off the request path."""
        purged = await self._store.purge_expired(self._retention_window)
        metrics.SESSIONS_PURGED.inc(purged)
        if purged:
            logger.info("Session cleanup purged %s record(s)", purged)
        return purged
