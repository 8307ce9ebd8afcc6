"""Access token signing/verification (JWT) and refresh secret generation/hashing."""

from __future__ import annotations

import hashlib
import secrets
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import jwt
from jose.exceptions import JOSEError

from authcore.config import Settings
from authcore.core.errors import AccessTokenExpired, InvalidAccessToken
from authcore.schemas.session import AccessTokenClaims

ACCESS_TOKEN_TYPE = "access"
# 32 bytes = 256 bits of entropy
REFRESH_TOKEN_BYTES = 32

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _signing_key_and_algorithm(settings: Settings) -> tuple[str, str]:
    """Return (key, algorithm) for signing access tokens."""
    if settings.use_rs256:
        return settings.jwt_private_key.strip(), "RS256"
    return settings.secret_key, settings.jwt_algorithm


def _verification_key_and_algorithm(settings: Settings) -> tuple[str, str]:
    """Return (key, algorithm) for verifying access tokens."""
    if settings.use_rs256:
        return settings.jwt_public_key.strip(), "RS256"
    return settings.secret_key, settings.jwt_algorithm


class TokenCodec:
    """
    Stateless JWT codec. Output depends only on the keys and the injected clock.

    Expiry is checked against the injected clock rather than the JWT library's wall clock,
    so expired and invalid tokens are reported as distinct errors.
    """

    def __init__(
        self,
        signing_key: str,
        verification_key: str,
        algorithm: str = "HS256",
        *,
        issuer: str | None = None,
        audience: str | None = None,
        leeway_seconds: int = 0,
        clock: Clock = utcnow,
    ) -> None:
        self._signing_key = signing_key
        self._verification_key = verification_key
        self._algorithm = algorithm
        self._issuer = issuer
        self._audience = audience
        self._leeway_seconds = leeway_seconds
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: Settings, clock: Clock = utcnow) -> "TokenCodec":
        signing_key, algorithm = _signing_key_and_algorithm(settings)
        verification_key, _ = _verification_key_and_algorithm(settings)
        return cls(
            signing_key,
            verification_key,
            algorithm,
            issuer=settings.jwt_issuer or None,
            audience=settings.jwt_audience or None,
            leeway_seconds=settings.access_token_leeway_seconds,
            clock=clock,
        )

    def now(self) -> datetime:
        return self._clock()

    def sign_access(self, user_id: str, role: str, ttl: timedelta) -> str:
        now = self._clock()
        payload: dict[str, Any] = {
            "sub": str(user_id),
            "role": role,
            "type": ACCESS_TOKEN_TYPE,
            "iat": int(now.timestamp()),
            "exp": int((now + ttl).timestamp()),
        }
        if self._issuer:
            payload["iss"] = self._issuer
        if self._audience:
            payload["aud"] = self._audience
        result = jwt.encode(payload, self._signing_key, algorithm=self._algorithm)
        return result if isinstance(result, str) else result.decode("utf-8")

    def verify_access(self, token: str) -> AccessTokenClaims:
        try:
            payload = jwt.decode(
                token,
                self._verification_key,
                algorithms=[self._algorithm],
                audience=self._audience,
                issuer=self._issuer,
                options={"verify_exp": False},
            )
        except JOSEError as e:
            raise InvalidAccessToken() from e

        if payload.get("type") != ACCESS_TOKEN_TYPE:
            raise InvalidAccessToken("Invalid token type")
        user_id = payload.get("sub")
        role = payload.get("role")
        exp = payload.get("exp")
        if not user_id or not isinstance(role, str) or not isinstance(exp, (int, float)) or isinstance(exp, bool):
            raise InvalidAccessToken("Malformed access token")

        if self._clock().timestamp() > exp + self._leeway_seconds:
            raise AccessTokenExpired()
        return AccessTokenClaims(
            user_id=user_id,
            role=role,
            type=ACCESS_TOKEN_TYPE,
            exp=datetime.fromtimestamp(exp, tz=timezone.utc),
        )

    @staticmethod
    def new_refresh_secret() -> str:
        """Generate a new refresh token (plain string; caller must hash and store)."""
        return secrets.token_urlsafe(REFRESH_TOKEN_BYTES)

    @staticmethod
    def hash(token: str) -> str:
        """SHA256 hash of refresh token for storage."""
        return hashlib.sha256(token.encode("utf-8")).hexdigest()
