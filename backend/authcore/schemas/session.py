"""Value types for the token lifecycle: device info, claims, stored records, issued pairs."""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator


class RevokedReason(str, Enum):
    ROTATED = "rotated"
    REVOKED = "revoked"
    REVOKED_ALL = "revoked_all"


DEVICE_FIELD_LIMITS = {"user_agent": 512, "ip": 45, "device_id": 128}


class DeviceInfo(BaseModel):
    """
    Client metadata captured at issuance, for session display and anomaly review.

    Values come straight from request headers, so oversized ones are cut to the column
    limits instead of failing the request. Unknown keys are ignored.
    """

    user_agent: str | None = Field(None, max_length=DEVICE_FIELD_LIMITS["user_agent"])
    ip: str | None = Field(None, max_length=DEVICE_FIELD_LIMITS["ip"])
    device_id: str | None = Field(None, max_length=DEVICE_FIELD_LIMITS["device_id"])

    @field_validator("user_agent", "ip", "device_id", mode="before")
    @classmethod
    def _strip(cls, value, info: ValidationInfo):
        if value is None:
            return None
        value = str(value).strip()[: DEVICE_FIELD_LIMITS[info.field_name]].strip()
        return value or None

    def is_empty(self) -> bool:
        return not (self.user_agent or self.ip or self.device_id)


class AccessTokenClaims(BaseModel):
    """Decoded access token. Never persisted."""

    user_id: str
    role: str
    type: str = "access"
    exp: datetime


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class NewRefreshToken(BaseModel):
    """Insert payload for SessionStore.create."""

    user_id: str
    role: str
    token_hash: str
    expires_at: datetime
    created_at: datetime
    device_info: DeviceInfo | None = None


class RefreshTokenRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    role: str
    token_hash: str
    expires_at: datetime
    is_active: bool
    revoked_reason: RevokedReason | None = None
    device_info: DeviceInfo | None = None
    created_at: datetime
    updated_at: datetime

    @field_validator("expires_at", "created_at", "updated_at")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return _as_utc(value)


class TokenPair(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds until access token expires
    refresh_expires_at: datetime


class SessionView(BaseModel):
    """What a user may see about their own sessions. No token material."""

    id: int
    device_info: DeviceInfo | None = None
    created_at: datetime
    expires_at: datetime
