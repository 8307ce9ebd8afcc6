"""Refresh token storage for JWT rotation with device binding."""

from __future__ import annotations

from datetime import datetime
from sqlalchemy import JSON, Boolean, CheckConstraint, DateTime, Index, String, text
from sqlalchemy.orm import Mapped, mapped_column

from authcore.db.base import Base


class RefreshToken(Base):
    __tablename__ = "refresh_tokens"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    # Opaque principal reference; the user table lives outside this service
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    role: Mapped[str] = mapped_column(String(32), nullable=False)
    token_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    revoked_reason: Mapped[str | None] = mapped_column(String(16), nullable=True)
    device_info: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        CheckConstraint("expires_at > created_at", name="ck_refresh_tokens_expiry_after_creation"),
        Index("ix_refresh_tokens_user_id_is_active", "user_id", "is_active"),
        # Hash is unique among active rows only; rotated/revoked rows keep theirs for replay detection
        Index(
            "uq_refresh_tokens_token_hash_active",
            "token_hash",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
        Index("ix_refresh_tokens_token_hash", "token_hash"),
    )
