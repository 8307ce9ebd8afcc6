"""Alembic migrations applied to a throwaway SQLite database."""

from pathlib import Path

import pytest
from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.exc import IntegrityError

from authcore.config import Settings

ALEMBIC_DIR = Path(__file__).resolve().parent.parent / "alembic"

INSERT = text(
    "INSERT INTO refresh_tokens (user_id, role, token_hash, expires_at, is_active, created_at, updated_at) "
    "VALUES ('u1', 'tenant', :token_hash, '2026-01-22 12:00:00', :is_active, "
    "'2026-01-15 12:00:00', '2026-01-15 12:00:00')"
)


@pytest.fixture
def alembic_config(tmp_path):
    url = f"sqlite:///{tmp_path / 'migrations.db'}"
    cfg = Config()
    cfg.set_main_option("script_location", str(ALEMBIC_DIR))
    cfg.set_main_option("sqlalchemy.url", url)
    return cfg, url


def test_upgrade_creates_refresh_tokens(alembic_config):
    cfg, url = alembic_config
    command.upgrade(cfg, "head")
    engine = create_engine(url)
    try:
        inspector = inspect(engine)
        assert "refresh_tokens" in inspector.get_table_names()
        columns = {c["name"] for c in inspector.get_columns("refresh_tokens")}
        assert {"token_hash", "is_active", "revoked_reason", "device_info", "role"} <= columns
        indexes = {i["name"]: i for i in inspector.get_indexes("refresh_tokens")}
        assert indexes["uq_refresh_tokens_token_hash_active"]["unique"]
        assert "ix_refresh_tokens_user_id_is_active" in indexes
        assert "ix_refresh_tokens_expires_at" in indexes
    finally:
        engine.dispose()


def test_active_hash_unique_only_among_active_rows(alembic_config):
    cfg, url = alembic_config
    command.upgrade(cfg, "head")
    engine = create_engine(url)
    try:
        with engine.begin() as conn:
            conn.execute(INSERT, {"token_hash": "h1", "is_active": 0})
            conn.execute(INSERT, {"token_hash": "h1", "is_active": 0})
            conn.execute(INSERT, {"token_hash": "h1", "is_active": 1})
        with pytest.raises(IntegrityError):
            with engine.begin() as conn:
                conn.execute(INSERT, {"token_hash": "h1", "is_active": 1})
    finally:
        engine.dispose()


def test_downgrade_drops_table(alembic_config):
    cfg, url = alembic_config
    command.upgrade(cfg, "head")
    command.downgrade(cfg, "base")
    engine = create_engine(url)
    try:
        assert "refresh_tokens" not in inspect(engine).get_table_names()
    finally:
        engine.dispose()


@pytest.mark.parametrize("async_url,sync_url", [
    ("postgresql+asyncpg://u:p@db:5432/authcore", "postgresql://u:p@db:5432/authcore"),
    ("sqlite+aiosqlite:///./authcore.db", "sqlite:///./authcore.db"),
])
def test_sync_database_url(async_url, sync_url):
    assert Settings(database_url=async_url).sync_database_url == sync_url
