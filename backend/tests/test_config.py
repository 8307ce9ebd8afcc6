"""Tests for duration parsing and Settings validation."""

from datetime import timedelta

import pytest

from authcore.config import DEFAULT_SECRET_KEY, Settings
from authcore.core.durations import parse_duration


@pytest.mark.parametrize("raw,expected", [
    ("30s", timedelta(seconds=30)),
    ("15m", timedelta(minutes=15)),
    ("24h", timedelta(hours=24)),
    ("7d", timedelta(days=7)),
    (" 7D ", timedelta(days=7)),
    ("900", timedelta(seconds=900)),
    (900, timedelta(seconds=900)),
    (timedelta(hours=1), timedelta(hours=1)),
])
def test_parse_duration(raw, expected):
    assert parse_duration(raw) == expected


@pytest.mark.parametrize("raw", ["", "m15", "1w", "1.5h", "-5m", "0s", 0, True])
def test_parse_duration_rejects(raw):
    with pytest.raises(ValueError):
        parse_duration(raw)


def test_settings_reads_duration_strings_from_env(monkeypatch):
    monkeypatch.setenv("ACCESS_TOKEN_TTL", "5m")
    monkeypatch.setenv("REFRESH_TOKEN_TTL", "30d")
    monkeypatch.setenv("SESSION_RETENTION_WINDOW", "2h")
    s = Settings()
    assert s.access_token_ttl == timedelta(minutes=5)
    assert s.refresh_token_ttl == timedelta(days=30)
    assert s.session_retention_window == timedelta(hours=2)


def test_settings_rejects_bad_duration(monkeypatch):
    monkeypatch.setenv("ACCESS_TOKEN_TTL", "soon")
    with pytest.raises(ValueError):
        Settings()


def test_policy_switches_default_off():
    s = Settings()
    assert s.enforce_device_binding is False
    assert s.revoke_all_on_replay is False


def test_validate_jwt_config_skipped_outside_production():
    Settings(app_env="development", secret_key=DEFAULT_SECRET_KEY).validate_jwt_config()


def test_validate_jwt_config_rejects_default_secret_in_production():
    with pytest.raises(RuntimeError, match="SECRET_KEY"):
        Settings(app_env="production", secret_key=DEFAULT_SECRET_KEY).validate_jwt_config()


def test_validate_jwt_config_rejects_half_rsa_pair():
    with pytest.raises(RuntimeError, match="JWT_PUBLIC_KEY"):
        Settings(app_env="production", secret_key="s3cret", jwt_private_key="pem").validate_jwt_config()
    with pytest.raises(RuntimeError, match="JWT_PRIVATE_KEY"):
        Settings(app_env="production", secret_key="s3cret", jwt_public_key="pem").validate_jwt_config()


def test_validate_jwt_config_rejects_refresh_shorter_than_access():
    s = Settings(app_env="production", secret_key="s3cret", access_token_ttl="1h", refresh_token_ttl="30m")
    with pytest.raises(RuntimeError, match="REFRESH_TOKEN_TTL"):
        s.validate_jwt_config()


def test_use_rs256_requires_both_keys():
    assert Settings(jwt_private_key="a", jwt_public_key="b").use_rs256
    assert not Settings(jwt_private_key="a").use_rs256
