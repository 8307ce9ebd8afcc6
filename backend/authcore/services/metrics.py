"""Prometheus counters for token lifecycle events (exported on /metrics)."""

from prometheus_client import Counter

TOKENS_ISSUED = Counter(
    "authcore_tokens_issued_total",
    "Access/refresh token pairs issued (login and rotation)",
)
REFRESH_ATTEMPTS = Counter(
    "authcore_refresh_attempts_total",
    "Refresh attempts by outcome",
    ["outcome"],
)
REPLAYS_DETECTED = Counter(
    "authcore_refresh_replays_total",
    "Presentations of an already rotated refresh token",
)
SESSIONS_REVOKED = Counter(
    "authcore_sessions_revoked_total",
    "Refresh-token records deactivated by revocation",
    ["scope"],
)
SESSIONS_PURGED = Counter(
    "authcore_sessions_purged_total",
    "Refresh-token records deleted by the retention sweep",
)
