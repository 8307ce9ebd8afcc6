"""Auth error taxonomy. Each error carries a stable code and the HTTP status an adapter should use."""

from __future__ import annotations


class AuthError(Exception):
    """Base class for token lifecycle errors."""

    status_code: int = 401
    code: str = "UNAUTHORIZED"
    message: str = "Authentication failed"

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


class NoToken(AuthError):
    code = "NO_TOKEN"
    message = "No token provided"


class InvalidAccessToken(AuthError):
    """Bad signature, malformed payload, wrong issuer/audience or wrong token type. Do not refresh."""

    code = "INVALID_ACCESS_TOKEN"
    message = "Invalid access token"


class AccessTokenExpired(AuthError):
    """Well-formed access token past its exp. A refresh attempt is worthwhile."""

    code = "ACCESS_TOKEN_EXPIRED"
    message = "Access token has expired"


class RefreshInvalid(AuthError):
    """Unknown, expired, rotated, revoked or lost-race refresh token. Caller must re-authenticate."""

    code = "INVALID_REFRESH_TOKEN"
    message = "Invalid or expired refresh token"


class UserInactive(AuthError):
    code = "ACCOUNT_DEACTIVATED"
    message = "Account has been deactivated"


class UserNotFound(AuthError):
    status_code = 404
    code = "USER_NOT_FOUND"
    message = "User not found"


class StorageUnavailable(AuthError):
    """Session store could not be reached. Infrastructure failure, not an auth decision."""

    status_code = 503
    code = "STORAGE_UNAVAILABLE"
    message = "Session storage unavailable"
