"""FastAPI dependencies: token manager, device info and current claims from the bearer token."""

from typing import Annotated

from fastapi import Depends, Request

from authcore.schemas.session import AccessTokenClaims, DeviceInfo
from authcore.services.token_lifecycle import TokenLifecycleManager


def get_token_manager(request: Request) -> TokenLifecycleManager:
    return request.app.state.token_manager


def get_device_info(request: Request) -> DeviceInfo:
    """User agent, client address and the optional X-Device-ID header."""
    return DeviceInfo(
        user_agent=request.headers.get("User-Agent"),
        ip=request.client.host if request.client else None,
        device_id=request.headers.get("X-Device-ID"),
    )


def get_current_claims(
    request: Request,
    manager: Annotated[TokenLifecycleManager, Depends(get_token_manager)],
) -> AccessTokenClaims:
    """Verify the bearer access token. Errors propagate to the AuthError handler (401)."""
    auth_header = request.headers.get("Authorization")
    token = None
    if auth_header and auth_header.startswith("Bearer "):
        token = auth_header[7:].strip()
    return manager.verify_access(token)
