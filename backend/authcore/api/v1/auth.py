"""Auth: refresh, logout, logout everywhere, session review."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel

from authcore.api.deps import get_current_claims, get_device_info, get_token_manager
from authcore.schemas.session import AccessTokenClaims, DeviceInfo, SessionView, TokenPair
from authcore.services.token_lifecycle import TokenLifecycleManager

router = APIRouter(prefix="/auth", tags=["auth"])


class RefreshBody(BaseModel):
    refresh_token: str


class RevokedOut(BaseModel):
    revoked: int


class ClaimsOut(BaseModel):
    user_id: str
    role: str


@router.post(
    "/refresh",
    response_model=TokenPair,
    summary="Exchange refresh token for new access and refresh tokens",
    responses={
        401: {"description": "Refresh token required, invalid, expired or already used"},
        404: {"description": "User behind the refresh token no longer exists"},
        503: {"description": "Session storage unavailable"},
    },
)
async def refresh_tokens(
    manager: Annotated[TokenLifecycleManager, Depends(get_token_manager)],
    device_info: Annotated[DeviceInfo, Depends(get_device_info)],
    body: RefreshBody,
) -> TokenPair:
    """Exchange refresh_token for new access_token and refresh_token (rotation)."""
    return await manager.refresh(body.refresh_token, device_info)


@router.post(
    "/logout",
    status_code=204,
    summary="Revoke one refresh token",
    responses={401: {"description": "Refresh token required"}},
)
async def logout(
    manager: Annotated[TokenLifecycleManager, Depends(get_token_manager)],
    body: RefreshBody,
) -> Response:
    """Idempotent: unknown or already revoked tokens also return 204."""
    await manager.revoke(body.refresh_token)
    return Response(status_code=204)


@router.post(
    "/logout-all",
    response_model=RevokedOut,
    summary="Revoke every session of the current user",
    responses={401: {"description": "Not authenticated or invalid token"}},
)
async def logout_all(
    manager: Annotated[TokenLifecycleManager, Depends(get_token_manager)],
    claims: Annotated[AccessTokenClaims, Depends(get_current_claims)],
) -> RevokedOut:
    return RevokedOut(revoked=await manager.revoke_all_sessions(claims.user_id))


@router.get(
    "/sessions",
    response_model=list[SessionView],
    summary="List active sessions of the current user",
    responses={401: {"description": "Not authenticated or invalid token"}},
)
async def list_sessions(
    manager: Annotated[TokenLifecycleManager, Depends(get_token_manager)],
    claims: Annotated[AccessTokenClaims, Depends(get_current_claims)],
) -> list[SessionView]:
    return await manager.list_sessions(claims.user_id)


@router.delete(
    "/sessions/{session_id}",
    status_code=204,
    summary="Revoke one of the current user's sessions",
    responses={
        401: {"description": "Not authenticated or invalid token"},
        404: {"description": "No such active session for this user"},
    },
)
async def revoke_session(
    session_id: int,
    manager: Annotated[TokenLifecycleManager, Depends(get_token_manager)],
    claims: Annotated[AccessTokenClaims, Depends(get_current_claims)],
) -> Response:
    if not await manager.revoke_session(claims.user_id, session_id):
        raise HTTPException(status_code=404, detail="Session not found")
    return Response(status_code=204)


@router.get(
    "/me",
    response_model=ClaimsOut,
    summary="Claims of the current access token",
    responses={401: {"description": "Not authenticated, invalid or expired token"}},
)
async def me(claims: Annotated[AccessTokenClaims, Depends(get_current_claims)]) -> ClaimsOut:
    return ClaimsOut(user_id=claims.user_id, role=claims.role)
