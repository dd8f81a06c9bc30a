"""Auth router — per-role login, logout, current user profile."""


from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from taskdesk.auth.dependencies import extract_bearer, get_current_session
from taskdesk.auth.models import PortalSession
from taskdesk.auth.schemas import LoginRequest, MeResponse, TokenResponse
from taskdesk.auth.service import hash_token, login, profile_of, revoke_session
from taskdesk.common.audit import create_audit_entry
from taskdesk.common.constants import PERMISSIONS, UserRole
from taskdesk.common.rate_limit import LOGIN_RATE_LIMIT, limiter
from taskdesk.database import get_db
from taskdesk.upstream.client import UpstreamClient, get_upstream

router = APIRouter(prefix="", tags=["auth"])


# ── POST /{role}/login — exchange credentials upstream ─────────────

@router.post("/{role}/login", response_model=TokenResponse)
@limiter.limit(LOGIN_RATE_LIMIT)
async def role_login(
    role: UserRole,
    body: LoginRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    upstream: UpstreamClient = Depends(get_upstream),
):
    ip = request.client.host if request.client else None
    user_agent = request.headers.get("user-agent")
    access_token, expires_in, session, profile = await login(
        db, upstream, role, body, ip, user_agent,
    )

    await create_audit_entry(
        db,
        action="login",
        entity_type="portal_session",
        entity_id=str(session.id),
        actor_id=profile.id,
        actor_role=role.value,
        new_values={"ip": ip, "user_agent": user_agent},
        ip_address=ip,
        user_agent=user_agent,
    )

    return TokenResponse(access_token=access_token, expires_in=expires_in, user=profile)


# ── POST /logout — Revoke current session ──────────────────────────

@router.post("/logout")
async def logout(
    request: Request,
    session: PortalSession = Depends(get_current_session),
    db: AsyncSession = Depends(get_db),
):
    await revoke_session(db, hash_token(extract_bearer(request)))

    await create_audit_entry(
        db,
        action="logout",
        entity_type="portal_session",
        entity_id=str(session.id),
        actor_id=session.user_id,
        actor_role=session.role,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )

    return {"message": "Logged out successfully"}


# ── GET /me — Current user profile ─────────────────────────────────

@router.get("/me", response_model=MeResponse)
async def me(
    request: Request,
    session: PortalSession = Depends(get_current_session),
):
    role: UserRole = request.state.user_role
    return MeResponse(user=profile_of(session), permissions=PERMISSIONS.get(role, []))
