"""Auth dependencies — JWT validation, session lookup, role and permission checks."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

from fastapi import Depends, Request
from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from taskdesk.auth.models import PortalSession
from taskdesk.auth.service import hash_token
from taskdesk.common.constants import PERMISSIONS, UserRole
from taskdesk.common.exceptions import ForbiddenException, UnauthorizedException
from taskdesk.config import settings
from taskdesk.database import get_db


def extract_bearer(request: Request) -> str:
    """Extract Bearer token from Authorization header."""
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise UnauthorizedException(detail="Missing or invalid Authorization header.")
    return auth_header[7:]


# ── Core dependency ─────────────────────────────────────────────────

async def get_current_session(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> PortalSession:
    """Validate the gateway JWT and return its live session row."""
    token = extract_bearer(request)

    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except ExpiredSignatureError:
        raise UnauthorizedException(detail="Token has expired.")
    except JWTError:
        raise UnauthorizedException(detail="Invalid token.")

    if payload.get("type") != "access":
        raise UnauthorizedException(detail="Invalid token type.")

    result = await db.execute(
        select(PortalSession).where(
            PortalSession.token_hash == hash_token(token),
            PortalSession.is_revoked.is_(False),
            PortalSession.expires_at > datetime.now(timezone.utc),
        ),
    )
    session = result.scalars().first()
    if session is None:
        raise UnauthorizedException(detail="Session invalid or expired.")

    try:
        role = UserRole(session.role)
    except ValueError:
        raise UnauthorizedException(detail="Session role is not recognised.") from None
    request.state.user_role = role

    return session


# ── Role-based dependency ───────────────────────────────────────────

def require_role(*allowed_roles: UserRole) -> Callable:
    """Return a FastAPI dependency that enforces role membership (no hierarchy)."""

    async def _check(
        request: Request,
        session: PortalSession = Depends(get_current_session),
    ) -> PortalSession:
        user_role: UserRole = request.state.user_role
        if user_role not in allowed_roles:
            raise ForbiddenException(
                detail=f"Role '{user_role.value}' is not permitted. Required: {[r.value for r in allowed_roles]}.",
            )
        return session

    return _check


# ── Permission-based dependency ─────────────────────────────────────

def require_permission(permission: str) -> Callable:
    """Return a FastAPI dependency that enforces a specific permission string."""

    async def _check(
        request: Request,
        session: PortalSession = Depends(get_current_session),
    ) -> PortalSession:
        user_role: UserRole = request.state.user_role
        if permission not in PERMISSIONS.get(user_role, []):
            raise ForbiddenException(
                detail=f"Permission '{permission}' is not granted to role '{user_role.value}'.",
            )
        return session

    return _check
