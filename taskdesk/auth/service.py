"""Auth service — upstream login exchange, gateway JWT, session lifecycle."""

from __future__ import annotations

import hashlib
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from email_validator import EmailNotValidError, validate_email
from jose import JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from taskdesk.auth.models import PortalSession
from taskdesk.auth.schemas import LoginRequest, ViewerProfile
from taskdesk.common.constants import HodType, UserRole
from taskdesk.common.exceptions import UpstreamError, ValidationException
from taskdesk.config import settings
from taskdesk.upstream.client import INVALID_RESPONSE_MESSAGE, UpstreamClient
from taskdesk.upstream.endpoints import login_path

logger = logging.getLogger(__name__)

# Keys the upstream login handlers use for the signed-in account
_ACCOUNT_KEYS = ("user", "hod", "principal", "hr", "superAdmin", "employee")


# ── Credential checks ───────────────────────────────────────────────

def _require(value: Optional[str], field: str, message: str) -> str:
    if not value or not value.strip():
        raise ValidationException({field: [message]})
    return value.strip()


def _check_email(email: Optional[str]) -> str:
    email = _require(email, "email", "Please provide all required fields")
    try:
        validate_email(email, check_deliverability=False)
    except EmailNotValidError:
        raise ValidationException({"email": ["Please enter a valid email address"]}) from None
    return email.lower()


def build_login_payload(role: UserRole, body: LoginRequest) -> dict[str, Any]:
    """Shape the credentials the way the role's upstream login expects them."""
    if role == UserRole.employee:
        employee_id = _require(body.employee_id, "employee_id", "Please provide all required fields")
        return {"employeeId": employee_id, "password": body.password}

    payload: dict[str, Any] = {"email": _check_email(body.email), "password": body.password}

    if role == UserRole.principal:
        campus = _require(body.campus, "campus", "Please select a campus")
        # Upstream matches the capitalised campus type ("Engineering")
        payload["campus"] = campus[:1].upper() + campus[1:].lower()
    elif role == UserRole.hod:
        payload["campus"] = _require(body.campus, "campus", "Please select a campus").lower()
        hod_type = body.hod_type or HodType.teaching
        if hod_type == HodType.teaching:
            payload["branchCode"] = _require(
                body.branch_code, "branch_code", "Branch code is required for teaching HODs",
            )
        payload["hodType"] = hod_type.value
    return payload


# ── Profile extraction ──────────────────────────────────────────────

def _text(value: Any) -> Optional[str]:
    if isinstance(value, dict):
        value = value.get("code") or value.get("name")
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def extract_profile(role: UserRole, data: dict[str, Any], body: LoginRequest) -> ViewerProfile:
    """Build the viewer profile from a login response, falling back to the form."""
    account: dict[str, Any] = {}
    for key in _ACCOUNT_KEYS:
        if isinstance(data.get(key), dict):
            account = data[key]
            break

    user_id = account.get("id") or account.get("_id")
    if not user_id:
        try:
            claims = jwt.get_unverified_claims(data["token"])
        except JWTError:
            claims = {}
        nested = claims.get("user") if isinstance(claims.get("user"), dict) else {}
        user_id = claims.get("id") or nested.get("id")
    if not user_id:
        raise UpstreamError(INVALID_RESPONSE_MESSAGE)

    department = account.get("department")
    department_name = department.get("name") if isinstance(department, dict) else _text(department)
    branch_code = _text(account.get("branchCode")) or body.branch_code or _text(department)
    campus = account.get("campus")
    if isinstance(campus, dict):
        campus = campus.get("name") or campus.get("type")
    campus = _text(campus) or body.campus

    hod_type = account.get("hodType") or (body.hod_type.value if body.hod_type else None)

    return ViewerProfile(
        id=str(user_id),
        role=role.value,
        name=account.get("name"),
        email=account.get("email") or body.email,
        employee_id=account.get("employeeId") or body.employee_id,
        campus=campus.lower() if campus else None,
        department=department_name,
        branch_code=branch_code.lower() if branch_code else None,
        hod_type=hod_type,
    )


# ── JWT helpers ─────────────────────────────────────────────────────

def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


def create_access_token(user_id: str, role: UserRole) -> tuple[str, int]:
    """Return (encoded_jwt, expires_in_seconds)."""
    expires_in = settings.JWT_EXPIRY_HOURS * 3600
    payload = {
        "sub": user_id,
        "role": role.value,
        "type": "access",
        "exp": datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRY_HOURS),
    }
    token = jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)
    return token, expires_in


# ── Session management ──────────────────────────────────────────────

async def login(
    db: AsyncSession,
    upstream: UpstreamClient,
    role: UserRole,
    body: LoginRequest,
    ip: Optional[str],
    user_agent: Optional[str],
) -> tuple[str, int, PortalSession, ViewerProfile]:
    """Exchange credentials upstream and persist a gateway session."""
    payload = build_login_payload(role, body)
    data = await upstream.post(login_path(role), json=payload, error_message="Login failed")
    if not isinstance(data, dict) or not data.get("token"):
        raise UpstreamError(INVALID_RESPONSE_MESSAGE)

    profile = extract_profile(role, data, body)
    access_token, expires_in = create_access_token(profile.id, role)

    session = PortalSession(
        user_id=profile.id,
        role=role.value,
        token_hash=hash_token(access_token),
        upstream_token=data["token"],
        profile=profile.model_dump(),
        ip_address=ip,
        user_agent=user_agent,
        expires_at=datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRY_HOURS),
        is_revoked=False,
    )
    db.add(session)
    await db.flush()
    logger.info("Session opened for %s %s", role.value, profile.id)

    return access_token, expires_in, session, profile


async def revoke_session(db: AsyncSession, token_hash: str) -> None:
    """Mark a session as revoked by its token hash."""
    result = await db.execute(
        select(PortalSession).where(PortalSession.token_hash == token_hash),
    )
    session = result.scalars().first()
    if session:
        session.is_revoked = True
        await db.flush()


def profile_of(session: PortalSession) -> ViewerProfile:
    """Rehydrate the stored viewer profile."""
    return ViewerProfile.model_validate(session.profile or {"id": session.user_id, "role": session.role})
