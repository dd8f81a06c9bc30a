"""Auth module test suite — per-role login exchange, JWT, sessions, RBAC."""

from __future__ import annotations

import httpx
from jose import jwt
from sqlalchemy import select

from taskdesk.auth.models import PortalSession
from taskdesk.common.audit import AuditTrail
from taskdesk.common.constants import PERMISSIONS, UserRole
from taskdesk.config import settings
from taskdesk.upstream.client import NO_RESPONSE_MESSAGE


def _login_ok(account_key: str, **account) -> dict:
    return {"token": "upstream-token", account_key: {"id": "acc-1", "name": "Test", **account}}


# ── Credential shaping ──────────────────────────────────────────────


async def test_employee_login_forwards_employee_id(client, portal):
    portal.add("POST", "/employee/login", _login_ok("employee", employeeId="EMP001"))
    resp = await client.post(
        "/api/v1/auth/employee/login",
        json={"employeeId": "EMP001", "password": "secret"},
    )
    assert resp.status_code == 200
    sent = portal.body(portal.sent("POST", "/employee/login"))
    assert sent == {"employeeId": "EMP001", "password": "secret"}
    assert resp.json()["user"]["employee_id"] == "EMP001"


async def test_principal_login_capitalises_campus(client, portal):
    portal.add("POST", "/principal/login", _login_ok("principal", email="p@pydah.edu.in"))
    resp = await client.post(
        "/api/v1/auth/principal/login",
        json={"email": "P@Pydah.edu.in", "password": "secret", "campus": "engineering"},
    )
    assert resp.status_code == 200
    sent = portal.body(portal.sent("POST", "/principal/login"))
    assert sent["campus"] == "Engineering"
    assert sent["email"] == "p@pydah.edu.in"


async def test_hod_login_sends_lowercase_campus_and_branch(client, portal):
    portal.add("POST", "/hod/login", _login_ok("hod", branchCode="CSE"))
    resp = await client.post(
        "/api/v1/auth/hod/login",
        json={
            "email": "hod@pydah.edu.in",
            "password": "secret",
            "campus": "Engineering",
            "branchCode": "CSE",
            "hodType": "teaching",
        },
    )
    assert resp.status_code == 200
    sent = portal.body(portal.sent("POST", "/hod/login"))
    assert sent["campus"] == "engineering"
    assert sent["branchCode"] == "CSE"
    assert sent["hodType"] == "teaching"
    assert resp.json()["user"]["branch_code"] == "cse"


async def test_teaching_hod_requires_branch_code(client, portal):
    resp = await client.post(
        "/api/v1/auth/hod/login",
        json={"email": "hod@pydah.edu.in", "password": "secret", "campus": "engineering"},
    )
    assert resp.status_code == 422
    assert resp.json()["detail"] == "Branch code is required for teaching HODs"
    assert portal.requests == []


async def test_invalid_email_rejected_before_upstream(client, portal):
    resp = await client.post(
        "/api/v1/auth/hr/login",
        json={"email": "not-an-email", "password": "secret"},
    )
    assert resp.status_code == 422
    assert resp.json()["detail"] == "Please enter a valid email address"
    assert portal.requests == []


async def test_superadmin_login_uses_super_admin_segment(client, portal):
    portal.add("POST", "/super-admin/login", _login_ok("superAdmin", email="sa@pydah.edu.in"))
    resp = await client.post(
        "/api/v1/auth/superadmin/login",
        json={"email": "sa@pydah.edu.in", "password": "secret"},
    )
    assert resp.status_code == 200
    assert resp.json()["user"]["role"] == "superadmin"


# ── Upstream failures ───────────────────────────────────────────────


async def test_upstream_rejection_message_is_passed_through(client, portal):
    portal.add("POST", "/hr/login", {"msg": "Invalid credentials"}, status=401)
    resp = await client.post(
        "/api/v1/auth/hr/login",
        json={"email": "hr@pydah.edu.in", "password": "wrong"},
    )
    assert resp.status_code == 401
    assert resp.headers["content-type"].startswith("application/problem+json")
    assert resp.json()["detail"] == "Invalid credentials"


async def test_unreachable_upstream_is_502(client, portal):
    portal.fail("POST", "/hr/login", httpx.ConnectError("refused"))
    resp = await client.post(
        "/api/v1/auth/hr/login",
        json={"email": "hr@pydah.edu.in", "password": "secret"},
    )
    assert resp.status_code == 502
    assert resp.json()["detail"] == NO_RESPONSE_MESSAGE


async def test_login_without_token_is_invalid_response(client, portal):
    portal.add("POST", "/hr/login", {"msg": "ok"})
    resp = await client.post(
        "/api/v1/auth/hr/login",
        json={"email": "hr@pydah.edu.in", "password": "secret"},
    )
    assert resp.status_code == 502


# ── Sessions and JWT ────────────────────────────────────────────────


async def test_login_persists_session_and_audit(client, portal, db):
    portal.add("POST", "/hr/login", _login_ok("hr", email="hr@pydah.edu.in"))
    resp = await client.post(
        "/api/v1/auth/hr/login",
        json={"email": "hr@pydah.edu.in", "password": "secret"},
    )
    assert resp.status_code == 200
    token = resp.json()["access_token"]

    claims = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    assert claims["sub"] == "acc-1"
    assert claims["role"] == "hr"
    assert claims["type"] == "access"

    sessions = (await db.execute(select(PortalSession))).scalars().all()
    assert len(sessions) == 1
    assert sessions[0].upstream_token == "upstream-token"

    audit = (await db.execute(select(AuditTrail).where(AuditTrail.action == "login"))).scalars().all()
    assert len(audit) == 1
    assert audit[0].actor_role == "hr"


async def test_me_returns_profile_and_permissions(client, session_headers):
    headers = await session_headers(UserRole.hod)
    resp = await client.get("/api/v1/auth/me", headers=headers)
    assert resp.status_code == 200
    data = resp.json()
    assert data["user"]["role"] == "hod"
    assert data["user"]["branch_code"] == "cse"
    assert data["permissions"] == PERMISSIONS[UserRole.hod]


async def test_logout_revokes_session(client, session_headers):
    headers = await session_headers(UserRole.employee)
    resp = await client.post("/api/v1/auth/logout", headers=headers)
    assert resp.status_code == 200

    resp = await client.get("/api/v1/auth/me", headers=headers)
    assert resp.status_code == 401


async def test_expired_session_rejected(client, session_headers):
    headers = await session_headers(UserRole.hr, expired=True)
    resp = await client.get("/api/v1/auth/me", headers=headers)
    assert resp.status_code == 401


async def test_missing_bearer_rejected(client):
    resp = await client.get("/api/v1/auth/me")
    assert resp.status_code == 401
    assert resp.json()["title"] == "Unauthorized"


async def test_garbage_token_rejected(client):
    resp = await client.get("/api/v1/auth/me", headers={"Authorization": "Bearer nope"})
    assert resp.status_code == 401


# ── Rate limiting ───────────────────────────────────────────────────


async def test_login_rate_limited(client, portal):
    portal.add("POST", "/hr/login", {"msg": "Invalid credentials"}, status=401)
    statuses = []
    for _ in range(6):
        resp = await client.post(
            "/api/v1/auth/hr/login",
            json={"email": "hr@pydah.edu.in", "password": "wrong"},
        )
        statuses.append(resp.status_code)
    assert statuses[:5] == [401] * 5
    assert statuses[5] == 429
