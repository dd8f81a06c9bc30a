"""Tests for common utilities — pagination, problem details, audit trail."""

from __future__ import annotations

from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from taskdesk.common.audit import AuditTrail, create_audit_entry
from taskdesk.common.exceptions import (
    NotFoundException,
    UpstreamError,
    ValidationException,
    register_exception_handlers,
)
from taskdesk.common.pagination import PaginationParams, paginate
from taskdesk.config import Settings
from taskdesk.main import lifespan
from taskdesk.upstream.client import UpstreamClient


# ═════════════════════════════════════════════════════════════════════
# PAGINATION TESTS
# ═════════════════════════════════════════════════════════════════════


class TestPagination:
    """Tests for the in-memory paginate helper."""

    def test_first_page(self):
        page = paginate(list(range(5)), PaginationParams(page=1, page_size=2))
        assert list(page.data) == [0, 1]
        assert page.meta.total == 5
        assert page.meta.total_pages == 3
        assert page.meta.has_next is True
        assert page.meta.has_prev is False

    def test_last_page(self):
        page = paginate(list(range(5)), PaginationParams(page=3, page_size=2))
        assert list(page.data) == [4]
        assert page.meta.has_next is False
        assert page.meta.has_prev is True

    def test_empty_result(self):
        page = paginate([], PaginationParams(page=1, page_size=50))
        assert list(page.data) == []
        assert page.meta.total_pages == 0

    def test_offset(self):
        assert PaginationParams(page=4, page_size=25).offset == 75


# ═════════════════════════════════════════════════════════════════════
# PROBLEM DETAIL TESTS
# ═════════════════════════════════════════════════════════════════════


def _problem_app() -> FastAPI:
    app = FastAPI()
    register_exception_handlers(app)

    @app.get("/missing")
    async def missing():
        raise NotFoundException("Task", "t1")

    @app.get("/invalid")
    async def invalid():
        raise ValidationException({"title": ["Title and description are required."]})

    @app.get("/upstream")
    async def upstream():
        raise UpstreamError("Portal down", 503)

    @app.get("/typed")
    async def typed(page: int):
        return {"page": page}

    return app


class TestProblemDetails:
    async def _get(self, path: str):
        async with AsyncClient(transport=ASGITransport(app=_problem_app()), base_url="http://test") as ac:
            return await ac.get(path)

    async def test_not_found(self):
        resp = await self._get("/missing")
        assert resp.status_code == 404
        assert resp.headers["content-type"].startswith("application/problem+json")
        body = resp.json()
        assert body["title"] == "Task Not Found"
        assert body["instance"] == "/missing"

    async def test_validation_detail_is_first_message(self):
        body = (await self._get("/invalid")).json()
        assert body["status"] == 422
        assert body["detail"] == "Title and description are required."
        assert body["errors"] == {"title": ["Title and description are required."]}

    async def test_upstream_status_recorded(self):
        resp = await self._get("/upstream")
        assert resp.status_code == 502
        assert resp.json()["errors"] == {"upstream_status": ["503"]}

    async def test_request_validation_mapped_to_fields(self):
        resp = await self._get("/typed?page=abc")
        assert resp.status_code == 422
        assert "page" in resp.json()["errors"]


# ═════════════════════════════════════════════════════════════════════
# AUDIT TRAIL TESTS
# ═════════════════════════════════════════════════════════════════════


class TestAuditTrail:
    async def test_create_entry(self, db: AsyncSession):
        await create_audit_entry(
            db,
            action="update",
            entity_type="task",
            entity_id="t1",
            actor_id="u1",
            actor_role="hr",
            new_values={"title": "New"},
        )
        await db.commit()

        entry = (await db.execute(select(AuditTrail))).scalars().one()
        assert entry.entity_id == "t1"
        assert entry.new_values == {"title": "New"}


# ═════════════════════════════════════════════════════════════════════
# SETTINGS / LIFESPAN TESTS
# ═════════════════════════════════════════════════════════════════════


def test_settings_are_case_sensitive(monkeypatch):
    monkeypatch.setenv("upstream_api_url", "http://ignored.test")
    monkeypatch.setenv("UPSTREAM_API_URL", "http://portal.example/api")
    fresh = Settings()
    assert fresh.UPSTREAM_API_URL == "http://portal.example/api"
    assert fresh.cors_origins_list == ["http://localhost:3000"]


async def test_lifespan_opens_and_closes_upstream_client():
    app = FastAPI()
    async with lifespan(app):
        upstream = app.state.upstream
        assert isinstance(upstream, UpstreamClient)
        assert not upstream._client.is_closed
    assert upstream._client.is_closed
