"""Task service layer: upstream calls, option loading, list shaping, audit."""

from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime, timezone
from typing import Any, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from taskdesk.auth.models import PortalSession
from taskdesk.auth.service import profile_of
from taskdesk.common.audit import create_audit_entry
from taskdesk.common.constants import RecurrenceFrequency, UserRole
from taskdesk.common.exceptions import AppException, NotFoundException
from taskdesk.tasks.acknowledgements import ack_form_for, render_summary, summarize, viewer_status
from taskdesk.tasks.audience import (
    build_options,
    describe_audience,
    describe_hod_audience,
    filter_members,
    preview_recipients,
)
from taskdesk.tasks.forms import apply_transition, form_from_task, includes_campuses, prepare_payload
from taskdesk.tasks.recurrence import describe_recurrence, normalize_recurrence, upcoming_occurrences
from taskdesk.tasks.schemas import (
    AcknowledgementUpdate,
    AssignmentOptions,
    FormTransition,
    TaskForm,
    TaskPayload,
    TaskPreviewResponse,
)
from taskdesk.upstream.client import UpstreamClient
from taskdesk.upstream.endpoints import (
    ACTIVE_CAMPUSES_PATH,
    STRICT_METADATA_ROLES,
    MetadataSource,
    inbox_routes,
    manage_routes,
    metadata_sources,
)

logger = logging.getLogger(__name__)

_LIST_KEYS = ("data", "tasks", "items", "campuses")


def _as_list(data: Any, unwrap: Optional[str] = None) -> list[dict[str, Any]]:
    """Accept a bare list or a list wrapped under a known key."""
    if isinstance(data, dict):
        for key in (unwrap, *_LIST_KEYS):
            if key and isinstance(data.get(key), list):
                data = data[key]
                break
    if not isinstance(data, list):
        return []
    return [item for item in data if isinstance(item, dict)]


def _task_id(task: dict[str, Any]) -> str:
    return str(task.get("_id") or task.get("id") or "")


def _task_from(data: Any) -> Optional[dict[str, Any]]:
    if isinstance(data, dict) and isinstance(data.get("task"), dict):
        return data["task"]
    return None


def _role(session: PortalSession) -> UserRole:
    return UserRole(session.role)


def _schedule(payload: TaskPayload) -> list[date]:
    """Next due dates for a prepared task, counted from its due date (or today)."""
    if payload.recurrence.frequency == RecurrenceFrequency.none:
        return [payload.due_date] if payload.due_date else []
    start = payload.due_date or datetime.now(timezone.utc).date()
    return upcoming_occurrences(payload.recurrence, start)


class TaskManagementService:
    """Task CRUD for the managing dashboards (hr, principal, superadmin, hod)."""

    # ── Metadata ──────────────────────────────────────────────────────

    @staticmethod
    async def load_sources(
        upstream: UpstreamClient,
        role: UserRole,
        token: str,
    ) -> dict[str, list[dict[str, Any]]]:
        """Fetch the role's metadata collections concurrently.

        Strict roles fail with the first failed source in declaration order;
        the others fall back to an empty collection for whichever source failed.
        Every fetch is awaited to completion either way.
        """
        sources = metadata_sources(role)
        strict = role in STRICT_METADATA_ROLES

        async def fetch(source: MetadataSource) -> list[dict[str, Any]]:
            data = await upstream.get(
                source.path,
                token=token,
                params=source.params or None,
                error_message=source.error_message,
            )
            return _as_list(data, source.unwrap)

        results = await asyncio.gather(
            *(fetch(source) for source in sources),
            return_exceptions=True,
        )

        collections: dict[str, list[dict[str, Any]]] = {}
        for source, result in zip(sources, results):
            if isinstance(result, AppException) and not strict:
                logger.warning("%s metadata '%s' unavailable: %s", role.value, source.key, result.detail)
                result = []
            elif isinstance(result, BaseException):
                raise result
            collections[source.key] = result
        return collections

    @staticmethod
    async def assignment_options(
        upstream: UpstreamClient,
        session: PortalSession,
        departments: Optional[Sequence[str]] = None,
    ) -> AssignmentOptions:
        role = _role(session)
        sources = await TaskManagementService.load_sources(upstream, role, session.upstream_token)
        options = build_options(role, sources, profile_of(session))
        if departments:
            options = options.model_copy(update={
                "employees": filter_members(options.employees, departments),
                "hods": filter_members(options.hods, departments, kind="hod"),
            })
        return options

    # ── Forms ─────────────────────────────────────────────────────────

    @staticmethod
    async def apply_transition(
        upstream: UpstreamClient,
        session: PortalSession,
        transition: FormTransition,
    ) -> TaskForm:
        options = None
        if transition.action == "departments":
            options = await TaskManagementService.assignment_options(upstream, session)
        return apply_transition(_role(session), transition, options, profile_of(session))

    @staticmethod
    async def edit_form(upstream: UpstreamClient, session: PortalSession, task_id: str) -> TaskForm:
        role = _role(session)
        task = await TaskManagementService.get_task(upstream, session, task_id)
        options = None
        if role == UserRole.hr:
            options = await TaskManagementService.assignment_options(upstream, session)
        return form_from_task(role, task, profile_of(session), options)

    @staticmethod
    async def preview(
        upstream: UpstreamClient,
        session: PortalSession,
        form: TaskForm,
    ) -> TaskPreviewResponse:
        """Validate *form* and show what would be sent, without saving."""
        role = _role(session)
        payload = prepare_payload(role, form)
        options = await TaskManagementService.assignment_options(upstream, session)
        describe = describe_hod_audience if role == UserRole.hod else describe_audience
        return TaskPreviewResponse(
            payload=payload.to_upstream(include_campuses=includes_campuses(role)),
            audience_summary=describe(payload.assigned_to),
            recurrence_summary=describe_recurrence(payload.recurrence),
            recipients=preview_recipients(payload.assigned_to, options),
            upcoming_occurrences=_schedule(payload),
        )

    # ── Listing ───────────────────────────────────────────────────────

    @staticmethod
    def decorate(role: UserRole, task: dict[str, Any]) -> dict[str, Any]:
        """Add display summaries to an upstream task."""
        summary = summarize(task)
        describe = describe_hod_audience if role == UserRole.hod else describe_audience
        decorated = dict(task)
        if summary is not None and not isinstance(task.get("acknowledgementSummary"), dict):
            decorated["acknowledgementSummary"] = summary.model_dump(by_alias=True)
        decorated["audienceSummary"] = describe(task.get("assignedTo"))
        decorated["acknowledgementSummaryText"] = render_summary(summary)
        decorated["recurrenceSummary"] = describe_recurrence(normalize_recurrence(task.get("recurrence")))
        return decorated

    @staticmethod
    async def list_tasks(upstream: UpstreamClient, session: PortalSession) -> list[dict[str, Any]]:
        role = _role(session)
        data = await upstream.get(
            manage_routes(role).list_path,
            token=session.upstream_token,
            error_message="Failed to fetch tasks",
        )
        return [TaskManagementService.decorate(role, task) for task in _as_list(data)]

    @staticmethod
    async def get_task(upstream: UpstreamClient, session: PortalSession, task_id: str) -> dict[str, Any]:
        # Upstream has no single-task route for managers; find it in the list
        for task in await TaskManagementService.list_tasks(upstream, session):
            if _task_id(task) == task_id:
                return task
        raise NotFoundException("Task", task_id)

    # ── Mutations ─────────────────────────────────────────────────────

    @staticmethod
    async def create_task(
        db: AsyncSession,
        upstream: UpstreamClient,
        session: PortalSession,
        form: TaskForm,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Optional[dict[str, Any]]:
        role = _role(session)
        body = prepare_payload(role, form).to_upstream(include_campuses=includes_campuses(role))
        data = await upstream.post(
            manage_routes(role).create_path,
            token=session.upstream_token,
            json=body,
            error_message="Failed to save task",
        )
        task = _task_from(data)

        await create_audit_entry(
            db,
            action="create",
            entity_type="task",
            entity_id=_task_id(task) if task else "",
            actor_id=session.user_id,
            actor_role=session.role,
            new_values=body,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        logger.info("Task created by %s %s", session.role, session.user_id)
        return TaskManagementService.decorate(role, task) if task else None

    @staticmethod
    async def update_task(
        db: AsyncSession,
        upstream: UpstreamClient,
        session: PortalSession,
        task_id: str,
        form: TaskForm,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Optional[dict[str, Any]]:
        role = _role(session)
        body = prepare_payload(role, form).to_upstream(include_campuses=includes_campuses(role))
        data = await upstream.put(
            manage_routes(role).item(task_id),
            token=session.upstream_token,
            json=body,
            error_message="Failed to save task",
        )
        task = _task_from(data)

        await create_audit_entry(
            db,
            action="update",
            entity_type="task",
            entity_id=task_id,
            actor_id=session.user_id,
            actor_role=session.role,
            new_values=body,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        return TaskManagementService.decorate(role, task) if task else None

    @staticmethod
    async def delete_task(
        db: AsyncSession,
        upstream: UpstreamClient,
        session: PortalSession,
        task_id: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> None:
        role = _role(session)
        await upstream.delete(
            manage_routes(role).item(task_id),
            token=session.upstream_token,
            error_message="Failed to delete task",
        )
        await create_audit_entry(
            db,
            action="delete",
            entity_type="task",
            entity_id=task_id,
            actor_id=session.user_id,
            actor_role=session.role,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        logger.info("Task %s deleted by %s %s", task_id, session.role, session.user_id)


class TaskInboxService:
    """Recipient side (employee, hod): assigned tasks and acknowledgements."""

    @staticmethod
    def decorate(task: dict[str, Any]) -> dict[str, Any]:
        decorated = dict(task)
        status = viewer_status(task)
        decorated["acknowledgementStatus"] = status.value if status else None
        if status is not None:
            decorated["ackForm"] = ack_form_for(task).model_dump(mode="json", by_alias=True)
        return decorated

    @staticmethod
    async def list_tasks(upstream: UpstreamClient, session: PortalSession) -> list[dict[str, Any]]:
        data = await upstream.get(
            inbox_routes(_role(session)).list_path,
            token=session.upstream_token,
            error_message="Failed to fetch tasks",
        )
        return [TaskInboxService.decorate(task) for task in _as_list(data)]

    @staticmethod
    async def acknowledge(
        db: AsyncSession,
        upstream: UpstreamClient,
        session: PortalSession,
        task_id: str,
        body: AcknowledgementUpdate,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Optional[dict[str, Any]]:
        payload = {
            "status": body.status.value,
            "comment": body.comment,
            "proofUrl": body.proof_url,
        }
        data = await upstream.put(
            inbox_routes(_role(session)).acknowledgement(task_id),
            token=session.upstream_token,
            json=payload,
            error_message="Failed to update acknowledgement",
        )
        task = _task_from(data)

        await create_audit_entry(
            db,
            action="acknowledge",
            entity_type="task",
            entity_id=task_id,
            actor_id=session.user_id,
            actor_role=session.role,
            new_values=payload,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        return TaskInboxService.decorate(task) if task else None


async def active_campuses(upstream: UpstreamClient) -> list[dict[str, Any]]:
    """Public campus list used by the login screens."""
    data = await upstream.get(ACTIVE_CAMPUSES_PATH, error_message="Failed to fetch campuses")
    return _as_list(data)
