"""Tasks router — managed task CRUD, dialog helpers, recipient inbox.

Managing roles (hr, principal, superadmin, hod) use ``/manage``; recipients
(employee, hod) use ``/inbox``. The upstream portal remains the system of record.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from taskdesk.auth.dependencies import require_permission, require_role
from taskdesk.auth.models import PortalSession
from taskdesk.auth.service import profile_of
from taskdesk.common.constants import RECIPIENT_ROLES, UserRole
from taskdesk.common.pagination import PaginationParams, paginate
from taskdesk.database import get_db
from taskdesk.tasks.filters import (
    AckStatusChoice,
    ManagerTaskFilter,
    PriorityChoice,
    RecipientTaskFilter,
    StatusChoice,
    apply_filter,
    manager_kpis,
    recipient_kpis,
    sort_for_recipient,
)
from taskdesk.tasks.forms import empty_task_form
from taskdesk.tasks.schemas import (
    AcknowledgementUpdate,
    AssignmentOptions,
    FormTransition,
    FormTransitionResponse,
    InboxListResponse,
    ManagedTaskListResponse,
    TaskForm,
    TaskMutationResponse,
    TaskPreviewResponse,
)
from taskdesk.tasks.service import TaskInboxService, TaskManagementService, active_campuses
from taskdesk.upstream.client import UpstreamClient, get_upstream

router = APIRouter(prefix="", tags=["tasks"])

_manager = require_permission("task:manage")
_recipient = require_role(*RECIPIENT_ROLES)


def _client(request: Request) -> tuple[Optional[str], Optional[str]]:
    ip = request.client.host if request.client else None
    return ip, request.headers.get("user-agent")


# ── GET /manage — filtered task list + KPIs ────────────────────────

@router.get("/manage", response_model=ManagedTaskListResponse)
async def list_managed_tasks(
    request: Request,
    status: Optional[StatusChoice] = Query(None),
    priority: Optional[PriorityChoice] = Query(None),
    search: Optional[str] = Query(None, max_length=200),
    date_from: Optional[date] = Query(None, description="Due on or after (inclusive)"),
    date_to: Optional[date] = Query(None, description="Due on or before (inclusive)"),
    pagination: PaginationParams = Depends(),
    session: PortalSession = Depends(_manager),
    upstream: UpstreamClient = Depends(get_upstream),
):
    role: UserRole = request.state.user_role
    tasks = await TaskManagementService.list_tasks(upstream, session)
    criteria = ManagerTaskFilter(
        status=status, priority=priority, search=search, date_from=date_from, date_to=date_to,
    )
    page = paginate(apply_filter(tasks, criteria), pagination)
    return ManagedTaskListResponse(
        data=list(page.data),
        meta=page.meta,
        kpis=manager_kpis(tasks, count_acknowledged_completion=role == UserRole.hod),
    )


# ── Dialog helpers ─────────────────────────────────────────────────

@router.get("/manage/form", response_model=TaskForm)
async def new_task_form(
    request: Request,
    session: PortalSession = Depends(_manager),
):
    """Blank create dialog with the caller's role defaults."""
    return empty_task_form(request.state.user_role, profile_of(session))


@router.post("/manage/form/transitions", response_model=FormTransitionResponse)
async def transition_task_form(
    body: FormTransition,
    session: PortalSession = Depends(_manager),
    upstream: UpstreamClient = Depends(get_upstream),
):
    form = await TaskManagementService.apply_transition(upstream, session, body)
    return FormTransitionResponse(form=form)


@router.get("/manage/options", response_model=AssignmentOptions)
async def assignment_options(
    departments: Optional[list[str]] = Query(default=None),
    session: PortalSession = Depends(_manager),
    upstream: UpstreamClient = Depends(get_upstream),
):
    """Picker options; ``departments`` narrows the people lists."""
    return await TaskManagementService.assignment_options(upstream, session, departments)


@router.post("/manage/preview", response_model=TaskPreviewResponse)
async def preview_task(
    body: TaskForm,
    session: PortalSession = Depends(_manager),
    upstream: UpstreamClient = Depends(get_upstream),
):
    """Validate a dialog and show the payload and recipients without saving."""
    return await TaskManagementService.preview(upstream, session, body)


@router.get("/manage/{task_id}/form", response_model=TaskForm)
async def edit_task_form(
    task_id: str,
    session: PortalSession = Depends(_manager),
    upstream: UpstreamClient = Depends(get_upstream),
):
    return await TaskManagementService.edit_form(upstream, session, task_id)


# ── Mutations ──────────────────────────────────────────────────────

@router.post("/manage", response_model=TaskMutationResponse, status_code=201)
async def create_task(
    body: TaskForm,
    request: Request,
    session: PortalSession = Depends(_manager),
    db: AsyncSession = Depends(get_db),
    upstream: UpstreamClient = Depends(get_upstream),
):
    ip, user_agent = _client(request)
    task = await TaskManagementService.create_task(db, upstream, session, body, ip, user_agent)
    return TaskMutationResponse(message="Task created successfully", task=task)


@router.put("/manage/{task_id}", response_model=TaskMutationResponse)
async def update_task(
    task_id: str,
    body: TaskForm,
    request: Request,
    session: PortalSession = Depends(_manager),
    db: AsyncSession = Depends(get_db),
    upstream: UpstreamClient = Depends(get_upstream),
):
    ip, user_agent = _client(request)
    task = await TaskManagementService.update_task(db, upstream, session, task_id, body, ip, user_agent)
    return TaskMutationResponse(message="Task updated successfully", task=task)


@router.delete("/manage/{task_id}", response_model=TaskMutationResponse)
async def delete_task(
    task_id: str,
    request: Request,
    session: PortalSession = Depends(_manager),
    db: AsyncSession = Depends(get_db),
    upstream: UpstreamClient = Depends(get_upstream),
):
    ip, user_agent = _client(request)
    await TaskManagementService.delete_task(db, upstream, session, task_id, ip, user_agent)
    return TaskMutationResponse(message="Task deleted successfully")


# ── GET /inbox — tasks assigned to the caller ──────────────────────

@router.get("/inbox", response_model=InboxListResponse)
async def list_inbox(
    priority: Optional[PriorityChoice] = Query(None),
    acknowledgement_status: Optional[AckStatusChoice] = Query(None),
    search: Optional[str] = Query(None, max_length=200),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    pagination: PaginationParams = Depends(),
    session: PortalSession = Depends(_recipient),
    upstream: UpstreamClient = Depends(get_upstream),
):
    tasks = await TaskInboxService.list_tasks(upstream, session)
    criteria = RecipientTaskFilter(
        priority=priority,
        acknowledgement_status=acknowledgement_status,
        search=search,
        date_from=date_from,
        date_to=date_to,
    )
    page = paginate(sort_for_recipient(apply_filter(tasks, criteria)), pagination)
    return InboxListResponse(data=list(page.data), meta=page.meta, kpis=recipient_kpis(tasks))


@router.put("/inbox/{task_id}/acknowledgement", response_model=TaskMutationResponse)
async def acknowledge_task(
    task_id: str,
    body: AcknowledgementUpdate,
    request: Request,
    session: PortalSession = Depends(_recipient),
    db: AsyncSession = Depends(get_db),
    upstream: UpstreamClient = Depends(get_upstream),
):
    ip, user_agent = _client(request)
    task = await TaskInboxService.acknowledge(db, upstream, session, task_id, body, ip, user_agent)
    return TaskMutationResponse(message="Task acknowledgement updated", task=task)


# ── GET /campuses/active — public ──────────────────────────────────

@router.get("/campuses/active")
async def list_active_campuses(upstream: UpstreamClient = Depends(get_upstream)):
    return await active_campuses(upstream)
