"""Acknowledgement tallies and the recipient response form."""

from __future__ import annotations

from typing import Any, Mapping, Optional

from taskdesk.common.constants import AcknowledgementStatus
from taskdesk.tasks.schemas import AcknowledgementSummary, AcknowledgementUpdate

OPTIONAL_TEXT = "Acknowledgement optional"


def summarize(task: Mapping[str, Any]) -> Optional[AcknowledgementSummary]:
    """Response counts for a managed task, or None when no acknowledgement is required."""
    if not task.get("requireAcknowledgement"):
        return None

    provided = task.get("acknowledgementSummary")
    if isinstance(provided, Mapping):
        return AcknowledgementSummary.model_validate({
            key: int(provided.get(key) or 0)
            for key in ("responses", "acknowledged", "completed", "pending")
        })

    responses = [a for a in task.get("acknowledgements") or [] if isinstance(a, Mapping)]
    statuses = [a.get("status") or AcknowledgementStatus.pending.value for a in responses]
    return AcknowledgementSummary(
        responses=len(statuses),
        acknowledged=sum(1 for s in statuses if s != AcknowledgementStatus.pending.value),
        completed=sum(1 for s in statuses if s == AcknowledgementStatus.completed.value),
        pending=sum(1 for s in statuses if s == AcknowledgementStatus.pending.value),
    )


def render_summary(summary: Optional[AcknowledgementSummary]) -> str:
    if summary is None:
        return OPTIONAL_TEXT
    return (
        f"Responses: {summary.responses} • "
        f"Completed: {summary.completed} • "
        f"Pending: {summary.pending}"
    )


def viewer_status(task: Mapping[str, Any]) -> Optional[AcknowledgementStatus]:
    """The caller's own response status on a task in their inbox."""
    if not task.get("requireAcknowledgement"):
        return None
    stored = task.get("acknowledgementStatus")
    if not stored:
        stored = (task.get("viewerAcknowledgement") or {}).get("status")
    try:
        return AcknowledgementStatus(stored) if stored else AcknowledgementStatus.pending
    except ValueError:
        return AcknowledgementStatus.pending


def ack_form_for(task: Mapping[str, Any]) -> AcknowledgementUpdate:
    existing = task.get("viewerAcknowledgement") or {}
    status = existing.get("status")
    if status not in (AcknowledgementStatus.acknowledged.value, AcknowledgementStatus.completed.value):
        status = AcknowledgementStatus.acknowledged
    return AcknowledgementUpdate(
        status=status,
        comment=existing.get("comment") or "",
        proof_url=existing.get("proofUrl") or "",
    )
