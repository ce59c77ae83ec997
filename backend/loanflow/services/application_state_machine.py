"""Application status state machine.

Every status change goes through ``change_status``: it validates the move
against TRANSITIONS, appends one status-history entry and one timeline entry,
and records an audit row, all in the caller's session. Two moves are guarded
and only reachable from their owning workflow: entering SUBMITTED (the
submission gate) and CORRECTIONS_PENDING → IN_REVIEW (the correction
reconciler).
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from loanflow.models.application import (
    Application,
    ApplicationStatus,
    StatusChange,
    TimelineAction,
    TimelineEntry,
)
from loanflow.models.audit import AuditAction
from loanflow.services import audit, notifier
from loanflow.services.errors import IllegalTransitionError

logger = logging.getLogger(__name__)

S = ApplicationStatus

# Valid transitions: from_state -> set of allowed to_states
TRANSITIONS: dict[ApplicationStatus, set[ApplicationStatus]] = {
    S.DRAFT: {S.SUBMITTED, S.CANCELLED},
    S.SUBMITTED: {S.IN_REVIEW, S.DOCS_PENDING, S.CORRECTIONS_PENDING, S.CANCELLED},
    S.IN_REVIEW: {
        S.DOCS_PENDING,
        S.CORRECTIONS_PENDING,
        S.COUNTER_OFFERED,
        S.APPROVED,
        S.REJECTED,
        S.CANCELLED,
    },
    S.DOCS_PENDING: {S.SUBMITTED, S.IN_REVIEW, S.CORRECTIONS_PENDING, S.CANCELLED},
    S.CORRECTIONS_PENDING: {S.IN_REVIEW, S.CANCELLED},
    S.COUNTER_OFFERED: {S.IN_REVIEW, S.APPROVED, S.REJECTED, S.CANCELLED},
    S.APPROVED: {S.DISBURSED, S.CANCELLED},
    S.DISBURSED: {S.SYNCED},
    S.REJECTED: set(),
    S.CANCELLED: set(),
    S.SYNCED: set(),
}

# States from which the applicant may withdraw
CANCELLABLE_STATES = frozenset({
    S.DRAFT, S.SUBMITTED, S.IN_REVIEW, S.DOCS_PENDING, S.COUNTER_OFFERED,
})

# States in which the applicant still has a live application under review
ACTIVE_REVIEW_STATES = frozenset({
    S.SUBMITTED, S.IN_REVIEW, S.DOCS_PENDING, S.CORRECTIONS_PENDING,
})

_TIMESTAMP_FIELDS = {
    S.SUBMITTED: "submitted_at",
    S.APPROVED: "approved_at",
    S.REJECTED: "rejected_at",
    S.DISBURSED: "disbursed_at",
}


def can_transition(from_status: ApplicationStatus, to_status: ApplicationStatus) -> bool:
    """Check if a transition from one status to another is valid."""
    return to_status in TRANSITIONS.get(from_status, set())


def get_allowed_transitions(status: ApplicationStatus) -> list[ApplicationStatus]:
    """Return allowed target statuses, in declaration order."""
    allowed = TRANSITIONS.get(status, set())
    return [s for s in ApplicationStatus if s in allowed]


def is_terminal_state(status: ApplicationStatus) -> bool:
    """True when no further transition is possible."""
    return not TRANSITIONS.get(status)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def add_timeline_entry(
    application: Application,
    action: TimelineAction,
    payload: dict[str, Any],
    actor_id: Optional[str],
    at: Optional[datetime] = None,
) -> TimelineEntry:
    entry = TimelineEntry(
        action=action.value,
        actor_id=actor_id,
        timestamp=(at or _now()).isoformat(),
        payload=payload,
    )
    application.append_timeline(entry)
    return entry


def start_history(application: Application, actor_id: Optional[str]) -> None:
    """Seed the history of a new application so its last entry matches ``status``."""
    if application.status_history_log:
        return
    if application.status is None:
        application.status = S.DRAFT
    application.append_status_change(StatusChange(
        from_status=None,
        to_status=application.status.value,
        reason="Solicitud creada",
        actor_id=actor_id,
        timestamp=_now().isoformat(),
    ))


async def change_status(
    db: AsyncSession,
    application: Application,
    new_status: ApplicationStatus,
    *,
    reason: Optional[str] = None,
    actor_id: Optional[str] = None,
    enforce_guards: bool = True,
) -> bool:
    """Move an application to ``new_status``.

    Returns False (and logs a warning) when the application is already in
    ``new_status``; nothing is appended in that case. Raises
    IllegalTransitionError for moves outside TRANSITIONS, and for guarded
    moves unless the owning workflow passes ``enforce_guards=False``.
    """
    new_status = ApplicationStatus(new_status)
    old_status = application.status

    if old_status == new_status:
        logger.warning(
            "Application %s is already %s; status change ignored",
            application.id, new_status.value,
        )
        return False

    if not can_transition(old_status, new_status):
        raise IllegalTransitionError(old_status, new_status)

    if enforce_guards:
        if new_status == S.SUBMITTED:
            raise IllegalTransitionError(
                old_status, new_status,
                "Applications enter SUBMITTED only through submission",
            )
        if old_status == S.CORRECTIONS_PENDING and new_status == S.IN_REVIEW:
            raise IllegalTransitionError(
                old_status, new_status,
                "Applications leave CORRECTIONS_PENDING only when every correction is done",
            )

    now = _now()
    application.status = new_status
    timestamp_field = _TIMESTAMP_FIELDS.get(new_status)
    if timestamp_field:
        setattr(application, timestamp_field, now)
    if new_status == S.REJECTED and reason:
        application.rejection_reason = reason

    application.append_status_change(StatusChange(
        from_status=old_status.value,
        to_status=new_status.value,
        reason=reason,
        actor_id=actor_id,
        timestamp=now.isoformat(),
    ))
    add_timeline_entry(
        application,
        TimelineAction.STATUS_CHANGED,
        {
            "from": old_status.value,
            "to": new_status.value,
            "from_label": old_status.label,
            "to_label": new_status.label,
            "reason": reason,
        },
        actor_id,
        at=now,
    )
    await audit.emit(
        db,
        AuditAction.APPLICATION_UPDATED,
        application.tenant_id,
        entity_type="application",
        entity_id=application.id,
        actor_id=actor_id,
        old_values={"status": old_status.value},
        new_values={"status": new_status.value, "reason": reason},
    )
    await db.flush()

    logger.info(
        "Application %s: %s -> %s (%s)",
        application.id, old_status.value, new_status.value, reason or "no reason",
    )
    await notifier.publish(notifier.APPLICATION_STATUS_CHANGED, {
        "application_id": application.id,
        "applicant_id": application.applicant_id,
        "from": old_status.value,
        "to": new_status.value,
        "reason": reason,
    })
    return True
