"""Reviewer actions on an application: field verification and status moves."""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from loanflow.models.application import Application, ApplicationStatus, TimelineAction
from loanflow.models.audit import AuditAction
from loanflow.models.verification import DataVerification, VerificationStatus
from loanflow.services import audit, verification_store
from loanflow.services.application_state_machine import (
    add_timeline_entry,
    can_transition,
    change_status,
)
from loanflow.services.applications import lock_application
from loanflow.services.context import Actor
from loanflow.services.errors import IllegalTransitionError
from loanflow.services.field_update_router import live_value
from loanflow.services.reconciler import reconcile

logger = logging.getLogger(__name__)


async def reject_field(
    db: AsyncSession,
    application: Application,
    field_name: object,
    reason: str,
    actor: Actor,
) -> DataVerification:
    """Reject one applicant field and send the application back for corrections."""
    field = verification_store.coerce_field(field_name)
    applicant = await lock_application(db, application)
    needs_transition = application.status != ApplicationStatus.CORRECTIONS_PENDING
    if needs_transition and not can_transition(application.status, ApplicationStatus.CORRECTIONS_PENDING):
        raise IllegalTransitionError(application.status, ApplicationStatus.CORRECTIONS_PENDING)

    label = verification_store.display_label(field)
    verification = await verification_store.reject(
        db,
        applicant.id,
        field,
        reason,
        tenant_id=applicant.tenant_id,
        field_value=live_value(applicant, field),
        rejected_by=actor.id,
    )

    add_timeline_entry(
        application,
        TimelineAction.DATA_REJECTED,
        {"field_name": field.value, "field_label": label, "reason": verification.rejection_reason},
        actor.id,
    )
    await audit.emit(
        db,
        AuditAction.DATA_REJECTED,
        applicant.tenant_id,
        entity_type="data_verification",
        entity_id=verification.id,
        actor_id=actor.id,
        new_values={
            "application_id": application.id,
            "field_name": field.value,
            "field_label": label,
            "reason": verification.rejection_reason,
        },
    )
    if needs_transition:
        await change_status(
            db, application, ApplicationStatus.CORRECTIONS_PENDING,
            reason=f"Dato rechazado: {label}",
            actor_id=actor.id,
        )
    return verification


async def verify_field(
    db: AsyncSession,
    application: Application,
    field_name: object,
    actor: Actor,
    notes: Optional[str] = None,
) -> DataVerification:
    """Mark a field VERIFIED. Clearing the last rejection completes the cycle."""
    field = verification_store.coerce_field(field_name)
    applicant = await lock_application(db, application)
    previous = await verification_store.get(db, applicant.id, field)
    was_rejected = previous is not None and previous.status == VerificationStatus.REJECTED

    verification = await verification_store.verify(
        db,
        applicant.id,
        field,
        tenant_id=applicant.tenant_id,
        verified_by=actor.id,
        field_value=live_value(applicant, field),
        notes=notes,
    )
    await audit.emit(
        db,
        AuditAction.DATA_VERIFIED,
        applicant.tenant_id,
        entity_type="data_verification",
        entity_id=verification.id,
        actor_id=actor.id,
        new_values={"application_id": application.id, "field_name": field.value},
    )
    if was_rejected:
        await reconcile(db, applicant, actor)
    return verification


async def change_application_status(
    db: AsyncSession,
    application: Application,
    new_status: ApplicationStatus,
    actor: Actor,
    reason: Optional[str] = None,
) -> bool:
    """Staff-initiated move; guarded transitions stay with their workflows."""
    await lock_application(db, application)
    return await change_status(
        db, application, new_status,
        reason=reason,
        actor_id=actor.id,
    )
