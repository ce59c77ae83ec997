"""Applicant-side application workflow: create, submit, cancel, references."""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy import select, func as sa_func
from sqlalchemy.ext.asyncio import AsyncSession

from loanflow.config import settings
from loanflow.models.applicant import Applicant
from loanflow.models.application import Application, ApplicationStatus, TimelineAction
from loanflow.models.audit import AuditAction
from loanflow.models.reference import ApplicationReference
from loanflow.services import audit
from loanflow.services.application_state_machine import (
    CANCELLABLE_STATES,
    add_timeline_entry,
    change_status,
    start_history,
)
from loanflow.services.completeness import check_completeness
from loanflow.services.context import Actor
from loanflow.services.errors import (
    IllegalTransitionError,
    IncompleteDataError,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)

SUBMITTABLE_STATES = frozenset({ApplicationStatus.DRAFT, ApplicationStatus.DOCS_PENDING})
REFERENCE_EDITABLE_STATES = frozenset({
    ApplicationStatus.DRAFT, ApplicationStatus.DOCS_PENDING, ApplicationStatus.SUBMITTED,
})


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

async def get_applicant_for_actor(db: AsyncSession, actor: Actor) -> Applicant:
    result = await db.execute(
        select(Applicant).where(
            Applicant.user_id == actor.id,
            Applicant.tenant_id == actor.tenant_id,
            Applicant.is_active.is_(True),
        )
    )
    applicant = result.scalar_one_or_none()
    if applicant is None:
        raise NotFoundError("No applicant profile found")
    return applicant


async def lock_applicant(db: AsyncSession, applicant_id: int) -> Applicant:
    """Load the applicant with a row lock held until the transaction ends.

    Every correction, document upload and reconciliation for one applicant
    serializes on this lock.
    """
    result = await db.execute(
        select(Applicant)
        .where(Applicant.id == applicant_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    applicant = result.scalar_one_or_none()
    if applicant is None:
        raise NotFoundError(f"Applicant {applicant_id} not found")
    return applicant


async def lock_application(db: AsyncSession, application: Application) -> Applicant:
    """Take the applicant lock, then reload ``application`` in place.

    Status checks made after this call see the last committed status and
    logs, not the copy loaded before another writer released the lock.
    """
    applicant = await lock_applicant(db, application.applicant_id)
    await db.execute(
        select(Application)
        .where(Application.id == application.id)
        .execution_options(populate_existing=True)
    )
    return applicant


async def get_application(
    db: AsyncSession, application_id: int, *, applicant_id: Optional[int] = None
) -> Application:
    application = await db.get(Application, application_id)
    if application is None or (applicant_id is not None and application.applicant_id != applicant_id):
        raise NotFoundError("Solicitud no encontrada")
    return application


async def list_applications(
    db: AsyncSession,
    applicant_id: int,
    statuses: Optional[Iterable[ApplicationStatus]] = None,
) -> list[Application]:
    q = (
        select(Application)
        .where(Application.applicant_id == applicant_id)
        .order_by(Application.id)
        .execution_options(populate_existing=True)
    )
    if statuses is not None:
        q = q.where(Application.status.in_(list(statuses)))
    result = await db.execute(q)
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------

async def _next_folio(db: AsyncSession) -> str:
    """Generate the next sequential folio: LF-YYYY-NNNNNN."""
    year = datetime.now(timezone.utc).year
    prefix = f"LF-{year}-"
    result = await db.execute(
        select(sa_func.max(Application.folio)).where(Application.folio.like(f"{prefix}%"))
    )
    last = result.scalar_one_or_none()
    seq = int(last.replace(prefix, "")) + 1 if last else 1
    return f"{prefix}{seq:06d}"


async def create_application(
    db: AsyncSession,
    applicant: Applicant,
    *,
    product_id: Optional[int] = None,
    purpose: Optional[str] = None,
    requested_amount: Optional[Decimal] = None,
    term_months: Optional[int] = None,
    actor_id: Optional[str] = None,
) -> Application:
    application = Application(
        tenant_id=applicant.tenant_id,
        folio=await _next_folio(db),
        applicant_id=applicant.id,
        product_id=product_id,
        purpose=purpose,
        requested_amount=requested_amount,
        term_months=term_months,
        status=ApplicationStatus.DRAFT,
        status_history_log=[],
        timeline_log=[],
        documents=[],
        references=[],
    )
    start_history(application, actor_id)
    db.add(application)
    await db.flush()
    logger.info("Created application %s for applicant %s", application.folio, applicant.id)
    return application


async def submit_application(
    db: AsyncSession, application: Application, actor: Actor
) -> Application:
    """DRAFT | DOCS_PENDING → SUBMITTED once every requirement is met.

    All failing requirements are reported together in IncompleteDataError.
    """
    applicant = await lock_application(db, application)
    if application.status not in SUBMITTABLE_STATES:
        raise IllegalTransitionError(
            application.status, ApplicationStatus.SUBMITTED,
            "Application cannot be submitted in current status",
        )

    await db.refresh(applicant, ["addresses", "employment_records"])
    await db.refresh(application, ["product", "documents", "references"])

    errors = check_completeness(applicant, application)
    if errors:
        logger.info("Application %s incomplete: %s", application.id, sorted(errors))
        raise IncompleteDataError(errors)

    await change_status(
        db, application, ApplicationStatus.SUBMITTED,
        reason="Application submitted by applicant",
        actor_id=actor.id,
        enforce_guards=False,
    )
    await audit.emit(
        db,
        AuditAction.APPLICATION_SUBMITTED,
        application.tenant_id,
        entity_type="application",
        entity_id=application.id,
        actor_id=actor.id,
        new_values={"applicant_id": applicant.id, "folio": application.folio},
    )
    return application


async def cancel_application(
    db: AsyncSession,
    application: Application,
    actor: Actor,
    reason: Optional[str] = None,
) -> Application:
    await lock_application(db, application)
    if application.status not in CANCELLABLE_STATES:
        raise IllegalTransitionError(
            application.status, ApplicationStatus.CANCELLED,
            "Application cannot be cancelled in current status",
        )
    reason = (reason or "").strip() or settings.default_cancel_reason
    await change_status(
        db, application, ApplicationStatus.CANCELLED,
        reason=reason,
        actor_id=actor.id,
    )
    await audit.emit(
        db,
        AuditAction.APPLICATION_CANCELLED,
        application.tenant_id,
        entity_type="application",
        entity_id=application.id,
        actor_id=actor.id,
        new_values={"reason": reason},
    )
    return application


async def add_reference(
    db: AsyncSession,
    application: Application,
    actor: Actor,
    *,
    name: str,
    relationship_type: str,
    phone: str,
    email: Optional[str] = None,
) -> ApplicationReference:
    await lock_application(db, application)
    if application.status not in REFERENCE_EDITABLE_STATES:
        raise ValidationError("Cannot add references in current status")

    maximum = settings.max_references
    if len(application.references) >= maximum:
        raise ValidationError(f"Maximum {maximum} references allowed")

    reference = ApplicationReference(
        name=" ".join(name.split()).upper(),
        relationship_type=relationship_type.strip(),
        phone=phone.strip(),
        email=email,
    )
    application.references.append(reference)
    await db.flush()

    add_timeline_entry(
        application,
        TimelineAction.REFERENCE_ADDED,
        {"reference_id": reference.id, "name": reference.name},
        actor.id,
    )
    await audit.emit(
        db,
        AuditAction.REFERENCE_ADDED,
        application.tenant_id,
        entity_type="application_reference",
        entity_id=reference.id,
        actor_id=actor.id,
        new_values={"application_id": application.id, "name": reference.name},
    )
    return reference
