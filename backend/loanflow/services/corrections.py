"""Applicant-side correction workflow.

A correction is accepted only for a field the reviewer REJECTED. Submitting
one writes the new value to the backing record, closes the rejection with a
history entry, narrates the change on every application of the applicant,
and lets the reconciler decide whether review can resume. Retrying a
correction that already went through finds no REJECTED row and changes
nothing.
"""

import logging
from dataclasses import asdict, dataclass
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from loanflow.config import settings
from loanflow.models.application import Application, TimelineAction
from loanflow.models.audit import AuditAction
from loanflow.models.document import Document, DocumentStatus
from loanflow.models.verification import NAME_FIELDS, VerificationStatus
from loanflow.services import audit, notifier, verification_store
from loanflow.services.application_state_machine import (
    ACTIVE_REVIEW_STATES,
    add_timeline_entry,
)
from loanflow.services.applications import (
    get_applicant_for_actor,
    list_applications,
    lock_applicant,
)
from loanflow.services.context import Actor, RequestMeta
from loanflow.services.diff_formatter import diff, format_summary
from loanflow.services.errors import NotFoundError, ValidationError
from loanflow.services.field_update_router import (
    address_snapshot,
    apply_correction,
    employment_snapshot,
    live_value,
)
from loanflow.services.geolocation import approximate_location
from loanflow.services.reconciler import ReconcileResult, reconcile

logger = logging.getLogger(__name__)

NO_PENDING_CORRECTION = "No hay corrección pendiente para este campo"


@dataclass(frozen=True)
class CorrectionResult:
    field_name: str
    field_label: str
    applied: bool
    changes: Optional[dict[str, str]] = None
    old_summary: Optional[str] = None
    new_summary: Optional[str] = None
    reason: Optional[str] = None
    reconciliation: Optional[ReconcileResult] = None

    @property
    def status(self) -> str:
        return "corrected" if self.applied else "not_applied"


async def _close_covered_name_parts(
    db: AsyncSession, applicant_id: int, corrected_field, submitted: Any, stored: Any
) -> list[str]:
    """A composite name correction also fixes rejected sibling name parts it carries."""
    if corrected_field not in NAME_FIELDS or not isinstance(submitted, dict):
        return []
    covered = []
    for sibling in NAME_FIELDS:
        if sibling == corrected_field or submitted.get(sibling.value) is None:
            continue
        row = await verification_store.get(db, applicant_id, sibling)
        if row is not None and row.status == VerificationStatus.REJECTED:
            await verification_store.mark_covered(db, row, stored)
            covered.append(sibling.value)
    return covered


async def submit_correction(
    db: AsyncSession,
    actor: Actor,
    field_name: object,
    new_value: Any,
    meta: Optional[RequestMeta] = None,
) -> CorrectionResult:
    field = verification_store.coerce_field(field_name)
    if new_value is None or (isinstance(new_value, str) and not new_value.strip()):
        raise ValidationError("new_value is required", {"new_value": ["El valor es requerido"]})

    profile = await get_applicant_for_actor(db, actor)
    applicant = await lock_applicant(db, profile.id)
    label = verification_store.display_label(field)

    verification = await verification_store.get(db, applicant.id, field)
    if verification is None or verification.status != VerificationStatus.REJECTED:
        raise NotFoundError(NO_PENDING_CORRECTION)

    routed = apply_correction(applicant, field, new_value, verification)
    if not routed.applied:
        logger.warning(
            "Correction of %s for applicant %s not applied: %s",
            field.value, applicant.id, routed.reason,
        )
        return CorrectionResult(field.value, label, applied=False, reason=routed.reason)

    changes = diff(routed.old_value, routed.current_value, field.spec.diff_type) or None
    old_summary = format_summary(routed.old_value)
    new_summary = format_summary(routed.current_value)

    await verification_store.correct(
        db, verification, routed.old_value, routed.current_value, actor.as_dict()
    )
    covered = await _close_covered_name_parts(db, applicant.id, field, new_value, routed.current_value)

    meta = meta or RequestMeta()
    await audit.emit(
        db,
        AuditAction.DATA_CORRECTED,
        applicant.tenant_id,
        entity_type="data_verification",
        entity_id=verification.id,
        actor_id=actor.id,
        old_values={"value": routed.old_value},
        new_values={
            "value": routed.current_value,
            "field_name": field.value,
            "field_label": label,
            "covered": covered,
        },
        ip_address=meta.ip_address,
    )

    location = await approximate_location(meta.ip_address)
    for application in await list_applications(db, applicant.id):
        add_timeline_entry(
            application,
            TimelineAction.DATA_CORRECTED,
            {
                "field_name": field.value,
                "field_label": label,
                "changes": changes,
                "old_value": old_summary,
                "new_value": new_summary,
                "ip_address": meta.ip_address,
                "user_agent": meta.user_agent,
                "location": location,
                "geolocation": meta.geolocation,
            },
            actor.id,
        )
    await db.flush()

    reconciliation = await reconcile(db, applicant, actor)
    logger.info("Applicant %s corrected %s", applicant.id, field.value)

    await notifier.publish(notifier.DATA_CORRECTION_SUBMITTED, {
        "verification_id": verification.id,
        "applicant_id": applicant.id,
        "field_name": field.value,
        "field_label": label,
        "old_value": old_summary,
        "new_value": new_summary,
    })
    return CorrectionResult(
        field_name=field.value,
        field_label=label,
        applied=True,
        changes=changes,
        old_summary=old_summary,
        new_summary=new_summary,
        reconciliation=reconciliation,
    )


# ---------------------------------------------------------------------------
# Read side
# ---------------------------------------------------------------------------

def applicant_form_data(applicant) -> dict:
    """Current applicant data, shaped for pre-filling the correction forms."""
    employment = employment_snapshot(applicant.current_employment) or {
        "type": "EMPLOYEE",
        "company_name": "",
        "position": "",
        "monthly_income": 0,
        "seniority_months": 0,
    }
    return {
        "first_name": applicant.first_name,
        "last_name_1": applicant.last_name_1,
        "last_name_2": applicant.last_name_2,
        "curp": applicant.curp,
        "rfc": applicant.rfc,
        "ine_clave": applicant.ine_clave,
        "birth_date": applicant.birth_date.isoformat() if applicant.birth_date else None,
        "phone": applicant.phone,
        "email": applicant.email,
        "address": address_snapshot(applicant.primary_address),
        "employment": employment,
    }


async def _rejected_documents(db: AsyncSession, applicant_id: int) -> list[dict]:
    result = await db.execute(
        select(Document)
        .join(Application, Document.application_id == Application.id)
        .where(
            Application.applicant_id == applicant_id,
            Document.status == DocumentStatus.REJECTED,
            Document.is_active.is_(True),
        )
        .order_by(Document.id)
    )
    return [
        {
            "id": doc.id,
            "application_id": doc.application_id,
            "type": doc.type.value,
            "type_label": doc.type.label,
            "name": doc.file_name,
            "rejection_reason": doc.rejection_reason,
            "rejected_at": doc.reviewed_at.isoformat() if doc.reviewed_at else None,
        }
        for doc in result.scalars().all()
    ]


def _rejected_field_sections(applicant, rows) -> list[dict]:
    """One entry per rejected field; with collapsed names, one entry for all name parts."""
    sections: list[dict] = []
    name_section: Optional[dict] = None
    for row in rows:
        collapse = row.field_name in NAME_FIELDS and settings.collapse_name_fields
        if collapse and name_section is not None:
            name_section["field_names"].append(row.field_name.value)
            if row.rejection_reason and row.rejection_reason not in name_section["rejection_reason"]:
                name_section["rejection_reason"] += f"; {row.rejection_reason}"
            if row.rejected_at and row.rejected_at.isoformat() > (name_section["rejected_at"] or ""):
                name_section["rejected_at"] = row.rejected_at.isoformat()
            continue

        section = {
            "id": row.id,
            "field_name": row.field_name.value,
            "field_names": [row.field_name.value],
            "field_label": verification_store.display_label(row.field_name),
            "current_value": format_summary(live_value(applicant, row.field_name)),
            "rejection_reason": row.rejection_reason or "",
            "rejected_at": row.rejected_at.isoformat() if row.rejected_at else None,
        }
        if collapse:
            name_section = section
        sections.append(section)
    return sections


async def corrections_overview(db: AsyncSession, actor: Actor) -> dict:
    applicant = await get_applicant_for_actor(db, actor)

    rejected_fields = _rejected_field_sections(
        applicant, await verification_store.list_rejected(db, applicant.id)
    )
    rejected_documents = await _rejected_documents(db, applicant.id)
    history = await verification_store.list_correction_history(db, applicant.id)
    pending = await list_applications(db, applicant.id, statuses=ACTIVE_REVIEW_STATES)

    return {
        "rejected_fields": rejected_fields,
        "rejected_documents": rejected_documents,
        "correction_history": [asdict(item) for item in history],
        "applicant_data": applicant_form_data(applicant),
        "pending_applications": [
            {
                "id": app.id,
                "folio": app.folio,
                "status": app.status.value,
                "status_label": app.status.label,
            }
            for app in pending
        ],
        "has_corrections_pending": bool(rejected_fields or rejected_documents),
    }


async def correction_detail(db: AsyncSession, actor: Actor, field_name: object) -> dict:
    field = verification_store.coerce_field(field_name)
    applicant = await get_applicant_for_actor(db, actor)
    row = await verification_store.get(db, applicant.id, field)
    if row is None or row.status != VerificationStatus.REJECTED:
        raise NotFoundError("Campo no encontrado o no rechazado")

    return {
        "field_name": field.value,
        "field_label": verification_store.display_label(field),
        "current_value": live_value(applicant, field),
        "status": row.status.value,
        "rejection_reason": row.rejection_reason,
        "rejected_at": row.rejected_at.isoformat() if row.rejected_at else None,
        "rejected_by": row.verified_by,
        "correction_count": row.correction_count,
    }
