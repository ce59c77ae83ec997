"""Correction-cycle reconciliation.

After any correction or document upload, decide whether the applicant has
cleared every outstanding rejection. Only then do all of the applicant's
CORRECTIONS_PENDING applications return to IN_REVIEW, with a reason that
names what was corrected during the cycle. One outstanding rejection, field
or document, blocks every application of the applicant.

Callers hold the applicant row lock (see ``applications.lock_applicant``).
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from loanflow.models.applicant import Applicant
from loanflow.models.application import Application, ApplicationStatus, TimelineAction
from loanflow.models.document import Document, DocumentStatus, document_type_label
from loanflow.services import verification_store
from loanflow.services.application_state_machine import change_status
from loanflow.services.applications import list_applications
from loanflow.services.context import Actor

logger = logging.getLogger(__name__)

GENERIC_REASON = "Correcciones completadas"


@dataclass(frozen=True)
class ReconcileResult:
    transitioned: tuple[int, ...] = ()
    reason: Optional[str] = None
    blocked_by: Optional[str] = None
    corrected_fields: tuple[str, ...] = field(default_factory=tuple)
    uploaded_documents: tuple[str, ...] = field(default_factory=tuple)

    @property
    def completed(self) -> bool:
        return bool(self.transitioned)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes for timezone-aware columns
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def cycle_start(application: Application) -> Optional[datetime]:
    """When the application most recently entered CORRECTIONS_PENDING."""
    for entry in reversed(application.status_history):
        if entry.to_status == ApplicationStatus.CORRECTIONS_PENDING.value:
            try:
                return _as_utc(entry.at)
            except (TypeError, ValueError):
                return None
    return None


def uploaded_documents_since(application: Application, start: datetime) -> list[str]:
    """Distinct document labels uploaded at or after ``start``, in upload order."""
    labels: list[str] = []
    for entry in application.timeline:
        if entry.action != TimelineAction.DOC_UPLOADED.value:
            continue
        try:
            uploaded_at = _as_utc(entry.at)
        except (TypeError, ValueError):
            continue
        if uploaded_at < start:
            continue
        code = entry.payload.get("document")
        if not code:
            continue
        label = document_type_label(code)
        if label not in labels:
            labels.append(label)
    return labels


async def corrected_fields_since(
    db: AsyncSession, applicant_id: int, start: datetime
) -> list[str]:
    """Distinct labels of fields corrected at or after ``start``.

    Name parts share one label, so they collapse into one entry at the
    position of the first corrected part.
    """
    labels: list[str] = []
    for verification in await verification_store.list_corrected(db, applicant_id):
        corrected_at = _as_utc(verification.corrected_at)
        if corrected_at is None or corrected_at < start:
            continue
        label = verification_store.display_label(verification.field_name)
        if label not in labels:
            labels.append(label)
    return labels


def build_reason(corrected_fields: list[str], uploaded_documents: list[str]) -> str:
    parts = []
    if corrected_fields:
        parts.append("Datos corregidos: " + ", ".join(corrected_fields))
    if uploaded_documents:
        parts.append("Documentos actualizados: " + ", ".join(uploaded_documents))
    return ". ".join(parts) or GENERIC_REASON


async def has_rejected_documents(db: AsyncSession, applicant_id: int) -> bool:
    result = await db.execute(
        select(Document.id)
        .join(Application, Document.application_id == Application.id)
        .where(
            Application.applicant_id == applicant_id,
            Document.status == DocumentStatus.REJECTED,
            Document.is_active.is_(True),
        )
        .limit(1)
    )
    return result.first() is not None


async def reconcile(
    db: AsyncSession, applicant: Applicant, actor: Optional[Actor]
) -> ReconcileResult:
    """Return CORRECTIONS_PENDING applications to IN_REVIEW when nothing is left to correct."""
    if await verification_store.list_rejected(db, applicant.id):
        logger.info("Applicant %s still has rejected fields; not reconciled", applicant.id)
        return ReconcileResult(blocked_by="fields")

    if await has_rejected_documents(db, applicant.id):
        logger.info("Applicant %s still has rejected documents; not reconciled", applicant.id)
        return ReconcileResult(blocked_by="documents")

    pending = await list_applications(
        db, applicant.id, statuses=[ApplicationStatus.CORRECTIONS_PENDING]
    )
    if not pending:
        return ReconcileResult()

    corrected: list[str] = []
    uploaded: list[str] = []
    start = cycle_start(pending[0])
    if start is None:
        logger.warning(
            "Application %s has no CORRECTIONS_PENDING history entry; using generic reason",
            pending[0].id,
        )
        reason = GENERIC_REASON
    else:
        corrected = await corrected_fields_since(db, applicant.id, start)
        uploaded = uploaded_documents_since(pending[0], start)
        reason = build_reason(corrected, uploaded)

    actor_id = actor.id if actor else None
    transitioned = []
    for application in pending:
        changed = await change_status(
            db, application, ApplicationStatus.IN_REVIEW,
            reason=reason,
            actor_id=actor_id,
            enforce_guards=False,
        )
        if changed:
            transitioned.append(application.id)

    logger.info(
        "Applicant %s corrections complete; %d application(s) back in review",
        applicant.id, len(transitioned),
    )
    return ReconcileResult(
        transitioned=tuple(transitioned),
        reason=reason,
        corrected_fields=tuple(corrected),
        uploaded_documents=tuple(uploaded),
    )
