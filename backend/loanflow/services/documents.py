"""Document upload and review.

A rejected document stays on record, inactive, after the applicant uploads
its replacement; it is purged only when a document of the same (canonical)
type is approved. Uploads into a CORRECTIONS_PENDING application trigger
reconciliation.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from loanflow.models.application import Application, ApplicationStatus, TimelineAction
from loanflow.models.audit import AuditAction
from loanflow.models.document import Document, DocumentStatus, DocumentType
from loanflow.services import audit, notifier
from loanflow.services.application_state_machine import (
    add_timeline_entry,
    can_transition,
    change_status,
)
from loanflow.services.applications import get_application, lock_application
from loanflow.services.context import Actor, RequestMeta
from loanflow.services.errors import NotFoundError, ValidationError
from loanflow.services.geolocation import approximate_location
from loanflow.services.reconciler import ReconcileResult, reconcile

logger = logging.getLogger(__name__)

# Documents can be uploaded while the application is still open on the applicant side
UPLOADABLE_STATES = frozenset({
    ApplicationStatus.DRAFT,
    ApplicationStatus.SUBMITTED,
    ApplicationStatus.IN_REVIEW,
    ApplicationStatus.DOCS_PENDING,
    ApplicationStatus.CORRECTIONS_PENDING,
})


@dataclass(frozen=True)
class UploadResult:
    document: Document
    replaced: bool
    reconciliation: Optional[ReconcileResult] = None


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _same_type(document: Document, doc_type: DocumentType) -> bool:
    return document.type.canonical == doc_type.canonical


async def get_document(db: AsyncSession, document_id: int, *, tenant_id: str) -> Document:
    document = await db.get(Document, document_id)
    if document is None:
        raise NotFoundError("Documento no encontrado")
    application = await db.get(Application, document.application_id)
    if application is None or application.tenant_id != tenant_id:
        raise NotFoundError("Documento no encontrado")
    return document


async def upload_document(
    db: AsyncSession,
    application: Application,
    actor: Actor,
    *,
    doc_type: object,
    file_name: str,
    mime_type: Optional[str] = None,
    file_size: Optional[int] = None,
    meta: Optional[RequestMeta] = None,
) -> UploadResult:
    parsed = DocumentType.parse(doc_type)
    if parsed is None:
        raise ValidationError(f"Tipo de documento inválido: {doc_type}")

    applicant = await lock_application(db, application)
    if application.status not in UPLOADABLE_STATES:
        raise ValidationError("Cannot upload documents in current status")

    replaced = False
    for existing in application.documents:
        if not existing.is_active or not _same_type(existing, parsed):
            continue
        if existing.status == DocumentStatus.APPROVED:
            raise ValidationError(f"{parsed.label}: el documento ya fue aprobado y no puede reemplazarse")
        existing.is_active = False
        replaced = replaced or existing.status == DocumentStatus.REJECTED

    document = Document(
        uploaded_by=actor.id,
        type=parsed,
        file_name=file_name,
        mime_type=mime_type,
        file_size=file_size,
        status=DocumentStatus.PENDING,
        is_active=True,
    )
    application.documents.append(document)
    await db.flush()

    meta = meta or RequestMeta()
    location = await approximate_location(meta.ip_address)
    add_timeline_entry(
        application,
        TimelineAction.DOC_UPLOADED,
        {
            "document": parsed.value,
            "document_id": document.id,
            "label": parsed.label,
            "file_name": file_name,
            "replaced": replaced,
            "ip_address": meta.ip_address,
            "user_agent": meta.user_agent,
            "location": location,
        },
        actor.id,
    )
    await audit.emit(
        db,
        AuditAction.DOCUMENT_UPLOADED,
        application.tenant_id,
        entity_type="document",
        entity_id=document.id,
        actor_id=actor.id,
        new_values={
            "application_id": application.id,
            "type": parsed.value,
            "file_name": file_name,
            "replaced": replaced,
        },
        ip_address=meta.ip_address,
    )
    logger.info(
        "Document %s (%s) uploaded to application %s%s",
        document.id, parsed.value, application.id, " as replacement" if replaced else "",
    )

    reconciliation = None
    if application.status == ApplicationStatus.CORRECTIONS_PENDING:
        reconciliation = await reconcile(db, applicant, actor)

    await notifier.publish(notifier.DOCUMENT_UPLOADED, {
        "document_id": document.id,
        "application_id": application.id,
        "applicant_id": applicant.id,
        "type": parsed.value,
        "replaced": replaced,
    })
    return UploadResult(document=document, replaced=replaced, reconciliation=reconciliation)


async def _load_for_review(
    db: AsyncSession, document_id: int, actor: Actor
) -> tuple[Document, Application]:
    """Resolve the document, then reload it and its application under the applicant lock."""
    document = await get_document(db, document_id, tenant_id=actor.tenant_id)
    application = await get_application(db, document.application_id)
    await lock_application(db, application)
    await db.refresh(document, ["status", "is_active", "rejection_reason", "reviewed_at"])
    if not document.is_active:
        raise ValidationError("Document has been replaced")
    return document, application


async def approve_document(db: AsyncSession, document_id: int, actor: Actor) -> Document:
    document, application = await _load_for_review(db, document_id, actor)
    if document.status == DocumentStatus.APPROVED:
        raise ValidationError("Document is already approved")

    document.status = DocumentStatus.APPROVED
    document.rejection_reason = None
    document.reviewed_at = _now()

    # The rejection records of the replaced uploads are no longer needed
    purged = [
        d for d in application.documents
        if d is not document
        and not d.is_active
        and d.status == DocumentStatus.REJECTED
        and _same_type(d, document.type)
    ]
    for stale in purged:
        application.documents.remove(stale)

    add_timeline_entry(
        application,
        TimelineAction.DOC_APPROVED,
        {"document": document.type.value, "document_id": document.id, "label": document.type.label},
        actor.id,
    )
    await audit.emit(
        db,
        AuditAction.DOCUMENT_APPROVED,
        application.tenant_id,
        entity_type="document",
        entity_id=document.id,
        actor_id=actor.id,
        new_values={"status": DocumentStatus.APPROVED.value, "purged": len(purged)},
    )
    await db.flush()
    return document


async def reject_document(
    db: AsyncSession, document_id: int, actor: Actor, reason: str
) -> Document:
    if not reason or not reason.strip():
        raise ValidationError("Rejection reason is required")
    document, application = await _load_for_review(db, document_id, actor)
    old_status = document.status
    document.status = DocumentStatus.REJECTED
    document.rejection_reason = reason.strip()
    document.reviewed_at = _now()

    add_timeline_entry(
        application,
        TimelineAction.DOC_REJECTED,
        {
            "document": document.type.value,
            "document_id": document.id,
            "label": document.type.label,
            "reason": document.rejection_reason,
        },
        actor.id,
    )
    await audit.emit(
        db,
        AuditAction.DOCUMENT_REJECTED,
        application.tenant_id,
        entity_type="document",
        entity_id=document.id,
        actor_id=actor.id,
        old_values={"status": old_status.value},
        new_values={"status": DocumentStatus.REJECTED.value, "reason": document.rejection_reason},
    )
    if can_transition(application.status, ApplicationStatus.CORRECTIONS_PENDING):
        await change_status(
            db, application, ApplicationStatus.CORRECTIONS_PENDING,
            reason=f"Documento rechazado: {document.type.label}",
            actor_id=actor.id,
        )
    await db.flush()
    return document
