"""Reviewer endpoints: status moves, field verification, document review."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from loanflow.api.applications import application_response
from loanflow.auth_utils import require_staff
from loanflow.database import get_db
from loanflow.models.document import Document
from loanflow.models.verification import DataVerification
from loanflow.schemas import (
    DocumentRejectRequest,
    DocumentResponse,
    FieldRejectRequest,
    FieldVerifyRequest,
    StatusChangeRequest,
    StatusChangeResult,
    VerificationResponse,
)
from loanflow.services import applications, documents, review, verification_store
from loanflow.services.context import Actor
from loanflow.services.errors import NotFoundError

router = APIRouter()


async def _tenant_application(db: AsyncSession, actor: Actor, application_id: int):
    application = await applications.get_application(db, application_id)
    if application.tenant_id != actor.tenant_id:
        raise NotFoundError("Solicitud no encontrada")
    return application


def _verification_response(verification: DataVerification) -> VerificationResponse:
    return VerificationResponse(
        id=verification.id,
        field_name=verification.field_name.value,
        field_label=verification_store.display_label(verification.field_name),
        status=verification.status.value,
        rejection_reason=verification.rejection_reason,
    )


def _document_response(doc: Document) -> DocumentResponse:
    return DocumentResponse(
        id=doc.id,
        application_id=doc.application_id,
        type=doc.type.value,
        status=doc.status.value,
        file_name=doc.file_name,
        rejection_reason=doc.rejection_reason,
        is_active=doc.is_active,
    )


@router.patch("/applications/{application_id}/status", response_model=StatusChangeResult)
async def change_status(
    application_id: int,
    data: StatusChangeRequest,
    actor: Actor = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    application = await _tenant_application(db, actor, application_id)
    changed = await review.change_application_status(db, application, data.status, actor, data.reason)
    return StatusChangeResult(changed=changed, application=application_response(application))


@router.post(
    "/applications/{application_id}/fields/{field_name}/reject",
    response_model=VerificationResponse,
)
async def reject_field(
    application_id: int,
    field_name: str,
    data: FieldRejectRequest,
    actor: Actor = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    application = await _tenant_application(db, actor, application_id)
    verification = await review.reject_field(db, application, field_name, data.reason, actor)
    return _verification_response(verification)


@router.post(
    "/applications/{application_id}/fields/{field_name}/verify",
    response_model=VerificationResponse,
)
async def verify_field(
    application_id: int,
    field_name: str,
    data: FieldVerifyRequest | None = None,
    actor: Actor = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    application = await _tenant_application(db, actor, application_id)
    verification = await review.verify_field(
        db, application, field_name, actor, data.notes if data else None
    )
    return _verification_response(verification)


@router.post("/documents/{document_id}/approve", response_model=DocumentResponse)
async def approve_document(
    document_id: int,
    actor: Actor = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    document = await documents.approve_document(db, document_id, actor)
    return _document_response(document)


@router.post("/documents/{document_id}/reject", response_model=DocumentResponse)
async def reject_document(
    document_id: int,
    data: DocumentRejectRequest,
    actor: Actor = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    document = await documents.reject_document(db, document_id, actor, data.reason)
    return _document_response(document)
