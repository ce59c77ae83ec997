"""Applicant application endpoints: submit, cancel, timeline, references, documents."""

from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from loanflow.api.deps import request_meta
from loanflow.auth_utils import require_applicant
from loanflow.database import get_db
from loanflow.models.application import Application
from loanflow.schemas import (
    ApplicationResponse,
    CancelRequest,
    DocumentResponse,
    DocumentUpload,
    ReferenceCreate,
    ReferenceResponse,
    StatusChangeResponse,
    TimelineEntryResponse,
    TimelineResponse,
)
from loanflow.services import applications, documents
from loanflow.services.application_state_machine import get_allowed_transitions
from loanflow.services.context import Actor

router = APIRouter()


def application_response(application: Application) -> ApplicationResponse:
    return ApplicationResponse(
        id=application.id,
        folio=application.folio,
        status=application.status.value,
        status_label=application.status.label,
        purpose=application.purpose,
        submitted_at=application.submitted_at,
        allowed_transitions=[s.value for s in get_allowed_transitions(application.status)],
    )


async def _own_application(db: AsyncSession, actor: Actor, application_id: int) -> Application:
    applicant = await applications.get_applicant_for_actor(db, actor)
    return await applications.get_application(db, application_id, applicant_id=applicant.id)


@router.post("/{application_id}/submit", response_model=ApplicationResponse)
async def submit_application(
    application_id: int,
    actor: Actor = Depends(require_applicant),
    db: AsyncSession = Depends(get_db),
):
    application = await _own_application(db, actor, application_id)
    await applications.submit_application(db, application, actor)
    return application_response(application)


@router.post("/{application_id}/cancel", response_model=ApplicationResponse)
async def cancel_application(
    application_id: int,
    data: Optional[CancelRequest] = None,
    actor: Actor = Depends(require_applicant),
    db: AsyncSession = Depends(get_db),
):
    application = await _own_application(db, actor, application_id)
    await applications.cancel_application(db, application, actor, data.reason if data else None)
    return application_response(application)


@router.get("/{application_id}/timeline", response_model=TimelineResponse)
async def get_timeline(
    application_id: int,
    actor: Actor = Depends(require_applicant),
    db: AsyncSession = Depends(get_db),
):
    application = await _own_application(db, actor, application_id)
    return TimelineResponse(
        application_id=application.id,
        status=application.status.value,
        status_history=[
            StatusChangeResponse(
                from_status=entry.from_status,
                to_status=entry.to_status,
                reason=entry.reason,
                actor_id=entry.actor_id,
                timestamp=entry.timestamp,
            )
            for entry in application.status_history
        ],
        timeline=[
            TimelineEntryResponse(
                action=entry.action,
                actor_id=entry.actor_id,
                timestamp=entry.timestamp,
                payload=entry.payload,
            )
            for entry in application.timeline
        ],
    )


@router.post("/{application_id}/references", response_model=ReferenceResponse, status_code=201)
async def add_reference(
    application_id: int,
    data: ReferenceCreate,
    actor: Actor = Depends(require_applicant),
    db: AsyncSession = Depends(get_db),
):
    application = await _own_application(db, actor, application_id)
    reference = await applications.add_reference(
        db, application, actor,
        name=data.full_name,
        relationship_type=data.relationship,
        phone=data.phone,
        email=data.email,
    )
    return ReferenceResponse.model_validate(reference)


@router.post("/{application_id}/documents", response_model=DocumentResponse, status_code=201)
async def upload_document(
    application_id: int,
    data: DocumentUpload,
    request: Request,
    actor: Actor = Depends(require_applicant),
    db: AsyncSession = Depends(get_db),
):
    application = await _own_application(db, actor, application_id)
    result = await documents.upload_document(
        db, application, actor,
        doc_type=data.type,
        file_name=data.file_name,
        mime_type=data.mime_type,
        file_size=data.file_size,
        meta=request_meta(request),
    )
    doc = result.document
    return DocumentResponse(
        id=doc.id,
        application_id=doc.application_id,
        type=doc.type.value,
        status=doc.status.value,
        file_name=doc.file_name,
        rejection_reason=doc.rejection_reason,
        is_active=doc.is_active,
        replaced=result.replaced,
    )
