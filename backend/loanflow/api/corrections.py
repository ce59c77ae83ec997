"""Applicant correction endpoints."""

from fastapi import APIRouter, Depends, Request
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy.ext.asyncio import AsyncSession

from loanflow.api.deps import request_meta
from loanflow.auth_utils import require_applicant
from loanflow.config import settings
from loanflow.database import get_db
from loanflow.schemas import (
    CorrectionDetailResponse,
    CorrectionResponse,
    CorrectionsOverviewResponse,
    CorrectionSubmit,
    ReconciliationResponse,
)
from loanflow.services import corrections
from loanflow.services.context import Actor
from loanflow.services.errors import ConflictError

router = APIRouter()
limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)


@router.get("", response_model=CorrectionsOverviewResponse)
async def list_corrections(
    actor: Actor = Depends(require_applicant),
    db: AsyncSession = Depends(get_db),
):
    """Everything the applicant still has to fix, plus what they already fixed."""
    return await corrections.corrections_overview(db, actor)


@router.post("", response_model=CorrectionResponse)
@limiter.limit(settings.correction_rate_limit)
async def submit_correction(
    data: CorrectionSubmit,
    request: Request,
    actor: Actor = Depends(require_applicant),
    db: AsyncSession = Depends(get_db),
):
    geolocation = data.geolocation.model_dump() if data.geolocation else None
    result = await corrections.submit_correction(
        db, actor, data.field_name, data.new_value, request_meta(request, geolocation)
    )
    if not result.applied:
        raise ConflictError(result.reason or "La corrección no pudo aplicarse")

    reconciliation = None
    if result.reconciliation is not None:
        reconciliation = ReconciliationResponse(
            completed=result.reconciliation.completed,
            reason=result.reconciliation.reason,
            transitioned=list(result.reconciliation.transitioned),
            blocked_by=result.reconciliation.blocked_by,
        )
    return CorrectionResponse(
        field_name=result.field_name,
        field_label=result.field_label,
        status=result.status,
        changes=result.changes,
        old_value=result.old_summary,
        new_value=result.new_summary,
        reconciliation=reconciliation,
    )


@router.get("/{field_name}", response_model=CorrectionDetailResponse)
async def get_correction(
    field_name: str,
    actor: Actor = Depends(require_applicant),
    db: AsyncSession = Depends(get_db),
):
    return await corrections.correction_detail(db, actor, field_name)
