"""Pydantic schemas for request/response validation."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from loanflow.models.application import ApplicationStatus


# ── Corrections ───────────────────────────────────────

class GeolocationPayload(BaseModel):
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    accuracy: Optional[float] = Field(None, ge=0)
    timestamp: Optional[float] = None


class CorrectionSubmit(BaseModel):
    field_name: str = Field(min_length=1, max_length=100)
    new_value: Any
    geolocation: Optional[GeolocationPayload] = None

    @field_validator("new_value")
    @classmethod
    def _require_value(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValueError("new_value is required")
        return value


class ReconciliationResponse(BaseModel):
    completed: bool
    reason: Optional[str] = None
    transitioned: list[int] = []
    blocked_by: Optional[str] = None


class CorrectionResponse(BaseModel):
    field_name: str
    field_label: str
    status: str
    changes: Optional[dict[str, str]] = None
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    reconciliation: Optional[ReconciliationResponse] = None


class RejectedFieldResponse(BaseModel):
    id: int
    field_name: str
    field_names: list[str] = []
    field_label: str
    current_value: str
    rejection_reason: Optional[str] = None
    rejected_at: Optional[str] = None


class RejectedDocumentResponse(BaseModel):
    id: int
    application_id: int
    type: str
    type_label: str
    name: str
    rejection_reason: Optional[str] = None
    rejected_at: Optional[str] = None


class CorrectionHistoryResponse(BaseModel):
    field_name: str
    field_label: str
    old_value: Any = None
    new_value: Any = None
    rejection_reason: Optional[str] = None
    corrected_by: Optional[dict] = None
    corrected_at: str


class PendingApplicationResponse(BaseModel):
    id: int
    folio: str
    status: str
    status_label: str


class CorrectionsOverviewResponse(BaseModel):
    rejected_fields: list[RejectedFieldResponse]
    rejected_documents: list[RejectedDocumentResponse]
    correction_history: list[CorrectionHistoryResponse]
    applicant_data: dict[str, Any]
    pending_applications: list[PendingApplicationResponse]
    has_corrections_pending: bool


class CorrectionDetailResponse(BaseModel):
    field_name: str
    field_label: str
    current_value: Any = None
    status: str
    rejection_reason: Optional[str] = None
    rejected_at: Optional[str] = None
    rejected_by: Optional[str] = None
    correction_count: int = 0


# ── Applications ──────────────────────────────────────

class CancelRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class ReferenceCreate(BaseModel):
    full_name: str = Field(min_length=1, max_length=200)
    relationship: str = Field(min_length=1, max_length=50)
    phone: str = Field(min_length=1, max_length=20)
    email: Optional[EmailStr] = None


class ReferenceResponse(BaseModel):
    id: int
    name: str
    relationship_type: str
    phone: str
    email: Optional[str] = None

    model_config = {"from_attributes": True}


class DocumentUpload(BaseModel):
    """Metadata of an uploaded file; storage itself happens elsewhere."""
    type: str = Field(min_length=1, max_length=50)
    file_name: str = Field(min_length=1, max_length=255)
    mime_type: Optional[str] = Field(None, max_length=100)
    file_size: Optional[int] = Field(None, ge=0)


class DocumentResponse(BaseModel):
    id: int
    application_id: int
    type: str
    status: str
    file_name: str
    rejection_reason: Optional[str] = None
    is_active: bool
    replaced: bool = False


class StatusChangeResponse(BaseModel):
    from_status: Optional[str] = None
    to_status: str
    reason: Optional[str] = None
    actor_id: Optional[str] = None
    timestamp: str


class TimelineEntryResponse(BaseModel):
    action: str
    actor_id: Optional[str] = None
    timestamp: str
    payload: dict[str, Any] = {}


class ApplicationResponse(BaseModel):
    id: int
    folio: str
    status: str
    status_label: str
    purpose: Optional[str] = None
    submitted_at: Optional[datetime] = None
    allowed_transitions: list[str] = []


class TimelineResponse(BaseModel):
    application_id: int
    status: str
    status_history: list[StatusChangeResponse]
    timeline: list[TimelineEntryResponse]


# ── Staff ─────────────────────────────────────────────

class StatusChangeRequest(BaseModel):
    status: ApplicationStatus
    reason: Optional[str] = Field(None, max_length=500)


class StatusChangeResult(BaseModel):
    changed: bool
    application: ApplicationResponse


class FieldRejectRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=500)


class FieldVerifyRequest(BaseModel):
    notes: Optional[str] = Field(None, max_length=1000)


class VerificationResponse(BaseModel):
    id: int
    field_name: str
    field_label: str
    status: str
    rejection_reason: Optional[str] = None


class DocumentRejectRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=500)
