"""Per-field verification lifecycle for an applicant.

PENDING → VERIFIED | REJECTED, REJECTED → CORRECTED. Rows are created lazily
the first time a reviewer rejects or verifies a field. The correction history
of a row only ever grows.
"""

import json
import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from loanflow.config import settings
from loanflow.models.verification import (
    CorrectionEntry,
    DataVerification,
    VerifiableField,
    VerificationStatus,
)
from loanflow.services.errors import FieldNotVerifiable, ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CorrectionHistoryItem:
    field_name: str
    field_label: str
    old_value: Any
    new_value: Any
    rejection_reason: Optional[str]
    corrected_by: Optional[dict]
    corrected_at: str


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def coerce_field(field_name: object) -> VerifiableField:
    field = VerifiableField.parse(field_name)
    if field is None:
        raise FieldNotVerifiable(field_name)
    return field


def display_label(field: VerifiableField) -> str:
    """Reviewer-facing label; name parts collapse into one section when configured."""
    if field.is_name_part and settings.collapse_name_fields:
        return settings.name_group_label
    return field.label


def to_jsonable(value: Any) -> Any:
    """Convert dates and decimals so a value can live in a JSON column."""
    if isinstance(value, dict):
        return {k: to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    if hasattr(value, "value") and isinstance(getattr(value, "value"), str):
        return value.value
    return value


def serialize_value(value: Any) -> Optional[str]:
    """Text form stored in ``field_value``; composites are JSON-encoded."""
    if value is None:
        return None
    if isinstance(value, (dict, list)):
        return json.dumps(to_jsonable(value), ensure_ascii=False)
    return str(to_jsonable(value))


def decode_value(raw: Optional[str]) -> Any:
    """Inverse of serialize_value for composite snapshots; scalars pass through."""
    if isinstance(raw, str) and raw.startswith(("{", "[")):
        try:
            return json.loads(raw)
        except ValueError:
            return raw
    return raw


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

async def get(
    db: AsyncSession, applicant_id: int, field_name: object
) -> DataVerification | None:
    field = coerce_field(field_name)
    result = await db.execute(
        select(DataVerification).where(
            DataVerification.applicant_id == applicant_id,
            DataVerification.field_name == field,
        )
    )
    return result.scalar_one_or_none()


async def list_for_applicant(db: AsyncSession, applicant_id: int) -> list[DataVerification]:
    result = await db.execute(
        select(DataVerification)
        .where(DataVerification.applicant_id == applicant_id)
        .order_by(DataVerification.id)
    )
    return list(result.scalars().all())


async def list_rejected(db: AsyncSession, applicant_id: int) -> list[DataVerification]:
    result = await db.execute(
        select(DataVerification)
        .where(
            DataVerification.applicant_id == applicant_id,
            DataVerification.status == VerificationStatus.REJECTED,
        )
        .order_by(DataVerification.id)
    )
    return list(result.scalars().all())


async def list_corrected(db: AsyncSession, applicant_id: int) -> list[DataVerification]:
    """CORRECTED rows in the order they were corrected."""
    result = await db.execute(
        select(DataVerification)
        .where(
            DataVerification.applicant_id == applicant_id,
            DataVerification.status == VerificationStatus.CORRECTED,
        )
        .order_by(DataVerification.corrected_at, DataVerification.id)
    )
    return list(result.scalars().all())


async def list_correction_history(
    db: AsyncSession, applicant_id: int
) -> list[CorrectionHistoryItem]:
    """Every correction ever made by the applicant, newest first."""
    items = []
    for verification in await list_for_applicant(db, applicant_id):
        label = display_label(verification.field_name)
        for entry in verification.correction_history:
            items.append(CorrectionHistoryItem(
                field_name=verification.field_name.value,
                field_label=label,
                old_value=entry.old_value,
                new_value=entry.new_value,
                rejection_reason=entry.rejection_reason,
                corrected_by=entry.corrected_by,
                corrected_at=entry.corrected_at,
            ))
    items.sort(key=lambda item: item.corrected_at, reverse=True)
    return items


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------

async def _get_or_create(
    db: AsyncSession, applicant_id: int, field: VerifiableField, tenant_id: str
) -> DataVerification:
    verification = await get(db, applicant_id, field)
    if verification is None:
        verification = DataVerification(
            tenant_id=tenant_id,
            applicant_id=applicant_id,
            field_name=field,
            status=VerificationStatus.PENDING,
            correction_history_log=[],
        )
        db.add(verification)
    return verification


async def reject(
    db: AsyncSession,
    applicant_id: int,
    field_name: object,
    reason: str,
    *,
    tenant_id: str,
    field_value: Any = None,
    rejected_by: Optional[str] = None,
) -> DataVerification:
    """Mark a field REJECTED, creating its row on first use.

    ``field_value`` is the live value at rejection time; it becomes the
    old-value snapshot for scalar corrections.
    """
    field = coerce_field(field_name)
    if not reason or not reason.strip():
        raise ValidationError("Rejection reason is required")

    verification = await _get_or_create(db, applicant_id, field, tenant_id)
    verification.status = VerificationStatus.REJECTED
    verification.rejection_reason = reason.strip()
    verification.rejected_at = _now()
    verification.verified_by = rejected_by
    if field_value is not None:
        verification.field_value = serialize_value(field_value)
    await db.flush()
    logger.info("Field %s of applicant %s rejected", field.value, applicant_id)
    return verification


async def verify(
    db: AsyncSession,
    applicant_id: int,
    field_name: object,
    *,
    tenant_id: str,
    verified_by: Optional[str] = None,
    field_value: Any = None,
    notes: Optional[str] = None,
) -> DataVerification:
    field = coerce_field(field_name)
    verification = await _get_or_create(db, applicant_id, field, tenant_id)
    verification.status = VerificationStatus.VERIFIED
    verification.rejection_reason = None
    verification.verified_by = verified_by
    verification.notes = notes
    if field_value is not None:
        verification.field_value = serialize_value(field_value)
    await db.flush()
    logger.info("Field %s of applicant %s verified", field.value, applicant_id)
    return verification


async def correct(
    db: AsyncSession,
    verification: DataVerification,
    old_value: Any,
    new_value: Any,
    corrected_by: Optional[dict],
) -> DataVerification:
    """REJECTED → CORRECTED with exactly one new history entry."""
    if verification.status != VerificationStatus.REJECTED:
        raise ValidationError(
            f"Field {verification.field_name.value} is {verification.status.value}, expected REJECTED"
        )
    now = _now()
    verification.append_correction(CorrectionEntry(
        old_value=to_jsonable(old_value),
        new_value=to_jsonable(new_value),
        rejection_reason=verification.rejection_reason,
        corrected_by=corrected_by,
        corrected_at=now.isoformat(),
    ))
    verification.status = VerificationStatus.CORRECTED
    verification.corrected_at = now
    verification.field_value = serialize_value(new_value)
    await db.flush()
    return verification


async def mark_covered(
    db: AsyncSession, verification: DataVerification, new_value: Any
) -> DataVerification:
    """Close a REJECTED row fixed as a side effect of a sibling's correction.

    No history entry is written; the sibling's entry records the change.
    """
    verification.status = VerificationStatus.CORRECTED
    verification.corrected_at = _now()
    verification.field_value = serialize_value(new_value)
    await db.flush()
    return verification
