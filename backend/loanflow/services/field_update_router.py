"""Route a correction on a verifiable field to the record that stores it.

Scalar fields live in applicant columns; ADDRESS lives on the primary HOME
address row and EMPLOYMENT on the current employment row. The caller holds
the applicant row lock and a loaded applicant (addresses and employment
records are eager-loaded), so routing itself does no I/O.
"""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from loanflow.models.applicant import Address, Applicant, EmploymentRecord, EmploymentType
from loanflow.models.verification import (
    DataVerification,
    FieldStorage,
    NAME_FIELDS,
    VerifiableField,
)
from loanflow.services.errors import ValidationError
from loanflow.services.verification_store import decode_value, to_jsonable

logger = logging.getLogger(__name__)

ADDRESS_KEYS = (
    "street", "ext_number", "int_number", "neighborhood",
    "postal_code", "municipality", "state",
)
_UPPERCASE_FIELDS = (VerifiableField.CURP, VerifiableField.RFC, VerifiableField.INE)


@dataclass(frozen=True)
class RoutedCorrection:
    """Outcome of routing one correction.

    ``applied`` is False for soft failures (no target record); nothing was
    written in that case. ``current_value`` is the live value after the write.
    """

    field: VerifiableField
    applied: bool
    old_value: Any
    current_value: Any = None
    reason: Optional[str] = None


# ---------------------------------------------------------------------------
# Live snapshots
# ---------------------------------------------------------------------------

def name_snapshot(applicant: Applicant) -> dict:
    return {
        "first_name": applicant.first_name,
        "last_name_1": applicant.last_name_1,
        "last_name_2": applicant.last_name_2,
    }


def address_snapshot(address: Optional[Address]) -> Optional[dict]:
    if address is None:
        return None
    return {key: getattr(address, key) for key in ADDRESS_KEYS}


def employment_snapshot(record: Optional[EmploymentRecord]) -> Optional[dict]:
    if record is None:
        return None
    return {
        "type": record.employment_type.value if record.employment_type else None,
        "company_name": record.company_name,
        "position": record.position,
        "monthly_income": float(record.monthly_income) if record.monthly_income is not None else None,
        "seniority_months": record.seniority_months,
    }


def live_value(applicant: Applicant, field: VerifiableField) -> Any:
    """Current value of a field as shown to reviewers and applicants."""
    if field in NAME_FIELDS:
        return name_snapshot(applicant)
    if field == VerifiableField.ADDRESS:
        return address_snapshot(applicant.primary_address)
    if field == VerifiableField.EMPLOYMENT:
        return employment_snapshot(applicant.current_employment)
    return to_jsonable(getattr(applicant, field.spec.column))


# ---------------------------------------------------------------------------
# Value coercion
# ---------------------------------------------------------------------------

def _scalar_text(field: VerifiableField, value: Any) -> Optional[str]:
    if isinstance(value, (dict, list)):
        raise ValidationError(f"{field.label}: se esperaba un valor simple")
    if value is None:
        return None
    text = str(value).strip()
    if field in _UPPERCASE_FIELDS:
        text = text.upper()
    return text or None


def _parse_date(value: Any) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        raise ValidationError("Fecha de Nacimiento: formato inválido, se esperaba AAAA-MM-DD")


def _parse_money(value: Any) -> Decimal:
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError("Ingreso Mensual: valor numérico inválido")


def _parse_int(value: Any, label: str) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        raise ValidationError(f"{label}: valor numérico inválido")


def _require_mapping(field: VerifiableField, value: Any) -> dict:
    if not isinstance(value, dict):
        raise ValidationError(f"{field.label}: se esperaba un objeto con sus campos")
    return value


# ---------------------------------------------------------------------------
# Routing
# ---------------------------------------------------------------------------

def _apply_name(applicant: Applicant, field: VerifiableField, value: Any) -> RoutedCorrection:
    old = name_snapshot(applicant)
    if isinstance(value, dict):
        # Composite name: every present key, in one pass
        for name_field in NAME_FIELDS:
            key = name_field.value
            if value.get(key) is not None:
                setattr(applicant, key, _scalar_text(name_field, value[key]))
    else:
        setattr(applicant, field.value, _scalar_text(field, value))
    return RoutedCorrection(field, True, old, name_snapshot(applicant))


def _apply_scalar(
    applicant: Applicant, field: VerifiableField, value: Any,
    verification: Optional[DataVerification],
) -> RoutedCorrection:
    column = field.spec.column
    if verification is not None and verification.field_value is not None:
        old = decode_value(verification.field_value)
    else:
        old = to_jsonable(getattr(applicant, column))

    if field == VerifiableField.BIRTH_DATE:
        setattr(applicant, column, _parse_date(value))
    else:
        setattr(applicant, column, _scalar_text(field, value))
    return RoutedCorrection(field, True, old, to_jsonable(getattr(applicant, column)))


def _apply_address(applicant: Applicant, value: Any) -> RoutedCorrection:
    field = VerifiableField.ADDRESS
    value = _require_mapping(field, value)
    address = applicant.primary_address
    if address is None:
        logger.warning("Applicant %s has no primary home address; correction not applied", applicant.id)
        return RoutedCorrection(field, False, None, reason="No hay domicilio principal registrado")

    old = address_snapshot(address)
    for key in ADDRESS_KEYS:
        if key in value:
            raw = value[key]
            setattr(address, key, (str(raw).strip() or None) if raw is not None else None)
    return RoutedCorrection(field, True, old, address_snapshot(address))


def _apply_employment(applicant: Applicant, value: Any) -> RoutedCorrection:
    field = VerifiableField.EMPLOYMENT
    value = _require_mapping(field, value)
    record = applicant.current_employment
    if record is None:
        logger.warning("Applicant %s has no current employment; correction not applied", applicant.id)
        return RoutedCorrection(field, False, None, reason="No hay empleo actual registrado")

    old = employment_snapshot(record)
    if value.get("type") is not None:
        record.employment_type = EmploymentType.decode(value["type"])
    if value.get("company_name") is not None:
        record.company_name = str(value["company_name"]).strip() or None
    if value.get("position") is not None:
        record.position = str(value["position"]).strip() or None
    if value.get("monthly_income") is not None:
        record.monthly_income = _parse_money(value["monthly_income"])

    # seniority_years + seniority_months means "years and extra months";
    # seniority_months alone is the total
    if value.get("seniority_years") is not None:
        years = _parse_int(value["seniority_years"], "Antigüedad")
        months = _parse_int(value.get("seniority_months") or 0, "Antigüedad")
        record.seniority_months = years * 12 + months
    elif value.get("seniority_months") is not None:
        record.seniority_months = _parse_int(value["seniority_months"], "Antigüedad")
    return RoutedCorrection(field, True, old, employment_snapshot(record))


def apply_correction(
    applicant: Applicant,
    field_name: VerifiableField,
    new_value: Any,
    verification: Optional[DataVerification] = None,
) -> RoutedCorrection:
    """Write ``new_value`` to the record backing ``field_name``.

    The old value is captured before the write: from the live record for
    composite fields and name parts, from the verification snapshot for
    other scalars.
    """
    field = field_name
    if field in NAME_FIELDS:
        return _apply_name(applicant, field, new_value)

    storage = field.spec.storage
    if storage == FieldStorage.ADDRESS_ROW:
        return _apply_address(applicant, new_value)
    if storage == FieldStorage.EMPLOYMENT_ROW:
        return _apply_employment(applicant, new_value)
    return _apply_scalar(applicant, field, new_value, verification)
