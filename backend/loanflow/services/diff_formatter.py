"""Field-level diffs and one-line summaries for correction timeline entries.

Composite fields (name, address, employment) are compared key by key over
fixed label tables; everything else is rendered as a single summary string.
Formatting never raises: unreadable values degrade to ``EMPTY``.
"""

import logging
import re
from datetime import date, datetime
from typing import Any, Optional

from loanflow.models.applicant import EmploymentType
from loanflow.models.verification import DiffType

logger = logging.getLogger(__name__)

EMPTY = "(vacío)"
ARROW = "→"

FIELD_LABELS: dict[DiffType, dict[str, str]] = {
    DiffType.NAME: {
        "first_name": "Nombre",
        "last_name_1": "Apellido Paterno",
        "last_name_2": "Apellido Materno",
    },
    DiffType.EMPLOYMENT: {
        "type": "Tipo de Empleo",
        "company_name": "Empresa",
        "position": "Puesto",
        "monthly_income": "Ingreso Mensual",
        "seniority_months": "Antigüedad (meses)",
    },
    DiffType.ADDRESS: {
        "street": "Calle",
        "ext_number": "Número Exterior",
        "int_number": "Número Interior",
        "neighborhood": "Colonia",
        "postal_code": "Código Postal",
        "municipality": "Municipio",
        "state": "Estado",
    },
}

_NUMERIC_KEYS = ("monthly_income", "seniority_months")
_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}")


def _is_blank(value: Any) -> bool:
    return value is None or value == ""


def _to_float(value: Any) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _money(value: Any) -> str:
    amount = _to_float(value)
    if amount is None:
        return str(value)
    return f"${amount:,.0f}"


def _employment_label(value: Any) -> str:
    employment_type = EmploymentType.normalize(value)
    return employment_type.label if employment_type else str(value)


def normalize_for_comparison(value: Any, key: str) -> str:
    if _is_blank(value):
        return ""
    if key == "type":
        return str(getattr(value, "value", value)).upper()
    if key in _NUMERIC_KEYS:
        amount = _to_float(value)
        return str(amount) if amount is not None else str(value)
    return str(value)


def format_single_value(value: Any, key: str) -> str:
    if _is_blank(value):
        return EMPTY
    if key == "type":
        return _employment_label(value)
    if key == "monthly_income":
        return _money(value)
    if key == "seniority_months":
        amount = _to_float(value)
        if amount is None:
            return str(value)
        months = int(amount)
        if months >= 12:
            years, remaining = divmod(months, 12)
            if remaining:
                return f"{years} año(s) y {remaining} mes(es)"
            return f"{years} año(s)"
        return f"{months} mes(es)"
    return str(value)


def diff(old: Any, new: Any, field_type: Optional[DiffType]) -> dict[str, str]:
    """Changed sub-fields of a composite value as ``{label: "old → new"}``.

    Keys absent on both sides, or equal after normalization, are skipped.
    Returns an empty dict when either side is not a mapping or the field
    type has no label table.
    """
    if not isinstance(old, dict) or not isinstance(new, dict):
        return {}

    changes: dict[str, str] = {}
    for key, label in FIELD_LABELS.get(field_type, {}).items():
        old_val = old.get(key)
        new_val = new.get(key)
        if normalize_for_comparison(old_val, key) == normalize_for_comparison(new_val, key):
            continue
        changes[label] = f"{format_single_value(old_val, key)} {ARROW} {format_single_value(new_val, key)}"
    return changes


def format_changes(old: Any, new: Any, field_type: Optional[DiffType]) -> str:
    """One-line rendering of a correction: per-key changes, else whole-value summaries."""
    changes = diff(old, new, field_type)
    if not changes:
        return f"{format_summary(old)} {ARROW} {format_summary(new)}"
    return ", ".join(f"{label}: {change}" for label, change in changes.items())


def _summarize_name(value: dict) -> str:
    parts = [value.get(k) for k in ("first_name", "last_name_1", "last_name_2")]
    return " ".join(str(p) for p in parts if not _is_blank(p)) or EMPTY


def _summarize_employment(value: dict) -> str:
    parts = []
    if not _is_blank(value.get("type")):
        parts.append(_employment_label(value["type"]))
    for key in ("company_name", "position"):
        if not _is_blank(value.get(key)):
            parts.append(str(value[key]))
    income = value.get("monthly_income")
    if not _is_blank(income) and _to_float(income) != 0:
        parts.append(_money(income))
    return " - ".join(parts) or EMPTY


def _summarize_address(value: dict) -> str:
    parts = []
    street_line = f"{value.get('street') or ''} {value.get('ext_number') or ''}".strip()
    if not _is_blank(value.get("int_number")):
        street_line = f"{street_line} Int. {value['int_number']}".strip()
    if street_line:
        parts.append(street_line)
    if not _is_blank(value.get("neighborhood")):
        parts.append(f"Col. {value['neighborhood']}")
    if not _is_blank(value.get("postal_code")):
        parts.append(f"C.P. {value['postal_code']}")
    location = f"{value.get('municipality') or ''}, {value.get('state') or ''}".strip(", ")
    if location:
        parts.append(location)
    return ", ".join(parts) or EMPTY


def _summarize_scalar(value: Any) -> str:
    if isinstance(value, datetime):
        return value.strftime("%d/%m/%Y")
    if isinstance(value, date):
        return value.strftime("%d/%m/%Y")
    text = str(getattr(value, "value", value))
    if _ISO_DATE.match(text):
        try:
            return datetime.strptime(text[:10], "%Y-%m-%d").strftime("%d/%m/%Y")
        except ValueError:
            return text
    return text or EMPTY


def format_summary(value: Any) -> str:
    """Concise display of a field value for the timeline. Never raises."""
    try:
        if value is None:
            return EMPTY
        if isinstance(value, dict):
            if any(value.get(k) is not None for k in FIELD_LABELS[DiffType.NAME]):
                return _summarize_name(value)
            if value.get("company_name") is not None or value.get("type") is not None:
                return _summarize_employment(value)
            if any(value.get(k) is not None for k in ("street", "ext_number", "neighborhood")):
                return _summarize_address(value)
            for item in value.values():
                if not _is_blank(item):
                    return _summarize_scalar(item)
            return EMPTY
        return _summarize_scalar(value)
    except Exception:
        logger.warning("Could not summarize value of type %s", type(value).__name__, exc_info=True)
        return EMPTY
