"""Per-field data verification records and the verifiable-field capability table."""

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import String, Integer, Enum, DateTime, ForeignKey, JSON, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from loanflow.database import Base


class VerifiableField(str, enum.Enum):
    FIRST_NAME = "first_name"
    LAST_NAME_1 = "last_name_1"
    LAST_NAME_2 = "last_name_2"
    CURP = "curp"
    RFC = "rfc"
    INE = "ine"
    BIRTH_DATE = "birth_date"
    PHONE = "phone"
    EMAIL = "email"
    ADDRESS = "address"
    EMPLOYMENT = "employment"

    @property
    def spec(self) -> "FieldSpec":
        return FIELD_SPECS[self]

    @property
    def label(self) -> str:
        return FIELD_SPECS[self].label

    @property
    def is_name_part(self) -> bool:
        return self in NAME_FIELDS

    @classmethod
    def parse(cls, value: object) -> Optional["VerifiableField"]:
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


class FieldStorage(str, enum.Enum):
    """Where the live value of a verifiable field is kept."""
    APPLICANT_COLUMN = "applicant_column"
    ADDRESS_ROW = "address_row"
    EMPLOYMENT_ROW = "employment_row"


class DiffType(str, enum.Enum):
    NAME = "name"
    ADDRESS = "address"
    EMPLOYMENT = "employment"


@dataclass(frozen=True)
class FieldSpec:
    label: str
    storage: FieldStorage
    composite: bool = False
    column: Optional[str] = None
    diff_type: Optional[DiffType] = None


FIELD_SPECS: dict[VerifiableField, FieldSpec] = {
    VerifiableField.FIRST_NAME: FieldSpec(
        "Nombre(s)", FieldStorage.APPLICANT_COLUMN, column="first_name", diff_type=DiffType.NAME,
    ),
    VerifiableField.LAST_NAME_1: FieldSpec(
        "Apellido Paterno", FieldStorage.APPLICANT_COLUMN, column="last_name_1", diff_type=DiffType.NAME,
    ),
    VerifiableField.LAST_NAME_2: FieldSpec(
        "Apellido Materno", FieldStorage.APPLICANT_COLUMN, column="last_name_2", diff_type=DiffType.NAME,
    ),
    VerifiableField.CURP: FieldSpec("CURP", FieldStorage.APPLICANT_COLUMN, column="curp"),
    VerifiableField.RFC: FieldSpec("RFC", FieldStorage.APPLICANT_COLUMN, column="rfc"),
    VerifiableField.INE: FieldSpec("Clave de Elector", FieldStorage.APPLICANT_COLUMN, column="ine_clave"),
    VerifiableField.BIRTH_DATE: FieldSpec("Fecha de Nacimiento", FieldStorage.APPLICANT_COLUMN, column="birth_date"),
    VerifiableField.PHONE: FieldSpec("Teléfono", FieldStorage.APPLICANT_COLUMN, column="phone"),
    VerifiableField.EMAIL: FieldSpec("Email", FieldStorage.APPLICANT_COLUMN, column="email"),
    VerifiableField.ADDRESS: FieldSpec(
        "Dirección", FieldStorage.ADDRESS_ROW, composite=True, diff_type=DiffType.ADDRESS,
    ),
    VerifiableField.EMPLOYMENT: FieldSpec(
        "Empleo", FieldStorage.EMPLOYMENT_ROW, composite=True, diff_type=DiffType.EMPLOYMENT,
    ),
}

NAME_FIELDS = (VerifiableField.FIRST_NAME, VerifiableField.LAST_NAME_1, VerifiableField.LAST_NAME_2)


class VerificationStatus(str, enum.Enum):
    PENDING = "PENDING"
    VERIFIED = "VERIFIED"
    REJECTED = "REJECTED"
    CORRECTED = "CORRECTED"

    @property
    def label(self) -> str:
        return {
            VerificationStatus.PENDING: "Pendiente",
            VerificationStatus.VERIFIED: "Verificado",
            VerificationStatus.REJECTED: "Rechazado",
            VerificationStatus.CORRECTED: "Corregido",
        }[self]


@dataclass(frozen=True)
class CorrectionEntry:
    old_value: Any
    new_value: Any
    rejection_reason: Optional[str]
    corrected_by: Optional[dict]
    corrected_at: str

    def to_dict(self) -> dict:
        return {
            "old_value": self.old_value,
            "new_value": self.new_value,
            "rejection_reason": self.rejection_reason,
            "corrected_by": self.corrected_by,
            "corrected_at": self.corrected_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CorrectionEntry":
        return cls(
            old_value=data.get("old_value"),
            new_value=data.get("new_value"),
            rejection_reason=data.get("rejection_reason"),
            corrected_by=data.get("corrected_by"),
            corrected_at=data["corrected_at"],
        )


class DataVerification(Base):
    __tablename__ = "data_verifications"
    __table_args__ = (
        UniqueConstraint("applicant_id", "field_name", name="uq_verification_per_field"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    applicant_id: Mapped[int] = mapped_column(ForeignKey("applicants.id"), nullable=False, index=True)
    field_name: Mapped[VerifiableField] = mapped_column(Enum(VerifiableField), nullable=False)
    field_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[VerificationStatus] = mapped_column(
        Enum(VerificationStatus), default=VerificationStatus.PENDING, nullable=False, index=True
    )
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    verified_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    rejected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    corrected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    correction_history_log: Mapped[list] = mapped_column(
        "correction_history", JSON, default=list, nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    @property
    def correction_history(self) -> tuple[CorrectionEntry, ...]:
        return tuple(CorrectionEntry.from_dict(e) for e in (self.correction_history_log or []))

    @property
    def correction_count(self) -> int:
        return len(self.correction_history_log or [])

    def append_correction(self, entry: CorrectionEntry) -> None:
        self.correction_history_log = [*(self.correction_history_log or []), entry.to_dict()]
