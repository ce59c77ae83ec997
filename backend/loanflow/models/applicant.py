"""Applicant profile, addresses and employment records."""

import enum
from datetime import datetime, date
from typing import Optional

from sqlalchemy import (
    String, Numeric, Integer, Enum, DateTime, Date, ForeignKey, Boolean, func
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from loanflow.database import Base


class EmploymentType(str, enum.Enum):
    EMPLOYEE = "EMPLOYEE"
    SELF_EMPLOYED = "SELF_EMPLOYED"
    BUSINESS_OWNER = "BUSINESS_OWNER"
    RETIRED = "RETIRED"
    STUDENT = "STUDENT"
    HOMEMAKER = "HOMEMAKER"
    UNEMPLOYED = "UNEMPLOYED"
    OTHER = "OTHER"

    @property
    def label(self) -> str:
        return _EMPLOYMENT_LABELS[self]

    @classmethod
    def normalize(cls, value: object) -> Optional["EmploymentType"]:
        """Map a canonical code or a legacy Spanish value to the enum, else None."""
        if value is None:
            return None
        if isinstance(value, cls):
            return value
        code = str(value).strip().upper()
        try:
            return cls(code)
        except ValueError:
            return _LEGACY_EMPLOYMENT_CODES.get(code)

    @classmethod
    def decode(cls, value: object) -> "EmploymentType":
        """Like normalize(), but falls back to EMPLOYEE for unknown input."""
        return cls.normalize(value) or cls.EMPLOYEE


_EMPLOYMENT_LABELS = {
    EmploymentType.EMPLOYEE: "Empleado",
    EmploymentType.SELF_EMPLOYED: "Trabajador Independiente",
    EmploymentType.BUSINESS_OWNER: "Empresario",
    EmploymentType.RETIRED: "Pensionado",
    EmploymentType.STUDENT: "Estudiante",
    EmploymentType.HOMEMAKER: "Hogar",
    EmploymentType.UNEMPLOYED: "Desempleado",
    EmploymentType.OTHER: "Otro",
}

_LEGACY_EMPLOYMENT_CODES = {
    "EMPLEADO": EmploymentType.EMPLOYEE,
    "INDEPENDIENTE": EmploymentType.SELF_EMPLOYED,
    "EMPRESARIO": EmploymentType.BUSINESS_OWNER,
    "PENSIONADO": EmploymentType.RETIRED,
    "ESTUDIANTE": EmploymentType.STUDENT,
    "HOGAR": EmploymentType.HOMEMAKER,
    "DESEMPLEADO": EmploymentType.UNEMPLOYED,
    "OTRO": EmploymentType.OTHER,
}


class AddressType(str, enum.Enum):
    HOME = "HOME"
    WORK = "WORK"
    MAILING = "MAILING"


class Applicant(Base):
    __tablename__ = "applicants"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    # Identity
    first_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    last_name_1: Mapped[str | None] = mapped_column(String(100), nullable=True)
    last_name_2: Mapped[str | None] = mapped_column(String(100), nullable=True)
    curp: Mapped[str | None] = mapped_column(String(18), nullable=True, index=True)
    rfc: Mapped[str | None] = mapped_column(String(13), nullable=True)
    ine_clave: Mapped[str | None] = mapped_column(String(20), nullable=True)
    birth_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    # Contact
    phone: Mapped[str | None] = mapped_column(String(30), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    signed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    # Soft invalidation only; applicants are never deleted
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    addresses = relationship("Address", back_populates="applicant", lazy="selectin")
    employment_records = relationship("EmploymentRecord", back_populates="applicant", lazy="selectin")
    applications = relationship("Application", back_populates="applicant")

    @property
    def full_name(self) -> str:
        return " ".join(p for p in (self.first_name, self.last_name_1, self.last_name_2) if p)

    @property
    def primary_address(self) -> Optional["Address"]:
        """Current primary HOME address, if any."""
        for address in self.addresses:
            if address.type == AddressType.HOME and address.is_primary:
                return address
        return None

    @property
    def current_employment(self) -> Optional["EmploymentRecord"]:
        for record in self.employment_records:
            if record.is_current:
                return record
        return None

    def has_complete_personal_data(self) -> bool:
        return all((self.first_name, self.last_name_1, self.birth_date, self.curp))


class Address(Base):
    __tablename__ = "addresses"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    applicant_id: Mapped[int] = mapped_column(ForeignKey("applicants.id"), nullable=False, index=True)
    type: Mapped[AddressType] = mapped_column(Enum(AddressType), default=AddressType.HOME, nullable=False)
    is_primary: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    street: Mapped[str | None] = mapped_column(String(255), nullable=True)
    ext_number: Mapped[str | None] = mapped_column(String(20), nullable=True)
    int_number: Mapped[str | None] = mapped_column(String(20), nullable=True)
    neighborhood: Mapped[str | None] = mapped_column(String(150), nullable=True)
    postal_code: Mapped[str | None] = mapped_column(String(10), nullable=True)
    municipality: Mapped[str | None] = mapped_column(String(150), nullable=True)
    state: Mapped[str | None] = mapped_column(String(100), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    applicant = relationship("Applicant", back_populates="addresses")


class EmploymentRecord(Base):
    __tablename__ = "employment_records"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    applicant_id: Mapped[int] = mapped_column(ForeignKey("applicants.id"), nullable=False, index=True)
    is_current: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    employment_type: Mapped[EmploymentType] = mapped_column(
        Enum(EmploymentType), default=EmploymentType.EMPLOYEE, nullable=False
    )
    company_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    position: Mapped[str | None] = mapped_column(String(150), nullable=True)
    monthly_income: Mapped[float | None] = mapped_column(Numeric(12, 2), nullable=True)
    seniority_months: Mapped[int | None] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    applicant = relationship("Applicant", back_populates="employment_records")
