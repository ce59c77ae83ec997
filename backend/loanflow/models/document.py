"""Document upload model."""

import enum
from datetime import datetime
from typing import Optional

from sqlalchemy import String, Integer, Enum, DateTime, ForeignKey, Boolean, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from loanflow.database import Base


class DocumentType(str, enum.Enum):
    # Identification
    INE_FRONT = "INE_FRONT"
    INE_BACK = "INE_BACK"
    CURP = "CURP"
    SELFIE = "SELFIE"
    SIGNATURE = "SIGNATURE"
    # Address & income
    PROOF_ADDRESS = "PROOF_ADDRESS"
    PROOF_INCOME = "PROOF_INCOME"
    BANK_STATEMENT = "BANK_STATEMENT"
    # Tax
    RFC_CONSTANCIA = "RFC_CONSTANCIA"
    RFC = "RFC"  # legacy alias of RFC_CONSTANCIA
    TAX_RETURN = "TAX_RETURN"
    # Employment
    PAYSLIP_1 = "PAYSLIP_1"
    PAYSLIP_2 = "PAYSLIP_2"
    PAYSLIP_3 = "PAYSLIP_3"
    # Other
    VEHICLE_INVOICE = "VEHICLE_INVOICE"
    BIRTH_CERTIFICATE = "BIRTH_CERTIFICATE"
    MARRIAGE_CERTIFICATE = "MARRIAGE_CERTIFICATE"

    @property
    def canonical(self) -> "DocumentType":
        return _DOCUMENT_ALIASES.get(self, self)

    @property
    def label(self) -> str:
        return _DOCUMENT_LABELS[self.canonical]

    @classmethod
    def parse(cls, value: object) -> Optional["DocumentType"]:
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            return None


_DOCUMENT_ALIASES = {
    DocumentType.RFC: DocumentType.RFC_CONSTANCIA,
}

_DOCUMENT_LABELS = {
    DocumentType.INE_FRONT: "Identificación oficial (frente)",
    DocumentType.INE_BACK: "Identificación oficial (reverso)",
    DocumentType.CURP: "CURP",
    DocumentType.SELFIE: "Foto de perfil (Selfie)",
    DocumentType.SIGNATURE: "Firma",
    DocumentType.PROOF_ADDRESS: "Comprobante de domicilio",
    DocumentType.PROOF_INCOME: "Comprobante de ingresos",
    DocumentType.BANK_STATEMENT: "Estado de cuenta bancario",
    DocumentType.RFC_CONSTANCIA: "Constancia de situación fiscal",
    DocumentType.TAX_RETURN: "Declaración de impuestos",
    DocumentType.PAYSLIP_1: "Recibo de nómina 1",
    DocumentType.PAYSLIP_2: "Recibo de nómina 2",
    DocumentType.PAYSLIP_3: "Recibo de nómina 3",
    DocumentType.VEHICLE_INVOICE: "Factura del vehículo",
    DocumentType.BIRTH_CERTIFICATE: "Acta de nacimiento",
    DocumentType.MARRIAGE_CERTIFICATE: "Acta de matrimonio",
}


def document_type_label(code: object) -> str:
    """Human label for a document type code; unknown codes are returned as-is."""
    doc_type = DocumentType.parse(code)
    return doc_type.label if doc_type else str(code)


class DocumentStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class Document(Base):
    __tablename__ = "documents"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    application_id: Mapped[int] = mapped_column(
        ForeignKey("applications.id"), nullable=False, index=True
    )
    uploaded_by: Mapped[str] = mapped_column(String(64), nullable=False)

    type: Mapped[DocumentType] = mapped_column(Enum(DocumentType), nullable=False)
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    mime_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    file_size: Mapped[int | None] = mapped_column(Integer, nullable=True)
    status: Mapped[DocumentStatus] = mapped_column(
        Enum(DocumentStatus), default=DocumentStatus.PENDING, nullable=False
    )
    rejection_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    # A replaced upload stays on record (inactive) until its successor is approved
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    # Relationships
    application = relationship("Application", back_populates="documents")
