"""SQLAlchemy models for the loanflow backend."""

from loanflow.models.applicant import (
    Applicant, Address, AddressType, EmploymentRecord, EmploymentType,
)
from loanflow.models.product import Product
from loanflow.models.application import (
    Application,
    ApplicationStatus,
    StatusChange,
    TimelineAction,
    TimelineEntry,
)
from loanflow.models.document import Document, DocumentStatus, DocumentType, document_type_label
from loanflow.models.reference import ApplicationReference
from loanflow.models.verification import (
    CorrectionEntry,
    DataVerification,
    DiffType,
    FieldSpec,
    FieldStorage,
    FIELD_SPECS,
    NAME_FIELDS,
    VerifiableField,
    VerificationStatus,
)
from loanflow.models.audit import AuditAction, AuditLog

__all__ = [
    "Applicant", "Address", "AddressType", "EmploymentRecord", "EmploymentType",
    "Product",
    "Application", "ApplicationStatus", "StatusChange", "TimelineAction", "TimelineEntry",
    "Document", "DocumentStatus", "DocumentType", "document_type_label",
    "ApplicationReference",
    "CorrectionEntry", "DataVerification", "DiffType", "FieldSpec", "FieldStorage",
    "FIELD_SPECS", "NAME_FIELDS", "VerifiableField", "VerificationStatus",
    "AuditAction", "AuditLog",
]
