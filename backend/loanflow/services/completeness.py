"""Submission gate: everything an application needs before it can be SUBMITTED."""

from loanflow.config import settings
from loanflow.models.applicant import Applicant
from loanflow.models.application import Application
from loanflow.models.document import DocumentStatus, DocumentType


def _canonical_code(code: object) -> str:
    doc_type = DocumentType.parse(code)
    return doc_type.canonical.value if doc_type else str(code).strip().upper()


def missing_documents(application: Application) -> list[str]:
    """Required document codes with no active, non-rejected upload (aliases folded)."""
    required = application.product.required_documents if application.product else None
    uploaded = {
        doc.type.canonical.value
        for doc in application.documents
        if doc.is_active and doc.status != DocumentStatus.REJECTED
    }
    missing = []
    for code in required or []:
        canonical = _canonical_code(code)
        if canonical not in uploaded and canonical not in missing:
            missing.append(canonical)
    return missing


def check_completeness(applicant: Applicant, application: Application) -> dict[str, list[str]]:
    """Every failing requirement, keyed by requirement. Empty means complete."""
    errors: dict[str, list[str]] = {}

    if not applicant.has_complete_personal_data():
        errors["personal_data"] = ["Personal data is required (name, birth date, CURP)"]
    if applicant.primary_address is None:
        errors["address"] = ["Address is required"]
    if applicant.current_employment is None:
        errors["employment"] = ["Employment info is required"]
    if applicant.signed_at is None:
        errors["signature"] = ["Signature is required"]
    if not application.purpose:
        errors["purpose"] = ["Loan purpose is required"]

    missing = missing_documents(application)
    if missing:
        errors["documents"] = ["Missing required documents: " + ", ".join(missing)]

    references = len(application.references)
    minimum = settings.min_references_to_submit
    if references < minimum:
        errors["references"] = [
            f"At least {minimum} references required, only {references} provided"
        ]
    return errors
