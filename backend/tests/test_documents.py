"""Tests for document upload, replacement and review."""

import pytest
from sqlalchemy import select

from loanflow.models.application import ApplicationStatus, TimelineAction
from loanflow.models.document import Document, DocumentStatus, DocumentType, document_type_label
from loanflow.services import notifier
from loanflow.services.context import Actor
from loanflow.services.documents import approve_document, reject_document, upload_document
from loanflow.services.errors import NotFoundError, ValidationError

from conftest import IN_REVIEW_PATH, applicant_actor, make_applicant, make_application, staff_actor

S = ApplicationStatus


class TestDocumentTypes:

    def test_rfc_alias_is_canonicalized(self):
        assert DocumentType.RFC.canonical == DocumentType.RFC_CONSTANCIA
        assert DocumentType.RFC.label == DocumentType.RFC_CONSTANCIA.label

    def test_parse_is_case_insensitive(self):
        assert DocumentType.parse(" proof_address ") == DocumentType.PROOF_ADDRESS
        assert DocumentType.parse("PASSPORT") is None

    def test_unknown_code_label_passthrough(self):
        assert document_type_label("PASSPORT") == "PASSPORT"
        assert document_type_label("selfie") == "Foto de perfil (Selfie)"


class TestUpload:

    @pytest.mark.asyncio
    async def test_upload_records_timeline_and_event(self, db):
        received = []
        notifier.subscribe(notifier.DOCUMENT_UPLOADED, lambda name, payload: received.append(payload))
        applicant = await make_applicant(db)
        application = await make_application(db, applicant)

        result = await upload_document(
            db, application, applicant_actor(), doc_type="ine_front", file_name="ine.jpg", file_size=2048,
        )

        doc = result.document
        assert doc.id is not None
        assert doc.type == DocumentType.INE_FRONT
        assert doc.status == DocumentStatus.PENDING
        assert doc.is_active
        assert not result.replaced
        assert result.reconciliation is None
        entry = application.timeline[-1]
        assert entry.action == TimelineAction.DOC_UPLOADED.value
        assert entry.payload["document"] == "INE_FRONT"
        assert received[0]["document_id"] == doc.id

    @pytest.mark.asyncio
    async def test_invalid_type(self, db):
        applicant = await make_applicant(db)
        application = await make_application(db, applicant)
        with pytest.raises(ValidationError):
            await upload_document(db, application, applicant_actor(), doc_type="PASSPORT", file_name="p.pdf")

    @pytest.mark.asyncio
    async def test_closed_application(self, db):
        applicant = await make_applicant(db)
        application = await make_application(db, applicant, path=(*IN_REVIEW_PATH, S.APPROVED))
        with pytest.raises(ValidationError):
            await upload_document(db, application, applicant_actor(), doc_type="SELFIE", file_name="s.jpg")

    @pytest.mark.asyncio
    async def test_pending_upload_is_superseded(self, db):
        applicant = await make_applicant(db)
        application = await make_application(db, applicant)
        first = await upload_document(db, application, applicant_actor(), doc_type="SELFIE", file_name="a.jpg")
        second = await upload_document(db, application, applicant_actor(), doc_type="SELFIE", file_name="b.jpg")

        assert not first.document.is_active
        assert second.document.is_active
        assert not second.replaced

    @pytest.mark.asyncio
    async def test_alias_supersedes_canonical_type(self, db):
        applicant = await make_applicant(db)
        application = await make_application(db, applicant)
        first = await upload_document(
            db, application, applicant_actor(), doc_type="RFC_CONSTANCIA", file_name="a.pdf",
        )
        await upload_document(db, application, applicant_actor(), doc_type="RFC", file_name="b.pdf")

        assert not first.document.is_active

    @pytest.mark.asyncio
    async def test_approved_document_cannot_be_replaced(self, db):
        applicant = await make_applicant(db)
        application = await make_application(db, applicant)
        upload = await upload_document(db, application, applicant_actor(), doc_type="CURP", file_name="c.pdf")
        await approve_document(db, upload.document.id, staff_actor())

        with pytest.raises(ValidationError):
            await upload_document(db, application, applicant_actor(), doc_type="CURP", file_name="c2.pdf")
        assert upload.document.is_active


class TestReview:

    @pytest.mark.asyncio
    async def test_reject_moves_application_to_corrections(self, db):
        applicant = await make_applicant(db)
        application = await make_application(db, applicant, path=IN_REVIEW_PATH)
        upload = await upload_document(
            db, application, applicant_actor(), doc_type="PROOF_ADDRESS", file_name="cfe.pdf",
        )

        doc = await reject_document(db, upload.document.id, staff_actor(), " Vencido ")

        assert doc.status == DocumentStatus.REJECTED
        assert doc.rejection_reason == "Vencido"
        assert doc.reviewed_at is not None
        assert application.status == S.CORRECTIONS_PENDING
        assert application.status_history[-1].reason == "Documento rechazado: Comprobante de domicilio"

    @pytest.mark.asyncio
    async def test_reject_requires_reason(self, db):
        applicant = await make_applicant(db)
        application = await make_application(db, applicant)
        upload = await upload_document(db, application, applicant_actor(), doc_type="SELFIE", file_name="s.jpg")
        with pytest.raises(ValidationError):
            await reject_document(db, upload.document.id, staff_actor(), "")

    @pytest.mark.asyncio
    async def test_replacement_then_approval_purges_rejected_record(self, db):
        applicant = await make_applicant(db)
        application = await make_application(db, applicant, path=IN_REVIEW_PATH)
        user, staff = applicant_actor(), staff_actor()

        original = await upload_document(db, application, user, doc_type="PROOF_INCOME", file_name="n1.pdf")
        await reject_document(db, original.document.id, staff, "Ilegible")
        replacement = await upload_document(db, application, user, doc_type="PROOF_INCOME", file_name="n2.pdf")

        assert replacement.replaced
        assert not original.document.is_active
        # Kept on record until its successor is approved
        ids = {d.id for d in (await db.execute(select(Document))).scalars().all()}
        assert original.document.id in ids
        assert application.status == S.IN_REVIEW

        await approve_document(db, replacement.document.id, staff)
        await db.flush()

        remaining = (await db.execute(select(Document))).scalars().all()
        assert [d.id for d in remaining] == [replacement.document.id]
        assert remaining[0].status == DocumentStatus.APPROVED

    @pytest.mark.asyncio
    async def test_cannot_review_replaced_document(self, db):
        applicant = await make_applicant(db)
        application = await make_application(db, applicant)
        first = await upload_document(db, application, applicant_actor(), doc_type="SELFIE", file_name="a.jpg")
        await upload_document(db, application, applicant_actor(), doc_type="SELFIE", file_name="b.jpg")

        with pytest.raises(ValidationError):
            await approve_document(db, first.document.id, staff_actor())

    @pytest.mark.asyncio
    async def test_other_tenant_cannot_see_document(self, db):
        applicant = await make_applicant(db)
        application = await make_application(db, applicant)
        upload = await upload_document(db, application, applicant_actor(), doc_type="SELFIE", file_name="a.jpg")
        outsider = Actor(id="staff-9", name="Externo", role="staff", tenant_id="tenant-other")

        with pytest.raises(NotFoundError):
            await approve_document(db, upload.document.id, outsider)

    @pytest.mark.asyncio
    async def test_unknown_document(self, db):
        with pytest.raises(NotFoundError):
            await reject_document(db, 999, staff_actor(), "x")
