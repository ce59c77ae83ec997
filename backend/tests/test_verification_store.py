"""Tests for the per-field verification store."""

from datetime import date
from decimal import Decimal
from unittest.mock import patch

import pytest

from loanflow.config import settings
from loanflow.models.verification import VerifiableField, VerificationStatus
from loanflow.services import verification_store
from loanflow.services.errors import FieldNotVerifiable, ValidationError

from conftest import TENANT, make_applicant


class TestFieldCatalog:

    @pytest.mark.parametrize("raw,expected", [
        ("curp", VerifiableField.CURP),
        ("CURP", VerifiableField.CURP),
        (" address ", VerifiableField.ADDRESS),
        ("ine", VerifiableField.INE),
        (VerifiableField.EMPLOYMENT, VerifiableField.EMPLOYMENT),
    ])
    def test_coerce(self, raw, expected):
        assert verification_store.coerce_field(raw) == expected

    @pytest.mark.parametrize("raw", ["salary", "", None, "full_name"])
    def test_unknown_field_rejected(self, raw):
        with pytest.raises(FieldNotVerifiable):
            verification_store.coerce_field(raw)

    def test_name_parts_share_a_label_when_collapsed(self):
        with patch.object(settings, "collapse_name_fields", True):
            assert verification_store.display_label(VerifiableField.LAST_NAME_1) == "Nombre Completo"
            assert verification_store.display_label(VerifiableField.FIRST_NAME) == "Nombre Completo"

    def test_name_parts_keep_own_labels_when_not_collapsed(self):
        with patch.object(settings, "collapse_name_fields", False):
            assert verification_store.display_label(VerifiableField.LAST_NAME_1) == "Apellido Paterno"

    def test_other_fields_use_catalog_label(self):
        assert verification_store.display_label(VerifiableField.ADDRESS) == "Dirección"
        assert verification_store.display_label(VerifiableField.INE) == "Clave de Elector"


class TestSerialization:

    def test_composite_round_trips_through_field_value(self):
        raw = verification_store.serialize_value({"street": "Reforma", "monthly_income": Decimal("10.5")})
        assert verification_store.decode_value(raw) == {"street": "Reforma", "monthly_income": 10.5}

    def test_date_serialized_as_iso(self):
        assert verification_store.serialize_value(date(1990, 1, 2)) == "1990-01-02"

    def test_plain_text_passes_through(self):
        assert verification_store.decode_value("PELA900101MDFRPN09") == "PELA900101MDFRPN09"

    def test_malformed_json_kept_as_text(self):
        assert verification_store.decode_value("{not json") == "{not json"


class TestLifecycle:

    @pytest.mark.asyncio
    async def test_reject_creates_row(self, db):
        applicant = await make_applicant(db)

        row = await verification_store.reject(
            db, applicant.id, "curp", "  No coincide con INE ",
            tenant_id=TENANT, field_value="PELA900101MDFRPN09", rejected_by="staff-1",
        )

        assert row.id is not None
        assert row.status == VerificationStatus.REJECTED
        assert row.rejection_reason == "No coincide con INE"
        assert row.field_value == "PELA900101MDFRPN09"
        assert row.rejected_at is not None
        assert row.correction_count == 0

    @pytest.mark.asyncio
    async def test_reject_requires_reason(self, db):
        applicant = await make_applicant(db)
        with pytest.raises(ValidationError):
            await verification_store.reject(db, applicant.id, "curp", "  ", tenant_id=TENANT)

    @pytest.mark.asyncio
    async def test_one_row_per_field(self, db):
        applicant = await make_applicant(db)
        first = await verification_store.reject(db, applicant.id, "rfc", "mal", tenant_id=TENANT)
        second = await verification_store.verify(db, applicant.id, "rfc", tenant_id=TENANT)

        assert first is second
        assert second.status == VerificationStatus.VERIFIED
        assert second.rejection_reason is None
        assert len(await verification_store.list_for_applicant(db, applicant.id)) == 1

    @pytest.mark.asyncio
    async def test_correct_appends_exactly_one_entry(self, db):
        applicant = await make_applicant(db)
        row = await verification_store.reject(db, applicant.id, "phone", "Número inválido", tenant_id=TENANT)

        await verification_store.correct(db, row, "5512345678", "5587654321", {"id": "user-1", "name": "Ana"})

        assert row.status == VerificationStatus.CORRECTED
        assert row.corrected_at is not None
        assert row.field_value == "5587654321"
        assert row.correction_count == 1
        entry = row.correction_history[0]
        assert entry.old_value == "5512345678"
        assert entry.new_value == "5587654321"
        assert entry.rejection_reason == "Número inválido"
        assert entry.corrected_by == {"id": "user-1", "name": "Ana"}

    @pytest.mark.asyncio
    async def test_correct_requires_rejected_row(self, db):
        applicant = await make_applicant(db)
        row = await verification_store.verify(db, applicant.id, "phone", tenant_id=TENANT)

        with pytest.raises(ValidationError):
            await verification_store.correct(db, row, "a", "b", None)
        assert row.correction_count == 0

    @pytest.mark.asyncio
    async def test_history_only_grows_across_cycles(self, db):
        applicant = await make_applicant(db)
        row = await verification_store.reject(db, applicant.id, "email", "Dominio inválido", tenant_id=TENANT)
        await verification_store.correct(db, row, "a@x.com", "b@x.com", None)
        await verification_store.reject(db, applicant.id, "email", "Sigue mal", tenant_id=TENANT)
        await verification_store.correct(db, row, "b@x.com", "c@x.com", None)

        assert row.correction_count == 2
        assert [e.rejection_reason for e in row.correction_history] == ["Dominio inválido", "Sigue mal"]

    @pytest.mark.asyncio
    async def test_list_rejected_and_corrected(self, db):
        applicant = await make_applicant(db)
        curp = await verification_store.reject(db, applicant.id, "curp", "x", tenant_id=TENANT)
        await verification_store.reject(db, applicant.id, "rfc", "y", tenant_id=TENANT)
        await verification_store.correct(db, curp, "OLD", "NEW", None)

        rejected = await verification_store.list_rejected(db, applicant.id)
        corrected = await verification_store.list_corrected(db, applicant.id)
        assert [r.field_name for r in rejected] == [VerifiableField.RFC]
        assert [r.field_name for r in corrected] == [VerifiableField.CURP]

    @pytest.mark.asyncio
    async def test_correction_history_newest_first(self, db):
        applicant = await make_applicant(db)
        phone = await verification_store.reject(db, applicant.id, "phone", "x", tenant_id=TENANT)
        email = await verification_store.reject(db, applicant.id, "email", "y", tenant_id=TENANT)
        await verification_store.correct(db, phone, "1", "2", None)
        await verification_store.correct(db, email, "a@x.com", "b@x.com", None)

        history = await verification_store.list_correction_history(db, applicant.id)

        assert [item.field_name for item in history] == ["email", "phone"]
        assert history[0].field_label == "Email"

    @pytest.mark.asyncio
    async def test_mark_covered_writes_no_history(self, db):
        applicant = await make_applicant(db)
        row = await verification_store.reject(db, applicant.id, "last_name_2", "x", tenant_id=TENANT)

        await verification_store.mark_covered(db, row, "GARCIA")

        assert row.status == VerificationStatus.CORRECTED
        assert row.correction_count == 0
        assert row.field_value == "GARCIA"
