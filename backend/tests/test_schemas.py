"""Tests for request schemas: CorrectionSubmit, ReferenceCreate, StatusChangeRequest."""

import pytest
from pydantic import ValidationError

from loanflow.models.application import ApplicationStatus
from loanflow.schemas import (
    CorrectionSubmit,
    DocumentUpload,
    ReferenceCreate,
    StatusChangeRequest,
)


class TestCorrectionSubmit:
    """Correction payloads carry either a scalar or a composite value."""

    def test_accepts_scalar(self):
        """A plain string is a valid value."""
        data = CorrectionSubmit(field_name="curp", new_value="PELA900101MDFRPN01")
        assert data.new_value == "PELA900101MDFRPN01"
        assert data.geolocation is None

    def test_accepts_composite(self):
        """An address dict is passed through untouched."""
        data = CorrectionSubmit(field_name="address", new_value={"street": "Insurgentes", "ext_number": "10"})
        assert data.new_value["street"] == "Insurgentes"

    def test_accepts_device_geolocation(self):
        """Device coordinates are optional but validated."""
        data = CorrectionSubmit(
            field_name="phone", new_value="5587654321",
            geolocation={"latitude": 19.43, "longitude": -99.13, "accuracy": 12},
        )
        assert data.geolocation.latitude == 19.43

    def test_rejects_out_of_range_latitude(self):
        with pytest.raises(ValidationError):
            CorrectionSubmit(field_name="phone", new_value="1", geolocation={"latitude": 120})

    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_rejects_blank_value(self, value):
        """Missing or whitespace-only values are refused."""
        with pytest.raises(ValidationError):
            CorrectionSubmit(field_name="curp", new_value=value)

    def test_rejects_empty_field_name(self):
        with pytest.raises(ValidationError):
            CorrectionSubmit(field_name="", new_value="x")


class TestReferenceCreate:
    """Reference schema validates contact data."""

    def test_valid(self):
        data = ReferenceCreate(full_name="Maria Gonzalez", relationship="Hermana", phone="5511112222")
        assert data.email is None

    def test_invalid_email(self):
        with pytest.raises(ValidationError):
            ReferenceCreate(full_name="Maria", relationship="Amiga", phone="55", email="no-es-correo")

    def test_requires_name(self):
        with pytest.raises(ValidationError):
            ReferenceCreate(full_name="", relationship="Amiga", phone="55")


class TestStatusChangeRequest:

    def test_parses_status(self):
        data = StatusChangeRequest(status="APPROVED", reason="Cumple política")
        assert data.status == ApplicationStatus.APPROVED

    def test_unknown_status(self):
        with pytest.raises(ValidationError):
            StatusChangeRequest(status="ON_HOLD")


class TestDocumentUpload:

    def test_negative_size_refused(self):
        with pytest.raises(ValidationError):
            DocumentUpload(type="INE_FRONT", file_name="ine.jpg", file_size=-1)
