"""Tests for the correction diff formatter (pure functions, no DB)."""

from datetime import date

import pytest

from loanflow.models.verification import DiffType
from loanflow.services.diff_formatter import (
    EMPTY,
    diff,
    format_changes,
    format_single_value,
    format_summary,
    normalize_for_comparison,
)


# ── diff ──

class TestDiff:

    def test_name_change_reports_only_changed_keys(self):
        old = {"first_name": "ANA", "last_name_1": "PEREZ", "last_name_2": "LOPEZ"}
        new = {"first_name": "ANA MARIA", "last_name_1": "PEREZ", "last_name_2": "LOPEZ"}
        assert diff(old, new, DiffType.NAME) == {"Nombre": "ANA → ANA MARIA"}

    def test_address_labels(self):
        old = {"street": "Reforma", "postal_code": "06600"}
        new = {"street": "Insurgentes", "postal_code": "06700"}
        changes = diff(old, new, DiffType.ADDRESS)
        assert changes == {
            "Calle": "Reforma → Insurgentes",
            "Código Postal": "06600 → 06700",
        }

    def test_empty_and_none_are_equal(self):
        old = {"int_number": None}
        new = {"int_number": ""}
        assert diff(old, new, DiffType.ADDRESS) == {}

    def test_employment_type_compared_case_insensitively(self):
        assert diff({"type": "employee"}, {"type": "EMPLOYEE"}, DiffType.EMPLOYMENT) == {}

    def test_income_compared_numerically(self):
        old = {"monthly_income": "25000.00"}
        new = {"monthly_income": 25000}
        assert diff(old, new, DiffType.EMPLOYMENT) == {}

    def test_income_change_formatted_as_money(self):
        changes = diff({"monthly_income": 25000}, {"monthly_income": 31500.4}, DiffType.EMPLOYMENT)
        assert changes == {"Ingreso Mensual": "$25,000 → $31,500"}

    def test_employment_type_change_uses_labels(self):
        changes = diff({"type": "EMPLOYEE"}, {"type": "SELF_EMPLOYED"}, DiffType.EMPLOYMENT)
        assert changes == {"Tipo de Empleo": "Empleado → Trabajador Independiente"}

    def test_added_value_shows_empty_marker(self):
        changes = diff({"int_number": None}, {"int_number": "4B"}, DiffType.ADDRESS)
        assert changes == {"Número Interior": f"{EMPTY} → 4B"}

    def test_non_mapping_values_produce_no_diff(self):
        assert diff("ANA", "ANA MARIA", DiffType.NAME) == {}
        assert diff(None, {"street": "x"}, DiffType.ADDRESS) == {}

    def test_unknown_type_produces_no_diff(self):
        assert diff({"a": 1}, {"a": 2}, None) == {}

    def test_unlisted_keys_are_ignored(self):
        assert diff({"housing_type": "OWN"}, {"housing_type": "RENT"}, DiffType.ADDRESS) == {}


# ── single values ──

class TestSingleValue:

    @pytest.mark.parametrize("months,expected", [
        (5, "5 mes(es)"),
        (12, "1 año(s)"),
        (30, "2 año(s) y 6 mes(es)"),
        (0, "0 mes(es)"),
    ])
    def test_seniority(self, months, expected):
        assert format_single_value(months, "seniority_months") == expected

    def test_unknown_employment_code_is_kept(self):
        assert format_single_value("FREELANCE", "type") == "FREELANCE"

    def test_legacy_spanish_employment_code(self):
        assert format_single_value("INDEPENDIENTE", "type") == "Trabajador Independiente"

    def test_blank_is_empty_marker(self):
        assert format_single_value("", "street") == EMPTY
        assert format_single_value(None, "monthly_income") == EMPTY

    def test_normalize_numeric(self):
        assert normalize_for_comparison("12", "seniority_months") == "12.0"
        assert normalize_for_comparison(None, "seniority_months") == ""


# ── summaries ──

class TestFormatSummary:

    def test_none(self):
        assert format_summary(None) == EMPTY

    def test_name_joined(self):
        value = {"first_name": "ANA", "last_name_1": "PEREZ", "last_name_2": None}
        assert format_summary(value) == "ANA PEREZ"

    def test_employment(self):
        value = {
            "type": "EMPLOYEE",
            "company_name": "ACME",
            "position": "Analista",
            "monthly_income": 25000,
        }
        assert format_summary(value) == "Empleado - ACME - Analista - $25,000"

    def test_employment_zero_income_omitted(self):
        value = {"type": "EMPLOYEE", "company_name": "ACME", "monthly_income": 0}
        assert format_summary(value) == "Empleado - ACME"

    def test_address(self):
        value = {
            "street": "Av. Reforma",
            "ext_number": "100",
            "int_number": "4B",
            "neighborhood": "Juárez",
            "postal_code": "06600",
            "municipality": "Cuauhtémoc",
            "state": "CDMX",
        }
        assert format_summary(value) == (
            "Av. Reforma 100 Int. 4B, Col. Juárez, C.P. 06600, Cuauhtémoc, CDMX"
        )

    def test_address_without_state(self):
        value = {"street": "Reforma", "ext_number": None, "municipality": "Cuauhtémoc"}
        assert format_summary(value) == "Reforma, Cuauhtémoc"

    def test_iso_date_string(self):
        assert format_summary("1990-01-31") == "31/01/1990"

    def test_date_object(self):
        assert format_summary(date(1990, 1, 31)) == "31/01/1990"

    def test_invalid_iso_like_date_returned_as_is(self):
        assert format_summary("1990-13-45") == "1990-13-45"

    def test_other_mapping_first_non_empty(self):
        assert format_summary({"a": "", "b": None, "c": "valor"}) == "valor"

    def test_empty_mapping(self):
        assert format_summary({}) == EMPTY

    def test_empty_string(self):
        assert format_summary("") == EMPTY

    def test_never_raises_on_odd_input(self):
        class Weird:
            def __str__(self):
                raise RuntimeError("boom")

        assert format_summary(Weird()) == EMPTY


class TestFormatChanges:

    def test_composite_with_changes(self):
        text = format_changes(
            {"street": "A", "postal_code": "1"},
            {"street": "B", "postal_code": "1"},
            DiffType.ADDRESS,
        )
        assert text == "Calle: A → B"

    def test_scalar_falls_back_to_summaries(self):
        assert format_changes("1990-01-01", "1991-02-02", None) == "01/01/1990 → 02/02/1991"
