"""Tests for spreadsheet cell normalization."""

from datetime import date, datetime

import pytest

from tendertrack.normalization import (
    extract_url,
    is_blank,
    normalize_currency,
    normalize_date,
    normalize_list,
    normalize_text,
)


class TestNormalizeText:

    def test_collapses_whitespace(self):
        assert normalize_text("  Supply   of\n laptops ") == "Supply of laptops"

    def test_none_and_empty_use_default(self):
        assert normalize_text(None) == ""
        assert normalize_text("   ", default="Unknown") == "Unknown"

    def test_integral_float_has_no_decimal(self):
        assert normalize_text(12345.0) == "12345"
        assert normalize_text(12.5) == "12.5"


class TestNormalizeCurrency:

    @pytest.mark.parametrize("raw,expected", [
        ("₹50,00,000.00", 5000000),
        ("", 0),
        ("N/A", 0),
        (None, 0),
        ("-500", 0),
        (1234.5, 1235),
        (2500000, 2500000),
        ("Rs. 1,200", 1200),
        ("INR 75000", 75000),
        ("2.5 Cr", 25000000),
        ("12 Lakhs", 1200000),
        ("Rs. 50,000/-", 50000),
        ("₹1.5 Cr.", 15000000),
        ("50000.00/-", 50000),
        ("Rs 12,00,000.00 (approx.)", 1200000),
    ])
    def test_values(self, raw, expected):
        assert normalize_currency(raw) == expected

    def test_scale_converts_to_minor_units(self):
        assert normalize_currency("₹50,00,000.00", scale=100) == 500000000
        assert normalize_currency("1,234.56", scale=100) == 123456

    def test_boolean_is_not_money(self):
        assert normalize_currency(True) == 0


class TestNormalizeDate:

    def test_datetime_passes_through(self):
        value = datetime(2025, 3, 4, 17, 30)
        assert normalize_date(value) == value

    def test_date_promoted_to_midnight(self):
        assert normalize_date(date(2025, 3, 4)) == datetime(2025, 3, 4)

    def test_excel_serial_number(self):
        assert normalize_date(45000) == datetime(2023, 3, 15)
        assert normalize_date("45000") == datetime(2023, 3, 15)

    def test_small_number_is_not_a_date(self):
        fallback = datetime(2030, 1, 1)
        assert normalize_date(100, default=fallback) == fallback

    def test_day_first_text(self):
        assert normalize_date("03/04/2025") == datetime(2025, 4, 3)
        assert normalize_date("03/04/2025", dayfirst=False) == datetime(2025, 3, 4)

    def test_iso_text(self):
        assert normalize_date("2025-12-31 18:00") == datetime(2025, 12, 31, 18, 0)
        assert normalize_date("2025-03-04") == datetime(2025, 3, 4)

    def test_unparsable_returns_default(self):
        fallback = datetime(2030, 1, 1)
        assert normalize_date("not a date at all", default=fallback) == fallback
        assert normalize_date("", default=fallback) == fallback
        assert normalize_date(None) is None


class TestNormalizeList:

    def test_json_array(self):
        assert normalize_list('["Alpha Ltd", "Beta Corp"]') == ["Alpha Ltd", "Beta Corp"]

    def test_delimited_text(self):
        assert normalize_list("Alpha; Beta ,, Gamma|Delta\nEpsilon") == [
            "Alpha", "Beta", "Gamma", "Delta", "Epsilon",
        ]

    def test_list_passes_through_cleaned(self):
        assert normalize_list([" Alpha ", "", None, "Beta"]) == ["Alpha", "Beta"]

    def test_empty(self):
        assert normalize_list(None) == []
        assert normalize_list("") == []


def test_is_blank():
    assert is_blank(None)
    assert is_blank("  ")
    assert not is_blank(0)
    assert not is_blank("x")


def test_extract_url():
    assert extract_url("See https://gem.gov.in/bid/123. Thanks") == "https://gem.gov.in/bid/123"
    assert extract_url("no link here") is None
    assert extract_url(None) is None
