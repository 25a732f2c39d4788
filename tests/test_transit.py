"""
Tests for TAT parsing and business-day arithmetic.
"""
from datetime import date, datetime

import pytest

from storefront_backend.modules.shipping.transit import (
    add_business_days,
    default_pickup_date,
    fallback_delivery_date,
    format_pickup_for_partner,
    format_tat,
    parse_date,
    parse_tat_days,
    resolve_pickup_date,
)

MONDAY = date(2024, 1, 1)
FRIDAY = date(2024, 1, 5)


class TestParseTatDays:

    @pytest.mark.parametrize("tat,expected", [
        ("2", 2),
        (3, 3),
        (2.0, 2),
        ("3-5 days", 5),
        ("3 - 7 business days", 7),
        ("1 business day", 1),
        ("4 days", 4),
    ])
    def test_numeric_values(self, tat, expected):
        assert parse_tat_days(tat) == expected

    @pytest.mark.parametrize("tat", [None, "", "soon", True, -1])
    def test_non_numeric_values(self, tat):
        assert parse_tat_days(tat) is None


class TestFormatTat:

    def test_plural(self):
        assert format_tat("2", "fallback") == "2 business days"

    def test_singular(self):
        assert format_tat(1, "fallback") == "1 business day"

    def test_text_kept(self):
        assert format_tat("3-5 days", "fallback") == "3-5 days"

    def test_missing_uses_fallback(self):
        assert format_tat(None, "3-7 business days") == "3-7 business days"
        assert format_tat("  ", "3-7 business days") == "3-7 business days"


class TestBusinessDays:

    def test_within_week(self):
        assert add_business_days(MONDAY, 3) == date(2024, 1, 4)

    def test_skips_weekend(self):
        assert add_business_days(FRIDAY, 1) == date(2024, 1, 8)

    def test_zero_days(self):
        assert add_business_days(MONDAY, 0) == MONDAY

    def test_fallback_is_calendar_days(self):
        assert fallback_delivery_date(5, MONDAY) == date(2024, 1, 6)


class TestDates:

    @pytest.mark.parametrize("value", ["2024-01-04", "2024-01-04 10:00", "2024-01-04T18:30:00Z"])
    def test_parse_date(self, value):
        assert parse_date(value) == date(2024, 1, 4)

    def test_parse_date_objects(self):
        assert parse_date(datetime(2024, 1, 4, 9, 0)) == date(2024, 1, 4)
        assert parse_date(date(2024, 1, 4)) == date(2024, 1, 4)

    @pytest.mark.parametrize("value", [None, "", "04/01/2024", "not a date"])
    def test_parse_invalid(self, value):
        assert parse_date(value) is None

    def test_default_pickup_is_tomorrow(self):
        assert default_pickup_date(MONDAY) == date(2024, 1, 2)

    def test_resolve_pickup(self):
        assert resolve_pickup_date("2024-01-10", MONDAY) == date(2024, 1, 10)
        assert resolve_pickup_date(MONDAY, MONDAY) == MONDAY
        assert resolve_pickup_date("2023-12-31", MONDAY) == date(2024, 1, 2)
        assert resolve_pickup_date("garbage", MONDAY) == date(2024, 1, 2)
        assert resolve_pickup_date(None, MONDAY) == date(2024, 1, 2)

    def test_partner_format(self):
        assert format_pickup_for_partner(date(2024, 1, 2)) == "2024-01-02 10:00"
