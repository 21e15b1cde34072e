"""Unit tests for phone classification and mobile normalization."""

import pytest

from taxidispatch.domain.enums import PhoneFormat
from taxidispatch.domain.phone import (
    classify_phone,
    clean_phone,
    mobile_candidates,
    normalize_mobile,
)


class TestClassifyPhone:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("12345", PhoneFormat.SHORT_ID),
            ("2345678", PhoneFormat.FIXED_LINE),
            ("0991234567", PhoneFormat.MOBILE),
            ("593991234567", PhoneFormat.MOBILE),
            ("99123456", PhoneFormat.MOBILE),
            ("+593 99 123 4567", PhoneFormat.MOBILE),
            (" 234 5678 ", PhoneFormat.FIXED_LINE),
        ],
    )
    def test_formats(self, raw, expected):
        assert classify_phone(raw) == expected

    @pytest.mark.parametrize("raw", ["", "1234", "123456", "09-9123-4567", "abcdefg", None])
    def test_invalid(self, raw):
        assert classify_phone(raw) == PhoneFormat.INVALID

    def test_clean_strips_blanks_and_plus(self):
        assert clean_phone("+593 99 123\t4567") == "593991234567"


class TestNormalizeMobile:
    def test_leading_zero_becomes_country_code(self):
        assert normalize_mobile("0991234567", "593") == "593991234567"

    def test_already_international_is_unchanged(self):
        assert normalize_mobile("593991234567", "593") == "593991234567"

    def test_other_country_code(self):
        assert normalize_mobile("0611223344", "33") == "33611223344"

    def test_candidates_carry_last_nine_digits(self):
        candidates = mobile_candidates("0991234567", "593")
        assert candidates.normalized == "593991234567"
        assert candidates.legacy_id == "991234567"
