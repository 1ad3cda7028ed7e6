from decimal import Decimal

import pytest

from payadmin_api.services.adjustment_categories import BENEFIT, DEDUCTION, get_category
from payadmin_api.services.ledger_errors import InvalidValueError, UnknownFieldError, ValidationError


def test_field_schemas_are_ordered():
    assert BENEFIT.field_keys == (
        "allowances", "mf_shares", "mf_loan", "sss_loan",
        "sss_prem", "hmdf_loan", "hmdf_prem", "philhealth",
    )
    assert DEDUCTION.field_keys == (
        "advance", "charge_store", "charge", "meals", "miscellaneous", "other_deductions",
    )


def test_get_category_by_name_or_plural():
    assert get_category("benefit") is BENEFIT
    assert get_category("Deductions") is DEDUCTION
    assert get_category(BENEFIT) is BENEFIT
    with pytest.raises(ValidationError):
        get_category("bonus")


@pytest.mark.parametrize("raw,expected", [
    (None, "0.00"),
    ("", "0.00"),
    (500, "500.00"),
    ("1,250.5", "1250.50"),
    (0.005, "0.01"),      # half-up
    ("12.344", "12.34"),
    ("-0", "0.00"),
])
def test_parse_normalizes_to_cents(raw, expected):
    assert BENEFIT.field("allowances").parse(raw) == Decimal(expected)


@pytest.mark.parametrize("raw", ["abc", "-1", True, "NaN", "Infinity", "1e20"])
def test_parse_rejects_bad_values(raw):
    with pytest.raises(InvalidValueError) as ei:
        BENEFIT.field("sss_loan").parse(raw)
    assert ei.value.status_code == 422


def test_unknown_field():
    with pytest.raises(UnknownFieldError) as ei:
        DEDUCTION.field("allowances")
    assert "advance" in ei.value.payload["allowed"]


def test_clean_values_fills_missing_and_rejects_unknown():
    vals = DEDUCTION.clean_values({"meals": "75"})
    assert list(vals) == list(DEDUCTION.field_keys)
    assert vals["meals"] == Decimal("75.00")
    assert vals["advance"] == Decimal("0.00")
    with pytest.raises(UnknownFieldError):
        DEDUCTION.clean_values({"bogus": 1})
