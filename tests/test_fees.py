"""
Unit tests for the fee calculator and fee spec validation.
"""

import pytest

from clinicapi.errors import ValidationError
from clinicapi.fees import compute_fees, fee_amount, parse_fee, round2, validate_fee
from clinicapi.models import FeeSpec, FeeType


def pct(amount):
    return FeeSpec(amount=amount, type=FeeType.PERCENTAGE)


def fixed(amount):
    return FeeSpec(amount=amount, type=FeeType.FIXED)


# ── Tests: round2 ────────────────────────────────────────────────────

def test_round2_half_up_on_binary_value():
    # 1.005 and 2.675 are stored just below the half
    assert round2(1.005) == 1.0
    assert round2(2.675) == 2.67
    assert round2(0.125) == 0.13
    assert round2(2.5) == 2.5


def test_round2_plain_values():
    assert round2(100) == 100.0
    assert round2(12.3456) == 12.35


# ── Tests: compute_fees ──────────────────────────────────────────────

def test_no_vat_no_fees():
    calc = compute_fees(100, False)
    assert calc.to_dict() == {
        "doctorFeeAmount": 0,
        "assistantFeeAmount": 0,
        "vatAmount": 0,
        "priceExcludingVat": 100,
        "totalPrice": 100,
    }


@pytest.mark.parametrize("price", [0, 1, 99.99, 250, 12345.67])
def test_without_vat_price_is_unchanged(price):
    calc = compute_fees(price, False)
    assert calc.price_excluding_vat == price
    assert calc.vat_amount == 0


@pytest.mark.parametrize("price", [0, 1, 10.7, 99.99, 1070, 12345.67])
def test_with_vat_parts_add_up(price):
    calc = compute_fees(price, True)
    assert calc.vat_amount == round2(price * 7 / 107)
    assert abs(calc.price_excluding_vat + calc.vat_amount - round2(price)) <= 0.01 + 1e-9


def test_percentage_fee_on_vat_inclusive_price():
    calc = compute_fees(1070, True, pct(10))
    assert calc.price_excluding_vat == 1000
    assert calc.vat_amount == 70
    assert calc.doctor_fee_amount == 100
    assert calc.assistant_fee_amount == 0


@pytest.mark.parametrize("price,include_vat", [(0, False), (100, True), (9999.5, False)])
def test_fixed_fee_ignores_price(price, include_vat):
    calc = compute_fees(price, include_vat, fixed(500))
    assert calc.doctor_fee_amount == 500


def test_assistant_fee_computed_independently():
    calc = compute_fees(200, False, fixed(30), pct(12.5))
    assert calc.doctor_fee_amount == 30
    assert calc.assistant_fee_amount == 25


def test_percentage_fee_rounds_like_price_arithmetic():
    # 2.01 * 50 / 100 is 1.00499... in binary
    calc = compute_fees(2.01, False, pct(50))
    assert calc.doctor_fee_amount == 1.0


def test_total_price_is_rounded_base_price_only():
    calc = compute_fees(100.456, False, fixed(50), fixed(20))
    assert calc.total_price == 100.46


def test_compute_fees_is_deterministic():
    args = (1234.56, True, pct(33.3), fixed(10))
    assert compute_fees(*args) == compute_fees(*args)


def test_fee_amount_absent_is_zero():
    assert fee_amount(None, 500) == 0


# ── Tests: validation ────────────────────────────────────────────────

def test_validate_fee_accepts_bounds():
    validate_fee(pct(0), "Doctor Fee")
    validate_fee(pct(100), "Doctor Fee")
    validate_fee(fixed(10000), "Doctor Fee")
    validate_fee(None, "Doctor Fee")


def test_validate_fee_rejects_percentage_over_100():
    with pytest.raises(ValidationError) as e:
        validate_fee(pct(150), "Doctor Fee")
    assert "percentage must not exceed 100" in e.value.message
    assert e.value.status_code == 400


def test_validate_fee_rejects_negative_amount():
    with pytest.raises(ValidationError, match="must not be negative"):
        validate_fee(fixed(-1), "Assistant Fee")


def test_validate_fee_rejects_unknown_type():
    with pytest.raises(ValidationError, match="invalid fee type"):
        validate_fee(FeeSpec(amount=5, type="bonus"), "Doctor Fee")


# ── Tests: parse_fee ─────────────────────────────────────────────────

def test_parse_fee_from_dict():
    assert parse_fee({"amount": "10", "type": "percentage"}, "Doctor Fee") == pct(10.0)


def test_parse_fee_from_json_string():
    assert parse_fee('{"amount": 50, "type": "fixed"}', "Doctor Fee") == fixed(50.0)


def test_parse_fee_none_passes_through():
    assert parse_fee(None, "Doctor Fee") is None


def test_parse_fee_bad_json():
    with pytest.raises(ValidationError, match="must be a valid JSON object"):
        parse_fee("{not json", "Doctor Fee")


def test_parse_fee_missing_keys():
    with pytest.raises(ValidationError, match="amount and type are required"):
        parse_fee({"amount": 5}, "Doctor Fee")


def test_parse_fee_percentage_over_100():
    with pytest.raises(ValidationError):
        parse_fee({"amount": 150, "type": "percentage"}, "Doctor Fee")


@pytest.mark.parametrize("amount", [float("nan"), float("inf"), float("-inf")])
def test_validate_fee_rejects_non_finite_amount(amount):
    with pytest.raises(ValidationError, match="finite"):
        validate_fee(fixed(amount), "Doctor Fee")
    with pytest.raises(ValidationError, match="finite"):
        validate_fee(pct(amount), "Doctor Fee")


def test_parse_fee_rejects_non_finite_json():
    with pytest.raises(ValidationError, match="finite"):
        parse_fee('{"amount": NaN, "type": "percentage"}', "Doctor Fee")
    with pytest.raises(ValidationError, match="finite"):
        parse_fee({"amount": "1e400", "type": "fixed"}, "Doctor Fee")
