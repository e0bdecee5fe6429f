"""
Unit tests for request payload parsing.
"""

from datetime import date, timedelta

import pytest

from clinicapi.errors import ValidationError
from clinicapi.models import FeeSpec, FeeType
from clinicapi.schemas import (
    AssistantCreate,
    AssistantStatus,
    AssistantUpdate,
    DiagnosisUpdate,
    FeePreview,
    TreatmentCreate,
    TreatmentUpdate,
    parse_payload,
    to_service_data,
)


# ── Tests: treatments ────────────────────────────────────────────────

def test_treatment_create_camel_case():
    p = parse_payload(TreatmentCreate, {
        "name": " Peel ",
        "price": 900,
        "includeVat": True,
        "doctorFee": {"amount": 10, "type": "percentage"},
        "clinicId": "c1",
    })
    assert p.name == "Peel"
    assert p.include_vat is True
    assert p.doctor_fee.to_fee() == FeeSpec(amount=10, type=FeeType.PERCENTAGE)
    assert p.assistant_fee is None
    assert p.clinic_id == "c1"


def test_fee_as_json_string():
    p = parse_payload(TreatmentCreate, {
        "name": "Peel", "price": 1, "assistantFee": '{"amount": 5, "type": "fixed"}',
    })
    assert p.assistant_fee.to_fee() == FeeSpec(amount=5, type=FeeType.FIXED)


def test_percentage_over_100_rejected():
    with pytest.raises(ValidationError) as e:
        parse_payload(TreatmentCreate, {
            "name": "Peel", "price": 1, "doctorFee": {"amount": 150, "type": "percentage"},
        })
    assert "percentage must not exceed 100" in e.value.message


@pytest.mark.parametrize("amount", [float("nan"), float("inf")])
def test_non_finite_fee_amount_rejected(amount):
    with pytest.raises(ValidationError):
        parse_payload(TreatmentCreate, {
            "name": "Peel", "price": 1, "doctorFee": {"amount": amount, "type": "percentage"},
        })


def test_non_finite_price_rejected():
    with pytest.raises(ValidationError, match="price"):
        parse_payload(TreatmentCreate, {"name": "Peel", "price": float("inf")})


def test_negative_price_rejected():
    with pytest.raises(ValidationError, match="price"):
        parse_payload(TreatmentCreate, {"name": "Peel", "price": -1})


def test_missing_required_fields():
    with pytest.raises(ValidationError) as e:
        parse_payload(TreatmentCreate, {})
    assert e.value.message.startswith("Invalid input: ")
    assert "name" in e.value.message
    assert "price" in e.value.message


def test_update_must_not_be_empty():
    with pytest.raises(ValidationError, match="at least one field"):
        parse_payload(TreatmentUpdate, {})


def test_update_explicit_null_fee_is_kept():
    p = parse_payload(TreatmentUpdate, {"doctorFee": None})
    assert to_service_data(p, partial=True) == {"doctor_fee": None}


def test_fee_preview_all_optional():
    p = parse_payload(FeePreview, {})
    assert p.doctor_fee is None
    assert p.include_vat is None


def test_body_must_be_object():
    with pytest.raises(ValidationError, match="JSON object"):
        parse_payload(TreatmentCreate, ["not", "an", "object"])


# ── Tests: diagnoses / assistants ────────────────────────────────────

def test_diagnosis_update_requires_name():
    with pytest.raises(ValidationError):
        parse_payload(DiagnosisUpdate, {"clinicId": "x"})


def test_assistant_create_with_json_branches():
    p = parse_payload(AssistantCreate, {
        "name": "Nok",
        "surname": "Srisuk",
        "gender": "female",
        "employmentType": "partTime",
        "branches": '[{"branchId": "b1", "timetable": [{"day": "friday", "time": ["10:00-14:00"]}]}]',
    })
    data = to_service_data(p)
    assert data["branches"][0]["branch_id"] == "b1"
    assert data["branches"][0]["timetable"][0]["time"] == ["10:00-14:00"]
    assert data["is_active"] is True


def test_assistant_bad_day_rejected():
    with pytest.raises(ValidationError):
        parse_payload(AssistantUpdate, {"branches": [{"branchId": "b1", "timetable": [{"day": "funday", "time": ["x"]}]}]})


def test_assistant_future_birthday_rejected():
    tomorrow = (date.today() + timedelta(days=1)).isoformat()
    with pytest.raises(ValidationError, match="future"):
        parse_payload(AssistantUpdate, {"birthday": tomorrow})


def test_assistant_status_requires_bool():
    assert parse_payload(AssistantStatus, {"isActive": False}).is_active is False
    with pytest.raises(ValidationError):
        parse_payload(AssistantStatus, {})
