"""
Tests for diagnosis persistence.
"""

import pytest

from clinicapi import diagnoses as svc
from clinicapi.errors import DuplicateError, NotFoundError, ValidationError


def test_create_find_update_delete(engine, clinic_a):
    d = svc.create_diagnosis(engine, {"name": "  Eczema ", "clinic_id": clinic_a})
    assert d.name == "Eczema"
    assert d.clinic.name == "Clinic A"

    renamed = svc.update_diagnosis(engine, d.id, {"name": "Atopic eczema"})
    assert renamed.name == "Atopic eczema"
    assert renamed.updated_at >= d.updated_at

    assert svc.delete_diagnosis(engine, d.id) is True
    assert svc.find_diagnosis(engine, d.id) is None


def test_duplicate_name_rejected(engine, clinic_a):
    svc.create_diagnosis(engine, {"name": "Acne", "clinic_id": clinic_a})
    with pytest.raises(DuplicateError, match="A diagnosis with this name already exists"):
        svc.create_diagnosis(engine, {"name": "Acne", "clinic_id": clinic_a})


def test_rename_collision_rejected(engine, clinic_a):
    svc.create_diagnosis(engine, {"name": "Acne", "clinic_id": clinic_a})
    other = svc.create_diagnosis(engine, {"name": "Rosacea", "clinic_id": clinic_a})
    with pytest.raises(DuplicateError):
        svc.update_diagnosis(engine, other.id, {"name": "Acne"})


def test_update_without_name_returns_current(engine, clinic_a):
    d = svc.create_diagnosis(engine, {"name": "Acne", "clinic_id": clinic_a})
    assert svc.update_diagnosis(engine, d.id, {}).name == "Acne"


def test_blank_name_rejected(engine, clinic_a):
    with pytest.raises(ValidationError, match="name is required"):
        svc.create_diagnosis(engine, {"name": "   ", "clinic_id": clinic_a})


def test_missing_diagnosis(engine):
    with pytest.raises(NotFoundError, match="Diagnosis not found"):
        svc.update_diagnosis(engine, "0" * 24, {"name": "X"})
    with pytest.raises(NotFoundError):
        svc.delete_diagnosis(engine, "0" * 24)


def test_list_scoped_and_searchable(engine, clinic_a, clinic_b):
    for name in ("Psoriasis", "Acne", "Melasma"):
        svc.create_diagnosis(engine, {"name": name, "clinic_id": clinic_a})
    svc.create_diagnosis(engine, {"name": "Acne", "clinic_id": clinic_b})

    result = svc.list_diagnoses(engine, {"clinic_id": clinic_a})
    assert [d.name for d in result["diagnoses"]] == ["Acne", "Melasma", "Psoriasis"]
    assert result["total"] == 3

    result = svc.list_diagnoses(engine, {"search": "acn"})
    assert result["total"] == 2

    result = svc.list_diagnoses(engine, {"clinic_id": clinic_a}, sort_order="desc", limit=1)
    assert [d.name for d in result["diagnoses"]] == ["Psoriasis"]
    assert result["total_pages"] == 3
