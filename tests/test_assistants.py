"""
Tests for assistant persistence, branches and timetables.
"""

from datetime import date, timedelta

import pytest

from clinicapi import assistants as svc
from clinicapi.database import create_branch
from clinicapi.errors import NotFoundError, ValidationError
from clinicapi.models import DayOfWeek, EmploymentType, Gender


@pytest.fixture
def branch(engine, clinic_a):
    return create_branch(engine, clinic_a, "Siam")


def make(engine, clinic_id, **extra):
    data = {
        "name": "Nok",
        "surname": "Srisuk",
        "gender": "female",
        "employment_type": "fullTime",
        "clinic_id": clinic_id,
    }
    data.update(extra)
    return svc.create_assistant(engine, data)


# ── Tests: create / find ─────────────────────────────────────────────

def test_create_with_branch_and_timetable(engine, clinic_a, branch):
    a = make(engine, clinic_a, nickname="Nok", birthday="1990-05-01", branches=[
        {"branchId": branch, "timetable": [{"day": "monday", "time": ["09:00-12:00"]}]},
    ])
    assert a.gender == Gender.FEMALE
    assert a.employment_type == EmploymentType.FULL_TIME
    assert a.is_active is True
    assert a.birthday == date(1990, 5, 1)
    assert a.full_name == "Nok Srisuk"
    assert a.clinic.name == "Clinic A"

    assert len(a.branches) == 1
    assigned = a.branches[0]
    assert assigned.branch.branch_id == branch
    assert assigned.branch.name == "Siam"
    assert assigned.timetable[0].day == DayOfWeek.MONDAY
    assert assigned.timetable[0].time == ["09:00-12:00"]


def test_branches_accepted_as_json_string(engine, clinic_a, branch):
    a = make(engine, clinic_a, branches=f'[{{"branch_id": "{branch}", "timetable": []}}]')
    assert a.branches[0].branch.branch_id == branch


def test_unknown_branch_rejected(engine, clinic_a, branch):
    with pytest.raises(ValidationError, match="branches do not exist"):
        make(engine, clinic_a, branches=[{"branch_id": branch}, {"branch_id": "9" * 24}])


def test_duplicate_branch_ids_tolerated(engine, clinic_a, branch):
    a = make(engine, clinic_a, branches=[{"branch_id": branch}, {"branch_id": branch}])
    assert len(a.branches) == 2


def test_bad_enum_values(engine, clinic_a):
    with pytest.raises(ValidationError, match="gender must be one of"):
        make(engine, clinic_a, gender="robot")
    with pytest.raises(ValidationError, match="employmentType must be one of"):
        make(engine, clinic_a, employment_type="seasonal")


def test_future_birthday_rejected(engine, clinic_a):
    tomorrow = date.today() + timedelta(days=1)
    with pytest.raises(ValidationError, match="future"):
        make(engine, clinic_a, birthday=tomorrow.isoformat())


def test_empty_time_list_rejected(engine, clinic_a, branch):
    with pytest.raises(ValidationError):
        make(engine, clinic_a, branches=[{"branch_id": branch, "timetable": [{"day": "monday", "time": []}]}])


# ── Tests: listing ───────────────────────────────────────────────────

def test_list_filters(engine, clinic_a, clinic_b):
    make(engine, clinic_a, name="Ann", surname="Lee", employment_type="partTime")
    make(engine, clinic_a, name="Bee", surname="Kim", nickname="Bumble")
    make(engine, clinic_a, name="Cat", surname="Ng", is_active=False)
    make(engine, clinic_b, name="Dan", surname="Ho")

    result = svc.list_assistants(engine, {"clinic_id": clinic_a})
    assert [a.name for a in result["assistants"]] == ["Ann", "Bee", "Cat"]

    result = svc.list_assistants(engine, {"employment_type": "partTime"})
    assert [a.name for a in result["assistants"]] == ["Ann"]

    result = svc.list_assistants(engine, {"clinic_id": clinic_a, "is_active": False})
    assert [a.name for a in result["assistants"]] == ["Cat"]

    result = svc.list_assistants(engine, {"search": "bumb"})
    assert [a.name for a in result["assistants"]] == ["Bee"]


def test_options_only_active(engine, clinic_a):
    ann = make(engine, clinic_a, name="Ann", surname="Lee")
    make(engine, clinic_a, name="Cat", surname="Ng", is_active=False)
    assert svc.list_assistant_options(engine, {"clinic_id": clinic_a}) == [
        {"id": ann.id, "value": "Ann Lee"},
    ]


def test_by_employment_type(engine, clinic_a, clinic_b):
    make(engine, clinic_a, name="Ann", employment_type="partTime")
    make(engine, clinic_b, name="Bee", employment_type="partTime")
    make(engine, clinic_a, name="Cat", employment_type="fullTime")

    assert [a.name for a in svc.list_by_employment_type(engine, "partTime")] == ["Ann", "Bee"]
    assert [a.name for a in svc.list_by_employment_type(engine, "partTime", clinic_a)] == ["Ann"]
    with pytest.raises(ValidationError):
        svc.list_by_employment_type(engine, "contract")


# ── Tests: update / status / delete ──────────────────────────────────

def test_update_replaces_branches(engine, clinic_a, branch):
    other = create_branch(engine, clinic_a, "Asok")
    a = make(engine, clinic_a, branches=[{"branch_id": branch}])
    updated = svc.update_assistant(engine, a.id, {"branches": [{"branch_id": other}], "nickname": "N"})
    assert [b.branch.name for b in updated.branches] == ["Asok"]
    assert updated.nickname == "N"
    assert updated.name == "Nok"


def test_update_status(engine, clinic_a):
    a = make(engine, clinic_a)
    assert svc.update_assistant_status(engine, a.id, False).is_active is False
    with pytest.raises(ValidationError):
        svc.update_assistant_status(engine, a.id, "no")


def test_update_null_is_active_rejected(engine, clinic_a):
    a = make(engine, clinic_a)
    with pytest.raises(ValidationError, match="isActive must be true or false"):
        svc.update_assistant(engine, a.id, {"is_active": None, "nickname": "n"})
    stored = svc.find_assistant(engine, a.id)
    assert stored.is_active is True
    assert stored.nickname is None


def test_missing_assistant(engine):
    with pytest.raises(NotFoundError, match="Assistant not found"):
        svc.update_assistant_status(engine, "0" * 24, True)
    with pytest.raises(NotFoundError):
        svc.delete_assistant(engine, "0" * 24)


def test_delete(engine, clinic_a):
    a = make(engine, clinic_a)
    svc.delete_assistant(engine, a.id)
    assert svc.find_assistant(engine, a.id) is None
