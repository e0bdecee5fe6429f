"""
Assistant persistence, including branch assignments and timetables.
"""

import json
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, func, insert, or_, select, update

from clinicapi.config import ADDRESS_MAX, ASSISTANT_NAME_MAX, NATIONALITY_MAX, NICKNAME_MAX
from clinicapi.database import (
    assistants,
    branch_names,
    clinics,
    db_errors,
    existing_branch_ids,
    new_id,
    paginate,
    utcnow,
)
from clinicapi.errors import NotFoundError, ValidationError
from clinicapi.models import (
    Assistant,
    AssistantBranch,
    BranchRef,
    DayOfWeek,
    EmploymentType,
    Gender,
    ResolvedClinic,
    TimetableEntry,
    UnresolvedClinic,
)
from clinicapi.validation import optional_text, require_clinic, require_text

SORTABLE = ("name", "surname", "nickname", "employment_type", "is_active", "created_at", "updated_at")

_NOT_FOUND = "Assistant not found"


# ── Input normalisation ──────────────────────────────────────────────

def _enum(enum_cls, value, field_name: str):
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(e.value for e in enum_cls)
        raise ValidationError(f"{field_name} must be one of: {allowed}")


def _birthday(value) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        value = value.date()
    elif isinstance(value, str):
        try:
            value = date.fromisoformat(value[:10])
        except ValueError:
            raise ValidationError("birthday must be an ISO date")
    elif not isinstance(value, date):
        raise ValidationError("birthday must be an ISO date")
    if value > date.today():
        raise ValidationError("birthday must not be in the future")
    return value


def _flag(value, field_name: str) -> bool:
    if not isinstance(value, bool):
        raise ValidationError(f"{field_name} must be true or false")
    return value


def _branches(raw) -> List[Dict[str, Any]]:
    """Validate branch assignments into their stored JSON shape."""
    if raw is None:
        return []
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            raise ValidationError("Invalid branches format, must be a valid JSON array")
    if not isinstance(raw, list):
        raise ValidationError("branches must be an array")

    stored = []
    for item in raw:
        if not isinstance(item, dict):
            raise ValidationError("each branch must be an object")
        branch_id = item.get("branch_id", item.get("branchId"))
        if not branch_id:
            raise ValidationError("branchId is required")
        timetable = []
        for entry in item.get("timetable") or []:
            day = _enum(DayOfWeek, entry.get("day"), "day")
            times = entry.get("time") or []
            if not times or not all(isinstance(t, str) and t for t in times):
                raise ValidationError("time must list at least one time range")
            timetable.append({"day": day.value, "time": list(times)})
        stored.append({"branch_id": str(branch_id), "timetable": timetable})
    return stored


def _check_branches_exist(conn, stored: List[Dict[str, Any]]) -> None:
    wanted = {b["branch_id"] for b in stored}
    missing = wanted - existing_branch_ids(conn, wanted)
    if missing:
        raise ValidationError("One or more of the given branches do not exist")


# ── Row mapping ──────────────────────────────────────────────────────

def _row_to_assistant(row, names: Dict[str, str]) -> Assistant:
    if row["clinic_name"] is not None:
        clinic = ResolvedClinic(id=row["clinic_id"], name=row["clinic_name"])
    else:
        clinic = UnresolvedClinic(id=row["clinic_id"])

    branches = [
        AssistantBranch(
            branch=BranchRef(branch_id=b["branch_id"], name=names.get(b["branch_id"])),
            timetable=[TimetableEntry(day=DayOfWeek(t["day"]), time=list(t["time"])) for t in b["timetable"]],
        )
        for b in (row["branches"] or [])
    ]
    return Assistant(
        id=row["id"],
        photo=row["photo"],
        name=row["name"],
        surname=row["surname"],
        nickname=row["nickname"],
        gender=Gender(row["gender"]),
        nationality=row["nationality"],
        birthday=row["birthday"],
        address=row["address"],
        employment_type=EmploymentType(row["employment_type"]),
        clinic=clinic,
        branches=branches,
        is_active=bool(row["is_active"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _rows_to_assistants(conn, rows) -> List[Assistant]:
    ids = {b["branch_id"] for r in rows for b in (r["branches"] or [])}
    names = branch_names(conn, ids)
    return [_row_to_assistant(r, names) for r in rows]


def _select():
    return (
        select(assistants, clinics.c.name.label("clinic_name"))
        .select_from(assistants.outerjoin(clinics, assistants.c.clinic_id == clinics.c.id))
    )


def _filters(filters: Dict[str, Any]) -> List:
    where = []
    if filters.get("clinic_id"):
        where.append(assistants.c.clinic_id == filters["clinic_id"])
    if filters.get("employment_type"):
        where.append(assistants.c.employment_type == filters["employment_type"])
    if filters.get("is_active") is not None:
        where.append(assistants.c.is_active == bool(filters["is_active"]))
    if filters.get("search"):
        term = filters["search"].lower()
        where.append(or_(
            func.lower(assistants.c.name).contains(term, autoescape=True),
            func.lower(assistants.c.surname).contains(term, autoescape=True),
            func.lower(assistants.c.nickname).contains(term, autoescape=True),
        ))
    return where


# ── Queries ──────────────────────────────────────────────────────────

def find_assistant(engine, assistant_id: str) -> Optional[Assistant]:
    """Look up an assistant with clinic and branch names resolved."""
    with db_errors("finding assistant"):
        with engine.connect() as conn:
            row = conn.execute(_select().where(assistants.c.id == assistant_id)).mappings().first()
            if row is None:
                return None
            return _rows_to_assistants(conn, [row])[0]


def list_assistants(
    engine,
    filters: Dict[str, Any],
    sort_by: str = "name",
    sort_order: str = "asc",
    page: int = 1,
    limit: int = 10,
) -> Dict[str, Any]:
    """
    Page through assistants.

    Recognised filters: clinic_id, employment_type, is_active and search
    (matched against name, surname and nickname).
    """
    with db_errors("listing assistants"):
        with engine.connect() as conn:
            rows, total, total_pages = paginate(
                conn, _select(), assistants, _filters(filters),
                sort_by, sort_order, page, limit, SORTABLE,
            )
            items = _rows_to_assistants(conn, rows)
    return {"assistants": items, "total": total, "total_pages": total_pages}


def list_assistant_options(engine, filters: Dict[str, Any], sort_by: str = "name", sort_order: str = "asc"):
    """Active assistants as (id, full name) pairs for pickers."""
    filters = dict(filters, is_active=True)
    column = assistants.c[sort_by] if sort_by in SORTABLE else assistants.c.name
    order = column.desc() if sort_order == "desc" else column.asc()

    q = select(assistants.c.id, assistants.c.name, assistants.c.surname)
    for clause in _filters(filters):
        q = q.where(clause)
    with db_errors("listing assistant options"):
        with engine.connect() as conn:
            rows = conn.execute(q.order_by(order, assistants.c.id)).mappings().all()
    return [{"id": r["id"], "value": f"{r['name']} {r['surname']}"} for r in rows]


def list_by_employment_type(engine, employment_type: str, clinic_id: Optional[str] = None) -> List[Assistant]:
    kind = _enum(EmploymentType, employment_type, "employment type")
    filters = {"employment_type": kind.value, "is_active": True, "clinic_id": clinic_id}
    q = _select()
    for clause in _filters(filters):
        q = q.where(clause)
    with db_errors("listing assistants by employment type"):
        with engine.connect() as conn:
            rows = conn.execute(q.order_by(assistants.c.name, assistants.c.id)).mappings().all()
            return _rows_to_assistants(conn, rows)


# ── Mutations ────────────────────────────────────────────────────────

def create_assistant(engine, data: Dict[str, Any]) -> Assistant:
    """Insert an assistant; every referenced branch must exist."""
    values = {
        "name": require_text(data.get("name"), "name", ASSISTANT_NAME_MAX),
        "surname": require_text(data.get("surname"), "surname", ASSISTANT_NAME_MAX),
        "nickname": optional_text(data.get("nickname"), "nickname", NICKNAME_MAX),
        "gender": _enum(Gender, data.get("gender"), "gender").value,
        "nationality": optional_text(data.get("nationality"), "nationality", NATIONALITY_MAX),
        "birthday": _birthday(data.get("birthday")),
        "address": optional_text(data.get("address"), "address", ADDRESS_MAX),
        "photo": data.get("photo"),
        "employment_type": _enum(EmploymentType, data.get("employment_type"), "employmentType").value,
        "clinic_id": require_clinic(data.get("clinic_id")),
        "branches": _branches(data.get("branches")),
        "is_active": True if data.get("is_active") is None else bool(data["is_active"]),
    }

    assistant_id = new_id()
    now = utcnow()
    with db_errors("creating assistant"):
        with engine.begin() as conn:
            _check_branches_exist(conn, values["branches"])
            conn.execute(insert(assistants).values(
                id=assistant_id, created_at=now, updated_at=now, **values,
            ))
    return find_assistant(engine, assistant_id)


_UPDATERS = {
    "name": lambda v: require_text(v, "name", ASSISTANT_NAME_MAX),
    "surname": lambda v: require_text(v, "surname", ASSISTANT_NAME_MAX),
    "nickname": lambda v: optional_text(v, "nickname", NICKNAME_MAX),
    "gender": lambda v: _enum(Gender, v, "gender").value,
    "nationality": lambda v: optional_text(v, "nationality", NATIONALITY_MAX),
    "birthday": _birthday,
    "address": lambda v: optional_text(v, "address", ADDRESS_MAX),
    "photo": lambda v: v,
    "employment_type": lambda v: _enum(EmploymentType, v, "employmentType").value,
    "clinic_id": require_clinic,
    "branches": _branches,
    "is_active": lambda v: _flag(v, "isActive"),
}


def update_assistant(engine, assistant_id: str, data: Dict[str, Any]) -> Assistant:
    """Apply a partial update; supplied branches replace the stored list."""
    current = find_assistant(engine, assistant_id)
    if current is None:
        raise NotFoundError(_NOT_FOUND)

    values = {key: convert(data[key]) for key, convert in _UPDATERS.items() if key in data}
    if not values:
        return current

    values["updated_at"] = utcnow()
    with db_errors("updating assistant"):
        with engine.begin() as conn:
            if values.get("branches"):
                _check_branches_exist(conn, values["branches"])
            conn.execute(update(assistants).where(assistants.c.id == assistant_id).values(**values))
    return find_assistant(engine, assistant_id)


def update_assistant_status(engine, assistant_id: str, is_active: bool) -> Assistant:
    if find_assistant(engine, assistant_id) is None:
        raise NotFoundError(_NOT_FOUND)
    _flag(is_active, "isActive")
    with db_errors("updating assistant status"):
        with engine.begin() as conn:
            conn.execute(
                update(assistants)
                .where(assistants.c.id == assistant_id)
                .values(is_active=is_active, updated_at=utcnow())
            )
    return find_assistant(engine, assistant_id)


def delete_assistant(engine, assistant_id: str) -> bool:
    if find_assistant(engine, assistant_id) is None:
        raise NotFoundError(_NOT_FOUND)
    with db_errors("deleting assistant"):
        with engine.begin() as conn:
            conn.execute(delete(assistants).where(assistants.c.id == assistant_id))
    return True
