"""
Diagnosis persistence.
"""

from typing import Any, Dict, Optional

from sqlalchemy import delete, func, insert, select, update

from clinicapi.database import clinics, db_errors, diagnoses, new_id, paginate, utcnow
from clinicapi.errors import DuplicateError, NotFoundError
from clinicapi.models import Diagnosis, ResolvedClinic, UnresolvedClinic
from clinicapi.validation import require_clinic, require_text

SORTABLE = ("name", "created_at", "updated_at")

_DUPLICATE = "A diagnosis with this name already exists in this clinic"
_NOT_FOUND = "Diagnosis not found"


def _row_to_diagnosis(row) -> Diagnosis:
    if row["clinic_name"] is not None:
        clinic = ResolvedClinic(id=row["clinic_id"], name=row["clinic_name"])
    else:
        clinic = UnresolvedClinic(id=row["clinic_id"])
    return Diagnosis(
        id=row["id"],
        name=row["name"],
        clinic=clinic,
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _select():
    return (
        select(diagnoses, clinics.c.name.label("clinic_name"))
        .select_from(diagnoses.outerjoin(clinics, diagnoses.c.clinic_id == clinics.c.id))
    )


def _name_taken(conn, name: str, clinic_id: str, exclude_id: Optional[str] = None) -> bool:
    q = select(diagnoses.c.id).where(diagnoses.c.name == name, diagnoses.c.clinic_id == clinic_id)
    if exclude_id is not None:
        q = q.where(diagnoses.c.id != exclude_id)
    return conn.execute(q).first() is not None


def find_diagnosis(engine, diagnosis_id: str) -> Optional[Diagnosis]:
    with db_errors("finding diagnosis"):
        with engine.connect() as conn:
            row = conn.execute(_select().where(diagnoses.c.id == diagnosis_id)).mappings().first()
    return _row_to_diagnosis(row) if row else None


def list_diagnoses(
    engine,
    filters: Dict[str, Any],
    sort_by: str = "name",
    sort_order: str = "asc",
    page: int = 1,
    limit: int = 10,
) -> Dict[str, Any]:
    where = []
    if filters.get("clinic_id"):
        where.append(diagnoses.c.clinic_id == filters["clinic_id"])
    if filters.get("search"):
        where.append(func.lower(diagnoses.c.name).contains(filters["search"].lower(), autoescape=True))

    with db_errors("listing diagnoses"):
        with engine.connect() as conn:
            rows, total, total_pages = paginate(
                conn, _select(), diagnoses, where, sort_by, sort_order, page, limit, SORTABLE,
            )
    return {
        "diagnoses": [_row_to_diagnosis(r) for r in rows],
        "total": total,
        "total_pages": total_pages,
    }


def create_diagnosis(engine, data: Dict[str, Any]) -> Diagnosis:
    name = require_text(data.get("name"), "name")
    clinic_id = require_clinic(data.get("clinic_id"))

    diagnosis_id = new_id()
    now = utcnow()
    with db_errors("creating diagnosis"):
        with engine.begin() as conn:
            if _name_taken(conn, name, clinic_id):
                raise DuplicateError(_DUPLICATE)
            conn.execute(insert(diagnoses).values(
                id=diagnosis_id, name=name, clinic_id=clinic_id, created_at=now, updated_at=now,
            ))
    return find_diagnosis(engine, diagnosis_id)


def update_diagnosis(engine, diagnosis_id: str, data: Dict[str, Any]) -> Diagnosis:
    current = find_diagnosis(engine, diagnosis_id)
    if current is None:
        raise NotFoundError(_NOT_FOUND)
    if "name" not in data:
        return current

    name = require_text(data["name"], "name")
    with db_errors("updating diagnosis"):
        with engine.begin() as conn:
            if name != current.name and _name_taken(conn, name, current.clinic_id, exclude_id=diagnosis_id):
                raise DuplicateError(_DUPLICATE)
            conn.execute(
                update(diagnoses)
                .where(diagnoses.c.id == diagnosis_id)
                .values(name=name, updated_at=utcnow())
            )
    return find_diagnosis(engine, diagnosis_id)


def delete_diagnosis(engine, diagnosis_id: str) -> bool:
    if find_diagnosis(engine, diagnosis_id) is None:
        raise NotFoundError(_NOT_FOUND)
    with db_errors("deleting diagnosis"):
        with engine.begin() as conn:
            conn.execute(delete(diagnoses).where(diagnoses.c.id == diagnosis_id))
    return True
