"""
Treatment persistence and fee reporting.
"""

from typing import Any, Dict, List, Optional

from sqlalchemy import delete, func, insert, select, update

from clinicapi.config import TREATMENT_NAME_MAX
from clinicapi.database import clinics, db_errors, new_id, paginate, treatments, utcnow
from clinicapi.errors import DuplicateError, NotFoundError, ValidationError
from clinicapi.fees import compute_fees, parse_fee, round2
from clinicapi.models import FeeSpec, FeeType, ResolvedClinic, Treatment, UnresolvedClinic
from clinicapi.validation import require_clinic, require_non_negative, require_text

SORTABLE = ("name", "price", "include_vat", "created_at", "updated_at")

_DUPLICATE = "A treatment with this name already exists in this clinic"
_NOT_FOUND = "Treatment not found"


# ── Row mapping ──────────────────────────────────────────────────────

def _fee_from_column(raw) -> Optional[FeeSpec]:
    if not raw:
        return None
    return FeeSpec(amount=raw["amount"], type=FeeType(raw["type"]))


def _fee_to_column(fee: Optional[FeeSpec]):
    if fee is None:
        return None
    return {"amount": round2(fee.amount), "type": fee.type.value}


def _row_to_treatment(row) -> Treatment:
    if row["clinic_name"] is not None:
        clinic = ResolvedClinic(id=row["clinic_id"], name=row["clinic_name"])
    else:
        clinic = UnresolvedClinic(id=row["clinic_id"])
    return Treatment(
        id=row["id"],
        name=row["name"],
        price=row["price"],
        include_vat=bool(row["include_vat"]),
        doctor_fee=_fee_from_column(row["doctor_fee"]),
        assistant_fee=_fee_from_column(row["assistant_fee"]),
        clinic=clinic,
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _select():
    return (
        select(treatments, clinics.c.name.label("clinic_name"))
        .select_from(treatments.outerjoin(clinics, treatments.c.clinic_id == clinics.c.id))
    )


def _name_taken(conn, name: str, clinic_id: str, exclude_id: Optional[str] = None) -> bool:
    q = select(treatments.c.id).where(
        treatments.c.name == name, treatments.c.clinic_id == clinic_id,
    )
    if exclude_id is not None:
        q = q.where(treatments.c.id != exclude_id)
    return conn.execute(q).first() is not None


# ── Queries ──────────────────────────────────────────────────────────

def find_treatment(engine, treatment_id: str) -> Optional[Treatment]:
    """Look up a treatment by id, resolving its clinic name when possible."""
    with db_errors("finding treatment"):
        with engine.connect() as conn:
            row = conn.execute(_select().where(treatments.c.id == treatment_id)).mappings().first()
    return _row_to_treatment(row) if row else None


def list_treatments(
    engine,
    filters: Dict[str, Any],
    sort_by: str = "name",
    sort_order: str = "asc",
    page: int = 1,
    limit: int = 10,
) -> Dict[str, Any]:
    """
    Page through treatments.

    Recognised filters: clinic_id, include_vat, min_price, max_price and
    search (case-insensitive substring of the name).
    """
    where = []
    if filters.get("clinic_id"):
        where.append(treatments.c.clinic_id == filters["clinic_id"])
    if filters.get("include_vat") is not None:
        where.append(treatments.c.include_vat == bool(filters["include_vat"]))
    if filters.get("min_price") is not None:
        where.append(treatments.c.price >= float(filters["min_price"]))
    if filters.get("max_price") is not None:
        where.append(treatments.c.price <= float(filters["max_price"]))
    if filters.get("search"):
        where.append(func.lower(treatments.c.name).contains(filters["search"].lower(), autoescape=True))

    with db_errors("listing treatments"):
        with engine.connect() as conn:
            rows, total, total_pages = paginate(
                conn, _select(), treatments, where, sort_by, sort_order, page, limit, SORTABLE,
            )
    return {
        "treatments": [_row_to_treatment(r) for r in rows],
        "total": total,
        "total_pages": total_pages,
    }


def list_treatments_with_calculations(engine, clinic_id: str) -> List[Dict[str, Any]]:
    """Every treatment of a clinic, each paired with its fee calculation."""
    with db_errors("listing treatments with calculations"):
        with engine.connect() as conn:
            rows = conn.execute(
                _select().where(treatments.c.clinic_id == clinic_id).order_by(treatments.c.name)
            ).mappings().all()

    result = []
    for row in rows:
        t = _row_to_treatment(row)
        result.append({
            "treatment": t,
            "calculations": compute_fees(t.price, t.include_vat, t.doctor_fee, t.assistant_fee),
        })
    return result


def treatment_stats(engine, clinic_id: str) -> Dict[str, Any]:
    with db_errors("computing treatment stats"):
        with engine.connect() as conn:
            rows = conn.execute(
                select(
                    treatments.c.price,
                    treatments.c.include_vat,
                    treatments.c.doctor_fee,
                    treatments.c.assistant_fee,
                ).where(treatments.c.clinic_id == clinic_id)
            ).mappings().all()

    if not rows:
        return {
            "totalTreatments": 0,
            "averagePrice": 0,
            "priceRange": {"min": 0, "max": 0},
            "treatmentsWithDoctorFee": 0,
            "treatmentsWithAssistantFee": 0,
            "treatmentsWithVat": 0,
        }

    prices = [r["price"] for r in rows]
    return {
        "totalTreatments": len(rows),
        "averagePrice": round2(sum(prices) / len(prices)),
        "priceRange": {"min": min(prices), "max": max(prices)},
        "treatmentsWithDoctorFee": sum(1 for r in rows if r["doctor_fee"]),
        "treatmentsWithAssistantFee": sum(1 for r in rows if r["assistant_fee"]),
        "treatmentsWithVat": sum(1 for r in rows if r["include_vat"]),
    }


# ── Mutations ────────────────────────────────────────────────────────

def create_treatment(engine, data: Dict[str, Any]) -> Treatment:
    """Insert a treatment; names are unique within a clinic."""
    name = require_text(data.get("name"), "name", TREATMENT_NAME_MAX)
    price = round2(require_non_negative(data.get("price"), "price"))
    clinic_id = require_clinic(data.get("clinic_id"))
    doctor_fee = parse_fee(data.get("doctor_fee"), "Doctor Fee")
    assistant_fee = parse_fee(data.get("assistant_fee"), "Assistant Fee")

    treatment_id = new_id()
    now = utcnow()
    with db_errors("creating treatment"):
        with engine.begin() as conn:
            if _name_taken(conn, name, clinic_id):
                raise DuplicateError(_DUPLICATE)
            conn.execute(insert(treatments).values(
                id=treatment_id,
                name=name,
                price=price,
                include_vat=bool(data.get("include_vat") or False),
                doctor_fee=_fee_to_column(doctor_fee),
                assistant_fee=_fee_to_column(assistant_fee),
                clinic_id=clinic_id,
                created_at=now,
                updated_at=now,
            ))
    return find_treatment(engine, treatment_id)


def update_treatment(engine, treatment_id: str, data: Dict[str, Any]) -> Treatment:
    """
    Apply a partial update.

    Only keys present in *data* change. A fee key mapped to None clears that
    fee; a fee value replaces the stored one wholesale.
    """
    current = find_treatment(engine, treatment_id)
    if current is None:
        raise NotFoundError(_NOT_FOUND)

    values: Dict[str, Any] = {}
    if "name" in data:
        values["name"] = require_text(data["name"], "name", TREATMENT_NAME_MAX)
    if "price" in data:
        values["price"] = round2(require_non_negative(data["price"], "price"))
    if "include_vat" in data:
        if data["include_vat"] is None:
            raise ValidationError("includeVat must be true or false")
        values["include_vat"] = bool(data["include_vat"])
    if "doctor_fee" in data:
        values["doctor_fee"] = _fee_to_column(parse_fee(data["doctor_fee"], "Doctor Fee"))
    if "assistant_fee" in data:
        values["assistant_fee"] = _fee_to_column(parse_fee(data["assistant_fee"], "Assistant Fee"))

    if not values:
        return current

    values["updated_at"] = utcnow()
    with db_errors("updating treatment"):
        with engine.begin() as conn:
            if "name" in values and values["name"] != current.name:
                if _name_taken(conn, values["name"], current.clinic_id, exclude_id=treatment_id):
                    raise DuplicateError(_DUPLICATE)
            conn.execute(update(treatments).where(treatments.c.id == treatment_id).values(**values))
    return find_treatment(engine, treatment_id)


def delete_treatment(engine, treatment_id: str) -> bool:
    if find_treatment(engine, treatment_id) is None:
        raise NotFoundError(_NOT_FOUND)
    with db_errors("deleting treatment"):
        with engine.begin() as conn:
            conn.execute(delete(treatments).where(treatments.c.id == treatment_id))
    return True


def calculate_treatment_fees(
    engine,
    treatment_id: str,
    doctor_fee: Optional[FeeSpec] = None,
    assistant_fee: Optional[FeeSpec] = None,
    include_vat: Optional[bool] = None,
) -> Dict[str, Any]:
    """
    Preview the fee calculation of a stored treatment.

    Supplied fees and VAT flag stand in for the stored ones; nothing is
    written back.
    """
    treatment = find_treatment(engine, treatment_id)
    if treatment is None:
        raise NotFoundError(_NOT_FOUND)

    doctor_fee = parse_fee(doctor_fee, "Doctor Fee") or treatment.doctor_fee
    assistant_fee = parse_fee(assistant_fee, "Assistant Fee") or treatment.assistant_fee
    include_vat = treatment.include_vat if include_vat is None else bool(include_vat)

    calc = compute_fees(treatment.price, include_vat, doctor_fee, assistant_fee)
    return {
        "originalPrice": treatment.price,
        "includeVat": include_vat,
        **calc.to_dict(),
    }
