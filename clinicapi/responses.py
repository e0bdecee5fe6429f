"""
Shaping domain objects into the JSON bodies returned by the API.
"""

from datetime import date, datetime
from typing import Any, Dict, Optional

from clinicapi.fees import compute_fees
from clinicapi.models import (
    Assistant,
    ClinicRef,
    Diagnosis,
    FeeCalculation,
    ResolvedClinic,
    Treatment,
    UnresolvedClinic,
)

UNNAMED_BRANCH = "Unnamed branch"


def _iso(value) -> Optional[str]:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def clinic_fields(ref: ClinicRef) -> Dict[str, Any]:
    """clinicId always; clinicName only once the clinic has been resolved."""
    if isinstance(ref, ResolvedClinic):
        return {"clinicId": ref.id, "clinicName": ref.name}
    if isinstance(ref, UnresolvedClinic):
        return {"clinicId": ref.id, "clinicName": None}
    raise TypeError(f"not a clinic reference: {ref!r}")


def treatment_response(
    t: Treatment,
    include_calculations: bool = False,
    calculations: Optional[FeeCalculation] = None,
) -> Dict[str, Any]:
    body = {
        "id": t.id,
        "name": t.name,
        "price": t.price,
        "includeVat": t.include_vat,
        "doctorFee": t.doctor_fee.to_dict() if t.doctor_fee else None,
        "assistantFee": t.assistant_fee.to_dict() if t.assistant_fee else None,
        **clinic_fields(t.clinic),
        "createdAt": _iso(t.created_at),
        "updatedAt": _iso(t.updated_at),
    }
    if include_calculations or calculations is not None:
        if calculations is None:
            calculations = compute_fees(t.price, t.include_vat, t.doctor_fee, t.assistant_fee)
        body["calculations"] = calculations.to_dict()
    return body


def diagnosis_response(d: Diagnosis) -> Dict[str, Any]:
    return {
        "id": d.id,
        "name": d.name,
        **clinic_fields(d.clinic),
        "createdAt": _iso(d.created_at),
        "updatedAt": _iso(d.updated_at),
    }


def assistant_response(a: Assistant) -> Dict[str, Any]:
    return {
        "id": a.id,
        "photo": a.photo,
        "name": a.name,
        "surname": a.surname,
        "fullName": a.full_name,
        "nickname": a.nickname,
        "gender": a.gender.value,
        "nationality": a.nationality,
        "birthday": _iso(a.birthday),
        "age": a.age,
        "address": a.address,
        "employmentType": a.employment_type.value,
        **clinic_fields(a.clinic),
        "branches": [
            {
                "branchId": b.branch.branch_id,
                "name": b.branch.name or UNNAMED_BRANCH,
                "timetable": [entry.to_dict() for entry in b.timetable],
            }
            for b in a.branches
        ],
        "isActive": a.is_active,
        "createdAt": _iso(a.created_at),
        "updatedAt": _iso(a.updated_at),
    }


def pagination(total: int, page: int, limit: int, total_pages: int) -> Dict[str, int]:
    return {"total": total, "page": page, "limit": limit, "totalPages": total_pages}
